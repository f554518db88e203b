"""
Typed failures raised by the kernel and the assistance engine.

Each carries a client-safe message; the API layer maps the class to an HTTP
status in one place (src.main).
"""

from typing import Optional


class AssistanceError(Exception):
    """Base class for every failure the assistance core reports to callers."""

    code = "assistance_error"

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(AssistanceError):
    """A required identifier or argument is missing or malformed."""

    code = "validation_error"


class NotFoundError(AssistanceError):
    """A referenced quiz, student, progress record or submission does not exist."""

    code = "not_found"


class OwnershipError(AssistanceError):
    """The actor does not own (teacher) or belong to (student) the quiz's class."""

    code = "forbidden"


class SequenceError(AssistanceError):
    """The action is not allowed at the student's current ladder position."""

    code = "not_allowed_now"


class ConflictError(AssistanceError):
    """A concurrent update to the same progress record won the race."""

    code = "conflict"


class StorageError(AssistanceError):
    """Persistence is unavailable or the unit of work timed out."""

    code = "storage_unavailable"


def require_ids(**ids: object) -> None:
    """Raise ValidationError naming the first identifier that is missing."""
    for name, value in ids.items():
        if value is None or value == "":
            raise ValidationError(f"{name} is required", field=name)
