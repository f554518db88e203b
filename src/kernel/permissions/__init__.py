"""
Permission Core - class ownership and enrollment checks.
"""

from src.kernel.permissions.ownership_service import OwnershipService, QuizSettings

__all__ = [
    "OwnershipService",
    "QuizSettings",
]
