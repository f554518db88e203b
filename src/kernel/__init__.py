"""
Kernel Layer

Foundational components shared by the engines and the API:
- Data models (progress records, submissions, collaborator tables)
- Append-only audit log
- Identity token verification
- Ownership and enrollment checks
"""

from src.kernel.models import (
    User,
    UserRole,
    StudentQuizProgress,
    AssistanceRequirement,
    QuizSubmission,
    SubmissionStatus,
    EventLog,
    EventType,
)

__all__ = [
    "User",
    "UserRole",
    "StudentQuizProgress",
    "AssistanceRequirement",
    "QuizSubmission",
    "SubmissionStatus",
    "EventLog",
    "EventType",
]
