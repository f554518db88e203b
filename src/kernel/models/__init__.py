"""
Kernel Data Models

Core SQLAlchemy models: progress records, submissions, audit log, and the
collaborator tables ownership and enrollment lookups read from.
"""

from src.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from src.kernel.models.user import User, UserRole
from src.kernel.models.classroom import Classroom, ClassEnrollment, Quiz, Level1Question
from src.kernel.models.progress import StudentQuizProgress, AssistanceRequirement
from src.kernel.models.submission import (
    QuizSubmission,
    SubmissionStatus,
    AssistanceLevel1Submission,
    AssistanceLevel2Submission,
    AssistanceLevel3Completion,
    Level3CompletionSource,
)
from src.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # User
    "User",
    "UserRole",
    # Classes & quizzes
    "Classroom",
    "ClassEnrollment",
    "Quiz",
    "Level1Question",
    # Progress
    "StudentQuizProgress",
    "AssistanceRequirement",
    # Submissions
    "QuizSubmission",
    "SubmissionStatus",
    "AssistanceLevel1Submission",
    "AssistanceLevel2Submission",
    "AssistanceLevel3Completion",
    "Level3CompletionSource",
    # Event Log
    "EventLog",
    "EventType",
]
