"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.assistance import (
    MainQuizAttemptRequest,
    MainQuizAttemptResponse,
    Level1SubmitRequest,
    Level2SubmitRequest,
    Level2SubmissionResponse,
    Level2GradeRequest,
    Level2GradeResponse,
    Level3AcknowledgeRequest,
    Level3AccessRequest,
    LevelResultResponse,
    AssistanceStatusResponse,
    ProgressResponse,
    QuizSubmissionResponse,
    QuizSubmissionListResponse,
)
from src.schemas.common import ErrorResponse, HealthResponse

__all__ = [
    # Student
    "MainQuizAttemptRequest",
    "MainQuizAttemptResponse",
    "Level1SubmitRequest",
    "Level2SubmitRequest",
    "Level3AcknowledgeRequest",
    "LevelResultResponse",
    "AssistanceStatusResponse",
    "QuizSubmissionResponse",
    "QuizSubmissionListResponse",
    # Teacher
    "Level2GradeRequest",
    "Level2GradeResponse",
    "Level2SubmissionResponse",
    "Level3AccessRequest",
    "ProgressResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
]
