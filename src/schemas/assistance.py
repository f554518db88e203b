"""
Assistance ladder schemas for main-quiz attempts, assistance submissions and teacher overrides.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.kernel.models.progress import AssistanceRequirement
from src.kernel.models.submission import SubmissionStatus


# Requests

class MainQuizAttemptRequest(BaseModel):
    """Graded main-quiz attempt. Give a percentage score, or correct/total counts."""

    score: Optional[float] = Field(None, ge=0, le=100)
    correct_answers: Optional[int] = Field(None, ge=0)
    total_questions: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def check_score_source(self) -> "MainQuizAttemptRequest":
        if self.score is None and (self.correct_answers is None or self.total_questions is None):
            raise ValueError("Provide score, or both correct_answers and total_questions")
        return self


class Level1SubmitRequest(BaseModel):
    """Yes/no answers keyed by level-1 question id."""

    answers: Dict[uuid.UUID, bool] = Field(..., min_length=1)


class Level2SubmitRequest(BaseModel):
    answers: List[str] = Field(..., min_length=1)


class Level3AcknowledgeRequest(BaseModel):
    reading_time_seconds: Optional[int] = Field(None, ge=0)


class Level2GradeRequest(BaseModel):
    status: Literal["PASSED", "FAILED"]
    feedback: Optional[str] = Field(None, max_length=5000)


class Level3AccessRequest(BaseModel):
    granted: bool = True


class SubmissionFeedbackRequest(BaseModel):
    """Teacher comment on a graded main-quiz attempt."""

    feedback: str = Field(..., min_length=1, max_length=5000)


# Responses

class AssistanceStatusResponse(BaseModel):
    """Current ladder position of a student on a quiz."""

    model_config = ConfigDict(from_attributes=True)

    student_id: uuid.UUID
    quiz_id: uuid.UUID
    assistance_required: AssistanceRequirement
    level1_completed: bool
    level2_completed: bool
    level3_completed: bool
    must_retake_main_quiz: bool
    current_attempt: int
    failed_attempts: int
    max_attempts: int
    last_attempt_passed: bool
    can_take_main_quiz: bool


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: uuid.UUID
    quiz_id: uuid.UUID
    assistance_required: AssistanceRequirement
    level1_completed: bool
    level2_completed: bool
    level3_completed: bool
    must_retake_main_quiz: bool
    current_attempt: int
    failed_attempts: int
    max_attempts: int
    last_attempt_passed: bool
    reset_generation: int


class MainQuizAttemptResponse(BaseModel):
    passed: bool
    score: float
    passing_score: float
    attempt_number: int
    submission_id: uuid.UUID
    next_level: AssistanceRequirement
    must_retake_main_quiz: bool
    current_attempt: int
    failed_attempts: int
    max_attempts: int


class LevelResultResponse(BaseModel):
    """Result of an assistance-level transition."""

    level_completed: bool
    next_level: AssistanceRequirement
    must_retake_main_quiz: bool
    submission_id: Optional[uuid.UUID] = None
    correct_count: Optional[int] = None
    total_count: Optional[int] = None


class Level2SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quiz_id: uuid.UUID
    student_id: uuid.UUID
    status: SubmissionStatus
    reset_generation: int = 0
    answers: List[str]
    feedback: Optional[str] = None
    graded_by: Optional[uuid.UUID] = None
    graded_at: Optional[datetime] = None


class Level2GradeResponse(LevelResultResponse):
    submission: Level2SubmissionResponse


class QuizSubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    attempt_number: int
    reset_generation: int
    status: SubmissionStatus
    score: float
    passed: bool
    correct_answers: Optional[int] = None
    total_questions: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime


class QuizSubmissionListResponse(BaseModel):
    items: List[QuizSubmissionResponse]
    total: int
