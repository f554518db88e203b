"""
AssistanceService - one entry point over the assistance engine.

Wires the progress store, attempt evaluator, level tracker and override
service together over a single session factory, and answers the read-side
status and history queries.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.engines.assistance.attempt_evaluator import AttemptEvaluator, AttemptResult
from src.engines.assistance.gate import next_level
from src.engines.assistance.level_tracker import (
    Level1Outcome,
    Level2GradeOutcome,
    Level2Submission,
    LevelCompletionTracker,
    LevelOutcome,
)
from src.engines.assistance.override_service import TeacherOverrideService
from src.engines.assistance.progress_store import KeyedLock, ProgressSnapshot, ProgressStore
from src.kernel.errors import NotFoundError, StorageError, ValidationError, require_ids
from src.kernel.events.event_store import SUBMISSION_ENTITY, EventStore
from src.kernel.models.event_log import EventType
from src.kernel.models.progress import AssistanceRequirement
from src.kernel.models.submission import QuizSubmission, SubmissionStatus
from src.kernel.permissions.ownership_service import OwnershipService, QuizSettings
from src.logging_config import get_logger

logger = get_logger(__name__)


class AssistanceStatus(BaseModel):
    """What the presentation layer needs to decide the student's next screen."""

    student_id: uuid.UUID
    quiz_id: uuid.UUID
    assistance_required: AssistanceRequirement
    level1_completed: bool = False
    level2_completed: bool = False
    level3_completed: bool = False
    must_retake_main_quiz: bool = False
    current_attempt: int = 0
    failed_attempts: int = 0
    max_attempts: int
    last_attempt_passed: bool = False
    can_take_main_quiz: bool
    reset_generation: int = 0


class MainQuizSubmission(BaseModel):
    """Read model of a main-quiz attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quiz_id: uuid.UUID
    student_id: uuid.UUID
    attempt_number: int
    reset_generation: int
    status: SubmissionStatus
    score: float
    passed: bool
    correct_answers: Optional[int] = None
    total_questions: Optional[int] = None
    feedback: Optional[str] = None
    created_at: datetime


class AssistanceService:
    """
    Facade over the assistance engine.

    Usage:
        service = AssistanceService(async_session_maker)
        result = await service.evaluate_main_quiz_attempt(student_id, quiz_id, score=55.0)
        status = await service.get_assistance_status(student_id, quiz_id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        locks: Optional[KeyedLock] = None,
        conflict_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.ownership = OwnershipService(session_factory)
        self.store = ProgressStore(
            session_factory,
            locks=locks,
            conflict_retries=conflict_retries,
            timeout_seconds=timeout_seconds,
        )
        self.evaluator = AttemptEvaluator(self.store, self.ownership)
        self.tracker = LevelCompletionTracker(self.store, self.ownership)
        self.overrides = TeacherOverrideService(self.store, self.ownership)

    # Student-driven transitions

    async def evaluate_main_quiz_attempt(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        score: Optional[float] = None,
        correct_answers: Optional[int] = None,
        total_questions: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> AttemptResult:
        return await self.evaluator.evaluate_main_quiz_attempt(
            student_id,
            quiz_id,
            score=score,
            correct_answers=correct_answers,
            total_questions=total_questions,
            timeout_seconds=timeout_seconds,
        )

    async def submit_level1(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: Dict[uuid.UUID, bool],
    ) -> Level1Outcome:
        return await self.tracker.submit_level1(student_id, quiz_id, answers)

    async def submit_level2(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: List[str],
    ) -> Level2Submission:
        return await self.tracker.submit_level2(student_id, quiz_id, answers)

    async def acknowledge_level3(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        reading_time_seconds: Optional[int] = None,
    ) -> LevelOutcome:
        return await self.tracker.acknowledge_level3(student_id, quiz_id, reading_time_seconds)

    # Teacher-driven transitions

    async def grade_level2(
        self,
        teacher_id: uuid.UUID,
        submission_id: uuid.UUID,
        status: SubmissionStatus,
        feedback: Optional[str] = None,
    ) -> Level2GradeOutcome:
        return await self.tracker.grade_level2(teacher_id, submission_id, status, feedback)

    async def grant_level3_access(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
        granted: bool,
    ) -> LevelOutcome:
        return await self.overrides.grant_level3_access(teacher_id, quiz_id, student_id, granted)

    async def reset_attempts(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> ProgressSnapshot:
        return await self.overrides.reset_attempts(teacher_id, quiz_id, student_id)

    async def add_submission_feedback(
        self,
        teacher_id: uuid.UUID,
        submission_id: uuid.UUID,
        feedback: str,
    ) -> MainQuizSubmission:
        """
        Attach teacher feedback to a graded main-quiz attempt.

        Only the feedback text changes; score, verdict and attempt numbering
        stay as graded and progress is not touched. Feedback given again
        replaces the earlier text.
        """
        require_ids(teacher_id=teacher_id, submission_id=submission_id)
        if feedback is None or not feedback.strip():
            raise ValidationError("feedback must be non-empty", field="feedback")

        try:
            async with self.session_factory() as session:
                quiz_id = await session.scalar(
                    select(QuizSubmission.quiz_id).where(QuizSubmission.id == submission_id)
                )
        except DBAPIError as exc:
            logger.exception("Submission lookup failed")
            raise StorageError("Submission storage is unavailable") from exc
        if quiz_id is None:
            raise NotFoundError("Submission not found", field="submission_id")
        await self.ownership.require_quiz_owner(teacher_id, quiz_id)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    submission = await session.get(QuizSubmission, submission_id)
                    if submission is None:
                        raise NotFoundError("Submission not found", field="submission_id")
                    replaced = submission.feedback is not None
                    submission.feedback = feedback
                    await EventStore(session).log(
                        event_type=EventType.SUBMISSION_FEEDBACK_ADDED,
                        entity_type=SUBMISSION_ENTITY,
                        entity_id=submission.id,
                        user_id=teacher_id,
                        payload={
                            "student_id": submission.student_id,
                            "quiz_id": submission.quiz_id,
                            "replaced": replaced,
                        },
                    )
                    await session.flush()
                    result = MainQuizSubmission.model_validate(submission)
        except DBAPIError as exc:
            logger.exception("Submission feedback write failed")
            raise StorageError("Submission storage is unavailable") from exc

        logger.info(
            "Submission feedback added",
            extra={"teacher_id": str(teacher_id), "submission_id": str(submission_id)},
        )
        return result

    # Reads

    async def get_assistance_status(self, student_id: uuid.UUID, quiz_id: uuid.UUID) -> AssistanceStatus:
        """
        Current ladder position. A pair with no activity reports the initial
        state; no row is created.
        """
        quiz = await self.ownership.get_quiz_settings(quiz_id)
        progress = await self.store.get(student_id, quiz_id)
        return build_status(student_id, quiz, progress)

    async def get_student_status(self, student_id: uuid.UUID, quiz_id: uuid.UUID) -> AssistanceStatus:
        """Status as seen by the student; requires enrollment."""
        quiz = await self.ownership.require_enrollment(student_id, quiz_id)
        progress = await self.store.get(student_id, quiz_id)
        return build_status(student_id, quiz, progress)

    async def get_status_for_teacher(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> AssistanceStatus:
        quiz = await self.ownership.require_quiz_owner(teacher_id, quiz_id)
        progress = await self.store.get(student_id, quiz_id)
        return build_status(student_id, quiz, progress)

    async def list_main_quiz_submissions(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
    ) -> List[MainQuizSubmission]:
        """Every main-quiz attempt, including those from before a reset, oldest first."""
        require_ids(student_id=student_id, quiz_id=quiz_id)
        query = (
            select(QuizSubmission)
            .where(
                QuizSubmission.student_id == student_id,
                QuizSubmission.quiz_id == quiz_id,
                QuizSubmission.assistance_level.is_(None),
            )
            .order_by(QuizSubmission.reset_generation, QuizSubmission.attempt_number)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [MainQuizSubmission.model_validate(s) for s in result.scalars().all()]
        except DBAPIError as exc:
            logger.exception("Submission history lookup failed")
            raise StorageError("Submission storage is unavailable") from exc

    async def list_level2_submissions(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
    ) -> List[Level2Submission]:
        return await self.tracker.list_level2_submissions(student_id, quiz_id)


def build_status(
    student_id: uuid.UUID,
    quiz: QuizSettings,
    progress: Optional[ProgressSnapshot],
) -> AssistanceStatus:
    if progress is None:
        return AssistanceStatus(
            student_id=student_id,
            quiz_id=quiz.quiz_id,
            assistance_required=AssistanceRequirement.NONE,
            max_attempts=quiz.max_attempts,
            can_take_main_quiz=True,
        )
    decision = next_level(progress)
    return AssistanceStatus(
        student_id=student_id,
        quiz_id=quiz.quiz_id,
        assistance_required=progress.assistance_required,
        level1_completed=progress.level1_completed,
        level2_completed=progress.level2_completed,
        level3_completed=progress.level3_completed,
        must_retake_main_quiz=progress.must_retake_main_quiz,
        current_attempt=progress.current_attempt,
        failed_attempts=progress.failed_attempts,
        max_attempts=progress.max_attempts,
        last_attempt_passed=progress.last_attempt_passed,
        can_take_main_quiz=decision.can_take_main_quiz,
        reset_generation=progress.reset_generation,
    )
