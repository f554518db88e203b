"""
Teacher Override Service - out-of-band changes a class owner can make.

Both operations go through the same progress-store mutation primitive as the
student-driven path; only the authorization predicate differs.
"""

import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.assistance.level_tracker import LevelOutcome, record_level3
from src.engines.assistance.progress_store import ProgressSnapshot, ProgressStore
from src.kernel.errors import NotFoundError, ValidationError
from src.kernel.events.event_store import PROGRESS_ENTITY, EventStore
from src.kernel.models.event_log import EventType
from src.kernel.models.progress import AssistanceRequirement, StudentQuizProgress
from src.kernel.models.submission import AssistanceLevel2Submission, Level3CompletionSource, SubmissionStatus
from src.kernel.permissions.ownership_service import OwnershipService, QuizSettings
from src.logging_config import get_logger

logger = get_logger(__name__)

SUPERSEDED_FEEDBACK = "Closed by a progress reset"


class TeacherOverrideService:
    """
    Manual level-3 grant and full progress reset.

    The ownership check runs before any state is touched; a teacher who does
    not own the quiz's class gets OwnershipError and nothing is written.
    """

    def __init__(self, store: ProgressStore, ownership: OwnershipService):
        self.store = store
        self.ownership = ownership

    async def grant_level3_access(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
        granted: bool,
    ) -> LevelOutcome:
        """Set level3_completed to `granted`, creating the progress row if needed."""
        if not isinstance(granted, bool):
            raise ValidationError("granted must be true or false", field="granted")
        quiz = await self._authorize(teacher_id, quiz_id, student_id)

        async def apply(session: AsyncSession, progress: StudentQuizProgress) -> None:
            await record_level3(
                session,
                progress,
                granted=granted,
                source=Level3CompletionSource.TEACHER_GRANT,
                actor_id=teacher_id,
            )

        outcome = await self.store.update(
            student_id,
            quiz_id,
            apply,
            create=True,
            max_attempts=quiz.max_attempts,
            actor_id=teacher_id,
        )
        logger.info(
            "Level 3 access %s",
            "granted" if granted else "revoked",
            extra={"teacher_id": str(teacher_id), "student_id": str(student_id), "quiz_id": str(quiz_id)},
        )
        return LevelOutcome(
            level_completed=outcome.progress.level3_completed,
            next_level=outcome.decision.level,
            must_retake_main_quiz=outcome.decision.must_retake_main_quiz,
            progress=outcome.progress,
        )

    async def reset_attempts(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> ProgressSnapshot:
        """
        Restore the progress row to its initial state.

        Submission history is kept; the reset generation is bumped so the next
        attempt is numbered 1 again without colliding with earlier rows. Level 2
        submissions still awaiting grading are closed as SUPERSEDED.
        Raises NotFoundError when the student has no progress for the quiz.
        """
        await self._authorize(teacher_id, quiz_id, student_id)

        async def reset(session: AsyncSession, progress: StudentQuizProgress) -> None:
            before = {
                "current_attempt": progress.current_attempt,
                "failed_attempts": progress.failed_attempts,
                "assistance_required": progress.assistance_required,
                "level1_completed": progress.level1_completed,
                "level2_completed": progress.level2_completed,
                "level3_completed": progress.level3_completed,
                "must_retake_main_quiz": progress.must_retake_main_quiz,
            }
            progress.current_attempt = 0
            progress.failed_attempts = 0
            progress.last_attempt_passed = False
            progress.assistance_required = AssistanceRequirement.NONE
            progress.level1_completed = False
            progress.level2_completed = False
            progress.level3_completed = False
            progress.level1_completed_at = None
            progress.level2_completed_at = None
            progress.level3_completed_at = None
            progress.must_retake_main_quiz = False
            progress.reset_generation += 1

            closed = await session.execute(
                update(AssistanceLevel2Submission)
                .where(
                    AssistanceLevel2Submission.student_id == progress.student_id,
                    AssistanceLevel2Submission.quiz_id == progress.quiz_id,
                    AssistanceLevel2Submission.status == SubmissionStatus.PENDING,
                )
                .values(status=SubmissionStatus.SUPERSEDED, feedback=SUPERSEDED_FEEDBACK)
                .execution_options(synchronize_session=False)
            )

            await EventStore(session).log(
                event_type=EventType.PROGRESS_RESET,
                entity_type=PROGRESS_ENTITY,
                entity_id=progress.id,
                user_id=teacher_id,
                payload={
                    "before": before,
                    "reset_generation": progress.reset_generation,
                    "superseded_level2_submissions": closed.rowcount,
                },
            )

        outcome = await self.store.update(student_id, quiz_id, reset, actor_id=teacher_id)
        logger.info(
            "Progress reset",
            extra={
                "teacher_id": str(teacher_id),
                "student_id": str(student_id),
                "quiz_id": str(quiz_id),
                "reset_generation": outcome.progress.reset_generation,
            },
        )
        return outcome.progress

    async def _authorize(
        self,
        teacher_id: uuid.UUID,
        quiz_id: uuid.UUID,
        student_id: uuid.UUID,
    ) -> QuizSettings:
        quiz = await self.ownership.require_quiz_owner(teacher_id, quiz_id)
        class_ids = await self.ownership.get_student_class_ids(student_id)
        if quiz.class_id not in class_ids:
            raise NotFoundError("Student is not enrolled in this quiz's class", field="student_id")
        return quiz
