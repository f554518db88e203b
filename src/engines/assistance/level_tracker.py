"""
Level Completion Tracker - turns assistance-track verdicts into completion flags.

Level 1: yes/no questions, graded immediately against the stored answer key.
Level 2: essay answers, PENDING until a teacher grades them PASSED or FAILED.
Level 3: reading material; completed by a teacher grant or by the student's
         acknowledgement, both through record_level3().

Flags only move from False to True here, except when a teacher revokes level 3.
The progress store re-runs the gate after every mutation, so callers always
get the refreshed level back.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.engines.assistance.gate import next_level
from src.engines.assistance.progress_store import ProgressSnapshot, ProgressStore
from src.kernel.errors import NotFoundError, SequenceError, StorageError, ValidationError, require_ids
from src.kernel.events.event_store import PROGRESS_ENTITY, EventStore
from src.kernel.models.base import utcnow
from src.kernel.models.classroom import Level1Question
from src.kernel.models.event_log import EventType
from src.kernel.models.progress import AssistanceRequirement, StudentQuizProgress
from src.kernel.models.submission import (
    AssistanceLevel1Submission,
    AssistanceLevel2Submission,
    AssistanceLevel3Completion,
    Level3CompletionSource,
    SubmissionStatus,
)
from src.kernel.permissions.ownership_service import OwnershipService
from src.logging_config import get_logger

logger = get_logger(__name__)


class LevelOutcome(BaseModel):
    """Completion flag of the affected level plus the refreshed gate."""

    level_completed: bool
    next_level: AssistanceRequirement
    must_retake_main_quiz: bool
    progress: ProgressSnapshot


class Level1Outcome(LevelOutcome):
    submission_id: uuid.UUID
    correct_count: int
    total_count: int


class Level2Submission(BaseModel):
    """Read model of a level-2 submission."""

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


class Level2GradeOutcome(LevelOutcome):
    submission: Level2Submission


def _require_level(progress: StudentQuizProgress, level: AssistanceRequirement) -> None:
    decision = next_level(progress)
    if decision.level != level:
        current = decision.level.value if decision.level != AssistanceRequirement.NONE else "the main quiz"
        raise SequenceError(f"{level.value} is not available now; the student is currently at {current}")


async def record_level3(
    session: AsyncSession,
    progress: StudentQuizProgress,
    *,
    granted: bool,
    source: Level3CompletionSource,
    actor_id: uuid.UUID,
    reading_time_seconds: Optional[int] = None,
) -> AssistanceLevel3Completion:
    """
    Set or clear level-3 completion on a live progress row.

    Shared by the teacher grant and the student acknowledgement. Revoking also
    clears the retake flag so the gate can ask for level 3 again.
    """
    progress.level3_completed = granted
    if granted:
        if progress.level3_completed_at is None:
            progress.level3_completed_at = utcnow()
    else:
        progress.level3_completed_at = None
        progress.must_retake_main_quiz = False

    completion = AssistanceLevel3Completion(
        quiz_id=progress.quiz_id,
        student_id=progress.student_id,
        source=source,
        granted=granted,
        reading_time_seconds=reading_time_seconds,
        actor_id=actor_id,
    )
    session.add(completion)

    if source == Level3CompletionSource.ACKNOWLEDGED:
        event_type = EventType.LEVEL3_ACKNOWLEDGED
    elif granted:
        event_type = EventType.LEVEL3_ACCESS_GRANTED
    else:
        event_type = EventType.LEVEL3_ACCESS_REVOKED
    await EventStore(session).log(
        event_type=event_type,
        entity_type=PROGRESS_ENTITY,
        entity_id=progress.id,
        user_id=actor_id,
        payload={
            "student_id": progress.student_id,
            "quiz_id": progress.quiz_id,
            "granted": granted,
            "reading_time_seconds": reading_time_seconds,
        },
    )
    return completion


class LevelCompletionTracker:
    """Handles submissions and verdicts for the three assistance tracks."""

    def __init__(self, store: ProgressStore, ownership: OwnershipService):
        self.store = store
        self.ownership = ownership
        self.level1_pass_ratio = get_settings().level1_pass_ratio

    async def submit_level1(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: Dict[uuid.UUID, bool],
    ) -> Level1Outcome:
        """
        Grade a level-1 attempt. Level 1 is uncapped: a failed attempt is
        stored and the student may submit again.
        """
        await self.ownership.require_enrollment(student_id, quiz_id)
        if not answers:
            raise ValidationError("answers are required", field="answers")

        async def grade(session: AsyncSession, progress: StudentQuizProgress) -> AssistanceLevel1Submission:
            _require_level(progress, AssistanceRequirement.LEVEL1)

            result = await session.execute(
                select(Level1Question).where(Level1Question.quiz_id == quiz_id)
            )
            questions = list(result.scalars().all())
            if not questions:
                raise NotFoundError("This quiz has no level 1 questions", field="quiz_id")

            known = {q.id for q in questions}
            unknown = [str(qid) for qid in answers if qid not in known]
            if unknown:
                raise ValidationError(
                    f"Unknown level 1 question(s): {', '.join(unknown)}", field="answers"
                )

            graded = []
            correct = 0
            for question in questions:
                answer = answers.get(question.id)
                is_correct = answer is not None and answer == question.correct_answer
                correct += int(is_correct)
                graded.append({"question_id": str(question.id), "answer": answer, "correct": is_correct})

            passed = correct / len(questions) >= self.level1_pass_ratio
            submission = AssistanceLevel1Submission(
                quiz_id=quiz_id,
                student_id=student_id,
                status=SubmissionStatus.PASSED if passed else SubmissionStatus.FAILED,
                answers=graded,
                correct_count=correct,
                total_count=len(questions),
            )
            session.add(submission)
            await session.flush()

            if passed and not progress.level1_completed:
                progress.level1_completed = True
                progress.level1_completed_at = utcnow()

            await EventStore(session).log(
                event_type=EventType.LEVEL1_SUBMITTED,
                entity_type=PROGRESS_ENTITY,
                entity_id=progress.id,
                user_id=student_id,
                payload={
                    "submission_id": submission.id,
                    "passed": passed,
                    "correct_count": correct,
                    "total_count": len(questions),
                },
            )
            return submission

        outcome = await self.store.update(student_id, quiz_id, grade, actor_id=student_id)
        submission = outcome.value
        logger.info(
            "Level 1 submission graded",
            extra={
                "student_id": str(student_id),
                "quiz_id": str(quiz_id),
                "correct_count": submission.correct_count,
                "total_count": submission.total_count,
            },
        )
        return Level1Outcome(
            level_completed=outcome.progress.level1_completed,
            next_level=outcome.decision.level,
            must_retake_main_quiz=outcome.decision.must_retake_main_quiz,
            progress=outcome.progress,
            submission_id=submission.id,
            correct_count=submission.correct_count,
            total_count=submission.total_count,
        )

    async def submit_level2(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: List[str],
    ) -> Level2Submission:
        """Store essay answers as a PENDING submission awaiting teacher grading."""
        await self.ownership.require_enrollment(student_id, quiz_id)
        if not answers or any(not (a or "").strip() for a in answers):
            raise ValidationError("Every level 2 answer must be non-empty", field="answers")

        async def submit(session: AsyncSession, progress: StudentQuizProgress) -> AssistanceLevel2Submission:
            _require_level(progress, AssistanceRequirement.LEVEL2)

            pending = await session.execute(
                select(AssistanceLevel2Submission.id).where(
                    AssistanceLevel2Submission.student_id == student_id,
                    AssistanceLevel2Submission.quiz_id == quiz_id,
                    AssistanceLevel2Submission.status == SubmissionStatus.PENDING,
                    AssistanceLevel2Submission.reset_generation == progress.reset_generation,
                )
            )
            if pending.first() is not None:
                raise SequenceError("A level 2 submission is already awaiting grading")

            submission = AssistanceLevel2Submission(
                quiz_id=quiz_id,
                student_id=student_id,
                status=SubmissionStatus.PENDING,
                reset_generation=progress.reset_generation,
                answers=list(answers),
                feedback=None,
                graded_by=None,
                graded_at=None,
            )
            session.add(submission)
            await session.flush()

            await EventStore(session).log(
                event_type=EventType.LEVEL2_SUBMITTED,
                entity_type=PROGRESS_ENTITY,
                entity_id=progress.id,
                user_id=student_id,
                payload={"submission_id": submission.id, "answer_count": len(answers)},
            )
            return submission

        outcome = await self.store.update(student_id, quiz_id, submit, actor_id=student_id)
        logger.info(
            "Level 2 submission received",
            extra={"student_id": str(student_id), "quiz_id": str(quiz_id)},
        )
        return Level2Submission.model_validate(outcome.value)

    async def grade_level2(
        self,
        teacher_id: uuid.UUID,
        submission_id: uuid.UUID,
        status: SubmissionStatus,
        feedback: Optional[str] = None,
    ) -> Level2GradeOutcome:
        """
        Record a teacher's verdict on a PENDING level-2 submission.

        PASSED sets level2_completed; FAILED leaves it unset and the feedback
        guides the student's resubmission. A submission from before a progress
        reset, or one graded while the student is no longer at level 2, raises
        SequenceError and leaves progress untouched.
        """
        require_ids(teacher_id=teacher_id, submission_id=submission_id)
        try:
            status = SubmissionStatus(status)
        except ValueError as exc:
            raise ValidationError("status must be PASSED or FAILED", field="status") from exc
        if status not in (SubmissionStatus.PASSED, SubmissionStatus.FAILED):
            raise ValidationError("status must be PASSED or FAILED", field="status")

        target = await self._get_level2_submission(submission_id)
        await self.ownership.require_quiz_owner(teacher_id, target.quiz_id)

        async def grade(session: AsyncSession, progress: StudentQuizProgress) -> AssistanceLevel2Submission:
            submission = await session.get(AssistanceLevel2Submission, submission_id)
            if submission is None:
                raise NotFoundError("Level 2 submission not found", field="submission_id")
            if submission.status != SubmissionStatus.PENDING:
                raise SequenceError("This level 2 submission is no longer awaiting grading")
            if submission.reset_generation != progress.reset_generation:
                raise SequenceError("This level 2 submission predates a progress reset")
            _require_level(progress, AssistanceRequirement.LEVEL2)

            submission.status = status
            submission.feedback = feedback
            submission.graded_by = teacher_id
            submission.graded_at = utcnow()

            if status == SubmissionStatus.PASSED and not progress.level2_completed:
                progress.level2_completed = True
                progress.level2_completed_at = utcnow()

            await EventStore(session).log(
                event_type=EventType.LEVEL2_GRADED,
                entity_type=PROGRESS_ENTITY,
                entity_id=progress.id,
                user_id=teacher_id,
                payload={"submission_id": submission_id, "status": status},
            )
            await session.flush()
            return Level2Submission.model_validate(submission)

        outcome = await self.store.update(
            target.student_id,
            target.quiz_id,
            grade,
            actor_id=teacher_id,
        )
        logger.info(
            "Level 2 submission graded",
            extra={
                "submission_id": str(submission_id),
                "student_id": str(target.student_id),
                "status": status.value,
            },
        )
        return Level2GradeOutcome(
            level_completed=outcome.progress.level2_completed,
            next_level=outcome.decision.level,
            must_retake_main_quiz=outcome.decision.must_retake_main_quiz,
            progress=outcome.progress,
            submission=outcome.value,
        )

    async def acknowledge_level3(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        reading_time_seconds: Optional[int] = None,
    ) -> LevelOutcome:
        """Student confirms the level-3 material; same mutation as a teacher grant."""
        await self.ownership.require_enrollment(student_id, quiz_id)
        if reading_time_seconds is not None and reading_time_seconds < 0:
            raise ValidationError("reading_time_seconds cannot be negative", field="reading_time_seconds")

        async def acknowledge(session: AsyncSession, progress: StudentQuizProgress) -> None:
            _require_level(progress, AssistanceRequirement.LEVEL3)
            await record_level3(
                session,
                progress,
                granted=True,
                source=Level3CompletionSource.ACKNOWLEDGED,
                actor_id=student_id,
                reading_time_seconds=reading_time_seconds,
            )

        outcome = await self.store.update(student_id, quiz_id, acknowledge, actor_id=student_id)
        return LevelOutcome(
            level_completed=outcome.progress.level3_completed,
            next_level=outcome.decision.level,
            must_retake_main_quiz=outcome.decision.must_retake_main_quiz,
            progress=outcome.progress,
        )

    async def list_level2_submissions(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
    ) -> List[Level2Submission]:
        """All level-2 submissions of a student for a quiz, oldest first."""
        require_ids(student_id=student_id, quiz_id=quiz_id)
        query = (
            select(AssistanceLevel2Submission)
            .where(
                AssistanceLevel2Submission.student_id == student_id,
                AssistanceLevel2Submission.quiz_id == quiz_id,
            )
            .order_by(AssistanceLevel2Submission.created_at)
        )
        try:
            async with self.store.session_factory() as session:
                result = await session.execute(query)
                return [Level2Submission.model_validate(s) for s in result.scalars().all()]
        except DBAPIError as exc:
            logger.exception("Level 2 submission lookup failed")
            raise StorageError("Submission storage is unavailable") from exc

    async def _get_level2_submission(self, submission_id: uuid.UUID) -> Level2Submission:
        try:
            async with self.store.session_factory() as session:
                submission = await session.get(AssistanceLevel2Submission, submission_id)
                if submission is None:
                    raise NotFoundError("Level 2 submission not found", field="submission_id")
                return Level2Submission.model_validate(submission)
        except DBAPIError as exc:
            logger.exception("Level 2 submission lookup failed")
            raise StorageError("Submission storage is unavailable") from exc
