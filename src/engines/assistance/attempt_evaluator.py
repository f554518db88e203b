"""
Attempt Evaluator - folds a graded main-quiz attempt into the progress record.

The answer checking itself happens upstream; this service only sees the score
(or correct/total counts) and compares it with the quiz's passing threshold.
"""

import uuid
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.assistance.gate import next_level
from src.engines.assistance.progress_store import ProgressSnapshot, ProgressStore
from src.kernel.errors import SequenceError, ValidationError
from src.kernel.events.event_store import PROGRESS_ENTITY, EventStore
from src.kernel.models.event_log import EventType
from src.kernel.models.progress import AssistanceRequirement, StudentQuizProgress
from src.kernel.models.submission import QuizSubmission, SubmissionStatus
from src.kernel.permissions.ownership_service import OwnershipService
from src.logging_config import get_logger

logger = get_logger(__name__)


class AttemptResult(BaseModel):
    """Outcome of one graded main-quiz attempt."""

    passed: bool
    score: float
    passing_score: float
    attempt_number: int
    submission_id: uuid.UUID
    progress: ProgressSnapshot
    next_level: AssistanceRequirement
    must_retake_main_quiz: bool


def resolve_score(
    score: Optional[float],
    correct_answers: Optional[int],
    total_questions: Optional[int],
) -> float:
    """Percentage score from an explicit value or from correct/total counts."""
    if correct_answers is not None or total_questions is not None:
        if correct_answers is None or total_questions is None:
            raise ValidationError("correct_answers and total_questions must be given together")
        if total_questions <= 0:
            raise ValidationError("total_questions must be positive", field="total_questions")
        if not 0 <= correct_answers <= total_questions:
            raise ValidationError("correct_answers must be between 0 and total_questions", field="correct_answers")
        if score is None:
            score = correct_answers / total_questions * 100
    if score is None:
        raise ValidationError("score is required", field="score")
    if not 0 <= score <= 100:
        raise ValidationError("score must be between 0 and 100", field="score")
    return float(score)


class AttemptEvaluator:
    """
    Grades main-quiz attempts against the ladder.

    An attempt is refused while the gate requires an assistance level; a
    retake after the full ladder is allowed and, if passed, clears the retake
    requirement and the failure count.
    """

    def __init__(self, store: ProgressStore, ownership: OwnershipService):
        self.store = store
        self.ownership = ownership

    async def evaluate_main_quiz_attempt(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        score: Optional[float] = None,
        correct_answers: Optional[int] = None,
        total_questions: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> AttemptResult:
        quiz = await self.ownership.require_enrollment(student_id, quiz_id)
        score = resolve_score(score, correct_answers, total_questions)
        passed = score >= quiz.passing_score

        async def record_attempt(session: AsyncSession, progress: StudentQuizProgress) -> QuizSubmission:
            decision = next_level(progress)
            if not decision.can_take_main_quiz:
                raise SequenceError(
                    f"Complete assistance {decision.level.value} before retaking the main quiz"
                )
            was_retake = progress.must_retake_main_quiz

            progress.current_attempt += 1
            progress.last_attempt_passed = passed
            if not passed:
                progress.failed_attempts += 1
            elif was_retake:
                progress.must_retake_main_quiz = False
                progress.failed_attempts = 0

            submission = QuizSubmission(
                quiz_id=quiz_id,
                student_id=student_id,
                attempt_number=progress.current_attempt,
                reset_generation=progress.reset_generation,
                status=SubmissionStatus.GRADED,
                score=score,
                passed=passed,
                correct_answers=correct_answers,
                total_questions=total_questions,
                assistance_level=None,
                feedback=None,
            )
            session.add(submission)
            await session.flush()

            await EventStore(session).log(
                event_type=EventType.MAIN_QUIZ_ATTEMPT_GRADED,
                entity_type=PROGRESS_ENTITY,
                entity_id=progress.id,
                user_id=student_id,
                payload={
                    "submission_id": submission.id,
                    "attempt_number": submission.attempt_number,
                    "reset_generation": submission.reset_generation,
                    "score": score,
                    "passed": passed,
                    "retake": was_retake,
                },
            )
            return submission

        outcome = await self.store.update(
            student_id,
            quiz_id,
            record_attempt,
            create=True,
            max_attempts=quiz.max_attempts,
            actor_id=student_id,
            timeout_seconds=timeout_seconds,
        )
        submission = outcome.value

        logger.info(
            "Main quiz attempt graded",
            extra={
                "student_id": str(student_id),
                "quiz_id": str(quiz_id),
                "attempt_number": submission.attempt_number,
                "passed": passed,
                "failed_attempts": outcome.progress.failed_attempts,
            },
        )
        return AttemptResult(
            passed=passed,
            score=score,
            passing_score=quiz.passing_score,
            attempt_number=submission.attempt_number,
            submission_id=submission.id,
            progress=outcome.progress,
            next_level=outcome.decision.level,
            must_retake_main_quiz=outcome.decision.must_retake_main_quiz,
        )
