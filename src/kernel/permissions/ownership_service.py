"""
Ownership and enrollment checks for quizzes.

Teachers may only mutate progress for quizzes in classes they own; students may
only attempt quizzes in classes they are enrolled in.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import get_settings
from src.kernel.errors import NotFoundError, OwnershipError, StorageError, require_ids
from src.kernel.models.classroom import ClassEnrollment, Classroom, Quiz
from src.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuizSettings:
    """Grading configuration of a quiz, with service defaults filled in."""
    quiz_id: uuid.UUID
    class_id: Optional[uuid.UUID]
    teacher_id: Optional[uuid.UUID]
    passing_score: float
    max_attempts: int


class OwnershipService:
    """
    Answers the ownership/enrollment lookups the assistance engine depends on.

    Each lookup runs in its own short read-only session so it never holds a
    transaction open across a progress update. Driver failures surface as
    StorageError like every other storage access.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_quiz_settings(self, quiz_id: uuid.UUID) -> QuizSettings:
        """Load quiz configuration. Raises NotFoundError for an unknown quiz."""
        require_ids(quiz_id=quiz_id)
        settings = get_settings()
        query = (
            select(Quiz, Classroom.teacher_id)
            .outerjoin(Classroom, Classroom.id == Quiz.class_id)
            .where(Quiz.id == quiz_id)
        )
        try:
            async with self.session_factory() as session:
                row = (await session.execute(query)).one_or_none()
        except DBAPIError as exc:
            logger.exception("Quiz lookup failed", extra={"quiz_id": str(quiz_id)})
            raise StorageError("Quiz storage is unavailable") from exc
        if row is None:
            raise NotFoundError("Quiz not found", field="quiz_id")
        quiz, teacher_id = row
        return QuizSettings(
            quiz_id=quiz.id,
            class_id=quiz.class_id,
            teacher_id=teacher_id,
            passing_score=quiz.passing_score if quiz.passing_score is not None else settings.default_passing_score,
            max_attempts=quiz.max_attempts if quiz.max_attempts is not None else settings.default_max_attempts,
        )

    async def get_quiz_owner_teacher(self, quiz_id: uuid.UUID) -> uuid.UUID:
        """Return the teacher owning the quiz's class."""
        quiz = await self.get_quiz_settings(quiz_id)
        if quiz.teacher_id is None:
            raise NotFoundError("Quiz is not attached to any class", field="quiz_id")
        return quiz.teacher_id

    async def get_student_class_ids(self, student_id: uuid.UUID) -> Set[uuid.UUID]:
        """Return the ids of every class the student is enrolled in."""
        require_ids(student_id=student_id)
        query = select(ClassEnrollment.class_id).where(ClassEnrollment.student_id == student_id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return {row[0] for row in result.all()}
        except DBAPIError as exc:
            logger.exception("Enrollment lookup failed", extra={"student_id": str(student_id)})
            raise StorageError("Enrollment storage is unavailable") from exc

    async def require_quiz_owner(self, teacher_id: uuid.UUID, quiz_id: uuid.UUID) -> QuizSettings:
        """
        Ensure the teacher owns the class containing the quiz.

        Raises:
            NotFoundError: quiz missing or not attached to a class
            OwnershipError: class owned by someone else
        """
        require_ids(teacher_id=teacher_id, quiz_id=quiz_id)
        quiz = await self.get_quiz_settings(quiz_id)
        if quiz.teacher_id is None:
            raise NotFoundError("Quiz is not attached to any class", field="quiz_id")
        if quiz.teacher_id != teacher_id:
            logger.warning(
                "Ownership check failed",
                extra={"teacher_id": str(teacher_id), "quiz_id": str(quiz_id)},
            )
            raise OwnershipError("You do not have permission to modify this quiz")
        return quiz

    async def require_enrollment(self, student_id: uuid.UUID, quiz_id: uuid.UUID) -> QuizSettings:
        """
        Ensure the student is enrolled in the quiz's class.

        Raises:
            NotFoundError: quiz missing or not attached to a class
            OwnershipError: student not enrolled
        """
        require_ids(student_id=student_id, quiz_id=quiz_id)
        quiz = await self.get_quiz_settings(quiz_id)
        if quiz.class_id is None:
            raise NotFoundError("Quiz is not attached to any class", field="quiz_id")
        class_ids = await self.get_student_class_ids(student_id)
        if quiz.class_id not in class_ids:
            raise OwnershipError("You are not enrolled in this quiz's class")
        return quiz
