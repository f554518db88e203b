"""
Per-student, per-quiz progress through the main quiz and the assistance ladder.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin, generate_uuid


class AssistanceRequirement(str, Enum):
    """Assistance level a student is currently gated behind."""
    NONE = "NONE"
    LEVEL1 = "LEVEL1"
    LEVEL2 = "LEVEL2"
    LEVEL3 = "LEVEL3"


class StudentQuizProgress(Base, TimestampMixin):
    """
    One row per (student, quiz), created lazily on first activity and never deleted.

    assistance_required is derived by the assistance gate after every transition;
    version_id is bumped on every UPDATE so concurrent writers collide instead of
    overwriting each other.
    """

    __tablename__ = "student_quiz_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    current_attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    failed_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    assistance_required: Mapped[AssistanceRequirement] = mapped_column(
        String(20),
        nullable=False,
        default=AssistanceRequirement.NONE,
    )
    level1_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    level2_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    level3_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    level1_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    level2_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    level3_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    must_retake_main_quiz: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Incremented by every teacher reset; scopes attempt numbering of submissions
    reset_generation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("student_id", "quiz_id", name="uq_student_quiz_progress_student_quiz"),)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StudentQuizProgress student={self.student_id} quiz={self.quiz_id} attempt={self.current_attempt}>"
