"""
Submission records: main-quiz attempts and the three assistance tracks.

All of these are append-only from the progress engine's point of view; only
teacher grading mutates a level-2 submission.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin, generate_uuid


class SubmissionStatus(str, Enum):
    """Lifecycle of a graded submission."""
    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    GRADED = "GRADED"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SUPERSEDED = "SUPERSEDED"


class Level3CompletionSource(str, Enum):
    TEACHER_GRANT = "teacher_grant"
    ACKNOWLEDGED = "acknowledged"


class QuizSubmission(Base, TimestampMixin):
    """
    One main-quiz attempt. assistance_level is always NULL for the main quiz,
    which keeps these rows distinguishable from assistance-track submissions.
    """

    __tablename__ = "quiz_submissions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    reset_generation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[SubmissionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SubmissionStatus.GRADED,
    )
    score: Mapped[float] = mapped_column(Float, nullable=False)
    passed: Mapped[bool] = mapped_column(nullable=False)
    correct_answers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_questions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assistance_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "quiz_id", "reset_generation", "attempt_number",
            name="uq_quiz_submissions_attempt",
        ),
    )


class AssistanceLevel1Submission(Base):
    """Auto-graded yes/no submission."""

    __tablename__ = "assistance_level1_submissions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(String(20), nullable=False)
    answers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_assistance_level1_submissions_student_quiz", "student_id", "quiz_id"),
    )


class AssistanceLevel2Submission(Base, TimestampMixin):
    """Teacher-graded essay submission. PENDING until a teacher passes or fails it.

    A progress reset closes any PENDING row of an earlier generation as
    SUPERSEDED; only rows of the current generation can be graded.
    """

    __tablename__ = "assistance_level2_submissions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    reset_generation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    graded_by: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("users.id"), nullable=True)
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_assistance_level2_submissions_student_quiz", "student_id", "quiz_id"),
    )


class AssistanceLevel3Completion(Base):
    """Record of a level-3 grant or acknowledgement."""

    __tablename__ = "assistance_level3_completions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    source: Mapped[Level3CompletionSource] = mapped_column(String(20), nullable=False)
    granted: Mapped[bool] = mapped_column(nullable=False, default=True)
    reading_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
