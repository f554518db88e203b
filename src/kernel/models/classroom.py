"""
Class, enrollment and quiz rows.

Authoring happens elsewhere; these tables are read to answer ownership,
enrollment and quiz-configuration lookups.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin, generate_uuid


class Classroom(Base, TimestampMixin):
    """A class owned by exactly one teacher."""

    __tablename__ = "classrooms"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class ClassEnrollment(Base, TimestampMixin):
    """Student membership in a class."""

    __tablename__ = "class_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    class_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (UniqueConstraint("class_id", "student_id", name="uq_class_enrollment_class_student"),)


class Quiz(Base, TimestampMixin):
    """
    Main quiz. passing_score and max_attempts are optional per-quiz overrides of
    the service defaults.
    """

    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("classrooms.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    passing_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_attempts: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Level1Question(Base):
    """Yes/no question of a quiz's level-1 assistance, with its answer key."""

    __tablename__ = "level1_questions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[bool] = mapped_column(Boolean, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
