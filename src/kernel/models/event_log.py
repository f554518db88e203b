"""
Append-only audit log of progress transitions.

Every committed transition writes one row here inside the same transaction,
so the log and the progress record can never disagree.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # Main quiz
    MAIN_QUIZ_ATTEMPT_GRADED = "main_quiz.attempt_graded"

    # Gate
    ASSISTANCE_LEVEL_CHANGED = "assistance.level_changed"

    # Assistance tracks
    LEVEL1_SUBMITTED = "assistance.level1_submitted"
    LEVEL2_SUBMITTED = "assistance.level2_submitted"
    LEVEL2_GRADED = "assistance.level2_graded"
    LEVEL3_ACKNOWLEDGED = "assistance.level3_acknowledged"

    # Teacher overrides
    LEVEL3_ACCESS_GRANTED = "override.level3_access_granted"
    LEVEL3_ACCESS_REVOKED = "override.level3_access_revoked"
    PROGRESS_RESET = "override.progress_reset"
    SUBMISSION_FEEDBACK_ADDED = "override.submission_feedback_added"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor; NULL for system-initiated transitions
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
