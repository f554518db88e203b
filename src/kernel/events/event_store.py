"""
Event Store service for append-only audit logging.

Transitions log here inside their own transaction; the caller's commit makes
the event and the state change visible together.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.models.event_log import EventLog, EventType

PROGRESS_ENTITY = "student_quiz_progress"
SUBMISSION_ENTITY = "quiz_submission"


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.PROGRESS_RESET,
            entity_type=PROGRESS_ENTITY,
            entity_id=progress.id,
            user_id=teacher_id,
            payload={"quiz_id": quiz_id, "student_id": student_id},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Append an event to the audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (student_quiz_progress, submission, ...)
            entity_id: The ID of the entity
            user_id: The actor (optional for system events)
            payload: Additional event data

        Returns:
            The created EventLog record (not yet flushed)
        """
        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=self._serialize_payload(payload) if payload else {},
        )
        self.session.add(event)
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """
        Get the event history for a specific entity, newest first.
        """
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )
        if event_types:
            query = query.where(EventLog.event_type.in_(event_types))

        query = query.order_by(desc(EventLog.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            result[key] = self._serialize_value(value)
        return result

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, dict):
            return self._serialize_payload(value)
        if isinstance(value, list):
            return [self._serialize_value(v) for v in value]
        return value


async def log_level_change(
    session: AsyncSession,
    progress_id: uuid.UUID,
    student_id: uuid.UUID,
    quiz_id: uuid.UUID,
    from_level: str,
    to_level: str,
    must_retake_main_quiz: bool,
    user_id: Optional[uuid.UUID] = None,
) -> EventLog:
    """Log an assistance gate transition."""
    store = EventStore(session)
    return await store.log(
        event_type=EventType.ASSISTANCE_LEVEL_CHANGED,
        entity_type=PROGRESS_ENTITY,
        entity_id=progress_id,
        user_id=user_id,
        payload={
            "student_id": student_id,
            "quiz_id": quiz_id,
            "from_level": from_level,
            "to_level": to_level,
            "must_retake_main_quiz": must_retake_main_quiz,
        },
    )
