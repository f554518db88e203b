"""
Audit logging infrastructure.

Provides append-only audit logging of progress transitions.
"""

from src.kernel.events.event_store import EventStore, PROGRESS_ENTITY, log_level_change

__all__ = [
    "EventStore",
    "PROGRESS_ENTITY",
    "log_level_change",
]
