"""
Progress Store - the single source of truth for StudentQuizProgress rows.

Every mutation runs as one unit of work:
    lock(student, quiz) -> BEGIN -> read row -> mutate -> re-run gate -> audit -> COMMIT

Two layers keep read-modify-write cycles from interleaving:
- an in-process lock per (student_id, quiz_id), so requests served by the same
  worker queue up instead of colliding
- an optimistic version column on the row, so writers in other processes
  collide with StaleDataError instead of losing an update; a collision is
  retried locally with a fresh read before it surfaces as ConflictError
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.config import get_settings
from src.engines.assistance.gate import GateDecision, apply_gate
from src.kernel.errors import ConflictError, NotFoundError, StorageError, require_ids
from src.kernel.events.event_store import log_level_change
from src.kernel.models.progress import AssistanceRequirement, StudentQuizProgress
from src.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Mutation = Callable[[AsyncSession, StudentQuizProgress], Awaitable[T]]


class ProgressSnapshot(BaseModel):
    """Detached, read-only copy of a progress row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: uuid.UUID
    quiz_id: uuid.UUID
    current_attempt: int
    max_attempts: int
    failed_attempts: int
    last_attempt_passed: bool
    assistance_required: AssistanceRequirement
    level1_completed: bool
    level2_completed: bool
    level3_completed: bool
    level1_completed_at: Optional[datetime] = None
    level2_completed_at: Optional[datetime] = None
    level3_completed_at: Optional[datetime] = None
    must_retake_main_quiz: bool
    reset_generation: int


@dataclass
class ProgressUpdate(Generic[T]):
    """Outcome of one committed unit of work."""
    progress: ProgressSnapshot
    decision: GateDecision
    previous_level: AssistanceRequirement
    value: T
    created: bool = False


class KeyedLock:
    """
    asyncio locks keyed by an arbitrary hashable; entries are dropped once no
    task holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Hold the lock for `key`; waiting longer than `timeout` raises TimeoutError."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


def _remaining(deadline: float) -> float:
    return max(deadline - asyncio.get_running_loop().time(), 0.0)


# Shared by every store in the process so that all requests for a key queue on one lock
_process_locks = KeyedLock()


class ProgressStore:
    """
    Owns StudentQuizProgress rows.

    Usage:
        store = ProgressStore(async_session_maker)
        outcome = await store.update(student_id, quiz_id, mutation, create=True)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        locks: Optional[KeyedLock] = None,
        conflict_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.locks = locks if locks is not None else _process_locks
        self.conflict_retries = (
            conflict_retries if conflict_retries is not None else settings.progress_conflict_retries
        )
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.progress_update_timeout_seconds
        )
        self.default_max_attempts = settings.default_max_attempts

    async def get(self, student_id: uuid.UUID, quiz_id: uuid.UUID) -> Optional[ProgressSnapshot]:
        """Read the current record without creating one."""
        require_ids(student_id=student_id, quiz_id=quiz_id)
        try:
            async with self.session_factory() as session:
                row = await self._load(session, student_id, quiz_id)
                return ProgressSnapshot.model_validate(row) if row is not None else None
        except DBAPIError as exc:
            logger.exception("Progress read failed")
            raise StorageError("Progress storage is unavailable") from exc

    async def get_or_create(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        *,
        max_attempts: Optional[int] = None,
    ) -> ProgressSnapshot:
        """Return the record, creating the initial one if absent. Safe under concurrent calls."""
        outcome = await self.update(
            student_id, quiz_id, _no_change, create=True, max_attempts=max_attempts
        )
        return outcome.progress

    async def update(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        mutation: Mutation[T],
        *,
        create: bool = False,
        max_attempts: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
        timeout_seconds: Optional[float] = None,
    ) -> ProgressUpdate[T]:
        """
        Apply a mutation atomically and re-run the gate.

        The mutation receives the open session (to persist related rows in the
        same transaction) and the live row. Anything it raises rolls back the
        whole unit of work.

        The timeout covers waiting for the key lock and running the mutation.
        The commit itself is not cancellable: once it starts it runs to the end,
        so a caller never sees a timeout for a write that landed.

        Raises:
            NotFoundError: no record and create is False
            ConflictError: concurrent update collided twice in a row
            StorageError: persistence failure or timeout
        """
        require_ids(student_id=student_id, quiz_id=quiz_id)
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        deadline = asyncio.get_running_loop().time() + timeout
        try:
            return await self._locked_update(
                student_id, quiz_id, mutation, create, max_attempts, actor_id, deadline
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Progress update timed out",
                extra={"student_id": str(student_id), "quiz_id": str(quiz_id), "timeout": timeout},
            )
            raise StorageError("Progress update timed out; please try again") from exc

    async def _locked_update(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        mutation: Mutation[T],
        create: bool,
        max_attempts: Optional[int],
        actor_id: Optional[uuid.UUID],
        deadline: float,
    ) -> ProgressUpdate[T]:
        key: Tuple[uuid.UUID, uuid.UUID] = (student_id, quiz_id)
        async with self.locks.hold(key, timeout=_remaining(deadline)):
            for attempt in range(self.conflict_retries + 1):
                try:
                    return await self._run_once(
                        student_id, quiz_id, mutation, create, max_attempts, actor_id, deadline
                    )
                except ConflictError:
                    if attempt >= self.conflict_retries:
                        raise
                    logger.warning(
                        "Progress update conflicted, retrying with a fresh read",
                        extra={"student_id": str(student_id), "quiz_id": str(quiz_id)},
                    )
        raise ConflictError("Progress was updated concurrently; please try again")

    async def _run_once(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        mutation: Mutation[T],
        create: bool,
        max_attempts: Optional[int],
        actor_id: Optional[uuid.UUID],
        deadline: float,
    ) -> ProgressUpdate[T]:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row, created, previous, value, decision = await asyncio.wait_for(
                        self._apply(session, student_id, quiz_id, mutation, create, max_attempts, actor_id),
                        _remaining(deadline),
                    )
                    snapshot = ProgressSnapshot.model_validate(row)
                # Commit ran on leaving begin(), outside the timeout
            return ProgressUpdate(
                progress=snapshot,
                decision=decision,
                previous_level=previous,
                value=value,
                created=created,
            )
        except StaleDataError as exc:
            raise ConflictError("Progress was updated concurrently; please try again") from exc
        except IntegrityError as exc:
            if create:
                # Another process inserted the row first; the retry reads it
                raise ConflictError("Progress was created concurrently; please try again") from exc
            logger.exception("Progress write violated a constraint")
            raise StorageError("Progress storage rejected the update") from exc
        except (OperationalError, DBAPIError) as exc:
            logger.exception("Progress write failed")
            raise StorageError("Progress storage is unavailable") from exc

    async def _apply(
        self,
        session: AsyncSession,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        mutation: Mutation[T],
        create: bool,
        max_attempts: Optional[int],
        actor_id: Optional[uuid.UUID],
    ) -> Tuple[StudentQuizProgress, bool, AssistanceRequirement, T, GateDecision]:
        row = await self._load(session, student_id, quiz_id)
        created = False
        if row is None:
            if not create:
                raise NotFoundError("No progress record exists for this student and quiz")
            row = self._initial_row(student_id, quiz_id, max_attempts)
            session.add(row)
            await session.flush()
            created = True

        previous = AssistanceRequirement(row.assistance_required)
        value = await mutation(session, row)
        decision = apply_gate(row)
        if decision.level != previous:
            await log_level_change(
                session,
                progress_id=row.id,
                student_id=student_id,
                quiz_id=quiz_id,
                from_level=previous.value,
                to_level=decision.level.value,
                must_retake_main_quiz=decision.must_retake_main_quiz,
                user_id=actor_id,
            )
            logger.info(
                "Assistance level changed",
                extra={
                    "student_id": str(student_id),
                    "quiz_id": str(quiz_id),
                    "from_level": previous.value,
                    "to_level": decision.level.value,
                },
            )
        await session.flush()
        return row, created, previous, value, decision

    def _initial_row(
        self,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
        max_attempts: Optional[int],
    ) -> StudentQuizProgress:
        row = StudentQuizProgress(
            student_id=student_id,
            quiz_id=quiz_id,
            current_attempt=0,
            max_attempts=max_attempts if max_attempts is not None else self.default_max_attempts,
            failed_attempts=0,
            last_attempt_passed=False,
            assistance_required=AssistanceRequirement.NONE,
            level1_completed=False,
            level2_completed=False,
            level3_completed=False,
            level1_completed_at=None,
            level2_completed_at=None,
            level3_completed_at=None,
            must_retake_main_quiz=False,
            reset_generation=0,
        )
        return row

    @staticmethod
    async def _load(
        session: AsyncSession,
        student_id: uuid.UUID,
        quiz_id: uuid.UUID,
    ) -> Optional[StudentQuizProgress]:
        query = select(StudentQuizProgress).where(
            StudentQuizProgress.student_id == student_id,
            StudentQuizProgress.quiz_id == quiz_id,
        )
        result = await session.execute(query)
        return result.scalar_one_or_none()


async def _no_change(session: AsyncSession, row: StudentQuizProgress) -> None:
    return None
