"""
Pytest fixtures for assistance ladder tests.

Every test gets its own file-backed SQLite database (in-memory SQLite is
per-connection, and the engine opens a fresh connection per unit of work).
"""

import uuid
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.database import build_engine, build_session_maker, get_session_maker
from src.engines.assistance.progress_store import KeyedLock
from src.engines.assistance.service import AssistanceService
from src.kernel.identity.jwt import JWTManager
from src.kernel.models import (
    Base,
    ClassEnrollment,
    Classroom,
    Level1Question,
    Quiz,
    User,
    UserRole,
)
from tests.helpers import Seed


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine on a temp file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(db_engine)


@pytest_asyncio.fixture
async def unreachable_session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session maker whose database file lives in a directory that does not exist."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'unreachable.db'}")
    yield build_session_maker(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def service(session_maker: async_sessionmaker[AsyncSession]) -> AssistanceService:
    """Assistance service with its own lock registry."""
    return AssistanceService(session_maker, locks=KeyedLock())


async def _add_all(session_maker: async_sessionmaker[AsyncSession], rows: List[object]) -> None:
    async with session_maker() as session:
        async with session.begin():
            for row in rows:
                session.add(row)
                await session.flush()


@pytest_asyncio.fixture
async def seed(session_maker: async_sessionmaker[AsyncSession]) -> Seed:
    """
    One teacher owning one class with one enrolled student and a quiz using
    the service defaults (4 attempts, 70% to pass), plus three level-1 questions.
    """
    teacher = User(id=uuid.uuid4(), email="teacher@example.com", full_name="Test Teacher", role=UserRole.TEACHER)
    other_teacher = User(id=uuid.uuid4(), email="other@example.com", full_name="Other Teacher", role=UserRole.TEACHER)
    student = User(id=uuid.uuid4(), email="student@example.com", full_name="Test Student", role=UserRole.STUDENT)
    other_student = User(id=uuid.uuid4(), email="outsider@example.com", full_name="Outsider", role=UserRole.STUDENT)
    classroom = Classroom(id=uuid.uuid4(), name="Biology 101", teacher_id=teacher.id)
    enrollment = ClassEnrollment(id=uuid.uuid4(), class_id=classroom.id, student_id=student.id)
    quiz = Quiz(id=uuid.uuid4(), title="Cells", class_id=classroom.id)
    orphan_quiz = Quiz(id=uuid.uuid4(), title="Unassigned", class_id=None)
    questions = [
        Level1Question(id=uuid.uuid4(), quiz_id=quiz.id, question="Cells have membranes?", correct_answer=True),
        Level1Question(id=uuid.uuid4(), quiz_id=quiz.id, question="Bacteria have nuclei?", correct_answer=False),
        Level1Question(id=uuid.uuid4(), quiz_id=quiz.id, question="DNA carries genes?", correct_answer=True),
    ]

    await _add_all(
        session_maker,
        [teacher, other_teacher, student, other_student, classroom, enrollment, quiz, orphan_quiz, *questions],
    )
    return Seed(
        teacher_id=teacher.id,
        other_teacher_id=other_teacher.id,
        student_id=student.id,
        other_student_id=other_student.id,
        class_id=classroom.id,
        quiz_id=quiz.id,
        orphan_quiz_id=orphan_quiz.id,
        level1_answers={q.id: q.correct_answer for q in questions},
    )


@pytest.fixture
def jwt_manager() -> JWTManager:
    """JWT manager signing with the app's configured secret."""
    return JWTManager()


@pytest.fixture
def make_headers(jwt_manager: JWTManager):
    """Build bearer headers for a user id and role."""

    def _make(user_id: uuid.UUID, role: UserRole) -> dict:
        token, _, _ = jwt_manager.create_access_token(user_id=user_id, role=role.value)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest_asyncio.fixture
async def client(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the per-test database."""
    from src.main import app

    app.dependency_overrides[get_session_maker] = lambda: session_maker
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
