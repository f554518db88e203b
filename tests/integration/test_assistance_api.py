"""Integration tests for the student and teacher assistance endpoints."""

import uuid

import pytest
from httpx import AsyncClient

from src.api.deps import get_assistance_service
from src.database import get_session_maker
from src.kernel.errors import ConflictError, StorageError
from src.kernel.models import UserRole
from tests.helpers import fail_attempts

API = "/api/v1"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, seed):
        response = await client.get(f"{API}/quizzes/{seed.quiz_id}/assistance-status")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient, seed):
        response = await client.get(
            f"{API}/quizzes/{seed.quiz_id}/assistance-status",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_teacher_cannot_use_student_routes(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"score": 90},
            headers=make_headers(seed.teacher_id, UserRole.TEACHER),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_student_cannot_use_teacher_routes(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/teacher/quizzes/{seed.quiz_id}/students/{seed.student_id}/reset",
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )
        assert response.status_code == 403


class TestStudentEndpoints:
    @pytest.mark.asyncio
    async def test_attempt_and_status(self, client: AsyncClient, seed, make_headers):
        headers = make_headers(seed.student_id, UserRole.STUDENT)

        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"correct_answers": 4, "total_questions": 10},
            headers=headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["passed"] is False
        assert data["score"] == 40.0
        assert data["attempt_number"] == 1
        assert data["next_level"] == "NONE"

        status = await client.get(f"{API}/quizzes/{seed.quiz_id}/assistance-status", headers=headers)
        assert status.status_code == 200
        assert status.json()["failed_attempts"] == 1
        assert status.json()["can_take_main_quiz"] is True

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient, seed, make_headers):
        headers = make_headers(seed.student_id, UserRole.STUDENT)
        headers["X-Request-ID"] = "req-123"

        response = await client.get(f"{API}/quizzes/{seed.quiz_id}/assistance-status", headers=headers)

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_attempt_body_validated(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"correct_answers": 4},
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_unenrolled_student_forbidden(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"score": 80},
            headers=make_headers(seed.other_student_id, UserRole.STUDENT),
        )
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    @pytest.mark.asyncio
    async def test_unknown_quiz_not_found(self, client: AsyncClient, seed, make_headers):
        response = await client.get(
            f"{API}/quizzes/{uuid.uuid4()}/assistance-status",
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )
        assert response.status_code == 404
        assert response.json()["field"] == "quiz_id"

    @pytest.mark.asyncio
    async def test_out_of_sequence_is_409(self, client: AsyncClient, service, seed, make_headers):
        await fail_attempts(service, seed)

        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"score": 99},
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "not_allowed_now"
        assert "LEVEL1" in body["detail"]

    @pytest.mark.asyncio
    async def test_level1_answers_keyed_by_question_id(self, client: AsyncClient, service, seed, make_headers):
        await fail_attempts(service, seed)

        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/assistance/level1",
            json={"answers": {str(qid): answer for qid, answer in seed.level1_answers.items()}},
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["level_completed"] is True
        assert data["correct_count"] == 3
        assert data["next_level"] == "LEVEL2"

    @pytest.mark.asyncio
    async def test_submission_history(self, client: AsyncClient, service, seed, make_headers):
        await fail_attempts(service, seed, count=2)

        response = await client.get(
            f"{API}/quizzes/{seed.quiz_id}/submissions",
            headers=make_headers(seed.student_id, UserRole.STUDENT),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [item["attempt_number"] for item in data["items"]] == [1, 2]


class TestTeacherEndpoints:
    @pytest.mark.asyncio
    async def test_status_requires_ownership(self, client: AsyncClient, seed, make_headers):
        url = f"{API}/teacher/quizzes/{seed.quiz_id}/students/{seed.student_id}/status"

        owner = await client.get(url, headers=make_headers(seed.teacher_id, UserRole.TEACHER))
        other = await client.get(url, headers=make_headers(seed.other_teacher_id, UserRole.TEACHER))

        assert owner.status_code == 200
        assert owner.json()["current_attempt"] == 0
        assert other.status_code == 403

    @pytest.mark.asyncio
    async def test_reset_without_progress_is_404(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/teacher/quizzes/{seed.quiz_id}/students/{seed.student_id}/reset",
            headers=make_headers(seed.teacher_id, UserRole.TEACHER),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_submission_feedback(self, client: AsyncClient, service, seed, make_headers):
        result = await service.evaluate_main_quiz_attempt(seed.student_id, seed.quiz_id, score=45.0)
        url = f"{API}/teacher/submissions/{result.submission_id}/feedback"

        other = await client.post(
            url, json={"feedback": "Hi"}, headers=make_headers(seed.other_teacher_id, UserRole.TEACHER)
        )
        empty = await client.post(
            url, json={"feedback": ""}, headers=make_headers(seed.teacher_id, UserRole.TEACHER)
        )
        owner = await client.post(
            url, json={"feedback": "Check your units"}, headers=make_headers(seed.teacher_id, UserRole.TEACHER)
        )

        assert other.status_code == 403
        assert empty.status_code == 422
        assert owner.status_code == 200
        assert owner.json()["feedback"] == "Check your units"
        assert owner.json()["score"] == 45.0

        history = await client.get(
            f"{API}/teacher/quizzes/{seed.quiz_id}/students/{seed.student_id}/submissions",
            headers=make_headers(seed.teacher_id, UserRole.TEACHER),
        )
        assert history.json()["items"][0]["feedback"] == "Check your units"

    @pytest.mark.asyncio
    async def test_grade_rejects_unknown_status(self, client: AsyncClient, seed, make_headers):
        response = await client.post(
            f"{API}/teacher/assistance-level2/{uuid.uuid4()}/grade",
            json={"status": "PENDING"},
            headers=make_headers(seed.teacher_id, UserRole.TEACHER),
        )
        assert response.status_code == 422


class _FailingService:
    """Stands in for AssistanceService and fails every attempt with a fixed error."""

    def __init__(self, error):
        self.error = error

    async def evaluate_main_quiz_attempt(self, *args, **kwargs):
        raise self.error


class TestTransientFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (ConflictError("version mismatch on progress row"), 409),
            (StorageError("database is locked"), 503),
        ],
    )
    async def test_generic_message_returned(self, client: AsyncClient, seed, make_headers, error, status_code):
        from src.main import TRANSIENT_ERROR_MESSAGE, app

        app.dependency_overrides[get_assistance_service] = lambda: _FailingService(error)
        response = await client.post(
            f"{API}/quizzes/{seed.quiz_id}/attempts",
            json={"score": 50},
            headers={**make_headers(seed.student_id, UserRole.STUDENT), "X-Request-ID": "trace-me"},
        )

        assert response.status_code == status_code
        body = response.json()
        assert body["detail"] == TRANSIENT_ERROR_MESSAGE
        assert body["request_id"] == "trace-me"
        assert "field" not in body

    @pytest.mark.asyncio
    async def test_unreachable_database_is_503(self, client: AsyncClient, unreachable_session_maker, make_headers):
        from src.main import TRANSIENT_ERROR_MESSAGE, app

        app.dependency_overrides[get_session_maker] = lambda: unreachable_session_maker
        response = await client.get(
            f"{API}/quizzes/{uuid.uuid4()}/assistance-status",
            headers=make_headers(uuid.uuid4(), UserRole.STUDENT),
        )

        assert response.status_code == 503
        assert response.json()["detail"] == TRANSIENT_ERROR_MESSAGE
