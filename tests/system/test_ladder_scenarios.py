"""
System tests: whole ladder walks driven over HTTP by a student and a teacher.

Each test plays both roles against one app instance and one database.
"""

import pytest
from httpx import AsyncClient

from src.kernel.models import UserRole

API = "/api/v1"


class Ladder:
    """Drives the ladder endpoints for the seeded student and teacher."""

    def __init__(self, client: AsyncClient, seed, make_headers):
        self.client = client
        self.seed = seed
        self.student = make_headers(seed.student_id, UserRole.STUDENT)
        self.teacher = make_headers(seed.teacher_id, UserRole.TEACHER)
        self.quiz_url = f"{API}/quizzes/{seed.quiz_id}"
        self.teacher_url = f"{API}/teacher/quizzes/{seed.quiz_id}/students/{seed.student_id}"

    async def attempt(self, score: float) -> dict:
        response = await self.client.post(f"{self.quiz_url}/attempts", json={"score": score}, headers=self.student)
        assert response.status_code == 201, response.text
        return response.json()

    async def status(self) -> dict:
        response = await self.client.get(f"{self.quiz_url}/assistance-status", headers=self.student)
        assert response.status_code == 200, response.text
        return response.json()

    async def level1(self, answers: dict) -> dict:
        response = await self.client.post(
            f"{self.quiz_url}/assistance/level1",
            json={"answers": {str(k): v for k, v in answers.items()}},
            headers=self.student,
        )
        assert response.status_code == 200, response.text
        return response.json()

    async def level2(self, *answers: str) -> dict:
        response = await self.client.post(
            f"{self.quiz_url}/assistance/level2", json={"answers": list(answers)}, headers=self.student
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def pending_level2_id(self) -> str:
        response = await self.client.get(f"{self.teacher_url}/level2-submissions", headers=self.teacher)
        assert response.status_code == 200, response.text
        pending = [s for s in response.json() if s["status"] == "PENDING"]
        assert len(pending) == 1
        return pending[0]["id"]

    async def grade(self, submission_id: str, status: str, feedback: str = None) -> dict:
        response = await self.client.post(
            f"{API}/teacher/assistance-level2/{submission_id}/grade",
            json={"status": status, "feedback": feedback},
            headers=self.teacher,
        )
        assert response.status_code == 200, response.text
        return response.json()

    async def grant_level3(self, granted: bool = True) -> dict:
        response = await self.client.post(
            f"{self.teacher_url}/level3-access", json={"granted": granted}, headers=self.teacher
        )
        assert response.status_code == 200, response.text
        return response.json()

    async def reset(self) -> dict:
        response = await self.client.post(f"{self.teacher_url}/reset", headers=self.teacher)
        assert response.status_code == 200, response.text
        return response.json()

    async def history(self) -> list:
        response = await self.client.get(f"{self.teacher_url}/submissions", headers=self.teacher)
        assert response.status_code == 200, response.text
        return response.json()["items"]


@pytest.fixture
def ladder(client, seed, make_headers) -> Ladder:
    return Ladder(client, seed, make_headers)


class TestLadderScenarios:
    @pytest.mark.asyncio
    async def test_escalation_after_max_failures(self, ladder: Ladder):
        levels = [(await ladder.attempt(30))["next_level"] for _ in range(4)]

        assert levels == ["NONE", "NONE", "NONE", "LEVEL1"]
        status = await ladder.status()
        assert status["failed_attempts"] == 4
        assert status["can_take_main_quiz"] is False

    @pytest.mark.asyncio
    async def test_failed_level2_grade_stays_at_level2(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        assert (await ladder.level1(ladder.seed.level1_answers))["next_level"] == "LEVEL2"

        await ladder.level2("Mitochondria make energy.")
        graded = await ladder.grade(await ladder.pending_level2_id(), "FAILED", "Explain how")

        assert graded["level_completed"] is False
        assert graded["next_level"] == "LEVEL2"
        assert graded["submission"]["feedback"] == "Explain how"
        assert (await ladder.status())["level2_completed"] is False

    @pytest.mark.asyncio
    async def test_full_ladder_then_passed_retake(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        await ladder.level2("Mitochondria make ATP through respiration.")

        graded = await ladder.grade(await ladder.pending_level2_id(), "PASSED")
        assert graded["next_level"] == "LEVEL3"

        granted = await ladder.grant_level3()
        assert granted["level_completed"] is True
        assert granted["next_level"] == "NONE"
        assert granted["must_retake_main_quiz"] is True

        retake = await ladder.attempt(88)
        assert retake["passed"] is True
        assert retake["must_retake_main_quiz"] is False
        assert retake["failed_attempts"] == 0
        assert retake["next_level"] == "NONE"
        assert retake["attempt_number"] == 5

    @pytest.mark.asyncio
    async def test_failed_retake_keeps_retake_open(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        await ladder.level2("Answer")
        await ladder.grade(await ladder.pending_level2_id(), "PASSED")
        await ladder.grant_level3()

        retake = await ladder.attempt(40)

        assert retake["passed"] is False
        assert retake["must_retake_main_quiz"] is True
        assert (await ladder.status())["can_take_main_quiz"] is True

    @pytest.mark.asyncio
    async def test_student_acknowledges_level3(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        await ladder.level2("Answer")
        await ladder.grade(await ladder.pending_level2_id(), "PASSED")

        response = await ladder.client.post(
            f"{ladder.quiz_url}/assistance/level3/acknowledge",
            json={"reading_time_seconds": 300},
            headers=ladder.student,
        )

        assert response.status_code == 200
        assert response.json()["must_retake_main_quiz"] is True

    @pytest.mark.asyncio
    async def test_reset_mid_ladder_keeps_history(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        assert (await ladder.status())["assistance_required"] == "LEVEL2"

        progress = await ladder.reset()

        assert progress["current_attempt"] == 0
        assert progress["failed_attempts"] == 0
        assert progress["assistance_required"] == "NONE"
        assert progress["level1_completed"] is False
        assert progress["must_retake_main_quiz"] is False
        assert progress["reset_generation"] == 1

        status = await ladder.status()
        assert status["can_take_main_quiz"] is True

        after = await ladder.attempt(75)
        assert after["attempt_number"] == 1

        history = await ladder.history()
        assert len(history) == 5
        assert [(h["reset_generation"], h["attempt_number"]) for h in history][-1] == (1, 1)

    @pytest.mark.asyncio
    async def test_revoked_grant_requires_level3_again(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        await ladder.level2("Answer")
        await ladder.grade(await ladder.pending_level2_id(), "PASSED")
        await ladder.grant_level3()

        revoked = await ladder.grant_level3(granted=False)

        assert revoked["next_level"] == "LEVEL3"
        assert revoked["must_retake_main_quiz"] is False
        attempt = await ladder.client.post(
            f"{ladder.quiz_url}/attempts", json={"score": 90}, headers=ladder.student
        )
        assert attempt.status_code == 409

    @pytest.mark.asyncio
    async def test_essay_pending_across_reset_cannot_be_graded(self, ladder: Ladder):
        for _ in range(4):
            await ladder.attempt(30)
        await ladder.level1(ladder.seed.level1_answers)
        await ladder.level2("Written before the reset")
        stale_id = await ladder.pending_level2_id()

        await ladder.reset()

        response = await ladder.client.post(
            f"{API}/teacher/assistance-level2/{stale_id}/grade",
            json={"status": "PASSED"},
            headers=ladder.teacher,
        )
        assert response.status_code == 409
        status = await ladder.status()
        assert status["level2_completed"] is False
        assert status["can_take_main_quiz"] is True

        listed = await ladder.client.get(f"{ladder.teacher_url}/level2-submissions", headers=ladder.teacher)
        assert [s["status"] for s in listed.json()] == ["SUPERSEDED"]
