"""Unit tests for teacher overrides: level-3 grant/revoke and progress reset."""

import pytest
from sqlalchemy import select

from src.kernel.errors import NotFoundError, OwnershipError, ValidationError
from src.kernel.models import EventLog, EventType
from src.kernel.models.progress import AssistanceRequirement
from src.kernel.models.submission import SubmissionStatus
from tests.helpers import fail_attempts, reach_level3


class TestGrantLevel3Access:
    @pytest.mark.asyncio
    async def test_grant_at_level3_routes_to_retake(self, service, seed):
        await reach_level3(service, seed)

        outcome = await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, True)

        assert outcome.level_completed is True
        assert outcome.next_level == AssistanceRequirement.NONE
        assert outcome.must_retake_main_quiz is True
        assert outcome.progress.level3_completed_at is not None

    @pytest.mark.asyncio
    async def test_grant_creates_missing_progress(self, service, seed):
        outcome = await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, True)

        assert outcome.progress.level3_completed is True
        assert outcome.progress.current_attempt == 0
        # Level 1 is still outstanding, so the gate does not jump ahead.
        assert outcome.next_level == AssistanceRequirement.NONE
        assert outcome.must_retake_main_quiz is False

    @pytest.mark.asyncio
    async def test_non_owner_refused_without_side_effects(self, service, seed):
        with pytest.raises(OwnershipError):
            await service.grant_level3_access(seed.other_teacher_id, seed.quiz_id, seed.student_id, True)

        assert await service.store.get(seed.student_id, seed.quiz_id) is None

    @pytest.mark.asyncio
    async def test_student_outside_class(self, service, seed):
        with pytest.raises(NotFoundError):
            await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.other_student_id, True)

    @pytest.mark.asyncio
    async def test_granted_must_be_bool(self, service, seed):
        with pytest.raises(ValidationError):
            await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, "yes")

    @pytest.mark.asyncio
    async def test_revoke_sends_student_back_to_level3(self, service, session_maker, seed):
        await reach_level3(service, seed)
        await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, True)

        outcome = await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, False)

        assert outcome.level_completed is False
        assert outcome.progress.level3_completed_at is None
        assert outcome.must_retake_main_quiz is False
        assert outcome.next_level == AssistanceRequirement.LEVEL3

        async with session_maker() as session:
            revoked = (await session.execute(
                select(EventLog).where(EventLog.event_type == EventType.LEVEL3_ACCESS_REVOKED)
            )).scalars().all()
        assert len(revoked) == 1


class TestResetAttempts:
    @pytest.mark.asyncio
    async def test_reset_without_progress(self, service, seed):
        with pytest.raises(NotFoundError):
            await service.reset_attempts(seed.teacher_id, seed.quiz_id, seed.student_id)

    @pytest.mark.asyncio
    async def test_reset_restores_initial_state(self, service, seed):
        await reach_level3(service, seed)
        await service.grant_level3_access(seed.teacher_id, seed.quiz_id, seed.student_id, True)

        progress = await service.reset_attempts(seed.teacher_id, seed.quiz_id, seed.student_id)

        assert progress.current_attempt == 0
        assert progress.failed_attempts == 0
        assert progress.last_attempt_passed is False
        assert progress.assistance_required == AssistanceRequirement.NONE
        assert not (progress.level1_completed or progress.level2_completed or progress.level3_completed)
        assert progress.level1_completed_at is None
        assert progress.level3_completed_at is None
        assert progress.must_retake_main_quiz is False
        assert progress.reset_generation == 1

    @pytest.mark.asyncio
    async def test_history_kept_and_numbering_restarts(self, service, seed):
        await fail_attempts(service, seed, count=2)
        await service.reset_attempts(seed.teacher_id, seed.quiz_id, seed.student_id)

        result = await service.evaluate_main_quiz_attempt(seed.student_id, seed.quiz_id, score=40.0)

        assert result.attempt_number == 1
        submissions = await service.list_main_quiz_submissions(seed.student_id, seed.quiz_id)
        assert [(s.reset_generation, s.attempt_number) for s in submissions] == [(0, 1), (0, 2), (1, 1)]

    @pytest.mark.asyncio
    async def test_reset_logs_previous_state(self, service, session_maker, seed):
        await fail_attempts(service, seed)
        await service.reset_attempts(seed.teacher_id, seed.quiz_id, seed.student_id)

        async with session_maker() as session:
            event = (await session.execute(
                select(EventLog).where(EventLog.event_type == EventType.PROGRESS_RESET)
            )).scalar_one()

        assert event.user_id == seed.teacher_id
        assert event.payload["before"]["failed_attempts"] == 4
        assert event.payload["before"]["assistance_required"] == "LEVEL1"
        assert event.payload["reset_generation"] == 1

    @pytest.mark.asyncio
    async def test_reset_supersedes_pending_level2(self, service, session_maker, seed):
        await fail_attempts(service, seed)
        await service.submit_level1(seed.student_id, seed.quiz_id, seed.level1_answers)
        failed = await service.submit_level2(seed.student_id, seed.quiz_id, ["Short"])
        await service.grade_level2(seed.teacher_id, failed.id, "FAILED", "Expand")
        pending = await service.submit_level2(seed.student_id, seed.quiz_id, ["Longer"])

        await service.reset_attempts(seed.teacher_id, seed.quiz_id, seed.student_id)

        listed = {s.id: s for s in await service.list_level2_submissions(seed.student_id, seed.quiz_id)}
        assert listed[failed.id].status == SubmissionStatus.FAILED
        assert listed[failed.id].feedback == "Expand"
        assert listed[pending.id].status == SubmissionStatus.SUPERSEDED
        assert listed[pending.id].graded_by is None
        async with session_maker() as session:
            event = (await session.execute(
                select(EventLog).where(EventLog.event_type == EventType.PROGRESS_RESET)
            )).scalar_one()
        assert event.payload["superseded_level2_submissions"] == 1

    @pytest.mark.asyncio
    async def test_non_owner_cannot_reset(self, service, seed):
        await fail_attempts(service, seed)

        with pytest.raises(OwnershipError):
            await service.reset_attempts(seed.other_teacher_id, seed.quiz_id, seed.student_id)

        status = await service.get_assistance_status(seed.student_id, seed.quiz_id)
        assert status.failed_attempts == 4
