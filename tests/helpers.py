"""Shared test data and ladder-driving helpers."""

import uuid
from dataclasses import dataclass
from typing import Dict

from src.engines.assistance.service import AssistanceService


@dataclass
class Seed:
    """Users, class and quiz every assistance test starts from."""
    teacher_id: uuid.UUID
    other_teacher_id: uuid.UUID
    student_id: uuid.UUID
    other_student_id: uuid.UUID
    class_id: uuid.UUID
    quiz_id: uuid.UUID
    orphan_quiz_id: uuid.UUID
    level1_answers: Dict[uuid.UUID, bool]


async def fail_attempts(service: AssistanceService, seed: Seed, count: int = 4) -> None:
    """Record `count` failing main-quiz attempts for the seeded student."""
    for _ in range(count):
        await service.evaluate_main_quiz_attempt(seed.student_id, seed.quiz_id, score=20.0)


async def reach_level3(service: AssistanceService, seed: Seed) -> None:
    """Drive the seeded student through levels 1 and 2."""
    await fail_attempts(service, seed)
    await service.submit_level1(seed.student_id, seed.quiz_id, seed.level1_answers)
    submission = await service.submit_level2(seed.student_id, seed.quiz_id, ["An essay answer."])
    await service.grade_level2(seed.teacher_id, submission.id, "PASSED", "Good")
