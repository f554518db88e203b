"""
Assistance Gate - decides which assistance level a student must clear next.

Ladder:
- Fewer than max_attempts failed main-quiz attempts: free to retry the main quiz
- Otherwise levels are required strictly in order 1 -> 2 -> 3
- With all three complete the student is sent back to the main quiz as a retake

The decision is derived from the current flags only, never from history, so a
teacher reset immediately puts the student back at the start of the ladder.
"""

from dataclasses import dataclass
from typing import Protocol

from src.kernel.models.progress import AssistanceRequirement


class GateState(Protocol):
    """The fields the gate reads. StudentQuizProgress rows satisfy this."""

    failed_attempts: int
    max_attempts: int
    level1_completed: bool
    level2_completed: bool
    level3_completed: bool
    must_retake_main_quiz: bool


@dataclass(frozen=True)
class GateDecision:
    """Next required level plus the retake routing hint."""
    level: AssistanceRequirement
    must_retake_main_quiz: bool

    @property
    def can_take_main_quiz(self) -> bool:
        return self.level == AssistanceRequirement.NONE


def next_level(state: GateState) -> GateDecision:
    """Derive the required assistance level from progress flags."""
    if state.must_retake_main_quiz:
        # Ladder finished; the retake is a routing hint, not a blocking level
        return GateDecision(AssistanceRequirement.NONE, must_retake_main_quiz=True)
    if state.failed_attempts < state.max_attempts:
        return GateDecision(AssistanceRequirement.NONE, must_retake_main_quiz=False)
    if not state.level1_completed:
        return GateDecision(AssistanceRequirement.LEVEL1, must_retake_main_quiz=False)
    if not state.level2_completed:
        return GateDecision(AssistanceRequirement.LEVEL2, must_retake_main_quiz=False)
    if not state.level3_completed:
        return GateDecision(AssistanceRequirement.LEVEL3, must_retake_main_quiz=False)
    return GateDecision(AssistanceRequirement.NONE, must_retake_main_quiz=True)


def apply_gate(progress) -> GateDecision:
    """
    Recompute the gate and write the result onto a progress row.

    must_retake_main_quiz is switched on here the first time the finished-ladder
    branch is reached; it is only ever switched off by a passed retake, a level-3
    revocation or a reset.
    """
    decision = next_level(progress)
    progress.assistance_required = decision.level
    progress.must_retake_main_quiz = decision.must_retake_main_quiz
    return decision
