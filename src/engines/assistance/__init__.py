"""
Assistance Engine - main-quiz attempts and the remedial assistance ladder.

Ladder:
- Level 1: yes/no questions, auto-graded (uncapped resubmission)
- Level 2: essay answers, graded PASSED/FAILED by the class teacher
- Level 3: reading material, completed by teacher grant or acknowledgement
- After level 3: mandatory main-quiz retake

Assistance becomes mandatory once failed main-quiz attempts reach the quiz's
max_attempts (default 4).
"""

from src.engines.assistance.gate import GateDecision, apply_gate, next_level
from src.engines.assistance.progress_store import (
    KeyedLock,
    ProgressSnapshot,
    ProgressStore,
    ProgressUpdate,
)
from src.engines.assistance.attempt_evaluator import AttemptEvaluator, AttemptResult
from src.engines.assistance.level_tracker import (
    Level1Outcome,
    Level2GradeOutcome,
    Level2Submission,
    LevelCompletionTracker,
    LevelOutcome,
)
from src.engines.assistance.override_service import TeacherOverrideService
from src.engines.assistance.service import AssistanceService, AssistanceStatus, MainQuizSubmission

__all__ = [
    "GateDecision",
    "apply_gate",
    "next_level",
    "KeyedLock",
    "ProgressSnapshot",
    "ProgressStore",
    "ProgressUpdate",
    "AttemptEvaluator",
    "AttemptResult",
    "Level1Outcome",
    "Level2GradeOutcome",
    "Level2Submission",
    "LevelCompletionTracker",
    "LevelOutcome",
    "TeacherOverrideService",
    "AssistanceService",
    "AssistanceStatus",
    "MainQuizSubmission",
]
