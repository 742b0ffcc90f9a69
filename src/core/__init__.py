"""
Core Module - Shared domain models for learner progression.

Components:
- mastery: Per-concept mastery records and the MasteryStateMachine

Design Principle:
Everything that reads or writes a learner's progression (the item
pipeline, sessions, the CLI, the API) imports from src/core/ rather than
reimplementing the transition rules.
"""

from src.core.mastery import (
    LastOutcome,
    LearningIntent,
    LearningStep,
    MasteryPhase,
    MasteryRecord,
    MasteryRules,
    MasteryStateMachine,
    Outcome,
    ProgressionState,
)

__all__ = [
    "LastOutcome",
    "LearningIntent",
    "LearningStep",
    "MasteryPhase",
    "MasteryRecord",
    "MasteryRules",
    "MasteryStateMachine",
    "Outcome",
    "ProgressionState",
]
