"""
Adaptive selection.

Components:
- DifficultyTarget: acceptable rated difficulty for the next item
- LearnerContext: bounded history used for novelty checks
"""
from src.adaptive.difficulty_targeting import DifficultyDirection, DifficultyTarget, target_for
from src.adaptive.learner_context import LearnerContext, answer_key, normalize_text, prompt_hash

__all__ = [
    "DifficultyDirection",
    "DifficultyTarget",
    "target_for",
    "LearnerContext",
    "answer_key",
    "normalize_text",
    "prompt_hash",
]
