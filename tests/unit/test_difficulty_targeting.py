"""
Unit tests for difficulty targeting.

Run: pytest tests/unit/test_difficulty_targeting.py -v
"""

import pytest

from src.adaptive.difficulty_targeting import DifficultyDirection, DifficultyTarget, target_for
from src.core.mastery import LearningIntent


class TestTargetFor:
    @pytest.mark.parametrize(
        "intent,direction",
        [
            (LearningIntent.REMEDIATE, DifficultyDirection.EASIER),
            (LearningIntent.TEACH, DifficultyDirection.SAME),
            (LearningIntent.PRACTICE, DifficultyDirection.SAME),
            (LearningIntent.ASSESS, DifficultyDirection.HARDER),
        ],
    )
    def test_intent_direction(self, intent, direction):
        assert target_for(intent, 2).direction == direction

    def test_band_around_difficulty(self):
        assert target_for(LearningIntent.PRACTICE, 2).band == (1, 3)

    def test_band_clamped_at_edges(self):
        assert target_for(LearningIntent.PRACTICE, 1).band == (1, 2)
        assert target_for(LearningIntent.PRACTICE, 4, ceiling=4).band == (3, 4)

    def test_difficulty_clamped_before_band(self):
        assert target_for(LearningIntent.ASSESS, 9, ceiling=4).band == (3, 4)
        assert target_for(LearningIntent.ASSESS, -3).band == (1, 2)

    def test_direction_only(self):
        target = target_for(LearningIntent.ASSESS, 2, use_band=False)
        assert target.band is None
        assert target.direction == DifficultyDirection.HARDER

    def test_accepts_string_intent(self):
        assert target_for("remediate", 3).direction == DifficultyDirection.EASIER


class TestAccepts:
    def test_band_inclusive(self):
        target = DifficultyTarget(direction=DifficultyDirection.SAME, band=(1, 3))
        assert target.accepts(1, 2)
        assert target.accepts(3, 2)
        assert not target.accepts(4, 2)

    def test_band_wins_over_direction(self):
        target = DifficultyTarget(direction=DifficultyDirection.HARDER, band=(1, 3))
        assert target.accepts(2, 2)

    def test_direction_comparisons(self):
        assert DifficultyTarget(direction=DifficultyDirection.EASIER).accepts(1, 2)
        assert not DifficultyTarget(direction=DifficultyDirection.EASIER).accepts(2, 2)
        assert DifficultyTarget(direction=DifficultyDirection.HARDER).accepts(3, 2)
        assert DifficultyTarget(direction=DifficultyDirection.SAME).accepts(2, 2)
        assert not DifficultyTarget(direction=DifficultyDirection.SAME).accepts(3, 2)

    def test_no_direction_requires_exact(self):
        assert DifficultyTarget().accepts(2, 2)
        assert not DifficultyTarget().accepts(1, 2)

    def test_to_dict(self):
        data = target_for(LearningIntent.PRACTICE, 2).to_dict()
        assert data == {"target_band": {"min": 1, "max": 3}, "target_direction": "same"}
        assert target_for(LearningIntent.PRACTICE, 2, use_band=False).to_dict() == {"target_direction": "same"}
