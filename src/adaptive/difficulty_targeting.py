"""
Difficulty Targeting.

Maps a learning intent and the concept's current difficulty to the
range of rated difficulties the item pipeline will accept:

- remediate -> easier
- teach / practice -> same
- assess -> harder

A target can carry a numeric band [d-1, d+1] (clamped to the ceiling),
or only a direction when the caller turns banding off. accepts()
handles both forms.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.core.mastery import LearningIntent


class DifficultyDirection(str, Enum):
    EASIER = "easier"
    SAME = "same"
    HARDER = "harder"


_INTENT_DIRECTION = {
    LearningIntent.REMEDIATE: DifficultyDirection.EASIER,
    LearningIntent.TEACH: DifficultyDirection.SAME,
    LearningIntent.PRACTICE: DifficultyDirection.SAME,
    LearningIntent.ASSESS: DifficultyDirection.HARDER,
}


@dataclass(frozen=True)
class DifficultyTarget:
    """Acceptance rule for a rated item's overall difficulty."""

    direction: DifficultyDirection | None = None
    band: tuple[int, int] | None = None

    def accepts(self, overall: int, requested: int) -> bool:
        """
        Check a rated overall difficulty against this target.

        The band wins when present; otherwise the direction is compared
        against the requested difficulty, and with neither the rating
        must equal the request.
        """
        if self.band is not None:
            low, high = self.band
            return low <= overall <= high
        if self.direction == DifficultyDirection.EASIER:
            return overall < requested
        if self.direction == DifficultyDirection.HARDER:
            return overall > requested
        return overall == requested

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.band is not None:
            data["target_band"] = {"min": self.band[0], "max": self.band[1]}
        if self.direction is not None:
            data["target_direction"] = self.direction.value
        return data


def target_for(
    intent: LearningIntent,
    difficulty: int,
    ceiling: int = 4,
    use_band: bool = True,
) -> DifficultyTarget:
    """
    Derive the difficulty target for the next item.

    Args:
        intent: Pedagogical purpose of the item
        difficulty: Concept's current difficulty (clamped to [1, ceiling])
        ceiling: Highest difficulty in use
        use_band: When False, return a direction-only target

    Returns:
        DifficultyTarget with direction and, optionally, band
    """
    ceiling = max(1, ceiling)
    d = max(1, min(ceiling, difficulty))
    direction = _INTENT_DIRECTION[LearningIntent(intent)]
    if not use_band:
        return DifficultyTarget(direction=direction)
    return DifficultyTarget(direction=direction, band=(max(1, d - 1), min(ceiling, d + 1)))
