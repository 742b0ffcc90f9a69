"""
Generator and rater capabilities.

Both are injected into the orchestrator. Each has a deterministic local
implementation (local_generator.py, heuristic_rater.py) and a remote one
backed by the item service (src/integrations/item_service_client.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from src.adaptive.difficulty_targeting import DifficultyTarget
from src.adaptive.learner_context import LearnerContext
from src.generation.schemas import DifficultyRating, ItemSpec


@dataclass
class GenerationRequest:
    """What the generator is asked for on one attempt."""

    concept_id: str
    grade: int
    target: DifficultyTarget
    requested_difficulty: int
    allowed_interaction_types: list[str]
    learner_context: LearnerContext = field(default_factory=LearnerContext)
    intent: str = "practice"

    def to_dict(self) -> dict[str, Any]:
        """Payload in the shape the item service expects."""
        data: dict[str, Any] = {
            "concept_id": self.concept_id,
            "grade": self.grade,
            "difficulty": self.requested_difficulty,
            "intent": self.intent,
            "allowed_interaction_types": list(self.allowed_interaction_types),
            "learner_context": self.learner_context.to_dict(),
        }
        data.update(self.target.to_dict())
        return data


class ItemGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> ItemSpec:
        ...


class DifficultyRater(Protocol):
    async def rate(self, item: ItemSpec, grade: int) -> DifficultyRating:
        ...
