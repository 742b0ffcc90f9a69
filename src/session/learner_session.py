"""
Learner session blob.

Everything persisted for one learner: grade and topic, progression,
the novelty history, and the item currently on screen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.adaptive.learner_context import HISTORY_SIZE, LearnerContext
from src.core.mastery import ProgressionState
from src.generation.schemas import ItemSpec, PresentedItem

SESSION_SCHEMA_VERSION = 2
TOPIC_KEY = "geometry.triangles"


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class LearnerSession:
    """Serializable learner session."""

    grade: int
    topic: str
    progression: ProgressionState
    learner_context: LearnerContext = field(default_factory=LearnerContext)
    current_item: PresentedItem | None = None
    schema_version: int = SESSION_SCHEMA_VERSION
    created_at: str = field(default_factory=now_iso)
    last_opened_at: str = field(default_factory=now_iso)

    def touch(self) -> None:
        self.last_opened_at = now_iso()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        item = None
        if self.current_item is not None:
            item = {
                "question_spec": self.current_item.spec.to_dict(),
                "difficulty": self.current_item.difficulty,
                "intent": self.current_item.intent,
                "fallback_used": self.current_item.fallback_used,
            }
        return {
            "learner": {"grade": self.grade},
            "curriculum": {"topic": self.topic},
            "progression": self.progression.to_dict(),
            "learner_context": self.learner_context.to_dict(),
            "current_item": item,
            "session_meta": {
                "schema_version": self.schema_version,
                "created_at": self.created_at,
                "last_opened_at": self.last_opened_at,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], history_size: int = HISTORY_SIZE) -> LearnerSession:
        """
        Create from dictionary.

        Raises KeyError / TypeError / ValueError on a malformed blob.
        """
        meta = data.get("session_meta") or {}
        item_data = data.get("current_item")
        current_item = None
        if item_data:
            current_item = PresentedItem.from_spec(
                ItemSpec.from_dict(item_data["question_spec"]),
                difficulty=int(item_data["difficulty"]),
                intent=str(item_data["intent"]),
                fallback_used=bool(item_data.get("fallback_used", False)),
            )
        return cls(
            grade=int(data["learner"]["grade"]),
            topic=str(data["curriculum"]["topic"]),
            progression=ProgressionState.from_dict(data["progression"]),
            learner_context=LearnerContext.from_dict(data.get("learner_context"), size=history_size),
            current_item=current_item,
            schema_version=int(meta.get("schema_version", SESSION_SCHEMA_VERSION)),
            created_at=str(meta.get("created_at") or now_iso()),
            last_opened_at=str(meta.get("last_opened_at") or now_iso()),
        )
