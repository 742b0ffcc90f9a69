"""
Learner Context.

Bounded history of the items a learner has recently been shown. The
generator request carries it so a remote generator can steer away from
repeats, and the novelty check reads it to reject items that repeat
anyway. Only accepted items are recorded.
"""
from __future__ import annotations

import hashlib
import re
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.generation.schemas import ItemSpec

HISTORY_SIZE = 8


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation (keeping letters, digits, ² and +), collapse whitespace."""
    text = re.sub(r"[\s=/\-_]+", " ", text.lower())
    text = re.sub(r"[^a-z0-9²+ ]", "", text)
    text = re.sub(r"\s*\+\s*", "+", text)
    return re.sub(r"\s+", " ", text).strip()


def prompt_hash(prompt: str) -> str:
    """Stable hash of a normalized prompt."""
    return hashlib.sha256(normalize_text(prompt).encode("utf-8")).hexdigest()[:16]


def answer_key(kind: str, value: str) -> str:
    return f"{kind.strip().lower()}:{normalize_text(str(value))}"


def _ring(size: int) -> deque:
    return deque(maxlen=size)


@dataclass
class LearnerContext:
    """Recent concepts, prompt hashes, interaction types, answer keys and question families."""

    size: int = HISTORY_SIZE
    recent_concept_ids: deque = field(default_factory=lambda: _ring(HISTORY_SIZE))
    recent_prompt_hashes: deque = field(default_factory=lambda: _ring(HISTORY_SIZE))
    recent_interaction_types: deque = field(default_factory=lambda: _ring(HISTORY_SIZE))
    recent_answer_keys: deque = field(default_factory=lambda: _ring(HISTORY_SIZE))
    recent_question_families: deque = field(default_factory=lambda: _ring(HISTORY_SIZE))

    _BUFFERS = (
        "recent_concept_ids",
        "recent_prompt_hashes",
        "recent_interaction_types",
        "recent_answer_keys",
        "recent_question_families",
    )

    def __post_init__(self) -> None:
        for name in self._BUFFERS:
            current = getattr(self, name)
            if current.maxlen != self.size:
                setattr(self, name, deque(current, maxlen=self.size))

    def record(self, item: ItemSpec) -> None:
        """Append an accepted item to every buffer."""
        answer = item.response_contract.answer
        self.recent_concept_ids.append(item.concept_id)
        self.recent_prompt_hashes.append(prompt_hash(item.prompt))
        self.recent_interaction_types.append(item.interaction_type)
        self.recent_answer_keys.append(answer_key(answer.kind, answer.value))
        self.recent_question_families.append(item.question_family)

    def last_prompt_hashes(self, window: int) -> list[str]:
        if window <= 0:
            return []
        return list(self.recent_prompt_hashes)[-window:]

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(getattr(self, name)) for name in self._BUFFERS}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, size: int = HISTORY_SIZE) -> LearnerContext:
        """
        Rebuild a context from untrusted input.

        Non-string entries are dropped and each buffer keeps only its
        last ``size`` values.
        """
        context = cls(size=size)
        for name in cls._BUFFERS:
            values = (data or {}).get(name) or []
            if not isinstance(values, list):
                continue
            buffer = getattr(context, name)
            for value in values:
                if isinstance(value, str) and value:
                    buffer.append(value)
        return context
