"""Data models for the concept graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ConceptNode:
    """A single skill in the curriculum graph."""

    id: str
    level_index: int
    title: str

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "level_index": self.level_index, "title": self.title}


@dataclass(frozen=True)
class LevelNode:
    """An ordered group of concepts gated by mastery of the level before it."""

    index: int
    title: str
    concept_ids: tuple[str, ...]
    unlock_threshold: float = 1.0  # Fraction of this level needed to open the next

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "title": self.title,
            "concept_ids": list(self.concept_ids),
            "unlock_threshold": self.unlock_threshold,
        }


@dataclass(frozen=True)
class ConceptGraph:
    """
    Static, read-only graph of concepts grouped into levels.

    Levels are kept sorted by index; concepts inside a level keep the
    order they were declared in, which is also the practice order.
    """

    id: str
    topic: str
    levels: tuple[LevelNode, ...]
    concepts: Mapping[str, ConceptNode] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "levels", tuple(sorted(self.levels, key=lambda lvl: lvl.index)))
        object.__setattr__(self, "concepts", MappingProxyType(dict(self.concepts)))

    @classmethod
    def build(
        cls,
        graph_id: str,
        topic: str,
        levels: list[tuple[str, list[tuple[str, str]]]],
        unlock_threshold: float = 1.0,
    ) -> ConceptGraph:
        """
        Compile a graph from ``(level_title, [(concept_id, concept_title), ...])`` rows.

        Level indices start at 1 in row order.
        """
        level_nodes: list[LevelNode] = []
        concepts: dict[str, ConceptNode] = {}
        for index, (level_title, rows) in enumerate(levels, start=1):
            for concept_id, title in rows:
                if concept_id in concepts:
                    raise ValueError(f"Duplicate concept id in graph: {concept_id}")
                concepts[concept_id] = ConceptNode(concept_id, index, title)
            level_nodes.append(
                LevelNode(
                    index=index,
                    title=level_title,
                    concept_ids=tuple(cid for cid, _ in rows),
                    unlock_threshold=unlock_threshold,
                )
            )
        return cls(id=graph_id, topic=topic, levels=tuple(level_nodes), concepts=concepts)

    def contains(self, concept_id: str) -> bool:
        return concept_id in self.concepts

    def concept(self, concept_id: str) -> ConceptNode | None:
        return self.concepts.get(concept_id)

    def level(self, index: int) -> LevelNode | None:
        for lvl in self.levels:
            if lvl.index == index:
                return lvl
        return None

    def level_of(self, concept_id: str) -> LevelNode | None:
        node = self.concepts.get(concept_id)
        return self.level(node.level_index) if node else None

    @property
    def ordered_concept_ids(self) -> list[str]:
        """All concept ids, level by level, in declared order."""
        return [cid for lvl in self.levels for cid in lvl.concept_ids]

    @property
    def first_concept_id(self) -> str | None:
        ordered = self.ordered_concept_ids
        return ordered[0] if ordered else None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "topic": self.topic,
            "levels": [lvl.to_dict() for lvl in self.levels],
        }
