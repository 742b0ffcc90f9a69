"""Per-concept grading policies: which strategy families are acceptable and in what fallback order."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .base import CANONICAL_ORDER, StrategyFamily


@dataclass(frozen=True)
class ConceptGradingPolicy:
    concept_id: str
    acceptable: frozenset[StrategyFamily]
    fallback_order: tuple[StrategyFamily, ...]

    def accepts(self, family: StrategyFamily) -> bool:
        return family in self.acceptable

    def to_dict(self) -> dict[str, object]:
        return {
            "concept_id": self.concept_id,
            "acceptable_strategies": [f.value for f in CANONICAL_ORDER if f in self.acceptable],
            "fallback_order": [f.value for f in self.fallback_order],
        }


DEFAULT_POLICY = ConceptGradingPolicy(
    concept_id="*",
    acceptable=frozenset(CANONICAL_ORDER),
    fallback_order=CANONICAL_ORDER,
)

_EQUATION_ORDER = (
    StrategyFamily.SYMBOLIC_EQUIVALENCE,
    StrategyFamily.DETERMINISTIC_CHOICE,
    StrategyFamily.RUBRIC_LLM,
)

GRADING_POLICIES: Mapping[str, ConceptGradingPolicy] = MappingProxyType(
    {
        "tri.pyth.equation_a2_b2_c2": ConceptGradingPolicy(
            concept_id="tri.pyth.equation_a2_b2_c2",
            acceptable=frozenset(_EQUATION_ORDER),
            fallback_order=_EQUATION_ORDER,
        ),
    }
)


def get_grading_policy(concept_id: str) -> ConceptGradingPolicy:
    """Policy for a concept, or the default policy when it has none."""
    return GRADING_POLICIES.get(concept_id, DEFAULT_POLICY)
