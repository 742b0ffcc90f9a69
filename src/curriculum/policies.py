"""
Per-concept policy tables for the triangles curriculum.

All tables are immutable and built once at import time. Call sites go
through ConceptPolicyProvider so the tables can later move to a config
file or a service without touching the validator or the orchestrator.

Tables:
- ALLOWED_INTERACTIONS: which interaction types a concept may be asked with
- SEMANTIC_RULES: phrases an item for a concept must / must not contain
- STRATEGY_ALLOW_LIST: grading strategy ids a concept's items may declare
- compatibility tables tying interaction type, objective type, answer
  schema and answer kind together
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from src.grading.policy import ConceptGradingPolicy, get_grading_policy

HIGHLIGHT = "highlight"
MULTIPLE_CHOICE = "multiple_choice"
NUMERIC_INPUT = "numeric_input"

INTERACTION_TYPES: tuple[str, ...] = (HIGHLIGHT, MULTIPLE_CHOICE, NUMERIC_INPUT)

DEFAULT_INTERACTIONS: tuple[str, ...] = (MULTIPLE_CHOICE,)

_VISUAL = (HIGHLIGHT, MULTIPLE_CHOICE)
_VISUAL_NUMERIC = (HIGHLIGHT, MULTIPLE_CHOICE, NUMERIC_INPUT)
_NUMERIC = (MULTIPLE_CHOICE, NUMERIC_INPUT)

ALLOWED_INTERACTIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "tri.basics.identify_right_angle": _VISUAL,
        "tri.basics.identify_right_triangle": _VISUAL,
        "tri.basics.vertices_sides_angles": _VISUAL,
        "tri.structure.hypotenuse": _VISUAL,
        "tri.structure.legs": _VISUAL,
        "tri.structure.opposite_adjacent_relative": _VISUAL,
        "tri.reasoning.compare_side_lengths": _VISUAL,
        "tri.reasoning.hypotenuse_longest": _VISUAL,
        "tri.reasoning.informal_side_relationships": _VISUAL,
        "tri.pyth.check_if_right_triangle": _VISUAL_NUMERIC,
        "tri.pyth.equation_a2_b2_c2": _NUMERIC,
        "tri.pyth.solve_missing_side": _NUMERIC,
        "tri.pyth.square_area_intuition": _VISUAL_NUMERIC,
        "tri.pyth.square_numbers_refresher": _NUMERIC,
        "tri.app.mixed_mastery_test": _NUMERIC,
        "tri.app.real_life_modeling": _NUMERIC,
        "tri.app.word_problems": _NUMERIC,
    }
)


# =============================================================================
# Semantic Rules
# =============================================================================


@dataclass(frozen=True)
class ConceptSemanticRule:
    """
    Phrases that tie an item's text to its concept.

    An item passes a required group when ANY phrase in the group appears
    in its text; it fails outright when any forbidden phrase appears.
    Phrases are matched as whole words after normalization.
    """

    required_groups: tuple[tuple[str, ...], ...] = ()
    forbidden: tuple[str, ...] = ()


_PYTHAGORAS = ("a2+b2", "a²+b²", "pythagoras", "pythagorean")
_TRIG = ("sin", "cos", "tan")

SEMANTIC_RULES: Mapping[str, ConceptSemanticRule] = MappingProxyType(
    {
        "tri.basics.identify_right_angle": ConceptSemanticRule(
            required_groups=(("right angle", "90"),),
            forbidden=("hypotenuse",) + _PYTHAGORAS,
        ),
        "tri.basics.identify_right_triangle": ConceptSemanticRule(
            required_groups=(("right triangle", "right angled triangle", "right angle"),),
            forbidden=_PYTHAGORAS,
        ),
        "tri.basics.vertices_sides_angles": ConceptSemanticRule(
            required_groups=(("vertex", "vertices"), ("side", "sides"), ("angle", "angles")),
            forbidden=_PYTHAGORAS,
        ),
        "tri.structure.hypotenuse": ConceptSemanticRule(
            required_groups=(("hypotenuse",), ("right angle", "right triangle")),
            forbidden=_PYTHAGORAS,
        ),
        "tri.structure.legs": ConceptSemanticRule(
            required_groups=(("leg", "legs"),),
            forbidden=("hypotenuse only", "a2+b2", "a²+b²"),
        ),
        "tri.structure.opposite_adjacent_relative": ConceptSemanticRule(
            required_groups=(("opposite",), ("adjacent",)),
            forbidden=_TRIG,
        ),
        "tri.reasoning.hypotenuse_longest": ConceptSemanticRule(
            required_groups=(("hypotenuse",), ("longest",)),
            forbidden=_PYTHAGORAS,
        ),
        "tri.pyth.check_if_right_triangle": ConceptSemanticRule(
            required_groups=(("right triangle", "right angle triangle"), _PYTHAGORAS),
            forbidden=_TRIG,
        ),
        "tri.pyth.equation_a2_b2_c2": ConceptSemanticRule(
            required_groups=(_PYTHAGORAS + ("c2", "c²"),),
            forbidden=_TRIG,
        ),
        "tri.pyth.solve_missing_side": ConceptSemanticRule(
            required_groups=(("missing side", "unknown side", "find side", "solve"), _PYTHAGORAS),
            forbidden=_TRIG,
        ),
    }
)


# =============================================================================
# Grading Strategy Allow-List
# =============================================================================

# Concepts without an entry accept any declared strategy.
STRATEGY_ALLOW_LIST: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "tri.pyth.equation_a2_b2_c2": frozenset(
            {"symbolic_equivalence", "deterministic_choice", "deterministic_rule", "rubric_llm"}
        ),
    }
)


# =============================================================================
# Compatibility Tables
# =============================================================================

INTERACTION_ANSWER_KINDS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        HIGHLIGHT: frozenset({"point_set", "segment"}),
        MULTIPLE_CHOICE: frozenset({"option_id"}),
        NUMERIC_INPUT: frozenset({"number"}),
    }
)

INTERACTION_SCHEMAS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        HIGHLIGHT: frozenset({"point_set", "segment_set"}),
        MULTIPLE_CHOICE: frozenset({"enum", "expression_equivalence"}),
        NUMERIC_INPUT: frozenset({"numeric_with_tolerance"}),
    }
)

OBJECTIVE_SCHEMAS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "identify_vertex": frozenset({"point_set", "enum"}),
        "identify_segment": frozenset({"segment_set", "enum"}),
        "identify_angle": frozenset({"point_set", "enum"}),
        "classify_triangle": frozenset({"enum"}),
        "select_equation": frozenset({"enum", "expression_equivalence"}),
        "compute_value": frozenset({"numeric_with_tolerance", "enum"}),
        "compare_lengths": frozenset({"segment_set", "enum", "numeric_with_tolerance"}),
        "apply_in_context": frozenset({"numeric_with_tolerance", "enum"}),
    }
)

SCHEMA_ANSWER_KINDS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "point_set": frozenset({"point_set"}),
        "segment_set": frozenset({"segment"}),
        "enum": frozenset({"option_id"}),
        "expression_equivalence": frozenset({"option_id"}),
        "numeric_with_tolerance": frozenset({"number"}),
    }
)


class ConceptPolicyProvider:
    """Read access to the per-concept policy tables."""

    def __init__(
        self,
        allowed_interactions: Mapping[str, tuple[str, ...]] = ALLOWED_INTERACTIONS,
        semantic_rules: Mapping[str, ConceptSemanticRule] = SEMANTIC_RULES,
        strategy_allow_list: Mapping[str, frozenset[str]] = STRATEGY_ALLOW_LIST,
    ):
        self._allowed_interactions = allowed_interactions
        self._semantic_rules = semantic_rules
        self._strategy_allow_list = strategy_allow_list

    def allowed_interaction_types(self, concept_id: str) -> list[str]:
        """Interaction types a concept may be asked with, in preference order."""
        return list(self._allowed_interactions.get(concept_id, DEFAULT_INTERACTIONS))

    def semantic_rule(self, concept_id: str) -> ConceptSemanticRule | None:
        return self._semantic_rules.get(concept_id)

    def allows_grading_strategy(self, concept_id: str, strategy_id: str) -> bool:
        allowed = self._strategy_allow_list.get(concept_id)
        if allowed is None:
            return True
        return strategy_id.strip().lower() in allowed

    def grading_policy(self, concept_id: str) -> ConceptGradingPolicy:
        return get_grading_policy(concept_id)


_default_provider: ConceptPolicyProvider | None = None


def get_policy_provider() -> ConceptPolicyProvider:
    """Get the shared policy provider built from the module tables."""
    global _default_provider
    if _default_provider is None:
        _default_provider = ConceptPolicyProvider()
    return _default_provider
