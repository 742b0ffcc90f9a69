"""
Heuristic difficulty rater.

Stands in for the remote rater when no item service is configured. It
scores prompt length, interaction type and the generator's own rating,
and raises grade-fit flags from the same keyword and ontology rules the
validator uses.
"""

from __future__ import annotations

import math

from src.adaptive.learner_context import normalize_text
from src.curriculum.policies import HIGHLIGHT, INTERACTION_ANSWER_KINDS, NUMERIC_INPUT
from src.curriculum.triangles import ONTOLOGY
from src.generation.item_validator import MIN_TRIANGLE_AREA, contains_phrase
from src.generation.schemas import RATING_SCHEMA_VERSION, DifficultyRating, ItemSpec

TRIG_WORDS = ("sin", "cos", "tan", "sine", "cosine", "tangent", "trigonometry")
PROOF_WORDS = ("proof", "prove")
SURD_WORDS = ("surd", "irrational", "square root of 2")

LONG_PROMPT_WORDS = 20


def _half_up(value: float) -> int:
    return math.floor(value + 0.5)


class HeuristicRater:
    """Deterministic rater with the same output shape as the remote one."""

    def __init__(self, ontology: frozenset[str] = ONTOLOGY):
        self.ontology = ontology

    async def rate(self, item: ItemSpec, grade: int = 6) -> DifficultyRating:
        return self.rate_item(item)

    def rate_item(self, item: ItemSpec) -> DifficultyRating:
        reasoning = 3 if len(item.prompt.split()) > LONG_PROMPT_WORDS else 2
        boost = 1 if item.interaction_type == NUMERIC_INPUT else 0
        overall = max(1, min(4, _half_up((reasoning + boost + item.generator_self_rating) / 2)))

        pool = normalize_text(" ".join(item.prose_fields()))
        answer_kind = item.response_contract.answer.kind
        flags = {
            "contains_trig": any(contains_phrase(pool, word) for word in TRIG_WORDS),
            "contains_formal_proof": any(contains_phrase(pool, word) for word in PROOF_WORDS),
            "contains_surd_or_irrational_root": any(contains_phrase(pool, word) for word in SURD_WORDS),
            "out_of_ontology": item.concept_id not in self.ontology,
            "non_renderable_diagram": item.diagram.area() <= MIN_TRIANGLE_AREA,
            "interaction_answer_mismatch": answer_kind not in INTERACTION_ANSWER_KINDS.get(
                item.interaction_type, frozenset()
            ),
        }
        ok = not any(flags.values())
        return DifficultyRating(
            schema_version=RATING_SCHEMA_VERSION,
            overall=overall,
            dimensions={
                "visual": 3 if item.interaction_type == HIGHLIGHT else 2,
                "language": 2,
                "reasoning_steps": reasoning,
                "numeric": 3 if item.interaction_type == NUMERIC_INPUT else 1,
            },
            grade_fit_ok=ok,
            grade_fit_notes="Within Grade 6 scope." if ok else "One or more grade/scope constraints violated.",
            flags=flags,
        )
