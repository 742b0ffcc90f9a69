"""
Grading Router.

Chooses a strategy family for a submission and runs it:

1. Infer the family from the item's declared strategy id and answer schema.
2. Look up the concept's grading policy.
3. Try the inferred family first, then the policy's fallback order,
   skipping families the policy does not accept and delegated families
   whose evaluator was not supplied.

The router never raises. Anything it cannot resolve comes back as an
``error`` envelope with an explicit code.
"""

from __future__ import annotations

import logging

from .base import (
    Correctness,
    DetectedAnswer,
    GradeRequest,
    GradingResultEnvelope,
    StrategyFamily,
    StrategyRegistry,
)
from .policy import ConceptGradingPolicy, get_grading_policy
from . import strategies  # noqa: F401  (registers the local strategies)

logger = logging.getLogger(__name__)

_CANONICAL_IDS = {family.value: family for family in StrategyFamily}

_VISUAL_ALIASES = {"vision_locator", "hybrid"}

_SCHEMA_FAMILIES = {
    "enum": StrategyFamily.DETERMINISTIC_CHOICE,
    "numeric_with_tolerance": StrategyFamily.NUMERIC_RULE,
    "expression_equivalence": StrategyFamily.SYMBOLIC_EQUIVALENCE,
    "segment_set": StrategyFamily.VISUAL_TARGET_LOCATOR,
    "point_set": StrategyFamily.VISUAL_TARGET_LOCATOR,
}


def map_to_strategy_family(
    grading_strategy_id: str | None,
    answer_schema: str | None,
) -> StrategyFamily:
    """
    Map a declared strategy id and answer schema to a canonical family.

    Canonical ids map to themselves. The legacy ``deterministic_rule`` id
    is resolved through the schema, ``vision_locator`` and ``hybrid``
    mean visual grading, and otherwise the schema alone decides.
    Anything unmapped is graded by rubric.
    """
    strategy = (grading_strategy_id or "").strip().lower()
    schema = (answer_schema or "").strip().lower()

    if strategy in _CANONICAL_IDS:
        return _CANONICAL_IDS[strategy]
    if strategy == "deterministic_rule" and schema == "enum":
        return StrategyFamily.DETERMINISTIC_CHOICE
    if strategy == "deterministic_rule" and schema == "numeric_with_tolerance":
        return StrategyFamily.NUMERIC_RULE
    if strategy in _VISUAL_ALIASES:
        return StrategyFamily.VISUAL_TARGET_LOCATOR
    return _SCHEMA_FAMILIES.get(schema, StrategyFamily.RUBRIC_LLM)


def candidate_order(inferred: StrategyFamily, policy: ConceptGradingPolicy) -> list[StrategyFamily]:
    """Inferred family first, then the policy's fallbacks, acceptable ones only."""
    ordered = [inferred] + [family for family in policy.fallback_order if family != inferred]
    return [family for family in ordered if policy.accepts(family)]


async def grade_with_router(
    request: GradeRequest,
    policy: ConceptGradingPolicy | None = None,
) -> GradingResultEnvelope:
    """
    Grade a submission with the first usable strategy.

    Args:
        request: Submission plus expected answer and optional delegates
        policy: Override for the concept's policy (defaults to the registry)

    Returns:
        The envelope from the strategy that ran, or an ``error`` envelope
    """
    inferred = map_to_strategy_family(request.grading_strategy_id, request.answer_schema)
    policy = policy or get_grading_policy(request.concept_id)

    for family in candidate_order(inferred, policy):
        if StrategyRegistry.has(family):
            strategy = StrategyRegistry.get(family)()
            result = strategy.grade(request)
        elif family == StrategyFamily.VISUAL_TARGET_LOCATOR and request.visual_evaluator:
            result = await _run_delegate(family, request.visual_evaluator, request)
        elif family == StrategyFamily.RUBRIC_LLM and request.rubric_evaluator:
            result = await _run_delegate(family, request.rubric_evaluator, request)
        else:
            continue

        if family != inferred:
            logger.info(
                f"Grading fell back from {inferred.value} to {family.value} "
                f"for concept {request.concept_id}"
            )
        return result

    logger.warning(f"No usable grading strategy for {inferred.value} on {request.concept_id}")
    return GradingResultEnvelope(
        strategy_family=inferred,
        detected_answer=DetectedAnswer(
            kind="number" if request.expected_answer_kind == "number" else "unknown",
            value=None,
        ),
        correctness=Correctness.ERROR,
        confidence=0.0,
        ambiguity_codes=["NO_AVAILABLE_STRATEGY"],
        evidence_summary=(
            f"No usable strategy for inferred='{inferred.value}' and concept='{request.concept_id}'."
        ),
    )


async def _run_delegate(family, evaluator, request: GradeRequest) -> GradingResultEnvelope:
    try:
        return await evaluator()
    except Exception as e:
        logger.error(f"{family.value} delegate failed for {request.concept_id}: {e}")
        return GradingResultEnvelope(
            strategy_family=family,
            detected_answer=DetectedAnswer(kind=request.expected_answer_kind or "unknown", value=None),
            correctness=Correctness.ERROR,
            confidence=0.0,
            ambiguity_codes=["DELEGATE_FAILED"],
            evidence_summary=f"{family.value} evaluator raised {type(e).__name__}.",
        )
