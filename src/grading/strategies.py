"""
Grading Strategy Implementations.

The three strategy families that can be evaluated locally: option
choice, numeric tolerance and symbolic equation equivalence. Visual
and rubric grading are delegated (see delegates.py).
"""

from __future__ import annotations

import logging
import math
import re

from .base import (
    Correctness,
    DetectedAnswer,
    GradeRequest,
    GradingResultEnvelope,
    GradingStrategy,
    StrategyFamily,
    StrategyRegistry,
)

logger = logging.getLogger(__name__)


def normalize_choice_id(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


def parse_number(value: str | float | int | None) -> float | None:
    """Parse a number, returning None for missing, malformed or non-finite input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        text = value.strip()
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
    return parsed if math.isfinite(parsed) else None


def canonicalize_expression(value: str | None) -> str:
    """
    Canonical form of an expression or equation.

    Lowercases, drops whitespace and rewrites ``²`` as ``^2``. For an
    equation each side's ``+`` terms are sorted, so ``b^2+a^2=c^2`` and
    ``a^2 + b^2 = c^2`` canonicalize identically.
    """
    if not value:
        return ""
    normalized = re.sub(r"\s+", "", value.lower()).replace("²", "^2")
    if "=" not in normalized:
        return normalized
    left, _, right = normalized.partition("=")

    def canonical_side(side: str) -> str:
        return "+".join(sorted(term for term in side.split("+") if term))

    return f"{canonical_side(left)}={canonical_side(right)}"


# =============================================================================
# DETERMINISTIC_CHOICE Strategy
# =============================================================================


@StrategyRegistry.register(StrategyFamily.DETERMINISTIC_CHOICE)
class DeterministicChoiceStrategy(GradingStrategy):
    """Exact match of the submitted option id against the expected one."""

    def grade(self, request: GradeRequest) -> GradingResultEnvelope:
        submitted = normalize_choice_id(request.submitted_choice_id)
        expected = normalize_choice_id(request.expected_answer_value)

        if submitted is None:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.DETERMINISTIC_CHOICE,
                detected_answer=DetectedAnswer(kind="option_id", value=None),
                correctness=Correctness.AMBIGUOUS,
                confidence=0.0,
                ambiguity_codes=["NO_CHOICE_SUBMITTED"],
                evidence_summary="No option id was submitted for deterministic choice grading.",
            )

        is_correct = expected is not None and submitted == expected
        if is_correct:
            summary = f"Submitted option '{submitted}' matched expected option '{expected}'."
        else:
            summary = f"Submitted option '{submitted}' did not match expected option '{expected}'."
        return GradingResultEnvelope(
            strategy_family=StrategyFamily.DETERMINISTIC_CHOICE,
            detected_answer=DetectedAnswer(kind="option_id", value=submitted),
            correctness=Correctness.CORRECT if is_correct else Correctness.INCORRECT,
            confidence=1.0,
            evidence_summary=summary,
        )


# =============================================================================
# NUMERIC_RULE Strategy
# =============================================================================


@StrategyRegistry.register(StrategyFamily.NUMERIC_RULE)
class NumericRuleStrategy(GradingStrategy):
    """
    Grade a number against an expected value with tolerance.

    The tolerance boundary is inclusive. A value outside the optional
    min/max bounds is marked incorrect and tagged
    NUMERIC_OUTSIDE_ALLOWED_RANGE.
    """

    def grade(self, request: GradeRequest) -> GradingResultEnvelope:
        rule = request.numeric_rule
        unit = rule.unit if rule else None
        submitted = parse_number(request.submitted_numeric_value)
        expected = parse_number(request.expected_answer_value)

        if submitted is None:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.NUMERIC_RULE,
                detected_answer=DetectedAnswer(kind="number", value=None, unit=unit),
                correctness=Correctness.AMBIGUOUS,
                confidence=0.0,
                ambiguity_codes=["INVALID_NUMERIC_INPUT"],
                evidence_summary="Submitted value is missing or not parseable as a number.",
            )

        if expected is None:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.NUMERIC_RULE,
                detected_answer=DetectedAnswer(kind="number", value=submitted, unit=unit),
                correctness=Correctness.ERROR,
                confidence=0.0,
                ambiguity_codes=["MISSING_EXPECTED_NUMERIC_RULE"],
                evidence_summary="Expected numeric answer is missing or invalid in assessment contract.",
            )

        tolerance = abs(rule.tolerance) if rule else 0.0
        in_range = True
        if rule is not None:
            if rule.min_value is not None and submitted < rule.min_value:
                in_range = False
            if rule.max_value is not None and submitted > rule.max_value:
                in_range = False
        delta = abs(submitted - expected)
        is_correct = in_range and delta <= tolerance

        return GradingResultEnvelope(
            strategy_family=StrategyFamily.NUMERIC_RULE,
            detected_answer=DetectedAnswer(kind="number", value=submitted, unit=unit),
            correctness=Correctness.CORRECT if is_correct else Correctness.INCORRECT,
            confidence=1.0,
            ambiguity_codes=[] if in_range else ["NUMERIC_OUTSIDE_ALLOWED_RANGE"],
            evidence_summary=(
                f"submitted={submitted:g}, expected={expected:g}, tolerance=±{tolerance:g}, "
                f"in_range={str(in_range).lower()}, |delta|={delta:g}."
            ),
        )


# =============================================================================
# SYMBOLIC_EQUIVALENCE Strategy
# =============================================================================


@StrategyRegistry.register(StrategyFamily.SYMBOLIC_EQUIVALENCE)
class SymbolicEquivalenceStrategy(GradingStrategy):
    """Compare canonicalized expressions for exact equality."""

    def grade(self, request: GradeRequest) -> GradingResultEnvelope:
        submitted = (request.submitted_expression or "").strip()
        if not submitted:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.SYMBOLIC_EQUIVALENCE,
                detected_answer=DetectedAnswer(kind="expression", value=None),
                correctness=Correctness.AMBIGUOUS,
                confidence=0.0,
                ambiguity_codes=["MISSING_SYMBOLIC_INPUT"],
                evidence_summary="No symbolic expression was submitted.",
            )

        canonical_submitted = canonicalize_expression(submitted)
        canonical_expected = canonicalize_expression((request.expected_answer_value or "").strip())
        equivalent = bool(canonical_submitted) and canonical_submitted == canonical_expected

        return GradingResultEnvelope(
            strategy_family=StrategyFamily.SYMBOLIC_EQUIVALENCE,
            detected_answer=DetectedAnswer(kind="expression", value=submitted),
            correctness=Correctness.CORRECT if equivalent else Correctness.INCORRECT,
            confidence=0.95 if equivalent else 0.75,
            evidence_summary=(
                f"Canonical comparison used. submitted='{canonical_submitted}' "
                f"expected='{canonical_expected}'."
            ),
        )
