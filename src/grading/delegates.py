"""
Grading delegates for the two strategy families the router cannot evaluate itself.

Visual target location and free-text rubric grading both depend on an
external model. Each has a Protocol, a deterministic local
implementation, and a remote one in src/integrations. The router only
sees zero-argument async callables, built here with bind_*().
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from .base import (
    Correctness,
    DelegateEvaluator,
    DetectedAnswer,
    GradingResultEnvelope,
    StrategyFamily,
)
from .diagram_targets import (
    ANSWER_KIND_TARGET_CLASS,
    normalize_point_set,
    normalize_segment,
    normalize_target_class,
)

logger = logging.getLogger(__name__)

VISUAL_REASON_CODES = (
    "NO_CLOSED_LOOP",
    "MULTIPLE_SIDES_ENCLOSED",
    "CIRCLE_NOT_NEAR_ANY_SIDE",
    "INK_TOO_MESSY",
    "UNCLEAR_DIAGRAM",
    "OTHER",
)


# =============================================================================
# Visual Target Locator
# =============================================================================


@dataclass
class VisualLocatorRequest:
    """Rendered evidence plus the item metadata the locator needs."""

    concept_id: str
    task: str
    right_angle_at: str | None = None
    combined_png_base64: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept": self.concept_id,
            "task": self.task,
            "right_angle_at": self.right_angle_at,
            "combined_png_base64": self.combined_png_base64,
        }


@dataclass
class VisualLocatorResult:
    detected_target: str | None
    ambiguity_score: float = 1.0
    confidence: float = 0.0
    reason_codes: list[str] = field(default_factory=list)
    student_feedback: str = ""
    detected_target_class: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VisualLocatorResult:
        """Parse a locator response; ``detected_segment`` is read when no target is given."""
        target = data.get("detected_target", data.get("detected_segment"))
        target_class = data.get("detected_target_class")
        if target_class is None and "detected_segment" in data:
            target_class = "segments"
        return cls(
            detected_target=target,
            ambiguity_score=float(data.get("ambiguity_score", 1.0)),
            confidence=float(data.get("confidence", 0.0)),
            reason_codes=[str(code) for code in data.get("reason_codes", [])],
            student_feedback=str(data.get("student_feedback", "")),
            detected_target_class=target_class,
        )


class VisualTargetLocator(Protocol):
    async def locate(self, request: VisualLocatorRequest) -> VisualLocatorResult:
        ...


class StaticVisualLocator:
    """
    Local locator that reports a fixed detection.

    Used when the learner's selection is already known as a target name
    (a tapped side or vertex), and as a test double.
    """

    def __init__(self, result: VisualLocatorResult):
        self.result = result

    @classmethod
    def for_target(cls, target: str | None, target_class: str | None = None) -> StaticVisualLocator:
        if not target:
            return cls(VisualLocatorResult(detected_target=None, reason_codes=["NO_CLOSED_LOOP"]))
        return cls(
            VisualLocatorResult(
                detected_target=target,
                ambiguity_score=0.0,
                confidence=1.0,
                detected_target_class=target_class,
            )
        )

    async def locate(self, request: VisualLocatorRequest) -> VisualLocatorResult:
        return self.result


def visual_result_to_envelope(
    result: VisualLocatorResult,
    expected_kind: str | None,
    expected_value: str | None,
    ambiguity_threshold: float,
) -> GradingResultEnvelope:
    """
    Grade a locator result against the expected target.

    A missing detection, or an ambiguity score at or above the threshold,
    is ambiguous. Segments compare order-insensitively, so ``BA`` matches
    an expected ``AB``.
    """
    kind = expected_kind or "segment"
    expected_class = ANSWER_KIND_TARGET_CLASS.get(kind)
    reported_class = normalize_target_class(result.detected_target_class) or expected_class
    evidence = (
        f"detected_target_class={reported_class} submitted={result.detected_target} "
        f"expected={expected_value}"
    )

    if result.detected_target is None or result.ambiguity_score >= ambiguity_threshold:
        return GradingResultEnvelope(
            strategy_family=StrategyFamily.VISUAL_TARGET_LOCATOR,
            detected_answer=DetectedAnswer(kind=kind, value=result.detected_target),
            correctness=Correctness.AMBIGUOUS,
            confidence=result.confidence,
            ambiguity_codes=result.reason_codes or ["AMBIGUOUS_DETECTION"],
            evidence_summary=f"{evidence} ambiguity={result.ambiguity_score:g}",
        )

    codes: list[str] = []
    if expected_class and reported_class != expected_class:
        codes.append("TARGET_CLASS_MISMATCH")
        matched = False
    elif kind == "point_set":
        matched = normalize_point_set(result.detected_target) == normalize_point_set(expected_value)
    else:
        detected = normalize_segment(result.detected_target)
        matched = detected is not None and detected == normalize_segment(expected_value)

    return GradingResultEnvelope(
        strategy_family=StrategyFamily.VISUAL_TARGET_LOCATOR,
        detected_answer=DetectedAnswer(kind=kind, value=result.detected_target),
        correctness=Correctness.CORRECT if matched else Correctness.INCORRECT,
        confidence=result.confidence,
        ambiguity_codes=codes,
        evidence_summary=evidence,
    )


def bind_visual_evaluator(
    locator: VisualTargetLocator,
    request: VisualLocatorRequest,
    expected_kind: str | None,
    expected_value: str | None,
    ambiguity_threshold: float,
) -> DelegateEvaluator:
    """Wrap a locator call as the zero-argument evaluator the router takes."""

    async def evaluate() -> GradingResultEnvelope:
        result = await locator.locate(request)
        return visual_result_to_envelope(result, expected_kind, expected_value, ambiguity_threshold)

    return evaluate


# =============================================================================
# Rubric Evaluator
# =============================================================================


class RubricEvaluator(Protocol):
    async def evaluate(
        self,
        submission: str,
        expected: str,
        concept_id: str,
    ) -> GradingResultEnvelope:
        ...


def _keywords(text: str) -> set[str]:
    return {word for word in re.findall(r"[a-z0-9²]+", text.lower()) if len(word) > 2}


class KeywordRubricEvaluator:
    """
    Local rubric: overlap between the expected answer's keywords and the submission's.

    Overlap at or above ``correct_ratio`` is correct, at or above
    ``partial_ratio`` is ambiguous, anything less is incorrect.
    """

    def __init__(self, correct_ratio: float = 0.8, partial_ratio: float = 0.4):
        self.correct_ratio = correct_ratio
        self.partial_ratio = partial_ratio

    async def evaluate(self, submission: str, expected: str, concept_id: str) -> GradingResultEnvelope:
        text = (submission or "").strip()
        if not text:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.RUBRIC_LLM,
                detected_answer=DetectedAnswer(kind="text", value=None),
                correctness=Correctness.AMBIGUOUS,
                confidence=0.0,
                ambiguity_codes=["MISSING_TEXT_INPUT"],
                evidence_summary="No free-text answer was submitted.",
            )

        wanted = _keywords(expected or "")
        if not wanted:
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.RUBRIC_LLM,
                detected_answer=DetectedAnswer(kind="text", value=text),
                correctness=Correctness.ERROR,
                confidence=0.0,
                ambiguity_codes=["MISSING_RUBRIC_REFERENCE"],
                evidence_summary="Expected answer has no usable keywords.",
            )

        ratio = len(wanted & _keywords(text)) / len(wanted)
        if ratio >= self.correct_ratio:
            correctness, codes = Correctness.CORRECT, []
        elif ratio >= self.partial_ratio:
            correctness, codes = Correctness.AMBIGUOUS, ["PARTIAL_RUBRIC_MATCH"]
        else:
            correctness, codes = Correctness.INCORRECT, []
        return GradingResultEnvelope(
            strategy_family=StrategyFamily.RUBRIC_LLM,
            detected_answer=DetectedAnswer(kind="text", value=text),
            correctness=correctness,
            confidence=ratio,
            ambiguity_codes=codes,
            evidence_summary=f"Keyword overlap {ratio:.2f} against expected answer for {concept_id}.",
        )


def bind_rubric_evaluator(
    evaluator: RubricEvaluator,
    submission: str,
    expected: str,
    concept_id: str,
) -> DelegateEvaluator:
    async def evaluate() -> GradingResultEnvelope:
        return await evaluator.evaluate(submission, expected, concept_id)

    return evaluate
