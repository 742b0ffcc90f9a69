"""
Grading Benchmark.

Runs labelled submissions through the router and reports:
- accuracy per (concept, objective type)
- ambiguity false positives / negatives
- hit rates for feedback-quality flags read off the evidence summary
- strategy regressions (a case graded by a different family than expected)

DEFAULT_CASES covers each locally evaluated family at its edge cases
plus the two visual outcomes the locator can report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .base import Correctness, GradeRequest, GradingResultEnvelope, NumericRule, StrategyFamily
from .delegates import (
    StaticVisualLocator,
    VisualLocatorRequest,
    VisualLocatorResult,
    bind_visual_evaluator,
)
from .router import grade_with_router

FEEDBACK_FLAGS = (
    "contains_retry_guidance",
    "contains_target_reference",
    "contains_bounded_hint",
    "contains_positive_reinforcement",
)


@dataclass
class BenchmarkCase:
    id: str
    concept_id: str
    objective_type: str
    label: str  # correct, incorrect, ambiguous, adversarial
    expected_correctness: Correctness
    expected_strategy: StrategyFamily
    request: GradeRequest
    expected_feedback_flags: list[str] = field(default_factory=list)


@dataclass
class AccuracyBucket:
    passed: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        return self.passed / self.total if self.total else 0.0


@dataclass
class BenchmarkMetrics:
    total_cases: int = 0
    accuracy_by_concept_objective: dict[str, AccuracyBucket] = field(default_factory=dict)
    ambiguity_false_positives: int = 0
    ambiguity_false_negatives: int = 0
    feedback_quality_flags: dict[str, list[int]] = field(
        default_factory=lambda: {flag: [0, 0] for flag in FEEDBACK_FLAGS}
    )
    regression_alerts: list[str] = field(default_factory=list)

    @property
    def overall_accuracy(self) -> float:
        passed = sum(bucket.passed for bucket in self.accuracy_by_concept_objective.values())
        return passed / self.total_cases if self.total_cases else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cases": self.total_cases,
            "accuracy_by_concept_objective": {
                key: {"passed": b.passed, "total": b.total, "accuracy": b.accuracy}
                for key, b in self.accuracy_by_concept_objective.items()
            },
            "ambiguity_false_positives": self.ambiguity_false_positives,
            "ambiguity_false_negatives": self.ambiguity_false_negatives,
            "feedback_quality_flags": {
                flag: {"hit": hit, "total": total}
                for flag, (hit, total) in self.feedback_quality_flags.items()
            },
            "regression_alerts": list(self.regression_alerts),
        }


def feedback_flags(envelope: GradingResultEnvelope) -> set[str]:
    """Feedback-quality flags an envelope earns."""
    text = envelope.evidence_summary.lower()
    flags: set[str] = set()
    if envelope.correctness == Correctness.AMBIGUOUS:
        flags.add("contains_retry_guidance")
    if "submitted" in text or "detected" in text:
        flags.add("contains_target_reference")
    if "tolerance" in text or "canonical" in text:
        flags.add("contains_bounded_hint")
    if envelope.correctness == Correctness.CORRECT:
        flags.add("contains_positive_reinforcement")
    return flags


async def run_grading_benchmark(cases: list[BenchmarkCase]) -> BenchmarkMetrics:
    """Grade every case sequentially and aggregate the metrics."""
    metrics = BenchmarkMetrics(total_cases=len(cases))

    for case in cases:
        envelope = await grade_with_router(case.request)
        key = f"{case.concept_id}::{case.objective_type}"
        bucket = metrics.accuracy_by_concept_objective.setdefault(key, AccuracyBucket())
        bucket.total += 1
        if envelope.correctness == case.expected_correctness:
            bucket.passed += 1

        predicted_ambiguous = envelope.correctness == Correctness.AMBIGUOUS
        expected_ambiguous = case.expected_correctness == Correctness.AMBIGUOUS
        if predicted_ambiguous and not expected_ambiguous:
            metrics.ambiguity_false_positives += 1
        if expected_ambiguous and not predicted_ambiguous:
            metrics.ambiguity_false_negatives += 1

        hits = feedback_flags(envelope)
        for flag in case.expected_feedback_flags:
            counts = metrics.feedback_quality_flags.setdefault(flag, [0, 0])
            counts[1] += 1
            if flag in hits:
                counts[0] += 1

        if envelope.strategy_family != case.expected_strategy:
            metrics.regression_alerts.append(
                f"strategy_regression:{case.id}:expected={case.expected_strategy.value}"
                f":got={envelope.strategy_family.value}"
            )

    return metrics


def _visual_case_request(
    concept_id: str,
    schema: str,
    expected_kind: str,
    expected_value: str,
    result: VisualLocatorResult,
    ambiguity_threshold: float,
) -> GradeRequest:
    return GradeRequest(
        concept_id=concept_id,
        grading_strategy_id="vision_locator",
        answer_schema=schema,
        expected_answer_kind=expected_kind,
        expected_answer_value=expected_value,
        visual_evaluator=bind_visual_evaluator(
            StaticVisualLocator(result),
            VisualLocatorRequest(concept_id=concept_id, task="benchmark"),
            expected_kind,
            expected_value,
            ambiguity_threshold,
        ),
    )


def default_cases(ambiguity_threshold: float = 0.6) -> list[BenchmarkCase]:
    """The built-in benchmark set."""
    return [
        BenchmarkCase(
            id="hypotenuse-correct-choice",
            concept_id="tri.structure.hypotenuse",
            objective_type="identify_segment",
            label="correct",
            expected_correctness=Correctness.CORRECT,
            expected_strategy=StrategyFamily.DETERMINISTIC_CHOICE,
            request=GradeRequest(
                concept_id="tri.structure.hypotenuse",
                grading_strategy_id="deterministic_rule",
                answer_schema="enum",
                expected_answer_kind="option_id",
                expected_answer_value="A",
                submitted_choice_id="A",
            ),
            expected_feedback_flags=["contains_target_reference", "contains_positive_reinforcement"],
        ),
        BenchmarkCase(
            id="pyth-eqn-variant-correct",
            concept_id="tri.pyth.equation_a2_b2_c2",
            objective_type="select_equation",
            label="correct",
            expected_correctness=Correctness.CORRECT,
            expected_strategy=StrategyFamily.SYMBOLIC_EQUIVALENCE,
            request=GradeRequest(
                concept_id="tri.pyth.equation_a2_b2_c2",
                grading_strategy_id="symbolic_equivalence",
                answer_schema="expression_equivalence",
                expected_answer_kind="expression",
                expected_answer_value="b^2+a^2=c^2",
                submitted_expression="a^2 + b^2 = c^2",
            ),
            expected_feedback_flags=["contains_bounded_hint", "contains_positive_reinforcement"],
        ),
        BenchmarkCase(
            id="pyth-eqn-adversarial",
            concept_id="tri.pyth.equation_a2_b2_c2",
            objective_type="select_equation",
            label="adversarial",
            expected_correctness=Correctness.INCORRECT,
            expected_strategy=StrategyFamily.SYMBOLIC_EQUIVALENCE,
            request=GradeRequest(
                concept_id="tri.pyth.equation_a2_b2_c2",
                grading_strategy_id="symbolic_equivalence",
                answer_schema="expression_equivalence",
                expected_answer_kind="expression",
                expected_answer_value="a^2+b^2=c^2",
                submitted_expression="a^2+b^2=c",
            ),
            expected_feedback_flags=["contains_bounded_hint"],
        ),
        BenchmarkCase(
            id="numeric-edge-correct-boundary",
            concept_id="tri.pyth.solve_missing_side",
            objective_type="compute_value",
            label="correct",
            expected_correctness=Correctness.CORRECT,
            expected_strategy=StrategyFamily.NUMERIC_RULE,
            request=GradeRequest(
                concept_id="tri.pyth.solve_missing_side",
                grading_strategy_id="deterministic_rule",
                answer_schema="numeric_with_tolerance",
                expected_answer_kind="number",
                expected_answer_value="5",
                submitted_numeric_value="5.1",
                numeric_rule=NumericRule(tolerance=0.1),
            ),
            expected_feedback_flags=["contains_bounded_hint", "contains_positive_reinforcement"],
        ),
        BenchmarkCase(
            id="numeric-edge-incorrect-boundary",
            concept_id="tri.pyth.solve_missing_side",
            objective_type="compute_value",
            label="incorrect",
            expected_correctness=Correctness.INCORRECT,
            expected_strategy=StrategyFamily.NUMERIC_RULE,
            request=GradeRequest(
                concept_id="tri.pyth.solve_missing_side",
                grading_strategy_id="deterministic_rule",
                answer_schema="numeric_with_tolerance",
                expected_answer_kind="number",
                expected_answer_value="5",
                submitted_numeric_value="5.11",
                numeric_rule=NumericRule(tolerance=0.1),
            ),
            expected_feedback_flags=["contains_bounded_hint"],
        ),
        BenchmarkCase(
            id="visual-ambiguous-vertices",
            concept_id="tri.basics.identify_right_angle",
            objective_type="identify_vertex",
            label="ambiguous",
            expected_correctness=Correctness.AMBIGUOUS,
            expected_strategy=StrategyFamily.VISUAL_TARGET_LOCATOR,
            request=_visual_case_request(
                "tri.basics.identify_right_angle",
                "point_set",
                "point_set",
                "C",
                VisualLocatorResult(
                    detected_target=None,
                    ambiguity_score=0.9,
                    confidence=0.2,
                    reason_codes=["NO_CLOSED_LOOP"],
                    detected_target_class="vertices",
                ),
                ambiguity_threshold,
            ),
            expected_feedback_flags=["contains_retry_guidance", "contains_target_reference"],
        ),
        BenchmarkCase(
            id="visual-incorrect-segment",
            concept_id="tri.structure.hypotenuse",
            objective_type="identify_segment",
            label="incorrect",
            expected_correctness=Correctness.INCORRECT,
            expected_strategy=StrategyFamily.VISUAL_TARGET_LOCATOR,
            request=_visual_case_request(
                "tri.structure.hypotenuse",
                "segment_set",
                "segment",
                "AB",
                VisualLocatorResult(
                    detected_target="CA",
                    ambiguity_score=0.1,
                    confidence=0.9,
                    detected_target_class="segments",
                ),
                ambiguity_threshold,
            ),
            expected_feedback_flags=["contains_target_reference"],
        ),
    ]
