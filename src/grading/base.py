"""
Grading Base Types.

Result envelope, grading request and the strategy registry shared by
every grading strategy family.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar

logger = logging.getLogger(__name__)


class StrategyFamily(str, Enum):
    """The five canonical ways a submitted answer can be graded."""

    DETERMINISTIC_CHOICE = "deterministic_choice"
    NUMERIC_RULE = "numeric_rule"
    SYMBOLIC_EQUIVALENCE = "symbolic_equivalence"
    VISUAL_TARGET_LOCATOR = "visual_target_locator"
    RUBRIC_LLM = "rubric_llm"


# Order used by the default policy for acceptance and fallback.
CANONICAL_ORDER: tuple[StrategyFamily, ...] = (
    StrategyFamily.DETERMINISTIC_CHOICE,
    StrategyFamily.NUMERIC_RULE,
    StrategyFamily.VISUAL_TARGET_LOCATOR,
    StrategyFamily.SYMBOLIC_EQUIVALENCE,
    StrategyFamily.RUBRIC_LLM,
)


class Correctness(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    AMBIGUOUS = "ambiguous"
    ERROR = "error"


# =============================================================================
# Result Envelope
# =============================================================================


@dataclass
class DetectedAnswer:
    """What the grader understood the learner to have answered."""

    kind: str  # option_id, number, expression, segment, point_set, text, unknown
    value: Any = None
    unit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "value": self.value}
        if self.unit is not None:
            data["unit"] = self.unit
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DetectedAnswer:
        return cls(kind=data.get("kind", "unknown"), value=data.get("value"), unit=data.get("unit"))


def clamp_confidence(value: float) -> float:
    """Clamp to [0, 1]; non-finite values become 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


@dataclass
class GradingResultEnvelope:
    """
    Result of grading one submission.

    ``strategy_family`` is the strategy that actually ran, which can
    differ from the one the item declared when a fallback fired.
    """

    strategy_family: StrategyFamily
    detected_answer: DetectedAnswer
    correctness: Correctness
    confidence: float = 0.0
    ambiguity_codes: list[str] = field(default_factory=list)
    evidence_summary: str = ""

    def __post_init__(self) -> None:
        self.strategy_family = StrategyFamily(self.strategy_family)
        self.correctness = Correctness(self.correctness)
        self.confidence = clamp_confidence(self.confidence)

    @property
    def is_correct(self) -> bool:
        return self.correctness == Correctness.CORRECT

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "strategy_family": self.strategy_family.value,
            "detected_answer": self.detected_answer.to_dict(),
            "correctness": self.correctness.value,
            "confidence": self.confidence,
            "ambiguity_codes": list(self.ambiguity_codes),
            "evidence_summary": self.evidence_summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GradingResultEnvelope:
        """Parse an envelope returned by a remote grader."""
        return cls(
            strategy_family=StrategyFamily(data["strategy_family"]),
            detected_answer=DetectedAnswer.from_dict(data.get("detected_answer") or {}),
            correctness=Correctness(data["correctness"]),
            confidence=data.get("confidence", 0.0),
            ambiguity_codes=[str(code) for code in data.get("ambiguity_codes", [])],
            evidence_summary=str(data.get("evidence_summary", "")),
        )


# =============================================================================
# Grade Request
# =============================================================================

DelegateEvaluator = Callable[[], Awaitable[GradingResultEnvelope]]


@dataclass
class NumericRule:
    """Tolerance and optional bounds for a numeric answer."""

    tolerance: float = 0.0
    min_value: float | None = None
    max_value: float | None = None
    unit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"tolerance": self.tolerance}
        for key in ("min_value", "max_value", "unit"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NumericRule:
        return cls(
            tolerance=float(data.get("tolerance", 0.0)),
            min_value=_optional_float(data.get("min_value")),
            max_value=_optional_float(data.get("max_value")),
            unit=data.get("unit"),
        )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


@dataclass
class GradeRequest:
    """
    Everything the router needs to grade one submission.

    Only one of the ``submitted_*`` fields is normally set, matching the
    item's interaction type. The two delegate evaluators are supplied by
    the caller when a visual or rubric grader is reachable.
    """

    concept_id: str
    grading_strategy_id: str | None = None
    answer_schema: str | None = None
    expected_answer_kind: str | None = None
    expected_answer_value: str | None = None
    submitted_choice_id: str | None = None
    submitted_numeric_value: str | None = None
    submitted_expression: str | None = None
    submitted_text: str | None = None
    numeric_rule: NumericRule | None = None
    visual_evaluator: DelegateEvaluator | None = None
    rubric_evaluator: DelegateEvaluator | None = None


# =============================================================================
# Strategy Registry
# =============================================================================


class StrategyRegistry:
    """
    Registry for the deterministic strategy families.

    Example:
        @StrategyRegistry.register(StrategyFamily.NUMERIC_RULE)
        class NumericRuleStrategy(GradingStrategy):
            ...

        strategy = StrategyRegistry.get(StrategyFamily.NUMERIC_RULE)()
    """

    _strategies: ClassVar[dict[StrategyFamily, type[GradingStrategy]]] = {}

    @classmethod
    def register(cls, family: StrategyFamily):
        """
        Decorator to register a grading strategy.

        Args:
            family: StrategyFamily this strategy handles
        """

        def decorator(strategy_class: type[GradingStrategy]):
            cls._strategies[family] = strategy_class
            strategy_class.family = family
            logger.debug(f"Registered strategy: {family.value} -> {strategy_class.__name__}")
            return strategy_class

        return decorator

    @classmethod
    def get(cls, family: StrategyFamily) -> type[GradingStrategy]:
        if family not in cls._strategies:
            raise KeyError(f"No strategy registered for family: {family.value}")
        return cls._strategies[family]

    @classmethod
    def has(cls, family: StrategyFamily) -> bool:
        return family in cls._strategies

    @classmethod
    def list_strategies(cls) -> dict[str, type[GradingStrategy]]:
        return {family.value: cls._strategies[family] for family in cls._strategies}


class GradingStrategy(ABC):
    """
    Abstract base class for locally evaluated strategies.

    Subclasses implement grade(), which must return an envelope for every
    request and never raise.
    """

    family: ClassVar[StrategyFamily]

    @abstractmethod
    def grade(self, request: GradeRequest) -> GradingResultEnvelope:
        ...
