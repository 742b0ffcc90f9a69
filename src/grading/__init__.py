"""
Grading.

Multi-strategy grading of learner submissions. The router infers a
strategy family from the item's assessment contract, applies the
concept's grading policy, and falls back when a delegated grader is
unavailable.
"""

from .base import (
    Correctness,
    DetectedAnswer,
    GradeRequest,
    GradingResultEnvelope,
    GradingStrategy,
    NumericRule,
    StrategyFamily,
    StrategyRegistry,
)
from .policy import ConceptGradingPolicy, get_grading_policy
from .router import grade_with_router, map_to_strategy_family
from .strategies import (
    DeterministicChoiceStrategy,
    NumericRuleStrategy,
    SymbolicEquivalenceStrategy,
)

__all__ = [
    # Types
    "Correctness",
    "DetectedAnswer",
    "GradeRequest",
    "GradingResultEnvelope",
    "NumericRule",
    "StrategyFamily",
    # Strategies
    "GradingStrategy",
    "StrategyRegistry",
    "DeterministicChoiceStrategy",
    "NumericRuleStrategy",
    "SymbolicEquivalenceStrategy",
    # Routing
    "ConceptGradingPolicy",
    "get_grading_policy",
    "grade_with_router",
    "map_to_strategy_family",
]
