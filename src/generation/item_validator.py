"""
Item Validator for generated assessment items.

Checks a candidate item before it can be shown:
1. Structure: schema, grade cap, ontology, interaction type, diagram,
   response contract, assessment contract, grading strategy allow-list
2. Semantics: the text actually teaches the item's concept, and the
   prompt/hint/explanation are not generic repeats of each other
3. Novelty: the learner has not just seen the same prompt, answer or
   question family
4. Ratings: the independent difficulty rating is well-formed

Every check runs; a result lists every violated rule instead of
stopping at the first one, so one attempt's diagnostics are complete.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from src.adaptive.learner_context import LearnerContext, answer_key, normalize_text, prompt_hash
from src.curriculum.policies import (
    INTERACTION_ANSWER_KINDS,
    INTERACTION_SCHEMAS,
    INTERACTION_TYPES,
    MULTIPLE_CHOICE,
    NUMERIC_INPUT,
    OBJECTIVE_SCHEMAS,
    SCHEMA_ANSWER_KINDS,
    ConceptPolicyProvider,
    get_policy_provider,
)
from src.curriculum.triangles import ONTOLOGY
from src.generation.schemas import (
    ITEM_SCHEMA_VERSION,
    RATING_DIMENSIONS,
    RATING_SCHEMA_VERSION,
    DifficultyRating,
    ItemSpec,
)
from src.grading.strategies import parse_number

SUPPORTED_GRADE = 6
MIN_TRIANGLE_AREA = 0.001
DIAGRAM_POINT_IDS = frozenset({"A", "B", "C"})

# Advanced content a Grade 6 item must not mention (whole words).
FORBIDDEN_KEYWORDS: tuple[str, ...] = (
    "sin",
    "cos",
    "tan",
    "sine",
    "cosine",
    "tangent",
    "trigonometry",
    "proof",
    "surd",
    "irrational",
)

MIN_DISTINCT_WORDS = 8


@dataclass
class ValidationIssue:
    """A single violated rule."""

    code: str
    message: str
    field: str = "general"


@dataclass
class ValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def tags(self) -> list[str]:
        """Violated rule codes, de-duplicated, in the order found."""
        return list(dict.fromkeys(issue.code for issue in self.issues))

    def add_issue(self, code: str, message: str, field: str = "general") -> None:
        self.issues.append(ValidationIssue(code, message, field))

    def extend(self, other: ValidationResult) -> ValidationResult:
        self.issues.extend(other.issues)
        return self


def contains_phrase(pool: str, phrase: str) -> bool:
    """Whole-phrase match of a normalized phrase inside a normalized pool."""
    needle = normalize_text(phrase)
    if not needle:
        return False
    pattern = rf"(?<![a-z0-9²+]){re.escape(needle)}(?![a-z0-9²+])"
    return re.search(pattern, pool) is not None


class ItemSpecValidator:
    """
    Validator for generated items.

    Usage:
        validator = ItemSpecValidator()
        result = validator.validate(item, concept_id, allowed_types, context)
        if not result.is_valid:
            print(result.tags)
    """

    def __init__(
        self,
        policies: ConceptPolicyProvider | None = None,
        grade: int = SUPPORTED_GRADE,
        ontology: frozenset[str] = ONTOLOGY,
        novelty_window: int = 3,
        repeat_limit: int = 2,
    ):
        self.policies = policies or get_policy_provider()
        self.grade = grade
        self.ontology = ontology
        self.novelty_window = novelty_window
        self.repeat_limit = repeat_limit

    def validate(
        self,
        item: ItemSpec,
        concept_id: str,
        allowed_interaction_types: list[str],
        context: LearnerContext | None = None,
    ) -> ValidationResult:
        """Structure and semantics, plus novelty when a learner context is given."""
        result = self.validate_structure(item, concept_id, allowed_interaction_types)
        result.extend(self.validate_semantics(item))
        if context is not None:
            result.extend(self.validate_novelty(item, context))
        if not result.is_valid:
            logger.debug(f"Item {item.item_id} for {concept_id} failed validation: {result.tags}")
        return result

    # =========================================================================
    # Structure
    # =========================================================================

    def validate_structure(
        self,
        item: ItemSpec,
        concept_id: str,
        allowed_interaction_types: list[str],
    ) -> ValidationResult:
        result = ValidationResult()

        if item.schema_version != ITEM_SCHEMA_VERSION:
            result.add_issue("schema", f"Unsupported schema version {item.schema_version!r}", "schema_version")

        if item.grade != self.grade:
            result.add_issue("grade_cap", f"Grade {item.grade} is not {self.grade}", "grade")
        prose = normalize_text(" ".join(item.prose_fields()))
        banned = [word for word in FORBIDDEN_KEYWORDS if contains_phrase(prose, word)]
        if banned:
            result.add_issue("grade_cap", f"Advanced content: {', '.join(banned)}", "prompt")

        if item.concept_id not in self.ontology or item.concept_id != concept_id:
            result.add_issue("ontology", f"Concept {item.concept_id!r} is not {concept_id!r} in the ontology", "concept_id")

        if item.interaction_type not in INTERACTION_TYPES or item.interaction_type not in allowed_interaction_types:
            result.add_issue(
                "interaction_not_allowed",
                f"Interaction {item.interaction_type!r} not in {allowed_interaction_types}",
                "interaction_type",
            )

        self._check_diagram(item, result)
        self._check_response_contract(item, result)
        self._check_assessment_contract(item, result)
        return result

    def _check_diagram(self, item: ItemSpec, result: ValidationResult) -> None:
        diagram = item.diagram
        ids = [p.id for p in diagram.points]
        if diagram.type != "triangle" or len(ids) != 3 or set(ids) != DIAGRAM_POINT_IDS:
            result.add_issue("diagram_invalid", "Diagram must be a triangle with points A, B, C", "diagram_spec")
            return
        if any(not (0 <= p.x <= 1 and 0 <= p.y <= 1) for p in diagram.points):
            result.add_issue("diagram_invalid", "Diagram points must lie in the unit square", "diagram_spec")
            return
        if diagram.right_angle_at is not None and diagram.right_angle_at not in DIAGRAM_POINT_IDS:
            result.add_issue("diagram_invalid", f"Unknown right-angle vertex {diagram.right_angle_at!r}", "diagram_spec")
        if diagram.area() <= MIN_TRIANGLE_AREA:
            result.add_issue("diagram_degenerate", f"Triangle area {diagram.area():.4f} is too small", "diagram_spec")

    def _check_response_contract(self, item: ItemSpec, result: ValidationResult) -> None:
        contract = item.response_contract
        answer = contract.answer
        if contract.mode != item.interaction_type:
            result.add_issue("answer_mismatch", f"Response mode {contract.mode!r} != interaction type", "response_contract")

        allowed_kinds = INTERACTION_ANSWER_KINDS.get(item.interaction_type, frozenset())
        if answer.kind not in allowed_kinds:
            result.add_issue(
                "answer_mismatch",
                f"Answer kind {answer.kind!r} does not fit {item.interaction_type}",
                "response_contract",
            )
        elif item.interaction_type == MULTIPLE_CHOICE:
            option_ids = [o.id for o in contract.options or []]
            if len(option_ids) < 2 or answer.value not in option_ids:
                result.add_issue(
                    "answer_mismatch",
                    "Multiple choice needs at least 2 options including the answer",
                    "response_contract",
                )
        elif item.interaction_type == NUMERIC_INPUT and parse_number(answer.value) is None:
            result.add_issue("answer_mismatch", f"Answer {answer.value!r} is not a number", "response_contract")

    def _check_assessment_contract(self, item: ItemSpec, result: ValidationResult) -> None:
        contract = item.assessment_contract
        if contract is None or not all(
            value.strip()
            for value in (
                contract.objective_type,
                contract.answer_schema,
                contract.grading_strategy_id,
                contract.feedback_policy_id,
            )
        ):
            result.add_issue("assessment_contract_missing", "Assessment contract is missing or incomplete", "assessment_contract")
            return

        response = item.response_contract
        problems: list[str] = []
        if contract.interaction_type is not None and contract.interaction_type != item.interaction_type:
            problems.append("interaction type disagrees with the item")
        if contract.expected_answer != response.answer:
            problems.append("expected answer disagrees with the response contract")
        schema = contract.answer_schema.strip().lower()
        if schema not in INTERACTION_SCHEMAS.get(item.interaction_type, frozenset()):
            problems.append(f"schema {schema!r} does not fit {item.interaction_type}")
        objective = contract.objective_type.strip().lower()
        if schema not in OBJECTIVE_SCHEMAS.get(objective, frozenset()):
            problems.append(f"schema {schema!r} does not fit objective {objective!r}")
        if response.answer.kind not in SCHEMA_ANSWER_KINDS.get(schema, frozenset()):
            problems.append(f"answer kind {response.answer.kind!r} does not fit schema {schema!r}")
        for problem in problems:
            result.add_issue("assessment_contract_invalid", problem, "assessment_contract")

        if not self.policies.allows_grading_strategy(item.concept_id, contract.grading_strategy_id):
            result.add_issue(
                "grading_strategy_not_allowed",
                f"Strategy {contract.grading_strategy_id!r} not allowed for {item.concept_id}",
                "assessment_contract",
            )

    # =========================================================================
    # Semantics
    # =========================================================================

    def semantic_pool(self, item: ItemSpec) -> str:
        options = " ".join(o.text for o in item.response_contract.options or [])
        return normalize_text(" ".join(item.prose_fields() + [item.response_contract.answer.value, options]))

    def validate_semantics(self, item: ItemSpec) -> ValidationResult:
        result = ValidationResult()
        rule = self.policies.semantic_rule(item.concept_id)
        if rule is not None:
            pool = self.semantic_pool(item)
            missing = [
                group for group in rule.required_groups
                if not any(contains_phrase(pool, phrase) for phrase in group)
            ]
            forbidden = [phrase for phrase in rule.forbidden if contains_phrase(pool, phrase)]
            if missing or forbidden:
                result.add_issue(
                    "concept_mismatch",
                    f"Missing signals {missing}, forbidden {forbidden}",
                    "prompt",
                )

        if self._is_generic_repetition(item):
            result.add_issue("generic_repetition", "Prompt, hint and explanation repeat each other", "hint")
        return result

    @staticmethod
    def _is_generic_repetition(item: ItemSpec) -> bool:
        blocks = [normalize_text(text) for text in (item.prompt, item.hint, item.explanation)]
        if len({block for block in blocks if block}) <= 1:
            return True
        words = {word for word in " ".join(blocks).split() if len(word) > 2}
        return len(words) < MIN_DISTINCT_WORDS

    # =========================================================================
    # Novelty
    # =========================================================================

    def validate_novelty(
        self,
        item: ItemSpec,
        context: LearnerContext,
        window: int | None = None,
        repeat_limit: int | None = None,
    ) -> ValidationResult:
        window = self.novelty_window if window is None else window
        repeat_limit = self.repeat_limit if repeat_limit is None else repeat_limit
        result = ValidationResult()

        if prompt_hash(item.prompt) in context.last_prompt_hashes(window):
            result.add_issue("novelty_violation", "Prompt repeats a recent prompt", "prompt")

        answer = item.response_contract.answer
        key = answer_key(answer.kind, answer.value)
        if list(context.recent_answer_keys).count(key) >= repeat_limit:
            result.add_issue("novelty_violation", f"Answer {key} used too often recently", "response_contract")

        if item.question_family and list(context.recent_question_families).count(item.question_family) >= repeat_limit:
            result.add_issue("novelty_violation", f"Question family {item.question_family} used too often", "question_family")
        return result

    # =========================================================================
    # Ratings
    # =========================================================================

    @staticmethod
    def validate_rating(rating: DifficultyRating) -> ValidationResult:
        """Schema tag plus every score an integer in [1, 4]."""
        result = ValidationResult()
        if rating.schema_version != RATING_SCHEMA_VERSION:
            result.add_issue("schema", f"Unsupported rating schema {rating.schema_version!r}", "schema_version")

        values = {"overall": rating.overall}
        values.update({name: rating.dimensions.get(name) for name in RATING_DIMENSIONS})
        for name, value in values.items():
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 4:
                result.add_issue("range", f"{name}={value!r} is not an integer in 1..4", name)
        return result
