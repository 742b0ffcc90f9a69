"""
Item and rating documents exchanged with the generator and rater.

Only the contract-based item shape ("m3.question_spec.v2") is
supported: every item carries a response contract (what the UI
collects) and an assessment contract (how it is graded). from_dict()
raises KeyError / TypeError / ValueError on malformed documents; the
orchestrator treats those as a failed attempt.

PresentedItem is the consumer-facing shape the UI renders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.grading.base import NumericRule

ITEM_SCHEMA_VERSION = "m3.question_spec.v2"
RATING_SCHEMA_VERSION = "m3.difficulty_rating.v1"

RATING_FLAGS: tuple[str, ...] = (
    "contains_trig",
    "contains_formal_proof",
    "contains_surd_or_irrational_root",
    "out_of_ontology",
    "non_renderable_diagram",
    "interaction_answer_mismatch",
)

RATING_DIMENSIONS: tuple[str, ...] = ("visual", "language", "reasoning_steps", "numeric")


def _require_dict(data: Any, name: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"{name} must be an object, got {type(data).__name__}")
    return data


# =============================================================================
# Diagram
# =============================================================================


@dataclass
class DiagramPoint:
    id: str
    x: float
    y: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y}


@dataclass
class DiagramSpec:
    """Triangle diagram with points in the unit square."""

    type: str
    points: list[DiagramPoint]
    right_angle_at: str | None = None

    def point(self, point_id: str) -> DiagramPoint | None:
        for p in self.points:
            if p.id == point_id:
                return p
        return None

    def area(self) -> float:
        """Area of triangle ABC, 0 when a vertex is missing."""
        a, b, c = self.point("A"), self.point("B"), self.point("C")
        if a is None or b is None or c is None:
            return 0.0
        return abs(a.x * (b.y - c.y) + b.x * (c.y - a.y) + c.x * (a.y - b.y)) / 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "points_normalized": [p.to_dict() for p in self.points],
            "right_angle_at": self.right_angle_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiagramSpec:
        data = _require_dict(data, "diagram_spec")
        return cls(
            type=str(data["type"]),
            points=[
                DiagramPoint(id=str(p["id"]), x=float(p["x"]), y=float(p["y"]))
                for p in data["points_normalized"]
            ],
            right_angle_at=data.get("right_angle_at"),
        )


# =============================================================================
# Contracts
# =============================================================================


@dataclass
class ExpectedAnswer:
    kind: str  # point_set, segment, option_id, number
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExpectedAnswer:
        data = _require_dict(data, "answer")
        return cls(kind=str(data["kind"]), value=str(data["value"]))


@dataclass
class ResponseOption:
    id: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text}


def _options_from(data: Any) -> list[ResponseOption] | None:
    if data is None:
        return None
    return [ResponseOption(id=str(o["id"]), text=str(o.get("text", ""))) for o in data]


def _rule_from(data: Any) -> NumericRule | None:
    return None if data is None else NumericRule.from_dict(_require_dict(data, "numeric_rule"))


@dataclass
class ResponseContract:
    """What the UI collects from the learner."""

    mode: str
    answer: ExpectedAnswer
    options: list[ResponseOption] | None = None
    numeric_rule: NumericRule | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"mode": self.mode, "answer": self.answer.to_dict()}
        if self.options is not None:
            data["options"] = [o.to_dict() for o in self.options]
        if self.numeric_rule is not None:
            data["numeric_rule"] = self.numeric_rule.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseContract:
        data = _require_dict(data, "response_contract")
        return cls(
            mode=str(data["mode"]),
            answer=ExpectedAnswer.from_dict(data["answer"]),
            options=_options_from(data.get("options")),
            numeric_rule=_rule_from(data.get("numeric_rule")),
        )


@dataclass
class AssessmentContract:
    """How a response is graded."""

    objective_type: str
    answer_schema: str
    grading_strategy_id: str
    feedback_policy_id: str
    expected_answer: ExpectedAnswer
    interaction_type: str | None = None
    options: list[ResponseOption] | None = None
    numeric_rule: NumericRule | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "objective_type": self.objective_type,
            "answer_schema": self.answer_schema,
            "grading_strategy_id": self.grading_strategy_id,
            "feedback_policy_id": self.feedback_policy_id,
            "expected_answer": self.expected_answer.to_dict(),
        }
        if self.interaction_type is not None:
            data["interaction_type"] = self.interaction_type
        if self.options is not None:
            data["options"] = [o.to_dict() for o in self.options]
        if self.numeric_rule is not None:
            data["numeric_rule"] = self.numeric_rule.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssessmentContract:
        data = _require_dict(data, "assessment_contract")
        return cls(
            objective_type=str(data.get("objective_type") or ""),
            answer_schema=str(data.get("answer_schema") or ""),
            grading_strategy_id=str(data.get("grading_strategy_id") or ""),
            feedback_policy_id=str(data.get("feedback_policy_id") or ""),
            expected_answer=ExpectedAnswer.from_dict(data.get("expected_answer") or {"kind": "", "value": ""}),
            interaction_type=data.get("interaction_type"),
            options=_options_from(data.get("options")),
            numeric_rule=_rule_from(data.get("numeric_rule")),
        )


# =============================================================================
# Item
# =============================================================================


@dataclass
class ItemSpec:
    """One generated assessment item."""

    schema_version: str
    item_id: str
    question_family: str
    concept_id: str
    grade: int
    interaction_type: str
    diagram: DiagramSpec
    prompt: str
    hint: str
    explanation: str
    real_world_connection: str
    response_contract: ResponseContract
    assessment_contract: AssessmentContract | None = None
    generator_self_rating: int = 1

    def prose_fields(self) -> list[str]:
        return [self.prompt, self.hint, self.explanation, self.real_world_connection]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schema_version": self.schema_version,
            "question_id": self.item_id,
            "question_family": self.question_family,
            "concept_id": self.concept_id,
            "grade": self.grade,
            "interaction_type": self.interaction_type,
            "difficulty_metadata": {"generator_self_rating": self.generator_self_rating},
            "diagram_spec": self.diagram.to_dict(),
            "prompt": self.prompt,
            "hint": self.hint,
            "explanation": self.explanation,
            "real_world_connection": self.real_world_connection,
            "response_contract": self.response_contract.to_dict(),
        }
        if self.assessment_contract is not None:
            data["assessment_contract"] = self.assessment_contract.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemSpec:
        """Parse an item document."""
        data = _require_dict(data, "question_spec")
        contract = data.get("assessment_contract")
        metadata = data.get("difficulty_metadata") or {}
        return cls(
            schema_version=str(data["schema_version"]),
            item_id=str(data["question_id"]),
            question_family=str(data.get("question_family", "")),
            concept_id=str(data["concept_id"]),
            grade=int(data["grade"]),
            interaction_type=str(data["interaction_type"]),
            diagram=DiagramSpec.from_dict(data["diagram_spec"]),
            prompt=str(data["prompt"]),
            hint=str(data.get("hint", "")),
            explanation=str(data.get("explanation", "")),
            real_world_connection=str(data.get("real_world_connection", "")),
            response_contract=ResponseContract.from_dict(data["response_contract"]),
            assessment_contract=AssessmentContract.from_dict(contract) if contract else None,
            generator_self_rating=int(metadata.get("generator_self_rating", 1)),
        )


# =============================================================================
# Difficulty Rating
# =============================================================================


@dataclass
class DifficultyRating:
    """Independent difficulty rating for an item."""

    schema_version: str
    overall: Any
    dimensions: dict[str, Any]
    grade_fit_ok: bool
    grade_fit_notes: str = ""
    flags: dict[str, bool] = field(default_factory=dict)

    @property
    def raised_flags(self) -> list[str]:
        return [name for name in RATING_FLAGS if self.flags.get(name)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "overall": self.overall,
            "dimensions": dict(self.dimensions),
            "grade_fit": {"ok": self.grade_fit_ok, "notes": self.grade_fit_notes},
            "flags": {name: bool(self.flags.get(name, False)) for name in RATING_FLAGS},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DifficultyRating:
        """
        Parse a rating document.

        Numeric fields are kept as sent so validate_rating can reject
        non-integers instead of silently coercing them.
        """
        data = _require_dict(data, "rating")
        grade_fit = _require_dict(data.get("grade_fit") or {}, "grade_fit")
        flags = _require_dict(data.get("flags") or {}, "flags")
        return cls(
            schema_version=str(data["schema_version"]),
            overall=data["overall"],
            dimensions=dict(_require_dict(data.get("dimensions") or {}, "dimensions")),
            grade_fit_ok=bool(grade_fit.get("ok", False)),
            grade_fit_notes=str(grade_fit.get("notes", "")),
            flags={name: bool(flags.get(name, False)) for name in RATING_FLAGS},
        )


# =============================================================================
# Consumer Shape
# =============================================================================


@dataclass
class PresentedItem:
    """An accepted item in the shape the tutor UI renders."""

    bundle_id: str
    tutor_messages: list[str]
    diagram: dict[str, Any]
    answer_value: str
    concept_id: str
    difficulty: int
    intent: str
    interaction_type: str
    response_mode: str
    prompt_text: str
    spec: ItemSpec
    fallback_used: bool = False

    @classmethod
    def from_spec(cls, spec: ItemSpec, difficulty: int, intent: str, fallback_used: bool = False) -> PresentedItem:
        labels = {p.id: p.id for p in spec.diagram.points}
        return cls(
            bundle_id=spec.item_id,
            tutor_messages=[spec.prompt, spec.hint, spec.real_world_connection],
            diagram={
                "points": {p.id: [p.x, p.y] for p in spec.diagram.points},
                "segments": [["A", "B"], ["B", "C"], ["C", "A"]],
                "vertex_labels": labels,
                "right_angle_at": spec.diagram.right_angle_at,
            },
            answer_value=spec.response_contract.answer.value,
            concept_id=spec.concept_id,
            difficulty=difficulty,
            intent=intent,
            interaction_type=spec.interaction_type,
            response_mode=spec.response_contract.mode,
            prompt_text=spec.prompt,
            spec=spec,
            fallback_used=fallback_used,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "bundle_id": self.bundle_id,
            "tutor_messages": list(self.tutor_messages),
            "diagram_spec": self.diagram,
            "answer": {"value": self.answer_value},
            "concept_id": self.concept_id,
            "difficulty": self.difficulty,
            "intent": self.intent,
            "interaction_type": self.interaction_type,
            "response_mode": self.response_mode,
            "prompt_text": self.prompt_text,
            "fallback_used": self.fallback_used,
            "question_spec": self.spec.to_dict(),
        }
