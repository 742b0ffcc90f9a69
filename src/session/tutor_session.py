"""
Tutor Session.

One actor per learner. Ties the pieces together:

    mastery -> difficulty target -> orchestrator -> learner answers
        -> grading router -> outcome -> mastery

Progression has a single writer: next_item() and submit() hold an
asyncio.Lock, so two submissions for the same learner are applied one
after the other. Different learners use different TutorSession objects
and share nothing mutable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.core.mastery import MasteryRecord, MasteryStateMachine, Outcome
from src.curriculum.models import ConceptGraph
from src.curriculum.policies import HIGHLIGHT, MULTIPLE_CHOICE
from src.curriculum.triangles import TRIANGLES_GRADE6
from src.generation.orchestrator import ItemGenerationOrchestrator
from src.generation.schemas import PresentedItem
from src.grading.base import Correctness, GradeRequest, GradingResultEnvelope
from src.grading.delegates import (
    KeywordRubricEvaluator,
    RubricEvaluator,
    StaticVisualLocator,
    VisualLocatorRequest,
    VisualTargetLocator,
    bind_rubric_evaluator,
    bind_visual_evaluator,
)
from src.grading.diagram_targets import ANSWER_KIND_TARGET_CLASS
from src.grading.router import grade_with_router
from src.grading.strategies import normalize_choice_id
from src.session.learner_session import LearnerSession
from src.session.session_store import SessionStore

_OUTCOMES = {
    Correctness.CORRECT: Outcome.CORRECT,
    Correctness.INCORRECT: Outcome.INCORRECT,
    Correctness.AMBIGUOUS: Outcome.AMBIGUOUS,
}


@dataclass
class Submission:
    """A learner's response. Set the field matching the item's response mode."""

    choice_id: str | None = None
    numeric_value: str | None = None
    expression: str | None = None
    text: str | None = None
    target: str | None = None  # tapped vertex or side, e.g. "B" or "AC"
    ink_png_base64: str | None = None


@dataclass
class SubmissionResult:
    envelope: GradingResultEnvelope
    concept_id: str
    outcome: Outcome | None
    record: MasteryRecord | None
    topic_completed: bool = False
    unlocked_levels: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "grading": self.envelope.to_dict(),
            "concept_id": self.concept_id,
            "outcome": self.outcome.value if self.outcome else None,
            "mastery": self.record.to_dict() if self.record else None,
            "topic_completed": self.topic_completed,
            "unlocked_levels": list(self.unlocked_levels),
        }


class NoActiveItemError(RuntimeError):
    """submit() was called before next_item()."""


def _option_text(item: PresentedItem, option_id: str | None) -> str | None:
    wanted = normalize_choice_id(option_id)
    for option in item.spec.response_contract.options or []:
        if wanted is not None and normalize_choice_id(option.id) == wanted:
            return option.text
    return None


def build_grade_request(
    item: PresentedItem,
    submission: Submission,
    visual_locator: VisualTargetLocator | None = None,
    rubric_evaluator: RubricEvaluator | None = None,
    ambiguity_threshold: float = 0.6,
) -> GradeRequest:
    """
    Translate an item and a submission into a router request.

    Multiple-choice items graded by symbolic equivalence compare the
    text of the chosen option with the text of the correct one.
    """
    spec = item.spec
    contract = spec.assessment_contract
    expected = contract.expected_answer if contract else spec.response_contract.answer
    numeric_rule = (contract.numeric_rule if contract else None) or spec.response_contract.numeric_rule
    strategy_id = contract.grading_strategy_id if contract else None
    schema = contract.answer_schema if contract else None

    expected_value = expected.value
    expression = submission.expression
    if spec.interaction_type == MULTIPLE_CHOICE and schema == "expression_equivalence":
        expected_value = _option_text(item, expected.value) or expected.value
        if expression is None:
            expression = _option_text(item, submission.choice_id)

    visual = None
    if spec.interaction_type == HIGHLIGHT:
        target_class = ANSWER_KIND_TARGET_CLASS.get(expected.kind)
        if submission.target or visual_locator is None:
            locator: VisualTargetLocator = StaticVisualLocator.for_target(submission.target, target_class)
        else:
            locator = visual_locator
        visual = bind_visual_evaluator(
            locator,
            VisualLocatorRequest(
                concept_id=spec.concept_id,
                task=spec.prompt,
                right_angle_at=spec.diagram.right_angle_at,
                combined_png_base64=submission.ink_png_base64 or "",
            ),
            expected.kind,
            expected.value,
            ambiguity_threshold,
        )

    rubric = bind_rubric_evaluator(
        rubric_evaluator or KeywordRubricEvaluator(),
        submission.text or "",
        spec.explanation,
        spec.concept_id,
    )

    return GradeRequest(
        concept_id=spec.concept_id,
        grading_strategy_id=strategy_id,
        answer_schema=schema,
        expected_answer_kind=expected.kind,
        expected_answer_value=expected_value,
        submitted_choice_id=submission.choice_id,
        submitted_numeric_value=submission.numeric_value,
        submitted_expression=expression,
        submitted_text=submission.text,
        numeric_rule=numeric_rule,
        visual_evaluator=visual,
        rubric_evaluator=rubric,
    )


class TutorSession:
    """
    Per-learner session actor.

    Usage:
        tutor = TutorSession(store, orchestrator)
        item = await tutor.next_item()
        result = await tutor.submit(Submission(choice_id="b"))
    """

    def __init__(
        self,
        store: SessionStore,
        orchestrator: ItemGenerationOrchestrator,
        graph: ConceptGraph = TRIANGLES_GRADE6,
        machine: MasteryStateMachine | None = None,
        visual_locator: VisualTargetLocator | None = None,
        rubric_evaluator: RubricEvaluator | None = None,
        ambiguity_threshold: float = 0.6,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.graph = graph
        self.machine = machine or store.machine
        self.visual_locator = visual_locator
        self.rubric_evaluator = rubric_evaluator
        self.ambiguity_threshold = ambiguity_threshold
        self.session: LearnerSession = store.load()
        self._lock = asyncio.Lock()

    @property
    def current_item(self) -> PresentedItem | None:
        return self.session.current_item

    async def next_item(self) -> PresentedItem | None:
        """Generate the next item, or None when the topic is complete."""
        async with self._lock:
            step = self.machine.next_learning_step(self.session.progression, self.graph)
            if step.is_complete:
                self.session.current_item = None
                self.store.save(self.session)
                return None

            item = await self.orchestrator.generate_item(
                step.concept_id,
                step.difficulty,
                step.intent,
                learner_context=self.session.learner_context,
            )
            self.session.current_item = item
            self.session.progression.current_concept_id = step.concept_id
            self.store.save(self.session)
            return item

    async def submit(self, submission: Submission) -> SubmissionResult:
        """
        Grade a submission against the current item and update mastery.

        An ``error`` grading result leaves progression untouched and keeps
        the item on screen so the learner can answer again.

        Raises:
            NoActiveItemError: If no item is being shown
        """
        async with self._lock:
            item = self.session.current_item
            if item is None:
                raise NoActiveItemError("No active item; call next_item() first")

            progression = self.session.progression
            request = build_grade_request(
                item,
                submission,
                visual_locator=self.visual_locator,
                rubric_evaluator=self.rubric_evaluator,
                ambiguity_threshold=self.ambiguity_threshold,
            )
            envelope = await grade_with_router(request)
            outcome = _OUTCOMES.get(envelope.correctness)

            if outcome is None:
                logger.warning(
                    f"Grading error for {item.concept_id}: {envelope.ambiguity_codes}; progression unchanged"
                )
            else:
                self.machine.apply_outcome(progression, self.graph, item.concept_id, outcome)
                self.session.current_item = None
            self.store.save(self.session)

            return SubmissionResult(
                envelope=envelope,
                concept_id=item.concept_id,
                outcome=outcome,
                record=progression.record(item.concept_id),
                topic_completed=progression.topic_completed,
                unlocked_levels=list(progression.unlocked_levels),
            )

    def status(self) -> dict[str, Any]:
        """Per-level mastery summary."""
        progression = self.session.progression
        levels = []
        for level in self.graph.levels:
            levels.append(
                {
                    "index": level.index,
                    "title": level.title,
                    "unlocked": level.index in progression.unlocked_levels,
                    "mastered_fraction": self.machine.mastered_fraction(progression, self.graph, level.index),
                    "concepts": {
                        cid: progression.mastery[cid].to_dict()
                        for cid in level.concept_ids
                        if cid in progression.mastery
                    },
                }
            )
        return {
            "graph_id": progression.graph_id,
            "current_concept_id": progression.current_concept_id,
            "topic_completed": progression.topic_completed,
            "levels": levels,
        }

    async def reset(self) -> None:
        """Start the learner over once any in-flight submission has been applied."""
        async with self._lock:
            self.session = self.store.reset()
