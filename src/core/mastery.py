"""
Core Mastery Module.

Per-concept mastery records and the state machine that moves a learner
through the concept graph.

Design:
- MasteryPhase: single tagged state per concept (practicing, remediating,
  mastered) so "mastered and needs remediation" cannot be represented
- MasteryRecord: phase plus counters and the current difficulty
- ProgressionState: all records for one learner plus unlocked levels
- MasteryStateMachine: bootstrap, next step selection, outcome updates

ProgressionState has a single writer. Callers that can submit answers
concurrently for the same learner must serialize apply_outcome (see
src/session/tutor_session.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.curriculum.models import ConceptGraph


class MasteryPhase(str, Enum):
    """Where a concept stands for the learner."""

    PRACTICING = "practicing"
    REMEDIATING = "remediating"
    MASTERED = "mastered"


class Outcome(str, Enum):
    """A graded outcome fed back into the state machine."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    AMBIGUOUS = "ambiguous"


class LastOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


class LearningIntent(str, Enum):
    """Pedagogical purpose of the next item."""

    TEACH = "teach"
    PRACTICE = "practice"
    REMEDIATE = "remediate"
    ASSESS = "assess"


@dataclass
class MasteryRules:
    """Thresholds for difficulty movement, remediation and mastery."""

    required_correct: int = 3
    required_difficulty: int = 3
    up_step: int = 1
    down_step: int = 1
    remediation_incorrect_threshold: int = 1

    @classmethod
    def from_settings(cls, settings=None) -> MasteryRules:
        from config import get_settings

        settings = settings or get_settings()
        return cls(
            required_correct=settings.mastery_required_correct,
            required_difficulty=settings.mastery_required_difficulty,
            up_step=settings.mastery_up_step,
            down_step=settings.mastery_down_step,
            remediation_incorrect_threshold=settings.remediation_incorrect_threshold,
        )


@dataclass
class MasteryRecord:
    """Mastery state for one concept."""

    phase: MasteryPhase = MasteryPhase.PRACTICING
    current_difficulty: int = 1
    highest_difficulty_passed: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    attempt_count: int = 0
    last_outcome: LastOutcome = LastOutcome.NONE

    @property
    def mastered(self) -> bool:
        return self.phase == MasteryPhase.MASTERED

    @property
    def needs_remediation(self) -> bool:
        return self.phase == MasteryPhase.REMEDIATING

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "current_difficulty": self.current_difficulty,
            "highest_difficulty_passed": self.highest_difficulty_passed,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "attempt_count": self.attempt_count,
            "last_outcome": self.last_outcome.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], ceiling: int) -> MasteryRecord:
        return cls(
            phase=MasteryPhase(data.get("phase", MasteryPhase.PRACTICING.value)),
            current_difficulty=_clamp(int(data.get("current_difficulty", 1)), 1, ceiling),
            highest_difficulty_passed=int(data.get("highest_difficulty_passed", 0)),
            correct_count=int(data.get("correct_count", 0)),
            incorrect_count=int(data.get("incorrect_count", 0)),
            attempt_count=int(data.get("attempt_count", 0)),
            last_outcome=LastOutcome(data.get("last_outcome", LastOutcome.NONE.value)),
        )


@dataclass
class ProgressionState:
    """One learner's progress through a concept graph."""

    graph_id: str
    mastery: dict[str, MasteryRecord]
    current_concept_id: str | None = None
    difficulty_ceiling: int = 4
    unlocked_levels: list[int] = field(default_factory=lambda: [1])
    topic_completed: bool = False

    def record(self, concept_id: str) -> MasteryRecord | None:
        return self.mastery.get(concept_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "graph_id": self.graph_id,
            "mastery": {cid: rec.to_dict() for cid, rec in self.mastery.items()},
            "current_concept_id": self.current_concept_id,
            "difficulty_ceiling": self.difficulty_ceiling,
            "unlocked_levels": list(self.unlocked_levels),
            "topic_completed": self.topic_completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressionState:
        ceiling = int(data.get("difficulty_ceiling", 4))
        unlocked = sorted({int(lvl) for lvl in data.get("unlocked_levels", [])} | {1})
        return cls(
            graph_id=data["graph_id"],
            mastery={
                cid: MasteryRecord.from_dict(rec, ceiling)
                for cid, rec in (data.get("mastery") or {}).items()
            },
            current_concept_id=data.get("current_concept_id"),
            difficulty_ceiling=ceiling,
            unlocked_levels=unlocked,
            topic_completed=bool(data.get("topic_completed", False)),
        )


@dataclass(frozen=True)
class LearningStep:
    """What the learner should do next."""

    concept_id: str | None
    difficulty: int | None
    intent: LearningIntent
    is_complete: bool = False

    @classmethod
    def complete(cls) -> LearningStep:
        return cls(concept_id=None, difficulty=None, intent=LearningIntent.ASSESS, is_complete=True)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class MasteryStateMachine:
    """
    Mastery transitions over a concept graph.

    Usage:
        machine = MasteryStateMachine()
        state = machine.bootstrap(graph, ceiling=4)
        step = machine.next_learning_step(state, graph)
        machine.apply_outcome(state, graph, step.concept_id, Outcome.CORRECT)
    """

    def __init__(self, rules: MasteryRules | None = None):
        self.rules = rules or MasteryRules()

    def bootstrap(self, graph: ConceptGraph, ceiling: int = 4) -> ProgressionState:
        """Fresh state: every concept at difficulty 1, only level 1 unlocked."""
        return ProgressionState(
            graph_id=graph.id,
            mastery={cid: MasteryRecord() for cid in graph.ordered_concept_ids},
            current_concept_id=graph.first_concept_id,
            difficulty_ceiling=max(1, ceiling),
            unlocked_levels=[1],
            topic_completed=False,
        )

    def next_learning_step(self, state: ProgressionState, graph: ConceptGraph) -> LearningStep:
        """
        First unmastered concept in the unlocked levels.

        Levels are scanned by index and concepts in declared order.
        """
        if state.topic_completed:
            return LearningStep.complete()

        unlocked = set(state.unlocked_levels)
        for level in graph.levels:
            if level.index not in unlocked:
                continue
            for concept_id in level.concept_ids:
                record = state.mastery.get(concept_id)
                if record is None or record.mastered:
                    continue
                intent = LearningIntent.REMEDIATE if record.needs_remediation else LearningIntent.PRACTICE
                return LearningStep(
                    concept_id=concept_id,
                    difficulty=record.current_difficulty,
                    intent=intent,
                )
        return LearningStep.complete()

    def apply_outcome(
        self,
        state: ProgressionState,
        graph: ConceptGraph,
        concept_id: str,
        outcome: Outcome,
    ) -> None:
        """
        Update a concept's record for one graded outcome.

        Unknown concept ids are ignored. A concept that is already
        mastered keeps its phase but still updates counters and difficulty.
        """
        record = state.mastery.get(concept_id)
        if record is None:
            return

        outcome = Outcome(outcome)
        rules = self.rules
        ceiling = state.difficulty_ceiling
        record.attempt_count += 1
        remediate: bool | None = None  # None keeps the current flag

        if outcome == Outcome.CORRECT:
            record.correct_count += 1
            record.current_difficulty = _clamp(record.current_difficulty + rules.up_step, 1, ceiling)
            record.highest_difficulty_passed = max(
                record.highest_difficulty_passed, record.current_difficulty
            )
            record.last_outcome = LastOutcome.CORRECT
            remediate = False
        elif outcome == Outcome.INCORRECT:
            record.incorrect_count += 1
            record.current_difficulty = _clamp(record.current_difficulty - rules.down_step, 1, ceiling)
            record.last_outcome = LastOutcome.INCORRECT
            if record.incorrect_count >= rules.remediation_incorrect_threshold:
                remediate = True
        else:
            record.current_difficulty = _clamp(record.current_difficulty - rules.down_step, 1, ceiling)
            record.last_outcome = LastOutcome.AMBIGUOUS
            remediate = True

        if record.phase != MasteryPhase.MASTERED:
            if (
                record.correct_count >= rules.required_correct
                and record.highest_difficulty_passed >= rules.required_difficulty
            ):
                record.phase = MasteryPhase.MASTERED
            elif remediate is True:
                record.phase = MasteryPhase.REMEDIATING
            elif remediate is False:
                record.phase = MasteryPhase.PRACTICING

        state.current_concept_id = concept_id
        self._unlock_levels(state, graph)
        state.topic_completed = self._is_topic_completed(state, graph)

    def mastered_fraction(self, state: ProgressionState, graph: ConceptGraph, level_index: int) -> float:
        level = graph.level(level_index)
        if level is None:
            return 0.0
        records = [state.mastery.get(cid) for cid in level.concept_ids]
        mastered = sum(1 for rec in records if rec is not None and rec.mastered)
        return mastered / max(len(level.concept_ids), 1)

    def _unlock_levels(self, state: ProgressionState, graph: ConceptGraph) -> None:
        unlocked = set(state.unlocked_levels) | {1}
        for level in graph.levels:
            if level.index in unlocked:
                continue
            prior = graph.level(level.index - 1)
            if prior is None:
                continue
            if self.mastered_fraction(state, graph, prior.index) >= prior.unlock_threshold:
                unlocked.add(level.index)
        state.unlocked_levels = sorted(unlocked)

    def _is_topic_completed(self, state: ProgressionState, graph: ConceptGraph) -> bool:
        unlocked = set(state.unlocked_levels)
        for level in graph.levels:
            if level.index not in unlocked:
                continue
            for cid in level.concept_ids:
                record = state.mastery.get(cid)
                if record is not None and not record.mastered:
                    return False
        return True
