"""
Unit tests for the mastery state machine.

Tests:
- Bootstrap state
- Next learning step selection and intents
- Difficulty movement, remediation and mastery transitions
- Level unlocking and topic completion
- Invariants over random outcome streams

Run: pytest tests/unit/test_mastery_state_machine.py -v
"""

import random

import pytest

from src.core.mastery import (
    LastOutcome,
    LearningIntent,
    MasteryPhase,
    MasteryRecord,
    MasteryRules,
    MasteryStateMachine,
    Outcome,
    ProgressionState,
)

FIRST = "tri.basics.identify_right_angle"
SECOND = "tri.basics.identify_right_triangle"
LEVEL_ONE = (FIRST, SECOND, "tri.basics.vertices_sides_angles")


def master(machine, state, graph, concept_id):
    for _ in range(3):
        machine.apply_outcome(state, graph, concept_id, Outcome.CORRECT)


class TestBootstrap:
    def test_fresh_state(self, machine, graph):
        state = machine.bootstrap(graph, ceiling=4)

        assert state.graph_id == graph.id
        assert state.unlocked_levels == [1]
        assert state.current_concept_id == FIRST
        assert not state.topic_completed
        assert set(state.mastery) == set(graph.ordered_concept_ids)
        assert all(rec.current_difficulty == 1 for rec in state.mastery.values())
        assert all(rec.phase == MasteryPhase.PRACTICING for rec in state.mastery.values())

    def test_ceiling_at_least_one(self, machine, graph):
        assert machine.bootstrap(graph, ceiling=0).difficulty_ceiling == 1


class TestNextLearningStep:
    def test_first_step_is_first_concept(self, machine, graph):
        state = machine.bootstrap(graph)
        step = machine.next_learning_step(state, graph)

        assert step.concept_id == FIRST
        assert step.difficulty == 1
        assert step.intent == LearningIntent.PRACTICE
        assert not step.is_complete

    def test_skips_mastered_concepts(self, machine, graph):
        state = machine.bootstrap(graph)
        master(machine, state, graph, FIRST)

        assert machine.next_learning_step(state, graph).concept_id == SECOND

    def test_remediation_intent(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)

        step = machine.next_learning_step(state, graph)
        assert step.concept_id == FIRST
        assert step.intent == LearningIntent.REMEDIATE

    def test_locked_levels_are_not_offered(self, machine, graph):
        state = machine.bootstrap(graph)
        master(machine, state, graph, FIRST)
        master(machine, state, graph, SECOND)

        step = machine.next_learning_step(state, graph)
        assert step.concept_id == "tri.basics.vertices_sides_angles"
        assert state.unlocked_levels == [1]


class TestApplyOutcome:
    def test_correct_raises_difficulty(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        record = state.mastery[FIRST]

        assert record.current_difficulty == 2
        assert record.highest_difficulty_passed == 2
        assert record.correct_count == 1
        assert record.attempt_count == 1
        assert record.last_outcome == LastOutcome.CORRECT

    def test_incorrect_lowers_difficulty_and_remediates(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        record = state.mastery[FIRST]

        assert record.current_difficulty == 1
        assert record.incorrect_count == 1
        assert record.phase == MasteryPhase.REMEDIATING

    def test_difficulty_floor(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        assert state.mastery[FIRST].current_difficulty == 1

    def test_ambiguous_remediates_without_counting(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.AMBIGUOUS)
        record = state.mastery[FIRST]

        assert record.phase == MasteryPhase.REMEDIATING
        assert record.correct_count == 0
        assert record.incorrect_count == 0
        assert record.attempt_count == 1
        assert record.last_outcome == LastOutcome.AMBIGUOUS

    def test_correct_clears_remediation(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        assert state.mastery[FIRST].phase == MasteryPhase.PRACTICING

    def test_three_correct_masters(self, machine, graph):
        state = machine.bootstrap(graph)
        master(machine, state, graph, FIRST)
        record = state.mastery[FIRST]

        assert record.mastered
        assert record.highest_difficulty_passed == 4
        assert record.current_difficulty == 4

    def test_mastery_needs_required_difficulty(self, graph):
        machine = MasteryStateMachine(MasteryRules(required_correct=2, required_difficulty=4))
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        assert not state.mastery[FIRST].mastered

        machine.apply_outcome(state, graph, FIRST, Outcome.CORRECT)
        assert state.mastery[FIRST].mastered

    def test_mastered_concept_stays_mastered(self, machine, graph):
        state = machine.bootstrap(graph)
        master(machine, state, graph, FIRST)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        record = state.mastery[FIRST]

        assert record.mastered
        assert record.incorrect_count == 1
        assert record.current_difficulty == 3

    def test_unknown_concept_is_ignored(self, machine, graph):
        state = machine.bootstrap(graph)
        before = state.to_dict()
        machine.apply_outcome(state, graph, "tri.unknown", Outcome.CORRECT)
        assert state.to_dict() == before

    def test_remediation_threshold(self, graph):
        machine = MasteryStateMachine(MasteryRules(remediation_incorrect_threshold=2))
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        assert state.mastery[FIRST].phase == MasteryPhase.PRACTICING

        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        assert state.mastery[FIRST].phase == MasteryPhase.REMEDIATING


class TestUnlockingAndCompletion:
    def test_level_two_unlocks_after_level_one(self, machine, graph):
        state = machine.bootstrap(graph)
        for concept_id in LEVEL_ONE:
            master(machine, state, graph, concept_id)

        assert state.unlocked_levels == [1, 2]
        assert machine.next_learning_step(state, graph).concept_id == "tri.structure.hypotenuse"

    def test_mastered_fraction(self, machine, graph):
        state = machine.bootstrap(graph)
        master(machine, state, graph, FIRST)
        assert machine.mastered_fraction(state, graph, 1) == pytest.approx(1 / 3)
        assert machine.mastered_fraction(state, graph, 99) == 0.0

    def test_topic_completes(self, machine, graph):
        state = machine.bootstrap(graph)
        for concept_id in graph.ordered_concept_ids:
            master(machine, state, graph, concept_id)

        assert state.topic_completed
        assert state.unlocked_levels == [1, 2, 3, 4, 5]
        step = machine.next_learning_step(state, graph)
        assert step.is_complete
        assert step.concept_id is None


class TestSerialization:
    def test_round_trip(self, machine, graph):
        state = machine.bootstrap(graph)
        machine.apply_outcome(state, graph, FIRST, Outcome.INCORRECT)
        restored = ProgressionState.from_dict(state.to_dict())

        assert restored.to_dict() == state.to_dict()
        assert restored.mastery[FIRST].phase == MasteryPhase.REMEDIATING

    def test_from_dict_clamps_difficulty_and_keeps_level_one(self):
        state = ProgressionState.from_dict(
            {
                "graph_id": "g",
                "mastery": {"x": {"current_difficulty": 9}},
                "difficulty_ceiling": 4,
                "unlocked_levels": [3],
            }
        )
        assert state.mastery["x"].current_difficulty == 4
        assert state.unlocked_levels == [1, 3]

    def test_record_defaults(self):
        record = MasteryRecord.from_dict({}, ceiling=4)
        assert record.phase == MasteryPhase.PRACTICING
        assert record.last_outcome == LastOutcome.NONE


class TestRandomOutcomeStreams:
    """Invariants that must hold for any sequence of outcomes."""

    @pytest.mark.parametrize("seed", range(20))
    def test_invariants_hold(self, machine, graph, seed):
        rng = random.Random(seed)
        state = machine.bootstrap(graph, ceiling=4)
        mastered_so_far: set[str] = set()
        attempts = 0

        for _ in range(300):
            step = machine.next_learning_step(state, graph)
            if step.is_complete:
                break
            outcome = rng.choices(
                [Outcome.CORRECT, Outcome.INCORRECT, Outcome.AMBIGUOUS], weights=[6, 2, 1]
            )[0]
            machine.apply_outcome(state, graph, step.concept_id, outcome)
            attempts += 1

            for cid, record in state.mastery.items():
                assert 1 <= record.current_difficulty <= state.difficulty_ceiling
                assert not (record.mastered and record.needs_remediation)
                if record.mastered:
                    mastered_so_far.add(cid)
            assert all(state.mastery[cid].mastered for cid in mastered_so_far)

            assert state.unlocked_levels[0] == 1
            assert state.unlocked_levels == sorted(set(state.unlocked_levels))
            for index in state.unlocked_levels:
                if index > 1:
                    assert machine.mastered_fraction(state, graph, index - 1) == 1.0

        assert sum(rec.attempt_count for rec in state.mastery.values()) == attempts
