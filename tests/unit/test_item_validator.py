"""
Unit tests for the item validator.

Tests:
- Structural checks (schema, grade cap, ontology, interaction, diagram, contracts)
- Concept semantics and whole-word matching
- Generic repetition
- Rating validation

Run: pytest tests/unit/test_item_validator.py -v
"""

from dataclasses import replace

import pytest

from src.generation.item_validator import contains_phrase
from src.generation.schemas import (
    AssessmentContract,
    DiagramPoint,
    DiagramSpec,
    DifficultyRating,
    ExpectedAnswer,
    ResponseContract,
    ResponseOption,
)

CONCEPT = "tri.structure.hypotenuse"
ALLOWED = ["highlight", "multiple_choice"]


def tags(validator, item, concept=CONCEPT, allowed=ALLOWED):
    return validator.validate(item, concept, allowed).tags


class TestStructure:
    def test_valid_item_passes(self, validator, sample_item):
        result = validator.validate(sample_item, CONCEPT, ALLOWED)
        assert result.is_valid, result.issues

    def test_wrong_schema_version(self, validator, item_factory):
        assert "schema" in tags(validator, item_factory(schema_version="m3.question_spec.v1"))

    def test_wrong_grade(self, validator, item_factory):
        assert "grade_cap" in tags(validator, item_factory(grade=8))

    @pytest.mark.parametrize("word", ["sine", "tan", "proof", "irrational"])
    def test_forbidden_keyword(self, validator, item_factory, word):
        item = item_factory(real_world_connection=f"Engineers use {word} in their work on hypotenuse roofs.")
        assert "grade_cap" in tags(validator, item)

    def test_concept_outside_ontology(self, validator, item_factory):
        item = item_factory(concept_id="tri.advanced.law_of_cosines")
        assert "ontology" in tags(validator, item)

    def test_concept_differs_from_requested(self, validator, sample_item):
        assert "ontology" in tags(validator, sample_item, concept="tri.structure.legs")

    def test_interaction_not_allowed(self, validator, sample_item):
        assert "interaction_not_allowed" in tags(validator, sample_item, allowed=["highlight"])

    def test_degenerate_diagram(self, validator, item_factory):
        flat = DiagramSpec(
            type="triangle",
            points=[DiagramPoint("A", 0.1, 0.5), DiagramPoint("B", 0.5, 0.5), DiagramPoint("C", 0.9, 0.5)],
        )
        assert "diagram_degenerate" in tags(validator, item_factory(diagram=flat))

    def test_diagram_outside_unit_square(self, validator, item_factory):
        diagram = DiagramSpec(
            type="triangle",
            points=[DiagramPoint("A", 0.1, 0.5), DiagramPoint("B", 1.5, 0.5), DiagramPoint("C", 0.4, 0.1)],
        )
        assert "diagram_invalid" in tags(validator, item_factory(diagram=diagram))

    def test_diagram_missing_vertex(self, validator, item_factory):
        diagram = DiagramSpec(type="triangle", points=[DiagramPoint("A", 0.1, 0.5), DiagramPoint("B", 0.5, 0.9)])
        assert "diagram_invalid" in tags(validator, item_factory(diagram=diagram))

    def test_answer_not_among_options(self, validator, sample_item):
        contract = replace(sample_item.response_contract, answer=ExpectedAnswer("option_id", "z"))
        assessment = replace(sample_item.assessment_contract, expected_answer=ExpectedAnswer("option_id", "z"))
        item = replace(sample_item, response_contract=contract, assessment_contract=assessment)
        assert "answer_mismatch" in tags(validator, item)

    def test_mode_disagrees_with_interaction(self, validator, sample_item):
        contract = replace(sample_item.response_contract, mode="numeric_input")
        assert "answer_mismatch" in tags(validator, replace(sample_item, response_contract=contract))

    def test_missing_assessment_contract(self, validator, item_factory):
        assert "assessment_contract_missing" in tags(validator, item_factory(assessment_contract=None))

    def test_blank_contract_field(self, validator, sample_item):
        contract = replace(sample_item.assessment_contract, feedback_policy_id="  ")
        assert "assessment_contract_missing" in tags(validator, replace(sample_item, assessment_contract=contract))

    def test_contract_expected_answer_mismatch(self, validator, sample_item):
        contract = replace(sample_item.assessment_contract, expected_answer=ExpectedAnswer("option_id", "a"))
        assert "assessment_contract_invalid" in tags(validator, replace(sample_item, assessment_contract=contract))

    def test_contract_schema_does_not_fit_interaction(self, validator, sample_item):
        contract = replace(sample_item.assessment_contract, answer_schema="numeric_with_tolerance")
        assert "assessment_contract_invalid" in tags(validator, replace(sample_item, assessment_contract=contract))

    def test_contract_schema_does_not_fit_objective(self, validator, sample_item):
        contract = replace(sample_item.assessment_contract, objective_type="classify_triangle", answer_schema="expression_equivalence")
        assert "assessment_contract_invalid" in tags(validator, replace(sample_item, assessment_contract=contract))

    def test_strategy_not_allowed_for_concept(self, validator, item_factory):
        options = [
            ResponseOption("a", "a + b = c"),
            ResponseOption("b", "a² + b² = c²"),
            ResponseOption("c", "a² + c² = b²"),
        ]
        answer = ExpectedAnswer("option_id", "b")
        item = item_factory(
            concept_id="tri.pyth.equation_a2_b2_c2",
            prompt="Legs a and b meet at the right angle and c is the hypotenuse. Which equation is the Pythagorean theorem?",
            response_contract=ResponseContract(mode="multiple_choice", answer=answer, options=options),
            assessment_contract=AssessmentContract(
                interaction_type="multiple_choice",
                objective_type="select_equation",
                answer_schema="enum",
                grading_strategy_id="vision_locator",
                feedback_policy_id="fp.choice_explain",
                expected_answer=answer,
                options=options,
            ),
        )
        result = validator.validate(item, "tri.pyth.equation_a2_b2_c2", ["multiple_choice", "numeric_input"])
        assert "grading_strategy_not_allowed" in result.tags

    def test_numeric_answer_must_parse(self, validator, item_factory):
        answer = ExpectedAnswer("number", "five")
        item = item_factory(
            concept_id="tri.pyth.square_numbers_refresher",
            interaction_type="numeric_input",
            response_contract=ResponseContract(mode="numeric_input", answer=answer),
            assessment_contract=AssessmentContract(
                interaction_type="numeric_input",
                objective_type="compute_value",
                answer_schema="numeric_with_tolerance",
                grading_strategy_id="deterministic_rule",
                feedback_policy_id="fp.numeric_bounded",
                expected_answer=answer,
            ),
        )
        result = validator.validate(item, "tri.pyth.square_numbers_refresher", ["multiple_choice", "numeric_input"])
        assert "answer_mismatch" in result.tags

    def test_all_violations_reported(self, validator, item_factory):
        item = item_factory(schema_version="old", grade=7, assessment_contract=None)
        found = tags(validator, item, allowed=["highlight"])
        assert {"schema", "grade_cap", "interaction_not_allowed", "assessment_contract_missing"} <= set(found)


class TestSemantics:
    def test_missing_required_signal(self, validator, item_factory):
        item = item_factory(
            prompt="Which side of triangle ABC is the longest one across from vertex A?",
            hint="Look for the side that does not touch the marked corner of the triangle.",
            explanation="Side BC is across from vertex A and is the longest side here.",
        )
        assert "concept_mismatch" in validator.validate_semantics(item).tags

    def test_forbidden_signal(self, validator, item_factory):
        item = item_factory(explanation="By Pythagoras the hypotenuse BC is across from the right angle at A.")
        assert "concept_mismatch" in validator.validate_semantics(item).tags

    def test_missing_side_does_not_trip_trig(self, validator, item_factory):
        answer = ExpectedAnswer("number", "5")
        item = item_factory(
            concept_id="tri.pyth.solve_missing_side",
            interaction_type="numeric_input",
            prompt="Right triangle ABC has legs 3 cm and 4 cm. Use Pythagoras to find the missing side using squares.",
            hint="Square both legs, add them, then find the number that multiplies by itself to make the total.",
            explanation="3² + 4² = 9 + 16 = 25, and 5 × 5 = 25, so the missing side is 5 cm.",
            response_contract=ResponseContract(mode="numeric_input", answer=answer),
            assessment_contract=None,
        )
        assert validator.validate_semantics(item).is_valid

    def test_concept_without_rule_only_checks_repetition(self, validator, item_factory):
        item = item_factory(concept_id="tri.pyth.square_numbers_refresher")
        assert validator.validate_semantics(item).is_valid

    def test_identical_blocks_are_generic(self, validator, item_factory):
        text = "The hypotenuse is across from the right angle in triangle ABC."
        item = item_factory(prompt=text, hint=text, explanation=text)
        assert "generic_repetition" in validator.validate_semantics(item).tags

    def test_too_few_distinct_words_is_generic(self, validator, item_factory):
        item = item_factory(prompt="Right angle hypotenuse?", hint="The hypotenuse.", explanation="Right angle.")
        assert "generic_repetition" in validator.validate_semantics(item).tags


class TestContainsPhrase:
    @pytest.mark.parametrize(
        "pool,phrase,expected",
        [
            ("using the missing side", "sin", False),
            ("find sin of the angle", "sin", True),
            ("a²+b² c²", "a² + b²", True),
            ("the right angle is at b", "right angle", True),
            ("a right angled triangle", "right angle", False),
            ("hypotenuse only", "", False),
        ],
    )
    def test_whole_word_match(self, pool, phrase, expected):
        assert contains_phrase(pool, phrase) is expected


class TestRatingValidation:
    def test_valid_rating(self, validator, rating_factory):
        assert validator.validate_rating(rating_factory()).is_valid

    def test_wrong_schema(self, validator, rating_factory):
        rating = replace(rating_factory(), schema_version="m3.difficulty_rating.v0")
        assert validator.validate_rating(rating).tags == ["schema"]

    @pytest.mark.parametrize("overall", [0, 5, 2.5, "2", True, None])
    def test_overall_out_of_range(self, validator, rating_factory, overall):
        assert "range" in validator.validate_rating(rating_factory(overall=overall)).tags

    def test_missing_dimension(self, validator):
        rating = DifficultyRating(
            schema_version="m3.difficulty_rating.v1",
            overall=2,
            dimensions={"visual": 2, "language": 2, "reasoning_steps": 2},
            grade_fit_ok=True,
        )
        result = validator.validate_rating(rating)
        assert [issue.field for issue in result.issues] == ["numeric"]

    def test_from_dict_keeps_raw_values(self):
        rating = DifficultyRating.from_dict(
            {
                "schema_version": "m3.difficulty_rating.v1",
                "overall": "3",
                "dimensions": {"visual": 1},
                "grade_fit": {"ok": True, "notes": "fine"},
                "flags": {"contains_trig": True, "unknown_flag": True},
            }
        )
        assert rating.overall == "3"
        assert rating.raised_flags == ["contains_trig"]
        assert rating.grade_fit_notes == "fine"
