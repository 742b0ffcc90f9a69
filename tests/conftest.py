"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.adaptive.learner_context import LearnerContext
from src.core.mastery import MasteryStateMachine
from src.curriculum.triangles import TRIANGLES_GRADE6
from src.generation.item_validator import ItemSpecValidator
from src.generation.local_generator import LocalItemGenerator
from src.generation.schemas import (
    ITEM_SCHEMA_VERSION,
    RATING_SCHEMA_VERSION,
    AssessmentContract,
    DiagramPoint,
    DiagramSpec,
    DifficultyRating,
    ExpectedAnswer,
    ItemSpec,
    ResponseContract,
    ResponseOption,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def graph():
    return TRIANGLES_GRADE6


@pytest.fixture
def machine():
    return MasteryStateMachine()


@pytest.fixture
def validator():
    return ItemSpecValidator()


@pytest.fixture
def local_generator(validator):
    return LocalItemGenerator(validator=validator)


@pytest.fixture
def learner_context():
    return LearnerContext()


def build_item(**overrides) -> ItemSpec:
    """A valid multiple-choice hypotenuse item; override any field."""
    answer = ExpectedAnswer(kind="option_id", value="c")
    options = [
        ResponseOption(id="a", text="Side AB"),
        ResponseOption(id="b", text="Side AC"),
        ResponseOption(id="c", text="Side BC"),
    ]
    fields = dict(
        schema_version=ITEM_SCHEMA_VERSION,
        item_id="test.hypotenuse.1",
        question_family="hypotenuse.mc.test",
        concept_id="tri.structure.hypotenuse",
        grade=6,
        interaction_type="multiple_choice",
        diagram=DiagramSpec(
            type="triangle",
            points=[DiagramPoint("A", 0.2, 0.8), DiagramPoint("B", 0.85, 0.8), DiagramPoint("C", 0.2, 0.3)],
            right_angle_at="A",
        ),
        prompt="The right angle of triangle ABC is at vertex A. Which side is the hypotenuse?",
        hint="The hypotenuse is the side across from the right angle and never touches that corner.",
        explanation="Side BC does not touch vertex A, so it lies opposite the right angle and is the hypotenuse.",
        real_world_connection="Roof builders measure the sloping hypotenuse of each rafter triangle.",
        response_contract=ResponseContract(mode="multiple_choice", answer=answer, options=options),
        assessment_contract=AssessmentContract(
            interaction_type="multiple_choice",
            objective_type="identify_segment",
            answer_schema="enum",
            grading_strategy_id="deterministic_rule",
            feedback_policy_id="fp.choice_explain",
            expected_answer=ExpectedAnswer(kind="option_id", value="c"),
            options=options,
        ),
        generator_self_rating=2,
    )
    fields.update(overrides)
    return ItemSpec(**fields)


def build_rating(overall=2, ok=True, **flags) -> DifficultyRating:
    return DifficultyRating(
        schema_version=RATING_SCHEMA_VERSION,
        overall=overall,
        dimensions={"visual": 2, "language": 2, "reasoning_steps": 2, "numeric": 1},
        grade_fit_ok=ok,
        grade_fit_notes="",
        flags=dict(flags),
    )


@pytest.fixture
def item_factory():
    """Build a valid multiple-choice item, overriding any field."""
    return build_item


@pytest.fixture
def rating_factory():
    return build_rating


@pytest.fixture
def sample_item():
    return build_item()
