"""
Unit tests for the item generation orchestrator.

Tests:
- Accepted path and learner context recording
- Each rejection reason recorded in telemetry
- Retry exhaustion and the local fallback
- Telemetry sink failures never reach the caller

Run: pytest tests/unit/test_orchestrator.py -v
"""

import httpx
import pytest

from src.adaptive.learner_context import LearnerContext
from src.core.mastery import LearningIntent
from src.delivery.telemetry import InMemoryTelemetrySink
from src.generation.heuristic_rater import HeuristicRater
from src.generation.local_generator import LocalItemGenerator
from src.generation.orchestrator import ItemGenerationOrchestrator

CONCEPT = "tri.structure.hypotenuse"


class ScriptedGenerator:
    """Returns (or raises) the scripted results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedRater:
    def __init__(self, *results):
        self.results = list(results)

    async def rate(self, item, grade):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class BrokenSink:
    def emit(self, entry):
        raise OSError("disk full")


@pytest.fixture
def sink():
    return InMemoryTelemetrySink()


def make_orchestrator(generator, rater, sink, **kwargs):
    return ItemGenerationOrchestrator(generator=generator, rater=rater, telemetry=sink, **kwargs)


class TestAcceptedPath:
    @pytest.mark.asyncio
    async def test_first_attempt_accepted(self, sink, sample_item, rating_factory):
        orchestrator = make_orchestrator(ScriptedGenerator(sample_item), ScriptedRater(rating_factory(overall=2)), sink)
        context = LearnerContext()

        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE, learner_context=context)

        assert item.bundle_id == sample_item.item_id
        assert item.difficulty == 2
        assert item.intent == "practice"
        assert not item.fallback_used
        assert [e.reason for e in sink.entries] == ["accepted"]
        assert sink.entries[0].accepted
        assert sink.entries[0].rated_overall == 2
        assert list(context.recent_concept_ids) == [CONCEPT]

    @pytest.mark.asyncio
    async def test_request_carries_target_and_allowed_types(self, sink, sample_item, rating_factory):
        generator = ScriptedGenerator(sample_item)
        orchestrator = make_orchestrator(generator, ScriptedRater(rating_factory(overall=1)), sink)

        await orchestrator.generate_item(CONCEPT, 2, "remediate")

        request = generator.requests[0]
        assert request.concept_id == CONCEPT
        assert request.requested_difficulty == 2
        assert request.allowed_interaction_types == ["highlight", "multiple_choice"]
        assert request.target.band == (1, 3)
        assert request.to_dict()["target_direction"] == "easier"

    @pytest.mark.asyncio
    async def test_local_pipeline_accepts_without_fallback(self, sink):
        orchestrator = make_orchestrator(LocalItemGenerator(), HeuristicRater(), sink)

        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)

        assert not item.fallback_used
        assert item.concept_id == CONCEPT
        assert sink.entries[-1].reason == "accepted"

    @pytest.mark.asyncio
    async def test_direction_only_target(self, sink, sample_item, rating_factory):
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item, sample_item),
            ScriptedRater(rating_factory(overall=2), rating_factory(overall=3)),
            sink,
            use_band=False,
        )

        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.ASSESS)

        assert item.difficulty == 3
        assert [e.reason for e in sink.entries] == ["difficulty_miss", "accepted"]


class TestRejections:
    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, sink, sample_item, rating_factory):
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item), ScriptedRater(rating_factory(overall=7)), sink, max_retries=0
        )
        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)

        assert sink.entries[0].reason == "rating_invalid:range"
        assert sink.entries[0].violations == ["range"]

    @pytest.mark.asyncio
    async def test_grade_fit_rejected(self, sink, sample_item, rating_factory):
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item), ScriptedRater(rating_factory(overall=2, ok=False)), sink, max_retries=0
        )
        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert sink.entries[0].reason == "grade_fit_rejected"

    @pytest.mark.asyncio
    async def test_flagged_rating(self, sink, sample_item, rating_factory):
        rating = rating_factory(overall=2, contains_trig=True)
        orchestrator = make_orchestrator(ScriptedGenerator(sample_item), ScriptedRater(rating), sink, max_retries=0)
        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert sink.entries[0].reason == "flagged:contains_trig"

    @pytest.mark.asyncio
    async def test_rater_error(self, sink, sample_item):
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item), ScriptedRater(RuntimeError("rater down")), sink, max_retries=0
        )
        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert sink.entries[0].reason == "error:RuntimeError"

    @pytest.mark.asyncio
    async def test_novelty_violation(self, sink, sample_item, rating_factory):
        context = LearnerContext()
        context.record(sample_item)
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item), ScriptedRater(rating_factory()), sink, max_retries=0
        )

        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE, learner_context=context)

        assert sink.entries[0].reason == "novelty_violation"


class TestFallback:
    @pytest.mark.asyncio
    async def test_retries_exhausted_uses_fallback(self, sink, item_factory, sample_item, rating_factory):
        generator = ScriptedGenerator(
            item_factory(schema_version="m3.question_spec.v1"),
            sample_item,
            httpx.ConnectError("connection refused"),
        )
        orchestrator = make_orchestrator(generator, ScriptedRater(rating_factory(overall=4)), sink, max_retries=2)

        item = await orchestrator.generate_item(CONCEPT, 1, LearningIntent.PRACTICE)

        assert item.fallback_used
        assert item.bundle_id.startswith("fallback.")
        assert item.concept_id == CONCEPT
        assert item.difficulty == 1
        assert [e.reason for e in sink.entries] == ["schema", "difficulty_miss", "error:ConnectError", "fallback"]
        assert [e.attempt for e in sink.entries] == [0, 1, 2, 2]
        assert sink.entries[0].violations == ["schema"]
        assert sink.entries[1].rated_overall == 4
        last = sink.entries[-1]
        assert last.fallback_used
        assert not last.accepted
        assert len({e.request_id for e in sink.entries}) == 1

    @pytest.mark.asyncio
    async def test_attempt_count_is_one_plus_retries(self, sink):
        generator = ScriptedGenerator(*[RuntimeError("boom")] * 4)
        orchestrator = make_orchestrator(generator, ScriptedRater(), sink, max_retries=3)

        await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)

        assert len(generator.requests) == 4
        assert sink.entries[-1].reason == "fallback"

    @pytest.mark.asyncio
    async def test_fallback_item_is_valid_and_recorded(self, sink, validator):
        context = LearnerContext()
        orchestrator = make_orchestrator(ScriptedGenerator(RuntimeError("boom")), ScriptedRater(), sink, max_retries=0)

        item = await orchestrator.generate_item("tri.pyth.solve_missing_side", 3, "assess", learner_context=context)

        allowed = ["multiple_choice", "numeric_input"]
        assert validator.validate_structure(item.spec, "tri.pyth.solve_missing_side", allowed).is_valid
        assert list(context.recent_concept_ids) == ["tri.pyth.solve_missing_side"]

    @pytest.mark.asyncio
    async def test_each_call_gets_its_own_request_id(self, sink):
        orchestrator = make_orchestrator(
            ScriptedGenerator(RuntimeError("a"), RuntimeError("b")), ScriptedRater(), sink, max_retries=0
        )
        await orchestrator.generate_item(CONCEPT, 1, LearningIntent.PRACTICE)
        await orchestrator.generate_item(CONCEPT, 1, LearningIntent.PRACTICE)

        request_ids = [e.request_id for e in sink.entries if e.reason == "fallback"]
        assert len(set(request_ids)) == 2
        assert len(sink.for_request(request_ids[0])) == 2


class TestTelemetryFailures:
    @pytest.mark.asyncio
    async def test_broken_sink_is_ignored(self, sample_item, rating_factory):
        orchestrator = make_orchestrator(
            ScriptedGenerator(sample_item), ScriptedRater(rating_factory()), BrokenSink()
        )
        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert not item.fallback_used

    @pytest.mark.asyncio
    async def test_broken_sink_during_fallback(self):
        orchestrator = make_orchestrator(ScriptedGenerator(RuntimeError("x")), ScriptedRater(), BrokenSink(), max_retries=0)
        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert item.fallback_used

    @pytest.mark.asyncio
    async def test_no_sink(self, sample_item, rating_factory):
        orchestrator = make_orchestrator(ScriptedGenerator(sample_item), ScriptedRater(rating_factory()), None)
        item = await orchestrator.generate_item(CONCEPT, 2, LearningIntent.PRACTICE)
        assert item.bundle_id == sample_item.item_id
