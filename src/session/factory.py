"""
Wiring from settings.

Picks the remote item service when one is configured and the local
generator and rater otherwise. The CLI and the API both build their
tutor through build_tutor_session().
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from config import Settings, get_settings
from src.core.mastery import MasteryRules, MasteryStateMachine
from src.curriculum.policies import get_policy_provider
from src.delivery.telemetry import TelemetrySink, build_default_sink, close_sink
from src.generation.heuristic_rater import HeuristicRater
from src.generation.item_validator import ItemSpecValidator
from src.generation.local_generator import LocalItemGenerator
from src.generation.orchestrator import ItemGenerationOrchestrator
from src.grading.delegates import KeywordRubricEvaluator, RubricEvaluator, VisualTargetLocator
from src.integrations.item_service_client import (
    ItemServiceClient,
    RemoteDifficultyRater,
    RemoteItemGenerator,
    RemoteRubricEvaluator,
    RemoteVisualLocator,
)
from src.session.session_store import SessionStore
from src.session.tutor_session import TutorSession


@dataclass
class TutorComponents:
    orchestrator: ItemGenerationOrchestrator
    visual_locator: VisualTargetLocator | None
    rubric_evaluator: RubricEvaluator
    client: ItemServiceClient | None = None

    async def close(self) -> None:
        close_sink(self.orchestrator.telemetry)
        if self.client is not None:
            await self.client.close()


def build_components(
    settings: Settings | None = None,
    telemetry: TelemetrySink | None = None,
    use_item_service: bool = True,
) -> TutorComponents:
    """
    Build the orchestrator and grading delegates.

    Args:
        settings: Settings to use (cached settings by default)
        telemetry: Sink override; defaults to logging plus optional JSONL
        use_item_service: False forces the local generator and rater
    """
    settings = settings or get_settings()
    policies = get_policy_provider()
    validator = ItemSpecValidator(
        policies=policies,
        grade=settings.grade,
        novelty_window=settings.novelty_window,
        repeat_limit=settings.novelty_repeat_limit,
    )
    local = LocalItemGenerator(policies=policies, validator=validator, grade=settings.grade)
    fallback = LocalItemGenerator(policies=policies, validator=validator, grade=settings.grade, id_prefix="fallback")

    client = None
    if use_item_service and settings.has_item_service():
        logger.info(f"Using item service at {settings.item_service_url}")
        client = ItemServiceClient(settings.item_service_url, timeout_ms=settings.item_service_timeout_ms)
        generator, rater = RemoteItemGenerator(client), RemoteDifficultyRater(client)
        visual: VisualTargetLocator | None = RemoteVisualLocator(client)
        rubric: RubricEvaluator = RemoteRubricEvaluator(client)
    else:
        generator, rater = local, HeuristicRater()
        visual, rubric = None, KeywordRubricEvaluator()

    orchestrator = ItemGenerationOrchestrator(
        generator=generator,
        rater=rater,
        fallback=fallback,
        validator=validator,
        telemetry=telemetry if telemetry is not None else build_default_sink(settings.telemetry_dir),
        policies=policies,
        max_retries=settings.max_retries,
        grade=settings.grade,
        ceiling=settings.difficulty_ceiling,
        use_band=settings.use_difficulty_band,
    )
    return TutorComponents(orchestrator=orchestrator, visual_locator=visual, rubric_evaluator=rubric, client=client)


def build_session_store(settings: Settings | None = None) -> SessionStore:
    settings = settings or get_settings()
    return SessionStore(
        settings.session_path,
        grade=settings.grade,
        ceiling=settings.difficulty_ceiling,
        history_size=settings.learner_history_size,
        machine=MasteryStateMachine(MasteryRules.from_settings(settings)),
    )


def build_tutor_session(
    settings: Settings | None = None,
    telemetry: TelemetrySink | None = None,
    use_item_service: bool = True,
) -> tuple[TutorSession, TutorComponents]:
    """Tutor session plus the components that own closable resources."""
    settings = settings or get_settings()
    components = build_components(settings, telemetry=telemetry, use_item_service=use_item_service)
    tutor = TutorSession(
        build_session_store(settings),
        components.orchestrator,
        visual_locator=components.visual_locator,
        rubric_evaluator=components.rubric_evaluator,
        ambiguity_threshold=settings.visual_ambiguity_threshold,
    )
    return tutor, components
