"""
Item Generation Orchestrator.

Runs the generate -> validate -> rate -> accept loop for one concept:

1. Derive the difficulty target and the concept's interaction types
2. Up to 1 + max_retries sequential attempts; each failure is recorded
   in telemetry and the next attempt starts
3. When every attempt fails, return a deterministic local item

generate_item() never raises for generator or rater failures and always
returns an item.
"""

from __future__ import annotations

import uuid

from loguru import logger

from src.adaptive.difficulty_targeting import DifficultyTarget, target_for
from src.adaptive.learner_context import LearnerContext
from src.core.mastery import LearningIntent
from src.curriculum.policies import ConceptPolicyProvider, get_policy_provider
from src.delivery.telemetry import PipelineTelemetry, TelemetrySink, emit_safely
from src.generation.capabilities import DifficultyRater, GenerationRequest, ItemGenerator
from src.generation.item_validator import ItemSpecValidator
from src.generation.local_generator import LocalItemGenerator
from src.generation.schemas import DifficultyRating, PresentedItem


class ItemGenerationOrchestrator:
    """
    Obtains one accepted item per call.

    Usage:
        orchestrator = ItemGenerationOrchestrator(generator, rater)
        item = await orchestrator.generate_item("tri.structure.hypotenuse", 2, "practice")
    """

    def __init__(
        self,
        generator: ItemGenerator,
        rater: DifficultyRater,
        fallback: LocalItemGenerator | None = None,
        validator: ItemSpecValidator | None = None,
        telemetry: TelemetrySink | None = None,
        policies: ConceptPolicyProvider | None = None,
        max_retries: int = 2,
        grade: int = 6,
        ceiling: int = 4,
        use_band: bool = True,
    ):
        self.policies = policies or get_policy_provider()
        self.generator = generator
        self.rater = rater
        self.validator = validator or ItemSpecValidator(policies=self.policies, grade=grade)
        self.fallback = fallback or LocalItemGenerator(
            policies=self.policies, validator=self.validator, grade=grade, id_prefix="fallback"
        )
        self.telemetry = telemetry
        self.max_retries = max(0, max_retries)
        self.grade = grade
        self.ceiling = ceiling
        self.use_band = use_band

    async def generate_item(
        self,
        concept_id: str,
        requested_difficulty: int,
        intent: LearningIntent | str,
        learner_context: LearnerContext | None = None,
    ) -> PresentedItem:
        """
        Generate, validate and rate until an item is accepted.

        Args:
            concept_id: Concept the item must teach
            requested_difficulty: Concept's current difficulty
            intent: teach, practice, remediate or assess
            learner_context: Recent history; accepted items are recorded into it

        Returns:
            PresentedItem (fallback_used=True when the local fallback was used)
        """
        intent = LearningIntent(intent)
        requested = max(1, min(self.ceiling, int(requested_difficulty)))
        target = target_for(intent, requested, ceiling=self.ceiling, use_band=self.use_band)
        allowed = self.policies.allowed_interaction_types(concept_id)
        request_id = uuid.uuid4().hex[:12]
        request = GenerationRequest(
            concept_id=concept_id,
            grade=self.grade,
            target=target,
            requested_difficulty=requested,
            allowed_interaction_types=allowed,
            learner_context=learner_context if learner_context is not None else LearnerContext(),
            intent=intent.value,
        )

        for attempt in range(self.max_retries + 1):
            accepted = await self._attempt(request, request_id, attempt, target, learner_context)
            if accepted is not None:
                return accepted

        logger.warning(f"[{request_id}] {concept_id}: all {self.max_retries + 1} attempts failed, using fallback")
        spec = self.fallback.build_item(concept_id, requested, allowed, context=learner_context)
        self._emit(request_id, concept_id, self.max_retries, "fallback", fallback_used=True)
        if learner_context is not None:
            learner_context.record(spec)
        return PresentedItem.from_spec(spec, requested, intent.value, fallback_used=True)

    async def _attempt(
        self,
        request: GenerationRequest,
        request_id: str,
        attempt: int,
        target: DifficultyTarget,
        learner_context: LearnerContext | None,
    ) -> PresentedItem | None:
        concept_id = request.concept_id
        try:
            item = await self.generator.generate(request)
        except Exception as e:
            logger.warning(f"[{request_id}] generator failed on attempt {attempt}: {e}")
            self._emit(request_id, concept_id, attempt, f"error:{type(e).__name__}")
            return None

        validation = self.validator.validate(item, concept_id, request.allowed_interaction_types, learner_context)
        if not validation.is_valid:
            tags = validation.tags
            self._emit(request_id, concept_id, attempt, ",".join(tags), violations=tags)
            return None

        try:
            rating = await self.rater.rate(item, self.grade)
        except Exception as e:
            logger.warning(f"[{request_id}] rater failed on attempt {attempt}: {e}")
            self._emit(request_id, concept_id, attempt, f"error:{type(e).__name__}")
            return None

        rating_check = self.validator.validate_rating(rating)
        if not rating_check.is_valid:
            tags = rating_check.tags
            self._emit(request_id, concept_id, attempt, f"rating_invalid:{','.join(tags)}", violations=tags)
            return None

        reason = self._rejection_reason(rating, target, request.requested_difficulty)
        if reason is not None:
            self._emit(request_id, concept_id, attempt, reason, rated_overall=rating.overall)
            return None

        self._emit(request_id, concept_id, attempt, "accepted", accepted=True, rated_overall=rating.overall)
        if learner_context is not None:
            learner_context.record(item)
        return PresentedItem.from_spec(item, rating.overall, request.intent)

    @staticmethod
    def _rejection_reason(rating: DifficultyRating, target: DifficultyTarget, requested: int) -> str | None:
        if not rating.grade_fit_ok:
            return "grade_fit_rejected"
        if rating.raised_flags:
            return f"flagged:{','.join(rating.raised_flags)}"
        if not target.accepts(rating.overall, requested):
            return "difficulty_miss"
        return None

    def _emit(
        self,
        request_id: str,
        concept_id: str,
        attempt: int,
        reason: str,
        accepted: bool = False,
        rated_overall: int | None = None,
        fallback_used: bool = False,
        violations: list[str] | None = None,
    ) -> None:
        emit_safely(
            self.telemetry,
            PipelineTelemetry(
                request_id=request_id,
                concept_id=concept_id,
                attempt=attempt,
                accepted=accepted,
                reason=reason,
                rated_overall=rated_overall,
                fallback_used=fallback_used,
                violations=list(violations or []),
            ),
        )
