"""
Item service client.

HTTP client for the remote item service that hosts the generative
capabilities: item generation, difficulty rating, visual target location
on learner ink, and rubric grading of free-text answers. Each capability
has a thin adapter implementing the matching local protocol so the
orchestrator and router never see HTTP.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from src.generation.capabilities import GenerationRequest
from src.generation.schemas import DifficultyRating, ItemSpec
from src.grading.base import Correctness, DetectedAnswer, GradingResultEnvelope, StrategyFamily
from src.grading.delegates import VisualLocatorRequest, VisualLocatorResult

logger = logging.getLogger(__name__)


class ItemServiceError(RuntimeError):
    """Non-2xx response or a payload that does not have the expected shape."""

    def __init__(self, message: str, status: int | None = None, reasons: list[str] | None = None):
        super().__init__(message)
        self.status = status
        self.reasons = reasons or []


# =============================================================================
# Request Bodies
# =============================================================================


class RatingRequestBody(BaseModel):
    grade: int
    question_spec: dict[str, Any]


class RubricRequestBody(BaseModel):
    concept_id: str
    submission: str
    expected: str


class GenerateRequestBody(BaseModel):
    concept_id: str
    grade: int
    difficulty: int
    intent: str = "practice"
    allowed_interaction_types: list[str] = Field(default_factory=list)
    learner_context: dict[str, list[str]] = Field(default_factory=dict)
    target_band: dict[str, int] | None = None
    target_direction: str | None = None


# =============================================================================
# Client
# =============================================================================


class ItemServiceClient:
    """HTTP client for the item service."""

    def __init__(self, base_url: str, timeout_ms: int = 20000):
        """
        Initialize item service client.

        Args:
            base_url: Base URL of the item service
            timeout_ms: Request timeout in milliseconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_ms / 1000.0
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON body and return the decoded object.

        Raises:
            ItemServiceError: On a non-2xx status or a non-object payload
            httpx.RequestError: On transport failure
        """
        url = f"{self.base_url}{path}"
        response = await self.client.post(url, json=body)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            reasons = _error_reasons(response)
            logger.error(f"Item service {path} returned {response.status_code}: {reasons}")
            raise ItemServiceError(
                f"{path} failed with status {response.status_code}",
                status=response.status_code,
                reasons=reasons,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ItemServiceError(f"{path} returned invalid JSON", status=response.status_code) from e
        if not isinstance(data, dict):
            raise ItemServiceError(f"{path} returned {type(data).__name__}, expected an object", status=response.status_code)
        return data

    async def generate(self, request: GenerationRequest) -> ItemSpec:
        body = GenerateRequestBody(**request.to_dict())
        data = await self._post("/api/triangles/generate", body.model_dump(exclude_none=True))
        spec = data.get("question_spec")
        if not isinstance(spec, dict):
            raise ItemServiceError("generate response has no question_spec", reasons=["missing_question_spec"])
        return ItemSpec.from_dict(spec)

    async def rate(self, item: ItemSpec, grade: int) -> DifficultyRating:
        body = RatingRequestBody(grade=grade, question_spec=item.to_dict())
        data = await self._post("/api/triangles/rate", body.model_dump())
        return DifficultyRating.from_dict(data.get("rating", data))

    async def locate(self, request: VisualLocatorRequest) -> VisualLocatorResult:
        data = await self._post("/api/triangles/check", request.to_dict())
        return VisualLocatorResult.from_dict(data)

    async def grade_rubric(self, submission: str, expected: str, concept_id: str) -> GradingResultEnvelope:
        body = RubricRequestBody(concept_id=concept_id, submission=submission, expected=expected)
        data = await self._post("/api/triangles/grade-rubric", body.model_dump())
        envelope = GradingResultEnvelope.from_dict(data)
        # The service grades rubric only; never trust a different family label.
        envelope.strategy_family = StrategyFamily.RUBRIC_LLM
        return envelope


def _error_reasons(response: httpx.Response) -> list[str]:
    try:
        data = response.json()
    except ValueError:
        return [response.text[:200]] if response.text else []
    if isinstance(data, dict):
        reasons = data.get("reasons") or data.get("detail") or data.get("error")
        if isinstance(reasons, list):
            return [str(r) for r in reasons]
        if reasons:
            return [str(reasons)]
    return []


# =============================================================================
# Capability Adapters
# =============================================================================


class RemoteItemGenerator:
    def __init__(self, client: ItemServiceClient):
        self.client = client

    async def generate(self, request: GenerationRequest) -> ItemSpec:
        return await self.client.generate(request)


class RemoteDifficultyRater:
    def __init__(self, client: ItemServiceClient):
        self.client = client

    async def rate(self, item: ItemSpec, grade: int) -> DifficultyRating:
        return await self.client.rate(item, grade)


class RemoteVisualLocator:
    def __init__(self, client: ItemServiceClient):
        self.client = client

    async def locate(self, request: VisualLocatorRequest) -> VisualLocatorResult:
        return await self.client.locate(request)


class RemoteRubricEvaluator:
    """Rubric grading through the item service; service errors become error envelopes."""

    def __init__(self, client: ItemServiceClient):
        self.client = client

    async def evaluate(self, submission: str, expected: str, concept_id: str) -> GradingResultEnvelope:
        try:
            return await self.client.grade_rubric(submission, expected, concept_id)
        except (ItemServiceError, httpx.HTTPError) as e:
            logger.warning(f"Rubric grading failed for {concept_id}: {e}")
            return GradingResultEnvelope(
                strategy_family=StrategyFamily.RUBRIC_LLM,
                detected_answer=DetectedAnswer(kind="text", value=submission),
                correctness=Correctness.ERROR,
                confidence=0.0,
                ambiguity_codes=["RUBRIC_SERVICE_UNAVAILABLE"],
                evidence_summary=str(e),
            )
