"""
Tutor API Router.

Endpoints for one learner's triangles session:
- Concept graph and mastery status
- Next item (generated, validated, rated)
- Answer submission and grading
- Standalone item generation and the grading benchmark
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from src.core.mastery import LearningIntent
from src.curriculum.triangles import TRIANGLES_GRADE6
from src.grading.benchmark import default_cases, run_grading_benchmark
from src.session.tutor_session import NoActiveItemError, Submission, TutorSession

router = APIRouter()


def get_tutor(request: Request) -> TutorSession:
    return request.app.state.tutor


# ========================================
# Request/Response Models
# ========================================


class SubmissionRequest(BaseModel):
    """Learner response; set the field matching the item's response mode."""

    choice_id: str | None = Field(None, description="Selected option id for multiple choice")
    numeric_value: str | None = Field(None, description="Typed number for numeric input")
    expression: str | None = Field(None, description="Typed equation")
    text: str | None = Field(None, description="Free-text explanation")
    target: str | None = Field(None, description="Tapped vertex or side, e.g. 'B' or 'AC'")
    ink_png_base64: str | None = Field(None, description="Rendered ink over the diagram")


class GenerateRequest(BaseModel):
    concept_id: str
    difficulty: int = Field(1, ge=1, le=4)
    intent: LearningIntent = LearningIntent.PRACTICE


# ========================================
# Endpoints
# ========================================


@router.get("/graph")
def get_graph() -> dict[str, Any]:
    """Concept graph: levels and concepts in order."""
    return TRIANGLES_GRADE6.to_dict()


@router.get("/status")
def get_status(tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    return tutor.status()


@router.post("/next")
async def next_item(tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    """Generate the next item for the learner."""
    item = await tutor.next_item()
    if item is None:
        return {"topic_completed": True, "item": None}
    return {"topic_completed": False, "item": item.to_dict()}


@router.get("/item")
def current_item(tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    item = tutor.current_item
    if item is None:
        raise HTTPException(status_code=404, detail="No active item")
    return item.to_dict()


@router.post("/submit")
async def submit(body: SubmissionRequest, tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    """Grade a response against the current item."""
    try:
        result = await tutor.submit(Submission(**body.model_dump()))
    except NoActiveItemError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.to_dict()


@router.post("/generate")
async def generate(body: GenerateRequest, tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    """Generate an item for any concept without touching the learner's progress."""
    if not TRIANGLES_GRADE6.contains(body.concept_id):
        raise HTTPException(status_code=404, detail=f"Unknown concept: {body.concept_id}")
    item = await tutor.orchestrator.generate_item(body.concept_id, body.difficulty, body.intent)
    return item.to_dict()


@router.post("/reset")
async def reset(tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    await tutor.reset()
    return tutor.status()


@router.get("/benchmark")
async def benchmark(tutor: TutorSession = Depends(get_tutor)) -> dict[str, Any]:
    metrics = await run_grading_benchmark(default_cases(tutor.ambiguity_threshold))
    return metrics.to_dict()
