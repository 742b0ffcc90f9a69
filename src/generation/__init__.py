"""Item generation for the triangles tutor.

Pipeline:
1. Generator (item service, or local templates) proposes an item
2. ItemSpecValidator checks structure, semantics and novelty
3. Rater (item service, or heuristic) scores difficulty and grade fit
4. Orchestrator retries, then falls back to a local item

Usage:
    from src.generation import ItemGenerationOrchestrator, LocalItemGenerator, HeuristicRater

    orchestrator = ItemGenerationOrchestrator(LocalItemGenerator(), HeuristicRater())
    item = await orchestrator.generate_item("tri.structure.hypotenuse", 2, "practice")
"""
from src.generation.capabilities import DifficultyRater, GenerationRequest, ItemGenerator
from src.generation.heuristic_rater import HeuristicRater
from src.generation.item_validator import ItemSpecValidator, ValidationIssue, ValidationResult
from src.generation.local_generator import LocalItemGenerator
from src.generation.orchestrator import ItemGenerationOrchestrator
from src.generation.schemas import DifficultyRating, ItemSpec, PresentedItem

__all__ = [
    "DifficultyRater",
    "GenerationRequest",
    "ItemGenerator",
    "HeuristicRater",
    "ItemSpecValidator",
    "ValidationIssue",
    "ValidationResult",
    "LocalItemGenerator",
    "ItemGenerationOrchestrator",
    "DifficultyRating",
    "ItemSpec",
    "PresentedItem",
]
