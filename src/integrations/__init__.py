"""
External integrations for the triangles tutor.

Modules:
- item_service_client: remote generator, rater, visual locator and rubric grader
"""
from .item_service_client import (
    ItemServiceClient,
    ItemServiceError,
    RemoteDifficultyRater,
    RemoteItemGenerator,
    RemoteRubricEvaluator,
    RemoteVisualLocator,
)

__all__ = [
    "ItemServiceClient",
    "ItemServiceError",
    "RemoteDifficultyRater",
    "RemoteItemGenerator",
    "RemoteRubricEvaluator",
    "RemoteVisualLocator",
]
