"""API routers for the triangle tutor."""

from src.api.routers import tutor_router

__all__ = ["tutor_router"]
