"""
FastAPI application for the triangles tutor.

Provides REST API for:
- Concept graph and learner mastery status
- Item generation through the validated pipeline
- Answer grading and mastery updates
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import get_settings
from src.api.routers import tutor_router
from src.session.factory import build_tutor_session

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger.info("Starting triangle-tutor service...")
    tutor, components = build_tutor_session(settings)
    app.state.tutor = tutor
    app.state.components = components
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down triangle-tutor service...")
    await components.close()


app = FastAPI(
    title="Triangle Tutor",
    description="""
    Adaptive Grade 6 triangles tutor.

    ## Data Flow

    ```
    Mastery state machine
        ↓ next concept + intent
    Generator → Validator → Rater   (retry, then local fallback)
        ↓ item
    Learner response
        ↓
    Grading router → outcome → mastery
    ```
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "triangle-tutor",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "components": {
            "item_service": "configured" if settings.has_item_service() else "local",
            "telemetry": "jsonl" if settings.telemetry_dir else "logging",
        },
        "config": {
            "grade": settings.grade,
            "max_retries": settings.max_retries,
            "use_difficulty_band": settings.use_difficulty_band,
        },
    }


app.include_router(tutor_router.router, prefix="/api/tutor", tags=["Tutor"])
