"""
Configuration settings for the triangle tutor.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Curriculum
    # ========================================
    grade: int = Field(
        default=6,
        description="The only learner grade the item pipeline accepts",
    )
    difficulty_ceiling: int = Field(
        default=4,
        ge=1,
        description="Highest difficulty a concept can be practiced at",
    )

    # ========================================
    # Mastery Rules
    # ========================================
    mastery_required_correct: int = Field(
        default=3,
        description="Correct answers needed before a concept can be mastered",
    )
    mastery_required_difficulty: int = Field(
        default=3,
        description="Difficulty that must have been passed before a concept can be mastered",
    )
    mastery_up_step: int = Field(default=1, description="Difficulty increase after a correct answer")
    mastery_down_step: int = Field(default=1, description="Difficulty decrease after a miss")
    remediation_incorrect_threshold: int = Field(
        default=1,
        description="Incorrect answers on a concept before remediation is flagged",
    )

    # ========================================
    # Item Generation
    # ========================================
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Extra generation attempts after the first one before falling back",
    )
    use_difficulty_band: bool = Field(
        default=True,
        description="Accept rated items by band (True) or by direction only (False)",
    )
    novelty_window: int = Field(
        default=3,
        description="Recent prompt hashes an item must not repeat",
    )
    novelty_repeat_limit: int = Field(
        default=2,
        description="Max times an answer key or question family may recur in history",
    )
    learner_history_size: int = Field(
        default=8,
        description="Length of the per-learner recent-item ring buffers",
    )

    # ========================================
    # Item Service (remote generator / rater / grader)
    # ========================================
    item_service_url: str | None = Field(
        default=None,
        description="Base URL of the item service; local generator and rater are used when unset",
    )
    item_service_timeout_ms: int = Field(
        default=20000,
        description="Request timeout for item service calls in milliseconds",
    )

    # ========================================
    # Grading
    # ========================================
    visual_ambiguity_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Ambiguity score at or above which a visual result is graded ambiguous",
    )

    # ========================================
    # Storage & Telemetry
    # ========================================
    session_path: Path = Field(
        default=Path("data/session.json"),
        description="Where the learner session blob is persisted",
    )
    telemetry_dir: Path | None = Field(
        default=None,
        description="Directory for JSONL pipeline telemetry; logging only when unset",
    )

    # ========================================
    # Logging & API
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    api_host: str = Field(default="127.0.0.1", description="API server host")
    api_port: int = Field(default=8100, description="API server port")

    def has_item_service(self) -> bool:
        """Check whether a remote item service is configured."""
        return bool(self.item_service_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
