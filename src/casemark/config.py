"""Centralised configuration using pydantic-settings.

All tunables of the highlighting engine (selection limits, popular overlay
thresholds, clustering heuristics, popover geometry) are read through the
Settings class. Consumers call ``get_settings()`` to obtain a cached,
validated instance. Tests construct ``Settings(_env_file=None, ...)``
directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/casemark/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class HighlightConfig(BaseModel):
    """Limits applied when a selection becomes a highlight."""

    max_selection_length: int = Field(default=500, gt=0)
    default_color: str = "yellow"


class PopularConfig(BaseModel):
    """Cross-student overlay shown beneath personal highlights."""

    enabled: bool = True
    min_students: int = Field(default=2, ge=1)
    max_rendered: int = Field(default=10, ge=0)
    opacity: float = Field(default=0.6, ge=0.3, le=1.0)
    tier_medium: int = 3
    tier_high: int = 5

    @model_validator(mode="after")
    def tiers_ascending(self) -> PopularConfig:
        if self.tier_high <= self.tier_medium:
            msg = "POPULAR__TIER_HIGH must be greater than POPULAR__TIER_MEDIUM"
            raise ValueError(msg)
        return self


class AggregationConfig(BaseModel):
    """Clustering and heat-score heuristics."""

    similarity_threshold: float = Field(default=0.7, gt=0.0, le=1.0)
    recent_window_minutes: int = Field(default=30, ge=0)
    count_weight: int = 10
    recency_bonus: int = 5
    top_clusters: int = Field(default=5, ge=0)
    display_text_length: int = Field(default=50, gt=0)


class SelectionConfig(BaseModel):
    """Selection event handling and confirmation popover geometry."""

    throttle_ms: int = Field(default=150, ge=0)
    popover_width: int = 200
    popover_height: int = 40
    popover_offset: int = 15
    viewport_margin: int = 10
    delete_popover_offset: int = 5


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Engine settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``POPULAR__MIN_STUDENTS``, ``AGGREGATION__SIMILARITY_THRESHOLD``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    highlights: HighlightConfig = HighlightConfig()
    popular: PopularConfig = PopularConfig()
    aggregation: AggregationConfig = AggregationConfig()
    selection: SelectionConfig = SelectionConfig()
    app: AppConfig = AppConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
