"""
Configuration Models

Engine configuration, loaded from the environment (and an optional .env
file) or constructed directly.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_PREFIX = "TONEMAP_"


class EngineConfig(BaseModel):
    """Tunable settings for a ToneMap session."""

    default_track_limit: int = Field(default=25, ge=1, le=200, description="Playlist length")
    context_check_interval_minutes: float = Field(
        default=15, gt=0, description="Context tracker tick period"
    )
    min_generation_interval_minutes: float = Field(
        default=30, ge=0, description="Minimum time between context-triggered generations"
    )
    suggestion_ttl_hours: float = Field(default=24, gt=0, description="Contextual suggestion lifetime")
    max_contextual_suggestions: int = Field(default=2, ge=1, description="Suggestions returned")
    fetch_timeout_seconds: float = Field(
        default=10, gt=0, description="Timeout for event-store and discovery fetches"
    )
    weather_cache_minutes: float = Field(default=15, ge=0, description="Weather reading cache TTL")
    recency_penalty_hours: float = Field(
        default=2, ge=0, description="Tracks played this recently get their score halved"
    )
    recent_events_window: int = Field(default=20, ge=1, description="Events used for mood/genre signals")
    pattern_analysis_interval_hours: float = Field(
        default=3, gt=0, description="Period of background pattern analysis"
    )
    estimate_variance: bool = Field(
        default=False, description="Perturb estimated features for realism (non-deterministic)"
    )

    cache_dir: str = Field(default="data/cache", description="diskcache directory")
    log_dir: str = Field(default="logs", description="Log file directory")
    log_level: str = Field(default="INFO", description="Root log level")

    weather_latitude: Optional[float] = Field(default=None, description="Latitude for weather lookups")
    weather_longitude: Optional[float] = Field(default=None, description="Longitude for weather lookups")

    @property
    def weather_enabled(self) -> bool:
        return self.weather_latitude is not None and self.weather_longitude is not None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        """
        Build a config from TONEMAP_* environment variables.

        Args:
            env_file: Optional path to a .env file (defaults to the nearest one)

        Returns:
            EngineConfig with environment overrides applied
        """
        load_dotenv(env_file)

        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw

        # pydantic coerces the raw strings to the declared field types
        return cls(**values)
