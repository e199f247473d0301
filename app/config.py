"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.preferences import YearPreferenceConfig


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Tastecast", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="en-US", alias="TMDB_LANGUAGE")

    tier_cache_ttl_seconds: int = Field(
        default=6 * 60 * 60, alias="TIER_CACHE_TTL", ge=1
    )
    max_upstream_page: int = Field(
        default=500, alias="MAX_UPSTREAM_PAGE", ge=1, le=10_000
    )

    low_confidence_max: int = Field(default=3, alias="LOW_CONFIDENCE_MAX", ge=1)
    medium_confidence_max: int = Field(
        default=7, alias="MEDIUM_CONFIDENCE_MAX", ge=2
    )
    decade_coverage_threshold: float = Field(
        default=0.6, alias="DECADE_COVERAGE_THRESHOLD", gt=0, le=1
    )
    medium_confidence_buffer_years: int = Field(
        default=5, alias="MEDIUM_CONFIDENCE_BUFFER_YEARS", ge=0, le=50
    )
    high_confidence_buffer_years: int = Field(
        default=0, alias="HIGH_CONFIDENCE_BUFFER_YEARS", ge=0, le=50
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @model_validator(mode="after")
    def _check_confidence_bands(self) -> "Settings":
        """Medium confidence must start above the low confidence ceiling."""

        if self.medium_confidence_max <= self.low_confidence_max:
            raise ValueError(
                "MEDIUM_CONFIDENCE_MAX must be greater than LOW_CONFIDENCE_MAX"
            )
        return self

    @property
    def year_preference_config(self) -> YearPreferenceConfig:
        """Return the profiler thresholds described by these settings."""

        return YearPreferenceConfig(
            low_confidence_max=self.low_confidence_max,
            medium_confidence_max=self.medium_confidence_max,
            coverage_threshold=self.decade_coverage_threshold,
            medium_buffer_years=self.medium_confidence_buffer_years,
            high_buffer_years=self.high_confidence_buffer_years,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
