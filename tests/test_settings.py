"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults_match_documented_constants() -> None:
    settings = Settings(_env_file=None)

    assert settings.tier_cache_ttl_seconds == 6 * 60 * 60
    assert settings.max_upstream_page == 500
    config = settings.year_preference_config
    assert config.low_confidence_max == 3
    assert config.medium_confidence_max == 7
    assert config.coverage_threshold == pytest.approx(0.6)
    assert config.medium_buffer_years == 5
    assert config.high_buffer_years == 0


def test_thresholds_are_overridable() -> None:
    """Environment style aliases feed the profiler configuration."""

    settings = Settings(
        _env_file=None,
        LOW_CONFIDENCE_MAX=2,
        MEDIUM_CONFIDENCE_MAX=5,
        DECADE_COVERAGE_THRESHOLD="0.75",
        HIGH_CONFIDENCE_BUFFER_YEARS=2,
        TIER_CACHE_TTL=60,
    )

    config = settings.year_preference_config
    assert (config.low_confidence_max, config.medium_confidence_max) == (2, 5)
    assert config.coverage_threshold == pytest.approx(0.75)
    assert config.high_buffer_years == 2
    assert settings.tier_cache_ttl_seconds == 60


def test_medium_band_must_exceed_low_band() -> None:
    with pytest.raises(ValueError, match="MEDIUM_CONFIDENCE_MAX must be greater"):
        Settings(_env_file=None, LOW_CONFIDENCE_MAX=4, MEDIUM_CONFIDENCE_MAX=4)


@pytest.mark.parametrize("threshold", ["0", "1.5", "-0.2"])
def test_coverage_threshold_bounds(threshold: str) -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, DECADE_COVERAGE_THRESHOLD=threshold)
