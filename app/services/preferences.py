"""Infer per-genre release-era preferences from a user's content history."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ..errors import InvalidInputError
from ..genres import GenreVocabulary
from ..models import Confidence, ContentSample, GenreYearPreference, YearRange
from ..utils import is_plausible_year

logger = logging.getLogger(__name__)

DECADE_SPAN_YEARS = 10


@dataclass(frozen=True)
class YearPreferenceConfig:
    """Thresholds that drive decade clustering and confidence banding."""

    low_confidence_max: int = 3
    medium_confidence_max: int = 7
    coverage_threshold: float = 0.6
    medium_buffer_years: int = 5
    high_buffer_years: int = 0

    def __post_init__(self) -> None:
        if self.low_confidence_max < 1:
            raise InvalidInputError("low_confidence_max must be at least 1")
        if self.medium_confidence_max <= self.low_confidence_max:
            raise InvalidInputError(
                "medium_confidence_max must be greater than low_confidence_max"
            )
        if not 0 < self.coverage_threshold <= 1:
            raise InvalidInputError("coverage_threshold must be within (0, 1]")
        if self.medium_buffer_years < 0 or self.high_buffer_years < 0:
            raise InvalidInputError("Year buffers must not be negative")

    def confidence_for(self, sample_size: int) -> Confidence:
        if sample_size <= self.low_confidence_max:
            return "low"
        if sample_size <= self.medium_confidence_max:
            return "medium"
        return "high"

    def buffer_for(self, confidence: Confidence) -> int:
        if confidence == "high":
            return self.high_buffer_years
        return self.medium_buffer_years


DEFAULT_CONFIG = YearPreferenceConfig()


def build_year_preferences(
    samples: Sequence[ContentSample],
    config: YearPreferenceConfig | None = None,
    *,
    vocabulary: GenreVocabulary | None = None,
) -> list[GenreYearPreference]:
    """Return one year preference per genre seen in ``samples``.

    A sample tagged with several genres contributes its year to each of them.
    Samples without a usable year are ignored. The result is ordered by
    sample size (largest first) and then genre id, and does not depend on the
    order of ``samples``.
    """

    if not isinstance(samples, (list, tuple)):
        raise InvalidInputError(
            f"Samples must be a list of ContentSample, got {type(samples).__name__}"
        )
    config = config or DEFAULT_CONFIG
    vocabulary = vocabulary or GenreVocabulary()

    years_by_genre: dict[str, list[int]] = {}
    for sample in samples:
        if not isinstance(sample, ContentSample) or not is_plausible_year(sample.year):
            continue
        for genre_id in sample.genre_ids:
            if not isinstance(genre_id, str) or not genre_id:
                continue
            years_by_genre.setdefault(genre_id, []).append(sample.year)  # type: ignore[arg-type]

    preferences = [
        _genre_preference(genre_id, years, config, vocabulary)
        for genre_id, years in years_by_genre.items()
    ]
    preferences.sort(key=lambda pref: (-pref.sample_size, pref.genre_id))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Built %s year preferences from %s samples: %s",
            len(preferences),
            len(samples),
            summarise_preferences(preferences),
        )
    return preferences


def _genre_preference(
    genre_id: str,
    years: list[int],
    config: YearPreferenceConfig,
    vocabulary: GenreVocabulary,
) -> GenreYearPreference:
    sample_size = len(years)
    ordered = sorted(years)
    confidence = config.confidence_for(sample_size)
    decades = preferred_decades(years, config.coverage_threshold)
    year_range = None
    if confidence != "low":
        year_range = effective_year_range(decades, config.buffer_for(confidence))
    return GenreYearPreference(
        genre_id=genre_id,
        genre_name=vocabulary.display_name(genre_id),
        sample_size=sample_size,
        preferred_decades=decades,
        confidence=confidence,
        effective_year_range=year_range,
        year_min=ordered[0],
        year_max=ordered[-1],
        year_median=_median(ordered),
    )


def preferred_decades(years: Sequence[int], threshold: float = 0.6) -> list[int]:
    """Return the smallest count-ranked set of decades covering ``threshold``.

    Decades are ranked by sample count, most recent first on ties, and taken
    until their cumulative share reaches the threshold.
    """

    if not years:
        return []
    counts = Counter(year // DECADE_SPAN_YEARS * DECADE_SPAN_YEARS for year in years)
    ranked = sorted(counts.items(), key=lambda entry: (-entry[1], -entry[0]))

    total = len(years)
    selected: list[int] = []
    covered = 0
    for decade, count in ranked:
        selected.append(decade)
        covered += count
        # Tolerance keeps an exact hit such as 3 of 5 at 0.6 from missing.
        if covered >= threshold * total - 1e-9:
            break
    return selected


def effective_year_range(decades: Sequence[int], buffer_years: int) -> YearRange | None:
    """Span the preferred decades, widened by ``buffer_years`` on each side.

    The upper bound is the first year of the decade following the latest
    preferred decade, before buffering.
    """

    if not decades:
        return None
    return YearRange(
        min=min(decades) - buffer_years,
        max=max(decades) + DECADE_SPAN_YEARS + buffer_years,
    )


def samples_from_content(
    items: Iterable[object], vocabulary: GenreVocabulary | None = None
) -> list[ContentSample]:
    """Convert raw catalog items into samples, skipping anything malformed."""

    vocabulary = vocabulary or GenreVocabulary()
    samples: list[ContentSample] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        samples.append(ContentSample.from_content(item, vocabulary))
    return samples


def merge_year_ranges(
    preferences: Iterable[GenreYearPreference], genre_ids: Iterable[str]
) -> YearRange | None:
    """Union the effective ranges of the requested genres.

    Genres without a range (low confidence or no history) do not constrain
    the result; ``None`` means no year filter should be applied.
    """

    wanted = set(genre_ids)
    ranges = [
        pref.effective_year_range
        for pref in preferences
        if pref.genre_id in wanted and pref.effective_year_range is not None
    ]
    if not ranges:
        return None
    return YearRange(
        min=min(entry.min for entry in ranges),
        max=max(entry.max for entry in ranges),
    )


def summarise_preferences(preferences: Sequence[GenreYearPreference]) -> dict[str, Any]:
    """Return a compact payload for logging profile refreshes."""

    return {
        pref.genre_id: {
            "decades": pref.preferred_decades,
            "confidence": pref.confidence,
            "range": (
                f"{pref.effective_year_range.min}-{pref.effective_year_range.max}"
                if pref.effective_year_range
                else "none"
            ),
        }
        for pref in preferences
    }


def _median(ordered: Sequence[int]) -> int:
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    # Halves round up.
    return (ordered[middle - 1] + ordered[middle] + 1) // 2
