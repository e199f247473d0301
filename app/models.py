"""Data models shared by the profiler, the page fetcher and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import extract_year

if TYPE_CHECKING:
    from .genres import GenreVocabulary

Confidence = Literal["low", "medium", "high"]


@dataclass(frozen=True, slots=True)
class ContentSample:
    """One rated, watchlisted or collected title contributing to a profile."""

    year: int | None
    genre_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_content(
        cls, item: Mapping[str, Any], vocabulary: "GenreVocabulary"
    ) -> "ContentSample":
        """Build a sample from a raw catalog item.

        TV items carry ``first_air_date`` instead of ``release_date``; the
        media type defaults to movie when absent.
        """

        media_type = "tv" if item.get("media_type") == "tv" else "movie"
        date_key = "first_air_date" if media_type == "tv" else "release_date"
        raw_genres = item.get("genre_ids") or []
        if not isinstance(raw_genres, (list, tuple, set, frozenset)):
            raw_genres = []
        return cls(
            year=extract_year(item.get(date_key)),
            genre_ids=frozenset(vocabulary.from_tmdb(raw_genres, media_type)),
        )


class YearRange(BaseModel):
    """Inclusive release year window."""

    model_config = ConfigDict(frozen=True)

    min: int
    max: int

    @model_validator(mode="after")
    def _check_order(self) -> "YearRange":
        if self.min > self.max:
            raise ValueError("Year range minimum must not exceed its maximum")
        return self

    def contains(self, other: "YearRange") -> bool:
        return self.min <= other.min and other.max <= self.max


class GenreYearPreference(BaseModel):
    """Year preference inferred for a single genre."""

    genre_id: str
    genre_name: str
    sample_size: int
    preferred_decades: list[int] = Field(default_factory=list)
    confidence: Confidence
    effective_year_range: YearRange | None = None
    year_min: int
    year_max: int
    year_median: int


class CatalogPage(BaseModel):
    """Normalized single page returned by the catalog service."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    total_results: int = 0


class RecommendationPage(BaseModel):
    """A logical feed page together with the tier that produced it."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    page: int
    resolved_genre_count: int
    upstream_page: int
    total_pages: int = 0
    total_results: int = 0
    exhausted: bool = False
