"""Serve one continuous feed while progressively relaxing genre filters.

Pages are first drawn from titles matching every priority genre; once that
page space is exhausted the least important genre is dropped, and so on down
to the top genre alone, which is extended indefinitely.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Collection, Hashable, Protocol, Sequence

from ..errors import InvalidInputError, PageOutOfRangeError, UpstreamUnavailableError
from ..genres import GenreVocabulary, MediaType
from ..models import CatalogPage, RecommendationPage, YearRange
from ..utils import unique_in_order
from .tier_cache import GenreFilterTierTable, GenreTier, TierCache
from .tmdb import ENDPOINT_FAMILIES, EndpointFamily

logger = logging.getLogger(__name__)

MEDIA_TYPES: tuple[MediaType, ...] = ("movie", "tv")


class CatalogSearcher(Protocol):
    async def search_catalog(
        self,
        media_type: MediaType,
        endpoint: EndpointFamily,
        genre_ids: Sequence[str],
        page: int,
        *,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> CatalogPage: ...


@dataclass(frozen=True, slots=True)
class TierResolution:
    """Which tier a logical page falls in and its page within that tier."""

    genre_count: int
    upstream_page: int
    beyond_known_tiers: bool = False


def resolve_tier(page: int, tiers: Sequence[GenreTier]) -> TierResolution:
    """Map logical ``page`` onto ``tiers`` ordered most to least specific.

    Tiers without pages are skipped naturally because their range is empty.
    Pages past every known tier continue the single-genre tier after its last
    known page, so none of its pages is served twice.
    """

    if page < 1:
        raise InvalidInputError("Pages are numbered from 1")
    cumulative = 0
    for tier in tiers:
        if page <= cumulative + tier.total_pages:
            return TierResolution(tier.genre_count, page - cumulative)
        cumulative += tier.total_pages
    last_known = tiers[-1].total_pages if tiers else 0
    return TierResolution(1, last_known + page - cumulative, beyond_known_tiers=True)


def tier_cache_key(
    endpoint: EndpointFamily,
    genres: Sequence[str],
    media_type: MediaType,
    safety_mode: bool,
    year_range: YearRange | None = None,
) -> Hashable:
    span = (year_range.min, year_range.max) if year_range is not None else None
    return (endpoint, tuple(genres), media_type, bool(safety_mode), span)


class CascadingPageFetcher:
    """Resolve logical feed pages to upstream catalog pages."""

    def __init__(
        self,
        catalog: CatalogSearcher,
        cache: TierCache,
        *,
        max_upstream_page: int = 500,
        vocabulary: GenreVocabulary | None = None,
    ):
        self._catalog = catalog
        self._cache = cache
        self._max_upstream_page = max_upstream_page
        if vocabulary is None:
            vocabulary = getattr(catalog, "vocabulary", None)
        self._vocabulary = vocabulary if vocabulary is not None else GenreVocabulary()

    @property
    def cache(self) -> TierCache:
        return self._cache

    async def fetch_page(
        self,
        genres: Sequence[str],
        *,
        media_type: MediaType,
        endpoint: EndpointFamily = "discover",
        page: int = 1,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
        exclude_ids: Collection[object] | None = None,
    ) -> RecommendationPage:
        """Return logical ``page`` of the feed for the genre priority list."""

        priority = self._validate(genres, media_type, endpoint, page)

        if len(priority) <= 1:
            catalog_page = await self._fetch_tier(
                priority,
                len(priority),
                page,
                media_type=media_type,
                endpoint=endpoint,
                safety_mode=safety_mode,
                year_range=year_range,
            )
            return self._to_recommendation(
                catalog_page, page, len(priority), page, exclude_ids
            )

        table = await self.tier_table(
            priority,
            media_type=media_type,
            endpoint=endpoint,
            safety_mode=safety_mode,
            year_range=year_range,
        )
        resolution = resolve_tier(page, table.tiers)
        subset = priority[: resolution.genre_count]
        logger.debug(
            "Page %s resolved to %s-genre tier %s, upstream page %s",
            page,
            resolution.genre_count,
            subset,
            resolution.upstream_page,
        )

        if not resolution.beyond_known_tiers:
            catalog_page = await self._fetch_tier(
                subset,
                resolution.genre_count,
                resolution.upstream_page,
                media_type=media_type,
                endpoint=endpoint,
                safety_mode=safety_mode,
                year_range=year_range,
            )
            return self._to_recommendation(
                catalog_page,
                page,
                resolution.genre_count,
                resolution.upstream_page,
                exclude_ids,
            )

        if resolution.upstream_page > self._max_upstream_page:
            logger.info(
                "Feed exhausted at page %s: upstream page %s for %s is past the catalog limit",
                page,
                resolution.upstream_page,
                subset,
            )
            return self._to_recommendation(
                CatalogPage(page=resolution.upstream_page),
                page,
                resolution.genre_count,
                resolution.upstream_page,
                exclude_ids,
            )

        try:
            catalog_page = await self._fetch_tier(
                subset,
                resolution.genre_count,
                resolution.upstream_page,
                media_type=media_type,
                endpoint=endpoint,
                safety_mode=safety_mode,
                year_range=year_range,
            )
        except PageOutOfRangeError:
            logger.info(
                "Feed exhausted at page %s (upstream page %s for %s)",
                page,
                resolution.upstream_page,
                subset,
            )
            catalog_page = CatalogPage(page=resolution.upstream_page)
        return self._to_recommendation(
            catalog_page,
            page,
            resolution.genre_count,
            resolution.upstream_page,
            exclude_ids,
        )

    async def tier_table(
        self,
        genres: Sequence[str],
        *,
        media_type: MediaType,
        endpoint: EndpointFamily,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> GenreFilterTierTable:
        """Return the cached tier table, discovering it on a miss."""

        key = tier_cache_key(endpoint, genres, media_type, safety_mode, year_range)

        async def build() -> list[GenreTier]:
            return await self.discover_tiers(
                genres,
                media_type=media_type,
                endpoint=endpoint,
                safety_mode=safety_mode,
                year_range=year_range,
            )

        return await self._cache.get_or_build(key, build)

    async def discover_tiers(
        self,
        genres: Sequence[str],
        *,
        media_type: MediaType,
        endpoint: EndpointFamily,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> list[GenreTier]:
        """Ask the catalog how many pages each genre prefix yields.

        All tiers are queried concurrently. If any query fails the whole
        discovery fails, because a partial table would shift later pages.
        """

        if not genres:
            raise InvalidInputError("Tier discovery needs at least one genre")
        counts = list(range(len(genres), 0, -1))
        responses = await asyncio.gather(
            *(
                self._fetch_tier(
                    genres[:count],
                    count,
                    1,
                    media_type=media_type,
                    endpoint=endpoint,
                    safety_mode=safety_mode,
                    year_range=year_range,
                    stage="Tier discovery",
                )
                for count in counts
            ),
            return_exceptions=True,
        )

        tiers: list[GenreTier] = []
        for count, response in zip(counts, responses):
            if isinstance(response, BaseException):
                logger.warning(
                    "Tier discovery for %s failed; nothing cached: %s",
                    list(genres[:count]),
                    response,
                )
                raise response
            total_pages = min(response.total_pages, self._max_upstream_page)
            tiers.append(GenreTier(genre_count=count, total_pages=total_pages))
        logger.debug(
            "Discovered tiers for %s: %s",
            list(genres),
            [(tier.genre_count, tier.total_pages) for tier in tiers],
        )
        return tiers

    def invalidate(
        self,
        genres: Sequence[str] | None = None,
        *,
        media_type: MediaType = "movie",
        endpoint: EndpointFamily = "discover",
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> None:
        """Forget one cached tier table, or all of them when no genres are given."""

        if genres is None:
            self._cache.invalidate()
            return
        self._cache.invalidate(
            tier_cache_key(endpoint, genres, media_type, safety_mode, year_range)
        )

    async def _fetch_tier(
        self,
        genres: Sequence[str],
        genre_count: int,
        upstream_page: int,
        *,
        media_type: MediaType,
        endpoint: EndpointFamily,
        safety_mode: bool,
        year_range: YearRange | None,
        stage: str = "Page fetch",
    ) -> CatalogPage:
        try:
            return await self._catalog.search_catalog(
                media_type,
                endpoint,
                list(genres),
                upstream_page,
                safety_mode=safety_mode,
                year_range=year_range,
            )
        except UpstreamUnavailableError as exc:
            raise exc.with_context(
                genres=genres, genre_count=genre_count, page=upstream_page, stage=stage
            ) from exc

    def _validate(
        self,
        genres: Sequence[str],
        media_type: str,
        endpoint: str,
        page: int,
    ) -> list[str]:
        if not isinstance(genres, (list, tuple)):
            raise InvalidInputError("Genres must be a list of genre identifiers")
        if any(not isinstance(genre, str) for genre in genres):
            raise InvalidInputError("Genre identifiers must be strings")
        if media_type not in MEDIA_TYPES:
            raise InvalidInputError(f"Unsupported media type: {media_type}")
        if endpoint not in ENDPOINT_FAMILIES:
            raise InvalidInputError(f"Unsupported endpoint: {endpoint}")
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidInputError("Pages are numbered from 1")
        requested = unique_in_order(genre.strip() for genre in genres if genre.strip())
        priority = self._effective_genres(requested, media_type)  # type: ignore[arg-type]
        if priority != requested:
            logger.info(
                "Genres %s add no %s filter and were dropped; tiering %s",
                [genre for genre in requested if genre not in priority],
                media_type,
                priority,
            )
        return priority

    def _effective_genres(self, genres: Sequence[str], media_type: MediaType) -> list[str]:
        """Keep only genres that narrow the upstream query.

        A genre is dropped when it is unknown, has no mapping for the media
        type, or maps onto TMDB ids already covered by higher priority genres.
        Otherwise two tiers would send the same query.
        """

        effective: list[str] = []
        covered: set[int] = set()
        for genre in genres:
            tmdb_ids = set(self._vocabulary.to_tmdb([genre], media_type))
            if not tmdb_ids or tmdb_ids <= covered:
                continue
            covered |= tmdb_ids
            effective.append(genre)
        return effective

    @staticmethod
    def _to_recommendation(
        catalog_page: CatalogPage,
        page: int,
        genre_count: int,
        upstream_page: int,
        exclude_ids: Collection[object] | None,
    ) -> RecommendationPage:
        results = catalog_page.results
        if exclude_ids:
            results = [item for item in results if item.get("id") not in exclude_ids]
        return RecommendationPage(
            results=results,
            page=page,
            resolved_genre_count=genre_count,
            upstream_page=upstream_page,
            total_pages=catalog_page.total_pages,
            total_results=catalog_page.total_results,
            exhausted=not catalog_page.results,
        )
