"""Paged catalog search against The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any, Literal, Sequence

import httpx

from ..config import Settings
from ..errors import PageOutOfRangeError, UpstreamUnavailableError
from ..genres import GenreVocabulary, MediaType
from ..models import CatalogPage, YearRange

logger = logging.getLogger(__name__)

EndpointFamily = Literal["discover", "trending", "top-rated"]
GenreLogic = Literal["AND", "OR"]

ENDPOINT_FAMILIES: tuple[EndpointFamily, ...] = ("discover", "trending", "top-rated")

# Discover narrows to titles carrying every genre; the ranked feeds widen to any.
GENRE_LOGIC: dict[EndpointFamily, GenreLogic] = {
    "discover": "AND",
    "trending": "OR",
    "top-rated": "OR",
}

TRENDING_MIN_VOTES = 100
TOP_RATED_MIN_VOTES: dict[MediaType, int] = {"movie": 300, "tv": 100}


def format_genre_filter(tmdb_ids: Sequence[int], logic: GenreLogic) -> str:
    """Join TMDB genre ids with ``,`` (AND) or ``|`` (OR)."""

    separator = "," if logic == "AND" else "|"
    return separator.join(str(tmdb_id) for tmdb_id in tmdb_ids)


class TMDBClient:
    """Client responsible for paged catalog queries against TMDB."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        vocabulary: GenreVocabulary | None = None,
    ):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client
        self._vocabulary = vocabulary or GenreVocabulary()

    @property
    def vocabulary(self) -> GenreVocabulary:
        return self._vocabulary

    async def search_catalog(
        self,
        media_type: MediaType,
        endpoint: EndpointFamily,
        genre_ids: Sequence[str],
        page: int,
        *,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> CatalogPage:
        """Return one page of catalog results for canonical ``genre_ids``."""

        path, params = self.build_request(
            media_type,
            endpoint,
            genre_ids,
            page,
            safety_mode=safety_mode,
            year_range=year_range,
        )
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning(
                "TMDB request %s (page %s) failed: %s", path, page, exc.__class__.__name__
            )
            raise UpstreamUnavailableError(
                f"TMDB request failed: {exc.__class__.__name__}", page=page
            ) from exc

        if response.status_code >= 400:
            if self._is_page_rejection(response):
                raise PageOutOfRangeError(
                    f"TMDB rejected page {page}",
                    status_code=response.status_code,
                    page=page,
                )
            logger.warning(
                "TMDB request %s (page %s) returned %s: %s",
                path,
                page,
                response.status_code,
                response.text,
            )
            raise UpstreamUnavailableError(
                f"TMDB API error: {response.status_code}",
                status_code=response.status_code,
                page=page,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON TMDB response for %s", path)
            raise UpstreamUnavailableError(
                "TMDB returned a non-JSON payload",
                status_code=response.status_code,
                page=page,
            ) from exc
        return self._parse_page(payload, media_type, page)

    def build_request(
        self,
        media_type: MediaType,
        endpoint: EndpointFamily,
        genre_ids: Sequence[str],
        page: int,
        *,
        safety_mode: bool = False,
        year_range: YearRange | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Return the request path and query parameters for a catalog page."""

        params: dict[str, Any] = {
            "api_key": self._settings.tmdb_api_key,
            "language": self._settings.tmdb_language,
            "page": page,
        }
        tmdb_ids = self._vocabulary.to_tmdb(genre_ids, media_type)

        # TMDB's trending feed cannot filter, so filtered "trending" is
        # popularity-sorted discover.
        if endpoint == "trending" and not tmdb_ids and year_range is None:
            path = f"/trending/{media_type}/week"
        else:
            path = f"/discover/{media_type}"
            if endpoint == "top-rated":
                params["sort_by"] = "vote_average.desc"
                params["vote_count.gte"] = TOP_RATED_MIN_VOTES[media_type]
            else:
                params["sort_by"] = "popularity.desc"
                if endpoint == "trending":
                    params["vote_count.gte"] = TRENDING_MIN_VOTES
            if tmdb_ids:
                params["with_genres"] = format_genre_filter(
                    tmdb_ids, GENRE_LOGIC[endpoint]
                )
            if year_range is not None:
                prefix = "primary_release_date" if media_type == "movie" else "first_air_date"
                params[f"{prefix}.gte"] = f"{year_range.min}-01-01"
                params[f"{prefix}.lte"] = f"{year_range.max}-12-31"

        if safety_mode:
            if media_type == "movie":
                params["certification_country"] = "US"
                params["certification.lte"] = "PG-13"
            params["include_adult"] = "false"
        return path, params

    @staticmethod
    def _is_page_rejection(response: httpx.Response) -> bool:
        if response.status_code == 422:
            return True
        if response.status_code != 400:
            return False
        try:
            payload = response.json()
        except ValueError:
            return False
        if not isinstance(payload, dict):
            return False
        message = str(payload.get("status_message") or payload.get("errors") or "")
        return "page" in message.lower()

    @staticmethod
    def _parse_page(payload: Any, media_type: MediaType, page: int) -> CatalogPage:
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError(
                "Unexpected TMDB response structure", page=page
            )
        raw_results = payload.get("results")
        if not isinstance(raw_results, list):
            raise UpstreamUnavailableError(
                "TMDB response is missing its results list", page=page
            )
        try:
            total_pages = int(payload.get("total_pages") or 0)
            total_results = int(payload.get("total_results") or 0)
            resolved_page = int(payload.get("page") or page)
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailableError(
                "TMDB response has malformed pagination fields", page=page
            ) from exc

        results: list[dict[str, Any]] = []
        for entry in raw_results:
            if not isinstance(entry, dict):
                continue
            # Discover results omit media_type.
            results.append({**entry, "media_type": entry.get("media_type") or media_type})
        return CatalogPage(
            results=results,
            page=resolved_page,
            total_pages=max(total_pages, 0),
            total_results=max(total_results, 0),
        )
