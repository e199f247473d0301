"""Entry point for the FastAPI-powered discovery service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .errors import InvalidInputError, UpstreamUnavailableError
from .genres import GenreVocabulary
from .models import RecommendationPage, YearRange
from .services.cascade import CascadingPageFetcher
from .services.preferences import (
    YearPreferenceConfig,
    build_year_preferences,
    samples_from_content,
)
from .services.tier_cache import TierCache
from .services.tmdb import TMDBClient
from .utils import split_csv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    vocabulary = GenreVocabulary()
    tmdb = TMDBClient(settings, tmdb_http_client, vocabulary)
    tier_cache = TierCache(settings.tier_cache_ttl_seconds)

    fastapi_app.state.genre_vocabulary = vocabulary
    fastapi_app.state.year_preference_config = settings.year_preference_config
    fastapi_app.state.page_fetcher = CascadingPageFetcher(
        tmdb,
        tier_cache,
        max_upstream_page=settings.max_upstream_page,
        vocabulary=vocabulary,
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Genre-cascading catalog feeds and taste profiling",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_page_fetcher(fastapi_app: FastAPI) -> CascadingPageFetcher:
    fetcher = getattr(fastapi_app.state, "page_fetcher", None)
    if not isinstance(fetcher, CascadingPageFetcher):
        raise RuntimeError("Page fetcher not initialised")
    return fetcher


def get_vocabulary(fastapi_app: FastAPI) -> GenreVocabulary:
    vocabulary = getattr(fastapi_app.state, "genre_vocabulary", None)
    if isinstance(vocabulary, GenreVocabulary):
        return vocabulary
    return GenreVocabulary()


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/genres")
    async def list_genres(
        child_safety_mode: bool = Query(default=False, alias="childSafetyMode"),
    ) -> dict[str, Any]:
        vocabulary = get_vocabulary(fastapi_app)
        return {
            "genres": [
                {
                    "id": definition.id,
                    "name": definition.name,
                    "movieIds": list(definition.movie_ids),
                    "tvIds": list(definition.tv_ids),
                    "childSafe": definition.child_safe,
                }
                for definition in vocabulary.options(child_safe_only=child_safety_mode)
            ]
        }

    @fastapi_app.get("/recommendations/{media_type}")
    async def recommendations(
        media_type: str,
        genres: str | None = Query(default=None),
        endpoint: str = Query(default="discover"),
        page: int = Query(default=1, ge=1),
        child_safety_mode: bool = Query(default=False, alias="childSafetyMode"),
        year_min: int | None = Query(default=None, alias="yearMin"),
        year_max: int | None = Query(default=None, alias="yearMax"),
    ) -> RecommendationPage:
        fetcher = get_page_fetcher(fastapi_app)
        year_range = _parse_year_range(year_min, year_max)
        try:
            return await fetcher.fetch_page(
                split_csv(genres),
                media_type=media_type,  # type: ignore[arg-type]
                endpoint=endpoint,  # type: ignore[arg-type]
                page=page,
                safety_mode=child_safety_mode,
                year_range=year_range,
            )
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UpstreamUnavailableError as exc:
            logger.warning("Recommendation page %s failed: %s", page, exc)
            raise HTTPException(status_code=502, detail=exc.as_detail()) from exc

    @fastapi_app.post("/preferences/years")
    async def year_preferences(
        payload: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        items = payload.get("items")
        if not isinstance(items, list):
            raise HTTPException(status_code=400, detail="items must be a list")
        vocabulary = get_vocabulary(fastapi_app)
        config = getattr(fastapi_app.state, "year_preference_config", None)
        if not isinstance(config, YearPreferenceConfig):
            config = settings.year_preference_config
        try:
            preferences = build_year_preferences(
                samples_from_content(items, vocabulary),
                config,
                vocabulary=vocabulary,
            )
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "preferences": [preference.model_dump(mode="json") for preference in preferences]
        }


def _parse_year_range(year_min: int | None, year_max: int | None) -> YearRange | None:
    if year_min is None and year_max is None:
        return None
    if year_min is None or year_max is None:
        raise HTTPException(
            status_code=400, detail="yearMin and yearMax must be supplied together"
        )
    if year_min > year_max:
        raise HTTPException(status_code=400, detail="yearMin must not exceed yearMax")
    return YearRange(min=year_min, max=year_max)


app = create_app()
