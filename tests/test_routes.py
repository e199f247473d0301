from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.main import register_routes
from app.services.cascade import CascadingPageFetcher
from app.services.tier_cache import TierCache


def build_app(catalog) -> FastAPI:
    app = FastAPI()
    register_routes(app)
    app.state.page_fetcher = CascadingPageFetcher(catalog, TierCache(3600))
    return app


def test_recommendations_cascade_over_http(make_catalog) -> None:
    catalog = make_catalog({2: 1, 1: 10})

    with TestClient(build_app(catalog)) as client:
        response = client.get(
            "/recommendations/movie",
            params={"genres": "action,comedy", "page": 2, "endpoint": "top-rated"},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["resolved_genre_count"] == 1
    assert payload["upstream_page"] == 1
    assert payload["page"] == 2
    assert payload["exhausted"] is False
    assert all(call[1] == "top-rated" for call in catalog.calls)


def test_recommendations_forward_year_range_and_safety(make_catalog) -> None:
    catalog = make_catalog({1: 3})

    with TestClient(build_app(catalog)) as client:
        response = client.get(
            "/recommendations/tv",
            params={"genres": "drama", "childSafetyMode": "true", "yearMin": 1990, "yearMax": 2005},
        )

    assert response.status_code == 200
    media_type, _, genres, page, safety_mode, year_range = catalog.calls[0]
    assert (media_type, genres, page, safety_mode) == ("tv", ("drama",), 1, True)
    assert (year_range.min, year_range.max) == (1990, 2005)


def test_recommendations_reject_bad_arguments(make_catalog) -> None:
    catalog = make_catalog({1: 3})

    with TestClient(build_app(catalog)) as client:
        unknown_media = client.get("/recommendations/anime", params={"genres": "drama"})
        half_range = client.get("/recommendations/movie", params={"yearMin": 1990})
        bad_page = client.get("/recommendations/movie", params={"page": 0})

    assert unknown_media.status_code == 400
    assert half_range.status_code == 400
    assert bad_page.status_code == 422
    assert catalog.calls == []


def test_upstream_failures_map_to_bad_gateway(make_catalog) -> None:
    catalog = make_catalog({2: 1, 1: 10}, failing_counts=[1])

    with TestClient(build_app(catalog)) as client:
        response = client.get("/recommendations/movie", params={"genres": "action,comedy"})

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["genre_count"] == 1
    assert detail["genres"] == ["action"]


def test_year_preferences_from_raw_items(make_catalog) -> None:
    items = [
        {"media_type": "movie", "release_date": f"{year}-05-01", "genre_ids": [28]}
        for year in (2015, 2016, 2017, 2018, 1995, 1998, 1999)
    ] + [{"media_type": "movie", "release_date": "not a date", "genre_ids": [28]}, "junk"]

    with TestClient(build_app(make_catalog({}))) as client:
        response = client.post("/preferences/years", json={"items": items})

    assert response.status_code == 200
    (action,) = response.json()["preferences"]
    assert action["genre_id"] == "action"
    assert action["sample_size"] == 7
    assert action["preferred_decades"] == [2010, 1990]
    assert action["confidence"] == "medium"
    assert action["effective_year_range"] == {"min": 1985, "max": 2025}


def test_year_preferences_require_item_list(make_catalog) -> None:
    with TestClient(build_app(make_catalog({}))) as client:
        response = client.post("/preferences/years", json={"items": "action"})

    assert response.status_code == 400


def test_genres_listing_respects_child_safety(make_catalog) -> None:
    with TestClient(build_app(make_catalog({}))) as client:
        everything = client.get("/genres").json()["genres"]
        safe = client.get("/genres", params={"childSafetyMode": "true"}).json()["genres"]

    assert len(safe) < len(everything)
    assert all(genre["childSafe"] for genre in safe)


def test_healthcheck(make_catalog) -> None:
    with TestClient(build_app(make_catalog({}))) as client:
        assert client.get("/healthz").json() == {"status": "ok"}
