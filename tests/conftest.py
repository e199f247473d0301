"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from app.errors import PageOutOfRangeError, UpstreamUnavailableError  # noqa: E402
from app.models import CatalogPage, YearRange  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCatalog:
    """Catalog stub returning a fixed page count per genre prefix length."""

    def __init__(
        self,
        pages_by_count: dict[int, int],
        *,
        failing_counts: Sequence[int] = (),
        rejected_pages_after: int | None = None,
    ):
        self.pages_by_count = dict(pages_by_count)
        self.failing_counts = set(failing_counts)
        self.rejected_pages_after = rejected_pages_after
        self.calls: list[tuple[str, str, tuple[str, ...], int, bool, YearRange | None]] = []

    async def search_catalog(
        self,
        media_type,
        endpoint,
        genre_ids,
        page,
        *,
        safety_mode=False,
        year_range=None,
    ) -> CatalogPage:
        self.calls.append(
            (media_type, endpoint, tuple(genre_ids), page, safety_mode, year_range)
        )
        count = len(genre_ids)
        if count in self.failing_counts:
            raise UpstreamUnavailableError("boom", status_code=503, page=page)
        if self.rejected_pages_after is not None and page > self.rejected_pages_after:
            raise PageOutOfRangeError("page rejected", status_code=422, page=page)
        total_pages = self.pages_by_count.get(count, 0)
        results = []
        if page <= total_pages:
            results = [
                {"id": count * 100_000 + page * 100 + index, "title": f"{count}-{page}-{index}"}
                for index in range(3)
            ]
        return CatalogPage(
            results=results,
            page=page,
            total_pages=total_pages,
            total_results=total_pages * 20,
        )

    def discovery_calls(self) -> list[tuple[str, ...]]:
        return [call[2] for call in self.calls if call[3] == 1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_catalog():
    """Return the fake catalog class so tests can configure tier sizes."""

    return FakeCatalog
