"""In-process cache of genre tier page counts."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, Sequence

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
TierBuilder = Callable[[], Awaitable[Sequence["GenreTier"]]]


@dataclass(frozen=True, slots=True)
class GenreTier:
    """Upstream page count for the first ``genre_count`` priority genres."""

    genre_count: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class GenreFilterTierTable:
    """Tiers ordered from most specific (all genres) to a single genre."""

    tiers: tuple[GenreTier, ...]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def validate_tiers(tiers: Sequence[GenreTier]) -> tuple[GenreTier, ...]:
    """Reject tables that would mis-map pages if cached."""

    ordered = tuple(tiers)
    if not ordered:
        raise InvalidInputError("A tier table needs at least one tier")
    expected = list(range(len(ordered), 0, -1))
    if [tier.genre_count for tier in ordered] != expected:
        raise InvalidInputError(
            f"Tier genre counts must run {expected}, got "
            f"{[tier.genre_count for tier in ordered]}"
        )
    if any(tier.total_pages < 0 for tier in ordered):
        raise InvalidInputError("Tier page counts must not be negative")
    return ordered


class TierCache:
    """TTL cache of tier tables with single-flight population.

    Entries expire lazily on access. While a table is being built for a key,
    further callers for the same key wait on that build instead of starting
    their own; a failed build is shared with the waiters and leaves nothing
    behind. A caller that is cancelled stops waiting, but the build carries on
    for everyone else.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        if ttl_seconds <= 0:
            raise InvalidInputError("Tier cache TTL must be positive")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._tables: dict[Hashable, GenreFilterTierTable] = {}
        self._inflight: dict[Hashable, asyncio.Future[GenreFilterTierTable]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def get(self, key: Hashable) -> GenreFilterTierTable | None:
        """Return the live table for ``key``, evicting it if expired."""

        table = self._tables.get(key)
        if table is None:
            return None
        if table.is_expired(self._clock()):
            logger.debug("Tier table for %s expired; it will be rebuilt", key)
            self._tables.pop(key, None)
            return None
        return table

    def put(self, key: Hashable, tiers: Sequence[GenreTier]) -> GenreFilterTierTable:
        table = GenreFilterTierTable(
            tiers=validate_tiers(tiers),
            expires_at=self._clock() + self._ttl,
        )
        self._tables[key] = table
        return table

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one table, or every table when ``key`` is omitted."""

        if key is None:
            self._tables.clear()
        else:
            self._tables.pop(key, None)

    def is_building(self, key: Hashable) -> bool:
        return key in self._inflight

    async def get_or_build(
        self, key: Hashable, builder: TierBuilder
    ) -> GenreFilterTierTable:
        """Return the cached table or build it once for all concurrent callers."""

        cached = self.get(key)
        if cached is not None:
            return cached

        build = self._inflight.get(key)
        if build is None:
            logger.debug("Tier cache miss for %s; discovering tiers", key)
            build = asyncio.ensure_future(self._build(key, builder))
            build.add_done_callback(_consume_failure)
            self._inflight[key] = build
        else:
            logger.debug("Joining in-flight tier discovery for %s", key)
        # The build runs in its own task so one caller's cancellation never
        # reaches the others.
        return await asyncio.shield(build)

    async def _build(self, key: Hashable, builder: TierBuilder) -> GenreFilterTierTable:
        try:
            return self.put(key, await builder())
        finally:
            self._inflight.pop(key, None)


def _consume_failure(build: asyncio.Future) -> None:
    # Every caller may have gone away; mark the outcome retrieved.
    if not build.cancelled():
        build.exception()
