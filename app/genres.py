"""Canonical genre vocabulary and its translation to TMDB genre ids."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal


MediaType = Literal["movie", "tv"]


@dataclass(frozen=True)
class GenreDefinition:
    """A user-facing genre and the TMDB ids it maps to per media type."""

    id: str
    name: str
    movie_ids: tuple[int, ...]
    tv_ids: tuple[int, ...]
    child_safe: bool = True

    def ids_for(self, media_type: MediaType) -> tuple[int, ...]:
        return self.movie_ids if media_type == "movie" else self.tv_ids


# TMDB has no dedicated TV genre for several of these, so the closest TV
# genre is used instead (e.g. horror -> Sci-Fi & Fantasy + Mystery).
UNIFIED_GENRES: tuple[GenreDefinition, ...] = (
    GenreDefinition("action", "Action", (28,), (10759,)),
    GenreDefinition("adventure", "Adventure", (12,), (10759,)),
    GenreDefinition("animation", "Animation", (16,), (16,)),
    GenreDefinition("comedy", "Comedy", (35,), (35,)),
    GenreDefinition("crime", "Crime", (80,), (80,), child_safe=False),
    GenreDefinition("documentary", "Documentary", (99,), (99,)),
    GenreDefinition("drama", "Drama", (18,), (18,)),
    GenreDefinition("family", "Family", (10751,), (10751,)),
    GenreDefinition("fantasy", "Fantasy", (14,), (10765,)),
    GenreDefinition("history", "History", (36,), (99,)),
    GenreDefinition("horror", "Horror", (27,), (10765, 9648), child_safe=False),
    GenreDefinition("kids", "Kids", (10751, 16), (10762,)),
    GenreDefinition("music", "Music", (10402,), (10402,)),
    GenreDefinition("mystery", "Mystery", (9648,), (9648,)),
    GenreDefinition("news", "News", (99,), (10763,), child_safe=False),
    GenreDefinition("reality", "Reality", (99,), (10764,), child_safe=False),
    GenreDefinition("romance", "Romance", (10749,), (18,)),
    GenreDefinition("scifi", "Science Fiction", (878,), (10765,)),
    GenreDefinition("soap", "Soap", (10749, 18), (10766,), child_safe=False),
    GenreDefinition("thriller", "Thriller", (53,), (9648, 80), child_safe=False),
    GenreDefinition("war", "War", (10752,), (10768,)),
    GenreDefinition("politics", "Politics", (18, 36), (10768,), child_safe=False),
    GenreDefinition("western", "Western", (37,), (37,)),
)


class GenreVocabulary:
    """Pure, total mapping between canonical genre ids and TMDB ids.

    Unknown identifiers are dropped rather than raising, so noisy catalog
    payloads never break profile building or query construction.
    """

    def __init__(self, definitions: Iterable[GenreDefinition] = UNIFIED_GENRES):
        self._definitions = tuple(definitions)
        self._by_id = {definition.id: definition for definition in self._definitions}
        self._reverse: dict[MediaType, dict[int, str]] = {"movie": {}, "tv": {}}
        for definition in self._definitions:
            for media_type in ("movie", "tv"):
                for tmdb_id in definition.ids_for(media_type):
                    # First definition listing an id owns it.
                    self._reverse[media_type].setdefault(tmdb_id, definition.id)

    @property
    def definitions(self) -> tuple[GenreDefinition, ...]:
        return self._definitions

    def get(self, genre_id: str) -> GenreDefinition | None:
        if not isinstance(genre_id, str):
            return None
        return self._by_id.get(genre_id.strip().lower())

    def display_name(self, genre_id: str) -> str:
        definition = self.get(genre_id)
        return definition.name if definition else genre_id

    def is_available(self, genre_id: str, media_type: MediaType) -> bool:
        """Return whether the genre has any TMDB mapping for the media type."""

        definition = self.get(genre_id)
        return bool(definition and definition.ids_for(media_type))

    def to_tmdb(self, genre_ids: Iterable[str], media_type: MediaType) -> list[int]:
        """Translate canonical ids to de-duplicated TMDB ids, keeping order."""

        translated: list[int] = []
        for genre_id in genre_ids:
            definition = self.get(genre_id)
            if definition is None:
                continue
            for tmdb_id in definition.ids_for(media_type):
                if tmdb_id not in translated:
                    translated.append(tmdb_id)
        return translated

    def from_tmdb(self, tmdb_ids: Iterable[object], media_type: MediaType) -> list[str]:
        """Translate TMDB ids (ints or numeric strings) to canonical ids."""

        lookup = self._reverse.get(media_type, {})
        translated: list[str] = []
        for raw in tmdb_ids:
            tmdb_id = _coerce_tmdb_id(raw)
            if tmdb_id is None:
                continue
            genre_id = lookup.get(tmdb_id)
            if genre_id is not None and genre_id not in translated:
                translated.append(genre_id)
        return translated

    def options(self, *, child_safe_only: bool = False) -> list[GenreDefinition]:
        """Return every genre, optionally restricted to child-safe ones."""

        if child_safe_only:
            return [definition for definition in self._definitions if definition.child_safe]
        return list(self._definitions)


def _coerce_tmdb_id(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None
