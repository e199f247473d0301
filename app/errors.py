"""Exceptions raised by the discovery engine."""

from __future__ import annotations

from typing import Sequence


class InvalidInputError(ValueError):
    """Raised synchronously when a caller passes malformed arguments."""


class UpstreamUnavailableError(RuntimeError):
    """The catalog service could not satisfy a request.

    Carries the genre subset and page that were being fetched so callers can
    decide whether and how to retry.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        genres: Sequence[str] = (),
        genre_count: int | None = None,
        page: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.genres = tuple(genres)
        self.genre_count = genre_count
        self.page = page

    def with_context(
        self,
        *,
        genres: Sequence[str],
        genre_count: int,
        page: int,
        stage: str,
    ) -> "UpstreamUnavailableError":
        """Return a copy of the error annotated with the attempted tier."""

        subset = ",".join(genres) or "<none>"
        message = (
            f"{stage} failed for {genre_count}-genre tier [{subset}] "
            f"page {page}: {self}"
        )
        wrapped = type(self)(
            message,
            status_code=self.status_code,
            genres=genres,
            genre_count=genre_count,
            page=page,
        )
        wrapped.__cause__ = self
        return wrapped

    def as_detail(self) -> dict[str, object]:
        """Return a serialisable description for HTTP error payloads."""

        return {
            "message": str(self),
            "status_code": self.status_code,
            "genres": list(self.genres),
            "genre_count": self.genre_count,
            "page": self.page,
        }


class PageOutOfRangeError(UpstreamUnavailableError):
    """The catalog service rejected the requested page number."""
