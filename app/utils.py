"""Utility helpers for the Tastecast service."""

from __future__ import annotations

import re
from typing import Iterable


YEAR_PREFIX_RE = re.compile(r"^\s*(\d{4})(?:\D|$)")
MIN_PLAUSIBLE_YEAR = 1900
MAX_PLAUSIBLE_YEAR = 2050


def extract_year(date_value: object) -> int | None:
    """Return the year of a ``YYYY[-MM-DD]`` string, or ``None``.

    Years outside 1900..2050 are treated as data-entry noise.
    """

    if not isinstance(date_value, str):
        return None
    match = YEAR_PREFIX_RE.match(date_value)
    if not match:
        return None
    year = int(match.group(1))
    if not is_plausible_year(year):
        return None
    return year


def is_plausible_year(year: object) -> bool:
    if isinstance(year, bool) or not isinstance(year, int):
        return False
    return MIN_PLAUSIBLE_YEAR <= year <= MAX_PLAUSIBLE_YEAR


def split_csv(value: str | None) -> list[str]:
    """Split a comma separated query value into trimmed, non-empty parts."""

    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def unique_in_order(values: Iterable[str]) -> list[str]:
    """Drop duplicates while keeping the first occurrence of each value."""

    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
