"""Title-based de-duplication that keeps the best quality variant."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from cinegarr.domain.entities import MovieListing
from cinegarr.infrastructure.common.extractors import quality_rank

M = TypeVar("M", bound=MovieListing)


def base_title_key(title: str) -> str:
    """Title text before the first ``(``, trimmed and case-folded.

    ``"Heat (1995) 1080p"`` and ``"heat (1995) 720p"`` share the key
    ``"heat"``.  Distinct movies with the same prefix collapse as well.
    """
    idx = title.find("(")
    head = title[:idx] if idx != -1 else title
    return head.strip().casefold()


def dedupe_by_title(movies: Iterable[M]) -> list[M]:
    """Keep one entry per base title: the one with the best quality rank.

    Ties keep the entry seen first; output follows first-seen key order.
    """
    best: dict[str, M] = {}
    for movie in movies:
        key = base_title_key(movie.title)
        current = best.get(key)
        if current is None or quality_rank(movie.quality) < quality_rank(
            current.quality
        ):
            best[key] = movie
    return list(best.values())
