"""Render envelopes into the camelCase wire shape used by shells."""

from __future__ import annotations

from typing import Any

from cinegarr.domain.entities import (
    CategoryEnvelope,
    ErrorInfo,
    MovieDetail,
    MovieListing,
    ResultEnvelope,
)

# snake_case attribute -> wire key; empty values are omitted
_MOVIE_FIELDS: tuple[tuple[str, str], ...] = (
    ("quality", "quality"),
    ("size", "size"),
    ("thumbnail", "thumbnail"),
    ("language", "language"),
    ("format", "format"),
    ("release_date", "releaseDate"),
    ("stars", "stars"),
    ("story", "story"),
    ("duration", "duration"),
)


def movie_to_dict(movie: MovieListing) -> dict[str, Any]:
    out: dict[str, Any] = {
        "title": movie.title,
        "link": movie.link,
        "source": movie.source,
    }
    for attr, key in _MOVIE_FIELDS:
        value = getattr(movie, attr, None)
        if value:
            out[key] = value

    if isinstance(movie, MovieDetail):
        if movie.download_links:
            out["downloadLinks"] = [
                {"label": link.label, "url": link.url} for link in movie.download_links
            ]
        if movie.genre:
            out["genre"] = list(movie.genre)
        if movie.images:
            out["images"] = list(movie.images)
    return out


def _error_fields(error: ErrorInfo) -> dict[str, Any]:
    return {"error": error.message, "code": error.code, "status": error.status}


def envelope_to_dict(envelope: ResultEnvelope) -> dict[str, Any]:
    if envelope.error is not None:
        out = _error_fields(envelope.error)
        if envelope.query is not None:
            out["query"] = envelope.query
        return out

    out = {
        "movies": [movie_to_dict(m) for m in envelope.movies],
        "total": envelope.total,
        "hasMore": envelope.has_more,
        "cacheMaxAge": envelope.cache_max_age,
    }
    if envelope.next_page is not None:
        out["nextPage"] = envelope.next_page
    if envelope.query is not None:
        out["query"] = envelope.query
    if envelope.superseded:
        out["superseded"] = True
    return out


def categories_to_dict(envelope: CategoryEnvelope) -> dict[str, Any]:
    if envelope.error is not None:
        return _error_fields(envelope.error)
    return {
        "categories": [{"slug": c.slug, "name": c.name} for c in envelope.categories],
        "cacheMaxAge": envelope.cache_max_age,
    }
