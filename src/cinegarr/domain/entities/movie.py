"""Domain models for movie listings, detail records and result envelopes."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Literal

SourceType = Literal["popular", "latest"]


@dataclass(frozen=True)
class DownloadLink:
    """A labelled download URL from a detail page."""

    label: str
    url: str


@dataclass(frozen=True)
class Category:
    """Filter facet offered by a listing site."""

    slug: str
    name: str


@dataclass(frozen=True)
class MovieListing:
    """Lightweight movie record scraped from a catalog or search page."""

    title: str
    link: str
    source: str
    quality: str | None = None
    size: str | None = None
    thumbnail: str | None = None


@dataclass(frozen=True)
class MovieDetail(MovieListing):
    """Listing enriched with the movie's own detail page."""

    download_links: tuple[DownloadLink, ...] = ()
    genre: tuple[str, ...] = ()
    language: str | None = None
    format: str | None = None
    release_date: str | None = None
    stars: str | None = None
    story: str | None = None
    duration: str | None = None
    images: tuple[str, ...] = ()


@dataclass
class DetailFragment:
    """Optional-field result of a detail page scrape.

    Adapters fill whatever their page exposes; absent fields stay
    ``None`` (or empty) and never override listing values.
    """

    title: str | None = None
    thumbnail: str | None = None
    download_links: list[DownloadLink] = field(default_factory=list)
    genre: list[str] = field(default_factory=list)
    quality: str | None = None
    size: str | None = None
    language: str | None = None
    format: str | None = None
    release_date: str | None = None
    stars: str | None = None
    story: str | None = None
    duration: str | None = None
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ListingPage:
    """One page of listings from a single source."""

    listings: tuple[MovieListing, ...] = ()
    has_more: bool = False


@dataclass(frozen=True)
class ScrapeRequest:
    """Parameters of one aggregation request."""

    query: str | None = None
    category: str | None = None
    page: int = 1
    include_details: bool = True
    source_type: SourceType | None = None
    request_key: str | None = None


@dataclass(frozen=True)
class ErrorInfo:
    """Stable error description carried by an envelope."""

    code: str
    message: str
    status: int


@dataclass(frozen=True)
class ResultEnvelope:
    """Uniform response shape returned for every listing operation."""

    movies: tuple[MovieListing, ...] = ()
    total: int = 0
    has_more: bool = False
    next_page: int | None = None
    query: str | None = None
    cache_max_age: int = 0
    error: ErrorInfo | None = None
    superseded: bool = False


@dataclass(frozen=True)
class CategoryEnvelope:
    """Response shape for the category facet list."""

    categories: tuple[Category, ...] = ()
    cache_max_age: int = 0
    error: ErrorInfo | None = None


_LISTING_FIELDS = frozenset(f.name for f in fields(MovieListing))


def merge_detail(listing: MovieListing, fragment: DetailFragment) -> MovieDetail:
    """Overlay the non-empty fields of *fragment* onto *listing*.

    Detail page values win over listing page values, except ``quality``:
    a quality parsed from the listing title is kept and the detail page
    quality only fills the gap.  The title is replaced only when the
    detail page supplies a different, non-empty one.
    """
    base = {name: getattr(listing, name) for name in _LISTING_FIELDS}
    if isinstance(listing, MovieDetail):
        base.update(
            {
                f.name: getattr(listing, f.name)
                for f in fields(MovieDetail)
                if f.name not in _LISTING_FIELDS
            }
        )

    if fragment.title and fragment.title != listing.title:
        base["title"] = fragment.title
    if fragment.quality and not listing.quality:
        base["quality"] = fragment.quality

    for name in (
        "thumbnail",
        "size",
        "language",
        "format",
        "release_date",
        "stars",
        "story",
        "duration",
    ):
        value = getattr(fragment, name)
        if value:
            base[name] = value

    if fragment.download_links:
        base["download_links"] = tuple(fragment.download_links)
    if fragment.genre:
        base["genre"] = tuple(fragment.genre)
    if fragment.images:
        base["images"] = tuple(fragment.images)

    return MovieDetail(**base)
