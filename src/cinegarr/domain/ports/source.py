"""Source adapter ports - capability interfaces implemented per upstream site."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cinegarr.domain.entities import Category, DetailFragment, ListingPage, MovieListing


@runtime_checkable
class SourceAdapter(Protocol):
    """
    Protocol for a site-specific scraping adapter.

    Capability flags tell the orchestrator which operations are
    meaningful: ``list_popular`` is only called when ``supports_popular``
    is set, and only sources with ``supports_pagination`` are asked for
    pages beyond the first.
    """

    name: str
    supports_popular: bool
    supports_pagination: bool
    supports_search: bool

    async def list_latest(self, page: int = 1) -> ListingPage: ...

    async def list_popular(self) -> list[MovieListing]: ...

    async def search(self, query: str) -> list[MovieListing]: ...

    async def fetch_detail(self, link: str) -> DetailFragment | None: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class CategorySource(Protocol):
    """Source that also exposes a category facet."""

    name: str

    async def list_categories(self) -> list[Category]: ...

    async def list_category(self, slug: str, page: int = 1) -> ListingPage: ...
