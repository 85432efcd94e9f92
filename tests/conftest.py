"""Shared test fixtures for the Cinegarr test suite."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from cinegarr.application.request_tracker import RequestTracker
from cinegarr.application.use_cases import AggregatorSettings, MovieAggregator
from cinegarr.domain.entities import (
    Category,
    DetailFragment,
    DownloadLink,
    ListingPage,
    MovieListing,
)
from cinegarr.infrastructure.common import RetryPolicy, process_all
from cinegarr.infrastructure.ranking import dedupe_by_title

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


def make_listing(
    title: str = "Heat (1995) 1080p",
    link: str = "https://example.com/heat",
    source: str = "fake",
    **kwargs: Any,
) -> MovieListing:
    return MovieListing(title=title, link=link, source=source, **kwargs)


@pytest.fixture()
def movie_listing() -> MovieListing:
    """Minimal valid MovieListing."""
    return make_listing(quality="1080P")


@pytest.fixture()
def detail_fragment() -> DetailFragment:
    return DetailFragment(
        thumbnail="https://img.example.com/heat-poster.jpg",
        download_links=[
            DownloadLink(label="720p", url="https://dl.example.com/720"),
            DownloadLink(label="1080p", url="https://dl.example.com/1080"),
        ],
        genre=["Action", "Crime"],
        language="English",
        story="A group of professional bank robbers...",
    )


# ---------------------------------------------------------------------------
# Fake source adapters
# ---------------------------------------------------------------------------


@dataclass
class FakeSource:
    """In-memory SourceAdapter; raise by setting the matching ``*_error``."""

    name: str = "fake"
    supports_popular: bool = False
    supports_pagination: bool = False
    supports_search: bool = True

    latest: list[MovieListing] = field(default_factory=list)
    popular: list[MovieListing] = field(default_factory=list)
    results: list[MovieListing] = field(default_factory=list)
    details: dict[str, DetailFragment | None] = field(default_factory=dict)
    has_more: bool = False

    latest_error: BaseException | None = None
    popular_error: BaseException | None = None
    search_error: BaseException | None = None
    detail_error: BaseException | None = None

    calls: list[tuple[str, Any]] = field(default_factory=list)
    closed: bool = False

    async def list_latest(self, page: int = 1) -> ListingPage:
        self.calls.append(("latest", page))
        if self.latest_error:
            raise self.latest_error
        return ListingPage(listings=tuple(self.latest), has_more=self.has_more)

    async def list_popular(self) -> list[MovieListing]:
        self.calls.append(("popular", None))
        if self.popular_error:
            raise self.popular_error
        return list(self.popular)

    async def search(self, query: str) -> list[MovieListing]:
        self.calls.append(("search", query))
        if self.search_error:
            raise self.search_error
        return list(self.results)

    async def fetch_detail(self, link: str) -> DetailFragment | None:
        self.calls.append(("detail", link))
        if self.detail_error:
            raise self.detail_error
        return self.details.get(link)

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakeCategorySource(FakeSource):
    categories: list[Category] = field(default_factory=list)
    category_pages: dict[str, ListingPage] = field(default_factory=dict)

    async def list_categories(self) -> list[Category]:
        self.calls.append(("categories", None))
        return list(self.categories)

    async def list_category(self, slug: str, page: int = 1) -> ListingPage:
        self.calls.append(("category", (slug, page)))
        return self.category_pages.get(slug, ListingPage())


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def instant_retry() -> RetryPolicy:
    """RetryPolicy without backoff delays."""
    return RetryPolicy(max_retries=1, base_delay=0.0, max_jitter=0.0)


@pytest.fixture()
def fast_settings() -> AggregatorSettings:
    """AggregatorSettings without pacing delays."""
    return AggregatorSettings(stagger_seconds=0.0, batch_pause_seconds=0.0)


@pytest.fixture()
def make_aggregator(
    instant_retry: RetryPolicy,
    fast_settings: AggregatorSettings,
) -> Callable[..., MovieAggregator]:
    def _make(
        *sources: FakeSource,
        category_source: FakeCategorySource | None = None,
        settings: AggregatorSettings | None = None,
        tracker: RequestTracker | None = None,
    ) -> MovieAggregator:
        return MovieAggregator(
            list(sources),
            retry=instant_retry,
            batch_runner=process_all,
            deduper=dedupe_by_title,
            category_source=category_source,
            tracker=tracker,
            settings=settings or fast_settings,
        )

    return _make


@pytest.fixture()
def make_source() -> Callable[..., FakeSource]:
    """Factory for in-memory source adapters."""
    return FakeSource


@pytest.fixture()
def make_category_source() -> Callable[..., FakeCategorySource]:
    return FakeCategorySource


@pytest.fixture()
def listing_factory() -> Callable[..., MovieListing]:
    return make_listing
