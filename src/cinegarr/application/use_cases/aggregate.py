"""Movie aggregation use case.

Request -> validate -> fan out to sources -> content filter
-> detail enrichment per source -> de-duplicate -> envelope.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import structlog

from cinegarr.application.request_tracker import RequestTracker, RequestToken
from cinegarr.domain.entities import (
    CategoryEnvelope,
    ListingPage,
    MovieListing,
    ResultEnvelope,
    ScrapeRequest,
    SourceType,
    merge_detail,
)
from cinegarr.domain.errors import (
    CinegarrError,
    ScrapingError,
    ValidationError,
    error_info_from_exception,
)
from cinegarr.domain.ports import CategorySource, SourceAdapter

log = structlog.get_logger(__name__)

T = TypeVar("T")

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from infrastructure.
# ---------------------------------------------------------------------------


class _Retrier(Protocol):
    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        context: str = "",
    ) -> T: ...


class _BatchRunner(Protocol):
    async def __call__(
        self,
        items: Sequence[Any],
        work: Callable[[Any, int], Awaitable[Any]],
        concurrency_limit: int,
        *,
        stagger: float = ...,
        batch_pause: float = ...,
    ) -> list[Any]: ...


_Deduper = Callable[[Iterable[MovieListing]], list[MovieListing]]


@dataclass(frozen=True)
class AggregatorSettings:
    """Tunables consumed by :class:`MovieAggregator`."""

    min_query_length: int = 2
    max_query_length: int = 100
    search_result_limit: int = 20
    blocked_tokens: tuple[str, ...] = ("unrated", "18+", "xxx", "adult")
    concurrency: int = 50
    stagger_seconds: float = 0.1
    batch_pause_seconds: float = 0.5
    fail_on_total_failure: bool = False
    detail_max_age: int = 600
    basic_max_age: int = 300


def sanitize_query(query: str) -> str:
    """Trim and strip angle brackets."""
    return _ANGLE_BRACKETS_RE.sub("", query.strip())


@dataclass
class _Collected:
    listings: list[MovieListing]
    has_more: bool


class MovieAggregator:
    """Aggregates listings from every configured source into one envelope.

    All public operations return envelopes and never raise: validation
    problems map to ``VALIDATION_ERROR``, scraping failures that reach the
    boundary map to ``SCRAPING_ERROR`` and anything else to
    ``INTERNAL_ERROR``.  A source failing on its own only contributes
    nothing to the result.
    """

    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        *,
        retry: _Retrier,
        batch_runner: _BatchRunner,
        deduper: _Deduper,
        category_source: CategorySource | None = None,
        tracker: RequestTracker | None = None,
        settings: AggregatorSettings | None = None,
    ) -> None:
        self._sources = list(sources)
        self._sources_by_name = {s.name: s for s in self._sources}
        self._retry = retry
        self._batch_runner = batch_runner
        self._dedupe = deduper
        self._category_source = category_source
        self._tracker = tracker if tracker is not None else RequestTracker()
        self._settings = settings or AggregatorSettings()

    @property
    def sources(self) -> list[SourceAdapter]:
        return list(self._sources)

    @property
    def category_source(self) -> CategorySource | None:
        return self._category_source

    @property
    def tracker(self) -> RequestTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_home_listings(
        self,
        include_details: bool = True,
        source_type: SourceType | None = None,
    ) -> ResultEnvelope:
        """First page of popular and/or latest listings from every source."""
        request = ScrapeRequest(include_details=include_details, source_type=source_type)
        return await self._execute("home", request)

    async def get_listings(
        self,
        page: int = 1,
        category: str | None = None,
        search: str | None = None,
        include_details: bool = True,
        request_key: str | None = None,
    ) -> ResultEnvelope:
        """Paginated listings, optionally narrowed to a category or a search."""
        if search is not None:
            return await self.search_movies(
                search, include_details=include_details, request_key=request_key
            )
        request = ScrapeRequest(
            category=category,
            page=page,
            include_details=include_details,
            request_key=request_key,
        )
        return await self._execute("listings", request)

    async def search_movies(
        self,
        query: str,
        include_details: bool = True,
        request_key: str | None = None,
    ) -> ResultEnvelope:
        """Search every search-capable source; results are never paginated."""
        request = ScrapeRequest(
            query=query,
            include_details=include_details,
            request_key=request_key,
        )
        return await self._execute("search", request)

    async def get_categories(self) -> CategoryEnvelope:
        """Category facet of the category-capable source."""
        max_age = self._settings.basic_max_age
        if self._category_source is None:
            return CategoryEnvelope(cache_max_age=max_age)

        source = self._category_source
        try:
            categories = await self._retry.run(
                source.list_categories, context=f"{source.name}:categories"
            )
        except CinegarrError as exc:
            log.warning("categories_failed", source=source.name, error=str(exc))
            return CategoryEnvelope(error=error_info_from_exception(exc))
        except Exception as exc:
            log.exception("categories_unexpected_error", source=source.name)
            return CategoryEnvelope(error=error_info_from_exception(exc))

        log.info("categories_completed", source=source.name, count=len(categories))
        return CategoryEnvelope(categories=tuple(categories), cache_max_age=max_age)

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    async def _execute(self, operation: str, request: ScrapeRequest) -> ResultEnvelope:
        """Run one request and map every failure onto an envelope."""
        started = time.perf_counter()
        token = self._tracker.begin(request.request_key) if request.request_key else None
        query: str | None = None

        try:
            if request.query is not None:
                query = self._validate_query(request.query)
                envelope = await self._run_pipeline(request, token, query)
            else:
                self._validate_listing_request(request)
                envelope = await self._run_pipeline(request, token, None)
        except CinegarrError as exc:
            log.warning(
                "aggregate_failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ResultEnvelope(query=query, error=error_info_from_exception(exc))
        except Exception as exc:
            log.exception("aggregate_unexpected_error", operation=operation)
            return ResultEnvelope(query=query, error=error_info_from_exception(exc))

        log.info(
            "aggregate_completed",
            operation=operation,
            total=envelope.total,
            has_more=envelope.has_more,
            superseded=envelope.superseded,
            duration_ms=round((time.perf_counter() - started) * 1000),
        )
        return envelope

    def _validate_query(self, raw: str) -> str:
        s = self._settings
        query = sanitize_query(raw)
        if not query:
            raise ValidationError("Search query is required")
        if len(query) < s.min_query_length:
            raise ValidationError(
                f"Search query must be at least {s.min_query_length} characters long"
            )
        if len(query) > s.max_query_length:
            raise ValidationError(
                f"Search query is too long (max {s.max_query_length} characters)"
            )
        return query

    def _validate_listing_request(self, request: ScrapeRequest) -> None:
        if request.page < 1:
            raise ValidationError("Page must be a positive integer")
        if request.category is not None:
            if not request.category.strip():
                raise ValidationError("Category must not be empty")
            if self._category_source is None:
                raise ValidationError("Category filtering is not available")

    async def _run_pipeline(
        self,
        request: ScrapeRequest,
        token: RequestToken | None,
        query: str | None,
    ) -> ResultEnvelope:
        if query is not None:
            collected = await self._collect_search(query)
        elif request.category is not None:
            collected = await self._collect_category(request.category.strip(), request.page)
        else:
            collected = await self._collect_listings(request.page, request.source_type)

        listings = self._apply_content_filter(collected.listings)
        if query is not None:
            listings = listings[: self._settings.search_result_limit]

        if self._is_stale(token):
            return self._superseded(query)

        if request.include_details and listings:
            listings = await self._enrich(listings)
            if self._is_stale(token):
                return self._superseded(query)

        movies = self._dedupe(listings)
        has_more = collected.has_more and query is None
        return ResultEnvelope(
            movies=tuple(movies),
            total=len(movies),
            has_more=has_more,
            next_page=request.page + 1 if has_more else None,
            query=query,
            cache_max_age=(
                self._settings.detail_max_age
                if request.include_details
                else self._settings.basic_max_age
            ),
        )

    def _is_stale(self, token: RequestToken | None) -> bool:
        if token is None or self._tracker.is_current(token):
            return False
        log.info("request_superseded", request_key=token.key)
        return True

    @staticmethod
    def _superseded(query: str | None) -> ResultEnvelope:
        return ResultEnvelope(query=query, superseded=True)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _collect_listings(
        self,
        page: int,
        source_type: SourceType | None,
    ) -> _Collected:
        calls: list[tuple[str, Callable[[], Awaitable[ListingPage]]]] = []

        for source in self._sources:
            if page > 1 and not source.supports_pagination:
                continue
            if source_type in (None, "popular") and page == 1 and source.supports_popular:
                calls.append((f"{source.name}:popular", _as_page(source.list_popular)))
            if source_type in (None, "latest"):
                calls.append((f"{source.name}:latest", _bind_page(source.list_latest, page)))

        return await self._fan_out(calls)

    async def _collect_search(self, query: str) -> _Collected:
        calls = [
            (f"{source.name}:search", _as_page(_bind_query(source.search, query)))
            for source in self._sources
            if source.supports_search
        ]
        collected = await self._fan_out(calls)
        return _Collected(listings=collected.listings, has_more=False)

    async def _collect_category(self, slug: str, page: int) -> _Collected:
        source = self._category_source
        if source is None:
            raise ValidationError("Category filtering is not available")
        return await self._fan_out(
            [(f"{source.name}:category", _bind_category(source.list_category, slug, page))]
        )

    async def _fan_out(
        self,
        calls: Sequence[tuple[str, Callable[[], Awaitable[ListingPage]]]],
    ) -> _Collected:
        """Run every call under the retry policy; failures contribute nothing."""
        if not calls:
            return _Collected(listings=[], has_more=False)

        outcomes = await asyncio.gather(
            *(self._retry.run(call, context=context) for context, call in calls),
            return_exceptions=True,
        )

        listings: list[MovieListing] = []
        has_more = False
        failures = 0
        last_error: BaseException | None = None
        for (context, _), outcome in zip(calls, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                failures += 1
                last_error = outcome
                log.warning("source_failed", context=context, error=str(outcome))
                continue
            log.info("source_completed", context=context, count=len(outcome.listings))
            listings.extend(outcome.listings)
            has_more = has_more or outcome.has_more

        if failures == len(calls) and self._settings.fail_on_total_failure:
            raise ScrapingError(
                f"All sources failed to respond: {last_error}",
                502,
                cause=last_error,
            )
        return _Collected(listings=listings, has_more=has_more)

    # ------------------------------------------------------------------
    # Filtering and enrichment
    # ------------------------------------------------------------------

    def _apply_content_filter(self, listings: list[MovieListing]) -> list[MovieListing]:
        tokens = [t.lower() for t in self._settings.blocked_tokens if t]
        if not tokens:
            return listings
        kept = [m for m in listings if not any(t in m.title.lower() for t in tokens)]
        if len(kept) != len(listings):
            log.info("content_filtered", dropped=len(listings) - len(kept))
        return kept

    async def _enrich(self, listings: list[MovieListing]) -> list[MovieListing]:
        """Merge each listing with its detail page, grouped by owning source."""
        enriched = list(listings)
        groups: dict[str, list[tuple[int, MovieListing]]] = {}
        for position, listing in enumerate(listings):
            groups.setdefault(listing.source, []).append((position, listing))

        async def _enrich_group(name: str, members: list[tuple[int, MovieListing]]) -> None:
            source = self._sources_by_name.get(name)
            if source is None:
                log.warning("enrichment_source_unknown", source=name, count=len(members))
                return

            async def _work(item: tuple[int, MovieListing], _index: int) -> tuple[int, MovieListing]:
                position, listing = item
                return position, await self._enrich_one(source, listing)

            log.info(
                "enrichment_started",
                source=name,
                count=len(members),
                concurrency=min(self._settings.concurrency, len(members)),
            )
            results = await self._batch_runner(
                members,
                _work,
                min(self._settings.concurrency, len(members)),
                stagger=self._settings.stagger_seconds,
                batch_pause=self._settings.batch_pause_seconds,
            )
            for position, movie in results:
                enriched[position] = movie

        await asyncio.gather(*(_enrich_group(n, m) for n, m in groups.items()))
        return enriched

    async def _enrich_one(self, source: SourceAdapter, listing: MovieListing) -> MovieListing:
        """Detail-merge one listing; any failure keeps the listing as is."""
        try:
            fragment = await self._retry.run(
                lambda: source.fetch_detail(listing.link),
                context=f"{source.name}:detail",
            )
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "detail_fetch_failed",
                source=source.name,
                link=listing.link,
                error=str(exc),
            )
            return listing
        if fragment is None:
            return listing
        return merge_detail(listing, fragment)


# ---------------------------------------------------------------------------
# Call adapters: uniform zero-argument callables returning ListingPage.
# ---------------------------------------------------------------------------


def _as_page(
    fn: Callable[[], Awaitable[list[MovieListing]]],
) -> Callable[[], Awaitable[ListingPage]]:
    async def _call() -> ListingPage:
        return ListingPage(listings=tuple(await fn()))

    return _call


def _bind_page(
    fn: Callable[[int], Awaitable[ListingPage]],
    page: int,
) -> Callable[[], Awaitable[ListingPage]]:
    async def _call() -> ListingPage:
        return await fn(page)

    return _call


def _bind_query(
    fn: Callable[[str], Awaitable[list[MovieListing]]],
    query: str,
) -> Callable[[], Awaitable[list[MovieListing]]]:
    async def _call() -> list[MovieListing]:
        return await fn(query)

    return _call


def _bind_category(
    fn: Callable[[str, int], Awaitable[ListingPage]],
    slug: str,
    page: int,
) -> Callable[[], Awaitable[ListingPage]]:
    async def _call() -> ListingPage:
        return await fn(slug, page)

    return _call
