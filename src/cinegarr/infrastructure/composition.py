"""Composition root: wires config into the HTTP stack, sources and aggregator."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

import httpx
import structlog

from cinegarr.application.request_tracker import RequestTracker
from cinegarr.application.use_cases import AggregatorSettings, MovieAggregator
from cinegarr.domain.ports import SourceAdapter
from cinegarr.infrastructure.common import (
    ResilientFetcher,
    RetryPolicy,
    SlidingWindowRateLimiter,
    process_all,
)
from cinegarr.infrastructure.config import AppConfig
from cinegarr.infrastructure.ranking import dedupe_by_title
from cinegarr.infrastructure.sources import (
    FilmyWapSource,
    NineXMovieSource,
    SkyBapSource,
)

log = structlog.get_logger(__name__)


@dataclass
class Engine:
    """Everything a shell needs to serve requests, plus its cleanup."""

    aggregator: MovieAggregator
    http_client: httpx.AsyncClient
    rate_limiter: SlidingWindowRateLimiter
    sources: list[SourceAdapter] = field(default_factory=list)
    owns_client: bool = True

    async def aclose(self) -> None:
        for source in self.sources:
            await source.aclose()
        if self.owns_client:
            await self.http_client.aclose()
            log.info("http_client_closed")
        log.info("engine_closed")


def settings_from_config(config: AppConfig) -> AggregatorSettings:
    return AggregatorSettings(
        min_query_length=config.search.min_length,
        max_query_length=config.search.max_length,
        search_result_limit=config.search.result_limit,
        blocked_tokens=tuple(config.content_filter.blocked_tokens),
        concurrency=config.batch.concurrency,
        stagger_seconds=config.batch.stagger_seconds,
        batch_pause_seconds=config.batch.batch_pause_seconds,
        fail_on_total_failure=config.aggregation.fail_on_total_failure,
        detail_max_age=config.cache.detail_max_age,
        basic_max_age=config.cache.basic_max_age,
    )


def build_sources(config: AppConfig, fetcher: ResilientFetcher) -> list[SourceAdapter]:
    """Instantiate the enabled adapters in configured order."""
    factories = {
        "skybap": lambda: SkyBapSource(
            fetcher,
            portal_url=config.sources.skybap_portal_url,
            fallback_url=config.sources.skybap_fallback_url,
        ),
        "ninexmovie": lambda: NineXMovieSource(
            fetcher, base_url=config.sources.ninexmovie_url
        ),
        "filmywap": lambda: FilmyWapSource(
            fetcher, base_url=config.sources.filmywap_url
        ),
    }
    return [factories[name]() for name in config.sources.enabled]


def build_engine(
    config: AppConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> Engine:
    """Build the engine.

    Order matters:
        1. Rate limiter (process-wide, shared by reference)
        2. HTTP client + fetcher (every adapter goes through it)
        3. Sources
        4. Aggregator (retry policy, batch processor, dedupe, tracker)
    """
    # ========== 1) Rate limiter ==========
    rate_limiter = SlidingWindowRateLimiter(
        max_requests=config.rate_limit.max_requests,
        window_seconds=config.rate_limit.window_seconds,
    )

    # ========== 2) HTTP client + fetcher ==========
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        follow_redirects=config.http_follow_redirects,
    )
    fetcher = ResilientFetcher(
        client,
        rate_limiter,
        user_agents=config.http_user_agents,
        timeout=config.http_timeout_seconds,
        detail_timeout=config.http_detail_timeout_seconds,
    )
    log.info("http_client_initialized", owned=owns_client)

    # ========== 3) Sources ==========
    sources = build_sources(config, fetcher)
    category_source = next((s for s in sources if isinstance(s, SkyBapSource)), None)
    log.info("sources_initialized", sources=[s.name for s in sources])

    # ========== 4) Aggregator ==========
    aggregator = MovieAggregator(
        sources,
        retry=RetryPolicy(
            max_retries=config.retry.max_retries,
            base_delay=config.retry.base_delay_seconds,
            max_jitter=config.retry.max_jitter_seconds,
        ),
        batch_runner=process_all,
        deduper=dedupe_by_title,
        category_source=category_source,
        tracker=RequestTracker(config.aggregation.request_tracker_size),
        settings=settings_from_config(config),
    )
    log.info("aggregator_initialized")

    return Engine(
        aggregator=aggregator,
        http_client=client,
        rate_limiter=rate_limiter,
        sources=sources,
        owns_client=owns_client,
    )


@asynccontextmanager
async def open_engine(
    config: AppConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[Engine]:
    """Build the engine and close it on exit."""
    engine = build_engine(config, http_client=http_client)
    try:
        yield engine
    finally:
        await engine.aclose()
