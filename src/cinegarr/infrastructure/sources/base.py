"""Shared base class for httpx-based source adapters.

Holds what every adapter repeats: base-URL handling, HTML fetch through
the shared :class:`ResilientFetcher`, the common listing-item rules and
per-item error isolation.

This base class lives in the *infrastructure* layer because it depends
on ``httpx`` (via the fetcher), ``bs4`` and ``structlog``.  The
*domain* layer only knows ``SourceAdapter``; adapters inheriting from
``HttpxSourceBase`` structurally satisfy that Protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup, Tag

from cinegarr.domain.entities import DetailFragment, ListingPage, MovieListing
from cinegarr.infrastructure.common.extractors import extract_quality, extract_size
from cinegarr.infrastructure.common.fetcher import ResilientFetcher
from cinegarr.infrastructure.common.html_selectors import parse_html
from cinegarr.infrastructure.common.parsers import (
    resolve_url,
    sanitize_text,
    validate_url,
)

MIN_TITLE_LENGTH = 2


class HttpxSourceBase:
    """Shared base for HTML-scraping source adapters.

    Subclasses **must** set:
    - ``name``
    - ``default_base_url``

    Subclasses **must** override:
    - ``list_latest()``, ``search()`` and ``fetch_detail()``

    Subclasses **may** override:
    - ``supports_popular`` / ``supports_pagination`` / ``supports_search``
    - ``list_popular()`` (default raises ``NotImplementedError``)
    - ``_resolve_base_url()`` for sites whose address moves around
    """

    # --- Must be set by subclass ---
    name: str = ""
    default_base_url: str = ""

    # --- Capabilities ---
    supports_popular: bool = False
    supports_pagination: bool = False
    supports_search: bool = True

    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        base_url: str | None = None,
    ) -> None:
        self._fetcher = fetcher
        self.base_url: str = (base_url or self.default_base_url).rstrip("/")
        self._log = structlog.get_logger(self.name or __name__)

    # ------------------------------------------------------------------
    # Base URL
    # ------------------------------------------------------------------

    async def _resolve_base_url(self) -> str:
        """Return the base URL to build request URLs from."""
        return self.base_url

    async def aclose(self) -> None:
        """Release adapter state; the HTTP client belongs to the composition root."""

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def _fetch_html(
        self,
        url: str,
        *,
        method: str = "GET",
        data: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        detail: bool = False,
    ) -> str:
        timeout = self._fetcher.detail_timeout if detail else None
        return await self._fetcher.fetch(
            url,
            method=method,
            data=data,
            headers=headers,
            timeout=timeout,
            referer=self.base_url or None,
        )

    async def _fetch_soup(
        self,
        url: str,
        *,
        method: str = "GET",
        data: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        detail: bool = False,
    ) -> BeautifulSoup:
        html = await self._fetch_html(
            url, method=method, data=data, headers=headers, detail=detail
        )
        return parse_html(html)

    # ------------------------------------------------------------------
    # Listing helpers
    # ------------------------------------------------------------------

    def _build_listing(
        self,
        raw_title: str,
        href: str,
        *,
        thumbnail: str | None = None,
    ) -> MovieListing | None:
        """Apply the common item rules; ``None`` rejects the item.

        Rejected: missing href, sanitized title shorter than two
        characters, or a resolved URL that is not a valid absolute URL.
        Quality and size are derived from the title plus the URL path;
        the host is left out so mirror domains add no tokens.
        """
        if not href or not raw_title:
            return None
        title = sanitize_text(raw_title)
        if len(title) < MIN_TITLE_LENGTH:
            return None

        link = resolve_url(self.base_url, href)
        if not validate_url(link):
            self._log.debug(f"{self.name}_invalid_link", href=href, link=link)
            return None

        text = f"{title} {urlparse(link).path}"
        return MovieListing(
            title=title,
            link=link,
            source=self.name,
            quality=extract_quality(text),
            size=extract_size(text),
            thumbnail=thumbnail or None,
        )

    def _parse_items(
        self,
        elements: Iterable[Tag],
        parse_one: Callable[[Tag], MovieListing | None],
        *,
        context: str = "",
    ) -> list[MovieListing]:
        """Run *parse_one* per element; failures are logged and skipped.

        Listings repeating an already collected link are dropped so a
        link stays unique within one source response.
        """
        listings: list[MovieListing] = []
        seen: set[str] = set()
        for index, element in enumerate(elements):
            try:
                listing = parse_one(element)
            except Exception as exc:  # noqa: BLE001
                self._log.warning(
                    f"{self.name}_item_parse_failed",
                    index=index,
                    context=context,
                    error=str(exc),
                )
                continue
            if listing is None or listing.link in seen:
                continue
            seen.add(listing.link)
            listings.append(listing)

        self._log.info(
            f"{self.name}_items_parsed",
            context=context,
            count=len(listings),
        )
        return listings

    # ------------------------------------------------------------------
    # Operations (subclasses implement)
    # ------------------------------------------------------------------

    async def list_latest(self, page: int = 1) -> ListingPage:
        raise NotImplementedError(f"{type(self).__name__}.list_latest() not implemented")

    async def list_popular(self) -> list[MovieListing]:
        raise NotImplementedError(
            f"{type(self).__name__} does not distinguish popular listings"
        )

    async def search(self, query: str) -> list[MovieListing]:
        raise NotImplementedError(f"{type(self).__name__}.search() not implemented")

    async def fetch_detail(self, link: str) -> DetailFragment | None:
        raise NotImplementedError(
            f"{type(self).__name__}.fetch_detail() not implemented"
        )
