"""SkyBap (SkyMoviesHD mirror network) source adapter.

The site moves between mirror domains; the current one is announced on
a portal page and resolved lazily on first use.  SkyBap is the only
source with a separate "popular" list and a category facet.

Listing pages:
- popular:  ``div.Let[align="left"] a`` on the home page
- latest:   ``div.Fmvideo[align="left"] a`` on the home page
- search:   ``div.L[align="left"] a`` on ``/search.php``
- category: same items on ``/category/<slug>/<page>.html``
"""

from __future__ import annotations

import asyncio
import re
from urllib.parse import quote_plus, urlparse

from bs4 import BeautifulSoup, Tag

from cinegarr.domain.entities import (
    Category,
    DetailFragment,
    ListingPage,
    MovieListing,
)
from cinegarr.infrastructure.common.extractors import (
    extract_download_links,
    extract_images,
    extract_labeled_value,
    extract_thumbnail,
)
from cinegarr.infrastructure.common.fetcher import ResilientFetcher
from cinegarr.infrastructure.common.html_selectors import (
    extract_attr,
    parse_html,
    select_containing,
    select_items,
)
from cinegarr.infrastructure.common.parsers import sanitize_text, split_list

from .base import HttpxSourceBase

DEFAULT_PORTAL_URL = "https://skybap.com"
DEFAULT_FALLBACK_URL = "https://skymovieshd.dance"

PORTAL_LINK_SELECTOR = "span.badge.rounded-pill.bg-warning a"

POPULAR_SELECTOR = 'div.Let[align="left"]'
LATEST_SELECTOR = 'div.Fmvideo[align="left"]'
SEARCH_SELECTOR = 'div.L[align="left"]'
SEARCH_FALLBACK_SELECTORS: tuple[str, ...] = (
    ".movie-item, .search-result, .movie-list-item",
)
CATEGORY_SELECTOR = 'div.Bolly[align="left"] a'

DETAIL_IMAGE_SELECTORS: tuple[str, ...] = (
    'div.movielist[align="center"] img',
    ".movie-poster img",
    ".poster img",
    ".thumbnail img",
    'img[src*="poster"]',
    'img[src*="thumb"]',
    'img[src*="image"]',
    ".movie-image img",
)
DOWNLOAD_PRIMARY_SELECTOR = "div.Bolly a"
DOWNLOAD_FALLBACK_SELECTORS: tuple[str, ...] = (
    ".download-links a",
    ".movie-downloads a",
    ".download-section a",
    'a[href*="download"]',
    'a[href*=".mp4"]',
    'a[href*=".mkv"]',
    'a[href*=".avi"]',
)
GALLERY_SELECTOR = "div.L center > img"

# "Label: value" rows inside div.Let blocks
_FIELD_LABELS: dict[str, str] = {
    "size": "Size",
    "language": "Language",
    "format": "Format",
    "release_date": "Release Date",
    "stars": "Stars",
    "story": "Story",
}

_HTML_SUFFIX_RE = re.compile(r"\.html?$", re.IGNORECASE)


def category_slug(href: str) -> str:
    """Last path segment of a category href without the ``.html`` suffix.

    ``/category/Bollywood-Movies.html`` -> ``Bollywood-Movies``.
    """
    path = urlparse(href).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1]
    return _HTML_SUFFIX_RE.sub("", segment)


class SkyBapSource(HttpxSourceBase):
    """SkyBap adapter: popular, latest, search, categories and details."""

    name = "skybap"
    default_base_url = DEFAULT_FALLBACK_URL

    supports_popular = True
    supports_pagination = False
    supports_search = True

    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        portal_url: str = DEFAULT_PORTAL_URL,
        fallback_url: str = DEFAULT_FALLBACK_URL,
    ) -> None:
        super().__init__(fetcher, base_url=fallback_url)
        self._portal_url = portal_url
        self._fallback_url = fallback_url.rstrip("/")
        self._base_resolved = False
        self._resolve_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Base URL (mirror) resolution
    # ------------------------------------------------------------------

    async def _resolve_base_url(self) -> str:
        if self._base_resolved:
            return self.base_url

        async with self._resolve_lock:
            if self._base_resolved:
                return self.base_url
            self.base_url = await self._read_portal()
            self._base_resolved = True
            return self.base_url

    async def _read_portal(self) -> str:
        """Read the current mirror from the portal; fall back on any failure."""
        try:
            html = await self._fetcher.fetch(self._portal_url)
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "skybap_portal_unreachable",
                portal=self._portal_url,
                fallback=self._fallback_url,
                error=str(exc),
            )
            return self._fallback_url

        href = extract_attr(parse_html(html), PORTAL_LINK_SELECTOR, "href").strip()
        if not href.startswith(("http://", "https://")):
            self._log.warning(
                "skybap_portal_link_missing",
                portal=self._portal_url,
                fallback=self._fallback_url,
            )
            return self._fallback_url

        base_url = href.rstrip("/")
        self._log.info("skybap_base_url_resolved", base_url=base_url)
        return base_url

    async def aclose(self) -> None:
        # Re-read the portal on next use; the mirror may have moved.
        self._base_resolved = False

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _parse_anchor_item(self, element: Tag) -> MovieListing | None:
        anchor = element if element.name == "a" else element.find("a")
        if not isinstance(anchor, Tag):
            return None
        return self._build_listing(
            anchor.get_text(),
            str(anchor.get("href") or ""),
        )

    async def _home_soup(self) -> BeautifulSoup:
        base = await self._resolve_base_url()
        return await self._fetch_soup(base)

    async def list_popular(self) -> list[MovieListing]:
        soup = await self._home_soup()
        return self._parse_items(
            soup.select(POPULAR_SELECTOR),
            self._parse_anchor_item,
            context="popular",
        )

    async def list_latest(self, page: int = 1) -> ListingPage:
        # The home page is the only "latest" page.
        if page > 1:
            return ListingPage()
        soup = await self._home_soup()
        listings = self._parse_items(
            soup.select(LATEST_SELECTOR),
            self._parse_anchor_item,
            context="latest",
        )
        return ListingPage(listings=tuple(listings), has_more=False)

    async def search(self, query: str) -> list[MovieListing]:
        base = await self._resolve_base_url()
        url = f"{base}/search.php?search={quote_plus(query)}&cat=All"
        soup = await self._fetch_soup(url)

        items = select_items(soup, SEARCH_SELECTOR, *SEARCH_FALLBACK_SELECTORS)
        if not items:
            self._log.warning("skybap_no_search_items", query=query)
        return self._parse_items(items, self._parse_anchor_item, context="search")

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        soup = await self._home_soup()
        categories: list[Category] = []
        seen: set[str] = set()
        for anchor in soup.select(CATEGORY_SELECTOR):
            name = sanitize_text(anchor.get_text())
            slug = category_slug(str(anchor.get("href") or ""))
            if not name or not slug or slug in seen:
                continue
            seen.add(slug)
            categories.append(Category(slug=slug, name=name))

        if not categories:
            self._log.warning("skybap_no_categories", selector=CATEGORY_SELECTOR)
        return categories

    async def list_category(self, slug: str, page: int = 1) -> ListingPage:
        base = await self._resolve_base_url()
        page = max(1, page)
        url = f"{base}/category/{quote_plus(slug)}/{page}.html"
        soup = await self._fetch_soup(url)

        items = select_items(soup, SEARCH_SELECTOR, *SEARCH_FALLBACK_SELECTORS)
        listings = self._parse_items(
            items, self._parse_anchor_item, context=f"category:{slug}"
        )
        next_suffix = f"/{page + 1}.html"
        has_more = any(
            str(a.get("href") or "").endswith(next_suffix)
            for a in soup.select("a[href]")
        )
        return ListingPage(listings=tuple(listings), has_more=has_more)

    # ------------------------------------------------------------------
    # Detail page
    # ------------------------------------------------------------------

    async def fetch_detail(self, link: str) -> DetailFragment | None:
        base = await self._resolve_base_url()
        soup = await self._fetch_soup(link, detail=True)

        fragment = DetailFragment(
            thumbnail=extract_thumbnail(soup, base, DETAIL_IMAGE_SELECTORS),
            download_links=extract_download_links(
                soup,
                DOWNLOAD_PRIMARY_SELECTOR,
                DOWNLOAD_FALLBACK_SELECTORS,
                base_url=base,
            ),
            images=extract_images(soup, GALLERY_SELECTOR),
        )

        genre_blocks = select_containing(soup, "div.L", "Genre")
        if genre_blocks:
            genre_anchor = genre_blocks[0].find("a")
            if isinstance(genre_anchor, Tag):
                fragment.genre = split_list(genre_anchor.get_text())

        for attr, label in _FIELD_LABELS.items():
            value = extract_labeled_value(soup, "div.Let", label)
            if value:
                setattr(fragment, attr, value)

        self._log.debug(
            "skybap_detail_parsed",
            link=link,
            download_links=len(fragment.download_links),
            has_thumbnail=fragment.thumbnail is not None,
        )
        return fragment
