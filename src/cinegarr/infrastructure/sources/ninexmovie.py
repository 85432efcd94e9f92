"""9xMoviie source adapter.

Latest listings are paginated WordPress-style (``/page/N/``); search is a
DLE form POST on the home page.  Detail pages carry a "Movie Information"
section of ``<b>label</b> <span><em>value</em></span>`` rows followed by
download blocks laid out as alternating label / link ``div``s.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from cinegarr.domain.entities import (
    DetailFragment,
    DownloadLink,
    ListingPage,
    MovieListing,
)
from cinegarr.infrastructure.common.extractors import (
    disambiguate_labels,
    normalize_label,
    sort_download_links,
)
from cinegarr.infrastructure.common.parsers import (
    resolve_url,
    sanitize_text,
    split_list,
    validate_url,
)

from .base import HttpxSourceBase

DEFAULT_BASE_URL = "https://9xmoviie.me"

# A full page holds at least this many listings when more pages exist.
PAGE_SIZE = 20

CONTAINER_SELECTOR = ".home-wrapper.thumbnail-wrapper"
ITEM_SELECTOR = ".thumb"
DOWNLOAD_BLOCK_SELECTOR = ".description.tCenter"

_BRACKETED_RE = re.compile(r"\[(.*?)\]")

# Lower-cased <b> label -> DetailFragment field
_TEXT_FIELDS: dict[str, str] = {
    "release year:": "release_date",
    "language:": "language",
    "size:": "size",
    "format:": "format",
    "quality:": "quality",
    "cast:": "stars",
    "description:": "story",
}


class NineXMovieSource(HttpxSourceBase):
    """9xMoviie adapter: paginated latest, search and details."""

    name = "ninexmovie"
    default_base_url = DEFAULT_BASE_URL

    supports_popular = False
    supports_pagination = True
    supports_search = True

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _parse_thumb(self, element: Tag) -> MovieListing | None:
        figure = element.find("figure")
        if not isinstance(figure, Tag):
            return None
        anchor = figure.find("a")
        title_anchor = figure.select_one("a.thumbtitle")
        if not isinstance(anchor, Tag) or title_anchor is None:
            return None

        thumbnail = None
        img = anchor.find("img")
        if isinstance(img, Tag) and img.get("src"):
            thumbnail = resolve_url(self.base_url, str(img["src"]))

        return self._build_listing(
            title_anchor.get_text(),
            str(anchor.get("href") or ""),
            thumbnail=thumbnail,
        )

    def _parse_listing_page(self, soup: BeautifulSoup, context: str) -> list[MovieListing]:
        container = soup.select_one(CONTAINER_SELECTOR)
        if container is None:
            self._log.warning("ninexmovie_container_missing", context=context)
            return []
        return self._parse_items(
            container.select(ITEM_SELECTOR),
            self._parse_thumb,
            context=context,
        )

    async def list_latest(self, page: int = 1) -> ListingPage:
        url = self.base_url if page <= 1 else f"{self.base_url}/page/{page}/"
        soup = await self._fetch_soup(url)
        listings = self._parse_listing_page(soup, context=f"latest:{page}")
        return ListingPage(
            listings=tuple(listings),
            has_more=len(listings) >= PAGE_SIZE,
        )

    async def search(self, query: str) -> list[MovieListing]:
        soup = await self._fetch_soup(
            self.base_url,
            method="POST",
            data={"do": "search", "subaction": "search", "story": query},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        return self._parse_listing_page(soup, context="search")

    # ------------------------------------------------------------------
    # Detail page
    # ------------------------------------------------------------------

    async def fetch_detail(self, link: str) -> DetailFragment | None:
        soup = await self._fetch_soup(link, detail=True)

        header = next(
            (h for h in soup.find_all("h2") if "Movie Information" in h.get_text()),
            None,
        )
        if header is None:
            self._log.warning("ninexmovie_info_section_missing", link=link)
            return None

        section = header.find_next_sibling()
        if not isinstance(section, Tag) or "description" not in (
            section.get("class") or []
        ):
            self._log.warning("ninexmovie_description_missing", link=link)
            return None

        fragment = parse_movie_information(section)
        fragment.download_links = self._parse_download_links(soup)
        return fragment

    def _parse_download_links(self, soup: BeautifulSoup) -> list[DownloadLink]:
        blocks = soup.select(DOWNLOAD_BLOCK_SELECTOR)
        links: list[DownloadLink] = []
        seen: set[str] = set()

        # Blocks come in (label, link) pairs.
        for i in range(0, len(blocks) - 1, 2):
            label = sanitize_text(blocks[i].get_text())
            anchor = blocks[i + 1].select_one("a.dwnLink")
            if not label or anchor is None:
                continue
            href = str(anchor.get("href") or "").strip()
            link_text = anchor.get_text()
            if not href or not link_text.strip():
                continue
            url = resolve_url(self.base_url, href)
            if not validate_url(url) or url in seen:
                continue
            seen.add(url)

            size = _BRACKETED_RE.search(link_text)
            if size and size.group(1).strip():
                label = f"{label} ({size.group(1).strip()})"
            links.append(DownloadLink(label=normalize_label(label), url=url))

        return sort_download_links(disambiguate_labels(links))


def parse_movie_information(section: Tag) -> DetailFragment:
    """Map the ``<b>label</b>`` rows of the information block to fields.

    Unknown labels are ignored; ``category:`` wins over ``genres:``.
    """
    fragment = DetailFragment()
    for row in section.find_all("div"):
        bold = row.find("b")
        if not isinstance(bold, Tag):
            continue
        label = bold.get_text().strip().lower()
        em = row.select_one("span em")
        value = sanitize_text(em.get_text()) if em is not None else ""

        if label == "category:":
            if value:
                fragment.genre = split_list(value)
        elif label == "genres:":
            if value and not fragment.genre:
                fragment.genre = split_list(value)
        elif label == "movie name":
            if value.startswith(":"):
                fragment.title = value[1:].strip() or None
        elif label in _TEXT_FIELDS and value:
            setattr(fragment, _TEXT_FIELDS[label], value)
    return fragment
