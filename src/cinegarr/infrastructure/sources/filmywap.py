"""FilmyWap source adapter (latest listings, search and details)."""

from __future__ import annotations

from urllib.parse import quote_plus

from bs4 import BeautifulSoup, Tag

from cinegarr.domain.entities import (
    DetailFragment,
    DownloadLink,
    ListingPage,
    MovieListing,
)
from cinegarr.infrastructure.common.extractors import (
    extract_labeled_value,
    extract_thumbnail,
    finalize_download_links,
)
from cinegarr.infrastructure.common.html_selectors import extract_text
from cinegarr.infrastructure.common.parsers import (
    resolve_image_url,
    resolve_url,
    sanitize_text,
    split_list,
    validate_url,
)

from .base import HttpxSourceBase

DEFAULT_BASE_URL = "https://filmywap.com.by"

ITEM_SELECTOR = "div.updates > div.update"
POSTER_SELECTOR = "#content img.posterss"
DOWNLOAD_BLOCK_SELECTOR = "div.listed_new"
INFO_SELECTOR = "div.menu_list"
INFO_SEPARATOR = "-"


class FilmyWapSource(HttpxSourceBase):
    """FilmyWap adapter; the home page is its only listing page."""

    name = "filmywap"
    default_base_url = DEFAULT_BASE_URL

    supports_popular = False
    supports_pagination = False
    supports_search = True

    def _parse_update(self, element: Tag) -> MovieListing | None:
        anchor = element.select_one("a.ins")
        if anchor is None:
            return None

        thumbnail = None
        img = anchor.find("img")
        if isinstance(img, Tag) and img.get("src"):
            thumbnail = resolve_image_url(self.base_url, str(img["src"]))

        return self._build_listing(
            extract_text(anchor, "div:last-child"),
            str(anchor.get("href") or ""),
            thumbnail=thumbnail,
        )

    def _parse_updates(self, soup: BeautifulSoup, context: str) -> list[MovieListing]:
        return self._parse_items(
            soup.select(ITEM_SELECTOR),
            self._parse_update,
            context=context,
        )

    async def list_latest(self, page: int = 1) -> ListingPage:
        if page > 1:
            return ListingPage()
        soup = await self._fetch_soup(self.base_url)
        return ListingPage(listings=tuple(self._parse_updates(soup, "latest")))

    async def search(self, query: str) -> list[MovieListing]:
        soup = await self._fetch_soup(f"{self.base_url}/search.php?q={quote_plus(query)}")
        return self._parse_updates(soup, "search")

    async def fetch_detail(self, link: str) -> DetailFragment | None:
        soup = await self._fetch_soup(link, detail=True)

        fragment = DetailFragment(
            thumbnail=extract_thumbnail(soup, self.base_url, (POSTER_SELECTOR,)),
            download_links=self._parse_download_links(soup),
        )

        def info(label: str) -> str | None:
            return extract_labeled_value(soup, INFO_SELECTOR, label, INFO_SEPARATOR)

        fragment.title = info("Movie Name:")
        genre = info("Genre")
        if genre:
            fragment.genre = split_list(genre)
        stars = info("Starcast")
        if stars:
            fragment.stars = ", ".join(split_list(stars))
        fragment.duration = info("Duration")
        fragment.release_date = info("Release Date")
        fragment.language = info("Language/Audio")
        fragment.quality = info("Movie Quality")
        fragment.story = info("Story/Plot")
        return fragment

    def _parse_download_links(self, soup: BeautifulSoup) -> list[DownloadLink]:
        links: list[DownloadLink] = []
        for block in soup.select(DOWNLOAD_BLOCK_SELECTOR):
            anchor = block.select_one("a.btn_d")
            if anchor is None:
                continue
            href = str(anchor.get("href") or "").strip()
            label = sanitize_text(extract_text(anchor, ".dnld"))
            if not href or not label:
                continue
            url = resolve_url(self.base_url, href)
            if validate_url(url):
                links.append(DownloadLink(label=label, url=url))
        return finalize_download_links(links)
