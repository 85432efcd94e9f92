"""Metadata extraction pipeline shared by every source adapter.

Regex heuristics for quality and size tags, ordered strategy chains for
thumbnails, and download-link extraction with selector fallbacks.
Extraction never raises for missing markup: absent data yields ``None``
or an empty list.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup, Tag

from cinegarr.domain.entities import DownloadLink

from .html_selectors import first_attr, select_containing
from .parsers import (
    is_valid_image_url,
    resolve_image_url,
    sanitize_text,
    validate_url,
)

log = structlog.get_logger(__name__)

# Best-to-worst.  Resolutions outrank generic format tokens.
RESOLUTION_ORDER: tuple[str, ...] = (
    "4K",
    "2160P",
    "1440P",
    "1080P",
    "720P",
    "480P",
    "360P",
)
FORMAT_ORDER: tuple[str, ...] = (
    "BLURAY",
    "WEBRIP",
    "HDRIP",
    "HDTV",
    "DVDRIP",
    "HD",
    "SD",
)
QUALITY_ORDER: tuple[str, ...] = RESOLUTION_ORDER + FORMAT_ORDER

UNRECOGNIZED_QUALITY_RANK = 99
MISSING_QUALITY_RANK = 100

# Tokens must stand alone: "HD" in "skymovieshd" or "SD" in "Wednesday" is no match.
_RESOLUTION_RE = re.compile(
    r"(?<![a-z0-9])(4K|2160p|1440p|1080p|720p|480p|360p)(?![a-z0-9])", re.IGNORECASE
)
_FORMAT_RE = re.compile(
    r"(?<![a-z0-9])(BluRay|WEBRip|HDRip|HDTV|DVDRip|HD|SD)(?![a-z0-9])", re.IGNORECASE
)
_SIZE_RE = re.compile(r"[\[(]?(\d+(?:\.\d+)?\s*(?:GB|MB|KB))[\])]?", re.IGNORECASE)
_LABEL_SPACES_RE = re.compile(r"\s+")

# ---------------------------------------------------------------------------
# Quality / size
# ---------------------------------------------------------------------------


def extract_quality(text: str) -> str | None:
    """Return the first quality token in *text*, upper-cased.

    Resolution tokens take priority over format tokens:
    ``"Movie.1080p.BluRay"`` yields ``"1080P"``.
    """
    if not text:
        return None
    match = _RESOLUTION_RE.search(text)
    if match:
        return match.group(1).upper()
    match = _FORMAT_RE.search(text)
    if match:
        return match.group(1).upper()
    return None


def extract_size(text: str) -> str | None:
    """Return a ``<number><GB|MB|KB>`` size tag, brackets stripped."""
    if not text:
        return None
    match = _SIZE_RE.search(text)
    return match.group(1) if match else None


def quality_rank(quality: str | None) -> int:
    """Rank a quality token; lower is better."""
    if not quality:
        return MISSING_QUALITY_RANK
    try:
        return QUALITY_ORDER.index(quality.upper())
    except ValueError:
        return UNRECOGNIZED_QUALITY_RANK


def link_quality_index(label: str) -> int | None:
    """Index of the first resolution token contained in *label*."""
    upper = label.upper()
    for idx, token in enumerate(RESOLUTION_ORDER):
        if token in upper:
            return idx
    return None


# ---------------------------------------------------------------------------
# Strategy chains
# ---------------------------------------------------------------------------

Root = BeautifulSoup | Tag


@dataclass(frozen=True)
class ExtractionStrategy:
    """One named way of pulling a value out of a parsed page."""

    name: str
    extract: Callable[[Root], str | None]

    def __call__(self, root: Root) -> str | None:
        return self.extract(root)


def first_match(root: Root, strategies: Iterable[ExtractionStrategy]) -> str | None:
    """Run *strategies* in order and return the first non-empty value."""
    for strategy in strategies:
        try:
            value = strategy(root)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "extraction_strategy_failed",
                strategy=strategy.name,
                error=str(exc),
            )
            continue
        if value:
            return value
    return None


def img_src(selector: str, base_url: str) -> ExtractionStrategy:
    """Strategy: ``src``/``data-src``/``data-lazy`` of the first match."""

    def _extract(root: Root) -> str | None:
        img = root.select_one(selector)
        if img is None:
            return None
        src = first_attr(img, "src", "data-src", "data-lazy")
        if not src:
            return None
        url = resolve_image_url(base_url, src)
        return url if is_valid_image_url(url) else None

    return ExtractionStrategy(name=f"img:{selector}", extract=_extract)


def meta_content(selector: str) -> ExtractionStrategy:
    """Strategy: ``content`` attribute of a ``<meta>`` tag."""

    def _extract(root: Root) -> str | None:
        meta = root.select_one(selector)
        if meta is None:
            return None
        content = str(meta.get("content") or "")
        return content if is_valid_image_url(content) else None

    return ExtractionStrategy(name=f"meta:{selector}", extract=_extract)


META_IMAGE_SELECTORS: tuple[str, ...] = (
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
)


def thumbnail_strategies(
    base_url: str,
    image_selectors: Sequence[str],
) -> list[ExtractionStrategy]:
    """Site image containers first, then the generic meta-tag fallbacks."""
    strategies = [img_src(sel, base_url) for sel in image_selectors]
    strategies.extend(meta_content(sel) for sel in META_IMAGE_SELECTORS)
    return strategies


def extract_thumbnail(
    root: Root,
    base_url: str,
    image_selectors: Sequence[str],
) -> str | None:
    return first_match(root, thumbnail_strategies(base_url, image_selectors))


# ---------------------------------------------------------------------------
# Download links
# ---------------------------------------------------------------------------


def parse_download_link(
    anchor: Tag,
    seen: set[str],
    base_url: str = "",
    label: str | None = None,
) -> DownloadLink | None:
    """Turn an anchor into a DownloadLink, or ``None`` if unusable.

    URLs already present in *seen* are skipped.  Hrefs must be absolute
    or root-relative; root-relative ones are resolved when *base_url*
    is given.
    """
    href = str(anchor.get("href") or "").strip()
    text = label if label is not None else sanitize_text(anchor.get_text())
    if not href or not text:
        return None

    if href.startswith("/") and base_url:
        href = f"{base_url.rstrip('/')}{href}"
    elif not validate_url(href) and not href.startswith("/"):
        return None

    if href in seen:
        return None
    seen.add(href)
    return DownloadLink(label=text, url=href)


def extract_download_links(
    root: Root,
    primary: str,
    fallbacks: Sequence[str] = (),
    base_url: str = "",
) -> list[DownloadLink]:
    """Collect download links from *primary*, else the first fruitful fallback.

    The fallback chain only runs when the primary selector yields no
    usable link, and stops at the first selector producing one or more.
    """
    seen: set[str] = set()
    links: list[DownloadLink] = []

    for anchor in root.select(primary):
        link = parse_download_link(anchor, seen, base_url)
        if link:
            links.append(link)

    if not links:
        for selector in fallbacks:
            for anchor in root.select(selector):
                link = parse_download_link(anchor, seen, base_url)
                if link:
                    links.append(link)
            if links:
                log.debug("download_links_fallback_used", selector=selector)
                break

    return finalize_download_links(links)


def normalize_label(label: str) -> str:
    """Collapse whitespace and tighten parentheses for label comparison."""
    label = _LABEL_SPACES_RE.sub(" ", label)
    label = re.sub(r"\s+\(", "(", label)
    label = re.sub(r"\(\s+", "(", label)
    return label.strip()


def disambiguate_labels(links: Sequence[DownloadLink]) -> list[DownloadLink]:
    """Suffix repeated labels with ``Backup``, ``Backup 2``, ...

    Labels are compared in normalized form; the first occurrence keeps
    its label untouched.
    """
    counts: dict[str, int] = {}
    out: list[DownloadLink] = []
    for link in links:
        key = normalize_label(link.label).lower()
        seen = counts.get(key, 0)
        counts[key] = seen + 1
        if seen == 0:
            out.append(link)
            continue
        suffix = "Backup" if seen == 1 else f"Backup {seen}"
        out.append(DownloadLink(label=f"{link.label} {suffix}", url=link.url))
    return out


def sort_download_links(links: Sequence[DownloadLink]) -> list[DownloadLink]:
    """Stable sort by resolution rank; unranked labels go last."""

    def _key(link: DownloadLink) -> tuple[int, int]:
        idx = link_quality_index(link.label)
        return (0, idx) if idx is not None else (1, 0)

    return sorted(links, key=_key)


def finalize_download_links(links: Iterable[DownloadLink]) -> list[DownloadLink]:
    """Dedupe by URL, disambiguate labels, then sort by quality."""
    seen: set[str] = set()
    unique: list[DownloadLink] = []
    for link in links:
        if link.url in seen:
            continue
        seen.add(link.url)
        unique.append(link)
    return sort_download_links(disambiguate_labels(unique))


# ---------------------------------------------------------------------------
# "Label: value" blocks
# ---------------------------------------------------------------------------


def extract_labeled_value(
    root: Root,
    selector: str,
    label: str,
    separator: str = ":",
) -> str | None:
    """Find the block containing *label* and return the text after it.

    The value runs to the end of the line following
    ``<label><separator>``.  Missing blocks yield ``None``.
    """
    pattern = re.compile(
        rf"{re.escape(label)}\s*{re.escape(separator)}\s*(.+)", re.IGNORECASE
    )
    for block in select_containing(root, selector, label):
        match = pattern.search(block.get_text())
        if match:
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_images(root: Root, selector: str) -> list[str]:
    """All valid image URLs matching *selector*, in document order."""
    images: list[str] = []
    for img in root.select(selector):
        src = str(img.get("src") or "")
        if src and is_valid_image_url(src) and src not in images:
            images.append(src)
    return images
