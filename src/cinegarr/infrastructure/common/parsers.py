"""Text and URL helpers shared by all source adapters."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

_ARROW_PREFIX_RE = re.compile(r"^.*>\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|bmp|svg)(\?.*)?$", re.IGNORECASE)


def sanitize_text(text: str) -> str:
    """Normalize scraped text.

    Drops everything up to a leading arrow marker (``"» >"`` icons
    rendered as text), collapses whitespace and trims.
    """
    if not text:
        return ""
    text = _ARROW_PREFIX_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def validate_url(url: str) -> bool:
    """Basic syntax check: absolute URL with scheme and host."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def is_valid_image_url(url: str) -> bool:
    """Heuristic image check: image extension or an image-ish keyword."""
    if not url or not validate_url(url):
        return False
    return (
        bool(_IMAGE_EXT_RE.search(url))
        or "image" in url
        or "poster" in url
        or "thumb" in url
    )


def resolve_url(base_url: str, href: str) -> str:
    """Resolve *href* against *base_url*.

    Absolute hrefs pass through; root-relative (``/path``) hrefs are
    appended to the base; path-relative (``path``) hrefs get a slash.
    """
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    base = base_url.rstrip("/")
    if href.startswith("/"):
        return f"{base}{href}"
    return f"{base}/{href}"


def resolve_image_url(base_url: str, src: str) -> str:
    """Resolve an image ``src`` the way browsers do."""
    if src.startswith(("http://", "https://")):
        return src
    return urljoin(base_url.rstrip("/") + "/", src)


def split_list(text: str, sep: str = ",") -> list[str]:
    """Split a comma-separated field into trimmed, non-empty parts."""
    return [part.strip() for part in text.split(sep) if part.strip()]
