"""HTTP fetcher with randomized client identity and classified errors."""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence

import httpx
import structlog

from cinegarr.domain.errors import FetchError, FetchErrorKind, ScrapingError

from .rate_limiter import SlidingWindowRateLimiter

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
DETAIL_TIMEOUT = 20.0

DEFAULT_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) "
    "Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) "
    "Gecko/20100101 Firefox/121.0",
)

BROWSER_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "cross-site",
    "Cache-Control": "max-age=0",
}


def classify_status(status: int) -> FetchErrorKind:
    if status == 403:
        return FetchErrorKind.FORBIDDEN
    if status == 404:
        return FetchErrorKind.NOT_FOUND
    if status >= 500:
        return FetchErrorKind.SERVER_ERROR
    return FetchErrorKind.UNKNOWN


_STATUS_MESSAGES: dict[FetchErrorKind, str] = {
    FetchErrorKind.FORBIDDEN: "Access forbidden - possible rate limiting or blocking",
    FetchErrorKind.NOT_FOUND: "Resource not found",
    FetchErrorKind.SERVER_ERROR: "Server error",
}


class ResilientFetcher:
    """Fetch HTML pages through a shared ``httpx.AsyncClient``.

    Every request waits on the shared rate limiter, carries a random
    User-Agent from *user_agents* plus browser-like negotiation headers,
    and failures surface as :class:`FetchError` with a
    :class:`FetchErrorKind`.  The fetcher never retries on its own;
    callers wrap it in a ``RetryPolicy``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limiter: SlidingWindowRateLimiter,
        *,
        user_agents: Sequence[str] = DEFAULT_USER_AGENTS,
        timeout: float = DEFAULT_TIMEOUT,
        detail_timeout: float = DETAIL_TIMEOUT,
    ) -> None:
        if not user_agents:
            raise ValueError("user_agents must not be empty")
        self._client = client
        self._rate_limiter = rate_limiter
        self._user_agents = tuple(user_agents)
        self.timeout = timeout
        self.detail_timeout = detail_timeout

    def random_user_agent(self) -> str:
        return random.choice(self._user_agents)  # noqa: S311

    def build_headers(
        self,
        referer: str | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        headers["User-Agent"] = self.random_user_agent()
        if referer:
            headers["Referer"] = referer
        if extra:
            headers.update(extra)
        return headers

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        data: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        referer: str | None = None,
    ) -> str:
        """Fetch *url* and return the response body.

        Raises:
            FetchError: Timeout, HTTP error status or transport failure.
            ScrapingError: The upstream returned an empty body.
        """
        await self._rate_limiter.acquire()

        try:
            resp = await self._client.request(
                method,
                url,
                data=data,
                headers=self.build_headers(referer, headers),
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as exc:
            log.warning("fetch_timeout", url=url)
            raise FetchError(
                FetchErrorKind.TIMEOUT,
                "Request timeout - server took too long to respond",
                status_code=408,
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_transport_error", url=url, error=str(exc))
            raise FetchError(
                FetchErrorKind.UNKNOWN,
                f"Transport error: {exc}",
                cause=exc,
            ) from exc

        if resp.status_code >= 400:
            kind = classify_status(resp.status_code)
            log.warning("fetch_http_error", url=url, status=resp.status_code)
            raise FetchError(
                kind,
                _STATUS_MESSAGES.get(kind, f"HTTP {resp.status_code}"),
                status_code=resp.status_code,
            )

        body = resp.text
        if not body:
            raise ScrapingError("Invalid response format received", 500)
        return body
