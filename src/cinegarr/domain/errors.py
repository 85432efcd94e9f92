"""Error taxonomy for the aggregation engine."""

from __future__ import annotations

from enum import Enum

from cinegarr.domain.entities.movie import ErrorInfo

VALIDATION_ERROR = "VALIDATION_ERROR"
SCRAPING_ERROR = "SCRAPING_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"


class CinegarrError(Exception):
    """Base class for all engine errors."""


class ValidationError(CinegarrError):
    """Bad caller input. Terminal, never retried."""

    status_code = 400


class ScrapingError(CinegarrError):
    """Upstream or transport failure.

    Retryable unless ``status_code`` is in the 4xx range.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = 500,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class FetchErrorKind(str, Enum):
    TIMEOUT = "timeout"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class FetchError(ScrapingError):
    """Classified failure of a single HTTP fetch."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, cause=cause)
        self.kind = kind


def error_info_from_exception(exc: BaseException) -> ErrorInfo:
    """Map an exception to the stable error code exposed to callers."""
    if isinstance(exc, ValidationError):
        return ErrorInfo(
            code=VALIDATION_ERROR, message=str(exc), status=exc.status_code
        )
    if isinstance(exc, ScrapingError):
        return ErrorInfo(
            code=SCRAPING_ERROR,
            message=str(exc),
            status=exc.status_code or 500,
        )
    return ErrorInfo(
        code=INTERNAL_ERROR,
        message="An unexpected error occurred",
        status=500,
    )
