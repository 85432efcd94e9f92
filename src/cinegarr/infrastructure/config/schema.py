"""Validated configuration for the aggregation engine and its CLI."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from cinegarr.infrastructure.common.fetcher import DEFAULT_USER_AGENTS

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
SourceName = Literal["skybap", "ninexmovie", "filmywap"]


class RetryConfig(BaseModel):
    """Retry policy for source operations (YAML section: retry.*)."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt.")
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Exponential backoff base (seconds).",
    )
    max_jitter_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Upper bound of the random jitter added to each delay.",
    )


class RateLimitConfig(BaseModel):
    """Process-wide sliding window (YAML section: rate_limit.*)."""

    max_requests: int = Field(
        default=20,
        description="Requests admitted per window. 0 = unlimited.",
    )
    window_seconds: float = Field(default=60.0, gt=0, description="Window length.")


class BatchConfig(BaseModel):
    """Detail enrichment pacing (YAML section: batch.*)."""

    concurrency: int = Field(default=50, ge=1, description="Items per batch.")
    stagger_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Start delay per position inside a batch.",
    )
    batch_pause_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Pause between consecutive batches.",
    )


class SearchConfig(BaseModel):
    """Search query validation (YAML section: search.*)."""

    min_length: int = Field(default=2, ge=1)
    max_length: int = Field(default=100, ge=1)
    result_limit: int = Field(
        default=20,
        ge=1,
        description="Max merged search results before enrichment.",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "SearchConfig":
        if self.min_length > self.max_length:
            raise ValueError("search.min_length must be <= search.max_length")
        return self


class ContentFilterConfig(BaseModel):
    """Titles containing one of these tokens are dropped."""

    blocked_tokens: list[str] = Field(
        default=["unrated", "18+", "xxx", "adult"],
        description="Case-insensitive substrings rejected in listing titles.",
    )


class AggregationConfig(BaseModel):
    fail_on_total_failure: bool = Field(
        default=False,
        description=(
            "Return SCRAPING_ERROR when every contributing source failed "
            "instead of an empty result."
        ),
    )
    request_tracker_size: int = Field(
        default=1024,
        ge=1,
        description="Max request keys remembered for stale-request detection.",
    )


class SourcesConfig(BaseModel):
    """Upstream sites (YAML section: sources.*)."""

    enabled: list[SourceName] = Field(
        default=["skybap", "ninexmovie", "filmywap"],
        description="Adapters taking part in aggregation.",
    )
    skybap_portal_url: str = Field(
        default="https://skybap.com",
        description="Portal page announcing the current SkyBap mirror.",
    )
    skybap_fallback_url: str = Field(
        default="https://skymovieshd.dance",
        description="Mirror used when the portal cannot be read.",
    )
    ninexmovie_url: str = Field(default="https://9xmoviie.me")
    filmywap_url: str = Field(default="https://filmywap.com.by")

    @field_validator("enabled")
    @classmethod
    def _unique(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class CacheHintConfig(BaseModel):
    """Freshness hints handed to the serving shell (seconds)."""

    detail_max_age: int = Field(default=600, ge=0)
    basic_max_age: int = Field(default=300, ge=0)


class AppConfig(BaseModel):
    """Final engine configuration after all layers are merged.

    YAML files use sections (http, retry, rate_limit, batch, ...); flat
    names are accepted too. Env vars arrive through :class:`EnvOverrides`.
    """

    # General
    app_name: str = Field(default="cinegarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Timeout for listing and search pages.",
    )
    http_detail_timeout_seconds: float = Field(
        default=20.0,
        validation_alias=AliasChoices(
            "http_detail_timeout_seconds",
            AliasPath("http", "detail_timeout_seconds"),
        ),
        description="Timeout for (heavier) detail pages.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether HTTP client follows redirects.",
    )
    http_user_agents: list[str] = Field(
        default_factory=lambda: list(DEFAULT_USER_AGENTS),
        validation_alias=AliasChoices(
            "http_user_agents",
            AliasPath("http", "user_agents"),
        ),
        description="Pool of User-Agent strings picked at random per request.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    content_filter: ContentFilterConfig = Field(default_factory=ContentFilterConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    cache: CacheHintConfig = Field(default_factory=CacheHintConfig)

    @field_validator("http_timeout_seconds", "http_detail_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP timeouts must be > 0")
        return v

    @field_validator("http_user_agents")
    @classmethod
    def _validate_user_agents(cls, v: list[str]) -> list[str]:
        cleaned = [ua.strip() for ua in v if ua and ua.strip()]
        if not cleaned:
            raise ValueError("http.user_agents must contain at least one entry")
        return cleaned

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Sectioned view, the same shape a YAML config file uses."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "detail_timeout_seconds": self.http_detail_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agents": list(self.http_user_agents),
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "retry": self.retry.model_dump(),
            "rate_limit": self.rate_limit.model_dump(),
            "batch": self.batch.model_dump(),
            "search": self.search.model_dump(),
            "content_filter": self.content_filter.model_dump(),
            "aggregation": self.aggregation.model_dump(),
            "sources": self.sources.model_dump(),
            "cache": self.cache.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Flat ``CINEGARR_*`` environment variables; unset fields stay ``None``.

    For example:
    - CINEGARR_HTTP_TIMEOUT_SECONDS
    - CINEGARR_LOG_LEVEL
    - CINEGARR_RATE_LIMIT_MAX_REQUESTS
    - CINEGARR_FAIL_ON_TOTAL_FAILURE
    """

    model_config = SettingsConfigDict(
        env_prefix="CINEGARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_detail_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    max_retries: Optional[int] = None
    rate_limit_max_requests: Optional[int] = None
    rate_limit_window_seconds: Optional[float] = None
    batch_concurrency: Optional[int] = None
    fail_on_total_failure: Optional[bool] = None

    skybap_portal_url: Optional[str] = None
    ninexmovie_url: Optional[str] = None
    filmywap_url: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """Values that were set, keyed by flat name."""
        return self.model_dump(exclude_none=True)
