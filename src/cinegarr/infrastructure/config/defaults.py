"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "cinegarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "detail_timeout_seconds": 20.0,
        "follow_redirects": True,
    },
    "retry": {
        "max_retries": 3,
        "base_delay_seconds": 1.0,
        "max_jitter_seconds": 1.0,
    },
    "rate_limit": {
        "max_requests": 20,
        "window_seconds": 60.0,
    },
    "batch": {
        "concurrency": 50,
        "stagger_seconds": 0.1,
        "batch_pause_seconds": 0.5,
    },
    "search": {
        "min_length": 2,
        "max_length": 100,
        "result_limit": 20,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "detail_max_age": 600,
        "basic_max_age": 300,
    },
}
