"""Integration tests for configuration loading with layered precedence.

Tests the real load_config() function with actual YAML files, environment
variables, dotenv files and CLI overrides to verify precedence:
defaults < YAML < ENV < CLI.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from cinegarr.infrastructure.config.load import load_config

pytestmark = pytest.mark.integration


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    """Write a minimal YAML config and return its path."""
    config = {
        "app_name": "cinegarr-test",
        "environment": "test",
        "http": {
            "timeout_seconds": 12.0,
            "user_agents": ["TestAgent/1.0"],
        },
        "logging": {"level": "DEBUG", "format": "console"},
        "rate_limit": {"max_requests": 5, "window_seconds": 10},
        "sources": {"enabled": ["filmywap"]},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


@pytest.fixture()
def clean_env() -> Iterator[None]:
    """Drop CINEGARR_* variables a dotenv file may have injected."""
    before = set(os.environ)
    yield
    for key in set(os.environ) - before:
        if key.startswith("CINEGARR_"):
            del os.environ[key]


class TestDefaultsOnly:
    """Load with no YAML, no ENV, no CLI: pure defaults."""

    def test_defaults_produce_valid_config(self) -> None:
        config = load_config()
        assert config.app_name == "cinegarr"
        assert config.environment == "dev"
        assert config.http_timeout_seconds == 15.0
        assert config.http_detail_timeout_seconds == 20.0
        assert config.log_level == "INFO"
        assert config.log_format == "console"  # dev -> console
        assert config.rate_limit.max_requests == 20
        assert config.rate_limit.window_seconds == 60
        assert config.retry.max_retries == 3
        assert config.batch.concurrency == 50
        assert config.search.result_limit == 20
        assert config.sources.enabled == ["skybap", "ninexmovie", "filmywap"]
        assert config.aggregation.fail_on_total_failure is False
        assert len(config.http_user_agents) == 5

    def test_defaults_derive_log_format_from_environment(self) -> None:
        config = load_config(cli_overrides={"environment": "prod"})
        assert config.log_format == "json"

    def test_sectioned_dump_round_trips(self) -> None:
        config = load_config()
        dumped = config.to_sectioned_dict()
        assert dumped["http"]["timeout_seconds"] == 15.0
        assert dumped["logging"] == {"level": "INFO", "format": "console"}
        assert dumped["cache"] == {"detail_max_age": 600, "basic_max_age": 300}


class TestYamlOverrides:
    """YAML values override defaults."""

    def test_yaml_overrides_defaults(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.app_name == "cinegarr-test"
        assert config.environment == "test"
        assert config.http_timeout_seconds == 12.0
        assert config.http_user_agents == ["TestAgent/1.0"]
        assert config.log_level == "DEBUG"
        assert config.rate_limit.max_requests == 5
        assert config.sources.enabled == ["filmywap"]

    def test_yaml_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nonexistent.yaml")

    def test_yaml_partial_override_preserves_defaults(self, tmp_path: Path) -> None:
        """YAML that only sets retry.max_retries keeps other retry defaults."""
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.dump({"retry": {"max_retries": 7}}), encoding="utf-8")

        config = load_config(config_path=path)
        assert config.retry.max_retries == 7
        assert config.retry.base_delay_seconds == 1.0  # default preserved
        assert config.http_follow_redirects is True  # default preserved

    def test_empty_yaml_is_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(config_path=path).app_name == "cinegarr"

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(config_path=path)

    def test_invalid_values_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            yaml.dump({"search": {"min_length": 10, "max_length": 5}}),
            encoding="utf-8",
        )
        with pytest.raises(ValidationError):
            load_config(config_path=path)

    def test_empty_user_agent_pool_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "ua.yaml"
        path.write_text(yaml.dump({"http": {"user_agents": ["  "]}}), encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(config_path=path)


class TestEnvOverrides:
    """Environment variables override YAML and defaults."""

    def test_env_overrides_yaml(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CINEGARR_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("CINEGARR_HTTP_TIMEOUT_SECONDS", "60.0")
        monkeypatch.setenv("CINEGARR_RATE_LIMIT_MAX_REQUESTS", "0")

        config = load_config(config_path=yaml_config)
        assert config.log_level == "WARNING"
        assert config.http_timeout_seconds == 60.0
        assert config.rate_limit.max_requests == 0
        # YAML values not overridden by ENV stay
        assert config.app_name == "cinegarr-test"
        assert config.rate_limit.window_seconds == 10

    def test_env_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CINEGARR_ENVIRONMENT", "prod")
        monkeypatch.setenv("CINEGARR_FAIL_ON_TOTAL_FAILURE", "true")
        monkeypatch.setenv("CINEGARR_FILMYWAP_URL", "https://filmy.example")

        config = load_config()
        assert config.environment == "prod"
        assert config.log_format == "json"  # prod -> json
        assert config.aggregation.fail_on_total_failure is True
        assert config.sources.filmywap_url == "https://filmy.example"

    def test_dotenv_file_feeds_env_layer(self, tmp_path: Path, clean_env: None) -> None:
        dotenv = tmp_path / ".env"
        dotenv.write_text("CINEGARR_BATCH_CONCURRENCY=4\n", encoding="utf-8")

        config = load_config(dotenv_path=dotenv)
        assert config.batch.concurrency == 4

    def test_dotenv_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / "missing.env")


class TestCliOverrides:
    """CLI overrides beat everything (highest precedence)."""

    def test_cli_overrides_yaml_and_env(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CINEGARR_LOG_LEVEL", "WARNING")

        config = load_config(
            config_path=yaml_config,
            cli_overrides={"log_level": "ERROR"},
        )
        assert config.log_level == "ERROR"

    def test_cli_overrides_with_sectioned_format(self, yaml_config: Path) -> None:
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"http": {"timeout_seconds": 5.0}},
        )
        assert config.http_timeout_seconds == 5.0
        assert config.http_user_agents == ["TestAgent/1.0"]

    def test_cli_overrides_defaults_without_yaml(self) -> None:
        config = load_config(
            cli_overrides={"app_name": "custom-app", "environment": "prod"},
        )
        assert config.app_name == "custom-app"
        assert config.environment == "prod"
        assert config.log_format == "json"
