"""Tests for the cinegarr command-line entrypoint."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from structlog.testing import capture_logs

from cinegarr.domain.entities import (
    Category,
    CategoryEnvelope,
    ErrorInfo,
    MovieListing,
    ResultEnvelope,
)
from cinegarr.interfaces.cli import cli


def _aggregator() -> MagicMock:
    aggregator = MagicMock()
    ok = ResultEnvelope(
        movies=(MovieListing(title="Heat", link="https://x.test/h", source="s"),),
        total=1,
        cache_max_age=600,
    )
    aggregator.get_home_listings = AsyncMock(return_value=ok)
    aggregator.get_listings = AsyncMock(return_value=ok)
    aggregator.search_movies = AsyncMock(return_value=ok)
    aggregator.get_categories = AsyncMock(
        return_value=CategoryEnvelope(
            categories=(Category(slug="drama", name="Drama"),), cache_max_age=300
        )
    )
    return aggregator


@pytest.fixture()
def shell():
    """Patch engine and logging setup; expose the fake aggregator."""
    aggregator = _aggregator()

    @asynccontextmanager
    async def _open_engine(_config):
        yield SimpleNamespace(aggregator=aggregator)

    with (
        patch.object(cli, "open_engine", _open_engine),
        patch.object(cli, "configure_logging") as configure_logging,
    ):
        yield SimpleNamespace(aggregator=aggregator, configure_logging=configure_logging)


class TestCommands:
    def test_home(self, shell: SimpleNamespace, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.start(["home", "--type", "popular"]) == 0

        shell.aggregator.get_home_listings.assert_awaited_once_with(
            include_details=True, source_type="popular"
        )
        payload = json.loads(capsys.readouterr().out)
        assert payload["total"] == 1
        assert payload["movies"][0]["title"] == "Heat"

    def test_list_with_category(self, shell: SimpleNamespace) -> None:
        argv = ["--no-details", "list", "--page", "2", "--category", "drama"]
        assert cli.start(argv) == 0

        shell.aggregator.get_listings.assert_awaited_once_with(
            page=2, category="drama", include_details=False
        )

    def test_search(self, shell: SimpleNamespace) -> None:
        assert cli.start(["search", "heat 1995"]) == 0
        shell.aggregator.search_movies.assert_awaited_once_with(
            "heat 1995", include_details=True
        )

    def test_categories(
        self, shell: SimpleNamespace, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.start(["categories"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload == {
            "categories": [{"slug": "drama", "name": "Drama"}],
            "cacheMaxAge": 300,
        }

    def test_error_payload_exit_code(
        self, shell: SimpleNamespace, capsys: pytest.CaptureFixture[str]
    ) -> None:
        shell.aggregator.search_movies.return_value = ResultEnvelope(
            error=ErrorInfo(
                code="VALIDATION_ERROR",
                message="Search query must be at least 2 characters long",
                status=400,
            )
        )
        with capture_logs() as logs:
            assert cli.start(["search", "a"]) == 1

        payload = json.loads(capsys.readouterr().out)
        assert payload["code"] == "VALIDATION_ERROR"
        assert logs[-1]["event"] == "command_failed"
        assert logs[-1]["code"] == "VALIDATION_ERROR"


class TestConfigWiring:
    def test_log_overrides_reach_config(self, shell: SimpleNamespace) -> None:
        cli.start(["--log-level", "DEBUG", "--log-format", "json", "categories"])

        config = shell.configure_logging.call_args.args[0]
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_missing_config_file(self, shell: SimpleNamespace, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            cli.start(["--config", str(tmp_path / "nope.yaml"), "home"])
        shell.aggregator.get_home_listings.assert_not_awaited()

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.start([])
