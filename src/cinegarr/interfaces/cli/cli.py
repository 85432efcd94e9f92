from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from cinegarr.domain.entities import CategoryEnvelope, ResultEnvelope
from cinegarr.infrastructure.composition import open_engine
from cinegarr.infrastructure.config import AppConfig, load_config
from cinegarr.infrastructure.logging.setup import configure_logging
from cinegarr.interfaces.presenter import categories_to_dict, envelope_to_dict

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cinegarr")

    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )
    parser.add_argument(
        "--no-details",
        action="store_true",
        help="Skip detail page enrichment.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    home = sub.add_parser("home", help="Home page listings (popular + latest).")
    home.add_argument(
        "--type",
        dest="source_type",
        default=None,
        choices=["popular", "latest"],
        help="Only one listing type.",
    )

    listing = sub.add_parser("list", help="Paginated listings.")
    listing.add_argument("--page", type=int, default=1)
    listing.add_argument("--category", default=None, help="Category slug.")

    search = sub.add_parser("search", help="Search every source.")
    search.add_argument("query")

    sub.add_parser("categories", help="List the category facet.")

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, config: AppConfig) -> dict[str, Any]:
    include_details = not args.no_details
    async with open_engine(config) as engine:
        aggregator = engine.aggregator
        result: ResultEnvelope | CategoryEnvelope
        if args.command == "home":
            result = await aggregator.get_home_listings(
                include_details=include_details, source_type=args.source_type
            )
        elif args.command == "list":
            result = await aggregator.get_listings(
                page=args.page,
                category=args.category,
                include_details=include_details,
            )
        elif args.command == "search":
            result = await aggregator.search_movies(
                args.query, include_details=include_details
            )
        else:
            result = await aggregator.get_categories()

    if isinstance(result, CategoryEnvelope):
        return categories_to_dict(result)
    return envelope_to_dict(result)


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Config is loaded exactly once here; the JSON payload goes to stdout,
    logs go to stderr. Returns 1 when the payload carries an error.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )
    configure_logging(config)

    payload = asyncio.run(_run(args, config))
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    sys.stdout.flush()

    if "error" in payload:
        log.error("command_failed", command=args.command, code=payload.get("code"))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(start())
