from __future__ import annotations

import atexit
import copy
import logging
import logging.config
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from cinegarr.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Chatty third-party loggers capped at WARNING unless DEBUG is requested.
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "asyncio")

_listener: Optional[QueueListener] = None


def _stamp_record_time(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Use ``LogRecord.created`` as the timestamp of stdlib records.

    Records are formatted later on the listener thread; the emit time
    is the one that matters.
    """
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def _formatter_kwargs(config: AppConfig) -> dict[str, Any]:
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    return {
        "foreign_pre_chain": [
            structlog.contextvars.merge_contextvars,
            _stamp_record_time,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
        ],
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    }


def _third_party_level(config: AppConfig) -> str:
    return "DEBUG" if config.log_level == "DEBUG" else "WARNING"


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """
    Build a dictConfig rendering every record through structlog to stderr.

    Stdout stays reserved for command output (JSON envelopes).
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                **_formatter_kwargs(config),
            },
        },
        "handlers": {
            "default": {
                "formatter": "structlog",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            name: {"level": _third_party_level(config)} for name in NOISY_LOGGERS
        },
        "root": {"handlers": ["default"], "level": config.log_level},
    }


class _EventDictQueueHandler(QueueHandler):
    """Enqueue records untouched.

    The stock ``prepare()`` replaces ``record.msg`` with the formatted
    string, losing the event dict ``ProcessorFormatter`` renders.
    """

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        return copy.copy(record)


def _stop_listener() -> None:
    global _listener
    if _listener is None:
        return
    try:
        _listener.stop()
    finally:
        _listener = None


def _route_through_queue(config: AppConfig) -> None:
    """Swap the root handler for a queue drained by a listener thread.

    Writes to stderr then happen off the event loop.
    """
    global _listener
    _stop_listener()

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(**_formatter_kwargs(config))
    )

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    root = logging.getLogger()
    root.handlers[:] = [_EventDictQueueHandler(records)]
    root.setLevel(config.log_level)

    # Everything reaches stderr through the root queue handler only.
    for name in list(logging.root.manager.loggerDict):
        named = logging.getLogger(name)
        named.handlers.clear()
        named.propagate = True
    third_party_level = _third_party_level(config)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    _listener = QueueListener(records, stderr_handler, respect_handler_level=True)
    _listener.start()
    atexit.register(_stop_listener)


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """Set up structlog on top of stdlib logging, writing to stderr.

    Returns the dictConfig that was applied.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging_config = build_logging_config(config)
    logging.config.dictConfig(logging_config)
    _route_through_queue(config)

    log.info(
        "logging_configured",
        log_format=config.log_format,
        log_level=config.log_level,
    )
    return logging_config
