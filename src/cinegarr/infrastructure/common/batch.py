"""Concurrency-bounded batch processing with partial-failure tolerance."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def process_all(
    items: Sequence[T],
    work: Callable[[T, int], Awaitable[R]],
    concurrency_limit: int,
    *,
    stagger: float = 0.1,
    batch_pause: float = 0.5,
) -> list[R]:
    """Run *work* over *items* in sequential batches.

    Batches hold ``min(concurrency_limit, len(items))`` items.  Inside a
    batch every item starts concurrently, delayed by
    ``stagger * position`` seconds; between batches the processor waits
    *batch_pause* seconds.  Items whose work raises are logged and left
    out of the result; the rest keep their input order.
    """
    if not items:
        return []

    size = max(1, min(concurrency_limit, len(items)))
    log.info("batch_processing_started", items=len(items), concurrency=size)

    async def _run(item: T, position: int, index: int) -> R:
        if position > 0 and stagger > 0:
            await asyncio.sleep(stagger * position)
        return await work(item, index)

    results: list[R] = []
    for start in range(0, len(items), size):
        batch = items[start : start + size]
        outcomes = await asyncio.gather(
            *[_run(item, pos, start + pos) for pos, item in enumerate(batch)],
            return_exceptions=True,
        )
        for pos, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                log.warning(
                    "batch_item_failed",
                    index=start + pos,
                    error=str(outcome),
                )
                continue
            results.append(outcome)

        if start + size < len(items) and batch_pause > 0:
            await asyncio.sleep(batch_pause)

    return results
