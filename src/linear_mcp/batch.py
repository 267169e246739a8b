"""Bounded-concurrency batch execution."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from linear_mcp.errors import log_error

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]


async def process_batch(
    items: Sequence[T],
    batch_size: int,
    process_fn: Callable[[T], Awaitable[R]],
    on_progress: ProgressCallback | None = None,
    return_exceptions: bool = False,
) -> list[Any]:
    """Process items in sequential batches of concurrent calls.

    Batching caps how many upstream requests are in flight at once, which
    keeps bulk operations under the API rate limit while still overlapping
    latency inside a batch.

    Args:
        items: Work items, processed in order
        batch_size: Maximum items in flight at once
        process_fn: Async function applied to each item
        on_progress: Called with (completed, total) after every batch
        return_exceptions: Put a failing item's exception in its result
            slot instead of raising it

    Returns:
        One result per item, in input order

    Raises:
        ValueError: If batch_size < 1
        Exception: The first item failure, when return_exceptions is False
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    async def run_item(item: T) -> R:
        try:
            return await process_fn(item)
        except Exception as e:
            log_error(e, f"batch process error for item: {item!r}")
            raise

    total = len(items)
    results: list[Any] = []

    if total == 0:
        if on_progress:
            on_progress(0, 0)
        return results

    for start in range(0, total, batch_size):
        batch = items[start : start + batch_size]
        batch_results = await asyncio.gather(
            *(run_item(item) for item in batch),
            return_exceptions=return_exceptions,
        )
        results.extend(batch_results)

        if on_progress:
            on_progress(min(start + batch_size, total), total)

    return results
