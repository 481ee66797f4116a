"""
Windowed Concurrency

Runs coroutine factories in fixed-size windows so at most `window`
upstream calls are in flight at once. Each window is awaited fully
before the next one starts, which keeps vendor rate limits honest.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Sequence

logger = logging.getLogger(__name__)


async def gather_in_windows(
    factories: Sequence[Callable[[], Awaitable[Any]]],
    window: int = 10,
) -> List[Any]:
    """
    Run coroutine factories window by window.

    Factories are only invoked when their window starts. Exceptions are
    returned in place of results (asyncio.gather with return_exceptions),
    so one failed call never cancels its siblings.

    Returns:
        Results in the same order as `factories`
    """
    if window < 1:
        raise ValueError("window must be at least 1")

    results: List[Any] = []
    for start in range(0, len(factories), window):
        chunk = factories[start:start + window]
        chunk_results = await asyncio.gather(
            *(factory() for factory in chunk),
            return_exceptions=True,
        )
        failures = sum(1 for r in chunk_results if isinstance(r, Exception))
        if failures:
            logger.warning(
                f"Window {start // window + 1}: {failures}/{len(chunk)} calls failed"
            )
        results.extend(chunk_results)
    return results


def safe_result(results: list, idx: int, default):
    """Safely extract a result from gather_in_windows output."""
    if idx >= len(results):
        return default
    val = results[idx]
    return default if isinstance(val, Exception) else val
