"""
Single-Flight Coalescing

Concurrent callers asking for the same key share one in-flight
computation instead of each invoking the LLM. The first caller runs
the coroutine; later callers await the same future. The entry is
removed once the computation settles, so the next miss recomputes.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class SingleFlight:
    """
    Per-key in-flight future registry.

    Usage:
        flights = SingleFlight()
        result = await flights.do(("tu munich", "germany"), lambda: enrich(...))
    """

    def __init__(self):
        self._inflight: Dict[Hashable, asyncio.Future] = {}
        self._stats = {"leaders": 0, "shared": 0}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run factory() once per key among concurrent callers.

        Exceptions from the leader propagate to every waiter.
        """
        existing = self._inflight.get(key)
        if existing is not None:
            self._stats["shared"] += 1
            logger.debug(f"Joining in-flight computation for {key}")
            # shield: a cancelled follower must not cancel the leader's work
            return await asyncio.shield(existing)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        self._stats["leaders"] += 1
        try:
            result = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited failure is not reported as lost
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "in_flight": len(self._inflight)}
