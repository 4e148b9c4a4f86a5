"""
Single-Flight Execution for Async Work.

Collapses concurrent calls for the same key onto one in-flight coroutine.
The first caller starts the work; callers arriving while it runs await
the same task and receive the same result or exception. Once the work
finishes the key is forgotten, so the next call starts fresh.

Used for:
    - Credential refresh: one signing per expiry window
    - Synthesis coalescing (cache.coalesce): one provider call per
      fingerprint while it is in flight

Cancellation:
    The shared task is shielded. A caller that is cancelled stops waiting,
    but the work itself runs to completion for the remaining callers.

Usage:
    flight = SingleFlight()

    async def load():
        return await backend.synthesize(text, voice)

    result = await flight.do(fingerprint, load)
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Dict, Hashable, TypeVar

from tts_gateway.core.logging import debug, get_logger

_LOG = get_logger("tts-gateway.concurrency")

T = TypeVar("T")


class SingleFlight:
    """
    Per-key deduplication of concurrent coroutine calls.

    Not thread-safe: all callers must share one event loop.

    Attributes:
        shared_calls: How many calls joined an existing flight.
    """

    def __init__(self, name: str = "flight"):
        self.name = name
        self._calls: Dict[Hashable, "asyncio.Task[Any]"] = {}
        self.shared_calls = 0

    @property
    def in_flight(self) -> int:
        """Number of keys currently being computed."""
        return len(self._calls)

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``fn`` once per key among concurrent callers.

        Args:
            key: Deduplication key.
            fn: Zero-argument coroutine function producing the result.

        Returns:
            The result of the single shared call.

        Raises:
            Whatever ``fn`` raised, to every caller of that flight.
        """
        task = self._calls.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            self.shared_calls += 1
            debug(_LOG, "flight_joined", flight=self.name)
        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
        # Mark the exception retrieved; every waiter may have been cancelled
        if not task.cancelled():
            task.exception()
