"""
At most one in-flight fetch per request key.

Callers asking for a key that is already being fetched await the same task
instead of issuing a duplicate network call. The shared task is cancelled
only when its last waiter is cancelled.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Call:
    task: asyncio.Future
    waiters: int = 0


class SingleFlight:
    """Deduplicates concurrent calls that share a key."""

    def __init__(self):
        self._calls: dict[Hashable, _Call] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    async def do(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run `factory()` for `key`, or join the call already running for it.

        Args:
            key: Request signature, e.g. ("firebase", (("status", "pending"),))
            factory: Zero-argument callable returning the awaitable to run

        Returns:
            The shared result; exceptions are shared too.
        """
        call = self._calls.get(key)
        if call is None:
            call = _Call(task=asyncio.ensure_future(factory()))
            self._calls[key] = call
            call.task.add_done_callback(lambda _task, key=key, call=call: self._forget(key, call))
        else:
            logger.debug("Joining in-flight request %r", key)

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        except asyncio.CancelledError:
            if call.waiters == 1 and not call.task.done():
                call.task.cancel()
                # late callers must start a fresh call, not join this one
                self._forget(key, call)
            raise
        finally:
            call.waiters -= 1

    def _forget(self, key: Hashable, call: _Call) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]
