"""
BlockingDeque — a blocking double-ended queue over a remote list.

Every call is one round trip to the store:

  put / put_first / put_last / offer*      → LPUSH / RPUSH
  take* / poll*                            → BLPOP / BRPOP on this queue
  poll*_from_any                           → BLPOP / BRPOP over a queue set
  poll_last_and_offer_first_to             → BLMOVE (single atomic move)
  drain_to                                 → one atomic read-and-truncate script

There is no local state, lock or cache. All mutual exclusion comes from the
store running each command, and each script, atomically.

"No element" is None
--------------------
poll-style operations return None when their timeout expires. A codec that
can decode an element to None makes that element indistinguishable from a
timeout; use a codec whose values are never None.

Usage
-----
    from rdeque import BlockingDeque, InMemoryListStore

    q = BlockingDeque("jobs", InMemoryListStore())
    await q.put({"id": 1})
    job = await q.poll(timedelta(seconds=5))
"""
from __future__ import annotations

import dataclasses
import sys
from collections.abc import MutableSequence, MutableSet
from typing import Any, Generic, TypeVar

import structlog

from rdeque.core import commands
from rdeque.core.codec import JsonCodec
from rdeque.core.commands import Timeout
from rdeque.domain.models import End, Polled
from rdeque.ports.codec import Codec
from rdeque.ports.executor import CommandExecutorPort

T = TypeVar("T")

log = structlog.get_logger(__name__)


@dataclasses.dataclass
class BlockingDeque(Generic[T]):
    """
    Handle to one named remote queue.

    Parameters
    ----------
    name     : key of the list on the store
    executor : any CommandExecutorPort implementation
    codec    : element codec (default JsonCodec)

    Handles are cheap and stateless; any number of handles, in any number of
    processes, may address the same name.
    """

    name: str
    executor: CommandExecutorPort
    codec: Codec = dataclasses.field(default_factory=JsonCodec)

    # ------------------------------------------------------------------ #
    # Insertion — never blocks, never rejects                             #
    # ------------------------------------------------------------------ #

    async def add_first(self, value: T) -> None:
        await self._push(End.FIRST, value)

    async def add_last(self, value: T) -> None:
        await self._push(End.LAST, value)

    async def put(self, value: T) -> None:
        """Append to the tail."""
        await self.add_last(value)

    async def put_first(self, value: T) -> None:
        await self.add_first(value)

    async def put_last(self, value: T) -> None:
        await self.add_last(value)

    async def offer(self, value: T, timeout: Timeout | None = None) -> bool:
        """
        Append to the tail. Always True.

        The list is unbounded, so a push is never refused; `timeout` is
        accepted for interface compatibility and ignored.
        """
        await self.add_last(value)
        return True

    async def offer_first(self, value: T, timeout: Timeout | None = None) -> bool:
        await self.add_first(value)
        return True

    async def offer_last(self, value: T, timeout: Timeout | None = None) -> bool:
        await self.add_last(value)
        return True

    # ------------------------------------------------------------------ #
    # Removal — blocking                                                   #
    # ------------------------------------------------------------------ #

    async def take(self) -> T:
        """Remove the head, waiting as long as it takes."""
        return await self.take_first()

    async def take_first(self) -> T:
        return await self._take(End.FIRST)

    async def take_last(self) -> T:
        return await self._take(End.LAST)

    async def poll(self, timeout: Timeout) -> T | None:
        """Remove the head, waiting up to `timeout`. None if nothing arrived."""
        return await self.poll_first(timeout)

    async def poll_first(self, timeout: Timeout) -> T | None:
        return await self._poll(End.FIRST, timeout)

    async def poll_last(self, timeout: Timeout) -> T | None:
        return await self._poll(End.LAST, timeout)

    async def poll_from_any(self, timeout: Timeout, *queue_names: str) -> T | None:
        """
        Remove the head of whichever queue has an element first.

        This queue is tried first, then `queue_names` in the given order.
        The winning queue is not reported; see poll_from_any_with_queue.
        """
        return await self.poll_first_from_any(timeout, *queue_names)

    async def poll_first_from_any(
        self, timeout: Timeout, *queue_names: str
    ) -> T | None:
        return await self._poll(End.FIRST, timeout, queue_names)

    async def poll_last_from_any(
        self, timeout: Timeout, *queue_names: str
    ) -> T | None:
        return await self._poll(End.LAST, timeout, queue_names)

    async def poll_from_any_with_queue(
        self,
        timeout: Timeout,
        *queue_names: str,
        end: End = End.FIRST,
    ) -> Polled | None:
        """Like poll_first_from_any / poll_last_from_any, but names the winning queue."""
        return await self._blocking_pop(
            end, commands.to_seconds(timeout), queue_names
        )

    async def poll_last_and_offer_first_to(
        self, queue_name: str, timeout: Timeout
    ) -> T | None:
        """
        Atomically move the tail of this queue onto the head of `queue_name`.

        Waits up to `timeout` for this queue to be non-empty. Returns the
        moved element, or None (and changes nothing) if none arrived.
        """
        cmd = commands.blocking_move(
            self.name, queue_name, commands.to_seconds(timeout)
        )
        log.debug("blocking_move", queue=self.name, destination=queue_name)
        raw = await self.executor.execute(cmd)
        return None if raw is None else self.codec.decode(raw)

    # ------------------------------------------------------------------ #
    # Bulk removal                                                         #
    # ------------------------------------------------------------------ #

    async def drain_to(
        self,
        collection: MutableSequence[Any] | MutableSet[Any],
        max_elements: int | None = None,
    ) -> int:
        """
        Atomically remove up to `max_elements` from the head (all if None).

        Removed elements are added to `collection` in queue order. Returns
        how many were removed. max_elements <= 0 does nothing and makes no
        remote call.
        """
        if not isinstance(collection, (MutableSequence, MutableSet)):
            raise TypeError(
                "drain_to() destination must be a mutable sequence or set, "
                f"got {type(collection).__name__}"
            )
        if max_elements is not None and max_elements <= 0:
            return 0

        raw = await self.executor.evaluate(
            commands.drain_script(self.name, max_elements)
        )
        values = [self.codec.decode(r) for r in raw or ()]
        _add_all(collection, values)
        log.debug("drained", queue=self.name, count=len(values))
        return len(values)

    # ------------------------------------------------------------------ #
    # Inspection                                                           #
    # ------------------------------------------------------------------ #

    def remaining_capacity(self) -> int:
        """The list is bounded only by store memory, which is not tracked."""
        return sys.maxsize

    async def size(self) -> int:
        return int(await self.executor.execute(commands.length(self.name)))

    async def read_all(self) -> list[T]:
        """Every element, head first, without removing anything."""
        raw = await self.executor.execute(commands.read_range(self.name))
        return [self.codec.decode(r) for r in raw or ()]

    async def delete(self) -> bool:
        """Remove the whole queue. True if it existed."""
        return int(await self.executor.execute(commands.delete(self.name))) > 0

    # ------------------------------------------------------------------ #
    # Internal                                                             #
    # ------------------------------------------------------------------ #

    async def _push(self, end: End, value: T) -> None:
        await self.executor.execute(
            commands.push(end, self.name, self.codec.encode(value))
        )

    async def _take(self, end: End) -> T:
        polled = await self._blocking_pop(end, 0)
        # A zero timeout never expires, so the store always answers with an element.
        return polled.value  # type: ignore[union-attr]

    async def _poll(
        self, end: End, timeout: Timeout, queue_names: tuple[str, ...] = ()
    ) -> T | None:
        polled = await self._blocking_pop(
            end, commands.to_seconds(timeout), queue_names
        )
        return None if polled is None else polled.value

    async def _blocking_pop(
        self, end: End, seconds: int, queue_names: tuple[str, ...] = ()
    ) -> Polled | None:
        """The one blocking pop behind every take*, poll* and *_from_any call."""
        keys = (self.name, *queue_names)
        log.debug(
            "blocking_pop", queue=self.name, end=end.value, keys=keys, timeout=seconds
        )
        reply = await self.executor.execute(commands.blocking_pop(end, keys, seconds))
        return commands.polled(reply, self.codec.decode)


def _add_all(
    collection: MutableSequence[Any] | MutableSet[Any], values: list[Any]
) -> None:
    if isinstance(collection, MutableSet):
        for v in values:
            collection.add(v)
    else:
        collection.extend(values)
