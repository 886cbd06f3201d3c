"""
SyncBlockingDeque — the blocking, thread-facing form of BlockingDeque.

Each method submits the matching BlockingDeque coroutine to a LoopThread and
blocks the calling thread on the returned future. The command-building logic
lives only in BlockingDeque; this layer adds nothing but the wait.

Outcomes of a synchronous call
------------------------------
  value                 — the decoded element (or count, or True)
  None                  — the timeout expired with no element
  StorageError          — the store or transport failed (re-raised as-is)
  WaitInterruptedError  — the waiting thread was interrupted

Interruption
------------
interrupt(thread) cancels every wait `thread` is blocked in. The command was
already sent; the store may still apply it after the caller has given up
(e.g. an element can be popped and then lost to this caller).

Usage
-----
    with LoopThread() as runner:
        q = SyncBlockingDeque.create("jobs", RedisExecutor(), runner=runner)
        q.put({"id": 1})
        job = q.poll(timedelta(seconds=5))
"""
from __future__ import annotations

import concurrent.futures
import dataclasses
import threading
from collections.abc import Coroutine, MutableSequence, MutableSet
from typing import Any, Generic, TypeVar

import structlog

from rdeque.core.codec import JsonCodec
from rdeque.core.commands import Timeout
from rdeque.core.deque import BlockingDeque
from rdeque.core.runner import LoopThread
from rdeque.domain.errors import WaitInterruptedError
from rdeque.domain.models import End, Polled
from rdeque.ports.codec import Codec
from rdeque.ports.executor import CommandExecutorPort

T = TypeVar("T")
R = TypeVar("R")

log = structlog.get_logger(__name__)


@dataclasses.dataclass
class SyncBlockingDeque(Generic[T]):
    """
    Blocking facade over a BlockingDeque.

    Parameters
    ----------
    deque  : the async handle every call is delegated to
    runner : a started LoopThread that executes the coroutines
    """

    deque: BlockingDeque[T]
    runner: LoopThread

    _waits: dict[int, set[concurrent.futures.Future[Any]]] = dataclasses.field(
        default_factory=dict, init=False, repr=False
    )
    # threads interrupted after entering _wait but before their future existed
    _pending: set[int] = dataclasses.field(
        default_factory=set, init=False, repr=False
    )
    _waits_lock: threading.Lock = dataclasses.field(
        default_factory=threading.Lock, init=False, repr=False
    )

    @classmethod
    def create(
        cls,
        name: str,
        executor: CommandExecutorPort,
        *,
        runner: LoopThread,
        codec: Codec | None = None,
    ) -> "SyncBlockingDeque[Any]":
        return cls(
            deque=BlockingDeque(name, executor, codec or JsonCodec()), runner=runner
        )

    @property
    def name(self) -> str:
        return self.deque.name

    # ------------------------------------------------------------------ #
    # Async result form                                                    #
    # ------------------------------------------------------------------ #

    def submit(self, coro: Coroutine[Any, Any, R]) -> concurrent.futures.Future[R]:
        """
        Schedule a BlockingDeque coroutine without waiting for it.

            future = q.submit(q.deque.take())
            future.add_done_callback(handle)
        """
        return self.runner.submit(coro)

    # ------------------------------------------------------------------ #
    # Insertion                                                            #
    # ------------------------------------------------------------------ #

    def add_first(self, value: T) -> None:
        self._wait(self.deque.add_first(value))

    def add_last(self, value: T) -> None:
        self._wait(self.deque.add_last(value))

    def put(self, value: T) -> None:
        self._wait(self.deque.put(value))

    def put_first(self, value: T) -> None:
        self._wait(self.deque.put_first(value))

    def put_last(self, value: T) -> None:
        self._wait(self.deque.put_last(value))

    def offer(self, value: T, timeout: Timeout | None = None) -> bool:
        return self._wait(self.deque.offer(value, timeout))

    def offer_first(self, value: T, timeout: Timeout | None = None) -> bool:
        return self._wait(self.deque.offer_first(value, timeout))

    def offer_last(self, value: T, timeout: Timeout | None = None) -> bool:
        return self._wait(self.deque.offer_last(value, timeout))

    # ------------------------------------------------------------------ #
    # Removal                                                              #
    # ------------------------------------------------------------------ #

    def take(self) -> T:
        return self._wait(self.deque.take())

    def take_first(self) -> T:
        return self._wait(self.deque.take_first())

    def take_last(self) -> T:
        return self._wait(self.deque.take_last())

    def poll(self, timeout: Timeout) -> T | None:
        return self._wait(self.deque.poll(timeout))

    def poll_first(self, timeout: Timeout) -> T | None:
        return self._wait(self.deque.poll_first(timeout))

    def poll_last(self, timeout: Timeout) -> T | None:
        return self._wait(self.deque.poll_last(timeout))

    def poll_from_any(self, timeout: Timeout, *queue_names: str) -> T | None:
        return self._wait(self.deque.poll_from_any(timeout, *queue_names))

    def poll_first_from_any(self, timeout: Timeout, *queue_names: str) -> T | None:
        return self._wait(self.deque.poll_first_from_any(timeout, *queue_names))

    def poll_last_from_any(self, timeout: Timeout, *queue_names: str) -> T | None:
        return self._wait(self.deque.poll_last_from_any(timeout, *queue_names))

    def poll_from_any_with_queue(
        self, timeout: Timeout, *queue_names: str, end: End = End.FIRST
    ) -> Polled | None:
        return self._wait(
            self.deque.poll_from_any_with_queue(timeout, *queue_names, end=end)
        )

    def poll_last_and_offer_first_to(
        self, queue_name: str, timeout: Timeout
    ) -> T | None:
        return self._wait(self.deque.poll_last_and_offer_first_to(queue_name, timeout))

    def drain_to(
        self,
        collection: MutableSequence[Any] | MutableSet[Any],
        max_elements: int | None = None,
    ) -> int:
        return self._wait(self.deque.drain_to(collection, max_elements))

    # ------------------------------------------------------------------ #
    # Inspection                                                           #
    # ------------------------------------------------------------------ #

    def remaining_capacity(self) -> int:
        return self.deque.remaining_capacity()

    def size(self) -> int:
        return self._wait(self.deque.size())

    def read_all(self) -> list[T]:
        return self._wait(self.deque.read_all())

    def delete(self) -> bool:
        return self._wait(self.deque.delete())

    # ------------------------------------------------------------------ #
    # Interruption                                                         #
    # ------------------------------------------------------------------ #

    def interrupt(self, thread: threading.Thread) -> int:
        """
        Interrupt every wait `thread` is blocked in on this handle.

        Returns the number of waits interrupted. The interrupted calls raise
        WaitInterruptedError in `thread`. A thread that has entered a call
        but not yet submitted its command counts as waiting: the call is
        cancelled as soon as it is submitted.
        """
        ident = thread.ident or 0
        with self._waits_lock:
            if ident not in self._waits:
                return 0
            futures = self._waits[ident]
            if futures:
                interrupted = sum(1 for f in list(futures) if f.cancel())
            else:
                self._pending.add(ident)
                interrupted = 1
        if interrupted:
            log.debug("wait_interrupted", queue=self.name, thread=thread.name)
        return interrupted

    # ------------------------------------------------------------------ #
    # Internal                                                             #
    # ------------------------------------------------------------------ #

    def _wait(self, coro: Coroutine[Any, Any, R]) -> R:
        """Submit `coro` and block until it resolves, fails or is interrupted."""
        ident = threading.get_ident()
        with self._waits_lock:
            waits = self._waits.setdefault(ident, set())
        future: concurrent.futures.Future[R] | None = None
        try:
            future = self.runner.submit(coro)
            with self._waits_lock:
                waits.add(future)
                if ident in self._pending:
                    self._pending.discard(ident)
                    future.cancel()
            return future.result()
        except concurrent.futures.CancelledError as exc:
            raise WaitInterruptedError(
                f"Wait on queue {self.name!r} was interrupted"
            ) from exc
        except BaseException:
            # KeyboardInterrupt and friends: stop waiting on the loop side too.
            if future is not None:
                future.cancel()
            raise
        finally:
            with self._waits_lock:
                if future is not None:
                    waits.discard(future)
                self._pending.discard(ident)
                if not waits:
                    self._waits.pop(ident, None)
