"""
LoopThread — a private asyncio event loop running on a daemon thread.

SyncBlockingDeque submits every coroutine here and blocks the calling thread
on the concurrent.futures.Future that comes back. The loop is the single
scheduler that resolves those futures; calling threads never run coroutines
themselves.

Usage
-----
    with LoopThread() as runner:
        future = runner.submit(q.take())
        value = future.result()
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import threading
from collections.abc import Coroutine
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from rdeque.domain.errors import RDequeError

if TYPE_CHECKING:
    from rdeque.config import DequeSettings

T = TypeVar("T")

log = structlog.get_logger(__name__)


@dataclasses.dataclass
class LoopThread:
    """
    Owns one event loop and the thread that runs it.

    Parameters
    ----------
    name : thread name, visible in thread dumps
    """

    name: str = "rdeque-loop"

    _loop: asyncio.AbstractEventLoop | None = dataclasses.field(
        default=None, init=False, repr=False
    )
    _thread: threading.Thread | None = dataclasses.field(
        default=None, init=False, repr=False
    )

    @classmethod
    def from_settings(cls, settings: DequeSettings) -> "LoopThread":
        return cls(name=settings.loop_thread_name)

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the loop thread and wait until the loop is running."""
        if self._thread is not None:
            raise RuntimeError("LoopThread is already running")
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        self._loop = loop
        self._thread = threading.Thread(target=_run, name=self.name, daemon=True)
        self._thread.start()
        ready.wait()
        log.debug("loop_thread_started", thread=self.name)

    def stop(self) -> None:
        """
        Cancel outstanding work, stop the loop and join the thread.

        Futures still pending at this point are cancelled, which their
        waiters observe as an interruption.
        """
        if self._thread is None or self._loop is None:
            return
        loop, thread = self._loop, self._thread
        asyncio.run_coroutine_threadsafe(_cancel_pending(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()
        self._loop = None
        self._thread = None
        log.debug("loop_thread_stopped", thread=self.name)

    @property
    def running(self) -> bool:
        return self._thread is not None

    def __enter__(self) -> "LoopThread":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------ #
    # Submission                                                           #
    # ------------------------------------------------------------------ #

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule `coro` on the loop and return a future for its result."""
        if self._loop is None:
            coro.close()
            raise RDequeError("LoopThread is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)


async def _cancel_pending() -> None:
    current = asyncio.current_task()
    tasks = [t for t in asyncio.all_tasks() if t is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
