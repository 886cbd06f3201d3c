"""
InMemoryListStore — asyncio.Condition-based list store for testing and development.

Implements exactly the commands BlockingDeque issues (push, blocking pop,
blocking move, range, length, delete) plus the drain scripts, with the same
reply shapes as the real store: elements and keys come back as bytes,
blocking pops return nil on timeout. Any other command is rejected.

Every command and every script runs while holding one asyncio.Condition, so
each is atomic with respect to every other. Blocking commands wait on the
condition and are woken by every push.

Scripts cannot run Lua here; they are dispatched on Script.name to Python
implementations of the same read-modify-write sequence.

Zero external dependencies. Safe for multiple concurrent coroutines in a
single event loop. NOT safe across processes or threads.
"""
from __future__ import annotations

import asyncio
import dataclasses
from collections import deque
from typing import Any

from rdeque.core.commands import DRAIN, DRAIN_ALL
from rdeque.domain.errors import StorageError, UnknownScriptError
from rdeque.domain.models import Command, Script


def _key(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return str(raw)


def _element(raw: Any) -> bytes:
    match raw:
        case bytes():
            return raw
        case bytearray():
            return bytes(raw)
        case str():
            return raw.encode("utf-8")
        case int() | float():
            return str(raw).encode("ascii")
        case _:
            raise StorageError(
                "Invalid element", TypeError(f"unsupported type {type(raw).__name__}")
            )


def _bounds(length: int, start: int, stop: int) -> tuple[int, int]:
    """Inclusive Redis-style indices → Python slice bounds."""
    if start < 0:
        start = max(length + start, 0)
    if stop < 0:
        stop = length + stop
    stop = min(stop, length - 1)
    if start > stop:
        return 0, 0
    return start, stop + 1


@dataclasses.dataclass
class InMemoryListStore:
    """
    In-process list store keyed by queue name.

    Parameters
    ----------
    initial : optional pre-populated lists, head first (useful for test setup)

    Attributes
    ----------
    history : every Command and Script received, in arrival order
    """

    initial: dict[str, list[bytes]] = dataclasses.field(default_factory=dict)

    history: list[Command | Script] = dataclasses.field(
        default_factory=list, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._lists: dict[str, deque[bytes]] = {
            k: deque(v) for k, v in self.initial.items() if v
        }
        self._cond: asyncio.Condition = asyncio.Condition()

    # ------------------------------------------------------------------ #
    # CommandExecutorPort                                                  #
    # ------------------------------------------------------------------ #

    async def execute(self, command: Command) -> Any:
        self.history.append(command)
        handler = getattr(self, f"_cmd_{command.name.lower()}", None)
        if handler is None:
            raise StorageError(
                "Command failed", ValueError(f"unknown command {command.name!r}")
            )
        async with self._cond:
            return await handler(*command.args)

    async def evaluate(self, script: Script) -> Any:
        self.history.append(script)
        handler = self._scripts().get(script.name)
        if handler is None:
            raise UnknownScriptError(script.name)
        async with self._cond:
            return handler(*script.keys, *script.args)

    # ------------------------------------------------------------------ #
    # Test helpers (not part of the port)                                 #
    # ------------------------------------------------------------------ #

    def snapshot(self, key: str) -> list[bytes]:
        """Current contents of `key`, head first, without going through a command."""
        return list(self._lists.get(key, ()))

    def keys(self) -> list[str]:
        return sorted(self._lists)

    # ------------------------------------------------------------------ #
    # Commands (called with the condition held)                           #
    # ------------------------------------------------------------------ #

    async def _cmd_lpush(self, key: Any, *values: Any) -> int:
        items = self._lists.setdefault(_key(key), deque())
        for v in values:
            items.appendleft(_element(v))
        self._cond.notify_all()
        return len(items)

    async def _cmd_rpush(self, key: Any, *values: Any) -> int:
        items = self._lists.setdefault(_key(key), deque())
        for v in values:
            items.append(_element(v))
        self._cond.notify_all()
        return len(items)

    async def _cmd_blpop(self, *args: Any) -> list[bytes] | None:
        return await self._blocking_pop(args, left=True)

    async def _cmd_brpop(self, *args: Any) -> list[bytes] | None:
        return await self._blocking_pop(args, left=False)

    async def _cmd_blmove(
        self, source: Any, destination: Any, wherefrom: str, whereto: str, timeout: Any
    ) -> bytes | None:
        src, dst = _key(source), _key(destination)

        def _try() -> bytes | None:
            value = self._pop(src, left=wherefrom.upper() == "LEFT")
            if value is None:
                return None
            items = self._lists.setdefault(dst, deque())
            if whereto.upper() == "LEFT":
                items.appendleft(value)
            else:
                items.append(value)
            self._cond.notify_all()
            return value

        return await self._wait_for(_try, timeout)

    async def _cmd_lrange(self, key: Any, start: int, stop: int) -> list[bytes]:
        items = list(self._lists.get(_key(key), ()))
        lo, hi = _bounds(len(items), int(start), int(stop))
        return items[lo:hi]

    async def _cmd_llen(self, key: Any) -> int:
        return len(self._lists.get(_key(key), ()))

    async def _cmd_del(self, *keys: Any) -> int:
        return sum(1 for k in keys if self._lists.pop(_key(k), None) is not None)

    # ------------------------------------------------------------------ #
    # Scripts (called with the condition held)                            #
    # ------------------------------------------------------------------ #

    def _scripts(self) -> dict[str, Any]:
        return {DRAIN_ALL: self._drain_all, DRAIN: self._drain}

    def _drain_all(self, key: str) -> list[bytes]:
        vals = list(self._lists.get(key, ()))
        self._lists.pop(key, None)
        return vals

    def _drain(self, key: str, max_elements: Any) -> list[bytes]:
        last = min(int(max_elements), len(self._lists.get(key, ()))) - 1
        items = list(self._lists.get(key, ()))
        lo, hi = _bounds(len(items), 0, last)
        vals = items[lo:hi]
        self._trim(key, last + 1, -1)
        return vals

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _pop(self, key: str, *, left: bool) -> bytes | None:
        items = self._lists.get(key)
        if not items:
            return None
        value = items.popleft() if left else items.pop()
        if not items:
            del self._lists[key]
        return value

    def _trim(self, key: str, start: int, stop: int) -> None:
        items = self._lists.get(key)
        if items is None:
            return
        lo, hi = _bounds(len(items), start, stop)
        kept = list(items)[lo:hi]
        if kept:
            self._lists[key] = deque(kept)
        else:
            del self._lists[key]

    async def _blocking_pop(
        self, args: tuple[Any, ...], *, left: bool
    ) -> list[bytes] | None:
        *keys, timeout = args
        names = [_key(k) for k in keys]

        def _try() -> list[bytes] | None:
            for name in names:
                value = self._pop(name, left=left)
                if value is not None:
                    return [name.encode("utf-8"), value]
            return None

        return await self._wait_for(_try, timeout)

    async def _wait_for(self, attempt: Any, timeout: Any) -> Any:
        """Retry `attempt` on every wake-up until it succeeds or `timeout` seconds pass (0 = forever)."""
        seconds = float(timeout)
        loop = asyncio.get_running_loop()
        deadline = None if seconds == 0 else loop.time() + seconds
        while True:
            result = attempt()
            if result is not None:
                return result
            if deadline is None:
                await self._cond.wait()
                continue
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                await asyncio.wait_for(self._cond.wait(), remaining)
            except TimeoutError:
                return None
