"""
Command builders — map deque operations onto remote list primitives.

Every remote interaction of BlockingDeque is built here, so the facade holds
no protocol knowledge of its own:

  push(end, key, data)                 → LPUSH / RPUSH
  blocking_pop(end, keys, seconds)     → BLPOP / BRPOP key [key ...] timeout
  blocking_move(src, dst, seconds)     → BLMOVE src dst RIGHT LEFT timeout
  drain_script(key, max_elements)      → EVAL (lrange + ltrim or del, atomic)

Timeouts
--------
The store takes whole seconds. to_seconds() truncates the fractional part.
A positive timeout shorter than one second is raised to 1 instead of being
truncated to 0, because 0 means "block forever" on the store.
"""
from __future__ import annotations

import math
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import structlog

from rdeque.domain.models import Command, End, Polled, Script

log = structlog.get_logger(__name__)

Timeout = timedelta | int | float

DRAIN_ALL = "drain_all"
DRAIN = "drain"

# KEYS[1] = queue
DRAIN_ALL_SOURCE = """
local vals = redis.call('lrange', KEYS[1], 0, -1)
redis.call('del', KEYS[1])
return vals
"""

# KEYS[1] = queue
# ARGV[1] = max elements (> 0)
DRAIN_SOURCE = """
local last = math.min(tonumber(ARGV[1]), redis.call('llen', KEYS[1])) - 1
local vals = redis.call('lrange', KEYS[1], 0, last)
redis.call('ltrim', KEYS[1], last + 1, -1)
return vals
"""


def to_seconds(timeout: Timeout) -> int:
    """Normalise a timeout to the whole seconds sent to the store."""
    if isinstance(timeout, timedelta):
        total = timeout.total_seconds()
    else:
        total = float(timeout)
    if not math.isfinite(total) or total < 0:
        raise ValueError(f"timeout must be non-negative, got {timeout!r}")
    seconds = int(total)
    if seconds == 0 and total > 0:
        log.warning("timeout_rounded_up", requested=total, sent=1)
        return 1
    return seconds


def push(end: End, key: str, data: bytes) -> Command:
    return Command.of("LPUSH" if end is End.FIRST else "RPUSH", key, data)


def blocking_pop(end: End, keys: tuple[str, ...], seconds: int) -> Command:
    """Race a blocking pop over `keys`; the store honours their order."""
    return Command.of("BLPOP" if end is End.FIRST else "BRPOP", *keys, seconds)


def blocking_move(source: str, destination: str, seconds: int) -> Command:
    """Pop the tail of `source` and push it onto the head of `destination`."""
    return Command.of(
        "BLMOVE", source, destination, End.LAST.side, End.FIRST.side, seconds
    )


def length(key: str) -> Command:
    return Command.of("LLEN", key)


def read_range(key: str, start: int = 0, stop: int = -1) -> Command:
    return Command.of("LRANGE", key, start, stop)


def delete(key: str) -> Command:
    return Command.of("DEL", key)


def drain_script(key: str, max_elements: int | None = None) -> Script:
    """
    Atomic read-and-truncate of the head of `key`.

    max_elements=None drains the whole list. Otherwise at most
    max_elements are removed; callers must reject values <= 0 beforehand.
    """
    if max_elements is None:
        return Script(name=DRAIN_ALL, source=DRAIN_ALL_SOURCE, keys=(key,))
    return Script(
        name=DRAIN, source=DRAIN_SOURCE, keys=(key,), args=(max_elements,)
    )


# ------------------------------------------------------------------ #
# Reply decoding                                                       #
# ------------------------------------------------------------------ #


def key_name(raw: Any) -> str:
    """Keys come back as bytes unless the client decodes responses."""
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return str(raw)


def pop_reply(reply: Any) -> tuple[str, Any] | None:
    """
    Split a BLPOP/BRPOP reply into (winning key, raw element).

    The store answers nil on timeout and a two-element array otherwise.
    """
    if reply is None:
        return None
    raw_key, raw_value = reply
    return key_name(raw_key), raw_value


def polled(reply: Any, decode: Callable[[bytes], Any]) -> Polled | None:
    split = pop_reply(reply)
    if split is None:
        return None
    queue, raw = split
    return Polled(queue=queue, value=decode(raw))
