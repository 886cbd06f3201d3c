"""
rdeque — a distributed blocking double-ended queue over a remote list store.

Every handle addresses a named list on a shared store (Redis, or anything
speaking its list, blocking-pop and EVAL commands). Producers push at either
end, consumers block until an element is available, and elements can be
moved atomically between queues for reliable-queue and dead-letter patterns.

There is no local queue state. Each operation is one atomic command or one
atomic server-side script, so any number of processes can share a queue.

Quick start
-----------
    import asyncio
    from datetime import timedelta
    from rdeque import BlockingDeque, InMemoryListStore

    async def main():
        store = InMemoryListStore()
        jobs = BlockingDeque("jobs", store)

        await jobs.put({"to": "user@example.com"})

        # Reliable hand-off: move work to an in-flight list atomically
        job = await jobs.poll_last_and_offer_first_to(
            "jobs:processing", timedelta(seconds=5)
        )

    asyncio.run(main())

Blocking (thread) callers use SyncBlockingDeque on top of a LoopThread:

    with LoopThread() as runner:
        jobs = SyncBlockingDeque.create("jobs", RedisExecutor(), runner=runner)
        job = jobs.take()

Executors
---------
Built-in adapters:
  - InMemoryListStore — single event loop, for tests and examples
  - RedisExecutor     — redis.asyncio (pip install "rdeque[redis]")

Custom executors only need to implement the two-method CommandExecutorPort:
  async def execute(command: Command) -> Any
  async def evaluate(script: Script) -> Any

Architecture
------------
Follows the Ports & Adapters pattern:
  domain/   — value types (Command, Script, Polled, End) and errors
  ports/    — Protocol interfaces (CommandExecutorPort, Codec)
  core/     — BlockingDeque, SyncBlockingDeque, LoopThread, codecs
  adapters/ — concrete executors
"""
from __future__ import annotations

from rdeque.adapters.executor.memory import InMemoryListStore
from rdeque.adapters.executor.redis import RedisExecutor
from rdeque.config import DequeSettings
from rdeque.core.codec import BytesCodec, JsonCodec, PydanticCodec, StringCodec
from rdeque.core.deque import BlockingDeque
from rdeque.core.runner import LoopThread
from rdeque.core.sync import SyncBlockingDeque
from rdeque.domain.errors import (
    RDequeError,
    StorageError,
    UnknownScriptError,
    WaitInterruptedError,
)
from rdeque.domain.models import Command, End, Polled, Script
from rdeque.logging import configure_logging
from rdeque.ports.codec import Codec
from rdeque.ports.executor import CommandExecutorPort

__all__ = [
    # Domain models
    "Command",
    "End",
    "Polled",
    "Script",
    # Errors
    "RDequeError",
    "StorageError",
    "UnknownScriptError",
    "WaitInterruptedError",
    # Ports (for typing custom adapters)
    "Codec",
    "CommandExecutorPort",
    # High-level queue API
    "BlockingDeque",
    "SyncBlockingDeque",
    "LoopThread",
    # Codecs
    "BytesCodec",
    "JsonCodec",
    "PydanticCodec",
    "StringCodec",
    # Built-in executors
    "InMemoryListStore",
    "RedisExecutor",
    # Configuration
    "DequeSettings",
    "configure_logging",
]
