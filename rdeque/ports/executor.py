"""
CommandExecutorPort — the port between the deque facade and the remote store.

Any object satisfying this structural Protocol can execute commands for
rdeque. No base class or registration is required.

Atomicity contract
------------------
execute(command)
  - runs exactly one command on the store, atomically
  - returns the raw reply (bytes, lists of bytes, ints or None)

evaluate(script)
  - runs one server-side script; the whole script is atomic
  - returns the raw reply of the script

Commands issued sequentially by one caller must be applied in issue order.
Any failure (network, protocol, script error) is raised as StorageError.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from rdeque.domain.models import Command, Script


@runtime_checkable
class CommandExecutorPort(Protocol):
    """
    Minimal interface required by rdeque core.

    Implementing adapters (built-in):
      - InMemoryListStore — asyncio.Condition-based, for testing
      - RedisExecutor     — redis.asyncio client (redis-py)
    """

    async def execute(self, command: Command) -> Any:
        """
        Run one list command.

        Raises
        ------
        StorageError  for any failure surfaced by the store or transport
        """
        ...

    async def evaluate(self, script: Script) -> Any:
        """
        Run one script atomically.

        Raises
        ------
        StorageError  for any failure surfaced by the store or transport
        """
        ...
