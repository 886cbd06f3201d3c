"""
RedisExecutor — Redis adapter using the redis-py asyncio client.

Install extras: pip install "rdeque[redis]"

Atomicity
---------
Redis executes every command atomically and every EVAL script as a single
atomic unit, which is all rdeque relies on.

  execute()  → client.execute_command(name, *args)
  evaluate() → client.eval(source, len(keys), *keys, *args)

Blocking commands
-----------------
BLPOP / BRPOP / BLMOVE hold their connection until the store answers. The
client's socket timeout must therefore be unset (the default) or longer than
the longest blocking timeout in use, otherwise a healthy wait is reported as
a StorageError.
"""
from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any

import structlog

from rdeque.domain.errors import StorageError
from rdeque.domain.models import Command, Script

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from rdeque.config import DequeSettings

log = structlog.get_logger(__name__)


@dataclasses.dataclass
class RedisExecutor:
    """
    Redis command executor.

    Parameters
    ----------
    url    : connection URL used when no client is injected
    client : redis.asyncio.Redis — created lazily from `url` if omitted
    """

    url: str = "redis://localhost:6379/0"
    client: Redis | None = None

    @classmethod
    def from_settings(cls, settings: DequeSettings) -> "RedisExecutor":
        return cls(url=settings.redis_url)

    def _get_client(self) -> Redis:
        if self.client is not None:
            return self.client
        try:
            from redis.asyncio import Redis
        except ImportError as exc:
            raise ImportError(
                "RedisExecutor requires redis. Install with: pip install 'rdeque[redis]'"
            ) from exc
        self.client = Redis.from_url(self.url)
        return self.client

    async def execute(self, command: Command) -> Any:
        """Run one command. Any client failure is raised as StorageError."""
        client = self._get_client()
        log.debug("redis_execute", command=command.name, nargs=len(command.args))
        try:
            return await client.execute_command(command.name, *command.args)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Redis {command.name} failed", exc) from exc

    async def evaluate(self, script: Script) -> Any:
        """Run one script with EVAL. Any client failure is raised as StorageError."""
        client = self._get_client()
        log.debug("redis_evaluate", script=script.name, keys=script.keys)
        try:
            return await client.eval(
                script.source, len(script.keys), *script.keys, *script.args
            )
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Redis script {script.name!r} failed", exc) from exc

    async def close(self) -> None:
        """Close the client if this executor created or was given one."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
