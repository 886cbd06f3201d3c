"""
Domain models for rdeque — backed by Pydantic v2.

These are the values that cross the port boundary between the deque facade
and a command executor:

  Command — one remote list command (name + positional args, keys first)
  Script  — one server-side Lua script with its keys and args
  Polled  — a decoded element together with the queue that produced it

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class End(str, Enum):
    """Addressable end of a queue."""

    FIRST = "first"
    LAST = "last"

    @property
    def side(self) -> str:
        """Redis direction keyword for this end (LEFT / RIGHT)."""
        return "LEFT" if self is End.FIRST else "RIGHT"


class Command(BaseModel):
    """
    A single remote command.

    name — command name, normalised to upper case (e.g. "BLPOP")
    args — positional arguments exactly as sent to the store
    """

    model_config = ConfigDict(frozen=True)

    name: str
    args: tuple[Any, ...] = ()

    @field_validator("name")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def of(cls, name: str, *args: Any) -> "Command":
        """Factory — Command.of("LPUSH", "jobs", b"x")."""
        return cls(name=name, args=args)


class Script(BaseModel):
    """
    A server-side script executed atomically as a whole.

    name   — logical identifier; in-process executors dispatch on it
    source — Lua source sent to the store
    keys   — KEYS[] passed to the script
    args   — ARGV[] passed to the script
    """

    model_config = ConfigDict(frozen=True)

    name: str
    source: str
    keys: tuple[str, ...] = ()
    args: tuple[Any, ...] = ()


class Polled(BaseModel):
    """Result of a multi-queue poll: the winning queue and its decoded element."""

    model_config = ConfigDict(frozen=True)

    queue: str
    value: Any
