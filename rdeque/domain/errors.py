"""
Exception hierarchy for rdeque.

RDequeError
├── StorageError          — remote store or transport failure (wraps original exception)
├── WaitInterruptedError  — a synchronous wait was interrupted locally
└── UnknownScriptError    — InMemoryListStore was asked to run a script it does not know

"No element within the timeout" is not an error: poll-style operations
return None for it.
"""

from __future__ import annotations


class RDequeError(Exception):
    """Base class for all rdeque exceptions."""


class StorageError(RDequeError):
    """
    Wraps an underlying failure from a command executor.

    Attributes
    ----------
    cause : Exception
        The original exception from the remote store client.
    """

    def __init__(self, message: str, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"{message}: {cause}")


class WaitInterruptedError(RDequeError):
    """
    Raised in a thread whose blocking wait was interrupted.

    The remote command was already sent and may still complete on the
    store. Callers must not assume the side effect did not happen.
    """


class UnknownScriptError(RDequeError):
    """Raised when an executor has no implementation for a script name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Script {name!r} is not registered")
