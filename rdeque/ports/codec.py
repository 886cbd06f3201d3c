"""
Codec — the element encoding port.

The deque never inspects elements. A codec turns application values into the
bytes stored in the remote list and back again; element equality is whatever
round-tripping through the codec preserves.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Codec(Protocol):
    """Structural Protocol for element encoders."""

    def encode(self, value: Any) -> bytes: ...

    def decode(self, data: bytes) -> Any: ...
