"""
Codecs — encode application values to list elements and back.

Built-in codecs:
  - JsonCodec     — UTF-8 JSON (default)
  - StringCodec   — UTF-8 text
  - BytesCodec    — raw bytes, passthrough
  - PydanticCodec — any type pydantic can validate, via TypeAdapter

Wire format
-----------
Elements are stored as opaque bytes. A client configured with
decode_responses=True hands back str instead of bytes; every codec accepts
both on decode.
"""
from __future__ import annotations

import dataclasses
import json
from typing import Any

from pydantic import TypeAdapter


def _as_bytes(data: bytes | bytearray | str) -> bytes:
    match data:
        case bytes():
            return data
        case bytearray():
            return bytes(data)
        case str():
            return data.encode("utf-8")
        case _:
            raise TypeError(f"cannot decode element of type {type(data).__name__}")


@dataclasses.dataclass(frozen=True)
class JsonCodec:
    """Compact UTF-8 JSON."""

    def encode(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":")).encode("utf-8")

    def decode(self, data: bytes) -> Any:
        return json.loads(_as_bytes(data))


@dataclasses.dataclass(frozen=True)
class StringCodec:
    encoding: str = "utf-8"

    def encode(self, value: str) -> bytes:
        return value.encode(self.encoding)

    def decode(self, data: bytes) -> str:
        return _as_bytes(data).decode(self.encoding)


@dataclasses.dataclass(frozen=True)
class BytesCodec:
    def encode(self, value: bytes) -> bytes:
        return _as_bytes(value)

    def decode(self, data: bytes) -> bytes:
        return _as_bytes(data)


@dataclasses.dataclass(frozen=True)
class PydanticCodec:
    """
    Codec for any type understood by pydantic.

    Parameters
    ----------
    type_ : model class or type expression, e.g. ``Task`` or ``list[int]``
    """

    type_: Any
    _adapter: TypeAdapter[Any] = dataclasses.field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.type_))

    def encode(self, value: Any) -> bytes:
        return self._adapter.dump_json(value)

    def decode(self, data: bytes) -> Any:
        return self._adapter.validate_json(_as_bytes(data))
