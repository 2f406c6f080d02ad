"""Decoded protocol reply values.

A reply is one of a closed set of immutable variants. Decoders match on the
concrete variant classes and fall back to a default for anything else, so a
reply shape a decoder does not expect can never be misread as one it does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True, slots=True)
class Null:
    pass


@dataclass(frozen=True, slots=True)
class Integer:
    value: int


@dataclass(frozen=True, slots=True)
class LongInteger:
    value: int


@dataclass(frozen=True, slots=True)
class String:
    value: bytes

    def text(self) -> str:
        return self.value.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class Array:
    items: tuple["ReplyValue", ...] = ()


@dataclass(frozen=True, slots=True)
class Set:
    items: tuple["ReplyValue", ...] = ()


@dataclass(frozen=True, slots=True)
class Map:
    pairs: tuple[tuple["ReplyValue", "ReplyValue"], ...] = ()


@dataclass(frozen=True, slots=True)
class Error:
    message: str


ReplyValue = Union[Null, Integer, LongInteger, String, Array, Set, Map, Error]

REPLY_VARIANTS: tuple[type, ...] = (Null, Integer, LongInteger, String, Array, Set, Map, Error)
NULL = Null()


def integer(value: int) -> Integer | LongInteger:
    if _INT32_MIN <= value <= _INT32_MAX:
        return Integer(value)
    return LongInteger(value)


def from_raw(raw: Any) -> ReplyValue:
    """Convert raw parser output from the transport library into a reply."""
    if isinstance(raw, REPLY_VARIANTS):
        return raw
    if raw is None:
        return NULL
    if isinstance(raw, BaseException):
        return Error(str(raw))
    if isinstance(raw, bool):
        return Integer(1 if raw else 0)
    if isinstance(raw, int):
        return integer(raw)
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return String(bytes(raw))
    if isinstance(raw, str):
        return String(raw.encode("utf-8"))
    if isinstance(raw, (list, tuple)):
        return Array(tuple(from_raw(item) for item in raw))
    if isinstance(raw, (set, frozenset)):
        return Set(tuple(from_raw(item) for item in raw))
    if isinstance(raw, dict):
        return Map(tuple((from_raw(key), from_raw(value)) for key, value in raw.items()))
    return String(str(raw).encode("utf-8"))


def to_python(reply: ReplyValue) -> Any:
    """Render a reply as JSON-friendly data."""
    if isinstance(reply, Null):
        return None
    if isinstance(reply, (Integer, LongInteger)):
        return reply.value
    if isinstance(reply, String):
        return reply.text()
    if isinstance(reply, (Array, Set)):
        return [to_python(item) for item in reply.items]
    if isinstance(reply, Map):
        return [[to_python(key), to_python(value)] for key, value in reply.pairs]
    if isinstance(reply, Error):
        return {"error": reply.message}
    raise TypeError(f"not a reply value: {type(reply).__name__}")
