"""Decoders that turn reply values into concrete domain values.

None of these raise on an unexpected reply shape. Each has a documented
default that the caller keeps when decoding fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from kvscope.core.logging import get_logger
from kvscope.protocol.reply import Array, Integer, LongInteger, Map, ReplyValue, Set, String


KEY_TYPE_UNKNOWN = "unknown"
KEY_TYPE_STRING = "string"
KEY_TYPE_LIST = "list"
KEY_TYPE_SET = "set"
KEY_TYPE_HASH = "hash"
KEY_TYPE_ZSET = "zset"
KEY_TYPES = (KEY_TYPE_UNKNOWN, KEY_TYPE_STRING, KEY_TYPE_LIST, KEY_TYPE_SET, KEY_TYPE_HASH, KEY_TYPE_ZSET)

_TYPE_TABLE = {
    b"string": KEY_TYPE_STRING,
    b"list": KEY_TYPE_LIST,
    b"set": KEY_TYPE_SET,
    b"hash": KEY_TYPE_HASH,
    b"zset": KEY_TYPE_ZSET,
}
_NUMERIC_RE = re.compile(rb"-?[0-9]+")


@dataclass(slots=True)
class ScanPage:
    cursor: int
    keys: list[bytes] = field(default_factory=list)
    ok: bool = True


def _as_int(reply: ReplyValue) -> int | None:
    if isinstance(reply, (Integer, LongInteger)):
        return reply.value
    if isinstance(reply, String) and _NUMERIC_RE.fullmatch(reply.value):
        return int(reply.value)
    return None


def _strings(items: tuple[ReplyValue, ...]) -> list[bytes]:
    return [item.value for item in items if isinstance(item, String)]


def decode_scan(reply: ReplyValue, cursor_in: int = 0) -> ScanPage:
    """Decode a ``[cursor, [key, ...]]`` scan reply.

    Any shape mismatch yields ``ok=False`` with the input cursor and no keys,
    so a bad reply can neither crash the scan nor advance it.
    """
    failed = ScanPage(cursor=cursor_in, keys=[], ok=False)
    if not isinstance(reply, Array) or len(reply.items) != 2:
        return failed
    cursor = _as_int(reply.items[0])
    if cursor is None or cursor < 0:
        return failed
    keys_reply = reply.items[1]
    if not isinstance(keys_reply, Array):
        return failed
    return ScanPage(cursor=cursor, keys=_strings(keys_reply.items))


def decode_string_list(reply: ReplyValue) -> list[bytes] | None:
    if isinstance(reply, (Array, Set)):
        return _strings(reply.items)
    return None


def decode_type(reply: ReplyValue) -> str:
    if isinstance(reply, String):
        return _TYPE_TABLE.get(reply.value, KEY_TYPE_UNKNOWN)
    return KEY_TYPE_UNKNOWN


def decode_ttl(reply: ReplyValue) -> int | None:
    """TTL in seconds, or None when no expiry is known.

    The server answers -1 for keys without expiry and -2 for missing keys;
    both are reported as no TTL rather than a misleading number.
    """
    if isinstance(reply, (Integer, LongInteger)) and reply.value >= 0:
        return reply.value
    return None


def decode_numeric(reply: ReplyValue) -> int | None:
    """Integer encoded either natively or as a decimal string.

    Servers disagree on how some counters are encoded (NUMSUB counts arrive
    as integers from most versions and as bulk strings from others), so both
    encodings are accepted. Anything else, including strings with non-digit
    characters, is unknown.
    """
    return _as_int(reply)


def decode_numsub(reply: ReplyValue) -> int | None:
    if isinstance(reply, Array):
        if len(reply.items) < 2:
            return None
        return decode_numeric(reply.items[1])
    if isinstance(reply, Map):
        if not reply.pairs:
            return None
        return decode_numeric(reply.pairs[0][1])
    return None


def decode_property_list(reply: ReplyValue) -> list[tuple[str, str]]:
    if isinstance(reply, Map):
        flat: tuple[ReplyValue, ...] = tuple(item for pair in reply.pairs for item in pair)
    elif isinstance(reply, Array):
        flat = reply.items
    else:
        return []
    logger = get_logger("kvscope.protocol.normalize")
    if len(flat) % 2 != 0:
        logger.warning(
            "odd-length property list dropped",
            extra={"component": "normalize", "payload": {"length": len(flat)}},
        )
        return []
    if not all(isinstance(item, String) for item in flat):
        logger.warning(
            "property list with non-string entries dropped",
            extra={"component": "normalize", "payload": {"length": len(flat)}},
        )
        return []
    texts = [item.text() for item in flat if isinstance(item, String)]
    return list(zip(texts[0::2], texts[1::2]))
