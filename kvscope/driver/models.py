"""Request descriptors, key/channel descriptors and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kvscope.protocol.normalize import (
    KEY_TYPE_HASH,
    KEY_TYPE_LIST,
    KEY_TYPE_SET,
    KEY_TYPE_STRING,
    KEY_TYPE_UNKNOWN,
    KEY_TYPE_ZSET,
)
from kvscope.protocol.reply import ReplyValue, to_python


STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"


def empty_value_for(key_type: str) -> Any:
    if key_type == KEY_TYPE_STRING:
        return b""
    if key_type == KEY_TYPE_LIST:
        return []
    if key_type == KEY_TYPE_SET:
        return set()
    if key_type == KEY_TYPE_HASH:
        return {}
    if key_type == KEY_TYPE_ZSET:
        return []
    return None


def _text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


@dataclass(slots=True)
class KeyDescriptor:
    name: bytes
    key_type: str = KEY_TYPE_UNKNOWN
    ttl: int | None = None
    value: Any = None

    def set_type(self, key_type: str) -> None:
        self.key_type = key_type
        self.value = empty_value_for(key_type)

    def to_dict(self) -> dict[str, Any]:
        return {"name": _text(self.name), "type": self.key_type, "ttl": self.ttl}


@dataclass(slots=True)
class ChannelDescriptor:
    name: bytes
    subscriber_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": _text(self.name), "subscribers": self.subscriber_count}


# Requests. ``originator`` is an opaque routing handle handed back with every
# progress notification and the final result.


@dataclass(slots=True)
class LoadDatabaseContentRequest:
    originator: Any = None
    pattern: str = "*"
    keys_count: int = 100
    cursor_in: int = 0


@dataclass(slots=True)
class ServerPropertyRequest:
    originator: Any = None


@dataclass(slots=True)
class ChangeServerPropertyRequest:
    name: str
    value: str
    originator: Any = None


@dataclass(slots=True)
class LoadChannelsRequest:
    originator: Any = None
    pattern: str = "*"


@dataclass(slots=True)
class ExecuteRequest:
    command_text: str
    originator: Any = None


@dataclass(slots=True)
class BackupRequest:
    path: str
    originator: Any = None


@dataclass(slots=True)
class RestoreRequest:
    path: str
    originator: Any = None


@dataclass(slots=True)
class DbSizeRequest:
    originator: Any = None


@dataclass(slots=True)
class SelectDatabaseRequest:
    name: str
    originator: Any = None


# Results.


@dataclass(slots=True)
class OperationResult:
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.error:
            return STATUS_FAILED
        if self.warnings:
            return STATUS_PARTIAL
        return STATUS_COMPLETE

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, message: str) -> None:
        self.error = message

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status}
        payload.update(self._body())
        if self.error:
            payload["error"] = self.error
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload

    def _body(self) -> dict[str, Any]:
        return {}


@dataclass(slots=True)
class ScanResult(OperationResult):
    pattern: str = "*"
    keys_count: int = 0
    cursor_in: int = 0
    cursor_out: int = 0
    keys: list[KeyDescriptor] = field(default_factory=list)
    total_key_count: int = 0

    def _body(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern,
            "keys_count": self.keys_count,
            "cursor_in": self.cursor_in,
            "cursor_out": self.cursor_out,
            "total_key_count": self.total_key_count,
            "keys": [key.to_dict() for key in self.keys],
        }


@dataclass(slots=True)
class ServerPropertyResult(OperationResult):
    properties: list[tuple[str, str]] = field(default_factory=list)

    def _body(self) -> dict[str, Any]:
        return {"properties": [[name, value] for name, value in self.properties]}


@dataclass(slots=True)
class ChangeServerPropertyResult(OperationResult):
    name: str = ""
    value: str = ""
    is_changed: bool = False

    def _body(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "is_changed": self.is_changed}


@dataclass(slots=True)
class ChannelsResult(OperationResult):
    pattern: str = "*"
    channels: list[ChannelDescriptor] = field(default_factory=list)

    def _body(self) -> dict[str, Any]:
        return {"pattern": self.pattern, "channels": [channel.to_dict() for channel in self.channels]}


@dataclass(slots=True)
class ExecuteResult(OperationResult):
    command_text: str = ""
    reply: ReplyValue | None = None

    def _body(self) -> dict[str, Any]:
        return {
            "command": self.command_text,
            "reply": to_python(self.reply) if self.reply is not None else None,
        }


@dataclass(slots=True)
class BackupResult(OperationResult):
    path: str = ""

    def _body(self) -> dict[str, Any]:
        return {"path": self.path}


@dataclass(slots=True)
class RestoreResult(OperationResult):
    path: str = ""

    def _body(self) -> dict[str, Any]:
        return {"path": self.path}


@dataclass(slots=True)
class DbSizeResult(OperationResult):
    size: int = 0

    def _body(self) -> dict[str, Any]:
        return {"size": self.size}


@dataclass(slots=True)
class DatabaseInfoResult(OperationResult):
    name: str = ""
    size: int = 0

    def _body(self) -> dict[str, Any]:
        return {"name": self.name, "size": self.size}
