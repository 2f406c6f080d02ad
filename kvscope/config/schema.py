"""Dataclasses for top-level application config."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


DEFAULT_SERVER_DUMP_PATH = "/var/lib/redis/dump.rdb"


@dataclass(slots=True)
class ConnectionConfig:
    redis_url: str = "redis://127.0.0.1:6379/0"
    connect_timeout_seconds: float = 2.0
    socket_timeout_seconds: float = 10.0
    client_name: str = "kvscope"


@dataclass(slots=True)
class ScanConfig:
    default_pattern: str = "*"
    default_count: int = 100
    max_count: int = 10000


@dataclass(slots=True)
class BackupConfig:
    server_dump_path: str = DEFAULT_SERVER_DUMP_PATH
    server_export_path: str = DEFAULT_SERVER_DUMP_PATH


@dataclass(slots=True)
class EventBusConfig:
    backend: str = "memory"
    redis_url: str = "redis://127.0.0.1:6379/1"
    channel_prefix: str = "kvscope"
    connect_timeout_seconds: float = 1.0
    required: bool = False


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "ecs_json"
    sink: str = "stdout"
    file_path: str | None = None
    service_name: str = "kvscope"


@dataclass(slots=True)
class AppConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    event_bus: EventBusConfig = field(default_factory=EventBusConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
VALID_LOG_FORMATS = {"json", "ecs_json"}
VALID_LOG_SINKS = {"stdout", "file"}
VALID_EVENT_BUS_BACKENDS = {"memory", "redis"}
VALID_REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{name}' must be an object")
    return raw


def _parse_bool_value(raw: Any, *, field_name: str, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"'{field_name}' must be a boolean")


def _parse_positive_float(raw: Any, *, field_name: str, default: float) -> float:
    try:
        value = float(default if raw is None else raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be a number") from exc
    if value <= 0:
        raise ValueError(f"'{field_name}' must be greater than zero")
    return value


def _parse_positive_int(raw: Any, *, field_name: str, default: int) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"'{field_name}' must be an integer")
    try:
        value = int(default if raw is None else raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be an integer") from exc
    if value <= 0:
        raise ValueError(f"'{field_name}' must be greater than zero")
    return value


def _parse_redis_url(raw: Any, *, field_name: str, default: str) -> str:
    value = str(default if raw is None else raw).strip()
    if not value.startswith(VALID_REDIS_URL_SCHEMES):
        raise ValueError(f"'{field_name}' must use one of {', '.join(VALID_REDIS_URL_SCHEMES)}")
    return value


def _parse_non_empty_string(raw: Any, *, field_name: str, default: str) -> str:
    value = str(default if raw is None else raw).strip()
    if not value:
        raise ValueError(f"'{field_name}' must not be empty")
    return value


def parse_config(data: dict[str, Any]) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("config root must be an object")

    connection_raw = _section(data, "connection")
    connection_config = ConnectionConfig(
        redis_url=_parse_redis_url(
            connection_raw.get("redis_url"),
            field_name="connection.redis_url",
            default="redis://127.0.0.1:6379/0",
        ),
        connect_timeout_seconds=_parse_positive_float(
            connection_raw.get("connect_timeout_seconds"),
            field_name="connection.connect_timeout_seconds",
            default=2.0,
        ),
        socket_timeout_seconds=_parse_positive_float(
            connection_raw.get("socket_timeout_seconds"),
            field_name="connection.socket_timeout_seconds",
            default=10.0,
        ),
        client_name=str(connection_raw.get("client_name", "kvscope")).strip(),
    )

    scan_raw = _section(data, "scan")
    max_count = _parse_positive_int(scan_raw.get("max_count"), field_name="scan.max_count", default=10000)
    default_count = _parse_positive_int(
        scan_raw.get("default_count"),
        field_name="scan.default_count",
        default=100,
    )
    if default_count > max_count:
        raise ValueError("'scan.default_count' must not exceed 'scan.max_count'")
    scan_config = ScanConfig(
        default_pattern=_parse_non_empty_string(
            scan_raw.get("default_pattern"),
            field_name="scan.default_pattern",
            default="*",
        ),
        default_count=default_count,
        max_count=max_count,
    )

    backup_raw = _section(data, "backup")
    backup_config = BackupConfig(
        server_dump_path=_parse_non_empty_string(
            backup_raw.get("server_dump_path"),
            field_name="backup.server_dump_path",
            default=DEFAULT_SERVER_DUMP_PATH,
        ),
        server_export_path=_parse_non_empty_string(
            backup_raw.get("server_export_path"),
            field_name="backup.server_export_path",
            default=DEFAULT_SERVER_DUMP_PATH,
        ),
    )

    event_bus_raw = _section(data, "event_bus")
    event_bus_backend = str(event_bus_raw.get("backend", "memory")).lower()
    if event_bus_backend not in VALID_EVENT_BUS_BACKENDS:
        raise ValueError(f"invalid event_bus backend '{event_bus_backend}'")
    event_bus_config = EventBusConfig(
        backend=event_bus_backend,
        redis_url=_parse_redis_url(
            event_bus_raw.get("redis_url"),
            field_name="event_bus.redis_url",
            default="redis://127.0.0.1:6379/1",
        ),
        channel_prefix=_parse_non_empty_string(
            event_bus_raw.get("channel_prefix"),
            field_name="event_bus.channel_prefix",
            default="kvscope",
        ),
        connect_timeout_seconds=_parse_positive_float(
            event_bus_raw.get("connect_timeout_seconds"),
            field_name="event_bus.connect_timeout_seconds",
            default=1.0,
        ),
        required=_parse_bool_value(
            event_bus_raw.get("required"),
            field_name="event_bus.required",
            default=False,
        ),
    )

    logging_raw = _section(data, "logging")
    level = str(logging_raw.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"invalid log level '{level}'")
    log_format = str(logging_raw.get("format", "ecs_json"))
    if log_format not in VALID_LOG_FORMATS:
        raise ValueError(f"invalid log format '{log_format}'")
    sink = str(logging_raw.get("sink", "stdout"))
    if sink not in VALID_LOG_SINKS:
        raise ValueError(f"invalid log sink '{sink}'")
    logging_config = LoggingConfig(
        level=level,
        fmt=log_format,
        sink=sink,
        file_path=logging_raw.get("file_path"),
        service_name=str(logging_raw.get("service_name", "kvscope")),
    )

    return AppConfig(
        connection=connection_config,
        scan=scan_config,
        backup=backup_config,
        event_bus=event_bus_config,
        logging=logging_config,
    )
