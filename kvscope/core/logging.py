"""Structured ECS logging for driver and command events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
import json
import logging
from pathlib import Path
from urllib.parse import urlparse, urlunparse

from kvscope.config.schema import LoggingConfig


def _strip_empty(value: object) -> object | None:
    if isinstance(value, dict):
        cleaned = {key: _strip_empty(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item is not None} or None
    if isinstance(value, list):
        cleaned_list = [_strip_empty(item) for item in value]
        return [item for item in cleaned_list if item is not None] or None
    if value in ("", None):
        return None
    return value


class ECSJsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = "kvscope") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds")
        payload: dict[str, object] = {
            "@timestamp": timestamp,
            "message": record.getMessage(),
            "log": {
                "level": record.levelname.lower(),
                "logger": record.name,
            },
            "service": {
                "name": getattr(record, "service_name", self.service_name),
            },
            "event": {
                "kind": "event",
                "category": getattr(record, "event_category", "database"),
                "action": getattr(record, "event_action", None),
                "type": getattr(record, "event_type", None),
                "outcome": getattr(record, "event_outcome", None),
                "duration": getattr(record, "event_duration_ns", None),
            },
            "db": {
                "system": "redis",
                "statement": getattr(record, "db_statement", None),
            },
            "kvscope": {
                "component": getattr(record, "component", None),
                "originator": getattr(record, "originator", None),
                "payload": getattr(record, "payload", None),
            },
        }
        if record.exc_info:
            payload["error"] = {"stack_trace": self.formatException(record.exc_info)}
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"), default=str)


class PlainJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "payload": getattr(record, "payload", None),
        }
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"), default=str)


def _sink_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    if config.sink == "file":
        file_path = config.file_path or "logs/kvscope.log"
        log_file = Path(file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig, force: bool = False) -> None:
    root = logging.getLogger("kvscope")
    if getattr(root, "_kvscope_configured", False) and not force:
        return

    formatter: logging.Formatter
    if config.fmt == "json":
        formatter = PlainJsonFormatter()
    else:
        formatter = ECSJsonFormatter(service_name=config.service_name)
    root.setLevel(config.level)
    for existing in list(root.handlers):
        existing.close()
    root.handlers.clear()
    root.addHandler(_sink_handler(config, formatter))
    root.propagate = False
    setattr(root, "_kvscope_configured", True)
    _adopt_fallback_loggers()


def _adopt_fallback_loggers() -> None:
    # Loggers fetched before configuration carry their own stderr handler.
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if not name.startswith("kvscope.") or not isinstance(candidate, logging.Logger):
            continue
        fallbacks = [handler for handler in candidate.handlers if getattr(handler, "_kvscope_fallback", False)]
        if not fallbacks:
            continue
        for handler in fallbacks:
            candidate.removeHandler(handler)
            handler.close()
        candidate.setLevel(logging.NOTSET)
        candidate.propagate = True


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if name.startswith("kvscope"):
        parent = logging.getLogger("kvscope")
        if parent.handlers:
            logger.setLevel(logging.NOTSET)
            logger.propagate = True
            return logger

    handler = logging.StreamHandler()
    handler.setFormatter(ECSJsonFormatter())
    setattr(handler, "_kvscope_fallback", True)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def emit_metric(
    logger: logging.Logger,
    *,
    name: str,
    value: float,
    component: str = "driver",
    payload: dict[str, object] | None = None,
    level: str = "DEBUG",
) -> None:
    metric_name = name.strip() or "metric"
    metric_value = float(value)
    metric_payload: dict[str, object] = {"metric_name": metric_name, "metric_value": metric_value}
    if payload:
        metric_payload.update(payload)
    logger.log(
        getattr(logging, level.upper(), logging.DEBUG),
        f"metric:{metric_name}",
        extra={
            "component": component,
            "event_action": metric_name,
            "event_category": "metric",
            "event_type": "info",
            "event_outcome": "success",
            "payload": metric_payload,
        },
    )


def redact_redis_url(redis_url: str) -> str:
    raw = str(redis_url).strip()
    parsed = urlparse(raw)
    if not parsed.password:
        return raw
    hostname = parsed.hostname or ""
    if not hostname:
        return raw
    if ":" in hostname and not hostname.startswith("["):
        hostname = f"[{hostname}]"
    username = parsed.username or ""
    userinfo = f"{username}:***@" if username else ":***@"
    netloc = f"{userinfo}{hostname}"
    if parsed.port is not None:
        netloc = f"{netloc}:{parsed.port}"
    return urlunparse((parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment))


@dataclass(slots=True)
class CommandLogger:
    """Records every command sent to the server.

    User-visible commands are logged at INFO, internal ones at DEBUG, so a
    default deployment shows what an operator typed without the per-key
    TYPE/TTL traffic that a scan generates.
    """

    logger: logging.Logger
    service_name: str = "kvscope"

    def log_command(
        self,
        *,
        statement: str,
        user_visible: bool,
        outcome: str,
        duration_ns: int | None = None,
        error: str | None = None,
        originator: str | None = None,
    ) -> None:
        level = logging.INFO if user_visible else logging.DEBUG
        if outcome == "failure" and user_visible:
            level = logging.WARNING
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            "command executed" if outcome == "success" else "command failed",
            extra={
                "service_name": self.service_name,
                "component": "command",
                "event_action": "command",
                "event_type": "user" if user_visible else "internal",
                "event_outcome": outcome,
                "event_duration_ns": duration_ns,
                "db_statement": statement,
                "originator": originator,
                "payload": {"error": error} if error else None,
            },
        )
