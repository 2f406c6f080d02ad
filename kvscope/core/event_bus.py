"""Notification bus with in-process delivery and optional Redis fan-out."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import UTC, datetime
import json
import threading
import uuid
from typing import Any, Callable

import redis

from kvscope.config.schema import EventBusConfig
from kvscope.core.logging import get_logger, redact_redis_url


EventHandler = Callable[[dict[str, Any]], None]


@dataclass(slots=True)
class EventBusStats:
    backend: str
    published: int = 0
    delivered: int = 0
    dropped: int = 0
    forwarded: int = 0
    subscriptions: int = 0


class EventBus:
    """Delivers every event to local subscribers before publish returns.

    With the redis backend each event is also published on
    ``<channel_prefix>:events:<topic>`` for observers in other processes.
    Local delivery never waits on, or depends on, that fan-out.
    """

    _RECENT_EVENTS_LIMIT = 200

    def __init__(self, config: EventBusConfig | None = None, *, client: Any | None = None) -> None:
        self.config = config or EventBusConfig()
        self.logger = get_logger("kvscope.event_bus")
        self._lock = threading.RLock()
        self._subscriptions: dict[str, list[EventHandler]] = defaultdict(list)
        self._recent_events: deque[dict[str, Any]] = deque(maxlen=self._RECENT_EVENTS_LIMIT)
        self._stats = EventBusStats(backend="memory")
        self._redis_client: Any | None = None

        if client is not None:
            self._redis_client = client
            self._stats.backend = "redis"
        elif self.config.backend == "redis":
            self._initialize_redis()

    @property
    def backend(self) -> str:
        return self._stats.backend

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        with self._lock:
            self._subscriptions[topic].append(handler)
            self._stats.subscriptions = sum(len(v) for v in self._subscriptions.values())

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._subscriptions.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)
            self._stats.subscriptions = sum(len(v) for v in self._subscriptions.values())

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        envelope = {
            "timestamp": datetime.now(UTC).isoformat(timespec="microseconds"),
            "topic": topic,
            "payload": payload,
            "event_uid": uuid.uuid4().hex,
        }
        with self._lock:
            self._stats.published += 1
        self._dispatch_local(envelope)
        self._forward(topic, envelope)

    def snapshot(self) -> dict[str, int | str]:
        with self._lock:
            return {
                "backend": self._stats.backend,
                "published": self._stats.published,
                "delivered": self._stats.delivered,
                "dropped": self._stats.dropped,
                "forwarded": self._stats.forwarded,
                "subscriptions": self._stats.subscriptions,
            }

    def recent_events(self, topic: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            if topic is None:
                return list(self._recent_events)
            return [event for event in self._recent_events if event.get("topic") == topic]

    def close(self) -> None:
        client = self._redis_client
        self._redis_client = None
        if client is None:
            return
        try:
            client.close()
        except (redis.RedisError, OSError) as exc:
            self.logger.debug(
                "event bus client close failed",
                extra={"component": "event_bus", "payload": {"error": str(exc)}},
            )

    def _dispatch_local(self, envelope: dict[str, Any]) -> None:
        topic = str(envelope.get("topic", ""))
        handlers: list[EventHandler] = []
        with self._lock:
            self._recent_events.append(envelope)
            handlers.extend(self._subscriptions.get(topic, []))
            handlers.extend(self._subscriptions.get("*", []))
        for handler in handlers:
            try:
                handler(envelope)
            except Exception as exc:
                with self._lock:
                    self._stats.dropped += 1
                self.logger.warning(
                    "event handler failed",
                    extra={"component": "event_bus", "payload": {"topic": topic, "error": str(exc)}},
                )
                continue
            with self._lock:
                self._stats.delivered += 1

    def _forward(self, topic: str, envelope: dict[str, Any]) -> None:
        client = self._redis_client
        if client is None:
            return
        try:
            client.publish(self._channel(topic), json.dumps(envelope, separators=(",", ":"), default=str))
        except (redis.RedisError, OSError) as exc:
            self._degrade_to_memory(exc)
            return
        with self._lock:
            self._stats.forwarded += 1

    def _initialize_redis(self) -> None:
        safe_redis_url = redact_redis_url(self.config.redis_url)
        try:
            client = redis.Redis.from_url(
                self.config.redis_url,
                socket_connect_timeout=self.config.connect_timeout_seconds,
                socket_timeout=self.config.connect_timeout_seconds,
                decode_responses=True,
                protocol=2,
            )
            client.ping()
        except (redis.RedisError, OSError, ValueError) as exc:
            if self.config.required:
                raise RuntimeError(f"failed to initialize required redis event bus backend: {exc}") from exc
            self.logger.warning(
                "redis event bus unavailable, falling back to memory",
                extra={
                    "component": "event_bus",
                    "payload": {"backend": "memory", "redis_url": safe_redis_url, "error": str(exc)},
                },
            )
            return
        self._redis_client = client
        self._stats.backend = "redis"
        self.logger.info(
            "event bus backend initialized",
            extra={
                "component": "event_bus",
                "payload": {"backend": "redis", "redis_url": safe_redis_url},
            },
        )

    def _degrade_to_memory(self, exc: Exception) -> None:
        with self._lock:
            if self._stats.backend == "memory":
                return
            self._stats.backend = "memory"
            self._redis_client = None
        self.logger.error(
            "redis event bus failed, switched to memory",
            extra={
                "component": "event_bus",
                "payload": {"backend": "memory", "error": str(exc)},
            },
        )

    def _channel(self, topic: str) -> str:
        return f"{self.config.channel_prefix}:events:{topic}"
