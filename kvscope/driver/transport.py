"""Command transport: the connection to the key-value server."""

from __future__ import annotations

from abc import ABC, abstractmethod
import threading
from typing import Any, Sequence

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from kvscope.config.schema import ConnectionConfig
from kvscope.core.logging import get_logger, redact_redis_url
from kvscope.protocol.commands import Command
from kvscope.protocol.reply import Error, ReplyValue, from_raw


class TransportError(RuntimeError):
    """The connection failed, so no reply exists for the command."""


INTERRUPTED = "interrupted"


class Transport(ABC):
    """Executes commands against one exclusively owned connection.

    Error replies from the server are ordinary ``Error`` reply values; only
    connection level failures surface as ``TransportError``.
    """

    def __init__(self) -> None:
        self._interrupted = threading.Event()

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    def set_interrupted(self, interrupted: bool) -> None:
        if interrupted:
            self._interrupted.set()
        else:
            self._interrupted.clear()

    def check_interrupted(self) -> None:
        if self._interrupted.is_set():
            raise TransportError(INTERRUPTED)

    @abstractmethod
    def execute(self, command: Command) -> ReplyValue: ...

    @abstractmethod
    def execute_batch(self, commands: Sequence[Command]) -> list[ReplyValue | TransportError]: ...

    def use_database(self, db: int) -> None:
        """Record a successful SELECT so reconnects land on the same database."""
        return None

    def close(self) -> None:
        return None


class RedisTransport(Transport):
    _TRANSPORT_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)

    def __init__(self, config: ConnectionConfig | None = None, *, client: Any | None = None) -> None:
        super().__init__()
        self.config = config or ConnectionConfig()
        self.logger = get_logger("kvscope.transport")
        self._client = client if client is not None else self._build_client()
        # Replies must reach the normalizer as raw parser output.
        self._client.response_callbacks.clear()

    def _build_client(self) -> Any:
        self.logger.debug(
            "creating redis client",
            extra={
                "component": "transport",
                "payload": {"redis_url": redact_redis_url(self.config.redis_url)},
            },
        )
        return redis.Redis.from_url(
            self.config.redis_url,
            socket_connect_timeout=self.config.connect_timeout_seconds,
            socket_timeout=self.config.socket_timeout_seconds,
            client_name=self.config.client_name or None,
            decode_responses=False,
            protocol=2,
        )

    def execute(self, command: Command) -> ReplyValue:
        self.check_interrupted()
        try:
            raw = self._client.execute_command(*command.args)
        except ResponseError as exc:
            return Error(str(exc))
        except self._TRANSPORT_ERRORS as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc
        return from_raw(raw)

    def execute_batch(self, commands: Sequence[Command]) -> list[ReplyValue | TransportError]:
        if not commands:
            return []
        try:
            self.check_interrupted()
            pipe = self._client.pipeline(transaction=False)
            for command in commands:
                pipe.execute_command(*command.args)
            raw_replies = pipe.execute(raise_on_error=False)
        except TransportError as exc:
            return [exc for _ in commands]
        except self._TRANSPORT_ERRORS as exc:
            error = TransportError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            return [error for _ in commands]
        return [from_raw(raw) for raw in raw_replies]

    def use_database(self, db: int) -> None:
        # Pooled connections re-run SELECT from the pool kwargs on every
        # connect, so the old connections are dropped and rebuilt from them.
        pool = self._client.connection_pool
        pool.connection_kwargs["db"] = db
        try:
            pool.disconnect()
        except self._TRANSPORT_ERRORS as exc:
            self.logger.warning(
                "dropping connections after select failed",
                extra={"component": "transport", "payload": {"db": db, "error": str(exc)}},
            )
        pool.reset()

    def close(self) -> None:
        try:
            self._client.close()
        except self._TRANSPORT_ERRORS:
            pass
