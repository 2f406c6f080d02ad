"""Background worker that owns one driver and runs its requests in order."""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable

from kvscope.core.logging import get_logger
from kvscope.driver.models import (
    BackupRequest,
    ChangeServerPropertyRequest,
    DbSizeRequest,
    ExecuteRequest,
    LoadChannelsRequest,
    LoadDatabaseContentRequest,
    RestoreRequest,
    SelectDatabaseRequest,
    ServerPropertyRequest,
)
from kvscope.driver.orchestrator import Driver


_STOP = object()


class DriverWorker:
    """Drains a FIFO request queue on a single daemon thread.

    The driver's connection is only ever touched from the worker thread, so
    requests never interleave on the wire. Only the interrupt flag is shared
    with callers.
    """

    def __init__(self, driver: Driver, *, name: str = "kvscope-driver-worker") -> None:
        self.driver = driver
        self.logger = get_logger("kvscope.worker")
        self._handlers: dict[type, Callable[[Any], Any]] = {
            LoadDatabaseContentRequest: driver.load_database_content,
            ServerPropertyRequest: driver.load_server_properties,
            ChangeServerPropertyRequest: driver.change_server_property,
            LoadChannelsRequest: driver.load_channels,
            ExecuteRequest: driver.execute,
            BackupRequest: driver.backup,
            RestoreRequest: driver.restore,
            DbSizeRequest: driver.db_size,
            SelectDatabaseRequest: driver.select_database,
        }
        self._queue: queue.Queue[Any] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, request: Any) -> None:
        if type(request) not in self._handlers:
            raise TypeError(f"unsupported request type: {type(request).__name__}")
        with self._lock:
            if self._closed:
                raise RuntimeError("worker is closed")
            self._queue.put(request)

    def set_interrupted(self, interrupted: bool) -> None:
        self.driver.set_interrupted(interrupted)

    def close(self, timeout: float = 5.0) -> None:
        """Finish already queued requests, then stop the thread and the driver."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            self.logger.warning(
                "driver worker did not stop in time",
                extra={"component": "worker", "payload": {"timeout_seconds": timeout}},
            )
            return
        self.driver.close()

    def _run(self) -> None:
        while True:
            request = self._queue.get()
            try:
                if request is _STOP:
                    return
                self._handlers[type(request)](request)
            except Exception:
                # Handlers deliver their own failures; this only guards the loop.
                self.logger.exception(
                    "driver request crashed",
                    extra={"component": "worker", "payload": {"request": type(request).__name__}},
                )
            finally:
                self._queue.task_done()
