"""Progress notifications and result delivery back to a request's originator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from kvscope.core.event_bus import EventBus
from kvscope.core.logging import get_logger
from kvscope.driver.models import OperationResult


PROGRESS_START = 0
PROGRESS_PRIMARY_DONE = 25
PROGRESS_SECONDARY_DONE = 50
PROGRESS_BEFORE_DELIVERY = 75
PROGRESS_COMPLETE = 100
MILESTONES = (
    PROGRESS_START,
    PROGRESS_PRIMARY_DONE,
    PROGRESS_SECONDARY_DONE,
    PROGRESS_BEFORE_DELIVERY,
    PROGRESS_COMPLETE,
)

TOPIC_PROGRESS = "progress"
TOPIC_RESULT = "result"


class ResultChannel(ABC):
    """One-way channel to the originator; implementations must not block."""

    @abstractmethod
    def notify_progress(self, originator: Any, percent: int) -> None: ...

    @abstractmethod
    def deliver_result(self, originator: Any, result: OperationResult) -> None: ...


class EventBusChannel(ResultChannel):
    def __init__(self, bus: EventBus) -> None:
        self.bus = bus

    def notify_progress(self, originator: Any, percent: int) -> None:
        self.bus.publish(TOPIC_PROGRESS, {"originator": _route(originator), "percent": int(percent)})

    def deliver_result(self, originator: Any, result: OperationResult) -> None:
        self.bus.publish(
            TOPIC_RESULT,
            {
                "originator": _route(originator),
                "kind": type(result).__name__,
                "result": result.to_dict(),
            },
        )


def _route(originator: Any) -> str | None:
    if originator is None:
        return None
    return str(originator)


class ProgressTracker:
    """Emits the fixed milestones of one operation, in order, each once.

    Reaching a milestone also emits any earlier one that was skipped, so an
    operation that bails out early still reports the full sequence.
    """

    def __init__(self, channel: ResultChannel, originator: Any) -> None:
        self.channel = channel
        self.originator = originator
        self.logger = get_logger("kvscope.progress")
        self._next_index = 0
        self._delivered = False

    @property
    def emitted(self) -> tuple[int, ...]:
        return MILESTONES[: self._next_index]

    @property
    def delivered(self) -> bool:
        return self._delivered

    def reach(self, milestone: int) -> None:
        if milestone not in MILESTONES:
            raise ValueError(f"unknown progress milestone {milestone}")
        target = MILESTONES.index(milestone)
        while self._next_index <= target:
            percent = MILESTONES[self._next_index]
            self._next_index += 1
            try:
                self.channel.notify_progress(self.originator, percent)
            except Exception as exc:
                self._channel_failed("notify_progress", exc)

    def deliver(self, result: OperationResult) -> None:
        if self._delivered:
            raise RuntimeError("result already delivered for this operation")
        self.reach(PROGRESS_BEFORE_DELIVERY)
        self._delivered = True
        try:
            self.channel.deliver_result(self.originator, result)
        except Exception as exc:
            self._channel_failed("deliver_result", exc)
        self.reach(PROGRESS_COMPLETE)

    def _channel_failed(self, action: str, exc: Exception) -> None:
        self.logger.error(
            "result channel failed",
            extra={
                "component": "progress",
                "event_action": action,
                "originator": _route(self.originator),
                "payload": {"error": str(exc)},
            },
        )
