from typing import Any

import pytest

from kvscope.config.schema import EventBusConfig
from kvscope.core.event_bus import EventBus
from kvscope.driver.models import DbSizeResult
from kvscope.driver.progress import (
    MILESTONES,
    TOPIC_PROGRESS,
    TOPIC_RESULT,
    EventBusChannel,
    ProgressTracker,
    ResultChannel,
)


class _RecordingChannel(ResultChannel):
    def __init__(self) -> None:
        self.events: list[tuple[str, Any, Any]] = []

    def notify_progress(self, originator: Any, percent: int) -> None:
        self.events.append(("progress", originator, percent))

    def deliver_result(self, originator: Any, result: Any) -> None:
        self.events.append(("result", originator, result))


class _BrokenChannel(ResultChannel):
    def notify_progress(self, originator: Any, percent: int) -> None:
        raise RuntimeError("receiver gone")

    def deliver_result(self, originator: Any, result: Any) -> None:
        raise RuntimeError("receiver gone")


def test_milestones_are_the_fixed_quarters() -> None:
    assert MILESTONES == (0, 25, 50, 75, 100)


def test_reaching_a_later_milestone_fills_skipped_ones() -> None:
    channel = _RecordingChannel()
    tracker = ProgressTracker(channel, "tab-1")
    tracker.reach(0)
    tracker.reach(50)
    tracker.reach(25)
    assert [event[2] for event in channel.events] == [0, 25, 50]
    assert tracker.emitted == (0, 25, 50)


def test_deliver_emits_remaining_milestones_around_the_result() -> None:
    channel = _RecordingChannel()
    tracker = ProgressTracker(channel, "tab-1")
    result = DbSizeResult(size=3)
    tracker.reach(0)
    tracker.deliver(result)
    assert channel.events == [
        ("progress", "tab-1", 0),
        ("progress", "tab-1", 25),
        ("progress", "tab-1", 50),
        ("progress", "tab-1", 75),
        ("result", "tab-1", result),
        ("progress", "tab-1", 100),
    ]
    assert tracker.delivered


def test_deliver_twice_is_rejected() -> None:
    tracker = ProgressTracker(_RecordingChannel(), None)
    tracker.deliver(DbSizeResult())
    with pytest.raises(RuntimeError):
        tracker.deliver(DbSizeResult())


def test_unknown_milestone_is_rejected() -> None:
    with pytest.raises(ValueError):
        ProgressTracker(_RecordingChannel(), None).reach(60)


def test_channel_failures_do_not_escape() -> None:
    tracker = ProgressTracker(_BrokenChannel(), "tab-1")
    tracker.reach(0)
    tracker.deliver(DbSizeResult())
    assert tracker.delivered
    assert tracker.emitted == MILESTONES


def test_event_bus_channel_publishes_progress_and_results() -> None:
    bus = EventBus(EventBusConfig(backend="memory"))
    progress: list[dict] = []
    results: list[dict] = []
    bus.subscribe(TOPIC_PROGRESS, progress.append)
    bus.subscribe(TOPIC_RESULT, results.append)
    channel = EventBusChannel(bus)

    tracker = ProgressTracker(channel, 7)
    tracker.reach(0)
    tracker.deliver(DbSizeResult(size=12))

    assert [event["payload"]["percent"] for event in progress] == [0, 25, 50, 75, 100]
    assert all(event["payload"]["originator"] == "7" for event in progress)
    assert len(results) == 1
    assert results[0]["payload"]["kind"] == "DbSizeResult"
    assert results[0]["payload"]["result"] == {"status": "complete", "size": 12}
    bus.close()
