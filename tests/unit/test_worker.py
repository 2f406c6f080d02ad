import threading
from typing import Any, Sequence

import pytest

from kvscope.driver.models import DbSizeRequest, ExecuteRequest, SelectDatabaseRequest
from kvscope.driver.orchestrator import Driver
from kvscope.driver.progress import ResultChannel
from kvscope.driver.transport import Transport, TransportError
from kvscope.driver.worker import DriverWorker
from kvscope.protocol.commands import Command
from kvscope.protocol.reply import Integer, ReplyValue, String


class _SequencedTransport(Transport):
    def __init__(self) -> None:
        super().__init__()
        self.sent: list[tuple[bytes, ...]] = []
        self.threads: set[str] = set()
        self.closed = False

    def execute(self, command: Command) -> ReplyValue:
        self.check_interrupted()
        self.threads.add(threading.current_thread().name)
        self.sent.append(command.args)
        if command.name == "DBSIZE":
            return Integer(len(self.sent))
        return String(b"OK")

    def execute_batch(self, commands: Sequence[Command]) -> list[ReplyValue | TransportError]:
        return [self.execute(command) for command in commands]

    def close(self) -> None:
        self.closed = True


class _CollectingChannel(ResultChannel):
    def __init__(self) -> None:
        self.results: list[tuple[Any, Any]] = []

    def notify_progress(self, originator: Any, percent: int) -> None:
        return None

    def deliver_result(self, originator: Any, result: Any) -> None:
        self.results.append((originator, result))


def test_worker_runs_requests_in_submission_order_on_one_thread() -> None:
    transport = _SequencedTransport()
    channel = _CollectingChannel()
    worker = DriverWorker(Driver(transport, channel), name="kvscope-test-worker")

    worker.submit(ExecuteRequest(command_text="SET a 1", originator=1))
    worker.submit(SelectDatabaseRequest(name="2", originator=2))
    worker.submit(DbSizeRequest(originator=3))
    worker.close(timeout=5.0)

    assert [originator for originator, _result in channel.results] == [1, 2, 3]
    assert transport.sent == [(b"SET", b"a", b"1"), (b"SELECT", b"2"), (b"DBSIZE",), (b"DBSIZE",)]
    assert transport.threads == {"kvscope-test-worker"}
    assert transport.closed


def test_worker_rejects_unknown_requests() -> None:
    worker = DriverWorker(Driver(_SequencedTransport(), _CollectingChannel()))
    with pytest.raises(TypeError):
        worker.submit("DBSIZE")
    worker.close()


def test_worker_refuses_work_after_close() -> None:
    worker = DriverWorker(Driver(_SequencedTransport(), _CollectingChannel()))
    worker.close()
    with pytest.raises(RuntimeError):
        worker.submit(DbSizeRequest())


def test_interrupted_worker_still_delivers_failures() -> None:
    transport = _SequencedTransport()
    channel = _CollectingChannel()
    worker = DriverWorker(Driver(transport, channel))

    worker.set_interrupted(True)
    worker.submit(DbSizeRequest(originator="x"))
    worker.close(timeout=5.0)

    assert len(channel.results) == 1
    assert channel.results[0][1].error == "interrupted"
    assert transport.sent == []
