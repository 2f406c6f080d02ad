"""Single and pipelined command execution with per-command outcomes."""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Sequence

from kvscope.core.logging import CommandLogger, emit_metric, get_logger
from kvscope.driver.transport import Transport, TransportError
from kvscope.protocol.commands import Command
from kvscope.protocol.reply import Error, ReplyValue


@dataclass(slots=True)
class CommandResult:
    command: Command
    reply: ReplyValue | None = None
    transport_error: TransportError | None = None

    @property
    def ok(self) -> bool:
        return self.transport_error is None and not isinstance(self.reply, Error)

    @property
    def error_message(self) -> str | None:
        if self.transport_error is not None:
            return str(self.transport_error) or "transport error"
        if isinstance(self.reply, Error):
            return self.reply.message
        return None


class PipelineExecutor:
    def __init__(self, transport: Transport, command_logger: CommandLogger | None = None) -> None:
        self.transport = transport
        self.logger = get_logger("kvscope.executor")
        self.command_logger = command_logger or CommandLogger(logger=get_logger("kvscope.commands"))

    def execute(self, command: Command, *, originator: str | None = None) -> CommandResult:
        started = time.perf_counter_ns()
        try:
            result = CommandResult(command=command, reply=self.transport.execute(command))
        except TransportError as exc:
            result = CommandResult(command=command, transport_error=exc)
        self._log(result, duration_ns=time.perf_counter_ns() - started, originator=originator)
        return result

    def execute_batch(
        self,
        commands: Sequence[Command],
        *,
        originator: str | None = None,
    ) -> list[CommandResult]:
        """Send every command in one round trip.

        The returned list always has one entry per command, in submission
        order, whatever the transport answered.
        """
        if not commands:
            return []
        started = time.perf_counter_ns()
        try:
            replies: list[ReplyValue | TransportError] = list(self.transport.execute_batch(commands))
        except TransportError as exc:
            replies = [exc for _ in commands]
        duration_ns = time.perf_counter_ns() - started
        if len(replies) != len(commands):
            self.logger.error(
                "pipeline reply count mismatch",
                extra={
                    "component": "executor",
                    "payload": {"commands": len(commands), "replies": len(replies)},
                },
            )
            missing = TransportError("no reply received for pipelined command")
            replies = (replies + [missing] * len(commands))[: len(commands)]

        results: list[CommandResult] = []
        for command, reply in zip(commands, replies):
            if isinstance(reply, TransportError):
                result = CommandResult(command=command, transport_error=reply)
            else:
                result = CommandResult(command=command, reply=reply)
            self._log(result, duration_ns=None, originator=originator)
            results.append(result)

        emit_metric(
            self.logger,
            name="pipeline_batch_size",
            value=len(commands),
            component="executor",
            payload={
                "duration_ns": duration_ns,
                "failed": sum(1 for result in results if not result.ok),
            },
        )
        return results

    def _log(self, result: CommandResult, *, duration_ns: int | None, originator: str | None) -> None:
        self.command_logger.log_command(
            statement=result.command.log_line,
            user_visible=result.command.user_visible,
            outcome="success" if result.ok else "failure",
            duration_ns=duration_ns,
            error=result.error_message,
            originator=originator,
        )
