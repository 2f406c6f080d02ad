"""Request handlers that turn operator requests into command sequences.

Every handler runs Start, Primary command, optional Secondary pipeline,
Merge, Done. The primary step decides whether the operation can succeed at
all; secondary per-item failures only degrade the affected items. Whatever
happens, the handler reports all progress milestones and delivers exactly
one result to the originator.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from kvscope.config.schema import BackupConfig
from kvscope.core.logging import CommandLogger, get_logger
from kvscope.driver.executor import CommandResult, PipelineExecutor
from kvscope.driver.files import copy_file
from kvscope.driver.models import (
    BackupRequest,
    BackupResult,
    ChangeServerPropertyRequest,
    ChangeServerPropertyResult,
    ChannelDescriptor,
    ChannelsResult,
    DatabaseInfoResult,
    DbSizeRequest,
    DbSizeResult,
    ExecuteRequest,
    ExecuteResult,
    KeyDescriptor,
    LoadChannelsRequest,
    LoadDatabaseContentRequest,
    OperationResult,
    RestoreRequest,
    RestoreResult,
    ScanResult,
    SelectDatabaseRequest,
    ServerPropertyRequest,
    ServerPropertyResult,
)
from kvscope.driver.progress import (
    PROGRESS_PRIMARY_DONE,
    PROGRESS_SECONDARY_DONE,
    ProgressTracker,
    ResultChannel,
)
from kvscope.driver.transport import Transport
from kvscope.protocol import commands
from kvscope.protocol.commands import Command
from kvscope.protocol.normalize import (
    decode_numeric,
    decode_numsub,
    decode_property_list,
    decode_scan,
    decode_string_list,
    decode_ttl,
    decode_type,
)


ResultT = TypeVar("ResultT", bound=OperationResult)
FileCopier = Callable[[str, str], "str | None"]


class Driver:
    def __init__(
        self,
        transport: Transport,
        channel: ResultChannel,
        *,
        backup_config: BackupConfig | None = None,
        command_logger: CommandLogger | None = None,
        file_copier: FileCopier = copy_file,
    ) -> None:
        self.transport = transport
        self.channel = channel
        self.backup_config = backup_config or BackupConfig()
        self.executor = PipelineExecutor(transport, command_logger)
        self.logger = get_logger("kvscope.driver")
        self._copy_file = file_copier

    @property
    def interrupted(self) -> bool:
        return self.transport.interrupted

    def set_interrupted(self, interrupted: bool) -> None:
        self.transport.set_interrupted(interrupted)

    def close(self) -> None:
        self.transport.close()

    # Key scan with metadata.

    def load_database_content(self, request: LoadDatabaseContentRequest) -> ScanResult:
        result = ScanResult(
            pattern=request.pattern,
            keys_count=request.keys_count,
            cursor_in=request.cursor_in,
            cursor_out=request.cursor_in,
        )
        return self._run("load_database_content", request.originator, result, self._scan_keys, request)

    def _scan_keys(self, request: LoadDatabaseContentRequest, result: ScanResult, progress: ProgressTracker) -> None:
        originator = _route(request.originator)
        scan = self.executor.execute(
            commands.scan(request.cursor_in, request.pattern, request.keys_count),
            originator=originator,
        )
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not scan.ok:
            result.fail(scan.error_message or "scan failed")
            return
        assert scan.reply is not None
        page = decode_scan(scan.reply, cursor_in=request.cursor_in)
        if not page.ok:
            result.warn("scan decode failed")
            return
        result.cursor_out = page.cursor

        lookups: list[Command] = []
        for name in page.keys:
            if not name:
                continue
            result.keys.append(KeyDescriptor(name=name))
            lookups.append(commands.key_type(name))
            lookups.append(commands.key_ttl(name))

        replies = self.executor.execute_batch(lookups, originator=originator)
        progress.reach(PROGRESS_SECONDARY_DONE)
        self._merge_key_metadata(result, replies)
        result.total_key_count = self._best_effort_db_size(originator)

    def _merge_key_metadata(self, result: ScanResult, replies: list[CommandResult]) -> None:
        unresolved = 0
        transport_failed = False
        for index, key in enumerate(result.keys):
            type_reply = replies[index * 2]
            ttl_reply = replies[index * 2 + 1]
            if type_reply.reply is not None:
                key.set_type(decode_type(type_reply.reply))
            if ttl_reply.reply is not None:
                key.ttl = decode_ttl(ttl_reply.reply)
            if not (type_reply.ok and ttl_reply.ok):
                unresolved += 1
                transport_failed = transport_failed or type_reply.transport_error is not None
        if transport_failed:
            result.warn("key metadata pipeline failed")
        elif unresolved:
            result.warn(f"metadata lookup failed for {unresolved} key(s)")

    def _best_effort_db_size(self, originator: str | None) -> int:
        size = self.executor.execute(commands.db_size(), originator=originator)
        count = decode_numeric(size.reply) if size.reply is not None else None
        if count is None:
            self.logger.warning(
                "total key count unavailable",
                extra={
                    "component": "driver",
                    "originator": originator,
                    "payload": {"error": size.error_message or "unexpected reply"},
                },
            )
            return 0
        return count

    # Server properties.

    def load_server_properties(self, request: ServerPropertyRequest) -> ServerPropertyResult:
        return self._run(
            "load_server_properties",
            request.originator,
            ServerPropertyResult(),
            self._load_properties,
            request,
        )

    def _load_properties(
        self,
        request: ServerPropertyRequest,
        result: ServerPropertyResult,
        progress: ProgressTracker,
    ) -> None:
        reply = self.executor.execute(commands.config_get("*"), originator=_route(request.originator))
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not reply.ok:
            result.fail(reply.error_message or "config get failed")
            return
        assert reply.reply is not None
        result.properties = decode_property_list(reply.reply)

    def change_server_property(self, request: ChangeServerPropertyRequest) -> ChangeServerPropertyResult:
        return self._change_property(
            "change_server_property",
            request.originator,
            request.name,
            request.value,
            lambda: commands.config_set(request.name, request.value),
        )

    def change_password(self, password: str, originator: Any = None) -> ChangeServerPropertyResult:
        return self._change_property(
            "change_password",
            originator,
            "requirepass",
            password,
            lambda: commands.set_password(password),
        )

    def set_max_connections(self, max_connections: int, originator: Any = None) -> ChangeServerPropertyResult:
        command = commands.set_max_connections(max_connections)
        return self._change_property(
            "set_max_connections",
            originator,
            "maxclients",
            str(max_connections),
            lambda: command,
        )

    def _change_property(
        self,
        operation: str,
        originator: Any,
        name: str,
        value: str,
        build: Callable[[], Command],
    ) -> ChangeServerPropertyResult:
        result = ChangeServerPropertyResult(name=name, value=value)
        return self._run(operation, originator, result, self._send_property_change, build)

    def _send_property_change(
        self,
        build: Callable[[], Command],
        result: ChangeServerPropertyResult,
        progress: ProgressTracker,
    ) -> None:
        reply = self.executor.execute(build(), originator=_route(progress.originator))
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not reply.ok:
            result.fail(reply.error_message or "config set failed")
            return
        result.is_changed = True

    # Pub/sub channels.

    def load_channels(self, request: LoadChannelsRequest) -> ChannelsResult:
        result = ChannelsResult(pattern=request.pattern)
        return self._run("load_channels", request.originator, result, self._load_channels, request)

    def _load_channels(self, request: LoadChannelsRequest, result: ChannelsResult, progress: ProgressTracker) -> None:
        originator = _route(request.originator)
        listing = self.executor.execute(commands.pubsub_channels(request.pattern), originator=originator)
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not listing.ok:
            result.fail(listing.error_message or "channel listing failed")
            return
        assert listing.reply is not None
        names = decode_string_list(listing.reply)
        if names is None:
            result.warn("channel listing decode failed")
            return

        counts: list[Command] = []
        for name in names:
            if not name:
                continue
            result.channels.append(ChannelDescriptor(name=name))
            counts.append(commands.pubsub_numsub(name))
        if not counts:
            return

        replies = self.executor.execute_batch(counts, originator=originator)
        progress.reach(PROGRESS_SECONDARY_DONE)
        unresolved = 0
        transport_failed = False
        for channel, reply in zip(result.channels, replies):
            count = decode_numsub(reply.reply) if reply.reply is not None else None
            if count is None:
                unresolved += 1
                transport_failed = transport_failed or reply.transport_error is not None
                continue
            channel.subscriber_count = count
        if transport_failed:
            result.warn("subscriber count pipeline failed")
        elif unresolved:
            result.warn(f"subscriber count unknown for {unresolved} channel(s)")

    # Command passthrough, backup and restore.

    def execute(self, request: ExecuteRequest) -> ExecuteResult:
        result = ExecuteResult(command_text=request.command_text)
        return self._run("execute", request.originator, result, self._execute, request)

    def _execute(self, request: ExecuteRequest, result: ExecuteResult, progress: ProgressTracker) -> None:
        try:
            command = commands.from_text(request.command_text)
        except ValueError as exc:
            result.fail(f"invalid command: {exc}")
            return
        reply = self.executor.execute(command, originator=_route(request.originator))
        progress.reach(PROGRESS_PRIMARY_DONE)
        result.reply = reply.reply
        if not reply.ok:
            result.fail(reply.error_message or "command failed")
            return
        if command.name == "SELECT" and len(command.args) == 2:
            self._remember_database(command.args[1])

    def backup(self, request: BackupRequest) -> BackupResult:
        return self._run("backup", request.originator, BackupResult(path=request.path), self._backup, request)

    def _backup(self, request: BackupRequest, result: BackupResult, progress: ProgressTracker) -> None:
        reply = self.executor.execute(commands.save(), originator=_route(request.originator))
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not reply.ok:
            result.fail(reply.error_message or "save failed")
            return
        error = self._copy_file(self.backup_config.server_dump_path, request.path)
        if error:
            result.fail(error)

    def restore(self, request: RestoreRequest) -> RestoreResult:
        return self._run("restore", request.originator, RestoreResult(path=request.path), self._restore, request)

    def _restore(self, request: RestoreRequest, result: RestoreResult, progress: ProgressTracker) -> None:
        error = self._copy_file(request.path, self.backup_config.server_export_path)
        progress.reach(PROGRESS_PRIMARY_DONE)
        if error:
            result.fail(error)

    # Database level.

    def db_size(self, request: DbSizeRequest) -> DbSizeResult:
        return self._run("db_size", request.originator, DbSizeResult(), self._db_size, request)

    def _db_size(self, request: DbSizeRequest, result: DbSizeResult, progress: ProgressTracker) -> None:
        reply = self.executor.execute(commands.db_size(), originator=_route(request.originator))
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not reply.ok:
            result.fail(reply.error_message or "dbsize failed")
            return
        assert reply.reply is not None
        size = decode_numeric(reply.reply)
        if size is None:
            result.fail("unexpected dbsize reply")
            return
        result.size = size

    def select_database(self, request: SelectDatabaseRequest) -> DatabaseInfoResult:
        result = DatabaseInfoResult(name=request.name)
        return self._run("select_database", request.originator, result, self._select_database, request)

    def _select_database(
        self,
        request: SelectDatabaseRequest,
        result: DatabaseInfoResult,
        progress: ProgressTracker,
    ) -> None:
        originator = _route(request.originator)
        reply = self.executor.execute(commands.select(request.name), originator=originator)
        progress.reach(PROGRESS_PRIMARY_DONE)
        if not reply.ok:
            result.fail(reply.error_message or "select failed")
            return
        self._remember_database(request.name)
        result.size = self._best_effort_db_size(originator)

    def _remember_database(self, name: str | bytes) -> None:
        text = name.decode("ascii", errors="replace") if isinstance(name, bytes) else name
        if text.strip().isdigit():
            self.transport.use_database(int(text))

    # Shared Start/Done guard.

    def _run(
        self,
        operation: str,
        originator: Any,
        result: ResultT,
        step: Callable[[Any, ResultT, ProgressTracker], None],
        request: Any,
    ) -> ResultT:
        progress = ProgressTracker(self.channel, originator)
        progress.reach(0)
        try:
            step(request, result, progress)
        except Exception as exc:
            self.logger.exception(
                "operation failed unexpectedly",
                extra={
                    "component": "driver",
                    "event_action": operation,
                    "originator": _route(originator),
                },
            )
            result.fail(f"{operation} failed: {exc}")
        self.logger.debug(
            "operation finished",
            extra={
                "component": "driver",
                "event_action": operation,
                "event_outcome": "failure" if result.error else "success",
                "originator": _route(originator),
                "payload": {"status": result.status},
            },
        )
        progress.deliver(result)
        return result


def _route(originator: Any) -> str | None:
    if originator is None:
        return None
    return str(originator)
