"""CLI entry point for kvscope."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import Any, Callable, Sequence

from kvscope.config.loader import initialize_config, load_config
from kvscope.config.schema import AppConfig
from kvscope.core.event_bus import EventBus
from kvscope.core.logging import CommandLogger, configure_logging, get_logger, redact_redis_url
from kvscope.driver.models import (
    BackupRequest,
    ChangeServerPropertyRequest,
    DbSizeRequest,
    ExecuteRequest,
    LoadChannelsRequest,
    LoadDatabaseContentRequest,
    OperationResult,
    RestoreRequest,
    ServerPropertyRequest,
)
from kvscope.driver.orchestrator import Driver
from kvscope.driver.progress import TOPIC_PROGRESS, EventBusChannel
from kvscope.driver.transport import RedisTransport


CLI_ORIGINATOR = "cli"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kvscope")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create starter config")
    init_parser.add_argument("--config", type=Path, default=Path("./config/kvscope.yml"))
    init_parser.add_argument("--force", action="store_true")

    logs_parser = subparsers.add_parser("logs", help="Show log sink configuration")
    logs_parser.add_argument("--config", type=Path, default=None)

    scan_parser = subparsers.add_parser("scan", help="Scan one page of keys with type and TTL")
    _add_driver_arguments(scan_parser)
    scan_parser.add_argument("--pattern", type=str, default=None)
    scan_parser.add_argument("--count", type=int, default=None)
    scan_parser.add_argument("--cursor", type=int, default=0)

    properties_parser = subparsers.add_parser("properties", help="List server configuration properties")
    _add_driver_arguments(properties_parser)

    set_property_parser = subparsers.add_parser("set-property", help="Change one server configuration property")
    _add_driver_arguments(set_property_parser)
    set_property_parser.add_argument("name", type=str)
    set_property_parser.add_argument("value", type=str)

    channels_parser = subparsers.add_parser("channels", help="List pub/sub channels with subscriber counts")
    _add_driver_arguments(channels_parser)
    channels_parser.add_argument("--pattern", type=str, default="*")

    exec_parser = subparsers.add_parser("exec", help="Run one command line against the server")
    _add_driver_arguments(exec_parser)
    exec_parser.add_argument("command_text", type=str, help='Command line, e.g. \'SET "my key" value\'')

    dbsize_parser = subparsers.add_parser("dbsize", help="Show the number of keys in the selected database")
    _add_driver_arguments(dbsize_parser)

    backup_parser = subparsers.add_parser("backup", help="Save the dataset and copy the dump file")
    _add_driver_arguments(backup_parser)
    backup_parser.add_argument("path", type=str)

    restore_parser = subparsers.add_parser("restore", help="Copy a dump file onto the server export path")
    _add_driver_arguments(restore_parser)
    restore_parser.add_argument("path", type=str)

    return parser


def _add_driver_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Echo progress milestones to stderr",
    )


def cmd_init(config_path: Path, force: bool) -> int:
    initialize_config(config_path, force=force)
    print(f"wrote config: {config_path}")
    return 0


def cmd_logs(config_path: Path | None) -> int:
    config = load_config(config_path)
    payload = {
        "format": config.logging.fmt,
        "level": config.logging.level,
        "sink": config.logging.sink,
        "file_path": config.logging.file_path,
        "service_name": config.logging.service_name,
        "event_bus_backend": config.event_bus.backend,
        "redis_url": redact_redis_url(config.connection.redis_url),
    }
    print(json.dumps(payload, indent=2))
    return 0


def _print_progress(envelope: dict[str, Any]) -> None:
    payload = envelope.get("payload", {})
    print(f"progress: {payload.get('percent')}%", file=sys.stderr)


def _run_operation(
    config_path: Path | None,
    progress: bool,
    operation: Callable[[Driver, AppConfig], OperationResult],
) -> int:
    config = load_config(config_path)
    configure_logging(config.logging)
    bus = EventBus(config.event_bus)
    if progress:
        bus.subscribe(TOPIC_PROGRESS, _print_progress)
    driver = Driver(
        RedisTransport(config.connection),
        EventBusChannel(bus),
        backup_config=config.backup,
        command_logger=CommandLogger(
            logger=get_logger("kvscope.commands"),
            service_name=config.logging.service_name,
        ),
    )
    try:
        result = operation(driver, config)
    finally:
        driver.close()
        bus.close()
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def cmd_scan(
    config_path: Path | None,
    *,
    pattern: str | None,
    count: int | None,
    cursor: int,
    progress: bool = False,
) -> int:
    def _operation(driver: Driver, config: AppConfig) -> OperationResult:
        keys_count = count if count is not None else config.scan.default_count
        if keys_count <= 0 or keys_count > config.scan.max_count:
            raise ValueError(f"count must be between 1 and {config.scan.max_count}")
        if cursor < 0:
            raise ValueError("cursor must be non-negative")
        return driver.load_database_content(
            LoadDatabaseContentRequest(
                originator=CLI_ORIGINATOR,
                pattern=pattern or config.scan.default_pattern,
                keys_count=keys_count,
                cursor_in=cursor,
            )
        )

    return _run_operation(config_path, progress, _operation)


def cmd_properties(config_path: Path | None, *, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.load_server_properties(ServerPropertyRequest(originator=CLI_ORIGINATOR)),
    )


def cmd_set_property(config_path: Path | None, *, name: str, value: str, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.change_server_property(
            ChangeServerPropertyRequest(name=name, value=value, originator=CLI_ORIGINATOR)
        ),
    )


def cmd_channels(config_path: Path | None, *, pattern: str, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.load_channels(
            LoadChannelsRequest(originator=CLI_ORIGINATOR, pattern=pattern)
        ),
    )


def cmd_exec(config_path: Path | None, *, command_text: str, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.execute(
            ExecuteRequest(command_text=command_text, originator=CLI_ORIGINATOR)
        ),
    )


def cmd_dbsize(config_path: Path | None, *, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.db_size(DbSizeRequest(originator=CLI_ORIGINATOR)),
    )


def cmd_backup(config_path: Path | None, *, path: str, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.backup(BackupRequest(path=path, originator=CLI_ORIGINATOR)),
    )


def cmd_restore(config_path: Path | None, *, path: str, progress: bool = False) -> int:
    return _run_operation(
        config_path,
        progress,
        lambda driver, _config: driver.restore(RestoreRequest(path=path, originator=CLI_ORIGINATOR)),
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args.config, args.force)
    if args.command == "logs":
        return cmd_logs(args.config)
    if args.command == "scan":
        try:
            return cmd_scan(
                args.config,
                pattern=args.pattern,
                count=args.count,
                cursor=args.cursor,
                progress=args.progress,
            )
        except ValueError as exc:
            parser.error(str(exc))
    if args.command == "properties":
        return cmd_properties(args.config, progress=args.progress)
    if args.command == "set-property":
        return cmd_set_property(args.config, name=args.name, value=args.value, progress=args.progress)
    if args.command == "channels":
        return cmd_channels(args.config, pattern=args.pattern, progress=args.progress)
    if args.command == "exec":
        return cmd_exec(args.config, command_text=args.command_text, progress=args.progress)
    if args.command == "dbsize":
        return cmd_dbsize(args.config, progress=args.progress)
    if args.command == "backup":
        return cmd_backup(args.config, path=args.path, progress=args.progress)
    if args.command == "restore":
        return cmd_restore(args.config, path=args.path, progress=args.progress)

    parser.error(f"unknown command: {args.command}")
    return 2

