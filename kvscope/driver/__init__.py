"""Command execution, request handlers and result delivery."""

from .executor import CommandResult, PipelineExecutor
from .models import (
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_PARTIAL,
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
from .orchestrator import Driver
from .progress import MILESTONES, EventBusChannel, ProgressTracker, ResultChannel
from .transport import RedisTransport, Transport, TransportError
from .worker import DriverWorker

__all__ = [
    "BackupRequest",
    "ChangeServerPropertyRequest",
    "CommandResult",
    "DbSizeRequest",
    "Driver",
    "DriverWorker",
    "EventBusChannel",
    "ExecuteRequest",
    "LoadChannelsRequest",
    "LoadDatabaseContentRequest",
    "MILESTONES",
    "PipelineExecutor",
    "ProgressTracker",
    "RedisTransport",
    "RestoreRequest",
    "ResultChannel",
    "STATUS_COMPLETE",
    "STATUS_FAILED",
    "STATUS_PARTIAL",
    "SelectDatabaseRequest",
    "ServerPropertyRequest",
    "Transport",
    "TransportError",
]
