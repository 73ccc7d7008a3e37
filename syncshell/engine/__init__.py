# syncshell Engine Module
# Client, data model and process execution for the external engine

from syncshell.engine.client import EngineClient, EngineError, EngineNotFoundError
from syncshell.engine.endpoints import (
    format_remote_endpoint,
    normalize_remote_path,
    remote_path_matches,
    ssh_target,
)
from syncshell.engine.models import (
    Change,
    Conflict,
    CreateSessionOptions,
    DaemonStatus,
    Endpoint,
    EndpointProtocol,
    SessionStatus,
    SessionSummary,
    StagingProgress,
    SyncMode,
    SyncSession,
    format_file_size,
    status_label,
    to_session_summary,
)
from syncshell.engine.monitor import SessionMonitor
from syncshell.engine.process import CommandNotFoundError, ProcessError, ProcessResult, ProcessRunner

__all__ = [
    # Client
    "EngineClient",
    "EngineError",
    "EngineNotFoundError",
    "SessionMonitor",
    # Process
    "ProcessRunner",
    "ProcessResult",
    "ProcessError",
    "CommandNotFoundError",
    # Models
    "SyncSession",
    "Endpoint",
    "EndpointProtocol",
    "Conflict",
    "Change",
    "StagingProgress",
    "SessionStatus",
    "SyncMode",
    "CreateSessionOptions",
    "DaemonStatus",
    "SessionSummary",
    "to_session_summary",
    "status_label",
    "format_file_size",
    # Endpoints
    "remote_path_matches",
    "format_remote_endpoint",
    "normalize_remote_path",
    "ssh_target",
]
