# syncshell Sync Module
# Session reconciliation, conflict resolution, profiles and restore

from syncshell.sync.conflicts import (
    BatchAcceptResult,
    ConflictError,
    ConflictResolver,
    EndpointResolutionError,
    HandledConflictTracker,
    PathEscapeError,
    RemotePathStateError,
    SessionNotFoundError,
    UnsupportedEndpointError,
    build_accept_command,
    conflict_fingerprint,
    conflict_signature,
)
from syncshell.sync.controller import SessionController, SessionSettings
from syncshell.sync.profiles import ConnectionProfile, ConnectionProfileStore, UpsertProfileInput
from syncshell.sync.rates import RateEstimator, RateState
from syncshell.sync.restore import RestoreOrchestrator
from syncshell.sync.retry import RestoreError, retry_async
from syncshell.sync.snapshot import SessionSnapshotStore
from syncshell.sync.state import KeyValueStore, MemoryStore, StateFile

__all__ = [
    # Controller
    "SessionController",
    "SessionSettings",
    # Snapshot and rates
    "SessionSnapshotStore",
    "RateEstimator",
    "RateState",
    # Conflicts
    "ConflictResolver",
    "HandledConflictTracker",
    "BatchAcceptResult",
    "conflict_signature",
    "conflict_fingerprint",
    "build_accept_command",
    "ConflictError",
    "PathEscapeError",
    "UnsupportedEndpointError",
    "EndpointResolutionError",
    "RemotePathStateError",
    "SessionNotFoundError",
    # Profiles and restore
    "ConnectionProfile",
    "ConnectionProfileStore",
    "UpsertProfileInput",
    "RestoreOrchestrator",
    "RestoreError",
    "retry_async",
    # State
    "KeyValueStore",
    "MemoryStore",
    "StateFile",
]
