"""syncshell - control plane for an external file-synchronization engine.

Keeps a list of live sessions, persisted connection profiles and unresolved
file conflicts consistent with what the engine reports, and drives session
restore and conflict resolution on top of it.
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "EngineClient",
    "SyncSession",
    "Conflict",
    "SessionSnapshotStore",
    "RateEstimator",
    "ConnectionProfileStore",
    "ConflictResolver",
    "RestoreOrchestrator",
    "SessionController",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name == "EngineClient":
        from syncshell.engine.client import EngineClient

        return EngineClient
    if name in ("SyncSession", "Conflict"):
        from syncshell.engine import models

        return getattr(models, name)
    if name == "SessionSnapshotStore":
        from syncshell.sync.snapshot import SessionSnapshotStore

        return SessionSnapshotStore
    if name == "RateEstimator":
        from syncshell.sync.rates import RateEstimator

        return RateEstimator
    if name == "ConnectionProfileStore":
        from syncshell.sync.profiles import ConnectionProfileStore

        return ConnectionProfileStore
    if name == "ConflictResolver":
        from syncshell.sync.conflicts import ConflictResolver

        return ConflictResolver
    if name == "RestoreOrchestrator":
        from syncshell.sync.restore import RestoreOrchestrator

        return RestoreOrchestrator
    if name == "SessionController":
        from syncshell.sync.controller import SessionController

        return SessionController
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
