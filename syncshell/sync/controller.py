# syncshell Session Controller
# Host-facing facade wiring engine, snapshot, rates, conflicts, profiles and restore

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Optional

from syncshell.config.schema import SyncshellConfig
from syncshell.engine.client import EngineClient, EngineError
from syncshell.engine.endpoints import format_remote_endpoint, normalize_remote_path
from syncshell.engine.models import (
    Conflict,
    CreateSessionOptions,
    SessionStatus,
    SessionSummary,
    SyncSession,
    to_session_summary,
)
from syncshell.engine.monitor import SessionMonitor
from syncshell.sync.conflicts import (
    AcceptResult,
    BatchAcceptResult,
    ConfirmCallback,
    ConflictError,
    ConflictResolver,
    Direction,
    HandledConflictTracker,
    SessionNotFoundError,
    build_accept_command,
    conflict_paths,
    conflict_remote_display,
    conflict_signature,
)
from syncshell.sync.profiles import ConnectionProfile, ConnectionProfileStore, UpsertProfileInput, normalize_ignore_paths
from syncshell.sync.rates import AggregateRates, RateEstimator
from syncshell.sync.restore import RestoreOrchestrator, WorkspaceCloseResult, WorkspaceRestoreResult, session_in_folder
from syncshell.sync.retry import Sleep
from syncshell.sync.snapshot import SessionSnapshotStore
from syncshell.sync.state import KeyValueStore
from syncshell.utils.paths import is_same_or_sub_path, normalize_path

logger = logging.getLogger(__name__)

SYNCING_STATES = {
    SessionStatus.STAGING_ALPHA.value,
    SessionStatus.STAGING_BETA.value,
    SessionStatus.TRANSITIONING.value,
}


@dataclass
class ConflictView:
    """A conflict with its resolved paths, for listing."""

    conflict: Conflict
    local_path: Optional[str]
    remote_display: Optional[str]
    handled_direction: Optional[str] = None
    error: Optional[str] = None


@dataclass
class StatusSummary:
    """Aggregated counts across sessions, plus rates of workspace sessions."""

    total: int = 0
    active: int = 0
    paused: int = 0
    syncing: int = 0
    errors: int = 0
    workspace_sessions: list[str] = field(default_factory=list)
    rates: AggregateRates = field(default_factory=AggregateRates)


@dataclass
class CreateResult:
    identifier: str
    profile: Optional[ConnectionProfile] = None


@dataclass
class SessionSettings:
    """Everything needed to (re)create a session."""

    local_path: str
    remote_path: str
    name: str = ""
    mode: Optional[str] = None
    ignore_vcs: Optional[bool] = None
    ignore_paths: list[str] = field(default_factory=list)


def summarize_status(sessions: list[SyncSession]) -> StatusSummary:
    summary = StatusSummary(total=len(sessions))
    for session in sessions:
        if session.paused:
            summary.paused += 1
        else:
            summary.active += 1
        if session.status in SYNCING_STATES:
            summary.syncing += 1
        if session.last_error or session.status.startswith("halted"):
            summary.errors += 1
    return summary


class SessionController:
    """
    Single entry point for a host shell.

    Owns the snapshot store, rate estimator, handled-conflict tracker,
    profile store and restore orchestrator, all sharing one explicitly
    constructed engine client.
    """

    def __init__(
        self,
        client: EngineClient,
        storage: KeyValueStore,
        config: Optional[SyncshellConfig] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        rates: Optional[RateEstimator] = None,
    ):
        self.config = config or SyncshellConfig()
        self.client = client
        self.snapshot = SessionSnapshotStore()
        self.rates = rates or RateEstimator(min_sample_interval=self.config.rates.min_sample_interval)
        self.tracker = HandledConflictTracker()
        self.resolver = ConflictResolver(client, tracker=self.tracker)
        self.profiles = ConnectionProfileStore(storage)
        restore = self.config.restore
        self.restore = RestoreOrchestrator(
            client,
            self.profiles,
            max_attempts=restore.max_connection_retries,
            base_delay=restore.retry_base_delay,
            max_delay=restore.retry_max_delay,
            resume_max_attempts=restore.resume_max_retries,
            resume_max_delay=restore.resume_max_delay,
            terminate_on_close=restore.terminate_restored_sessions_on_close,
            global_ignores=self.config.global_ignore_patterns,
            sleep=sleep,
        )
        self.open_folders: list[str] = []
        self._monitors: dict[str, SessionMonitor] = {}

    # Snapshot

    async def refresh(self) -> bool:
        """
        Poll the engine once.

        Returns:
            True if listeners were notified of a change.
        """
        try:
            sessions = await self.client.list_sessions(dedupe=True)
        except EngineError as e:
            self.snapshot.record_error(e.message)
            return False
        if sessions is None:
            return False
        changed = self.snapshot.update(sessions)
        self.tracker.prune(sessions)
        self.rates.retain(s.identifier for s in sessions)
        for session in self.workspace_sessions():
            self.rates.sample(session)
        return changed

    def get_sessions(self) -> list[SyncSession]:
        return self.snapshot.get_sessions()

    def get_session_by_id(self, identifier: str) -> Optional[SyncSession]:
        return self.snapshot.get_session_by_id(identifier)

    def summaries(self) -> list[SessionSummary]:
        return [to_session_summary(session) for session in self.get_sessions()]

    def workspace_sessions(self) -> list[SyncSession]:
        return [
            session
            for session in self.get_sessions()
            if any(session_in_folder(session, folder) for folder in self.open_folders)
        ]

    def status(self) -> StatusSummary:
        summary = summarize_status(self.get_sessions())
        workspace = self.workspace_sessions()
        summary.workspace_sessions = [s.identifier for s in workspace]
        summary.rates = self.rates.aggregate(summary.workspace_sessions)
        return summary

    # Monitors

    async def sync_monitors(self) -> None:
        """Monitor exactly the sessions inside open workspace folders."""
        wanted = {session.identifier for session in self.workspace_sessions()}
        for identifier in list(self._monitors):
            if identifier not in wanted:
                self._monitors.pop(identifier).stop()
                self.rates.remove(identifier)
        for identifier in wanted - set(self._monitors):
            monitor = await self.client.monitor(
                identifier,
                self._on_monitor_update,
                lambda error, identifier=identifier: self._on_monitor_error(identifier, error),
            )
            if not monitor.stopped:
                self._monitors[identifier] = monitor

    def _on_monitor_update(self, session: SyncSession) -> None:
        if session.identifier not in self._monitors:
            return
        self.rates.sample(session)
        self.snapshot.merge_session(session)

    def _on_monitor_error(self, identifier: str, error: Exception) -> None:
        logger.warning("Monitor error for session %s: %s", identifier, error)
        monitor = self._monitors.pop(identifier, None)
        if monitor is not None:
            monitor.stop()
        state = self.rates.get(identifier)
        if state is not None:
            state.upload_rate = 0.0
            state.download_rate = 0.0

    def stop_monitors(self) -> None:
        for monitor in self._monitors.values():
            monitor.stop()
        self._monitors.clear()

    @property
    def monitored(self) -> set[str]:
        return set(self._monitors)

    # Session lifecycle

    def resolve_workspace_folder(self, local_path: str) -> str:
        """Open folder containing the path, else its parent directory."""
        local = normalize_path(local_path)
        for folder in self.open_folders:
            if is_same_or_sub_path(local, folder):
                return folder
        return os.path.dirname(local)

    def _create_options(self, settings: SessionSettings) -> CreateSessionOptions:
        return CreateSessionOptions(
            name=settings.name.strip() or None,
            mode=settings.mode,
            ignore_vcs=settings.ignore_vcs,
            ignore_paths=normalize_ignore_paths([*settings.ignore_paths, *self.config.global_ignore_patterns]),
        )

    def _save_profile(self, settings: SessionSettings, identifier: str) -> Optional[ConnectionProfile]:
        if not self.config.restore.auto_save_connection_profiles:
            return None
        try:
            return self.profiles.upsert(
                UpsertProfileInput(
                    name=settings.name.strip() or os.path.basename(normalize_path(settings.local_path)),
                    local_path=settings.local_path,
                    remote_path=settings.remote_path,
                    workspace_folder=self.resolve_workspace_folder(settings.local_path),
                    mode=settings.mode,
                    ignore_vcs=settings.ignore_vcs,
                    ignore_paths=settings.ignore_paths,
                    last_session_identifier=identifier or None,
                )
            )
        except (OSError, ValueError) as e:
            logger.warning("Failed to save connection profile: %s", e)
            return None

    async def create_session(self, settings: SessionSettings, save_profile: bool = True) -> CreateResult:
        settings.remote_path = normalize_remote_path(settings.remote_path)
        identifier = await self.client.create_session(
            settings.local_path, settings.remote_path, self._create_options(settings)
        )
        profile = self._save_profile(settings, identifier) if save_profile else None
        await self.refresh()
        return CreateResult(identifier=identifier, profile=profile)

    async def edit_session(self, identifier: str, settings: SessionSettings) -> CreateResult:
        """Terminate the session and create a replacement with a new identifier."""
        settings.remote_path = normalize_remote_path(settings.remote_path)
        new_identifier = await self.client.recreate_session(
            identifier, settings.local_path, settings.remote_path, self._create_options(settings)
        )
        self.tracker.clear(identifier)
        profile = self._save_profile(settings, new_identifier)
        await self.refresh()
        return CreateResult(identifier=new_identifier, profile=profile)

    async def session_settings(self, identifier: str) -> SessionSettings:
        """Current settings of a live session, as defaults for editing."""
        session = await self._require_session(identifier)
        if not session.is_managed:
            raise SessionNotFoundError("Unable to determine local/remote endpoints for this session")
        return SessionSettings(
            local_path=session.local_endpoint.path,
            remote_path=format_remote_endpoint(session.remote_endpoint),
            name=session.name,
            mode=session.mode,
            ignore_vcs=session.ignore_vcs,
            ignore_paths=[p for p in session.ignore_paths if p not in self.config.global_ignore_patterns],
        )

    async def pause_session(self, identifier: str) -> None:
        await self.client.pause_session(identifier)
        await self.refresh()

    async def resume_session(self, identifier: str) -> None:
        await self.client.resume_session(identifier)
        await self.refresh()

    async def flush_session(self, identifier: str) -> None:
        await self.client.flush_session(identifier)
        await self.refresh()

    async def terminate_session(self, identifier: str) -> None:
        await self.client.terminate_session(identifier)
        self.tracker.clear(identifier)
        monitor = self._monitors.pop(identifier, None)
        if monitor is not None:
            monitor.stop()
        self.rates.remove(identifier)
        await self.refresh()

    async def reset_session(self, identifier: str) -> None:
        await self.client.reset_session(identifier)
        self.tracker.clear(identifier)
        await self.refresh()

    # Conflicts

    async def _require_session(self, identifier: str) -> SyncSession:
        session = await self.client.get_session(identifier)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {identifier}")
        return session

    async def conflicts(self, identifier: str) -> list[ConflictView]:
        session = await self._require_session(identifier)
        views = []
        for conflict in session.conflicts:
            record = self.tracker.get(identifier, conflict.root)
            handled = record.direction if record and record.signature == conflict_signature(conflict) else None
            try:
                local_path, _ = conflict_paths(session, conflict)
                remote = conflict_remote_display(session, conflict.root)
            except ConflictError as e:
                views.append(ConflictView(conflict, None, None, handled, error=str(e)))
                continue
            views.append(ConflictView(conflict, local_path, remote, handled))
        return views

    async def _conflict_at(self, identifier: str, root: str) -> tuple[SyncSession, Conflict]:
        session = await self._require_session(identifier)
        for conflict in session.conflicts:
            if conflict.root == root:
                return session, conflict
        return session, Conflict(root=root)

    async def accept_conflict(self, identifier: str, root: str, direction: Direction) -> AcceptResult:
        _, conflict = await self._conflict_at(identifier, root)
        result = await self.resolver.accept(identifier, conflict, direction)
        await self.refresh()
        return result

    async def accept_all_conflicts(
        self, identifier: str, direction: Direction, confirm: Optional[ConfirmCallback] = None
    ) -> BatchAcceptResult:
        result = await self.resolver.accept_all(identifier, direction, confirm)
        await self.refresh()
        return result

    async def accept_command(self, identifier: str, root: str, direction: Direction) -> str:
        session, conflict = await self._conflict_at(identifier, root)
        return build_accept_command(session, conflict, direction)

    # Profiles and workspace

    def list_profiles(self) -> list[ConnectionProfile]:
        return self.profiles.sorted_for_picker(self.open_folders)

    async def connect_profile(self, profile_id: str) -> str:
        profile = self.profiles.get_by_id(profile_id)
        if profile is None:
            raise KeyError(f"Connection profile '{profile_id}' not found")
        identifier = await self.restore.restore_profile_with_retry(profile)
        await self.refresh()
        return identifier

    def remove_profile(self, profile_id: str) -> bool:
        return self.profiles.remove(profile_id)

    async def open_workspace(self, folders: Iterable[str]) -> list[WorkspaceRestoreResult]:
        """Register open folders and, when enabled, restore their sessions."""
        added = []
        for folder in folders:
            workspace = normalize_path(folder)
            if workspace not in self.open_folders:
                self.open_folders.append(workspace)
                added.append(workspace)
        results: list[WorkspaceRestoreResult] = []
        if self.config.restore.auto_restore_connections:
            results = await self.restore.open_workspace(added)
        await self.refresh()
        return results

    async def close_workspace(self, folders: Iterable[str], terminate: Optional[bool] = None) -> WorkspaceCloseResult:
        closing = [normalize_path(folder) for folder in folders]
        self.open_folders = [folder for folder in self.open_folders if folder not in closing]
        result = await self.restore.close_folders(closing, terminate)
        await self.refresh()
        await self.sync_monitors()
        return result

    async def shutdown(self) -> WorkspaceCloseResult:
        """Pause sessions of all open folders and stop monitors."""
        self.stop_monitors()
        result = await self.restore.close_folders(list(self.open_folders))
        self.open_folders = []
        return result
