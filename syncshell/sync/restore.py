# syncshell Restore Orchestrator
# Brings saved connection profiles back to live sessions without duplicates

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from syncshell.engine.client import EngineClient, EngineError
from syncshell.engine.models import SessionStatus, SyncSession
from syncshell.sync.profiles import ConnectionProfile, ConnectionProfileStore
from syncshell.sync.retry import RestoreError, Sleep, retry_async
from syncshell.utils.paths import is_path_related, is_same_or_sub_path, normalize_path

logger = logging.getLogger(__name__)


def session_local_path(session: SyncSession) -> Optional[str]:
    if not session.is_managed:
        return None
    return normalize_path(session.local_endpoint.path)


def session_in_folder(session: SyncSession, folder: str) -> bool:
    """Local root equal to, inside, or enclosing the folder."""
    local = session_local_path(session)
    return local is not None and is_path_related(local, folder)


@dataclass
class WorkspaceRestoreResult:
    """What happened for one workspace folder."""

    folder: str
    resumed: list[str] = field(default_factory=list)
    restored: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class WorkspaceCloseResult:
    paused: list[str] = field(default_factory=list)
    terminated: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


class RestoreOrchestrator:
    """
    Converges profiles and live sessions when workspace folders open.

    Per folder: paused sessions related to the folder are resumed, then
    each profile of the folder is matched to a live session (by last
    identifier, then by endpoints) or recreated. Every attempt is retried
    with a linear, capped delay.
    """

    def __init__(
        self,
        client: EngineClient,
        profiles: ConnectionProfileStore,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        resume_max_attempts: int = 3,
        resume_max_delay: float = 3.0,
        terminate_on_close: bool = False,
        global_ignores: Iterable[str] = (),
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.profiles = profiles
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.resume_max_attempts = resume_max_attempts
        self.resume_max_delay = resume_max_delay
        self.terminate_on_close = terminate_on_close
        self.global_ignores = list(global_ignores)
        self.sleep = sleep
        self._restored: dict[str, set[str]] = {}

    def restored_sessions(self, folder: str) -> set[str]:
        return set(self._restored.get(normalize_path(folder), set()))

    def _track(self, folder: str, identifier: str) -> None:
        self._restored.setdefault(normalize_path(folder), set()).add(identifier)

    def adopt_profile_sessions(self, folder: str) -> set[str]:
        """Track the last sessions of a folder's profiles as restored by this process."""
        adopted = set()
        for profile in self.profiles.get_for_workspace(folder):
            if profile.last_session_identifier:
                self._track(folder, profile.last_session_identifier)
                adopted.add(profile.last_session_identifier)
        return adopted

    # Matching

    async def find_session_for_profile(self, profile: ConnectionProfile) -> Optional[SyncSession]:
        """Live session for a profile: last identifier first, then endpoint equality."""
        if profile.last_session_identifier:
            session = await self.client.get_session(profile.last_session_identifier)
            if session is not None:
                return session

        return await self.client.find_session_by_endpoints(profile.local_path, profile.remote_path)

    async def restore_profile(self, profile: ConnectionProfile) -> str:
        """
        One restore attempt.

        Returns:
            Identifier of the resumed or newly created session.
        """
        session = await self.find_session_for_profile(profile)
        if session is not None:
            if session.paused or session.status == SessionStatus.DISCONNECTED.value:
                await self.client.resume_session(session.identifier)
            self.profiles.update_last_session_identifier(profile.id, session.identifier)
            return session.identifier

        options = profile.to_create_options(self.global_ignores)
        identifier = await self.client.create_session(profile.local_path, profile.remote_path, options)
        if not identifier:
            raise EngineError(f"No session identifier returned for {profile.name}")
        self.profiles.update_last_session_identifier(profile.id, identifier)
        logger.info("Created session %s for profile %r", identifier, profile.name)
        return identifier

    async def restore_profile_with_retry(self, profile: ConnectionProfile) -> str:
        """
        Raises:
            RestoreError: After ``max_attempts`` failed attempts.
        """
        identifier = await retry_async(
            lambda: self.restore_profile(profile),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            retryable_exceptions=(EngineError, OSError),
            description=f"Restore of connection profile {profile.name!r}",
            sleep=self.sleep,
        )
        logger.info("Restored connection profile %r as session %s", profile.name, identifier)
        return identifier

    # Workspace lifecycle

    async def resume_paused_for_folder(self, folder: str) -> tuple[list[str], list[tuple[str, str]]]:
        """Resume paused sessions related to a folder; returns (resumed, failed)."""
        resumed: list[str] = []
        failed: list[tuple[str, str]] = []
        for session in await self.client.list_sessions() or []:
            if not session.paused or not session_in_folder(session, folder):
                continue
            try:
                await retry_async(
                    lambda session=session: self.client.resume_session(session.identifier),
                    max_attempts=self.resume_max_attempts,
                    base_delay=self.base_delay,
                    max_delay=self.resume_max_delay,
                    retryable_exceptions=(EngineError,),
                    description=f"Auto-resume of session {session.name or session.identifier!r}",
                    sleep=self.sleep,
                )
            except RestoreError as e:
                failed.append((session.identifier, e.message))
                continue
            resumed.append(session.identifier)
        return resumed, failed

    async def open_folder(self, folder: str) -> WorkspaceRestoreResult:
        workspace = normalize_path(folder)
        result = WorkspaceRestoreResult(folder=workspace)
        result.resumed, failed_resumes = await self.resume_paused_for_folder(workspace)
        result.failed.extend(failed_resumes)

        for profile in self.profiles.get_for_workspace(workspace):
            try:
                identifier = await self.restore_profile_with_retry(profile)
            except RestoreError as e:
                result.failed.append((profile.name, e.message))
                continue
            result.restored.append((profile.name, identifier))
            self._track(workspace, identifier)
        return result

    async def open_workspace(self, folders: Iterable[str]) -> list[WorkspaceRestoreResult]:
        return [await self.open_folder(folder) for folder in folders]

    async def close_folders(self, folders: Iterable[str], terminate: Optional[bool] = None) -> WorkspaceCloseResult:
        """
        Pause sessions inside removed folders.

        Sessions restored for a folder are terminated instead only when
        termination on close is enabled.
        """
        terminate = self.terminate_on_close if terminate is None else terminate
        closing = [normalize_path(folder) for folder in folders]
        result = WorkspaceCloseResult()
        if not closing:
            return result

        tracked: set[str] = set()
        for folder in closing:
            tracked |= self._restored.pop(folder, set())

        for session in await self.client.list_sessions() or []:
            local = session_local_path(session)
            inside = local is not None and any(is_same_or_sub_path(local, folder) for folder in closing)
            try:
                if terminate and session.identifier in tracked:
                    await self.client.terminate_session(session.identifier)
                    result.terminated.append(session.identifier)
                elif inside and not session.paused:
                    await self.client.pause_session(session.identifier)
                    result.paused.append(session.identifier)
            except EngineError as e:
                logger.warning("Failed to close session %s: %s", session.identifier, e.message)
                result.failed.append((session.identifier, e.message))
        return result
