# syncshell Engine Client
# Command wrapper around the external synchronization engine

import json
import logging
import re
from typing import Any, Callable, Optional

from syncshell.engine.endpoints import remote_path_matches
from syncshell.engine.models import Conflict, CreateSessionOptions, DaemonStatus, SyncSession
from syncshell.engine.monitor import SessionMonitor
from syncshell.engine.process import CommandNotFoundError, ProcessError, ProcessRunner
from syncshell.utils.paths import normalize_path

logger = logging.getLogger(__name__)

JSON_TEMPLATE = "{{json .}}"
NO_SESSIONS_MARKER = "no synchronization sessions exist"
DAEMON_UNREACHABLE_MARKER = "unable to connect to daemon"
MISSING_SESSION_MARKERS = (
    "unable to locate requested sessions",
    "no matching sessions",
    "session not found",
    "does not exist",
)

_CREATED_SESSION = re.compile(r"Created session\s+\"?([^\"\s]+)\"?", re.IGNORECASE)


class EngineError(Exception):
    """Failure reported by the engine; message is the engine's own text."""

    def __init__(self, message: str, returncode: int = 1):
        self.message = message
        self.returncode = returncode
        super().__init__(message)


class EngineNotFoundError(EngineError):
    """The engine executable could not be found."""


def _parse_sessions(output: str) -> list[SyncSession]:
    text = output.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EngineError(f"Unable to parse engine output: {e}") from e
    items = data if isinstance(data, list) else [data]
    return [SyncSession.from_dict(item) for item in items if isinstance(item, dict)]


class EngineClient:
    """
    Explicitly constructed client for the engine command line.

    Every call is one process invocation. Calls given a command key are
    de-duplicated: while a keyed call is outstanding, an identical keyed
    call is skipped and reports no result.
    """

    def __init__(self, executable: str = "mutagen", runner: Optional[ProcessRunner] = None):
        self.executable = executable
        self.runner = runner or ProcessRunner()
        self._in_flight: set[str] = set()

    def is_running(self, key: str) -> bool:
        return key in self._in_flight

    async def execute(self, args: list[str], key: Optional[str] = None) -> Optional[str]:
        """
        Run an engine command and return its stdout.

        Returns None when a call with the same key is already in flight.

        Raises:
            EngineNotFoundError: If the executable is missing.
            EngineError: If the engine exits non-zero.
        """
        if key is not None:
            if key in self._in_flight:
                logger.debug("Command %r already running, skipping", key)
                return None
            self._in_flight.add(key)
        try:
            result = await self.runner.run(self.executable, args)
        except CommandNotFoundError as e:
            logger.error("Engine executable not found: %s", self.executable)
            raise EngineNotFoundError(e.message, returncode=e.returncode) from e
        except ProcessError as e:
            logger.error("Command failed: %s", e.message)
            raise EngineError(e.message, returncode=e.returncode) from e
        finally:
            if key is not None:
                self._in_flight.discard(key)
        return result.stdout

    # Installation and daemon

    async def version(self) -> str:
        try:
            output = await self.execute(["version"], key="version")
        except EngineError:
            return "unknown"
        return output.strip() if output else "unknown"

    async def check_installation(self) -> bool:
        try:
            await self.execute(["version"])
        except EngineError:
            return False
        return True

    async def daemon_status(self) -> DaemonStatus:
        try:
            await self.list_sessions()
        except EngineNotFoundError:
            return DaemonStatus(running=False)
        except EngineError as e:
            if DAEMON_UNREACHABLE_MARKER in e.message:
                return DaemonStatus(running=False)
            return DaemonStatus(running=True)
        return DaemonStatus(running=True, version=await self.version())

    async def start_daemon(self) -> bool:
        """Start the daemon; False when a start is already in flight."""
        if await self.execute(["daemon", "start"], key="daemon-start") is None:
            return False
        logger.info("Engine daemon started")
        return True

    async def stop_daemon(self) -> bool:
        if await self.execute(["daemon", "stop"], key="daemon-stop") is None:
            return False
        logger.info("Engine daemon stopped")
        return True

    # Queries

    async def list_sessions(self, *, dedupe: bool = False) -> Optional[list[SyncSession]]:
        """
        List all sessions.

        "No sessions exist" is an empty list, not an error. With ``dedupe``
        the call is keyed and returns None when another keyed list is
        still running.
        """
        try:
            output = await self.execute(
                ["sync", "list", "--template", JSON_TEMPLATE],
                key="list" if dedupe else None,
            )
        except EngineError as e:
            if NO_SESSIONS_MARKER in e.message:
                return []
            raise
        if output is None:
            return None
        return _parse_sessions(output)

    async def get_session(self, identifier: str) -> Optional[SyncSession]:
        """Fetch one session; None if the engine no longer knows it."""
        try:
            output = await self.execute(["sync", "list", identifier, "--template", JSON_TEMPLATE])
        except EngineError as e:
            message = e.message.lower()
            if NO_SESSIONS_MARKER in message or any(marker in message for marker in MISSING_SESSION_MARKERS):
                return None
            raise
        sessions = _parse_sessions(output or "")
        return sessions[0] if sessions else None

    async def get_session_conflicts(self, identifier: str) -> list[Conflict]:
        session = await self.get_session(identifier)
        return session.conflicts if session else []

    async def find_session_by_endpoints(self, local_path: str, remote_path: str) -> Optional[SyncSession]:
        """First session whose local path and remote endpoint match."""
        local = normalize_path(local_path)
        for session in await self.list_sessions() or []:
            if not session.is_managed:
                continue
            if normalize_path(session.local_endpoint.path) != local:
                continue
            if remote_path_matches(session.remote_endpoint, remote_path):
                return session
        return None

    # Lifecycle

    async def create_session(
        self, alpha: str, beta: str, options: Optional[CreateSessionOptions] = None
    ) -> str:
        """
        Create a session and return its identifier.

        Returns an empty string when the identifier cannot be read from the
        engine output.
        """
        args = ["sync", "create", alpha, beta, *(options or CreateSessionOptions()).to_args()]
        output = await self.execute(args) or ""
        logger.info("Created sync session: %s <-> %s", alpha, beta)
        match = _CREATED_SESSION.search(output)
        return match.group(1) if match else ""

    async def recreate_session(
        self, identifier: str, alpha: str, beta: str, options: Optional[CreateSessionOptions] = None
    ) -> str:
        await self.terminate_session(identifier)
        return await self.create_session(alpha, beta, options)

    async def pause_session(self, identifier: str) -> None:
        await self.execute(["sync", "pause", identifier])
        logger.info("Paused session: %s", identifier)

    async def resume_session(self, identifier: str) -> None:
        await self.execute(["sync", "resume", identifier])
        logger.info("Resumed session: %s", identifier)

    async def terminate_session(self, identifier: str) -> None:
        await self.execute(["sync", "terminate", identifier])
        logger.info("Terminated session: %s", identifier)

    async def flush_session(self, identifier: str) -> None:
        await self.execute(["sync", "flush", identifier, "--skip-wait"])
        logger.info("Flushed session: %s", identifier)

    async def reset_session(self, identifier: str) -> None:
        await self.execute(["sync", "reset", identifier])
        logger.info("Reset session history: %s", identifier)

    # Streaming

    async def monitor(
        self,
        identifier: str,
        on_update: Callable[[SyncSession], Any],
        on_error: Callable[[Exception], Any],
    ) -> SessionMonitor:
        """Start a streaming monitor for one session."""
        monitor = SessionMonitor(self, identifier, on_update, on_error)
        await monitor.start()
        return monitor
