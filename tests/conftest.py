# syncshell Test Fixtures
# Pytest fixtures and fakes for syncshell tests

import asyncio
import inspect
import json
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any, Optional

import pytest

from syncshell.engine.endpoints import remote_path_matches
from syncshell.engine.models import (
    Conflict,
    CreateSessionOptions,
    DaemonStatus,
    Endpoint,
    SyncSession,
)
from syncshell.engine.process import ProcessResult
from syncshell.sync.state import MemoryStore
from syncshell.utils.paths import normalize_path


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a temporary home directory."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SYNCSHELL_CONFIG", raising=False)
    return home


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


# Session payloads


def session_dict(
    identifier: str = "sess-1",
    *,
    name: str = "",
    local: str = "/work/app",
    remote: str = "/srv/app",
    host: Optional[str] = "build01",
    user: Optional[str] = "deploy",
    protocol: str = "ssh",
    paused: bool = False,
    status: str = "watching",
    conflicts: Optional[list[dict]] = None,
    local_is_alpha: bool = True,
    **extra: Any,
) -> dict:
    """Engine JSON for one session, local endpoint on alpha by default."""
    local_endpoint = {"protocol": "local", "path": local, "connected": True}
    remote_endpoint = {"protocol": protocol, "path": remote, "connected": True}
    if host:
        remote_endpoint["host"] = host
    if user:
        remote_endpoint["user"] = user
    alpha, beta = (local_endpoint, remote_endpoint) if local_is_alpha else (remote_endpoint, local_endpoint)
    data = {
        "identifier": identifier,
        "name": name,
        "paused": paused,
        "status": status,
        "alpha": alpha,
        "beta": beta,
        "conflicts": conflicts or [],
    }
    data.update(extra)
    return data


def make_session(identifier: str = "sess-1", **kwargs: Any) -> SyncSession:
    return SyncSession.from_dict(session_dict(identifier, **kwargs))


def conflict_dict(root: str, alpha: Optional[list] = None, beta: Optional[list] = None) -> dict:
    return {
        "root": root,
        "alphaChanges": alpha if alpha is not None else [{"path": root, "old": None, "new": {"kind": "file"}}],
        "betaChanges": beta if beta is not None else [{"path": root, "old": None, "new": {"kind": "file", "digest": "b"}}],
    }


def make_conflict(root: str, **kwargs: Any) -> Conflict:
    return Conflict.from_dict(conflict_dict(root, **kwargs))


# Process fakes


class FakeProcess:
    """Stand-in for an asyncio subprocess; create inside a running loop."""

    def __init__(self, lines: tuple = (), returncode: int = 0, stderr: bytes = b"", finished: bool = True):
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        for line in lines:
            text = line if isinstance(line, str) else json.dumps(line)
            self.stdout.feed_data((text + "\n").encode("utf-8"))
        if finished:
            self.stdout.feed_eof()
        self.stderr.feed_data(stderr)
        self.stderr.feed_eof()
        self._final = returncode
        self.returncode: Optional[int] = None
        self.killed = False

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9
        self.stdout.feed_eof()

    async def wait(self) -> int:
        if self.returncode is None:
            self.returncode = self._final
        return self.returncode


class FakeRunner:
    """
    Scripted process runner.

    Rules match on a prefix of ``[command, *args]``. Each rule holds a queue
    of responses; the last one repeats. A response is stdout text, a
    ProcessResult, an exception to raise, or a callable (sync or async).
    """

    def __init__(self):
        self.calls: list[tuple[str, list[str]]] = []
        self.spawned: list[tuple[str, list[str]]] = []
        self._rules: list[tuple[tuple[str, ...], list[Any]]] = []
        self.spawn_result: Any = None

    def on(self, *prefix: str, responses: Any = "") -> "FakeRunner":
        queue = list(responses) if isinstance(responses, list) else [responses]
        self._rules.insert(0, (prefix, queue))
        return self

    def commands(self) -> list[list[str]]:
        return [[command, *args] for command, args in self.calls]

    async def run(self, command: str, args=(), *, check: bool = True, input: Optional[str] = None) -> ProcessResult:
        argv = [command, *args]
        self.calls.append((command, list(args)))
        for prefix, queue in self._rules:
            if tuple(argv[: len(prefix)]) != prefix:
                continue
            response = queue.pop(0) if len(queue) > 1 else queue[0]
            if callable(response) and not isinstance(response, type):
                response = response(command, list(args))
                if inspect.isawaitable(response):
                    response = await response
            if isinstance(response, BaseException):
                raise response
            if isinstance(response, ProcessResult):
                return response
            return ProcessResult(stdout=response or "", stderr="", returncode=0)
        return ProcessResult(stdout="", stderr="", returncode=0)

    async def spawn(self, command: str, args=()):
        self.spawned.append((command, list(args)))
        result = self.spawn_result
        if callable(result):
            result = result()
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


# Engine fake


class FakeMonitor:
    def __init__(self, identifier: str, on_update, on_error):
        self.identifier = identifier
        self.on_update = on_update
        self.on_error = on_error
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


def _remote_endpoint(value: str) -> Endpoint:
    if value.startswith("docker://"):
        container, _, path = value[len("docker://") :].partition("/")
        return Endpoint(protocol="docker", host=container, path="/" + path, connected=True)
    if ":" not in value:
        return Endpoint(protocol="local", path=value, connected=True)
    host, _, path = value.partition(":")
    user = None
    if "@" in host:
        user, host = host.split("@", 1)
    return Endpoint(protocol="ssh", host=host, user=user, path=path, connected=True)


class FakeEngine:
    """In-memory engine client with the EngineClient coroutine surface."""

    executable = "mutagen"

    def __init__(self, sessions: tuple = (), runner: Optional[FakeRunner] = None):
        self.sessions: dict[str, SyncSession] = {s.identifier: s for s in sessions}
        self.runner = runner or FakeRunner()
        self.calls: list[tuple] = []
        self.failures: dict[str, list[BaseException]] = {}
        self.monitors: dict[str, FakeMonitor] = {}
        self.created_options: list[Optional[CreateSessionOptions]] = []
        self.create_returns: Optional[str] = None
        self.running = True
        self._next_id = 1

    def fail(self, method: str, *errors: BaseException) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def called(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)

    def add(self, session: SyncSession) -> SyncSession:
        self.sessions[session.identifier] = session
        return session

    async def list_sessions(self, *, dedupe: bool = False) -> Optional[list[SyncSession]]:
        self._record("list_sessions")
        return list(self.sessions.values())

    async def get_session(self, identifier: str) -> Optional[SyncSession]:
        self._record("get_session", identifier)
        return self.sessions.get(identifier)

    async def find_session_by_endpoints(self, local_path: str, remote_path: str) -> Optional[SyncSession]:
        self._record("find_session_by_endpoints", local_path, remote_path)
        local = normalize_path(local_path)
        for session in self.sessions.values():
            if session.is_managed and normalize_path(session.local_endpoint.path) == local:
                if remote_path_matches(session.remote_endpoint, remote_path):
                    return session
        return None

    async def create_session(self, alpha: str, beta: str, options: Optional[CreateSessionOptions] = None) -> str:
        self._record("create_session", alpha, beta)
        self.created_options.append(options)
        if self.create_returns is not None:
            return self.create_returns
        identifier = f"created-{self._next_id}"
        self._next_id += 1
        self.sessions[identifier] = SyncSession(
            identifier=identifier,
            name=(options.name if options and options.name else ""),
            status="watching",
            alpha=Endpoint(protocol="local", path=alpha, connected=True),
            beta=_remote_endpoint(beta),
            mode=options.mode if options else None,
        )
        return identifier

    async def recreate_session(
        self, identifier: str, alpha: str, beta: str, options: Optional[CreateSessionOptions] = None
    ) -> str:
        await self.terminate_session(identifier)
        return await self.create_session(alpha, beta, options)

    async def pause_session(self, identifier: str) -> None:
        self._record("pause_session", identifier)
        if identifier in self.sessions:
            self.sessions[identifier].paused = True

    async def resume_session(self, identifier: str) -> None:
        self._record("resume_session", identifier)
        if identifier in self.sessions:
            self.sessions[identifier].paused = False

    async def terminate_session(self, identifier: str) -> None:
        self._record("terminate_session", identifier)
        self.sessions.pop(identifier, None)

    async def flush_session(self, identifier: str) -> None:
        self._record("flush_session", identifier)

    async def reset_session(self, identifier: str) -> None:
        self._record("reset_session", identifier)

    async def daemon_status(self) -> DaemonStatus:
        self._record("daemon_status")
        return DaemonStatus(running=self.running, version="0.18.0" if self.running else None)

    async def start_daemon(self) -> bool:
        self._record("start_daemon")
        self.running = True
        return True

    async def stop_daemon(self) -> bool:
        self._record("stop_daemon")
        self.running = False
        return True

    async def monitor(self, identifier: str, on_update, on_error) -> FakeMonitor:
        self._record("monitor", identifier)
        monitor = FakeMonitor(identifier, on_update, on_error)
        self.monitors[identifier] = monitor
        return monitor


@pytest.fixture
def engine(runner: FakeRunner) -> FakeEngine:
    return FakeEngine(runner=runner)


class RecordingSleep:
    """Awaitable sleep that records requested delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()
