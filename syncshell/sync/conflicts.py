# syncshell Conflict Resolution
# Signature-based, idempotent application of one side of a conflict

import asyncio
import inspect
import json
import logging
import os
import posixpath
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from syncshell.engine.client import EngineClient, EngineError
from syncshell.engine.endpoints import ssh_target
from syncshell.engine.models import Change, Conflict, Endpoint, EndpointProtocol, SyncSession
from syncshell.engine.process import ProcessError, ProcessRunner
from syncshell.utils.paths import copy_or_delete, ensure_dir, get_path_state, is_sub_path, quote_shell, safe_delete

logger = logging.getLogger(__name__)

Direction = Literal["local", "remote"]
DIRECTIONS: tuple[str, ...] = ("local", "remote")

ConfirmCallback = Callable[[int, int], Union[bool, Awaitable[bool]]]


class ConflictError(Exception):
    """Base class for conflict resolution failures."""


class PathEscapeError(ConflictError):
    """A conflict root resolves outside its synchronization root."""


class EndpointResolutionError(ConflictError):
    """The session has no local endpoint to resolve against."""


class UnsupportedEndpointError(ConflictError):
    """The endpoint cannot be changed automatically; run the fallback by hand."""

    def __init__(self, message: str, fallback_command: str = ""):
        self.fallback_command = fallback_command
        super().__init__(message)


class RemotePathStateError(ConflictError):
    """The remote probe printed something other than a path state."""


class SessionNotFoundError(ConflictError):
    """The engine no longer knows the session."""


# Signatures


def _serialize_entry(entry: Any) -> str:
    if not entry:
        return "null"
    if not isinstance(entry, dict):
        return str(entry)
    return json.dumps(entry, sort_keys=True, separators=(",", ":"))


def _serialize_changes(changes: list[Change]) -> list[str]:
    return sorted(f"{c.path}|{_serialize_entry(c.old)}|{_serialize_entry(c.new)}" for c in changes)


def conflict_signature(conflict: Conflict) -> str:
    """
    Canonical fingerprint of a conflict's content.

    Change lists are sorted, so the order the engine reports them in does
    not matter.
    """
    payload = {
        "root": conflict.root,
        "alphaChanges": _serialize_changes(conflict.alpha_changes),
        "betaChanges": _serialize_changes(conflict.beta_changes),
    }
    return json.dumps(payload, separators=(",", ":"))


def conflict_fingerprint(conflicts: list[Conflict]) -> str:
    """Sorted, joined signatures of all conflicts of a session."""
    return "\n".join(sorted(conflict_signature(c) for c in conflicts))


def find_conflict_in_session(session: SyncSession, reference: Conflict) -> Optional[Conflict]:
    """
    Locate the live counterpart of a conflict.

    Prefers an exact root and signature match, then any conflict at the
    same root.
    """
    signature = conflict_signature(reference)
    for conflict in session.conflicts:
        if conflict.root == reference.root and conflict_signature(conflict) == signature:
            return conflict
    for conflict in session.conflicts:
        if conflict.root == reference.root:
            return conflict
    return None


# Path resolution


def split_conflict_root(root: str) -> list[str]:
    return [segment for segment in root.replace("\\", "/").split("/") if segment and segment != "."]


def resolve_local_conflict_path(local_root: str, conflict_root: str) -> str:
    base = os.path.abspath(os.path.expanduser(local_root))
    target = os.path.normpath(os.path.join(base, *split_conflict_root(conflict_root)))
    if not is_sub_path(base, target):
        raise PathEscapeError(f"Conflict path escapes local root: {conflict_root}")
    return target


def resolve_remote_conflict_path(remote_root: str, conflict_root: str) -> str:
    base = posixpath.normpath(remote_root)
    target = posixpath.normpath(posixpath.join(base, *split_conflict_root(conflict_root)))
    if not is_sub_path(base, target, posix=True):
        raise PathEscapeError(f"Conflict path escapes remote root: {conflict_root}")
    return target


def resolve_endpoint_conflict_path(endpoint: Endpoint, conflict_root: str) -> str:
    if endpoint.is_local:
        return resolve_local_conflict_path(endpoint.path, conflict_root)
    return resolve_remote_conflict_path(endpoint.path, conflict_root)


def conflict_endpoints(session: SyncSession) -> tuple[Endpoint, Endpoint]:
    """(local, remote) endpoints of a session."""
    if session.alpha.is_local:
        return session.alpha, session.beta
    if session.beta.is_local:
        return session.beta, session.alpha
    raise EndpointResolutionError("Unable to find a local endpoint for this session")


def conflict_paths(session: SyncSession, conflict: Conflict) -> tuple[str, str]:
    """Resolved (local, remote) paths of a conflict root."""
    local, remote = conflict_endpoints(session)
    return (
        resolve_local_conflict_path(local.path, conflict.root),
        resolve_endpoint_conflict_path(remote, conflict.root),
    )


def conflict_remote_display(session: SyncSession, conflict_root: str) -> str:
    _, remote = conflict_endpoints(session)
    path = resolve_endpoint_conflict_path(remote, conflict_root)
    if remote.protocol == EndpointProtocol.SSH.value:
        return f"{_require_ssh_target(remote)}:{path}"
    if remote.protocol == EndpointProtocol.DOCKER.value:
        return f"docker://{remote.host or '<container>'}{path}"
    return path


def _require_ssh_target(endpoint: Endpoint) -> str:
    target = ssh_target(endpoint)
    if target is None:
        raise EndpointResolutionError("SSH endpoint host is missing")
    return target


# Copyable scripts


def _local_copy_script(source: str, destination: str) -> str:
    return "\n".join(
        [
            f"if [ -e {quote_shell(source)} ]; then",
            f"  rm -rf {quote_shell(destination)}",
            f"  mkdir -p {quote_shell(os.path.dirname(destination))}",
            f"  cp -R {quote_shell(source)} {quote_shell(destination)}",
            "else",
            f"  rm -rf {quote_shell(destination)}",
            "fi",
        ]
    )


def _probe_command(remote_path: str) -> str:
    quoted = quote_shell(remote_path)
    return f"if [ -d {quoted} ]; then echo directory; elif [ -e {quoted} ]; then echo file; else echo missing; fi"


def _local_to_ssh_script(local_path: str, endpoint: Endpoint, remote_path: str) -> str:
    quoted_remote = quote_shell(remote_path)
    prepare = f"mkdir -p {quote_shell(posixpath.dirname(remote_path))} && rm -rf {quoted_remote}"
    return "\n".join(
        [
            f"LOCAL={quote_shell(local_path)}",
            f"HOST={quote_shell(_require_ssh_target(endpoint))}",
            'if [ -e "$LOCAL" ]; then',
            f'  ssh "$HOST" {quote_shell(prepare)}',
            '  if [ -d "$LOCAL" ]; then',
            f'    scp -r "$LOCAL" "$HOST:"{quote_shell(quoted_remote)}',
            "  else",
            f'    scp "$LOCAL" "$HOST:"{quote_shell(quoted_remote)}',
            "  fi",
            "else",
            f'  ssh "$HOST" {quote_shell(f"rm -rf {quoted_remote}")}',
            "fi",
        ]
    )


def _ssh_to_local_script(endpoint: Endpoint, remote_path: str, local_path: str) -> str:
    quoted_remote = quote_shell(remote_path)
    return "\n".join(
        [
            f"LOCAL={quote_shell(local_path)}",
            f"HOST={quote_shell(_require_ssh_target(endpoint))}",
            f'STATE=$(ssh "$HOST" {quote_shell(_probe_command(remote_path))})',
            'if [ "$STATE" = "missing" ]; then',
            '  rm -rf "$LOCAL"',
            "else",
            '  TMP="$(dirname "$LOCAL")/.$(basename "$LOCAL").syncshell-pull"',
            '  mkdir -p "$(dirname "$LOCAL")" && rm -rf "$TMP"',
            '  FLAGS=""',
            '  [ "$STATE" = "directory" ] && FLAGS="-r"',
            f'  scp $FLAGS "$HOST:"{quote_shell(quoted_remote)} "$TMP" && rm -rf "$LOCAL" && mv "$TMP" "$LOCAL"',
            "fi",
        ]
    )


def _docker_script(local_path: str, endpoint: Endpoint, remote_path: str, direction: Direction) -> str:
    container = endpoint.host or "<container>"
    lines = ["# Container endpoints are not applied automatically.", "# Run manually:"]
    if direction == "local":
        lines.append(f"docker exec {quote_shell(container)} rm -rf {quote_shell(remote_path)}")
        lines.append(
            f"[ -e {quote_shell(local_path)} ] && "
            f"docker cp {quote_shell(local_path)} {quote_shell(f'{container}:{remote_path}')}"
        )
    else:
        lines.append(f"rm -rf {quote_shell(local_path)}")
        lines.append(f"docker cp {quote_shell(f'{container}:{remote_path}')} {quote_shell(local_path)}")
    return "\n".join(lines)


def build_accept_command(session: SyncSession, conflict: Conflict, direction: Direction) -> str:
    """Shell script that applies ``direction`` for one conflict by hand."""
    local, remote = conflict_endpoints(session)
    local_path, remote_path = conflict_paths(session, conflict)
    if remote.is_local:
        if direction == "local":
            return _local_copy_script(local_path, remote_path)
        return _local_copy_script(remote_path, local_path)
    if remote.protocol == EndpointProtocol.SSH.value:
        if direction == "local":
            return _local_to_ssh_script(local_path, remote, remote_path)
        return _ssh_to_local_script(remote, remote_path, local_path)
    return _docker_script(local_path, remote, remote_path, direction)


# Handled-conflict bookkeeping


@dataclass
class HandledConflictRecord:
    direction: str
    signature: str
    timestamp: float


class HandledConflictTracker:
    """
    In-memory record of conflicts already resolved, per session and root.

    A record only excludes a conflict while the live conflict at that root
    still carries the recorded signature.
    """

    def __init__(self):
        self._records: dict[str, dict[str, HandledConflictRecord]] = {}

    def get(self, session_identifier: str, root: str) -> Optional[HandledConflictRecord]:
        return self._records.get(session_identifier, {}).get(root)

    def count(self, session_identifier: str) -> int:
        return len(self._records.get(session_identifier, {}))

    def mark(self, session_identifier: str, conflict: Conflict, direction: str) -> HandledConflictRecord:
        record = HandledConflictRecord(
            direction=direction,
            signature=conflict_signature(conflict),
            timestamp=time.time(),
        )
        self._records.setdefault(session_identifier, {})[conflict.root] = record
        return record

    def split(self, session_identifier: str, conflicts: list[Conflict]) -> tuple[list[Conflict], int]:
        """Partition conflicts into (pending, excluded count)."""
        records = self._records.get(session_identifier)
        if not records:
            return list(conflicts), 0
        pending: list[Conflict] = []
        excluded = 0
        for conflict in conflicts:
            record = records.get(conflict.root)
            if record is not None and record.signature == conflict_signature(conflict):
                excluded += 1
                continue
            pending.append(conflict)
        return pending, excluded

    def prune(self, sessions: list[SyncSession]) -> None:
        """Drop records whose live conflict is gone or has changed."""
        by_id = {session.identifier: session for session in sessions}
        for session_identifier in list(self._records):
            session = by_id.get(session_identifier)
            if session is None or not session.conflicts:
                del self._records[session_identifier]
                continue
            live = {conflict.root: conflict_signature(conflict) for conflict in session.conflicts}
            records = self._records[session_identifier]
            for root in list(records):
                if live.get(root) != records[root].signature:
                    del records[root]
            if not records:
                del self._records[session_identifier]

    def clear(self, session_identifier: str) -> None:
        self._records.pop(session_identifier, None)


# Resolution


@dataclass
class AcceptResult:
    root: str
    direction: str
    already_resolved: bool = False


@dataclass
class BatchAcceptResult:
    """Outcome counts of an accept-all run."""

    direction: str
    total: int = 0
    excluded: int = 0
    attempted: int = 0
    succeeded: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    fallbacks: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False
    converged: bool = False
    convergence_error: Optional[str] = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def outcome(self) -> str:
        """One of: noop, cancelled, success, stale, partial, failure."""
        if self.cancelled:
            return "cancelled"
        if self.attempted == 0:
            return "noop"
        if self.failed == 0:
            return "success" if self.converged else "stale"
        return "partial" if self.succeeded else "failure"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ConflictResolver:
    """Applies a chosen side of conflicts and drives engine convergence."""

    def __init__(
        self,
        client: EngineClient,
        runner: Optional[ProcessRunner] = None,
        tracker: Optional[HandledConflictTracker] = None,
    ):
        self.client = client
        self.runner = runner or client.runner
        self.tracker = tracker or HandledConflictTracker()

    async def _require_session(self, identifier: str) -> SyncSession:
        session = await self.client.get_session(identifier)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {identifier}")
        return session

    async def accept(self, session_identifier: str, conflict: Conflict, direction: Direction) -> AcceptResult:
        """
        Resolve one conflict toward ``direction`` against fresh engine state.

        A conflict no longer reported at its root is left alone and
        reported as already resolved.
        """
        session = await self._require_session(session_identifier)
        latest = find_conflict_in_session(session, conflict)
        if latest is None:
            logger.info("Conflict %r is already resolved", conflict.root)
            return AcceptResult(root=conflict.root, direction=direction, already_resolved=True)

        await self.apply(session, latest, direction)
        self.tracker.mark(session.identifier, latest, direction)
        logger.info("Accepted %s version for %r", direction, latest.root)
        return AcceptResult(root=latest.root, direction=direction)

    async def accept_all(
        self,
        session_identifier: str,
        direction: Direction,
        confirm: Optional[ConfirmCallback] = None,
    ) -> BatchAcceptResult:
        """
        Resolve every pending conflict of a session toward ``direction``.

        Conflicts already handled with an unchanged signature are skipped.
        A session without a local endpoint fails before anything is asked.
        ``confirm(pending, excluded)`` is asked once before any change.
        Failures are collected per conflict. Only a fully successful batch
        resets and flushes the session.
        """
        session = await self._require_session(session_identifier)
        conflict_endpoints(session)
        result = BatchAcceptResult(direction=direction, total=len(session.conflicts))
        if not session.conflicts:
            self.tracker.clear(session.identifier)
            return result

        pending, result.excluded = self.tracker.split(session.identifier, session.conflicts)
        if not pending:
            return result

        if confirm is not None and not await _maybe_await(confirm(len(pending), result.excluded)):
            result.cancelled = True
            return result

        for conflict in pending:
            result.attempted += 1
            try:
                await self.apply(session, conflict, direction)
            except (ConflictError, ProcessError, EngineError, OSError) as e:
                logger.warning("Failed to accept %s version for %r: %s", direction, conflict.root, e)
                result.failures.append((conflict.root, str(e)))
                if isinstance(e, UnsupportedEndpointError) and e.fallback_command:
                    result.fallbacks.append((conflict.root, e.fallback_command))
                continue
            self.tracker.mark(session.identifier, conflict, direction)
            result.succeeded += 1

        if result.failed == 0:
            try:
                await self.client.reset_session(session.identifier)
                await self.client.flush_session(session.identifier)
            except EngineError as e:
                logger.error("Conflicts resolved but reset+flush failed: %s", e.message)
                result.convergence_error = e.message
            else:
                self.tracker.clear(session.identifier)
                result.converged = True
        return result

    async def apply(self, session: SyncSession, conflict: Conflict, direction: Direction) -> None:
        """Make the conflict root on the other side mirror the chosen side."""
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction}")
        _, remote = conflict_endpoints(session)
        local_path, remote_path = conflict_paths(session, conflict)

        if remote.is_local:
            source, destination = (local_path, remote_path) if direction == "local" else (remote_path, local_path)
            await asyncio.to_thread(copy_or_delete, Path(source), Path(destination))
            return

        if remote.protocol == EndpointProtocol.SSH.value:
            if direction == "local":
                await self._local_to_ssh(local_path, remote, remote_path)
            else:
                await self._ssh_to_local(remote, remote_path, local_path)
            return

        raise UnsupportedEndpointError(
            f"{remote.protocol} endpoints are not supported for auto-apply; run the fallback command",
            fallback_command=build_accept_command(session, conflict, direction),
        )

    async def _local_to_ssh(self, local_path: str, endpoint: Endpoint, remote_path: str) -> None:
        target = _require_ssh_target(endpoint)
        state = await asyncio.to_thread(get_path_state, Path(local_path))
        quoted_remote = quote_shell(remote_path)

        if state == "missing":
            await self.runner.run("ssh", [target, f"rm -rf {quoted_remote}"])
            return

        await self.runner.run(
            "ssh",
            [target, f"mkdir -p {quote_shell(posixpath.dirname(remote_path))} && rm -rf {quoted_remote}"],
        )
        args = ["-r"] if state == "directory" else []
        await self.runner.run("scp", [*args, local_path, f"{target}:{quoted_remote}"])

    async def _ssh_to_local(self, endpoint: Endpoint, remote_path: str, local_path: str) -> None:
        target = _require_ssh_target(endpoint)
        state = await self.remote_path_state(endpoint, remote_path)
        destination = Path(local_path)

        if state == "missing":
            await asyncio.to_thread(safe_delete, destination, missing_ok=True)
            return

        # Pull beside the destination, then swap it in
        staging = _staging_path(destination)
        await asyncio.to_thread(_clear_destination, staging)
        args = ["-r"] if state == "directory" else []
        try:
            await self.runner.run("scp", [*args, f"{target}:{quote_shell(remote_path)}", str(staging)])
            await asyncio.to_thread(_replace_destination, staging, destination)
        except Exception:
            await asyncio.to_thread(safe_delete, staging, missing_ok=True)
            raise

    async def remote_path_state(self, endpoint: Endpoint, remote_path: str) -> str:
        """Probe a remote path over ssh: "directory", "file" or "missing"."""
        result = await self.runner.run("ssh", [_require_ssh_target(endpoint), _probe_command(remote_path)])
        lines = result.stdout.strip().splitlines()
        state = lines[-1].strip() if lines else ""
        if state not in ("directory", "file", "missing"):
            raise RemotePathStateError(f"Unexpected remote path state: {state or '(empty output)'}")
        return state


def _staging_path(destination: Path) -> Path:
    return destination.parent / f".{destination.name}.syncshell-{os.getpid()}"


def _clear_destination(path: Path) -> None:
    safe_delete(path, missing_ok=True)
    ensure_dir(path.parent)


def _replace_destination(staging: Path, destination: Path) -> None:
    if not staging.exists() and not staging.is_symlink():
        raise FileNotFoundError(f"Pulled copy missing: {staging}")
    safe_delete(destination, missing_ok=True)
    os.replace(staging, destination)
