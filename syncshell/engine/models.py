# syncshell Engine Models
# Session data parsed from the engine's JSON templates

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionStatus(str, Enum):
    """Synchronization loop state reported by the engine."""

    DISCONNECTED = "disconnected"
    HALTED_ON_ROOT_EMPTIED = "halted-on-root-emptied"
    HALTED_ON_ROOT_DELETION = "halted-on-root-deletion"
    HALTED_ON_ROOT_TYPE_CHANGE = "halted-on-root-type-change"
    CONNECTING_ALPHA = "connecting-alpha"
    CONNECTING_BETA = "connecting-beta"
    WATCHING = "watching"
    SCANNING = "scanning"
    WAITING_FOR_RESCAN = "waiting-for-rescan"
    RECONCILING = "reconciling"
    STAGING_ALPHA = "staging-alpha"
    STAGING_BETA = "staging-beta"
    TRANSITIONING = "transitioning"
    SAVING = "saving"

    @property
    def is_halted(self) -> bool:
        return self.value.startswith("halted-")


class EndpointProtocol(str, Enum):
    """Transport used to reach an endpoint."""

    LOCAL = "local"
    SSH = "ssh"
    DOCKER = "docker"


class SyncMode(str, Enum):
    """Synchronization mode accepted on session creation."""

    TWO_WAY_SAFE = "two-way-safe"
    TWO_WAY_RESOLVED = "two-way-resolved"
    ONE_WAY_SAFE = "one-way-safe"
    ONE_WAY_REPLICA = "one-way-replica"


class SymlinkMode(str, Enum):
    IGNORE = "ignore"
    PORTABLE = "portable"
    POSIX_RAW = "posix-raw"


class WatchMode(str, Enum):
    PORTABLE = "portable"
    FORCE_POLL = "force-poll"
    NO_WATCH = "no-watch"


class CompressionAlgorithm(str, Enum):
    NONE = "none"
    DEFLATE = "deflate"
    ZSTANDARD = "zstandard"


STATUS_LABELS: dict[str, str] = {
    "watching": "Watching",
    "scanning": "Scanning",
    "waiting-for-rescan": "Waiting for rescan",
    "staging-alpha": "Staging (local)",
    "staging-beta": "Staging (remote)",
    "transitioning": "Syncing",
    "reconciling": "Reconciling",
    "saving": "Saving",
    "connecting-alpha": "Connecting (local)",
    "connecting-beta": "Connecting (remote)",
    "disconnected": "Disconnected",
    "halted-on-root-emptied": "Halted: Root emptied",
    "halted-on-root-deletion": "Halted: Root deleted",
    "halted-on-root-type-change": "Halted: Root type changed",
}


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return 0


def _status_value(value: Any) -> str:
    """Status as a plain string; unknown engine states are kept verbatim."""
    if isinstance(value, SessionStatus):
        return value.value
    return str(value) if value else SessionStatus.DISCONNECTED.value


@dataclass
class StagingProgress:
    """Progress of the current staging cycle on one side."""

    path: str = ""
    received_size: int = 0
    expected_size: int = 0
    received_files: int = 0
    expected_files: int = 0

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["StagingProgress"]:
        if not isinstance(data, dict):
            return None
        return cls(
            path=str(data.get("path", "")),
            received_size=_as_int(data.get("receivedSize")),
            expected_size=_as_int(data.get("expectedSize", data.get("totalSize"))),
            received_files=_as_int(data.get("receivedFiles", data.get("receivedCount"))),
            expected_files=_as_int(data.get("expectedFiles", data.get("totalCount"))),
        )


@dataclass
class Problem:
    """Scan or transition problem reported for a path."""

    path: str
    error: str

    @classmethod
    def from_dict(cls, data: Any) -> "Problem":
        if isinstance(data, dict):
            return cls(path=str(data.get("path", "")), error=str(data.get("error", "")))
        return cls(path="", error=str(data))


@dataclass
class Endpoint:
    """One side of a session."""

    protocol: str = EndpointProtocol.LOCAL.value
    path: str = ""
    host: Optional[str] = None
    user: Optional[str] = None
    connected: bool = False
    scanned: bool = False
    directories: int = 0
    files: int = 0
    total_file_size: int = 0
    scan_problems: list[Problem] = field(default_factory=list)
    transition_problems: list[Problem] = field(default_factory=list)
    staging_progress: Optional[StagingProgress] = None

    @property
    def is_local(self) -> bool:
        return self.protocol == EndpointProtocol.LOCAL.value

    @property
    def has_problems(self) -> bool:
        return bool(self.scan_problems or self.transition_problems)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "Endpoint":
        data = data if isinstance(data, dict) else {}
        return cls(
            protocol=str(data.get("protocol") or EndpointProtocol.LOCAL.value),
            path=str(data.get("path", "")),
            host=data.get("host") or None,
            user=data.get("user") or None,
            connected=bool(data.get("connected", False)),
            scanned=bool(data.get("scanned", False)),
            directories=_as_int(data.get("directories")),
            files=_as_int(data.get("files")),
            total_file_size=_as_int(data.get("totalFileSize")),
            scan_problems=[Problem.from_dict(p) for p in data.get("scanProblems") or []],
            transition_problems=[Problem.from_dict(p) for p in data.get("transitionProblems") or []],
            staging_progress=StagingProgress.from_dict(data.get("stagingProgress")),
        )


@dataclass
class Change:
    """A changed path inside a conflict, with old and new entry descriptors."""

    path: str
    old: Optional[dict[str, Any]] = None
    new: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Change":
        # Older engine templates render changes as bare path strings.
        if isinstance(data, str):
            return cls(path=data)
        if not isinstance(data, dict):
            return cls(path=str(data))
        old = data.get("old")
        new = data.get("new")
        return cls(
            path=str(data.get("path", "")),
            old=old if isinstance(old, dict) else None,
            new=new if isinstance(new, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "old": self.old, "new": self.new}


@dataclass
class Conflict:
    """Incompatible changes under one synchronization root."""

    root: str
    alpha_changes: list[Change] = field(default_factory=list)
    beta_changes: list[Change] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conflict":
        return cls(
            root=str(data.get("root", "")),
            alpha_changes=[Change.from_dict(c) for c in data.get("alphaChanges") or []],
            beta_changes=[Change.from_dict(c) for c in data.get("betaChanges") or []],
        )


@dataclass
class SyncSession:
    """
    A session as reported by ``sync list`` or ``sync monitor``.

    Fields the engine omits fall back to neutral defaults so a partial
    monitor payload never fails to parse.
    """

    identifier: str
    name: str = ""
    paused: bool = False
    status: str = SessionStatus.DISCONNECTED.value
    last_error: Optional[str] = None
    successful_cycles: int = 0
    conflicts: list[Conflict] = field(default_factory=list)
    alpha: Endpoint = field(default_factory=Endpoint)
    beta: Endpoint = field(default_factory=Endpoint)
    staging_progress: Optional[StagingProgress] = None
    labels: dict[str, str] = field(default_factory=dict)
    ignore_paths: list[str] = field(default_factory=list)
    ignore_vcs: Optional[bool] = None
    mode: Optional[str] = None
    creation_time: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncSession":
        ignore = data.get("ignore") if isinstance(data.get("ignore"), dict) else {}
        vcs = ignore.get("vcs")
        mode = data.get("mode")
        if isinstance(mode, dict):
            mode = mode.get("mode") or mode.get("synchronizationMode")
        return cls(
            identifier=str(data.get("identifier", "")),
            name=str(data.get("name") or ""),
            paused=bool(data.get("paused", False)),
            status=_status_value(data.get("status")),
            last_error=data.get("lastError") or None,
            successful_cycles=_as_int(data.get("successfulCycles")),
            conflicts=[Conflict.from_dict(c) for c in data.get("conflicts") or [] if isinstance(c, dict)],
            alpha=Endpoint.from_dict(data.get("alpha")),
            beta=Endpoint.from_dict(data.get("beta")),
            staging_progress=StagingProgress.from_dict(data.get("stagingProgress")),
            labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
            ignore_paths=[str(p) for p in ignore.get("paths") or []],
            ignore_vcs=vcs if isinstance(vcs, bool) else None,
            mode=str(mode) if mode else None,
            creation_time=str(data.get("creationTime") or ""),
        )

    @property
    def is_local_alpha(self) -> bool:
        return self.alpha.is_local

    @property
    def is_managed(self) -> bool:
        """Exactly one endpoint is local; anything else is foreign."""
        return self.alpha.is_local != self.beta.is_local

    @property
    def local_endpoint(self) -> Endpoint:
        return self.alpha if self.alpha.is_local else self.beta

    @property
    def remote_endpoint(self) -> Endpoint:
        return self.beta if self.alpha.is_local else self.alpha

    @property
    def staging_received_size(self) -> int:
        """Received bytes of the current staging cycle, wherever reported."""
        for progress in (self.staging_progress, self.alpha.staging_progress, self.beta.staging_progress):
            if progress is not None:
                return progress.received_size
        return 0

    @property
    def has_errors(self) -> bool:
        return bool(self.last_error or self.alpha.has_problems or self.beta.has_problems)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


@dataclass
class CreateSessionOptions:
    """Options for ``sync create``; None means the engine default."""

    name: Optional[str] = None
    labels: dict[str, str] = field(default_factory=dict)
    paused: bool = False
    mode: Optional[str] = None
    ignore_vcs: Optional[bool] = None
    ignore_paths: list[str] = field(default_factory=list)
    symlink_mode: Optional[str] = None
    watch_mode: Optional[str] = None
    compression: Optional[str] = None

    def to_args(self) -> list[str]:
        """Render as engine command-line flags."""
        args: list[str] = []
        if self.name:
            args += ["--name", self.name]
        for key, value in self.labels.items():
            args += ["--label", f"{key}={value}"]
        if self.paused:
            args.append("--paused")
        if self.mode:
            args += ["--mode", self.mode]
        if self.ignore_vcs is True:
            args.append("--ignore-vcs")
        elif self.ignore_vcs is False:
            args.append("--no-ignore-vcs")
        for path in self.ignore_paths:
            args += ["--ignore", path]
        if self.symlink_mode:
            args += ["--symlink-mode", self.symlink_mode]
        if self.watch_mode:
            args += ["--watch-mode", self.watch_mode]
        if self.compression:
            args += ["--compression", self.compression]
        return args


@dataclass
class DaemonStatus:
    running: bool
    version: Optional[str] = None


@dataclass
class SessionSummary:
    """Flattened per-session view for lists and pickers."""

    id: str
    name: str
    status: str
    status_label: str
    paused: bool
    local_path: str
    remote_path: str
    remote_host: Optional[str]
    file_count: int
    total_size: int
    has_errors: bool
    has_conflicts: bool


def status_label(status: str, paused: bool) -> str:
    """Human label for a session state; paused wins over any status."""
    if paused:
        return "Paused"
    return STATUS_LABELS.get(status, status)


def to_session_summary(session: SyncSession) -> SessionSummary:
    local = session.local_endpoint
    remote = session.remote_endpoint
    return SessionSummary(
        id=session.identifier,
        name=session.name or session.identifier[:8],
        status=session.status,
        status_label=status_label(session.status, session.paused),
        paused=session.paused,
        local_path=local.path,
        remote_path=remote.path,
        remote_host=remote.host,
        file_count=local.files,
        total_size=local.total_file_size,
        has_errors=session.has_errors,
        has_conflicts=session.has_conflicts,
    )


def format_file_size(size: Any) -> str:
    """
    Format a byte count with 1024-based units.

    Non-numeric, negative or non-finite input renders as ``0 B``.
    """
    if isinstance(size, bool) or not isinstance(size, (int, float)) or not math.isfinite(size) or size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    index = 0
    value = float(size)
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"
