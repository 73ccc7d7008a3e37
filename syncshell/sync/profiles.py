# syncshell Connection Profiles
# Persisted, deduplicated recipes for reconnecting a local/remote pair

from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from syncshell.engine.models import CreateSessionOptions, SyncMode
from syncshell.sync.state import KeyValueStore
from syncshell.utils.hashing import short_hash
from syncshell.utils.paths import is_path_related, normalize_path

logger = logging.getLogger(__name__)

PROFILE_STORAGE_KEY = "connection_profiles.v1"
_REQUIRED_FIELDS = ("id", "name", "local_path", "remote_path", "workspace_folder", "updated_at")
_VALID_MODES = {mode.value for mode in SyncMode}


def normalize_ignore_paths(value: Any) -> list[str]:
    """Trimmed, deduplicated string entries in first-seen order."""
    if not isinstance(value, (list, tuple)):
        return []
    seen: dict[str, None] = {}
    for candidate in value:
        if isinstance(candidate, str) and candidate.strip():
            seen.setdefault(candidate.strip(), None)
    return list(seen)


def parse_mode(value: Any) -> Optional[str]:
    """Known synchronization mode or None."""
    if isinstance(value, SyncMode):
        return value.value
    return value if value in _VALID_MODES else None


@dataclass
class ConnectionProfile:
    """How to recreate a session for one (workspace, local, remote) triple."""

    id: str
    name: str
    local_path: str
    remote_path: str
    workspace_folder: str
    updated_at: str
    mode: Optional[str] = None
    ignore_vcs: Optional[bool] = None
    ignore_paths: list[str] = field(default_factory=list)
    last_session_identifier: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.workspace_folder, self.local_path, self.remote_path)

    def to_create_options(self, extra_ignores: Iterable[str] = ()) -> CreateSessionOptions:
        return CreateSessionOptions(
            name=self.name,
            mode=self.mode,
            ignore_vcs=self.ignore_vcs,
            ignore_paths=normalize_ignore_paths([*self.ignore_paths, *extra_ignores]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting unset optional fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ConnectionProfile"]:
        """
        Parse a stored record.

        Returns None for records missing a required string field.
        """
        if not isinstance(data, dict):
            logger.warning("Skipping malformed connection profile: non-mapping value")
            return None
        for name in _REQUIRED_FIELDS:
            value = data.get(name)
            if not isinstance(value, str) or not value:
                logger.warning("Skipping malformed connection profile: missing or invalid %s", name)
                return None
        ignore_vcs = data.get("ignore_vcs")
        last = data.get("last_session_identifier")
        return cls(
            id=data["id"],
            name=data["name"],
            local_path=normalize_path(data["local_path"]),
            remote_path=data["remote_path"],
            workspace_folder=normalize_path(data["workspace_folder"]),
            updated_at=data["updated_at"],
            mode=parse_mode(data.get("mode")),
            ignore_vcs=ignore_vcs if isinstance(ignore_vcs, bool) else None,
            ignore_paths=normalize_ignore_paths(data.get("ignore_paths")),
            last_session_identifier=last if isinstance(last, str) and last else None,
        )


@dataclass
class UpsertProfileInput:
    name: str
    local_path: str
    remote_path: str
    workspace_folder: str
    mode: Optional[str] = None
    ignore_vcs: Optional[bool] = None
    ignore_paths: list[str] = field(default_factory=list)
    last_session_identifier: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class ConnectionProfileStore:
    """
    Connection profiles kept under one storage key.

    Reads always re-parse the backing store. Writes re-read the full list
    right before saving.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    def _load(self) -> list[ConnectionProfile]:
        raw = self.storage.get(PROFILE_STORAGE_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Invalid profile storage shape for key %s", PROFILE_STORAGE_KEY)
            return []
        profiles = []
        for record in raw:
            profile = ConnectionProfile.from_dict(record)
            if profile is not None:
                profiles.append(profile)
        return profiles

    def _save(self, profiles: list[ConnectionProfile]) -> None:
        self.storage.set(PROFILE_STORAGE_KEY, [profile.to_dict() for profile in profiles])

    def list(self) -> list[ConnectionProfile]:
        """All valid profiles, most recently updated first."""
        return sorted(self._load(), key=lambda p: p.updated_at, reverse=True)

    def get_by_id(self, profile_id: str) -> Optional[ConnectionProfile]:
        for profile in self._load():
            if profile.id == profile_id:
                return profile
        return None

    def get_for_workspace(self, folder: str) -> list[ConnectionProfile]:
        workspace = normalize_path(folder)
        return [profile for profile in self.list() if profile.workspace_folder == workspace]

    def upsert(self, data: UpsertProfileInput) -> ConnectionProfile:
        """
        Create or replace the profile for the input's triple.

        An existing profile keeps its id, and its last session identifier
        unless the input carries a new one.
        """
        workspace = normalize_path(data.workspace_folder)
        local = normalize_path(data.local_path)
        remote = data.remote_path.strip()

        profiles = self._load()
        existing = next((p for p in profiles if p.key == (workspace, local, remote)), None)

        profile = ConnectionProfile(
            id=existing.id if existing else self.create_id(workspace, local, remote),
            name=data.name.strip() or os.path.basename(local) or local,
            local_path=local,
            remote_path=remote,
            workspace_folder=workspace,
            updated_at=_now(),
            mode=parse_mode(data.mode),
            ignore_vcs=data.ignore_vcs,
            ignore_paths=normalize_ignore_paths(data.ignore_paths),
            last_session_identifier=data.last_session_identifier
            or (existing.last_session_identifier if existing else None),
        )

        retained = [p for p in profiles if p.id != profile.id]
        retained.append(profile)
        self._save(retained)
        logger.debug("Saved connection profile %s (%s)", profile.id, profile.name)
        return profile

    def update_last_session_identifier(self, profile_id: str, session_identifier: str) -> bool:
        profiles = self._load()
        for profile in profiles:
            if profile.id == profile_id:
                profile.last_session_identifier = session_identifier
                profile.updated_at = _now()
                self._save(profiles)
                return True
        return False

    def remove(self, profile_id: str) -> bool:
        profiles = self._load()
        retained = [p for p in profiles if p.id != profile_id]
        if len(retained) == len(profiles):
            return False
        self._save(retained)
        logger.info("Removed connection profile %s", profile_id)
        return True

    def sorted_for_picker(self, open_folders: Iterable[str]) -> list[ConnectionProfile]:
        """Profiles of the open workspace folders first, each group newest first."""
        folders = [normalize_path(folder) for folder in open_folders]

        def in_open_folder(profile: ConnectionProfile) -> bool:
            return any(is_path_related(profile.workspace_folder, folder) for folder in folders)

        profiles = self.list()
        return [p for p in profiles if in_open_folder(p)] + [p for p in profiles if not in_open_folder(p)]

    @staticmethod
    def create_id(workspace: str, local: str, remote: str) -> str:
        """Creation time in milliseconds plus a digest of the triple."""
        return f"{int(time.time() * 1000)}-{short_hash(workspace, local, remote)}"
