# Tests for syncshell.sync.profiles
# Connection profile persistence and deduplication

import re

from syncshell.sync.profiles import (
    PROFILE_STORAGE_KEY,
    ConnectionProfile,
    ConnectionProfileStore,
    UpsertProfileInput,
    normalize_ignore_paths,
    parse_mode,
)
from syncshell.sync.state import MemoryStore
from syncshell.utils.paths import normalize_path


def _input(**overrides) -> UpsertProfileInput:
    values = {
        "name": "app",
        "local_path": "/work/app",
        "remote_path": "deploy@build01:/srv/app",
        "workspace_folder": "/work",
        "mode": "two-way-safe",
    }
    values.update(overrides)
    return UpsertProfileInput(**values)


class TestHelpers:
    """Tests for ignore-path and mode normalization."""

    def test_ignore_paths(self):
        assert normalize_ignore_paths([" dist ", "dist", "", 3, "node_modules"]) == ["dist", "node_modules"]
        assert normalize_ignore_paths("dist") == []

    def test_parse_mode(self):
        assert parse_mode("one-way-replica") == "one-way-replica"
        assert parse_mode("sideways") is None
        assert parse_mode(None) is None


class TestConnectionProfileStore:
    """Tests for ConnectionProfileStore."""

    def test_upsert_creates(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        profile = store.upsert(_input())

        assert re.fullmatch(r"\d+-[0-9a-f]{16}", profile.id)
        assert profile.local_path == normalize_path("/work/app")
        assert profile.workspace_folder == normalize_path("/work")
        assert store.get_by_id(profile.id) == profile
        assert memory_store.get(PROFILE_STORAGE_KEY)[0]["remote_path"] == "deploy@build01:/srv/app"

    def test_upsert_same_triple_keeps_id(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        first = store.upsert(_input(last_session_identifier="s1"))
        second = store.upsert(_input(local_path="/work/app/", remote_path=" deploy@build01:/srv/app ", mode=None))

        assert second.id == first.id
        assert second.mode is None
        assert second.last_session_identifier == "s1"
        assert len(store.list()) == 1

    def test_different_remote_is_new_profile(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        store.upsert(_input())
        store.upsert(_input(remote_path="deploy@build02:/srv/app"))
        assert len(store.list()) == 2

    def test_name_falls_back_to_folder(self, memory_store: MemoryStore):
        profile = ConnectionProfileStore(memory_store).upsert(_input(name="  "))
        assert profile.name == "app"

    def test_list_newest_first(self, memory_store: MemoryStore):
        memory_store.set(
            PROFILE_STORAGE_KEY,
            [
                {"id": "old", "name": "o", "local_path": "/a", "remote_path": "h:/a",
                 "workspace_folder": "/", "updated_at": "2024-01-01T00:00:00.000+00:00"},
                {"id": "new", "name": "n", "local_path": "/b", "remote_path": "h:/b",
                 "workspace_folder": "/", "updated_at": "2025-01-01T00:00:00.000+00:00"},
            ],
        )
        assert [p.id for p in ConnectionProfileStore(memory_store).list()] == ["new", "old"]

    def test_malformed_records_dropped(self, memory_store: MemoryStore):
        memory_store.set(
            PROFILE_STORAGE_KEY,
            [
                "not a record",
                {"id": "no-path", "name": "x"},
                {"id": "ok", "name": "ok", "local_path": "/a", "remote_path": "h:/a",
                 "workspace_folder": "/", "updated_at": "2025-01-01T00:00:00.000+00:00",
                 "mode": "bogus", "ignore_vcs": "yes", "ignore_paths": ["x", "x"]},
            ],
        )
        profiles = ConnectionProfileStore(memory_store).list()
        assert [p.id for p in profiles] == ["ok"]
        assert profiles[0].mode is None
        assert profiles[0].ignore_vcs is None
        assert profiles[0].ignore_paths == ["x"]

    def test_invalid_storage_shape(self, memory_store: MemoryStore):
        memory_store.set(PROFILE_STORAGE_KEY, {"oops": True})
        assert ConnectionProfileStore(memory_store).list() == []

    def test_update_last_session_identifier(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        profile = store.upsert(_input())
        assert store.update_last_session_identifier(profile.id, "sess-9")
        assert store.get_by_id(profile.id).last_session_identifier == "sess-9"
        assert not store.update_last_session_identifier("missing", "x")

    def test_remove(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        profile = store.upsert(_input())
        assert store.remove(profile.id)
        assert not store.remove(profile.id)
        assert store.list() == []

    def test_get_for_workspace(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        store.upsert(_input())
        store.upsert(_input(local_path="/other/app", workspace_folder="/other"))
        assert [p.local_path for p in store.get_for_workspace("/work/")] == [normalize_path("/work/app")]

    def test_sorted_for_picker(self, memory_store: MemoryStore):
        store = ConnectionProfileStore(memory_store)
        in_workspace = store.upsert(_input())
        elsewhere = store.upsert(_input(local_path="/other/app", workspace_folder="/other"))
        order = [p.id for p in store.sorted_for_picker(["/work"])]
        assert order == [in_workspace.id, elsewhere.id]


class TestConnectionProfile:
    """Tests for ConnectionProfile conversion."""

    def test_create_options_merge_ignores(self):
        profile = ConnectionProfile(
            id="1", name="app", local_path="/a", remote_path="h:/a", workspace_folder="/",
            updated_at="now", mode="two-way-safe", ignore_vcs=True, ignore_paths=["dist"],
        )
        options = profile.to_create_options(["dist", ".cache"])
        assert options.name == "app"
        assert options.mode == "two-way-safe"
        assert options.ignore_vcs is True
        assert options.ignore_paths == ["dist", ".cache"]

    def test_to_dict_omits_unset(self):
        profile = ConnectionProfile(
            id="1", name="app", local_path="/a", remote_path="h:/a", workspace_folder="/", updated_at="now"
        )
        data = profile.to_dict()
        assert "mode" not in data
        assert "last_session_identifier" not in data
        assert data["ignore_paths"] == []
