# Tests for syncshell.sync.state
# Persistent key/value storage

from pathlib import Path

import yaml

from syncshell.sync.state import MemoryStore, StateFile


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_default(self):
        assert MemoryStore().get("missing", []) == []

    def test_values_are_copied(self):
        store = MemoryStore()
        value = [{"id": "a"}]
        store.set("k", value)
        value.append({"id": "b"})
        store.get("k").append({"id": "c"})
        assert store.get("k") == [{"id": "a"}]


class TestStateFile:
    """Tests for StateFile."""

    def test_roundtrip(self, temp_dir: Path):
        state = StateFile(temp_dir / "state.yaml")
        state.set("profiles", [{"id": "a"}])
        assert state.get("profiles") == [{"id": "a"}]

    def test_document_layout(self, temp_dir: Path):
        path = temp_dir / "state.yaml"
        StateFile(path).set("k", 1)
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert document["version"] == "1.0"
        assert "updated_at" in document
        assert document["values"] == {"k": 1}

    def test_reread_on_every_get(self, temp_dir: Path):
        path = temp_dir / "state.yaml"
        reader = StateFile(path)
        StateFile(path).set("k", "from another process")
        assert reader.get("k") == "from another process"

    def test_missing_file(self, temp_dir: Path):
        assert StateFile(temp_dir / "none.yaml").get("k", "default") == "default"

    def test_unreadable_file_is_empty(self, temp_dir: Path):
        path = temp_dir / "state.yaml"
        path.write_text("values: [unclosed\n  - : :", encoding="utf-8")
        state = StateFile(path)
        assert state.get("k") is None
        state.set("k", 2)
        assert state.get("k") == 2

    def test_json_document_reads_as_yaml(self, temp_dir: Path):
        path = temp_dir / "state.json"
        path.write_text('{"values": {"k": [1, 2]}}', encoding="utf-8")
        assert StateFile(path).get("k") == [1, 2]

    def test_binary_file_is_empty(self, temp_dir: Path):
        path = temp_dir / "state.yaml"
        path.write_bytes(b"\xff\xfe\x00values")
        assert StateFile(path).load() == {}

    def test_non_mapping_document(self, temp_dir: Path):
        path = temp_dir / "state.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert StateFile(path).load() == {}

    def test_default_location(self, temp_home: Path):
        assert StateFile().state_path == temp_home / ".config" / "syncshell" / "state.yaml"
