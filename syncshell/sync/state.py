# syncshell State Storage
# Persistent key/value storage backed by a YAML file

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

import yaml

from syncshell.utils.paths import atomic_write

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"


class KeyValueStore(Protocol):
    """Opaque JSON-serializable value storage."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """In-process store; values are deep-copied in and out like a real file."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class StateFile:
    """
    Key/value storage in a single YAML document.

    Every ``get`` re-reads the file so values written by another process
    are picked up. An unreadable file is treated as empty with a warning.
    """

    def __init__(self, state_path: Optional[Path] = None):
        """
        Initialize state file.

        Args:
            state_path: Path to state file. Defaults to ~/.config/syncshell/state.yaml
        """
        if state_path is None:
            state_path = Path.home() / ".config" / "syncshell" / "state.yaml"
        self.state_path = state_path

    def load(self) -> dict[str, Any]:
        """Load all values from file."""
        if not self.state_path.exists():
            return {}

        try:
            with open(self.state_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.state_path, e)
            return {}
        except OSError as e:
            logger.warning("Cannot read state file %s: %s", self.state_path, e)
            return {}

        if not isinstance(data, dict):
            return {}
        values = data.get("values")
        return values if isinstance(values, dict) else {}

    def save(self, values: dict[str, Any]) -> None:
        """Write all values to file."""
        document = {
            "version": STATE_VERSION,
            "updated_at": datetime.now().isoformat(),
            "values": values,
        }
        atomic_write(
            self.state_path,
            yaml.safe_dump(document, default_flow_style=False, sort_keys=False, allow_unicode=True),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        values = self.load()
        values[key] = value
        self.save(values)
