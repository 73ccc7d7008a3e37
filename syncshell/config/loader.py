# syncshell Configuration Loader
# Load, save, and validate YAML configuration files

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from syncshell.config.defaults import generate_default_config, get_default_config
from syncshell.config.schema import SyncshellConfig

_SECTIONS = ("engine", "restore", "rates", "output")


def get_config_dir() -> Path:
    """Get the syncshell configuration directory."""
    return Path.home() / ".config" / "syncshell"


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    # Allow override via environment variable
    env_path = os.environ.get("SYNCSHELL_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> SyncshellConfig:
    """
    Load configuration from YAML file.

    A missing file yields the defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        SyncshellConfig: Validated configuration object.

    Raises:
        ValueError: If the file is not valid YAML or not a mapping.
        ValidationError: If config values are invalid.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return SyncshellConfig.model_validate(get_default_config())

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    return SyncshellConfig.model_validate(_merge_with_defaults(data))


def save_config(config: SyncshellConfig, config_path: Optional[Path] = None) -> Path:
    """
    Save configuration to YAML file.

    Returns:
        Path: Path where config was saved.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Use mode='json' to serialize Enums as their string values
    data = config.model_dump(exclude_none=True, mode="json")

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    return config_path


def ensure_config_exists(config_path: Optional[Path] = None) -> tuple[Path, bool]:
    """
    Ensure configuration file exists, creating default if needed.

    Returns:
        Tuple of (config_path, was_created).
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists():
        return config_path, False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config(), encoding="utf-8")
    return config_path, True


def validate_config_file(config_path: Optional[Path] = None) -> tuple[bool, list[str]]:
    """
    Validate a configuration file.

    Returns:
        Tuple of (is_valid, error_messages).
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return False, [f"Configuration file not found: {config_path}"]

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return False, [f"Invalid YAML syntax: {e}"]

    if data is None:
        return True, []
    if not isinstance(data, dict):
        return False, ["Configuration root must be a mapping"]

    errors: list[str] = []
    unknown = sorted(set(data) - set(SyncshellConfig.model_fields))
    for key in unknown:
        errors.append(f"Unknown section '{key}'")

    try:
        SyncshellConfig.model_validate(_merge_with_defaults(data))
    except ValidationError as e:
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"])
            errors.append(f"{loc}: {error['msg']}")

    return len(errors) == 0, errors


def _merge_with_defaults(data: dict) -> dict:
    """Merge loaded data over the defaults, section by section."""
    result = get_default_config()

    for section in _SECTIONS:
        if isinstance(data.get(section), dict):
            result[section] = {**result[section], **data[section]}
        elif section in data:
            result[section] = data[section]

    for key in ("global_ignore_patterns", "state_file"):
        if key in data:
            result[key] = data[key]

    return result
