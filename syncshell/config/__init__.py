# syncshell Configuration Module
# Handles YAML-based configuration loading, validation, and defaults

from syncshell.config.defaults import DEFAULT_CONFIG, generate_default_config, get_default_config
from syncshell.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
    validate_config_file,
)
from syncshell.config.schema import (
    EngineConfig,
    LogLevel,
    OutputConfig,
    RatesConfig,
    RestoreConfig,
    SyncshellConfig,
)

__all__ = [
    # Schema
    "SyncshellConfig",
    "EngineConfig",
    "RestoreConfig",
    "RatesConfig",
    "OutputConfig",
    "LogLevel",
    # Loader
    "load_config",
    "save_config",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    # Defaults
    "DEFAULT_CONFIG",
    "get_default_config",
    "generate_default_config",
]
