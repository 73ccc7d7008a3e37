# syncshell Default Configuration
# Full default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "engine": {
        "executable_path": "mutagen",
        "refresh_interval": 5.0,
        "auto_start_daemon": True,
    },
    "restore": {
        "auto_restore_connections": True,
        "max_connection_retries": 3,
        "retry_base_delay": 1.0,
        "retry_max_delay": 5.0,
        "resume_max_retries": 3,
        "resume_max_delay": 3.0,
        "terminate_restored_sessions_on_close": False,
        "auto_save_connection_profiles": True,
    },
    "rates": {
        "min_sample_interval": 0.5,
    },
    "global_ignore_patterns": [],
    "state_file": "~/.config/syncshell/state.yaml",
    "output": {
        "verbose": False,
        "colored": True,
        "log_level": "INFO",
    },
}


def get_default_config() -> dict[str, Any]:
    """Deep copy of the defaults, safe to mutate."""
    return copy.deepcopy(DEFAULT_CONFIG)


def generate_default_config() -> str:
    """Generate default configuration as YAML string with comments."""
    header = """# syncshell Configuration
#
# Control plane for an external file-synchronization engine.
#
# engine:   where the engine executable lives and how often sessions are polled
# restore:  saved connection profiles, restore retries and workspace close behavior
# rates:    minimum interval between transfer-rate samples
#
# global_ignore_patterns are added to the ignore list of every created session.
# Sync modes: two-way-safe, two-way-resolved, one-way-safe, one-way-replica

"""
    return header + yaml.dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False, allow_unicode=True)
