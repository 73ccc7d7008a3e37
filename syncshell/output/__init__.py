# syncshell Output Module
# Rich console output for sessions, conflicts and profiles

from syncshell.output.console import Console, create_console, format_rate

__all__ = [
    "Console",
    "create_console",
    "format_rate",
]
