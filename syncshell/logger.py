# syncshell Logging
# Rich-rendered logging for the syncshell logger hierarchy

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console as RichConsole
from rich.logging import RichHandler

LOGGER_NAME = "syncshell"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    console: Optional[RichConsole] = None,
) -> logging.Logger:
    """
    Configure the syncshell logger hierarchy.

    Records go to a RichHandler on stderr and, when log_file is set, to a
    plain file handler as well. Calling this again only updates the level.

    Args:
        level: Level name or number.
        log_file: Optional path of a log file.
        console: Rich console for the handler (stderr console if omitted).

    Returns:
        The "syncshell" logger.
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if _configured:
        return logger

    rich_handler = RichHandler(
        console=console or RichConsole(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True
    return logger


def reset_logging() -> None:
    """Remove handlers installed by setup_logging."""
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    _configured = False
