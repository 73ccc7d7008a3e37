# syncshell Process Execution
# Async subprocess execution with typed failures

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessError(Exception):
    """Exception raised when an external command exits non-zero."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = "", stdout: str = ""):
        self.message = message
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(message)


class CommandNotFoundError(ProcessError):
    """Exception raised when the command binary cannot be found."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"{command} command not found. Is it installed and on PATH?", returncode=127)


@dataclass
class ProcessResult:
    """Captured output of a finished process."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """Runs external commands and captures their output."""

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        check: bool = True,
        input: Optional[str] = None,
    ) -> ProcessResult:
        """
        Run a command to completion.

        Args:
            command: Executable name or path.
            args: Command arguments.
            check: Whether to raise on non-zero exit.
            input: Optional text fed to stdin.

        Returns:
            ProcessResult with decoded output.

        Raises:
            CommandNotFoundError: If the executable does not exist.
            ProcessError: If command fails and check is True.
        """
        cmd = [command, *args]
        logger.debug("Executing: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise CommandNotFoundError(command) from None

        stdout, stderr = await proc.communicate(input.encode("utf-8") if input is not None else None)
        result = ProcessResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            returncode=proc.returncode if proc.returncode is not None else -1,
        )
        if check and not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ProcessError(
                detail or f"Command failed with code {result.returncode}: {' '.join(cmd)}",
                returncode=result.returncode,
                stderr=result.stderr.strip(),
                stdout=result.stdout.strip(),
            )
        return result

    async def spawn(self, command: str, args: Sequence[str] = ()) -> asyncio.subprocess.Process:
        """
        Start a long-running command with piped stdout and stderr.

        Raises:
            CommandNotFoundError: If the executable does not exist.
        """
        cmd = [command, *args]
        logger.debug("Spawning: %s", " ".join(cmd))
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise CommandNotFoundError(command) from None
