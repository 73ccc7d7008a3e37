# syncshell Session Monitor
# Long-lived streaming connection to the engine's monitor command

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Optional

from syncshell.engine.models import SyncSession
from syncshell.engine.process import CommandNotFoundError, ProcessRunner

logger = logging.getLogger(__name__)


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class SessionMonitor:
    """
    Streams session updates, one JSON document per line.

    Updates are delivered in emission order. ``stop()`` kills the process
    and may be called any number of times, before or after the stream ends.
    """

    def __init__(
        self,
        client: Any,
        identifier: str,
        on_update: Callable[[SyncSession], Any],
        on_error: Callable[[Exception], Any],
    ):
        self.identifier = identifier
        self.on_update = on_update
        self.on_error = on_error
        self._executable: str = client.executable
        self._runner: ProcessRunner = client.runner
        self._process: Optional[asyncio.subprocess.Process] = None
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def start(self) -> None:
        if self._stopped or self._task is not None:
            return
        args = ["sync", "monitor", self.identifier, "--template", "{{json .}}"]
        logger.debug("Starting monitor for session: %s", self.identifier)
        try:
            self._process = await self._runner.spawn(self._executable, args)
        except CommandNotFoundError as e:
            self._stopped = True
            await _call(self.on_error, e)
            return
        self._task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        process = self._process
        assert process is not None and process.stdout is not None
        # stderr is drained concurrently with stdout
        stderr_task = asyncio.create_task(process.stderr.read()) if process.stderr is not None else None
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                text = line.decode("utf-8", errors="replace").strip()
                if not text:
                    continue
                try:
                    data = json.loads(text)
                except json.JSONDecodeError:
                    logger.debug("Failed to parse monitor output: %s", text)
                    continue
                if isinstance(data, list):
                    data = data[0] if data else None
                if isinstance(data, dict):
                    await _call(self.on_update, SyncSession.from_dict(data))

            returncode = await process.wait()
            if returncode != 0 and not self._stopped:
                stderr = await stderr_task if stderr_task is not None else b""
                message = stderr.decode("utf-8", errors="replace").strip()
                logger.warning("Monitor for %s exited with code %s: %s", self.identifier, returncode, message)
                await _call(self.on_error, RuntimeError(message or f"Monitor exited with code {returncode}"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Monitor for %s failed: %s", self.identifier, e)
            await _call(self.on_error, e)
        finally:
            if stderr_task is not None and not stderr_task.done():
                stderr_task.cancel()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._process is not None and self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Stopped monitor for session: %s", self.identifier)

    async def wait(self) -> None:
        """Wait for the read loop to finish."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
