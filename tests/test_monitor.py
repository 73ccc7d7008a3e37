# Tests for syncshell.engine.monitor
# Streaming session updates

import asyncio

import pytest
from conftest import FakeProcess, FakeRunner, session_dict

from syncshell.engine.client import EngineClient
from syncshell.engine.process import CommandNotFoundError


class Recorder:
    def __init__(self):
        self.updates = []
        self.errors = []

    def on_update(self, session):
        self.updates.append(session)

    def on_error(self, error):
        self.errors.append(error)


class TestSessionMonitor:
    """Tests for SessionMonitor."""

    @pytest.mark.asyncio
    async def test_updates_in_order(self, runner: FakeRunner):
        runner.spawn_result = FakeProcess(
            lines=(session_dict("s", successfulCycles=1), session_dict("s", successfulCycles=2))
        )
        recorder = Recorder()
        monitor = await EngineClient("mutagen", runner=runner).monitor("s", recorder.on_update, recorder.on_error)
        await monitor.wait()

        assert [u.successful_cycles for u in recorder.updates] == [1, 2]
        assert recorder.errors == []
        assert runner.spawned == [("mutagen", ["sync", "monitor", "s", "--template", "{{json .}}"])]

    @pytest.mark.asyncio
    async def test_skips_unparseable_lines(self, runner: FakeRunner):
        runner.spawn_result = FakeProcess(lines=("garbage", "", [session_dict("s")]))
        recorder = Recorder()
        monitor = await EngineClient(runner=runner).monitor("s", recorder.on_update, recorder.on_error)
        await monitor.wait()
        assert len(recorder.updates) == 1

    @pytest.mark.asyncio
    async def test_async_callbacks(self, runner: FakeRunner):
        runner.spawn_result = FakeProcess(lines=(session_dict("s"),))
        seen = []

        async def on_update(session):
            seen.append(session.identifier)

        monitor = await EngineClient(runner=runner).monitor("s", on_update, lambda e: None)
        await monitor.wait()
        assert seen == ["s"]

    @pytest.mark.asyncio
    async def test_nonzero_exit_reports_error(self, runner: FakeRunner):
        runner.spawn_result = FakeProcess(returncode=1, stderr=b"session terminated")
        recorder = Recorder()
        monitor = await EngineClient(runner=runner).monitor("s", recorder.on_update, recorder.on_error)
        await monitor.wait()
        assert len(recorder.errors) == 1
        assert "session terminated" in str(recorder.errors[0])

    @pytest.mark.asyncio
    async def test_missing_executable(self, runner: FakeRunner):
        runner.spawn_result = CommandNotFoundError("mutagen")
        recorder = Recorder()
        monitor = await EngineClient(runner=runner).monitor("s", recorder.on_update, recorder.on_error)
        assert monitor.stopped
        assert isinstance(recorder.errors[0], CommandNotFoundError)

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, runner: FakeRunner):
        process = FakeProcess(finished=False)
        runner.spawn_result = process
        recorder = Recorder()
        monitor = await EngineClient(runner=runner).monitor("s", recorder.on_update, recorder.on_error)

        monitor.stop()
        monitor.stop()
        await monitor.wait()

        assert monitor.stopped
        assert process.killed
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_stderr_drained_while_streaming(self, runner: FakeRunner):
        process = FakeProcess(finished=False, stderr=b"warning: slow scan\n" * 1000)
        runner.spawn_result = process
        monitor = await EngineClient(runner=runner).monitor("s", lambda s: None, lambda e: None)

        for _ in range(5):
            await asyncio.sleep(0)

        assert process.stderr.at_eof()
        assert not process.stdout.at_eof()
        monitor.stop()
        await monitor.wait()
