# Tests for syncshell.engine.client
# Engine command construction, parsing and de-duplication

import asyncio
import json

import pytest
from conftest import FakeRunner, conflict_dict, session_dict

from syncshell.engine.client import EngineClient, EngineError, EngineNotFoundError
from syncshell.engine.models import CreateSessionOptions
from syncshell.engine.process import CommandNotFoundError, ProcessError


def _client(runner: FakeRunner) -> EngineClient:
    return EngineClient("mutagen", runner=runner)


class TestListSessions:
    """Tests for session queries."""

    @pytest.mark.asyncio
    async def test_parses_sessions(self, runner: FakeRunner):
        runner.on("mutagen", "sync", "list", responses=json.dumps([session_dict("a"), session_dict("b")]))
        sessions = await _client(runner).list_sessions()
        assert [s.identifier for s in sessions] == ["a", "b"]
        assert runner.commands()[0] == ["mutagen", "sync", "list", "--template", "{{json .}}"]

    @pytest.mark.asyncio
    async def test_no_sessions_is_empty(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("Error: no synchronization sessions exist"))
        assert await _client(runner).list_sessions() == []

    @pytest.mark.asyncio
    async def test_blank_output_is_empty(self, runner: FakeRunner):
        runner.on("mutagen", responses="  \n")
        assert await _client(runner).list_sessions() == []

    @pytest.mark.asyncio
    async def test_failure_message_verbatim(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("Error: unable to connect to daemon", returncode=1))
        with pytest.raises(EngineError) as exc:
            await _client(runner).list_sessions()
        assert exc.value.message == "Error: unable to connect to daemon"

    @pytest.mark.asyncio
    async def test_invalid_json(self, runner: FakeRunner):
        runner.on("mutagen", responses="{not json")
        with pytest.raises(EngineError, match="Unable to parse"):
            await _client(runner).list_sessions()

    @pytest.mark.asyncio
    async def test_missing_executable(self, runner: FakeRunner):
        runner.on("mutagen", responses=CommandNotFoundError("mutagen"))
        with pytest.raises(EngineNotFoundError):
            await _client(runner).list_sessions()

    @pytest.mark.asyncio
    async def test_get_session(self, runner: FakeRunner):
        runner.on("mutagen", "sync", "list", "abc", responses=json.dumps(session_dict("abc")))
        session = await _client(runner).get_session("abc")
        assert session.identifier == "abc"

    @pytest.mark.asyncio
    async def test_get_session_missing(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("Error: unable to locate requested sessions"))
        assert await _client(runner).get_session("gone") is None

    @pytest.mark.asyncio
    async def test_get_session_other_error_raises(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("Error: permission denied"))
        with pytest.raises(EngineError):
            await _client(runner).get_session("abc")

    @pytest.mark.asyncio
    async def test_get_session_conflicts(self, runner: FakeRunner):
        runner.on("mutagen", responses=json.dumps(session_dict("abc", conflicts=[conflict_dict("x")])))
        conflicts = await _client(runner).get_session_conflicts("abc")
        assert [c.root for c in conflicts] == ["x"]

    @pytest.mark.asyncio
    async def test_find_by_endpoints(self, runner: FakeRunner):
        runner.on(
            "mutagen",
            responses=json.dumps([session_dict("a", local="/other"), session_dict("b", local="/work/app")]),
        )
        found = await _client(runner).find_session_by_endpoints("/work/app/", "build01:/srv/app")
        assert found.identifier == "b"


class TestDeduplication:
    """Keyed calls are skipped while an identical one is in flight."""

    @pytest.mark.asyncio
    async def test_concurrent_list_skipped(self, runner: FakeRunner):
        release = asyncio.Event()

        async def slow(command, args):
            await release.wait()
            return "[]"

        runner.on("mutagen", responses=slow)
        client = _client(runner)

        first = asyncio.create_task(client.list_sessions(dedupe=True))
        await asyncio.sleep(0)
        assert client.is_running("list")
        second = await client.list_sessions(dedupe=True)
        release.set()

        assert second is None
        assert await first == []
        assert not client.is_running("list")
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_key_released_after_failure(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("boom"))
        client = _client(runner)
        with pytest.raises(EngineError):
            await client.start_daemon()
        assert not client.is_running("daemon-start")

    @pytest.mark.asyncio
    async def test_undeduplicated_list_always_runs(self, runner: FakeRunner):
        runner.on("mutagen", responses="[]")
        client = _client(runner)
        await asyncio.gather(client.list_sessions(), client.list_sessions())
        assert len(runner.calls) == 2


class TestLifecycle:
    """Tests for session lifecycle commands."""

    @pytest.mark.asyncio
    async def test_create_parses_identifier(self, runner: FakeRunner):
        runner.on("mutagen", "sync", "create", responses="Created session sync_AbC123\n")
        client = _client(runner)
        identifier = await client.create_session(
            "/work/app", "deploy@build01:/srv/app", CreateSessionOptions(name="web", mode="two-way-safe")
        )
        assert identifier == "sync_AbC123"
        assert runner.commands()[0] == [
            "mutagen", "sync", "create", "/work/app", "deploy@build01:/srv/app",
            "--name", "web", "--mode", "two-way-safe",
        ]

    @pytest.mark.asyncio
    async def test_create_without_identifier(self, runner: FakeRunner):
        runner.on("mutagen", responses="done")
        assert await _client(runner).create_session("/a", "h:/b") == ""

    @pytest.mark.asyncio
    async def test_recreate_terminates_first(self, runner: FakeRunner):
        runner.on("mutagen", "sync", "create", responses="Created session new1")
        identifier = await _client(runner).recreate_session("old1", "/a", "h:/b")
        assert identifier == "new1"
        assert runner.commands()[0] == ["mutagen", "sync", "terminate", "old1"]

    @pytest.mark.asyncio
    async def test_simple_commands(self, runner: FakeRunner):
        client = _client(runner)
        await client.pause_session("s")
        await client.resume_session("s")
        await client.flush_session("s")
        await client.reset_session("s")
        await client.terminate_session("s")
        assert runner.commands() == [
            ["mutagen", "sync", "pause", "s"],
            ["mutagen", "sync", "resume", "s"],
            ["mutagen", "sync", "flush", "s", "--skip-wait"],
            ["mutagen", "sync", "reset", "s"],
            ["mutagen", "sync", "terminate", "s"],
        ]


class TestDaemon:
    """Tests for installation and daemon helpers."""

    @pytest.mark.asyncio
    async def test_version(self, runner: FakeRunner):
        runner.on("mutagen", "version", responses="0.18.1\n")
        assert await _client(runner).version() == "0.18.1"

    @pytest.mark.asyncio
    async def test_check_installation_missing(self, runner: FakeRunner):
        runner.on("mutagen", responses=CommandNotFoundError("mutagen"))
        assert await _client(runner).check_installation() is False

    @pytest.mark.asyncio
    async def test_status_running(self, runner: FakeRunner):
        runner.on("mutagen", "sync", "list", responses="[]")
        runner.on("mutagen", "version", responses="0.18.1")
        status = await _client(runner).daemon_status()
        assert status.running
        assert status.version == "0.18.1"

    @pytest.mark.asyncio
    async def test_status_unreachable(self, runner: FakeRunner):
        runner.on("mutagen", responses=ProcessError("Error: unable to connect to daemon"))
        assert not (await _client(runner).daemon_status()).running

    @pytest.mark.asyncio
    async def test_start_and_stop(self, runner: FakeRunner):
        client = _client(runner)
        assert await client.start_daemon() is True
        assert await client.stop_daemon() is True
        assert runner.commands() == [["mutagen", "daemon", "start"], ["mutagen", "daemon", "stop"]]
