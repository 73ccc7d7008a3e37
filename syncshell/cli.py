"""Click-based CLI for syncshell - control plane for file-synchronization sessions."""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Optional

import click
import yaml
from pydantic import ValidationError

from syncshell import __version__
from syncshell.config import (
    SyncshellConfig,
    ensure_config_exists,
    get_config_path,
    load_config,
    validate_config_file,
)
from syncshell.engine.client import EngineClient, EngineError
from syncshell.engine.models import SyncMode
from syncshell.engine.process import ProcessError
from syncshell.logger import setup_logging
from syncshell.output import Console, create_console
from syncshell.sync.conflicts import ConflictError, UnsupportedEndpointError
from syncshell.sync.controller import SessionController, SessionSettings
from syncshell.sync.retry import RestoreError
from syncshell.sync.state import StateFile

MODES = [mode.value for mode in SyncMode]
DIRECTIONS = ["local", "remote"]
HANDLED_ERRORS = (EngineError, ConflictError, RestoreError, ProcessError, OSError)


@dataclass
class AppContext:
    """Lazily built configuration, console and controller for one invocation."""

    config_path: Optional[Path] = None
    verbose: bool = False
    _config: Optional[SyncshellConfig] = None
    _console: Optional[Console] = None
    _controller: Optional[SessionController] = None

    @property
    def config(self) -> SyncshellConfig:
        if self._config is None:
            try:
                self._config = load_config(self.config_path)
            except (ValueError, ValidationError) as e:
                create_console(colored=sys.stdout.isatty()).print_error(f"Invalid configuration: {e}")
                sys.exit(1)
            setup_logging(
                "DEBUG" if self.verbose else self._config.output.log_level.value,
                self._config.output.log_file,
            )
        return self._config

    @property
    def console(self) -> Console:
        if self._console is None:
            output = self.config.output
            self._console = create_console(
                verbose=self.verbose or output.verbose,
                colored=output.colored and sys.stdout.isatty(),
            )
        return self._console

    @property
    def controller(self) -> SessionController:
        if self._controller is None:
            client = EngineClient(self.config.engine.executable_path)
            self._controller = SessionController(client, StateFile(self.config.state_path), self.config)
        return self._controller

    def run(self, awaitable: Awaitable[Any]) -> Any:
        """Run a coroutine, turning known failures into one error line and exit code 1."""
        try:
            return asyncio.run(awaitable)
        except UnsupportedEndpointError as e:
            self.console.print_error(str(e))
            if e.fallback_command:
                self.console.print_command(e.fallback_command)
            sys.exit(1)
        except HANDLED_ERRORS as e:
            self.console.print_error(str(e))
            sys.exit(1)

    def fail(self, message: str) -> None:
        self.console.print_error(message)
        sys.exit(1)


pass_app = click.make_pass_decorator(AppContext)


async def _ensure_daemon(app: AppContext) -> None:
    if not app.config.engine.auto_start_daemon:
        return
    client = app.controller.client
    if not (await client.daemon_status()).running:
        await client.start_daemon()


@click.group()
@click.version_option(version=__version__, prog_name="syncshell")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """syncshell - control plane for file-synchronization sessions.

    Manages sessions of an external sync engine between a local folder and
    a remote endpoint: create, pause, resolve conflicts, and restore saved
    connections when a workspace opens.

    \b
    Remote endpoints:
      user@host:/path           over SSH
      docker://container/path   inside a container
    """
    ctx.obj = AppContext(config_path=config_path, verbose=verbose)


# ============================================================================
# Sessions
# ============================================================================


@cli.command("list")
@pass_app
def list_sessions(app: AppContext) -> None:
    """List all sync sessions."""

    async def _list() -> None:
        await _ensure_daemon(app)
        await app.controller.refresh()

    app.run(_list())
    if app.controller.snapshot.last_error:
        app.fail(app.controller.snapshot.last_error)
    app.console.print_sessions(app.controller.summaries())


@cli.command()
@click.argument("session_id")
@pass_app
def show(app: AppContext, session_id: str) -> None:
    """Show details of one session."""
    session = app.run(app.controller.client.get_session(session_id))
    if session is None:
        app.fail(f"Session not found: {session_id}")
    app.console.print_session_detail(session)


def _session_options(func):
    func = click.option("--ignore", "ignore_paths", multiple=True, help="Ignore pattern (repeatable)")(func)
    func = click.option(
        "--ignore-vcs/--no-ignore-vcs",
        default=None,
        help="Ignore version control directories (engine default when omitted)",
    )(func)
    func = click.option("--mode", type=click.Choice(MODES), default=None, help="Synchronization mode")(func)
    func = click.option("--name", default=None, help="Session name")(func)
    return func


@cli.command()
@click.argument("local_path", type=click.Path(file_okay=False, path_type=Path))
@click.argument("remote_path")
@_session_options
@click.option("--no-save", is_flag=True, help="Do not save a connection profile")
@pass_app
def create(
    app: AppContext,
    local_path: Path,
    remote_path: str,
    name: Optional[str],
    mode: Optional[str],
    ignore_vcs: Optional[bool],
    ignore_paths: tuple[str, ...],
    no_save: bool,
) -> None:
    """Create a session between LOCAL_PATH and REMOTE_PATH.

    \b
    Example:
        syncshell create ~/project deploy@build01:/srv/project --mode two-way-safe
    """
    settings = SessionSettings(
        local_path=str(local_path.expanduser()),
        remote_path=remote_path,
        name=name or "",
        mode=mode,
        ignore_vcs=ignore_vcs,
        ignore_paths=list(ignore_paths),
    )

    async def _create():
        await _ensure_daemon(app)
        return await app.controller.create_session(settings, save_profile=not no_save)

    result = app.run(_create())
    if not result.identifier:
        app.fail("Engine did not report a session identifier")
    app.console.print_success(f"Created session {result.identifier}")
    if result.profile is not None and app.console.verbose:
        app.console.print_info(f"Saved connection profile {result.profile.id}")


@cli.command()
@click.argument("session_id")
@_session_options
@click.option("--local", "local_path", default=None, help="New local path")
@click.option("--remote", "remote_path", default=None, help="New remote endpoint")
@pass_app
def edit(
    app: AppContext,
    session_id: str,
    name: Optional[str],
    mode: Optional[str],
    ignore_vcs: Optional[bool],
    ignore_paths: tuple[str, ...],
    local_path: Optional[str],
    remote_path: Optional[str],
) -> None:
    """Recreate a session with changed settings.

    The engine cannot change a live session, so the session is terminated
    and a replacement is created with a new identifier.
    """

    async def _edit():
        settings = await app.controller.session_settings(session_id)
        if name is not None:
            settings.name = name
        if mode is not None:
            settings.mode = mode
        if ignore_vcs is not None:
            settings.ignore_vcs = ignore_vcs
        if ignore_paths:
            settings.ignore_paths = list(ignore_paths)
        if local_path:
            settings.local_path = str(Path(local_path).expanduser())
        if remote_path:
            settings.remote_path = remote_path
        return await app.controller.edit_session(session_id, settings)

    result = app.run(_edit())
    if not result.identifier:
        app.fail("Engine did not report a session identifier")
    app.console.print_success(f"Session recreated as {result.identifier}")


@cli.command()
@click.argument("session_id")
@pass_app
def pause(app: AppContext, session_id: str) -> None:
    """Pause a session."""
    app.run(app.controller.pause_session(session_id))
    app.console.print_success(f"Paused session {session_id}")


@cli.command()
@click.argument("session_id")
@pass_app
def resume(app: AppContext, session_id: str) -> None:
    """Resume a paused session."""
    app.run(app.controller.resume_session(session_id))
    app.console.print_success(f"Resumed session {session_id}")


@cli.command()
@click.argument("session_id")
@pass_app
def flush(app: AppContext, session_id: str) -> None:
    """Request an immediate synchronization cycle."""
    app.run(app.controller.flush_session(session_id))
    app.console.print_success(f"Flushed session {session_id}")


@cli.command()
@click.argument("session_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_app
def terminate(app: AppContext, session_id: str, yes: bool) -> None:
    """Terminate a session permanently."""
    if not yes and not app.console.confirm(f"Terminate session {session_id}?"):
        app.console.print_warning("Cancelled")
        return
    app.run(app.controller.terminate_session(session_id))
    app.console.print_success(f"Terminated session {session_id}")


@cli.command()
@click.argument("session_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_app
def reset(app: AppContext, session_id: str, yes: bool) -> None:
    """Reset the synchronization history of a session."""
    if not yes and not app.console.confirm(f"Reset history of session {session_id}?"):
        app.console.print_warning("Cancelled")
        return
    app.run(app.controller.reset_session(session_id))
    app.console.print_success(f"Reset session {session_id}")


# ============================================================================
# Conflicts
# ============================================================================


@cli.command()
@click.argument("session_id")
@pass_app
def conflicts(app: AppContext, session_id: str) -> None:
    """List conflicts of a session with their local and remote paths."""
    views = app.run(app.controller.conflicts(session_id))
    app.console.print_conflicts(views)


@cli.command()
@click.argument("session_id")
@click.argument("root")
@click.argument("direction", type=click.Choice(DIRECTIONS))
@pass_app
def accept(app: AppContext, session_id: str, root: str, direction: str) -> None:
    """Resolve the conflict at ROOT by keeping the DIRECTION side."""
    result = app.run(app.controller.accept_conflict(session_id, root, direction))
    app.console.print_accept_result(result)


@cli.command("accept-all")
@click.argument("session_id")
@click.argument("direction", type=click.Choice(DIRECTIONS))
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_app
def accept_all(app: AppContext, session_id: str, direction: str, yes: bool) -> None:
    """Resolve every pending conflict of a session toward DIRECTION.

    Conflicts already handled and unchanged since are skipped. When every
    conflict succeeds the session is reset and flushed once.
    """

    def confirm(pending: int, excluded: int) -> bool:
        if yes:
            return True
        message = f"Overwrite {pending} conflict(s) with the {direction} version?"
        if excluded:
            message += f" ({excluded} already handled)"
        return app.console.confirm(message)

    result = app.run(app.controller.accept_all_conflicts(session_id, direction, confirm))
    app.console.print_batch_result(result)
    if result.outcome in ("failure", "partial", "stale"):
        sys.exit(1)


@cli.command("conflict-command")
@click.argument("session_id")
@click.argument("root")
@click.argument("direction", type=click.Choice(DIRECTIONS))
@pass_app
def conflict_command(app: AppContext, session_id: str, root: str, direction: str) -> None:
    """Print a shell script that accepts the DIRECTION side of ROOT by hand."""
    command = app.run(app.controller.accept_command(session_id, root, direction))
    app.console.print_command(command)


# ============================================================================
# Connection profiles
# ============================================================================


@cli.group()
def profiles() -> None:
    """Saved connection profiles."""
    pass


@profiles.command("list")
@click.option("--workspace", "-w", "folders", multiple=True, help="Open folder to sort first (repeatable)")
@pass_app
def profiles_list(app: AppContext, folders: tuple[str, ...]) -> None:
    """List saved profiles, newest first."""
    if folders:
        app.console.print_profiles(app.controller.profiles.sorted_for_picker(folders))
    else:
        app.console.print_profiles(app.controller.profiles.list())


@profiles.command("connect")
@click.argument("profile_id")
@pass_app
def profiles_connect(app: AppContext, profile_id: str) -> None:
    """Resume or recreate the session of a saved profile."""
    if app.controller.profiles.get_by_id(profile_id) is None:
        app.fail(f"Connection profile '{profile_id}' not found")

    async def _connect():
        await _ensure_daemon(app)
        return await app.controller.connect_profile(profile_id)

    identifier = app.run(_connect())
    app.console.print_success(f"Connected profile {profile_id} as session {identifier}")


@profiles.command("remove")
@click.argument("profile_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_app
def profiles_remove(app: AppContext, profile_id: str, yes: bool) -> None:
    """Delete a saved profile."""
    profile = app.controller.profiles.get_by_id(profile_id)
    if profile is None:
        app.fail(f"Connection profile '{profile_id}' not found")
    if not yes and not app.console.confirm(f"Delete connection profile '{profile.name}'?"):
        app.console.print_warning("Cancelled")
        return
    app.controller.remove_profile(profile_id)
    app.console.print_success(f"Removed connection profile {profile_id}")


# ============================================================================
# Workspace
# ============================================================================


@cli.group()
def workspace() -> None:
    """Workspace folder lifecycle: restore on open, pause on close."""
    pass


@workspace.command("open")
@click.argument("folders", nargs=-1, required=True)
@pass_app
def workspace_open(app: AppContext, folders: tuple[str, ...]) -> None:
    """Resume paused sessions and restore saved profiles of FOLDERS."""

    async def _open():
        await _ensure_daemon(app)
        return await app.controller.open_workspace(folders)

    if not app.config.restore.auto_restore_connections:
        app.console.print_warning("Automatic restore is disabled in the configuration")
    results = app.run(_open())
    app.console.print_restore_results(results)
    if any(not result.ok for result in results):
        sys.exit(1)


@workspace.command("close")
@click.argument("folders", nargs=-1, required=True)
@click.option("--terminate/--no-terminate", default=None, help="Terminate profile sessions instead of pausing")
@pass_app
def workspace_close(app: AppContext, folders: tuple[str, ...], terminate: Optional[bool]) -> None:
    """Pause sessions inside FOLDERS."""
    controller = app.controller
    for folder in folders:
        controller.restore.adopt_profile_sessions(folder)
    result = app.run(controller.close_workspace(folders, terminate))
    app.console.print_close_result(result)
    if result.failed:
        sys.exit(1)


@cli.command()
@click.option("--interval", "-i", type=float, default=None, help="Seconds between polls")
@click.option("--workspace", "-w", "folders", multiple=True, help="Open workspace folder (repeatable)")
@click.option("--count", "-n", type=int, default=0, help="Stop after N polls (0 = until interrupted)")
@pass_app
def watch(app: AppContext, interval: Optional[float], folders: tuple[str, ...], count: int) -> None:
    """Poll sessions and show status with transfer rates.

    Sessions inside the given workspace folders are monitored for live
    upload and download rates. On exit they are paused.
    """
    controller = app.controller
    delay = interval or app.config.engine.refresh_interval

    async def _watch() -> None:
        await _ensure_daemon(app)
        if folders:
            app.console.print_restore_results(await controller.open_workspace(folders))
        polls = 0
        try:
            while True:
                if await controller.refresh():
                    app.console.print_sessions(controller.summaries())
                await controller.sync_monitors()
                app.console.print_status(controller.status())
                polls += 1
                if count and polls >= count:
                    break
                await asyncio.sleep(delay)
        finally:
            if folders:
                app.console.print_close_result(await controller.shutdown())
            else:
                controller.stop_monitors()

    try:
        app.run(_watch())
    except KeyboardInterrupt:
        app.console.print_info("Stopped")


# ============================================================================
# Daemon
# ============================================================================


@cli.group()
def daemon() -> None:
    """Engine daemon control."""
    pass


@daemon.command("start")
@pass_app
def daemon_start(app: AppContext) -> None:
    """Start the engine daemon."""
    if app.run(app.controller.client.start_daemon()):
        app.console.print_success("Daemon started")
    else:
        app.console.print_warning("Daemon start already in progress")


@daemon.command("stop")
@pass_app
def daemon_stop(app: AppContext) -> None:
    """Stop the engine daemon."""
    if app.run(app.controller.client.stop_daemon()):
        app.console.print_success("Daemon stopped")
    else:
        app.console.print_warning("Daemon stop already in progress")


@daemon.command("status")
@pass_app
def daemon_status(app: AppContext) -> None:
    """Show whether the engine daemon is reachable."""
    status = app.run(app.controller.client.daemon_status())
    app.console.print_daemon_status(status)
    if not status.running:
        sys.exit(1)


# ============================================================================
# Configuration
# ============================================================================


@cli.group()
def config() -> None:
    """Configuration file commands."""
    pass


def _config_file(app: AppContext) -> Path:
    return app.config_path or get_config_path()


@config.command("init")
@pass_app
def config_init(app: AppContext) -> None:
    """Write a commented default configuration file."""
    console = create_console(colored=sys.stdout.isatty())
    path, created = ensure_config_exists(_config_file(app))
    if created:
        console.print_success(f"Created configuration: {path}")
    else:
        console.print_info(f"Configuration already exists: {path}")


@config.command("show")
@pass_app
def config_show(app: AppContext) -> None:
    """Print the effective configuration."""
    data = app.config.model_dump(mode="json")
    app.console.print_config_summary(
        str(_config_file(app)), app.config.engine.executable_path, len(app.controller.profiles.list())
    )
    app.console.print(yaml.dump(data, default_flow_style=False, sort_keys=False), markup=False, highlight=False)


@config.command("validate")
@pass_app
def config_validate(app: AppContext) -> None:
    """Validate the configuration file."""
    console = create_console(colored=sys.stdout.isatty())
    path = _config_file(app)
    valid, errors = validate_config_file(path)
    if valid:
        console.print_success(f"Configuration is valid: {path}")
        return
    for error in errors:
        console.print_error(error)
    sys.exit(1)


@config.command("path")
@pass_app
def config_path(app: AppContext) -> None:
    """Print the configuration file path."""
    click.echo(str(_config_file(app)))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
