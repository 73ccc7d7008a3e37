# syncshell Console Output
# Rich-based console output for sessions, conflicts, profiles and rates

from typing import IO, Optional

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from syncshell.engine.endpoints import format_remote_endpoint
from syncshell.engine.models import DaemonStatus, SessionSummary, SyncSession, format_file_size, status_label
from syncshell.sync.conflicts import AcceptResult, BatchAcceptResult
from syncshell.sync.controller import ConflictView, StatusSummary
from syncshell.sync.profiles import ConnectionProfile
from syncshell.sync.restore import WorkspaceCloseResult, WorkspaceRestoreResult

BATCH_STYLES = {
    "noop": "dim",
    "cancelled": "yellow",
    "success": "green",
    "stale": "yellow",
    "partial": "yellow",
    "failure": "red",
}


def format_rate(rate: Optional[float]) -> str:
    """Bytes per second as a human string; undefined renders as a dash."""
    if rate is None:
        return "-"
    return f"{format_file_size(rate)}/s"


class Console:
    """
    Console output manager using Rich.

    Provides formatted output for session commands.
    """

    def __init__(
        self,
        *,
        verbose: bool = False,
        colored: bool = True,
        file: Optional[IO[str]] = None,
        width: Optional[int] = None,
    ):
        """
        Initialize console.

        Args:
            verbose: Enable verbose output.
            colored: Enable colored output.
            file: Optional stream to write to instead of stdout.
            width: Optional fixed width.
        """
        self.verbose = verbose
        self._console = RichConsole(
            file=file,
            width=width,
            force_terminal=colored if file is None else False,
            no_color=not colored,
        )

    @property
    def rich(self) -> RichConsole:
        return self._console

    def print(self, *args, **kwargs) -> None:
        """Print to console."""
        self._console.print(*args, **kwargs)

    def print_error(self, message: str) -> None:
        self._console.print(f"[red]Error:[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        self._console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def print_success(self, message: str) -> None:
        self._console.print(f"[green]{escape(message)}[/green]")

    def print_info(self, message: str) -> None:
        self._console.print(f"[blue]{escape(message)}[/blue]")

    # Sessions

    def print_sessions(self, summaries: list[SessionSummary]) -> None:
        """Print a table of sessions."""
        if not summaries:
            self._console.print("[dim]No sync sessions[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Local")
        table.add_column("Remote")
        table.add_column("Files", justify="right")
        table.add_column("Size", justify="right")

        for summary in summaries:
            status = summary.status_label
            if summary.has_errors:
                status = f"[red]{status}[/red]"
            elif summary.paused:
                status = f"[yellow]{status}[/yellow]"
            else:
                status = f"[green]{status}[/green]"
            if summary.has_conflicts:
                status += " [red]![/red]"
            remote = f"{summary.remote_host}:{summary.remote_path}" if summary.remote_host else summary.remote_path
            identifier = summary.id if self.verbose else summary.id[:12]
            table.add_row(
                escape(identifier),
                escape(summary.name),
                status,
                escape(summary.local_path),
                escape(remote),
                str(summary.file_count),
                format_file_size(summary.total_size),
            )

        self._console.print(table)

    def print_session_detail(self, session: SyncSession) -> None:
        """Print one session with both endpoints and any problems."""
        lines = [
            f"[bold]Identifier:[/bold] {escape(session.identifier)}",
            f"[bold]Status:[/bold] {status_label(session.status, session.paused)}",
            f"[bold]Mode:[/bold] {escape(session.mode or 'default')}",
            f"[bold]Successful cycles:[/bold] {session.successful_cycles}",
        ]
        if session.ignore_paths:
            lines.append(f"[bold]Ignored:[/bold] {escape(', '.join(session.ignore_paths))}")
        if session.last_error:
            lines.append(f"[red]Last error:[/red] {escape(session.last_error)}")
        if session.conflicts:
            lines.append(f"[red]Conflicts:[/red] {len(session.conflicts)}")

        for label, endpoint in (("Alpha", session.alpha), ("Beta", session.beta)):
            state = "[green]connected[/green]" if endpoint.connected else "[red]disconnected[/red]"
            lines.append("")
            lines.append(f"[bold]{label}:[/bold] {escape(format_remote_endpoint(endpoint))} ({state})")
            lines.append(
                f"  {endpoint.files} files, {endpoint.directories} directories, "
                f"{format_file_size(endpoint.total_file_size)}"
            )
            for problem in endpoint.scan_problems + endpoint.transition_problems:
                lines.append(f"  [red]✗[/red] {escape(problem.path)}: {escape(problem.error)}")

        self._console.print(
            Panel(
                "\n".join(lines),
                title=escape(session.name or session.identifier[:8]),
                border_style="red" if session.has_errors else "blue",
            )
        )

    # Conflicts

    def print_conflicts(self, views: list[ConflictView]) -> None:
        if not views:
            self._console.print("[green]No conflicts[/green]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Root", style="cyan")
        table.add_column("Local")
        table.add_column("Remote")
        table.add_column("Changes", justify="right")
        table.add_column("Handled")

        for view in views:
            conflict = view.conflict
            changes = f"{len(conflict.alpha_changes)}/{len(conflict.beta_changes)}"
            if view.error:
                table.add_row(escape(conflict.root), f"[red]{escape(view.error)}[/red]", "", changes, "")
                continue
            handled = f"[green]{view.handled_direction}[/green]" if view.handled_direction else "[dim]-[/dim]"
            table.add_row(
                escape(conflict.root),
                escape(view.local_path or ""),
                escape(view.remote_display or ""),
                changes,
                handled,
            )

        self._console.print(table)

    def print_accept_result(self, result: AcceptResult) -> None:
        if result.already_resolved:
            self.print_info(f"Conflict '{result.root}' is already resolved")
        else:
            self.print_success(f"Accepted {result.direction} version for '{result.root}'")

    def print_batch_result(self, result: BatchAcceptResult) -> None:
        """Print the single final outcome of an accept-all run."""
        outcome = result.outcome
        if outcome == "noop":
            if result.total == 0:
                text = "No conflicts to resolve"
            else:
                text = f"All {result.total} conflicts were already handled; waiting for the engine"
        elif outcome == "cancelled":
            text = "Cancelled, nothing was changed"
        elif outcome == "success":
            text = f"Accepted {result.direction} version for {result.succeeded} conflicts"
        elif outcome == "stale":
            text = (
                f"Accepted {result.direction} version for {result.succeeded} conflicts, "
                f"but reset/flush failed: {escape(result.convergence_error or '')}"
            )
        elif outcome == "partial":
            text = f"Accepted {result.succeeded} of {result.attempted} conflicts, {result.failed} failed"
        else:
            text = f"Failed to accept {result.failed} conflicts"
        if result.excluded:
            text += f" ({result.excluded} already handled)"

        style = BATCH_STYLES[outcome]
        self._console.print(f"[{style}]{text}[/{style}]")
        for root, error in result.failures:
            self._console.print(f"    [red]✗[/red] {escape(root)}: {escape(error)}")
        for root, command in result.fallbacks:
            self._console.print(f"[dim]Run by hand to accept {escape(root)}:[/dim]")
            self.print_command(command)

    def print_command(self, command: str) -> None:
        """Print a copyable shell command without markup processing."""
        self._console.print(command, markup=False, highlight=False, soft_wrap=True)

    # Profiles

    def print_profiles(self, profiles: list[ConnectionProfile]) -> None:
        if not profiles:
            self._console.print("[dim]No saved connection profiles[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Local")
        table.add_column("Remote")
        table.add_column("Mode", style="dim")
        table.add_column("Updated", style="dim")

        for profile in profiles:
            table.add_row(
                escape(profile.id),
                escape(profile.name),
                escape(profile.local_path),
                escape(profile.remote_path),
                escape(profile.mode or "default"),
                profile.updated_at[:19],
            )

        self._console.print(table)

    # Status and workspace

    def print_status(self, summary: StatusSummary) -> None:
        """Print aggregated counts and workspace transfer rates."""
        parts = [f"{summary.active} active"]
        if summary.paused:
            parts.append(f"[yellow]{summary.paused} paused[/yellow]")
        if summary.syncing:
            parts.append(f"[cyan]{summary.syncing} syncing[/cyan]")
        if summary.errors:
            parts.append(f"[red]{summary.errors} errors[/red]")
        line = f"{summary.total} sessions: " + ", ".join(parts)
        if summary.workspace_sessions:
            line += (
                f"  ↑ {format_rate(summary.rates.upload)}"
                f"  ↓ {format_rate(summary.rates.download)}"
            )
        self._console.print(line)

    def print_restore_results(self, results: list[WorkspaceRestoreResult]) -> None:
        if not results:
            self._console.print("[dim]Nothing to restore[/dim]")
            return

        for result in results:
            icon = "[green]✓[/green]" if result.ok else "[red]✗[/red]"
            self._console.print(
                f"{icon} [bold]{escape(result.folder)}[/bold] - "
                f"{len(result.resumed)} resumed, {len(result.restored)} restored, {len(result.failed)} failed"
            )
            if self.verbose:
                for profile_id, identifier in result.restored:
                    self._console.print(f"    [green]✓[/green] {escape(profile_id)} -> {escape(identifier)}")
            for name, error in result.failed:
                self._console.print(f"    [red]✗[/red] {escape(name)}: {escape(error)}")

    def print_close_result(self, result: WorkspaceCloseResult) -> None:
        text = f"{len(result.paused)} paused, {len(result.terminated)} terminated"
        if result.failed:
            self._console.print(f"[yellow]{text}, {len(result.failed)} failed[/yellow]")
            for identifier, error in result.failed:
                self._console.print(f"    [red]✗[/red] {escape(identifier)}: {escape(error)}")
        else:
            self._console.print(f"[green]{text}[/green]")

    def print_daemon_status(self, status: DaemonStatus) -> None:
        if status.running:
            version = f" (version {status.version})" if status.version else ""
            self.print_success(f"Daemon is running{version}")
        else:
            self.print_warning("Daemon is not running")

    def print_config_summary(self, config_path: str, executable: str, profiles_count: int) -> None:
        """Print configuration summary."""
        self._console.print(
            Panel(
                f"Config: {escape(config_path)}\n" f"Engine: {escape(executable)}\n" f"Profiles: {profiles_count}",
                title="syncshell Configuration",
                border_style="blue",
            )
        )

    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask for confirmation.

        Args:
            message: Confirmation message.
            default: Default value if user just presses enter.

        Returns:
            True if confirmed.
        """
        suffix = " (Y/n)" if default else " (y/N)"
        response = self._console.input(f"{escape(message)}{suffix}: ").strip().lower()

        if not response:
            return default

        return response in ("y", "yes")


def create_console(
    *, verbose: bool = False, colored: bool = True, file: Optional[IO[str]] = None, width: Optional[int] = None
) -> Console:
    """Create a console instance."""
    return Console(verbose=verbose, colored=colored, file=file, width=width)
