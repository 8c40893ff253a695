"""wsmux command line

    wsmux [-r HOST] [-s NAME] [-v] [activate|detach|attach|sessions|kill|terminal]

Without a subcommand the focused workspace is activated. ``-r`` and ``-s``
are also accepted after the subcommand, where they win over the ones given
before it. Exit status is 0 on success, 1 on errors (including a session
locked elsewhere) and 2 when ``attach`` needs ``--session`` to choose
between several sessions.
"""

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .errors import WsmuxError
from .session.controller import AttachStatus, SessionController
from .telemetry import metrics, setup_logging
from .wm.client import I3WindowManager

console = Console()

EXIT_ERROR = 1
EXIT_AMBIGUOUS = 2

app = typer.Typer(
    name="wsmux",
    help="Detach and reattach i3/Sway workspaces of terminal sessions.",
    add_completion=False,
    no_args_is_help=False,
)


@dataclass
class CliContext:
    remote: str | None
    session: str | None
    verbose: bool
    logger: logging.Logger
    _controller: SessionController | None = None

    @property
    def controller(self) -> SessionController:
        if self._controller is None:
            self._controller = build_controller(self.logger)
        return self._controller


def build_controller(logger: logging.Logger) -> SessionController:
    """Wire the controller to the running window manager."""
    wm = I3WindowManager(logger=logger)
    logger.debug(f"[CLI] Connected to {wm.name}")
    return SessionController(wm, logger=logger)


def remote_option():
    return typer.Option(None, "--remote", "-r", help="Remote host ([user@]host); local if omitted")


def session_option():
    return typer.Option(None, "--session", "-s", help="Session name")


def resolve(ctx: typer.Context, remote: str | None = None, session: str | None = None) -> CliContext:
    """The shared context with any subcommand-level ``-r``/``-s`` applied."""
    obj: CliContext = ctx.obj
    if remote is not None:
        obj.remote = remote
    if session is not None:
        obj.session = session
    return obj


@contextlib.contextmanager
def handle_errors(ctx: CliContext) -> Iterator[None]:
    """Print a ``WsmuxError`` and exit 1."""
    try:
        yield
    except WsmuxError as e:
        console.print(f"[red]Error:[/red] {e.describe() if ctx.verbose else e.message}", highlight=False)
        if ctx.verbose:
            ctx.logger.debug(f"[CLI] Metrics: {metrics.get_all_counters()}")
        raise typer.Exit(EXIT_ERROR) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    remote: Optional[str] = remote_option(),
    session: Optional[str] = session_option(),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    logger = setup_logging("DEBUG" if verbose else None)
    ctx.obj = CliContext(remote=remote, session=session, verbose=verbose, logger=logger)
    if ctx.invoked_subcommand is None:
        activate(ctx, remote=None, session=None)


@app.command()
def activate(
    ctx: typer.Context,
    remote: Optional[str] = remote_option(),
    session: Optional[str] = session_option(),
) -> None:
    """Bind the focused workspace to a session and open a terminal."""
    obj = resolve(ctx, remote, session)
    with handle_errors(obj):
        result = obj.controller.activate(host=obj.remote, name=obj.session)
    where = "locally" if result.host == "local" else f"on {result.host}"
    console.print(f"Workspace {result.label} activated {where} ({result.terminal.socket})", highlight=False)


@app.command()
def terminal(ctx: typer.Context) -> None:
    """Open a terminal (managed if the workspace is bound)."""
    obj: CliContext = ctx.obj
    with handle_errors(obj):
        obj.controller.terminal()


@app.command()
def detach(ctx: typer.Context, session: Optional[str] = session_option()) -> None:
    """Save the workspace layout and close its windows."""
    obj = resolve(ctx, session=session)
    with handle_errors(obj):
        result = obj.controller.detach(name=obj.session)
    console.print(
        f"Detached [bold]{result.name}[/bold] ({len(result.sockets)} terminals) on {result.host}",
        highlight=False,
    )
    for error in result.cleanup_errors:
        console.print(f"[yellow]Warning:[/yellow] {error}", highlight=False)


@app.command()
def attach(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Break a lock held elsewhere"),
    remote: Optional[str] = remote_option(),
    session: Optional[str] = session_option(),
) -> None:
    """Restore a detached session into the focused workspace."""
    obj = resolve(ctx, remote, session)
    with handle_errors(obj):
        result = obj.controller.attach(host=obj.remote, name=obj.session, force=force)

    if result.status is AttachStatus.AMBIGUOUS:
        console.print(f"Several sessions on {result.host}, choose one with --session:")
        for name in result.candidates:
            console.print(f"  {name}", highlight=False)
        raise typer.Exit(EXIT_AMBIGUOUS)

    if result.status is AttachStatus.LOCKED:
        owner = f" by {result.owner_host} (since {result.acquired_at})" if result.owner_host else ""
        console.print(
            f"[red]Session {result.name} is locked{owner}.[/red] Use --force to take it over.",
            highlight=False,
        )
        raise typer.Exit(EXIT_ERROR)

    console.print(
        f"Attached [bold]{result.name}[/bold] ({len(result.sockets)} terminals) to workspace {result.label}",
        highlight=False,
    )


@app.command()
def sessions(ctx: typer.Context, remote: Optional[str] = remote_option()) -> None:
    """List stored sessions."""
    obj = resolve(ctx, remote)
    with handle_errors(obj):
        summaries = obj.controller.sessions(host=obj.remote)

    if not summaries:
        console.print("No sessions.")
        return

    table = Table(title=f"Sessions on {obj.remote or 'local'}")
    table.add_column("Name")
    table.add_column("Terminals", justify="right")
    table.add_column("Lock")
    for summary in summaries:
        if summary.error:
            lock = f"[red]{summary.error}[/red]"
        elif summary.lock_status == "locked":
            lock = f"locked by {summary.owner_host}"
        elif summary.lock_status == "stale":
            lock = "[dim]stale[/dim]"
        else:
            lock = ""
        table.add_row(summary.name, str(summary.terminals), lock)
    console.print(table)


@app.command()
def kill(
    ctx: typer.Context,
    remote: Optional[str] = remote_option(),
    session: Optional[str] = session_option(),
) -> None:
    """Delete a stored session (requires --session)."""
    obj = resolve(ctx, remote, session)
    if not obj.session:
        console.print("[red]Error:[/red] kill requires --session NAME")
        raise typer.Exit(EXIT_ERROR)
    with handle_errors(obj):
        obj.controller.kill(obj.session, host=obj.remote)
    console.print(f"Deleted {obj.session}", highlight=False)


def main() -> None:
    app()
