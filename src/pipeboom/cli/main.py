import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pipeboom import __version__
from pipeboom.config.loader import DEFAULT_CONFIG_PATH, ConfigLoader
from pipeboom.config.schema import DaemonConfig
from pipeboom.engine.ipc import send_command
from pipeboom.engine.ipc_protocol import (
    CurrentSongResponse,
    ErrorResponse,
    IpcCommand,
    IpcResponse,
    StatusResponse,
)
from pipeboom.errors import ConfigError, IPCError, SetupError

console = Console()

LOG_LEVELS = ["error", "warn", "info", "debug", "trace"]


def _run_async(coro):
    """Run an async function from sync Click commands."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context) -> DaemonConfig:
    try:
        return ConfigLoader(Path(ctx.obj["config_path"])).load(ctx.obj["overrides"])
    except ConfigError as e:
        console.print(f"[red]Config error: {escape(str(e))}[/red]")
        raise SystemExit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pipeboom")
@click.option("--config", "config_path", default=str(DEFAULT_CONFIG_PATH), type=click.Path(), help="Config file path")
@click.option("--poll-interval", type=click.IntRange(1, 10), default=None, help="Poll interval in seconds (1-10)")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default=None, help="Log level")
@click.option("--max-log-size", type=click.IntRange(min=1), default=None, help="Max log size in MB")
@click.option("--socket-path", type=click.Path(), default=None, help="IPC socket path")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str,
    poll_interval: int | None,
    log_level: str | None,
    max_log_size: int | None,
    socket_path: str | None,
) -> None:
    """Pipeboom — show what Apple Music is playing on your Discord profile.

    Run without a subcommand to start the daemon in the foreground.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "poll_interval": poll_interval,
        "log_level": log_level,
        "max_log_size": max_log_size,
        "socket_path": socket_path,
    }
    if ctx.invoked_subcommand is None:
        _run_daemon(_load_config(ctx))


def _run_daemon(config: DaemonConfig) -> None:
    from pipeboom.engine.app import App
    from pipeboom.logging_config import configure_logging

    configure_logging(config.log_dir, config.log_level, config.max_log_size)

    async def run_daemon() -> None:
        app = App(config)
        await app.run(install_signal_handlers=True)

    try:
        _run_async(run_daemon())
    except IPCError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)


@cli.command()
@click.pass_context
def setup(ctx: click.Context) -> None:
    """Install the Launch Agent and start the service at login."""
    from pipeboom.system import launch_agent

    config = _load_config(ctx)
    try:
        path = launch_agent.install(config.log_dir)
    except SetupError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    console.print("[green]Launch Agent installed and loaded successfully![/green]")
    console.print(f"  Plist:  {path}")
    console.print(f"  Logs:   {config.log_dir / 'pipeboom.log'}")
    console.print(f"  Errors: {config.log_dir / 'pipeboom.err'}")


@cli.command()
def uninstall() -> None:
    """Unload and remove the Launch Agent."""
    from pipeboom.system import launch_agent

    try:
        launch_agent.uninstall()
    except SetupError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    console.print("[green]Launch Agent uninstalled successfully![/green]")


@cli.group()
def service() -> None:
    """Control the running daemon."""


def _service_call(ctx: click.Context, command: IpcCommand) -> None:
    socket_path = _load_config(ctx).socket_path

    async def run() -> IpcResponse:
        return await send_command(command, socket_path=socket_path)

    try:
        response = _run_async(run())
    except IPCError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    _render(response)
    if isinstance(response, ErrorResponse):
        raise SystemExit(1)


def _render(response: IpcResponse) -> None:
    if isinstance(response, ErrorResponse):
        console.print(f"[red]{escape(response.message)}[/red]")
        return

    if isinstance(response, StatusResponse):
        table = Table(title="Pipeboom status", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for field_name, value in (
            ("Running", response.running),
            ("Discord connected", response.discord_connected),
            ("Discord open", response.discord_open),
            ("Music app open", response.music_app_open),
        ):
            color = "green" if value else "red"
            table.add_row(field_name, f"[{color}]{'yes' if value else 'no'}[/{color}]")
        console.print(table)
        return

    if isinstance(response, CurrentSongResponse):
        if response.title is None:
            console.print(f"Nothing playing ({response.state}).")
            return
        table = Table(title="Now playing", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Title", escape(response.title))
        table.add_row("Artist", escape(response.artist or "-"))
        table.add_row("Album", escape(response.album or "-"))
        table.add_row("State", str(response.state))
        console.print(table)
        return

    console.print("[green]OK[/green]")


@service.command("start")
@click.pass_context
def service_start(ctx: click.Context) -> None:
    """Start mirroring presence."""
    _service_call(ctx, IpcCommand.START)


@service.command("stop")
@click.pass_context
def service_stop(ctx: click.Context) -> None:
    """Stop mirroring presence and clear it."""
    _service_call(ctx, IpcCommand.STOP)


@service.command("current-song")
@click.pass_context
def service_current_song(ctx: click.Context) -> None:
    """Show the track the player is on."""
    _service_call(ctx, IpcCommand.CURRENT_SONG)


@service.command("status")
@click.pass_context
def service_status(ctx: click.Context) -> None:
    """Show daemon and application status."""
    _service_call(ctx, IpcCommand.STATUS)


@service.command("shutdown")
@click.pass_context
def service_shutdown(ctx: click.Context) -> None:
    """Stop the daemon process."""
    _service_call(ctx, IpcCommand.SHUTDOWN)
