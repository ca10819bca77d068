"""Main CLI entry point for mc-service."""

import sys

import click

from .. import __version__
from ..config import load_config
from ..core import SessionLifecycleManager, create_manager
from ..utils.logging import setup_logging
from .utils import CliError, echo, error_handler, output_json, verbose_echo

USAGE = "mc-service [--runit] start | mc-service {stop|log|attach|cmd|reload|status}"


def get_manager(ctx: click.Context) -> SessionLifecycleManager:
    """Load configuration once and build the lifecycle manager."""
    config = load_config(ctx.obj.get("config_path"))
    log_level = "DEBUG" if ctx.obj.get("verbose") else config.log_level
    setup_logging(
        log_level,
        log_file=config.log_output,
        enable_structured=config.log_structured,
    )
    verbose_echo(ctx, f"Session '{config.session_name}' on socket {config.socket_path}")
    return create_manager(config, echo=echo)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="mc-service")
@click.option("--config", "-c", "config_path", help="Configuration file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--runit",
    is_flag=True,
    help="With start: stay in the foreground until the server exits.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool, runit: bool) -> None:
    """Run the Minecraft server as a managed, attachable tmux session.

    Init systems call start/stop/status; operators use attach, cmd, reload
    and log. Under a process supervisor use --runit start, which blocks
    until the server exits and stops it cleanly on SIGINT/SIGTERM/SIGHUP.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["runit"] = runit

    if ctx.invoked_subcommand is None or (
        runit and ctx.invoked_subcommand != "start"
    ):
        raise click.UsageError(f"Usage: {USAGE}")


@main.command()
@click.pass_context
@error_handler
def start(ctx: click.Context) -> None:
    """Start the server in a detached tmux session."""
    status = get_manager(ctx).start(supervised=ctx.obj["runit"])
    if status:
        sys.exit(status)


@main.command()
@click.pass_context
@error_handler
def stop(ctx: click.Context) -> None:
    """Warn players, stop the server and wait for it to exit."""
    get_manager(ctx).stop()


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format")
@click.pass_context
@error_handler
def status(ctx: click.Context, as_json: bool) -> None:
    """Report whether the server session is running."""
    result = get_manager(ctx).status()

    if as_json:
        output_json(result.to_dict())
        return

    if not result.running:
        click.echo("Minecraft server is not running.")
        return

    click.echo(
        f"Minecraft server is running in tmux session '{result.session_name}'."
    )
    if result.pid is not None:
        click.echo(f"PID: {result.pid}")
    if result.process:
        click.echo(
            f"Process: {result.process.status}, {result.process.memory_mb:.1f} MB resident"
        )


@main.command()
@click.pass_context
@error_handler
def log(ctx: click.Context) -> None:
    """Stream the server's live log (Ctrl-C to quit)."""
    try:
        for line in get_manager(ctx).follow_log():
            click.echo(line, nl=False)
    except KeyboardInterrupt:
        pass


@main.command()
@click.pass_context
@error_handler
def attach(ctx: click.Context) -> None:
    """Attach this terminal to the server console (Ctrl-b d detaches)."""
    exit_code = get_manager(ctx).attach()
    if exit_code:
        sys.exit(exit_code)


@main.command(context_settings={"ignore_unknown_options": True})
@click.argument("text", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@error_handler
def cmd(ctx: click.Context, text: tuple[str, ...]) -> None:
    """Type TEXT into the server console, followed by Enter."""
    if not text:
        raise CliError("No command provided. Usage: mc-service cmd '<command>'", 2)

    command = " ".join(text)
    get_manager(ctx).issue_command(command)
    click.echo(f"Command '{command}' sent to Minecraft server.")


@main.command()
@click.pass_context
@error_handler
def reload(ctx: click.Context) -> None:
    """Send the reload command to the server."""
    get_manager(ctx).reload()
    click.echo("Reload command sent to Minecraft server.")


if __name__ == "__main__":
    main()
