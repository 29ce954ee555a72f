"""CLI entry point for sendme-tui."""

import atexit
import logging
import os
import subprocess
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
from rich.console import Console

from . import __version__
from .config import CONFIG_FILE, LOG_FILE, Config, load_config, save_config
from .session import SessionController
from .tui_textual import SendmeApp

console = Console()

# Exit status when the backend executable cannot be found (shell convention)
EXIT_BACKEND_NOT_FOUND = 127
EXIT_BACKEND_NOT_EXECUTABLE = 126


def configure_logging(debug_logging: bool, log_file: Path = LOG_FILE) -> None:
    """Configure logging; file-only when debugging so the TUI stays clean."""
    if debug_logging:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
        )
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            handlers=[handler],
        )
        logging.info("sendme-tui starting (debug logging enabled)")
    else:
        # Default: only warn+ so TUI stays clean
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )


@click.group(invoke_without_command=True)
@click.option("--refresh-interval", type=click.FloatRange(min=0.05, max=5.0), default=None, help="UI refresh interval in seconds for this run")
@click.option("--start-dir", type=click.Path(exists=True, file_okay=False), default=None, help="Directory the file browser opens in")
@click.option("--debug-logging/--no-debug-logging", default=None, help="Enable debug logging to file")
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def main(ctx: click.Context, refresh_interval: float | None, start_dir: str | None, debug_logging: bool | None, version: bool) -> None:
    """Sendme - send and receive files with a transfer ticket."""
    if version:
        console.print(f"sendme-tui v{__version__}")
        return

    # If no subcommand, run the TUI
    if ctx.invoked_subcommand is None:
        config = load_config()
        # Apply CLI overrides (not saved to config file)
        if refresh_interval is not None:
            config.refresh_interval = refresh_interval
        if start_dir is not None:
            config.start_dir = start_dir
        if debug_logging is not None:
            config.debug_logging = debug_logging
        run_tui(config)


def run_tui(config: Config | None = None) -> None:
    """Run the Textual TUI with a single session controller."""
    if config is None:
        config = load_config()
    configure_logging(config.debug_logging)

    controller = SessionController()
    # Last line of defence if the UI loop dies before unmount
    atexit.register(controller.teardown)
    try:
        app = SendmeApp(
            controller,
            refresh_interval=config.refresh_interval,
            start_dir=config.start_dir,
        )
        app.run()
    except KeyboardInterrupt:
        pass
    finally:
        controller.teardown()
        atexit.unregister(controller.teardown)


def _run_backend(backend: str, args: list[str]) -> None:
    """Hand off to the transfer engine.

    On POSIX the process image is replaced so that killing this process kills
    the engine itself.
    """
    argv = [backend, *args]
    try:
        if os.name == "posix":
            os.execvp(backend, argv)
        else:
            result = subprocess.run(argv)
            sys.exit(result.returncode)
    except FileNotFoundError:
        click.echo(f"Error: transfer backend '{backend}' not found", err=True)
        sys.exit(EXIT_BACKEND_NOT_FOUND)
    except OSError as e:
        click.echo(f"Error: cannot run transfer backend '{backend}': {e}", err=True)
        sys.exit(EXIT_BACKEND_NOT_EXECUTABLE)


@main.command()
@click.argument("path")
def send(path: str) -> None:
    """Send PATH and print the receive ticket (used by the TUI)."""
    _run_backend(load_config().backend, ["send", path])


@main.command()
@click.argument("ticket")
def receive(ticket: str) -> None:
    """Receive a transfer with TICKET (used by the TUI)."""
    _run_backend(load_config().backend, ["receive", ticket])


@main.command()
@click.option("--backend", help="Transfer engine executable (default: sendme)")
@click.option("--refresh-interval", type=click.FloatRange(min=0.05, max=5.0), default=None, help="UI refresh interval in seconds")
@click.option("--start-dir", type=click.Path(exists=True, file_okay=False), default=None, help="Directory the file browser opens in")
@click.option("--debug-logging/--no-debug-logging", default=None, help="Enable debug logging to file")
@click.option("--show", is_flag=True, help="Show current configuration")
def config(backend: str | None, refresh_interval: float | None, start_dir: str | None, debug_logging: bool | None, show: bool) -> None:
    """Configure sendme-tui settings.

    Examples:
      sendme-tui config --backend /opt/sendme/bin/sendme   # Use a specific engine
      sendme-tui config --refresh-interval 0.25            # Faster UI refresh
      sendme-tui config --debug-logging                    # Enable debug logging
      sendme-tui config --show                             # Show current config
    """
    current = load_config()

    if show:
        console.print("\n[bold]Current Configuration:[/bold]")
        console.print(f"  Backend:          [cyan]{current.backend}[/cyan]")
        console.print(f"  Refresh Interval: [cyan]{current.refresh_interval}s[/cyan]")
        console.print(f"  Start Dir:        [cyan]{current.start_dir or '(current directory)'}[/cyan]")
        console.print(f"  Debug Logging:    [cyan]{current.debug_logging}[/cyan]")
        console.print(f"\n[dim]Config file: {CONFIG_FILE}[/dim]")
        if current.debug_logging:
            console.print(f"[dim]Log file: {LOG_FILE}[/dim]")
        return

    if backend is None and refresh_interval is None and start_dir is None and debug_logging is None:
        console.print("[yellow]Nothing to change.[/yellow] Use --show to view the current configuration.")
        return

    if backend is not None:
        current.backend = backend
    if refresh_interval is not None:
        current.refresh_interval = refresh_interval
    if start_dir is not None:
        current.start_dir = str(Path(start_dir).resolve())
    if debug_logging is not None:
        current.debug_logging = debug_logging

    save_config(current)
    console.print(f"[green]✓[/green] Configuration saved to {CONFIG_FILE}")


if __name__ == "__main__":
    main()
