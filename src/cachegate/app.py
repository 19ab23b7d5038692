"""Typer application factory and CLI entry point for cachegate.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``config``, ``stores``, ``sync``, ``fetch``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. :class:`~cachegate.exceptions.CachegateError`
exits with the error's code; any other exception is written to a crash
log under the data directory.

See Also:
    :mod:`cachegate.config`: Configuration resolution.
    :mod:`cachegate.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from cachegate import __version__
from cachegate.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="cachegate",
    help="Inspect and manage the cachegate offline cache engine.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cachegate {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, quiet: bool, no_color: bool) -> None:
    """Send library log records to stderr through Rich."""
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=verbose,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin", help="Origin whose requests are intercepted."
    ),
    cache_version: Optional[str] = typer.Option(
        None, "--cache-version", help="Cache generation tag (store names derive from it)."
    ),
    store_dir: Optional[str] = typer.Option(
        None, "--store-dir", help="Directory holding the on-disk stores."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~cachegate.output.OutputManager`,
    configures logging, and stores the config overrides in ``ctx.obj``
    for :func:`~cachegate.commands.common.resolve_from_context`.
    """
    from cachegate.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose, quiet, no_color)

    ctx.ensure_object(dict)
    ctx.obj["origin"] = origin
    ctx.obj["cache_version"] = cache_version
    ctx.obj["store_dir"] = store_dir
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to the data directory and return its path."""
    from cachegate.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (idempotent)."""
    if getattr(app, "_cachegate_registered", False):
        return
    from cachegate.commands.config import config_app
    from cachegate.commands.fetch import fetch_command
    from cachegate.commands.stores import stores_app
    from cachegate.commands.sync import sync_app

    app.add_typer(config_app, name="config", help="Configuration management.")
    app.add_typer(stores_app, name="stores", help="Store inspection and maintenance.")
    app.add_typer(sync_app, name="sync", help="Queued request replay.")
    app.command("fetch")(fetch_command)
    app._cachegate_registered = True  # type: ignore[attr-defined]


def main() -> None:
    """CLI entry point invoked by the ``cachegate`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from cachegate.exceptions import CachegateError
        from cachegate.output import error

        if isinstance(exc, CachegateError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
