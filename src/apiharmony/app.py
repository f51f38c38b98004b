"""Typer application and CLI entry point for apiharmony.

This module wires together the top-level Typer application and registers the
built-in commands (``load``, ``info``, ``endpoints``, ``operation``,
``schemas``, ``show`` and the ``config`` group).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. Unhandled exceptions are written to a crash log under
the data directory.

See Also:
    :mod:`apiharmony.config`: Configuration resolution used by
        :func:`main_callback`.
    :mod:`apiharmony.output`: Output formatting initialised in
        :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from apiharmony import __version__
from apiharmony.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="apiharmony",
    help="Import, validate and analyse OpenAPI/Swagger specifications.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"apiharmony {__version__}")
        raise typer.Exit()


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
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Fetch timeout in seconds."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the fetched-document cache."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Resolves the effective configuration, initialises the global
    :class:`~apiharmony.output.OutputManager` from CLI flags and the
    configured output format, and stores the configuration in ``ctx.obj``
    for sub-commands.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        timeout: Fetch timeout override (highest precedence).
        no_cache: Disable the document cache for this run.
    """
    from apiharmony.config import resolve_config
    from apiharmony.exceptions import ConfigError
    from apiharmony.output import OutputFormat, OutputManager, error, set_output

    cli_format: Optional[str] = None
    if json_output:
        cli_format = OutputFormat.JSON.value
    elif plain_output:
        cli_format = OutputFormat.PLAIN.value

    try:
        config = resolve_config(
            cli_timeout=timeout, cli_format=cli_format, cli_no_cache=no_cache
        )
    except ConfigError as exc:
        set_output(OutputManager(no_color=no_color))
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    try:
        fmt = OutputFormat(config.output.format)
    except ValueError:
        fmt = OutputFormat.AUTO

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
            use_pager=config.output.pager,
        )
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


def _register_commands() -> None:
    from apiharmony.commands.cache import cache_app
    from apiharmony.commands.config import config_app
    from apiharmony.commands.inspect import (
        endpoints_command,
        info_command,
        load_command,
        operation_command,
        schemas_command,
        show_command,
    )

    app.command("load")(load_command)
    app.command("info")(info_command)
    app.command("endpoints")(endpoints_command)
    app.command("operation")(operation_command)
    app.command("schemas")(schemas_command)
    app.command("show")(show_command)
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.add_typer(cache_app, name="cache", help="Fetched-document cache management.")


_register_commands()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from apiharmony.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``apiharmony`` console script.

    Unhandled :class:`~apiharmony.exceptions.HarmonyError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from apiharmony.exceptions import HarmonyError
        from apiharmony.output import error

        if isinstance(exc, HarmonyError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
