"""Typer application and process entry points for routecli.

Two entry points live here:

* :func:`main_cli` -- the ``routecli`` console script declared in
  ``pyproject.toml``. It loads a route file (``--routes FILE``) and either
  runs one command line against it (``call``) or lists its declarations
  (``routes``).
* :func:`main` -- for hand-written client scripts::

      #!/usr/bin/env python
      from routecli.app import main
      from foo.client import FooClient

      main(FooClient())

Both install a SIGINT handler, convert :class:`~routecli.exceptions.RoutecliError`
into its exit code, and write a crash log under the data directory for any
other exception.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

import typer

from routecli import __version__
from routecli.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

if TYPE_CHECKING:
    from routecli.client import Client


app = typer.Typer(
    name="routecli",
    help="Run declarative REST clients described by route files.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"routecli {__version__}")
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
    routes: Optional[str] = typer.Option(
        None, "--routes", "-r", help="Route file (YAML or JSON), or - for stdin."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Base URL, overriding the route file and config."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
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
) -> None:
    """Root callback executed before every sub-command.

    Installs the process-wide :class:`~routecli.output.OutputManager` and
    keeps ``--routes``/``--url`` in ``ctx.obj`` for the sub-commands.
    """
    from routecli.output import OutputFormat, OutputManager, set_output

    output = OutputManager(
        format=OutputFormat.JSON if json_output else OutputFormat.AUTO,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["routes"] = routes
    ctx.obj["url"] = url


def _load_client(ctx: typer.Context) -> Client:
    from routecli.exceptions import InvalidUsageError
    from routecli.loader import load_client

    source = ctx.obj.get("routes")
    if not source:
        raise InvalidUsageError("No route file given; pass --routes FILE")
    return load_client(source, server_url=ctx.obj.get("url"))


@app.command(
    "call",
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    },
)
def call_command(ctx: typer.Context) -> None:
    """Run one operation of the loaded client, e.g. ``call status`` or ``call help``."""
    from routecli.exceptions import RoutecliError
    from routecli.output import error
    from routecli.runner import run

    try:
        client = _load_client(ctx)
    except RoutecliError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)
    with client:
        code = run(client, list(ctx.args), prog="routecli call")
    raise typer.Exit(code=code)


@app.command("routes")
def routes_command(ctx: typer.Context) -> None:
    """List the routes declared by the route file."""
    from routecli.exceptions import RoutecliError
    from routecli.output import error, get_output
    from routecli.registry import registry

    try:
        client = _load_client(ctx)
    except RoutecliError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    key = type(client).registry_key()
    rows = []
    for name in registry.route_names(key):
        spec = registry.get_route(key, name)
        rows.append([name, spec.method.value, spec.url, spec.doc])
    client.close()
    get_output().print_table(["Name", "Method", "URL", "Doc"], rows, title="Routes")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from routecli.config import get_data_dir

    logs_dir = get_data_dir()
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def _handle_crash(exc: Exception) -> None:
    from routecli.exceptions import RoutecliError
    from routecli.output import error

    if isinstance(exc, RoutecliError):
        error(str(exc))
        sys.exit(exc.exit_code)
    log_path = _write_crash_log(exc)
    error(f"Unexpected error. Debug log: {log_path}")
    sys.exit(EXIT_GENERIC_FAILURE)


def main(client: Client, argv: Optional[list[str]] = None) -> None:
    """Entry point for client scripts: run *argv* against *client* and exit.

    Raises:
        SystemExit: Always, with the runner's exit code.
    """
    from routecli.runner import run

    _setup_signal_handlers()
    try:
        code = run(client, argv)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        _handle_crash(exc)
    finally:
        client.close()
    sys.exit(code)


def main_cli() -> None:
    """CLI entry point invoked by the ``routecli`` console script."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        _handle_crash(exc)
