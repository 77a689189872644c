"""Output formatting system with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (decoded API responses, usage text).
* **stderr** -- all diagnostics (request tracing, status lines, warnings,
  errors). Never contaminates the data stream.
* **TTY detection** -- YAML with Rich syntax highlighting when stdout is an
  interactive terminal, plain YAML when piped to another process.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

The module exposes two layers:

1. :class:`OutputManager` -- a stateful object holding format preferences,
   Rich consoles, quiet/verbose flags and the two output *sinks*. Callers
   choose the sinks explicitly: tests pass :class:`io.StringIO` objects, a
   caller that wants to discard data passes ``open(os.devnull, "w")``.
2. Module-level convenience functions (:func:`info`, :func:`error`,
   :func:`debug`, etc.) that delegate to the process-wide ``OutputManager``
   so that code without an injected manager still has somewhere to log.

Every component of routecli (dispatcher, runner, remote loader) accepts an
``OutputManager`` argument and only falls back to :func:`get_output` when
none is given.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional, TextIO

import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Enumeration of supported data output formats.

    ``AUTO`` resolves to ``RICH`` when stdout is an interactive TTY and colour
    is not disabled, or to ``YAML`` otherwise.
    """

    AUTO = "auto"
    YAML = "yaml"
    JSON = "json"
    RICH = "rich"


class OutputManager:
    """Central manager for all CLI output with stdout/stderr discipline.

    Args:
        format: Desired output format. ``AUTO`` resolves based on TTY
            detection.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress informational messages on stderr.
        verbose: Enable debug-level messages on stderr.
        stdout: Sink for data output. Defaults to ``sys.stdout``.
        stderr: Sink for diagnostics. Defaults to ``sys.stderr``.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self._out = stdout if stdout is not None else sys.stdout
        self._err = stderr if stderr is not None else sys.stderr
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH
                if is_tty(self._out) and not self._no_color
                else OutputFormat.YAML
            )
        else:
            self._format = format

        self._stdout = Console(
            file=self._out,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=self._err, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        """The resolved output format."""
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    def configure(
        self,
        quiet: Optional[bool] = None,
        verbose: Optional[bool] = None,
        format: Optional[OutputFormat] = None,
        no_color: Optional[bool] = None,
    ) -> None:
        """Adjust verbosity, colour or format after construction.

        Used by the CLI runner when ``--quiet``, ``--verbose``, ``--no-color``
        or ``--json`` appear among the leading options.
        """
        if quiet is not None:
            self._quiet = quiet
        if verbose is not None:
            self._verbose = verbose
        if no_color:
            self._no_color = True
            self._stdout.no_color = True
            self._stderr.no_color = True
            if self._format == OutputFormat.RICH:
                self._format = OutputFormat.YAML
        if format is not None and format != OutputFormat.AUTO:
            self._format = format

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a decoded response to stdout in the active format.

        Structured data is dumped as block-style YAML (or JSON with
        ``--json``); strings are written verbatim.

        Args:
            data: Plain data -- dicts, lists, scalars. Callers convert
                wrapper objects and datetimes first.
        """
        if isinstance(data, str):
            self.print_data(data)
            return

        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
            return

        text = yaml.safe_dump(
            data, default_flow_style=False, sort_keys=False, allow_unicode=True,
        )
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(text, "yaml", theme="monokai", word_wrap=True))
        else:
            self.print_data(text)

    def print_data(self, text: str) -> None:
        """Write raw text to the data sink, adding a trailing newline if missing."""
        self._out.write(text)
        if not text.endswith("\n"):
            self._out.write("\n")
        self._out.flush()

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print tabular data to stdout.

        * **Rich mode** -- styled :class:`~rich.table.Table`.
        * **JSON mode** -- array of objects keyed by header names.
        * **YAML mode** -- tab-separated values, one row per line.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.YAML:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for h in headers:
                table.add_column(h)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._diag(escape(message), message)

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        self._diag(
            f"[yellow]Warning:[/yellow] {escape(message)}", f"Warning: {message}",
        )

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        self._diag(
            f"[bold red]Error:[/bold red] {escape(message)}", f"Error: {message}",
        )

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown when verbose."""
        if self._verbose:
            self._diag(f"[dim][debug] {escape(message)}[/dim]", f"[debug] {message}")

    def _diag(self, markup: str, plain: str) -> None:
        if self._no_color:
            print(plain, file=self._err, flush=True)
        else:
            self._stderr.print(markup, soft_wrap=True)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def is_tty(stream: Any = None) -> bool:
    """Check if *stream* (default stdout) is a TTY."""
    stream = stream if stream is not None else sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def _should_disable_color() -> bool:
    """Check if color should be disabled per clig.dev.

    Returns True when NO_COLOR env var is set (any value) or TERM=dumb.
    """
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


# ------------------------------------------------------------------ #
# Process-wide output instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the process-wide :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the process-wide :class:`OutputManager`."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the process-wide :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the process-wide instance
# ------------------------------------------------------------------ #


def info(message: str) -> None:
    """Print info message to stderr via the process-wide OutputManager."""
    get_output().info(message)


def error(message: str) -> None:
    """Print error to stderr via the process-wide OutputManager."""
    get_output().error(message)


def warning(message: str) -> None:
    """Print warning to stderr via the process-wide OutputManager."""
    get_output().warning(message)


def debug(message: str) -> None:
    """Print debug message to stderr via the process-wide OutputManager."""
    get_output().debug(message)
