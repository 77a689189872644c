"""Command-line runner: map an argv token stream onto a client operation.

Every operation of a :class:`~routecli.client.Client` has a command-line
form. With ``fooclient`` being a script that calls
``routecli.app.main(FooClient())``::

    fooclient                              # usage
    fooclient help foo                     # help for one operation
    fooclient status                       # client.status()
    fooclient --remote bar status          # same, against remote profile "bar"
    fooclient obj 31                       # client.obj("31")
    fooclient search obj --color beige     # client.obj_search(...)
    fooclient create obj new.yml           # client.obj(<new.yml as YAML>)
    fooclient delete obj 31                # client.obj_delete("31")
    fooclient foo --name baz               # client.foo(name="baz")

Routes with an ``args`` spec are bound once in command-line mode. Routes
without one go through the older data-source heuristics: trailing tokens
naming readable files or ``host:path`` references are loaded as YAML and
each becomes one invocation; ``create`` and ``update`` read a YAML payload
from standard input when nothing else was given.

:func:`run` returns an exit code instead of exiting, so that scripts and
tests can inspect it.
"""

from __future__ import annotations

import os
import sys
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Optional, TextIO

import httpx
import yaml

from routecli.binder import args_string
from routecli.dispatcher import decode_body
from routecli.exceptions import InvalidUsageError, ProtocolError, RoutecliError
from routecli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from routecli.models import HTTPMethod, RouteSpec
from routecli.objects import ClientObject
from routecli.output import OutputFormat, OutputManager, is_tty
from routecli.remote import expand_remote_glob, is_data_source, load_yaml

if TYPE_CHECKING:
    from routecli.client import Client

PAYLOAD_VERBS = ("create", "update")
SUFFIX_VERBS = ("search", "delete")


def run(
    client: Client,
    argv: Optional[list[str]] = None,
    *,
    output: Optional[OutputManager] = None,
    stdin: Optional[TextIO] = None,
    prog: Optional[str] = None,
) -> int:
    """Run one command line against *client* and return the exit code.

    Args:
        client: The client whose operations are exposed.
        argv: Tokens after the program name. Defaults to ``sys.argv[1:]``.
        output: Output manager for data and diagnostics. When given it is
            also installed on the client.
        stdin: Stream for YAML payloads and ``-`` filenames. Defaults to
            ``sys.stdin``.
        prog: Program name used in usage text. Defaults to the basename of
            ``sys.argv[0]``.

    Returns:
        ``0`` on success (including usage and help), the exception's exit
        code for argument, YAML or remote failures, and the code mapped from
        the last failed HTTP exchange otherwise.
    """
    tokens = list(sys.argv[1:] if argv is None else argv)
    if output is not None:
        client.output = output
    output = client.output
    prog = prog or os.path.basename(sys.argv[0]) or client.application_name()
    try:
        return _run(client, tokens, output, stdin, prog)
    except RoutecliError as exc:
        output.error(str(exc))
        return exc.exit_code


def _run(
    client: Client,
    tokens: list[str],
    output: OutputManager,
    stdin: Optional[TextIO],
    prog: str,
) -> int:
    if not tokens or (len(tokens) == 1 and tokens[0].endswith("help")):
        output.print_data(usage(client, prog))
        return EXIT_SUCCESS
    if len(tokens) == 2 and tokens[0] == "help":
        output.print_data(command_help(client, prog, tokens[1]))
        return EXIT_SUCCESS
    if len(tokens) == 2 and tokens[1] == "--help":
        output.print_data(command_help(client, prog, tokens[0]))
        return EXIT_SUCCESS

    tokens = _apply_common_options(client, tokens, output)

    if not tokens:
        return _unusable(client, prog, output, "Missing command")
    method = tokens.pop(0)
    read_stdin = False
    if method in PAYLOAD_VERBS:
        if not tokens:
            return _unusable(client, prog, output, "Missing <object>")
        read_stdin = True
        method = tokens.pop(0)
    elif method in SUFFIX_VERBS:
        if not tokens:
            return _unusable(client, prog, output, "Missing <object>")
        method = f"{tokens.pop(0)}_{method}"

    route = client.get_route(method)
    if route is None:
        return _unusable(client, prog, output, f"Unrecognized argument : {method}")

    if route.args:
        result = client.call(method, *tokens, command_line=True, stdin=stdin)
        failure = _failure_code(client)
        render(client, route, result, output)
        return failure or EXIT_SUCCESS

    args: list[Any] = list(tokens)
    sources: list[str] = []
    if not route.attributes.dont_read_files:
        args, sources = _split_sources(args, output)
    if not sources and read_stdin and not args:
        payload = _read_stdin_payload(method, stdin)
        if payload is not None:
            args.append(payload)

    last_failure: Optional[int] = None
    for source in sources or [None]:
        call_args = list(args)
        if source is not None:
            call_args.append(load_yaml(source, output))
        result = client.call(method, *call_args, stdin=stdin)
        failure = _failure_code(client)
        if failure is not None:
            last_failure = failure
            continue
        render(client, route, result, output)
    return last_failure or EXIT_SUCCESS


# ------------------------------------------------------------------ #
# Argument handling
# ------------------------------------------------------------------ #


def _apply_common_options(
    client: Client, tokens: list[str], output: OutputManager,
) -> list[str]:
    """Consume leading ``--remote``, ``--verbose``, ``--quiet``, ``--no-color`` and ``--json``."""
    tokens = list(tokens)
    while tokens:
        option = tokens[0]
        if option == "--remote":
            if len(tokens) < 2:
                raise InvalidUsageError("Missing value for --remote")
            client.use_remote(tokens[1])
            del tokens[:2]
            continue
        if option in ("--verbose", "-v"):
            output.configure(verbose=True)
        elif option in ("--quiet", "-q"):
            output.configure(quiet=True)
        elif option == "--no-color":
            output.configure(no_color=True)
        elif option == "--json":
            output.configure(format=OutputFormat.JSON)
        else:
            break
        tokens.pop(0)
    return tokens


def _split_sources(args: list[Any], output: OutputManager) -> tuple[list[Any], list[str]]:
    """Separate the trailing run of data sources, expanding remote globs in order."""
    split = len(args)
    while split > 0 and is_data_source(args[split - 1]):
        split -= 1
    sources: list[str] = []
    for token in args[split:]:
        sources.extend(expand_remote_glob(token, output))
    return args[:split], sources


def _read_stdin_payload(method: str, stdin: Optional[TextIO]) -> Any:
    stream = stdin if stdin is not None else sys.stdin
    if is_tty(stream):
        return None
    text = stream.read()
    if not text.strip():
        return None
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RoutecliError(f"Invalid yaml content in {method}: {exc}") from exc
    if not payload:
        raise RoutecliError(f"Invalid yaml content in {method}")
    return payload


def _failure_code(client: Client) -> Optional[int]:
    """Exit code for the client's latest exchange, or ``None`` if it succeeded."""
    if client.last_error is not None:
        return client.last_error.exit_code
    response = client.last_response
    if response is not None and not response.is_success:
        return ProtocolError(response.status_code, client.errorstring() or "").exit_code
    return None


def _unusable(client: Client, prog: str, output: OutputManager, message: str) -> int:
    output.print_data(usage(client, prog))
    output.error(message)
    return EXIT_INVALID_USAGE


# ------------------------------------------------------------------ #
# Usage and help text
# ------------------------------------------------------------------ #


def usage(client: Client, prog: str) -> str:
    """Usage text listing every route and object of *client*."""
    lines = ["Usage:"]
    for name, doc in client.routes():
        lines.append(f"       {prog} [opts] {name} {doc}".rstrip())
    objects = client.objects()
    if objects:
        lines.extend([
            f"       {prog} [opts] <object>",
            f"       {prog} [opts] <object> <keys>",
            f"       {prog} [opts] search <object> [--key value]",
            f"       {prog} [opts] create <object> [<filename list>]",
            f"       {prog} [opts] update <object> <keys> [<filename>]",
            f"       {prog} [opts] delete <object> <keys>",
            "",
            "      <object> may be one of the following :",
        ])
        for name, doc in objects:
            lines.append(f"      {name} {doc}".rstrip())
    lines.extend([
        "",
        "    [opts] are --remote <name>, --verbose, --quiet, --no-color and --json.",
        "",
        f"For help about a particular command, type {prog} help <command>.",
    ])
    return "\n".join(lines)


def command_help(client: Client, prog: str, command: str) -> str:
    """Help for one operation: usage line, description and argument list."""
    route = client.get_route(command)
    if route is None:
        return f"Unknown command : {command}"
    lines = [f"{prog} {command} {route.doc}".rstrip()]
    description = route.attributes.description
    if description:
        lines.append(f"\nDescription :\n    {description.rstrip()}")
    if route.args:
        lines.append("Arguments :\n" + args_string(route.args))
    return "\n".join(lines)


# ------------------------------------------------------------------ #
# Rendering
# ------------------------------------------------------------------ #


def render(client: Client, route: RouteSpec, result: Any, output: OutputManager) -> None:
    """Print one operation result.

    * :class:`httpx.Response` -- ``"<code> <reason>"``, or an error line.
    * ``{"text": ...}`` -- the text verbatim.
    * POST on a ``quiet_post`` route -- an info line with the status.
    * anything else -- YAML (or JSON with ``--json``), datetimes as ISO-8601.

    ``None`` and ``""`` print nothing.
    """
    if result is None or (isinstance(result, str) and result == ""):
        return
    if isinstance(result, httpx.Response):
        status = f"{result.status_code} {result.reason_phrase}"
        if result.is_success:
            output.print_data(status)
        else:
            output.error(f"({result.status_code}) {result.reason_phrase}")
        return

    data = plain_data(result)
    text = _text_only(data)
    if text is not None:
        output.print_data(text)
        return

    request, response = client.last_request, client.last_response
    if (
        route.attributes.quiet_post
        and request is not None
        and response is not None
        and request.method == HTTPMethod.POST.value
    ):
        message = f"{response.status_code} {response.reason_phrase}"
        got = _text_only(decode_body(response))
        if got is not None:
            message += f" ({got})"
        output.info(message)
        return

    output.format_response(data)


def plain_data(value: Any) -> Any:
    """Unwrap :class:`ClientObject` values and turn datetimes into ISO-8601 strings."""
    if isinstance(value, ClientObject):
        return plain_data(value.data)
    if isinstance(value, dict):
        return {k: plain_data(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain_data(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _text_only(data: Any) -> Optional[str]:
    if isinstance(data, dict) and len(data) == 1 and data.get("text"):
        return str(data["text"])
    return None
