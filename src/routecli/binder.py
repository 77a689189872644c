"""Bind call-site arguments to a route's argument spec.

This is the core algorithm behind every route that declares ``args``.  The
same parser serves two call styles:

* **Command line** -- ``fooclient foo --name baz extra.txt``: tokens are
  already in ``--option value`` form.
* **Programmatic** -- ``client.foo("name", "baz")`` or
  ``client.foo(name="baz")``: bare tokens that match a declared argument
  name get a ``--`` prefix first, so both styles share one parser.

**Algorithm summary**

1. Routes without ``args`` pass their arguments through untouched.
2. In programmatic mode, mark named arguments with ``--``.
3. Expand unambiguous ``--prefix`` abbreviations, then parse named
   arguments with a :class:`click.Command` built from the specs; unknown
   tokens are passed through, in order, for step 4.
4. Hand leftover bare tokens to ``positional`` specs in declaration order.
5. Fail on missing required arguments.
6. Fail on tokens nothing consumed.
7. Apply ``preprocess`` transforms (YAML document, line list, datetime).
8. Return ``(name, value)`` pairs in declaration order.

Any failure aborts the whole bind with a
:class:`~routecli.exceptions.BindingError` carrying the route's generated
help text.
"""

from __future__ import annotations

import re
import sys
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence, TextIO

import click
import yaml
from pydantic import TypeAdapter, ValidationError

from routecli.exceptions import (
    BindingError,
    MissingRequiredArgument,
    PreprocessFailure,
    UnknownArgument,
)
from routecli.models import ArgSpec, Positional, Preprocess, RouteSpec

BoundArgs = list[tuple[str, Any]]

STDIN_MARKER = "-"
"""Filename that makes a ``yaml-document`` argument read standard input."""

_SHELF_PREFIX = "\x00routecli-shelf:"

_DATETIME = TypeAdapter(datetime)

_ISO8601_EXTENDED = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2})(?::(?P<minute>\d{2})(?::(?P<second>\d{2})(?:[.,]\d+)?)?)?"
    r"(?:Z|[+-]\d{2}(?::?\d{2})?)?)?"
)
_ISO8601_BASIC = re.compile(
    r"(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2})(?:(?P<minute>\d{2})(?:(?P<second>\d{2})(?:[.,]\d+)?)?)?"
    r"(?:Z|[+-]\d{2}(?:\d{2})?)?)?"
)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def bind(
    route: RouteSpec,
    raw_args: Sequence[Any],
    command_line: bool = False,
    kwargs: Optional[Mapping[str, Any]] = None,
    stdin: Optional[TextIO] = None,
) -> list[Any]:
    """Bind *raw_args* (and *kwargs*) to *route*'s argument spec.

    Args:
        route: The route whose ``args`` attribute drives binding.
        raw_args: Call-site tokens. In programmatic mode these may include
            non-string values (dicts, lists, numbers), which are carried
            through parsing unchanged.
        command_line: ``True`` when *raw_args* come from ``argv``.
        kwargs: Python keyword arguments, keyed by argument name (hyphens
            may be written as underscores).
        stdin: Stream read for the ``-`` filename. Defaults to
            ``sys.stdin``.

    Returns:
        ``(name, value)`` pairs in declaration order, or *raw_args*
        unchanged when the route has no argument spec.

    Raises:
        MissingRequiredArgument: A required argument has no value.
        UnknownArgument: Tokens are left over after all specs were applied.
        PreprocessFailure: A YAML, line-list or datetime transform failed.
        BindingError: The option syntax itself is malformed.
    """
    specs = route.args
    if not specs:
        return list(raw_args)

    help_text = route_args_help(route)
    tokens = list(raw_args)
    if not command_line:
        tokens = _mark_named_arguments(specs, tokens)
    if kwargs:
        tokens.extend(_kwargs_to_tokens(specs, kwargs, help_text))

    tokens, shelf = _shelve(tokens)
    values, leftover = _parse_named(route.name, specs, tokens, help_text)
    _consume_positionals(specs, values, leftover)

    for spec in specs:
        if spec.required and spec.name not in values:
            raise MissingRequiredArgument(spec.name, help_text)

    if leftover:
        raise UnknownArgument([_unshelve(t, shelf) for t in leftover], help_text)

    values = {name: _unshelve(value, shelf) for name, value in values.items()}
    _preprocess(specs, values, help_text, stdin)

    return [(spec.name, values[spec.name]) for spec in specs if spec.name in values]


def args_string(specs: Sequence[ArgSpec]) -> str:
    """One help line per argument: ``--name (required|optional) string|flag doc``."""
    lines = []
    for spec in specs:
        marker = "(required)" if spec.required else "(optional)"
        kind = "string" if spec.takes_value else "flag"
        line = f"   --{spec.name} {marker} {kind}"
        if spec.alt:
            line += " [" + ", ".join(f"--{a}" for a in spec.alt) + "]"
        if spec.doc:
            line += f" {spec.doc}"
        lines.append(line)
    return "\n".join(lines)


def route_args_help(route: RouteSpec) -> str:
    """Help text attached to every :class:`BindingError` for *route*."""
    return f"Valid options for '{route.name}' are :\n{args_string(route.args or [])}"


# ---------------------------------------------------------------------------
# Programmatic-call normalisation
# ---------------------------------------------------------------------------


def _mark_named_arguments(specs: Sequence[ArgSpec], tokens: list[Any]) -> list[Any]:
    """Prefix bare argument names with ``--`` so the option parser sees them.

    Positional specs are not marked. A string-typed name consumes the
    following token as its value, so a value that happens to equal another
    argument's name is left alone.
    """
    takes_value: dict[str, bool] = {}
    for spec in specs:
        if spec.positional is not None:
            continue
        for name in spec.names:
            takes_value[name] = spec.takes_value

    marked: list[Any] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if isinstance(token, str) and token in takes_value:
            marked.append(f"--{token}")
            if takes_value[token] and index < len(tokens):
                marked.append(tokens[index])
                index += 1
        else:
            marked.append(token)
    return marked


def _kwargs_to_tokens(
    specs: Sequence[ArgSpec], kwargs: Mapping[str, Any], help_text: str,
) -> list[Any]:
    by_name: dict[str, ArgSpec] = {}
    for spec in specs:
        for name in spec.names:
            by_name[name] = spec
            by_name[name.replace("-", "_")] = spec

    tokens: list[Any] = []
    unknown: list[str] = []
    for key, value in kwargs.items():
        spec = by_name.get(key)
        if spec is None:
            unknown.append(key)
            continue
        if spec.takes_value:
            tokens.extend([f"--{spec.name}", value])
        elif value:
            tokens.append(f"--{spec.name}")
    if unknown:
        raise UnknownArgument(unknown, help_text)
    return tokens


def _shelve(tokens: list[Any]) -> tuple[list[str], dict[str, Any]]:
    """Swap non-string tokens for placeholder strings the option parser can handle."""
    shelf: dict[str, Any] = {}
    shelved: list[str] = []
    for index, token in enumerate(tokens):
        if isinstance(token, str):
            shelved.append(token)
        else:
            key = f"{_SHELF_PREFIX}{index}"
            shelf[key] = token
            shelved.append(key)
    return shelved, shelf


def _unshelve(value: Any, shelf: dict[str, Any]) -> Any:
    if isinstance(value, list):
        return [_unshelve(item, shelf) for item in value]
    if isinstance(value, str) and value in shelf:
        return shelf[value]
    return value


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _param_name(index: int) -> str:
    return f"arg{index}"


def _build_command(route_name: str, specs: Sequence[ArgSpec]) -> click.Command:
    """Build a throwaway :class:`click.Command` that only parses options.

    Requiredness is checked after positional consumption, so every option
    is optional at the click level. Unknown options and bare tokens are
    kept in ``ctx.args``.
    """
    params: list[click.Parameter] = []
    for index, spec in enumerate(specs):
        decls = []
        for name in spec.names:
            decls.append(f"--{name}")
            if len(name) == 1:
                decls.append(f"-{name}")
        decls.append(_param_name(index))
        if spec.takes_value:
            params.append(
                click.Option(decls, type=click.UNPROCESSED, default=None, required=False)
            )
        else:
            params.append(click.Option(decls, is_flag=True, default=False))

    return click.Command(
        route_name,
        params=params,
        add_help_option=False,
        context_settings={
            "ignore_unknown_options": True,
            "allow_extra_args": True,
            "allow_interspersed_args": True,
        },
    )


def _expand_abbreviations(specs: Sequence[ArgSpec], tokens: list[str]) -> list[str]:
    """Expand each unambiguous ``--prefix`` to the long option it abbreviates.

    A prefix shared by names of different arguments stays as it is and is
    later reported as unknown.
    """
    owners: dict[str, int] = {}
    for index, spec in enumerate(specs):
        for name in spec.names:
            owners[name] = index

    expanded: list[str] = []
    for position, token in enumerate(tokens):
        if token == "--":
            expanded.extend(tokens[position:])
            break
        if token.startswith("--") and len(token) > 2:
            option, sep, value = token[2:].partition("=")
            if option not in owners:
                matches = [name for name in owners if name.startswith(option)]
                if matches and len({owners[m] for m in matches}) == 1:
                    token = f"--{matches[0]}{sep}{value}"
        expanded.append(token)
    return expanded


def _parse_named(
    route_name: str,
    specs: Sequence[ArgSpec],
    tokens: list[str],
    help_text: str,
) -> tuple[dict[str, Any], list[str]]:
    """Return the named values that were supplied and the tokens left over."""
    command = _build_command(route_name, specs)
    try:
        ctx = command.make_context(route_name, _expand_abbreviations(specs, tokens))
    except click.UsageError as exc:
        raise BindingError(f"Invalid options. {exc.format_message()}", help_text) from exc

    values: dict[str, Any] = {}
    for index, spec in enumerate(specs):
        value = ctx.params.get(_param_name(index))
        if spec.takes_value:
            if value is not None:
                values[spec.name] = value
        elif value:
            values[spec.name] = True
    return values, list(ctx.args)


def _consume_positionals(
    specs: Sequence[ArgSpec], values: dict[str, Any], leftover: list[str],
) -> None:
    """Assign bare tokens to positional specs; mutates *values* and *leftover*."""
    for spec in specs:
        if not leftover:
            return
        if spec.positional is None or spec.name in values:
            continue
        if spec.positional == Positional.ONE:
            values[spec.name] = leftover.pop(0)
        else:
            values[spec.name] = list(leftover)
            leftover.clear()


# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------


def _preprocess(
    specs: Sequence[ArgSpec],
    values: dict[str, Any],
    help_text: str,
    stdin: Optional[TextIO],
) -> None:
    for spec in specs:
        if spec.preprocess is None or spec.name not in values:
            continue
        value = values[spec.name]
        if value is None or value == "":
            continue
        if isinstance(value, str) and "\n" in value:
            raise PreprocessFailure(
                f"Argument for {spec.name} should be a filename, a list or - for STDIN",
                help_text,
            )
        transform = _PREPROCESSORS[spec.preprocess]
        values[spec.name] = transform(spec, value, help_text, stdin)


def _load_yaml_document(
    spec: ArgSpec, value: Any, help_text: str, stdin: Optional[TextIO],
) -> Any:
    if isinstance(value, (dict, list)):
        return value
    filename = str(value)
    try:
        if filename == STDIN_MARKER:
            document = yaml.safe_load((stdin or sys.stdin).read())
        else:
            with open(filename, encoding="utf-8") as f:
                document = yaml.safe_load(f)
    except OSError as exc:
        raise PreprocessFailure(f"Cannot read {filename} for {spec.name}: {exc}", help_text) from exc
    except yaml.YAMLError as exc:
        raise PreprocessFailure(f"Error parsing yaml in ({filename}): {exc}", help_text) from exc
    if not document:
        raise PreprocessFailure(f"Error parsing yaml in ({filename})", help_text)
    return document


def _load_line_list(
    spec: ArgSpec, value: Any, help_text: str, stdin: Optional[TextIO],
) -> Any:
    if isinstance(value, list):
        return value
    filename = str(value)
    try:
        if filename == STDIN_MARKER:
            lines = (stdin or sys.stdin).readlines()
        else:
            with open(filename, encoding="utf-8") as f:
                lines = f.readlines()
    except OSError as exc:
        raise PreprocessFailure(f"Cannot read {filename} for {spec.name}: {exc}", help_text) from exc
    return [line.rstrip("\n") for line in lines]


def _is_iso8601(value: Any) -> bool:
    """True for extended or basic ISO-8601 calendar dates and date-times."""
    if not isinstance(value, str):
        return False
    match = _ISO8601_EXTENDED.fullmatch(value) or _ISO8601_BASIC.fullmatch(value)
    if match is None:
        return False
    fields = {k: int(v) for k, v in match.groupdict().items() if v is not None}
    try:
        datetime(**fields)
    except ValueError:
        return False
    return True


def _normalise_datetime(
    spec: ArgSpec, value: Any, help_text: str, stdin: Optional[TextIO],
) -> str:
    """ISO-8601 input is kept as written; anything else parseable is rewritten in ISO-8601."""
    if _is_iso8601(value):
        return value
    try:
        return _DATETIME.validate_python(value).isoformat()
    except ValidationError as exc:
        failure = exc
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).isoformat()
        except ValueError:
            pass
    raise PreprocessFailure(
        f"Cannot parse '{value}' as a date/time for {spec.name}", help_text,
    ) from failure


_PREPROCESSORS: dict[Preprocess, Callable[[ArgSpec, Any, str, Optional[TextIO]], Any]] = {
    Preprocess.YAML_DOCUMENT: _load_yaml_document,
    Preprocess.LINE_LIST: _load_line_list,
    Preprocess.DATETIME: _normalise_datetime,
}
