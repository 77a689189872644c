"""Local and remote (``host:path``) data sources for the CLI runner.

Remote references are resolved over ``ssh`` with non-interactive options:
``host:pattern`` globs are expanded with ``ls`` on the remote host and each
match is read back with ``cat``. A failing remote command raises
:class:`~routecli.exceptions.RemoteIOFailure` carrying the last two lines of
its standard error.
"""

from __future__ import annotations

import os
import re
import subprocess
from typing import Any, Optional

import yaml

from routecli.exceptions import RemoteIOFailure, RoutecliError
from routecli.output import OutputManager, get_output

SSH_COMMAND = [
    "ssh",
    "-o", "StrictHostKeyChecking=no",
    "-o", "BatchMode=yes",
    "-o", "PasswordAuthentication=no",
]

_REMOTE_RE = re.compile(r"^(?P<host>[\w.\-@]+):(?P<path>.+)$")
_GLOB_RE = re.compile(r"[*?]")


def split_remote(token: str) -> Optional[tuple[str, str]]:
    """Return ``(host, path)`` for a ``host:path`` token, else ``None``.

    Tokens naming an existing local file are never treated as remote.
    """
    if os.path.exists(token):
        return None
    match = _REMOTE_RE.match(token)
    if match is None:
        return None
    return match.group("host"), match.group("path")


def is_data_source(token: Any) -> bool:
    """A readable local file or a ``host:path`` reference."""
    if not isinstance(token, str):
        return False
    if os.path.isfile(token) and os.access(token, os.R_OK):
        return True
    return split_remote(token) is not None


def _ssh(host: str, *command: str, output: OutputManager) -> str:
    argv = [*SSH_COMMAND, host, *command]
    output.debug(f"Running {' '.join(argv)}")
    try:
        result = subprocess.run(argv, capture_output=True, text=True)
    except OSError as exc:
        raise RemoteIOFailure(f"Could not run ssh for {host}: {exc}") from exc
    if result.returncode != 0:
        tail = "\n".join(result.stderr.splitlines()[-2:])
        raise RemoteIOFailure(f"Error running '{' '.join(command)}' on {host}: {tail}")
    return result.stdout


def expand_remote_glob(token: str, output: Optional[OutputManager] = None) -> list[str]:
    """Expand ``host:pattern`` to one ``host:path`` per remote match, in listed order.

    Tokens that are not remote, or whose path has no ``*`` or ``?``, come
    back unchanged as a one-element list.
    """
    output = output or get_output()
    parts = split_remote(token)
    if parts is None or not _GLOB_RE.search(parts[1]):
        return [token]
    host, pattern = parts
    output.info(f"Remote glob : {host}:{pattern}")
    listing = _ssh(host, "ls", pattern, output=output)
    return [f"{host}:{line}" for line in listing.splitlines() if line.strip()]


def read_source(token: str, output: Optional[OutputManager] = None) -> str:
    """Return the text of a local file or a ``host:path`` reference."""
    output = output or get_output()
    parts = split_remote(token)
    if parts is not None:
        host, path = parts
        return _ssh(host, "cat", path, output=output)
    try:
        with open(token, encoding="utf-8") as f:
            return f.read()
    except OSError as exc:
        raise RoutecliError(f"Cannot read {token}: {exc}") from exc


def load_yaml(token: str, output: Optional[OutputManager] = None) -> Any:
    """Load one YAML document from a local or remote source.

    Raises:
        RemoteIOFailure: The remote read failed.
        RoutecliError: The document is empty or not valid YAML.
    """
    output = output or get_output()
    output.debug(f"Loading {token}")
    text = read_source(token, output)
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RoutecliError(f"Invalid YAML : {token}: {exc}") from exc
    if document is None:
        raise RoutecliError(f"Invalid YAML : {token}")
    return document
