"""Exception hierarchy for routecli.

All exceptions inherit from :class:`RoutecliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`routecli.exit_codes`.
The CLI runner (:func:`routecli.runner.run`) catches ``RoutecliError`` and
turns it into a printed diagnostic plus that exit code, while library callers
receive the exception and decide for themselves.

Subclass hierarchy::

    RoutecliError (exit 1)
    +-- DeclarationError          (exit 1)
    +-- InvalidUsageError         (exit 2)
    +-- BindingError              (exit 2)
    |   +-- MissingRequiredArgument
    |   +-- UnknownArgument
    |   +-- PreprocessFailure
    +-- TransportFailure          (exit 6)
    +-- ProtocolError             (exit 3/4/5 by status)
    +-- RemoteIOFailure           (exit 1)
    +-- DispatchError             (exit 1)
    +-- ConfigError               (exit 1)
"""

from __future__ import annotations

from typing import Optional, Sequence

from routecli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class RoutecliError(Exception):
    """Base exception for all routecli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`routecli.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class DeclarationError(RoutecliError):
    """Raised at setup time for conflicting routes or invalid argument specs."""


class InvalidUsageError(RoutecliError):
    """Raised for command lines that do not name a usable operation."""

    exit_code = EXIT_INVALID_USAGE


class BindingError(RoutecliError):
    """Raised when call-site arguments cannot be bound to a route's argument spec.

    Args:
        message: What went wrong.
        help: Generated documentation for the route's arguments, appended
            to the message so the caller can show actionable help.
    """

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, message: str, help: str = "") -> None:
        self.help = help
        full = f"{message}\n{help}" if help else message
        super().__init__(full)
        self.reason = message


class MissingRequiredArgument(BindingError):
    """A ``required`` argument received no value."""

    def __init__(self, name: str, help: str = "") -> None:
        self.name = name
        super().__init__(f"Missing value for required argument '{name}'", help)


class UnknownArgument(BindingError):
    """Tokens were left over after every argument spec was applied."""

    def __init__(self, tokens: Sequence[object], help: str = "") -> None:
        self.tokens = list(tokens)
        joined = " ".join(str(t) for t in self.tokens)
        super().__init__(f"Unknown option : {joined}", help)


class PreprocessFailure(BindingError):
    """A ``preprocess`` transform (YAML, line list, datetime) failed."""


class TransportFailure(RoutecliError):
    """Network-level failure (timeout, DNS resolution, connection refused).

    The dispatcher never raises this from a call; it is retained on the
    client as ``last_error`` and the call returns ``None``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ProtocolError(RoutecliError):
    """A non-2xx HTTP response.

    Logged and retained rather than raised by the dispatcher. The runner
    builds one from the retained response to pick its exit code.

    Args:
        status_code: HTTP status returned by the server.
        message: Human-readable description.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        if status_code in (401, 403):
            code: Optional[int] = EXIT_AUTH_FAILURE
        elif status_code == 404:
            code = EXIT_NOT_FOUND
        elif status_code >= 500:
            code = EXIT_SERVER_ERROR
        else:
            code = EXIT_GENERIC_FAILURE
        super().__init__(message, exit_code=code)


class RemoteIOFailure(RoutecliError):
    """A remote listing or read over ssh exited non-zero or could not run."""


class DispatchError(RoutecliError):
    """A call could not be dispatched (unknown route, no event loop for a callback)."""


class ConfigError(RoutecliError):
    """Raised for configuration problems (missing app config, unknown remote, invalid JSON)."""
