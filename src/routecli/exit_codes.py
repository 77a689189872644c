"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~routecli.exceptions.RoutecliError` subclass.
Shell wrappers around a generated client CLI can inspect the exit code to
tell a bad invocation from a failed request without parsing stderr.

Example::

    $ fooclient widget_search --colour red
    $ echo $?
    2   # EXIT_INVALID_USAGE -- unknown option for the route
"""

EXIT_SUCCESS = 0
"""The command completed successfully (including usage display)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The remote API rejected the request with HTTP 401 or 403."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INTERRUPTED = 130
"""The run was cancelled with Ctrl-C."""
