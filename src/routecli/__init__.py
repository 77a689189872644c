"""routecli -- declarative REST clients with a matching command line.

Declare routes and objects on a :class:`~routecli.client.Client` subclass and
every declaration becomes both a Python method and a command-line operation::

    from routecli import Client
    from routecli.app import main

    class FooClient(Client):
        app_name = "foo"

    FooClient.route("status", doc="Get the status")
    FooClient.object("widget")

    main(FooClient())          # fooclient status / fooclient widget w1 ...

Modules:
    client: The ``Client`` base class and its declaration API.
    registry: Process-wide catalogue of declared routes.
    binder: Binds call-site and command-line arguments to argument specs.
    dispatcher: Builds, sends and decodes HTTP exchanges with httpx.
    runner: Maps argv onto operations and renders results.
    remote: Local and ``host:path`` YAML sources over ssh.
    loader: Builds clients from YAML/JSON route files.
    app: Typer application and process entry points.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and base URL resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from routecli.client import Client  # noqa: E402
from routecli.objects import ClientObject, transaction  # noqa: E402

__all__ = ["Client", "ClientObject", "__version__", "transaction"]
