"""Response wrapper types applied by the dispatcher.

A route's ``response_type`` is called as ``response_type(result, client)``.
Two ready-made wrappers live here:

* :class:`ClientObject` -- the generic wrapper used by object routes when no
  explicit type is declared. It holds the decoded data and a reference back
  to the client that fetched it.
* :func:`transaction` -- returns the retained :class:`httpx.Response`
  itself, for routes whose caller only cares about the status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    import httpx

    from routecli.client import Client


class ClientObject:
    """Decoded response data plus the client it came from.

    Mapping keys are also readable as attributes::

        widget = client.widget("w1")
        widget.colour == widget["colour"]
    """

    def __init__(self, data: Any, client: Client) -> None:
        self._data = data
        self._client = client

    @property
    def data(self) -> Any:
        return self._data

    @property
    def client(self) -> Client:
        return self._client

    def __getattr__(self, name: str) -> Any:
        data = self.__dict__.get("_data")
        if isinstance(data, dict) and name in data:
            return data[name]
        raise AttributeError(name)

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __contains__(self, key: Any) -> bool:
        return isinstance(self._data, (dict, list)) and key in self._data

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ClientObject):
            return self._data == other._data
        return self._data == other

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


def transaction(result: Any, client: Client) -> httpx.Response | None:
    """Return the client's last response instead of the decoded body."""
    return client.last_response
