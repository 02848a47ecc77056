"""Local stand-ins for objects living in the target process.

Every :class:`RemoteObject` has a guid that is unique within its session,
a type tag and a position in the ownership tree rooted at the session's
root object. Disposing a node disposes its whole subtree.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Union

from ..errors import ObjectDisposedError
from .events import EventEmitter

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)


class Channel(EventEmitter):
    """Outgoing calls and raw inbound pushes for one remote object.

    Pushes addressed to the object are emitted here with their decoded
    payload dict; the owning object decides what to surface to callers.
    """

    def __init__(self, connection: Connection, owner: RemoteObject) -> None:
        super().__init__()
        self._connection = connection
        self._owner = owner

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        error = self._owner._closed_error(method)
        if error is not None:
            raise error
        return await self._connection.send_message_to_server(self._owner, method, params or {})


class RemoteObject(EventEmitter):
    """Base class for every proxy."""

    def __init__(
        self,
        parent: Union[RemoteObject, Connection],
        type_name: str,
        guid: str,
        initializer: dict[str, Any],
    ) -> None:
        super().__init__()
        if isinstance(parent, RemoteObject):
            self._connection: Connection = parent._connection
            self._parent: RemoteObject | None = parent
        else:
            self._connection = parent
            self._parent = None
        self._type = type_name
        self._guid = guid
        self._initializer = initializer
        self._objects: dict[str, RemoteObject] = {}
        self._channel = Channel(self._connection, self)
        self._disposed = False

        self._connection._register_object(self)
        if self._parent is not None:
            self._parent._objects[guid] = self

    @property
    def guid(self) -> str:
        return self._guid

    @property
    def type(self) -> str:
        return self._type

    @property
    def parent(self) -> RemoteObject | None:
        return self._parent

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke *method* on the remote object and return its decoded result."""
        return await self._channel.send(method, params)

    def _on_push(self, method: str, payload: dict[str, Any]) -> None:
        self._channel.emit(method, payload)

    def _closed_error(self, method: str) -> Exception | None:
        if self._disposed:
            return ObjectDisposedError(
                f"{self._type} {self._guid!r} has been disposed", method=method, guid=self._guid
            )
        return None

    def _dispose(self) -> None:
        if self._disposed:
            return
        for child in list(self._objects.values()):
            child._dispose()
        self._objects.clear()
        self._disposed = True
        if self._parent is not None:
            self._parent._objects.pop(self._guid, None)
        self._connection._unregister_object(self)
        logger.debug("Disposed %s %s", self._type, self._guid)
        self._on_dispose()

    def _on_dispose(self) -> None:
        """Hook for subclasses; runs once, after the subtree is gone."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} type={self._type} guid={self._guid!r}>"
