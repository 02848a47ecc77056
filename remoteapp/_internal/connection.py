"""
Connection & dispatch.

This module contains:
- Connection (session registry, call/response matching, push delivery)
- RootObject (guid ``""``, entry point of every session)
- create_remote_object (type tag -> proxy class)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import TYPE_CHECKING, Any, NamedTuple

from ..errors import ConnectionClosedError, RemoteCallError
from . import protocol
from .events import EventEmitter
from .remote_object import RemoteObject
from .transports import Transport

if TYPE_CHECKING:
    from ..application import Launcher

logger = logging.getLogger(__name__)

# Verbose wire logging (set via REMOTEAPP_DEBUG_PROTOCOL=1)
debug_protocol = bool(os.environ.get("REMOTEAPP_DEBUG_PROTOCOL"))


class _PendingCall(NamedTuple):
    future: asyncio.Future[Any]
    type_name: str
    guid: str
    method: str


class RootObject(RemoteObject):
    def __init__(self, connection: Connection) -> None:
        super().__init__(connection, "Root", "", {})

    async def initialize(self) -> Launcher:
        result = await self._channel.send("initialize")
        return result["launcher"]


class Connection(EventEmitter):
    """One session with a target-side driver.

    Owns the guid -> proxy registry, matches responses to outstanding calls
    and delivers pushes to the addressed proxy in arrival order. Emits
    ``close`` once when the session ends.
    """

    def __init__(self, transport: Transport) -> None:
        super().__init__()
        self._transport = transport
        self._last_id = 0
        self._callbacks: dict[int, _PendingCall] = {}
        self._objects: dict[str, RemoteObject] = {}
        self._closed_error: Exception | None = None
        self._closing = False
        self._transport_closed = False
        self._reader: asyncio.Task[None] | None = None
        self._root = RootObject(self)

    @property
    def is_closed(self) -> bool:
        return self._closed_error is not None

    # -- registry -----------------------------------------------------------

    def get_object(self, guid: str) -> RemoteObject | None:
        return self._objects.get(guid)

    def _register_object(self, obj: RemoteObject) -> None:
        if obj._guid in self._objects:
            raise ValueError(f"Object ID {obj._guid} already registered")
        self._objects[obj._guid] = obj

    def _unregister_object(self, obj: RemoteObject) -> None:
        if self._objects.get(obj._guid) is obj:
            del self._objects[obj._guid]

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        if self._reader is None:
            self._reader = asyncio.create_task(self._run())
        return self._reader

    async def initialize(self) -> Launcher:
        self.start()
        return await self._root.initialize()

    async def close(self) -> None:
        self._closing = True
        await self._close_transport()
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        self._on_close(None)

    async def _run(self) -> None:
        error: Exception | None = None
        try:
            while True:
                message = await self._transport.recv()
                if message is None:
                    break
                try:
                    self.dispatch(message)
                except Exception:
                    logger.exception("Failed to dispatch %s", message.get("method") or message.get("id"))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closing:
                logger.debug(f"Connection shutting down ({exc})")
            else:
                logger.error(f"Transport receive failed: {exc}")
            error = exc
        finally:
            self._on_close(error)
            await self._close_transport()

    async def _close_transport(self) -> None:
        if self._transport_closed:
            return
        self._transport_closed = True
        try:
            await self._transport.close()
        except Exception as exc:
            logger.debug(f"Transport close failed: {exc}")

    def _on_close(self, error: Exception | None) -> None:
        if self._closed_error is not None:
            return
        reason = f"Connection closed: {error}" if error else "Connection closed"
        self._closed_error = ConnectionClosedError(reason)
        callbacks, self._callbacks = self._callbacks, {}
        for pending in callbacks.values():
            if not pending.future.done():
                pending.future.set_exception(
                    ConnectionClosedError(reason, method=pending.method, guid=pending.guid)
                )
        self._root._dispose()
        self.emit("close")

    # -- outgoing -----------------------------------------------------------

    async def send_message_to_server(
        self, obj: RemoteObject, method: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        if self._closed_error is not None:
            raise ConnectionClosedError(str(self._closed_error), method=method, guid=obj._guid)
        wire_params = protocol.validate_params(obj._type, method, params)

        self._last_id += 1
        call_id = self._last_id
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._callbacks[call_id] = _PendingCall(future, obj._type, obj._guid, method)
        message = {"id": call_id, "guid": obj._guid, "method": method, "params": wire_params}
        if debug_protocol:
            logger.debug("SEND %s", message)
        try:
            try:
                await self._transport.send(message)
            except Exception as exc:
                logger.error(f"Send failed for {obj._type}.{method}: {exc}")
                raise ConnectionClosedError(str(exc), method=method, guid=obj._guid) from exc
            return await future
        finally:
            self._callbacks.pop(call_id, None)

    # -- incoming -----------------------------------------------------------

    def dispatch(self, message: dict[str, Any]) -> None:
        if debug_protocol:
            logger.debug("RECV %s", message)

        call_id = message.get("id")
        if call_id is not None:
            self._dispatch_response(call_id, message)
            return

        guid = message.get("guid", "")
        method = message["method"]
        params = message.get("params") or {}

        if method == "__create__":
            self._create_remote_object(guid, params["type"], params["guid"], params.get("initializer") or {})
            return

        obj = self._objects.get(guid)
        if obj is None:
            logger.warning("Dropping %s for unknown object %r", method, guid)
            return
        if method == "__dispose__":
            obj._dispose()
            return

        payload = protocol.validate_event(obj._type, method, params)
        if payload is None:
            logger.warning("Dropping unknown event %s.%s", obj._type, method)
            return
        obj._on_push(method, self._replace_guids_with_objects(payload))

    def _dispatch_response(self, call_id: int, message: dict[str, Any]) -> None:
        pending = self._callbacks.pop(call_id, None)
        if pending is None:
            logger.debug("Response for abandoned call %s", call_id)
            return
        if pending.future.done():
            return

        error = message.get("error")
        if error:
            pending.future.set_exception(
                RemoteCallError(
                    error.get("message") or "Unknown error",
                    method=pending.method,
                    guid=pending.guid,
                    remote_name=error.get("name"),
                )
            )
            return
        try:
            result = protocol.validate_result(
                pending.type_name, pending.method, message.get("result") or {}, guid=pending.guid
            )
            result = self._replace_guids_with_objects(result)
        except RemoteCallError as exc:
            pending.future.set_exception(exc)
            return
        pending.future.set_result(result)

    def _create_remote_object(
        self, parent_guid: str, type_name: str, guid: str, initializer: dict[str, Any]
    ) -> RemoteObject | None:
        parent = self._objects.get(parent_guid)
        if parent is None:
            logger.warning("Cannot create %s %r: unknown parent %r", type_name, guid, parent_guid)
            return None
        initializer = self._replace_guids_with_objects(protocol.validate_initializer(type_name, initializer))
        obj = create_remote_object(parent, type_name, guid, initializer)
        logger.debug("Created %s %s under %r", type_name, guid, parent_guid)
        return obj

    def _replace_guids_with_objects(self, payload: Any) -> Any:
        if isinstance(payload, list):
            return [self._replace_guids_with_objects(item) for item in payload]
        if isinstance(payload, dict):
            if len(payload) == 1 and isinstance(payload.get("guid"), str):
                obj = self._objects.get(payload["guid"])
                if obj is None:
                    raise RemoteCallError(f"Reference to unknown object {payload['guid']!r}")
                return obj
            return {key: self._replace_guids_with_objects(value) for key, value in payload.items()}
        return payload


def create_remote_object(
    parent: RemoteObject, type_name: str, guid: str, initializer: dict[str, Any]
) -> RemoteObject:
    from ..application import Application, Launcher
    from ..handle import JSHandle
    from ..window import BrowserContext, Window

    factories: dict[str, type[RemoteObject]] = {
        "Launcher": Launcher,
        "Application": Application,
        "BrowserContext": BrowserContext,
        "Window": Window,
        "JSHandle": JSHandle,
    }
    cls = factories.get(type_name)
    if cls is None:
        logger.warning("Unknown remote object type %s, using a plain proxy", type_name)
        cls = RemoteObject
    return cls(parent, type_name, guid, initializer)
