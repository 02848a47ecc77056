from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Union

from typing_extensions import override

from ._internal.remote_object import RemoteObject
from .errors import TargetClosedError
from .handle import JSHandle, evaluate_expression, evaluate_expression_handle

if TYPE_CHECKING:
    from ._internal.connection import Connection

logger = logging.getLogger(__name__)


class Window(RemoteObject):
    """A top-level window of the target application."""

    def __init__(
        self, parent: Union[RemoteObject, Connection], type_name: str, guid: str, initializer: dict[str, Any]
    ) -> None:
        super().__init__(parent, type_name, guid, initializer)
        self._url: str = initializer.get("url", "")
        self._is_closed = False
        self._channel.on("navigated", self._on_navigated)
        self._channel.on("close", lambda payload: self._on_close())

    @property
    def url(self) -> str:
        return self._url

    def is_closed(self) -> bool:
        return self._is_closed

    async def title(self) -> str:
        result = await self._channel.send("title")
        return result["value"]

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await evaluate_expression(self, expression, arg)

    async def evaluate_handle(self, expression: str, arg: Any = None) -> JSHandle:
        return await evaluate_expression_handle(self, expression, arg)

    async def close(self) -> None:
        if self._is_closed:
            return
        await self._channel.send("close")

    def _on_navigated(self, payload: dict[str, Any]) -> None:
        self._url = payload["url"]

    def _on_close(self) -> None:
        if self._is_closed:
            return
        self._is_closed = True
        self.emit("close", self)

    @override
    def _closed_error(self, method: str) -> Exception | None:
        if self._is_closed:
            return TargetClosedError("Window closed")
        return super()._closed_error(method)

    @override
    def _on_dispose(self) -> None:
        self._on_close()

    def __repr__(self) -> str:
        return f"<Window url={self._url!r}>"


class BrowserContext(RemoteObject):
    """Browsing context shared by the application's windows."""

    def __init__(
        self, parent: Union[RemoteObject, Connection], type_name: str, guid: str, initializer: dict[str, Any]
    ) -> None:
        super().__init__(parent, type_name, guid, initializer)
        self._channel.on("close", lambda payload: self.emit("close", self))

    async def close(self) -> None:
        if self._disposed:
            return
        await self._channel.send("close")
