"""Handles to values living in the target's scripting context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Union

from ._internal.remote_object import RemoteObject
from ._internal.serialization import is_function_body, parse_result, serialize_argument

if TYPE_CHECKING:
    from ._internal.connection import Connection

logger = logging.getLogger(__name__)


async def evaluate_expression(owner: RemoteObject, expression: str, arg: Any = None) -> Any:
    """Evaluate *expression* against *owner* and return the result by value."""
    result = await owner._channel.send(
        "evaluateExpression",
        {"expression": expression, "is_function": is_function_body(expression), "arg": serialize_argument(arg)},
    )
    return parse_result(result["value"], owner._connection)


async def evaluate_expression_handle(owner: RemoteObject, expression: str, arg: Any = None) -> JSHandle:
    """Evaluate *expression* against *owner* and return a handle to the result."""
    result = await owner._channel.send(
        "evaluateExpressionHandle",
        {"expression": expression, "is_function": is_function_body(expression), "arg": serialize_argument(arg)},
    )
    return result["handle"]


class JSHandle(RemoteObject):
    """Reference to a value that stays inside the target.

    The handle keeps the remote value alive until :meth:`dispose` is called
    or its owner goes away.
    """

    def __init__(
        self, parent: Union[RemoteObject, Connection], type_name: str, guid: str, initializer: dict[str, Any]
    ) -> None:
        super().__init__(parent, type_name, guid, initializer)
        self._preview: str = initializer.get("preview", "")
        self._channel.on("previewUpdated", self._on_preview_updated)

    def _on_preview_updated(self, payload: dict[str, Any]) -> None:
        self._preview = payload["preview"]

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await evaluate_expression(self, expression, arg)

    async def evaluate_handle(self, expression: str, arg: Any = None) -> JSHandle:
        return await evaluate_expression_handle(self, expression, arg)

    async def json_value(self) -> Any:
        result = await self._channel.send("jsonValue")
        return parse_result(result["value"], self._connection)

    async def dispose(self) -> None:
        if self._disposed:
            return
        await self._channel.send("dispose")

    def __repr__(self) -> str:
        return f"<JSHandle preview={self._preview!r}>"
