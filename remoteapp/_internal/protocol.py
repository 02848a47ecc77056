"""
Protocol table.

For every remote object type this module declares the methods it accepts
(parameter and result schema), the events it may push and the shape of its
initializer. Outgoing parameters are validated strictly before anything is
sent; inbound payloads ignore fields this client does not know about.
"""

from __future__ import annotations

import logging
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import RemoteCallError, SerializationError

logger = logging.getLogger(__name__)


class _Outbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class _Inbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ChannelRef(_Inbound):
    guid: str


class HandleRefModel(_Inbound):
    guid: str
    type: str


class SerializedArgumentModel(_Inbound):
    value: dict[str, Any]
    handles: list[HandleRefModel] = Field(default_factory=list)


class EmptyParams(_Outbound):
    pass


class EmptyResult(_Inbound):
    pass


# ---------------------------------------------------------------------------
# Method descriptors
# ---------------------------------------------------------------------------

class InitializeResult(_Inbound):
    launcher: ChannelRef


class LaunchParams(_Outbound):
    executable_path: str
    args: list[str] | None = None
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout: float | None = Field(default=None, ge=0)
    handle_sigint: bool | None = Field(default=None, alias="handleSIGINT")
    handle_sigterm: bool | None = Field(default=None, alias="handleSIGTERM")
    handle_sighup: bool | None = Field(default=None, alias="handleSIGHUP")


class LaunchResult(_Inbound):
    application: ChannelRef


class NewBrowserWindowParams(_Outbound):
    arg: SerializedArgumentModel


class NewBrowserWindowResult(_Inbound):
    window: ChannelRef


class EvaluateExpressionParams(_Outbound):
    expression: str
    is_function: bool | None = None
    arg: SerializedArgumentModel


class EvaluateExpressionResult(_Inbound):
    value: SerializedArgumentModel


class EvaluateExpressionHandleResult(_Inbound):
    handle: ChannelRef


class TitleResult(_Inbound):
    value: str


class MethodSchema(NamedTuple):
    params: type[BaseModel]
    result: type[BaseModel]


_CLOSE = MethodSchema(EmptyParams, EmptyResult)
_EVALUATE = MethodSchema(EvaluateExpressionParams, EvaluateExpressionResult)
_EVALUATE_HANDLE = MethodSchema(EvaluateExpressionParams, EvaluateExpressionHandleResult)

METHODS: dict[str, dict[str, MethodSchema]] = {
    "Root": {
        "initialize": MethodSchema(EmptyParams, InitializeResult),
    },
    "Launcher": {
        "launch": MethodSchema(LaunchParams, LaunchResult),
    },
    "Application": {
        "newBrowserWindow": MethodSchema(NewBrowserWindowParams, NewBrowserWindowResult),
        "evaluateExpression": _EVALUATE,
        "evaluateExpressionHandle": _EVALUATE_HANDLE,
        "close": _CLOSE,
    },
    "BrowserContext": {
        "close": _CLOSE,
    },
    "Window": {
        "title": MethodSchema(EmptyParams, TitleResult),
        "evaluateExpression": _EVALUATE,
        "evaluateExpressionHandle": _EVALUATE_HANDLE,
        "close": _CLOSE,
    },
    "JSHandle": {
        "evaluateExpression": _EVALUATE,
        "evaluateExpressionHandle": _EVALUATE_HANDLE,
        "jsonValue": _EVALUATE._replace(params=EmptyParams),
        "dispose": _CLOSE,
    },
}


# ---------------------------------------------------------------------------
# Events and initializers
# ---------------------------------------------------------------------------

class WindowEvent(_Inbound):
    window: ChannelRef


class NavigatedEvent(_Inbound):
    url: str


class PreviewUpdatedEvent(_Inbound):
    preview: str


EVENTS: dict[str, dict[str, type[BaseModel]]] = {
    "Application": {"window": WindowEvent, "close": EmptyResult},
    "BrowserContext": {"close": EmptyResult},
    "Window": {"close": EmptyResult, "navigated": NavigatedEvent},
    "JSHandle": {"previewUpdated": PreviewUpdatedEvent},
}


class ApplicationInitializer(_Inbound):
    context: ChannelRef


class WindowInitializer(_Inbound):
    url: str = ""


class JSHandleInitializer(_Inbound):
    preview: str = ""


INITIALIZERS: dict[str, type[BaseModel]] = {
    "Application": ApplicationInitializer,
    "Window": WindowInitializer,
    "JSHandle": JSHandleInitializer,
}


# ---------------------------------------------------------------------------
# Validation entry points
# ---------------------------------------------------------------------------

def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def validate_params(type_name: str, method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Return wire-ready *params* or raise :class:`SerializationError`."""
    schema = METHODS.get(type_name, {}).get(method)
    if schema is None:
        raise SerializationError(f"{type_name}.{method} is not part of the protocol")
    try:
        return _dump(schema.params.model_validate(params))
    except ValidationError as exc:
        raise SerializationError(f"Invalid parameters for {type_name}.{method}: {exc}") from exc


def validate_result(type_name: str, method: str, result: dict[str, Any], guid: str | None = None) -> dict[str, Any]:
    """Return the checked *result* or raise :class:`RemoteCallError`."""
    schema = METHODS[type_name][method]
    try:
        return _dump(schema.result.model_validate(result))
    except ValidationError as exc:
        raise RemoteCallError(
            f"Malformed result for {type_name}.{method}: {exc}", method=method, guid=guid
        ) from exc


def validate_event(type_name: str, event: str, params: dict[str, Any]) -> dict[str, Any] | None:
    """Return the checked push payload, or ``None`` for events this type never pushes."""
    model = EVENTS.get(type_name, {}).get(event)
    if model is None:
        return None
    return _dump(model.model_validate(params))


def validate_initializer(type_name: str, initializer: dict[str, Any]) -> dict[str, Any]:
    model = INITIALIZERS.get(type_name)
    if model is None:
        return dict(initializer)
    return _dump(model.model_validate(initializer))
