"""
Argument/result codec.

This module contains:
1. Wire structures: SerializedValue, HandleRef, SerializedArgument
2. serialize_argument: caller value -> wire form (remote objects by reference)
3. parse_result: wire form -> caller value (references resolved per session)

A serialized value is a single-key dict whose key names its kind:

    {"v": "null" | "undefined" | "NaN" | "Infinity" | "-Infinity" | "-0"}
    {"n": 1.5}  {"s": "text"}  {"b": True}  {"d": "2024-01-01T00:00:00+00:00"}
    {"a": [<value>, ...]}  {"o": [{"k": "key", "v": <value>}, ...]}
    {"h": <index into handles>}  {"c": {"type": "Name", "value": <value>}}
"""

from __future__ import annotations

import datetime
import logging
import math
from typing import Any, Protocol, TypedDict

from ..errors import SerializationError
from .remote_object import RemoteObject
from .serialization_registry import SerializerRegistry

logger = logging.getLogger(__name__)

SerializedValue = dict[str, Any]


class HandleRef(TypedDict):
    guid: str
    type: str


class SerializedArgument(TypedDict):
    value: SerializedValue
    handles: list[HandleRef]


class ObjectRegistry(Protocol):
    """Per-session lookup from guid to the live proxy."""

    def get_object(self, guid: str) -> RemoteObject | None: ...


_SPECIAL_FLOATS = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf, "-0": -0.0}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

class _SerializeContext:
    def __init__(self) -> None:
        self.handles: list[HandleRef] = []
        self._handle_index: dict[str, int] = {}
        self.visiting: set[int] = set()
        self.registry = SerializerRegistry.get_instance()

    def add_handle(self, obj: RemoteObject) -> int:
        index = self._handle_index.get(obj._guid)
        if index is None:
            index = len(self.handles)
            self.handles.append(HandleRef(guid=obj._guid, type=obj._type))
            self._handle_index[obj._guid] = index
        return index


def serialize_argument(arg: Any = None) -> SerializedArgument:
    """Convert *arg* into its wire form.

    Remote objects are sent as references. Anything the codec does not
    understand raises :class:`SerializationError` naming where it was found,
    before any message is sent.
    """
    ctx = _SerializeContext()
    try:
        value = _serialize(arg, "arg", ctx)
    except RecursionError as exc:
        raise SerializationError("Argument is nested too deeply", path="arg") from exc
    return SerializedArgument(value=value, handles=ctx.handles)


def _serialize(value: Any, path: str, ctx: _SerializeContext) -> SerializedValue:
    if isinstance(value, RemoteObject):
        return {"h": ctx.add_handle(value)}

    found = ctx.registry.find_for(value)
    if found is not None:
        type_name, serializer = found
        return {"c": {"type": type_name, "value": _serialize(serializer(value), f"{path}<{type_name}>", ctx)}}

    if value is None:
        return {"v": "null"}
    if isinstance(value, bool):
        return {"b": value}
    if isinstance(value, int):
        return {"n": value}
    if isinstance(value, float):
        if math.isnan(value):
            return {"v": "NaN"}
        if math.isinf(value):
            return {"v": "Infinity" if value > 0 else "-Infinity"}
        if value == 0 and math.copysign(1.0, value) < 0:
            return {"v": "-0"}
        return {"n": value}
    if isinstance(value, str):
        return {"s": value}
    if isinstance(value, datetime.datetime):
        return {"d": value.isoformat()}

    if isinstance(value, (list, tuple, dict)):
        if id(value) in ctx.visiting:
            raise SerializationError("Argument is a circular structure", path=path)
        ctx.visiting.add(id(value))
        try:
            if isinstance(value, dict):
                entries = []
                for key, item in value.items():
                    if not isinstance(key, str):
                        raise SerializationError(
                            f"Object keys must be strings, got {type(key).__name__}", path=path
                        )
                    entries.append({"k": key, "v": _serialize(item, f"{path}.{key}", ctx)})
                return {"o": entries}
            return {"a": [_serialize(item, f"{path}[{i}]", ctx) for i, item in enumerate(value)]}
        finally:
            ctx.visiting.discard(id(value))

    raise SerializationError(f"Value of type {type(value).__name__} is not serializable", path=path)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_result(wire: SerializedArgument, registry: ObjectRegistry | None = None) -> Any:
    """Rebuild a caller value from its wire form.

    Handle references resolve to the proxy already registered for that guid
    in *registry*, so identity survives a round trip.
    """
    handles = [_resolve_handle(ref, registry) for ref in wire.get("handles") or []]
    try:
        return _parse(wire["value"], "result", handles)
    except RecursionError as exc:
        raise SerializationError("Result is nested too deeply", path="result") from exc


def _resolve_handle(ref: HandleRef, registry: ObjectRegistry | None) -> RemoteObject:
    guid = ref["guid"]
    obj = registry.get_object(guid) if registry is not None else None
    if obj is None:
        raise SerializationError(f"Unknown remote object {guid!r}")
    expected = ref.get("type")
    if expected and obj._type != expected:
        raise SerializationError(
            f"Remote object {guid!r} is a {obj._type}, reference says {expected}"
        )
    return obj


def _parse(value: Any, path: str, handles: list[RemoteObject]) -> Any:
    if not isinstance(value, dict) or len(value) != 1:
        raise SerializationError(f"Malformed serialized value {value!r}", path=path)
    kind, payload = next(iter(value.items()))

    if kind == "v":
        if payload in ("null", "undefined"):
            return None
        if payload in _SPECIAL_FLOATS:
            return _SPECIAL_FLOATS[payload]
    elif kind == "n":
        return payload
    elif kind == "s":
        return payload
    elif kind == "b":
        return bool(payload)
    elif kind == "d":
        text = payload[:-1] + "+00:00" if payload.endswith("Z") else payload
        return datetime.datetime.fromisoformat(text)
    elif kind == "a":
        return [_parse(item, f"{path}[{i}]", handles) for i, item in enumerate(payload)]
    elif kind == "o":
        return {entry["k"]: _parse(entry["v"], f"{path}.{entry['k']}", handles) for entry in payload}
    elif kind == "h":
        if not isinstance(payload, int) or not 0 <= payload < len(handles):
            raise SerializationError(f"Handle index {payload!r} out of range", path=path)
        return handles[payload]
    elif kind == "c":
        type_name = payload["type"]
        inner = _parse(payload["value"], f"{path}<{type_name}>", handles)
        deserializer = SerializerRegistry.get_instance().get_deserializer(type_name)
        return deserializer(inner) if deserializer else inner

    raise SerializationError(f"Unknown serialized value {value!r}", path=path)


def is_function_body(expression: str) -> bool:
    expression = expression.strip()
    return expression.startswith("function") or expression.startswith("async ") or "=>" in expression
