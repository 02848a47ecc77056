"""Registry of custom argument serializers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class SerializerRegistry:
    """Singleton registry for types that need a custom wire form.

    Entries are keyed by class name. A serializer turns an instance into a
    value the codec already handles; the optional deserializer rebuilds the
    instance when a ``{"c": ...}`` value comes back. Types without a
    deserializer come back in their serialized form.
    """

    _instance: SerializerRegistry | None = None

    def __init__(self) -> None:
        self._serializers: dict[str, Callable[[Any], Any]] = {}
        self._deserializers: dict[str, Callable[[Any], Any]] = {}

    @classmethod
    def get_instance(cls) -> SerializerRegistry:
        """Return the process-wide registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(
        self,
        type_name: str,
        serializer: Callable[[Any], Any],
        deserializer: Callable[[Any], Any] | None = None,
    ) -> None:
        """Map instances of *type_name* (or its subclasses) to a wire form.

        Registering a name again replaces both functions.
        """
        if type_name in self._serializers:
            logger.debug("Replacing serializer for %s", type_name)

        self._serializers[type_name] = serializer
        if deserializer is not None:
            self._deserializers[type_name] = deserializer
        else:
            self._deserializers.pop(type_name, None)
        logger.debug("Registered serializer for %s (deserializer: %s)", type_name, deserializer is not None)

    def get_serializer(self, type_name: str) -> Callable[[Any], Any] | None:
        """Serializer registered under exactly *type_name*."""
        return self._serializers.get(type_name)

    def get_deserializer(self, type_name: str) -> Callable[[Any], Any] | None:
        """Deserializer for a ``{"c": {"type": type_name, ...}}`` value."""
        return self._deserializers.get(type_name)

    def has_handler(self, type_name: str) -> bool:
        return type_name in self._serializers

    def find_for(self, obj: Any) -> tuple[str, Callable[[Any], Any]] | None:
        """Return ``(type_name, serializer)`` for *obj*.

        The closest registered class in the MRO wins, so a subclass can
        override its base's wire form.
        """
        if not self._serializers:
            return None
        for klass in type(obj).__mro__:
            serializer = self.get_serializer(klass.__name__)
            if serializer is not None:
                return klass.__name__, serializer
        return None

    def clear(self) -> None:
        """Drop every registration."""
        self._serializers.clear()
        self._deserializers.clear()
