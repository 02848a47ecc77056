"""
Transport Layer.

This module contains:
- Transport Protocol
- QueueTransport (+ create_pipe)
- StreamTransport

A transport moves whole JSON-compatible messages. ``recv`` returns ``None``
once the peer has gone away.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import struct
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 100 * 1024 * 1024


@runtime_checkable
class Transport(Protocol):
    """Protocol for message transports."""

    async def send(self, message: dict[str, Any]) -> None:
        """Send one message to the peer."""
        ...

    async def recv(self) -> dict[str, Any] | None:
        """Receive one message. Returns ``None`` at end of stream."""
        ...

    async def close(self) -> None:
        """Close the transport. Further sends fail."""
        ...


_EOF = object()


class QueueTransport:
    """In-process transport over a pair of asyncio queues."""

    def __init__(self, send_queue: asyncio.Queue[Any], recv_queue: asyncio.Queue[Any]) -> None:
        self._send_queue = send_queue
        self._recv_queue = recv_queue
        self._closed = False

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionError("Transport closed")
        # Round-trip through JSON so both ends never share mutable state.
        self._send_queue.put_nowait(json.loads(json.dumps(message)))

    async def recv(self) -> dict[str, Any] | None:
        if self._closed:
            return None
        item = await self._recv_queue.get()
        if item is _EOF:
            self._closed = True
            return None
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._send_queue.put_nowait(_EOF)
        self._recv_queue.put_nowait(_EOF)


def create_pipe() -> tuple[QueueTransport, QueueTransport]:
    """Return two connected in-process transports."""
    a_to_b: asyncio.Queue[Any] = asyncio.Queue()
    b_to_a: asyncio.Queue[Any] = asyncio.Queue()
    return QueueTransport(a_to_b, b_to_a), QueueTransport(b_to_a, a_to_b)


class StreamTransport:
    """Length-prefixed UTF-8 JSON over asyncio streams.

    Each frame is a 4-byte big-endian length followed by the JSON body.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._send_lock = asyncio.Lock()

    @classmethod
    async def open_connection(cls, host: str, port: int) -> StreamTransport:
        reader, writer = await asyncio.open_connection(host, port)
        return cls(reader, writer)

    async def send(self, message: dict[str, Any]) -> None:
        try:
            data = json.dumps(message).encode("utf-8")
        except TypeError as e:
            logger.error("Cannot encode message for %s: %s", message.get("method"), e)
            raise
        async with self._send_lock:
            self._writer.write(struct.pack(">I", len(data)) + data)
            await self._writer.drain()

    async def recv(self) -> dict[str, Any] | None:
        try:
            header = await self._reader.readexactly(4)
        except asyncio.IncompleteReadError:
            return None
        (length,) = struct.unpack(">I", header)
        if length > MAX_MESSAGE_SIZE:
            raise ValueError(f"Message too large: {length} bytes")
        try:
            body = await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ConnectionError(f"Incomplete message: got {len(e.partial)}/{length} bytes") from e
        return json.loads(body.decode("utf-8"))

    async def close(self) -> None:
        self._writer.close()
        with contextlib.suppress(ConnectionError):
            await self._writer.wait_closed()
