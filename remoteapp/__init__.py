"""
remoteapp - Drive an out-of-process desktop application through remote-object proxies.

remoteapp talks to a driver living next to the automated application over an
opaque message channel. Every object on the driver side (the launcher, the
application, its windows, values inside its scripting context) is exposed
locally as a proxy whose methods perform the round trip for you, and whose
events mirror the pushes the driver sends.

Key Features:
    - Proxies with a strict per-type method table, validated before sending
    - Ownership tree with recursive disposal
    - Cancellable, timeout-bound event waits that always release their listeners
    - Argument/result codec that passes remote objects by reference

Basic Usage:
    >>> import asyncio
    >>> import remoteapp
    >>> async def main():
    ...     transport = await remoteapp.StreamTransport.open_connection("127.0.0.1", 9323)
    ...     launcher = await remoteapp.connect(transport)
    ...     app = await launcher.launch("/path/to/app", args=["--no-sandbox"])
    ...     window = await app.first_window()
    ...     print(await window.title())
    ...     print(await app.evaluate("({ app }) => app.getName()"))
    ...     await app.close()
    >>> asyncio.run(main())
"""

from ._internal.connection import Connection
from ._internal.remote_object import RemoteObject
from ._internal.serialization import parse_result, serialize_argument
from ._internal.serialization_registry import SerializerRegistry
from ._internal.transports import QueueTransport, StreamTransport, Transport, create_pipe
from ._internal.waiter import Waiter
from .application import Application, ApplicationState, Events, Launcher
from .config import LaunchOptions, TimeoutSettings
from .errors import (
    ConnectionClosedError,
    ObjectDisposedError,
    RemoteAppError,
    RemoteCallError,
    SerializationError,
    TargetClosedError,
    TimeoutError,
)
from .handle import JSHandle
from .window import BrowserContext, Window

__version__ = "0.1.0"

__all__ = [
    "connect",
    "Connection",
    "Launcher",
    "Application",
    "ApplicationState",
    "Events",
    "Window",
    "BrowserContext",
    "JSHandle",
    "RemoteObject",
    "Waiter",
    "TimeoutSettings",
    "LaunchOptions",
    "serialize_argument",
    "parse_result",
    "SerializerRegistry",
    "Transport",
    "QueueTransport",
    "StreamTransport",
    "create_pipe",
    "RemoteAppError",
    "RemoteCallError",
    "ObjectDisposedError",
    "ConnectionClosedError",
    "TimeoutError",
    "TargetClosedError",
    "SerializationError",
]


async def connect(transport: Transport) -> Launcher:
    """Start a session over *transport* and return the driver's launcher."""
    connection = Connection(transport)
    try:
        return await connection.initialize()
    except BaseException:
        await connection.close()
        raise
