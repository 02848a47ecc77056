"""Error types surfaced by remoteapp.

Every call or wait either succeeds or fails with exactly one of these.
"""

from __future__ import annotations


class RemoteAppError(Exception):
    """Base class for all remoteapp errors."""


class RemoteCallError(RemoteAppError):
    """The target rejected or failed a call.

    Calls are not assumed idempotent, so these are never retried.
    """

    def __init__(
        self,
        remote_message: str,
        *,
        method: str | None = None,
        guid: str | None = None,
        remote_name: str | None = None,
    ) -> None:
        self.remote_message = remote_message
        self.method = method
        self.guid = guid
        self.remote_name = remote_name
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}{remote_message}")


class ObjectDisposedError(RemoteCallError):
    """A call was issued on a proxy whose remote object no longer exists."""


class ConnectionClosedError(RemoteCallError):
    """The session ended while a call was in flight."""


class TimeoutError(RemoteAppError):
    """An event wait exceeded its deadline."""

    def __init__(self, message: str, *, event: str | None = None, timeout: float | None = None) -> None:
        super().__init__(message)
        self.event = event
        self.timeout = timeout


class TargetClosedError(RemoteAppError):
    """The target went away before the awaited event occurred."""


class SerializationError(RemoteAppError, TypeError):
    """A value could not cross the process boundary."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{message} (at {path})" if path else message)
