"""Launcher and Application facade.

The :class:`Application` proxy stands for one launched target process. It
tracks the target's top-level windows as they are announced, exposes
lifecycle operations and evaluates expressions in the target's own
scripting context.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Any, Callable, Union, cast

from typing_extensions import override

from ._internal.remote_object import RemoteObject
from ._internal.serialization import serialize_argument
from ._internal.waiter import Waiter
from .config import LaunchOptions, TimeoutSettings
from .errors import ConnectionClosedError, TargetClosedError, TimeoutError
from .handle import evaluate_expression, evaluate_expression_handle

if TYPE_CHECKING:
    from ._internal.connection import Connection
    from .handle import JSHandle
    from .window import BrowserContext, Window

logger = logging.getLogger(__name__)


class Events:
    class Application:
        Window = "window"
        Close = "close"

    class Window:
        Close = "close"


class ApplicationState(enum.Enum):
    LAUNCHING = "launching"
    RUNNING = "running"
    CLOSED = "closed"


class Launcher(RemoteObject):
    """Entry point handed out by the target-side driver."""

    async def launch(self, executable_path: str, **options: Any) -> Application:
        """Launch the target at *executable_path*.

        Accepts the keys of :class:`~remoteapp.config.LaunchOptions`. The
        ``logger`` option is local only and never forwarded.
        """
        launch_options = cast(LaunchOptions, dict(options))
        launch_options.pop("logger", None)
        params = {"executable_path": executable_path, **launch_options}
        result = await self._channel.send("launch", params)
        application: Application = result["application"]
        application._mark_running()
        logger.debug("Launched %s as %s", executable_path, application.guid)
        return application


class Application(RemoteObject):
    def __init__(
        self, parent: Union[RemoteObject, Connection], type_name: str, guid: str, initializer: dict[str, Any]
    ) -> None:
        super().__init__(parent, type_name, guid, initializer)
        self._context: BrowserContext = initializer["context"]
        self._windows: dict[str, Window] = {}
        self._timeout_settings = TimeoutSettings()
        self._state = ApplicationState.LAUNCHING
        self._closed = asyncio.Event()
        self._channel.on("window", self._on_window)
        self._channel.on("close", lambda payload: self._mark_closed())

    @property
    def state(self) -> ApplicationState:
        return self._state

    def is_closed(self) -> bool:
        return self._state is ApplicationState.CLOSED

    def context(self) -> BrowserContext:
        return self._context

    def windows(self) -> list[Window]:
        return list(self._windows.values())

    def set_default_timeout(self, timeout: float | None) -> None:
        self._timeout_settings.set_default_timeout(timeout)

    async def first_window(self) -> Window:
        """Return the first window the target ever announced.

        The known-window check and the subscription in :meth:`wait_for_event`
        run without yielding to the loop, so no announcement can slip between.
        """
        if self._windows:
            return next(iter(self._windows.values()))
        return await self.wait_for_event(Events.Application.Window)

    async def wait_for_event(
        self,
        event: str,
        predicate: Callable[[Any], bool] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Wait for *event* and return its payload.

        *timeout* is in milliseconds; ``None`` uses the configured default and
        ``0`` waits forever. Unless *event* is ``close`` itself, the wait fails
        with :class:`TargetClosedError` if the application closes first.
        """
        timeout = self._timeout_settings.timeout(timeout)
        if self.is_closed():
            if event == Events.Application.Close:
                return None
            raise TargetClosedError("Application closed")
        with Waiter() as waiter:
            waiter.reject_on_timeout(
                timeout,
                TimeoutError(
                    f'Timeout {timeout}ms exceeded while waiting for event "{event}"',
                    event=event,
                    timeout=timeout,
                ),
            )
            if event != Events.Application.Close:
                waiter.reject_on_event(self, Events.Application.Close, TargetClosedError("Application closed"))
            return await waiter.wait_for_event(self, event, predicate)

    async def new_browser_window(self, options: Any = None) -> Window:
        result = await self._channel.send("newBrowserWindow", {"arg": serialize_argument(options)})
        return result["window"]

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await evaluate_expression(self, expression, arg)

    async def evaluate_handle(self, expression: str, arg: Any = None) -> JSHandle:
        return await evaluate_expression_handle(self, expression, arg)

    async def close(self) -> None:
        if self.is_closed():
            return
        try:
            await self._channel.send("close")
        except ConnectionClosedError:
            # The target dropped the session while shutting down.
            logger.debug("Connection closed during close() of %s", self._guid)
        await self._closed.wait()

    def _on_window(self, payload: dict[str, Any]) -> None:
        window: Window = payload["window"]
        if window.guid in self._windows:
            return
        self._windows[window.guid] = window
        self.emit(Events.Application.Window, window)

    def _mark_running(self) -> None:
        if self._state is ApplicationState.LAUNCHING:
            self._state = ApplicationState.RUNNING

    def _mark_closed(self) -> None:
        if self._state is ApplicationState.CLOSED:
            return
        self._state = ApplicationState.CLOSED
        self._closed.set()
        logger.debug("Application %s closed", self._guid)
        self.emit(Events.Application.Close)

    @override
    def _closed_error(self, method: str) -> Exception | None:
        if self.is_closed():
            return TargetClosedError("Application closed")
        return super()._closed_error(method)

    @override
    def _on_dispose(self) -> None:
        self._mark_closed()
