"""One-shot wait primitive.

A :class:`Waiter` races an awaited event against any number of armed
failure sources (a timer, abort events). The first source to fire settles
the waiter; every attachment is then released exactly once, and later
firings are no-ops.
"""

from __future__ import annotations

import asyncio
from types import TracebackType
from typing import Any, Callable

from .events import EventEmitter, Listener


class Waiter:
    def __init__(self) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._result: asyncio.Future[Any] = loop.create_future()
        self._attachments: list[tuple[EventEmitter, str, Listener]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._disposed = False

    @property
    def settled(self) -> bool:
        return self._result.done()

    def reject_on_timeout(self, timeout: float, error: BaseException) -> None:
        """Fail the wait with *error* after *timeout* milliseconds.

        A timeout of ``0`` arms nothing.
        """
        if not timeout or self._disposed:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(timeout / 1000, self._reject, error)

    def reject_on_event(
        self,
        emitter: EventEmitter,
        event: str,
        error: BaseException,
        predicate: Callable[..., bool] | None = None,
    ) -> None:
        def listener(*args: Any) -> None:
            if predicate is not None and not predicate(*args):
                return
            self._reject(error)

        self._attach(emitter, event, listener)

    async def wait_for_event(
        self,
        emitter: EventEmitter,
        event: str,
        predicate: Callable[[Any], bool] | None = None,
    ) -> Any:
        """Resolve with the payload of the first matching *event* on *emitter*.

        Occurrences rejected by *predicate* leave the listener armed. If the
        predicate raises, the wait fails with that exception.
        """

        def listener(payload: Any = None, *_: Any) -> None:
            if self._result.done():
                return
            if predicate is not None:
                try:
                    matched = predicate(payload)
                except Exception as exc:
                    self._reject(exc)
                    return
                if not matched:
                    return
            self._fulfill(payload)

        self._attach(emitter, event, listener)
        try:
            return await self._result
        finally:
            self.dispose()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        attachments, self._attachments = self._attachments, []
        for emitter, event, listener in attachments:
            emitter.off(event, listener)

    def _attach(self, emitter: EventEmitter, event: str, listener: Listener) -> None:
        if self._disposed:
            return
        emitter.on(event, listener)
        self._attachments.append((emitter, event, listener))

    def _fulfill(self, value: Any) -> None:
        if self._result.done():
            return
        self._result.set_result(value)
        self.dispose()

    def _reject(self, error: BaseException) -> None:
        if self._result.done():
            return
        self._result.set_exception(error)
        self.dispose()

    def __enter__(self) -> Waiter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()
