from __future__ import annotations

import logging
import os
from typing import Any, TypedDict

logger = logging.getLogger(__name__)


def _default_timeout_from_env() -> float:
    raw = os.environ.get("REMOTEAPP_DEFAULT_TIMEOUT")
    if not raw:
        return 30000.0
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring malformed REMOTEAPP_DEFAULT_TIMEOUT=%r", raw)
        return 30000.0
    if value < 0:
        logger.warning("Ignoring negative REMOTEAPP_DEFAULT_TIMEOUT=%r", raw)
        return 30000.0
    return value


DEFAULT_TIMEOUT: float = _default_timeout_from_env()
"""Default wait timeout in milliseconds. ``0`` disables the timeout."""


class LaunchOptions(TypedDict, total=False):
    """Options accepted by :meth:`remoteapp.Launcher.launch`."""

    args: list[str]
    """Extra command line arguments passed to the target executable."""

    cwd: str
    """Working directory of the launched target."""

    env: dict[str, str]
    """Environment of the launched target."""

    timeout: float
    """Launch timeout in milliseconds, enforced by the target side."""

    handle_sigint: bool
    handle_sigterm: bool
    handle_sighup: bool

    logger: Any
    """Local logging hook. Never forwarded to the target."""


class TimeoutSettings:
    """Default and per-call wait timeouts, in milliseconds.

    Resolution order is: explicit override, this object's default, the
    parent's resolution, then :data:`DEFAULT_TIMEOUT`. ``None`` means "not
    set"; ``0`` means "no timeout" wherever it is set.
    """

    def __init__(self, parent: TimeoutSettings | None = None) -> None:
        self._parent = parent
        self._default_timeout: float | None = None

    def set_default_timeout(self, timeout: float | None) -> None:
        if timeout is not None:
            _check_timeout(timeout)
        self._default_timeout = timeout

    def timeout(self, override: float | None = None) -> float:
        if override is not None:
            _check_timeout(override)
            return override
        if self._default_timeout is not None:
            return self._default_timeout
        if self._parent is not None:
            return self._parent.timeout()
        return DEFAULT_TIMEOUT


def _check_timeout(timeout: float) -> None:
    if timeout < 0:
        raise ValueError(f"Timeout must be non-negative, got {timeout}")
