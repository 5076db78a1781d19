"""Anonymous usage analytics: the publisher client, machine ids and phase reporting."""

from __future__ import annotations

import hashlib
import hmac
import logging
import socket
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Protocol

log = logging.getLogger(__name__)

APP_ID = "k0sproject-k0s"

_MACHINE_ID_PATHS: tuple[Path, ...] = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)


class Publisher(Protocol):
    """Anything that can receive analytics events."""

    def publish(self, event: str, props: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class NullClient:
    """A publisher that only logs the events it is given."""

    def __init__(self) -> None:
        self.active = False

    def initialize(self) -> None:
        """Mark the client as ready to receive events."""
        self.active = True

    def publish(self, event: str, props: dict[str, Any]) -> None:
        log.debug("analytics event %s - properties: %r", event, props)

    def close(self) -> None:
        """Mark the client as closed."""
        self.active = False


_active: dict[str, Publisher] = {"client": NullClient()}


def get_client() -> Publisher:
    """Return the active analytics publisher."""
    return _active["client"]


def set_client(client: Publisher) -> Publisher:
    """Replace the active analytics publisher and return the previous one."""
    previous = _active["client"]
    _active["client"] = client
    log.debug("analytics client set to %s", type(client).__name__)
    return previous


def _read_machine_id() -> str:
    for candidate in _MACHINE_ID_PATHS:
        try:
            content = candidate.read_text().strip()
        except OSError:
            continue
        if content:
            return content
    raise OSError("machine id not found")


def machine_id() -> str:
    """Return an application-specific protected id for the current machine."""
    try:
        raw = _read_machine_id()
    except OSError:
        return machine_id_from_hostname()
    return hmac.new(raw.encode(), APP_ID.encode(), hashlib.sha256).hexdigest()


def machine_id_from_hostname() -> str:
    """Return an md5 hex digest of the hostname."""
    name = socket.gethostname()
    return hashlib.md5(name.encode()).hexdigest()


class AnalyticsPhase:
    """Collects data points for a phase and publishes them when it ends."""

    def __init__(self) -> None:
        self.props: dict[str, Any] = {}
        self._start = time.monotonic()
        self._lock = threading.Lock()

    def inc_prop(self, key: str) -> None:
        """Increase a numeric data point, starting from zero when missing."""
        with self._lock:
            current = self.props.get(key)
            value = current if isinstance(current, int) and not isinstance(current, bool) else 0
            self.props[key] = value + 1

    def set_prop(self, key: str, value: Any) -> None:
        with self._lock:
            self.props[key] = value

    def before(self, title: str) -> None:
        """Reset the data points and start the clock."""
        self.props = {"name": title}
        self._start = time.monotonic()

    def after(self, result: BaseException | None) -> None:
        """Publish the phase outcome with its duration."""
        self.props["duration"] = timedelta(seconds=time.monotonic() - self._start)
        event = "phase-success" if result is None else "phase-failure"
        get_client().publish(event, self.props)