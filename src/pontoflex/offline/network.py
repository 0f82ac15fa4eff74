"""Network status providers.

A provider answers point-in-time status checks and notifies listeners
when connectivity changes. Listeners receive a NetworkStatus and may be
plain callables or coroutine functions.
"""
import asyncio
import inspect
import logging
import socket
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from pontoflex.core.constants import (
    DEFAULT_PROBE_HOST,
    DEFAULT_PROBE_INTERVAL_S,
    DEFAULT_PROBE_PORT,
    DEFAULT_PROBE_TIMEOUT_S,
)

logger = logging.getLogger("pontoflex.network")


@dataclass(frozen=True)
class NetworkStatus:
    connected: bool


Listener = Callable[[NetworkStatus], Union[None, Awaitable[None]]]


class NetworkProvider(Protocol):
    async def get_status(self) -> NetworkStatus: ...

    def add_listener(self, listener: Listener) -> int: ...

    def remove_listener(self, handle: int) -> None: ...


class _ListenerRegistry:
    """Handle-based listener bookkeeping shared by the providers."""

    def __init__(self):
        self._listeners: dict[int, Listener] = {}
        self._next_handle = 0

    def add_listener(self, listener: Listener) -> int:
        self._next_handle += 1
        self._listeners[self._next_handle] = listener
        return self._next_handle

    def remove_listener(self, handle: int) -> None:
        self._listeners.pop(handle, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def _notify(self, status: NetworkStatus) -> None:
        for listener in list(self._listeners.values()):
            result = listener(status)
            if inspect.isawaitable(result):
                await result


class ManualNetwork(_ListenerRegistry):
    """Provider whose status is set by the caller.

    Listeners fire only on transitions, mirroring a platform network
    plugin. Used by tests and by the CLI when no probe is wanted.
    """

    def __init__(self, connected: bool = False):
        super().__init__()
        self._connected = connected

    async def get_status(self) -> NetworkStatus:
        return NetworkStatus(self._connected)

    async def set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        logger.info(f"Network {'connected' if connected else 'disconnected'}")
        await self._notify(NetworkStatus(connected))


def is_reachable(
    host: str = DEFAULT_PROBE_HOST,
    port: int = DEFAULT_PROBE_PORT,
    timeout: float = DEFAULT_PROBE_TIMEOUT_S,
) -> bool:
    """Check if host:port accepts TCP connections.

    Args:
        host: Probe host
        port: Probe port
        timeout: Connection timeout in seconds

    Returns:
        True if reachable
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except (socket.error, OSError):
        return False


class SocketProbeNetwork(_ListenerRegistry):
    """Provider backed by a TCP reachability probe.

    get_status() probes on demand. start_watching() runs a polling task
    that notifies listeners whenever the probe result flips.
    """

    def __init__(
        self,
        host: str = DEFAULT_PROBE_HOST,
        port: int = DEFAULT_PROBE_PORT,
        timeout: float = DEFAULT_PROBE_TIMEOUT_S,
        interval: float = DEFAULT_PROBE_INTERVAL_S,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.timeout = timeout
        self.interval = interval
        self._last: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    async def get_status(self) -> NetworkStatus:
        connected = await asyncio.to_thread(is_reachable, self.host, self.port, self.timeout)
        return NetworkStatus(connected)

    async def poll_once(self) -> NetworkStatus:
        """Probe once and notify listeners if the state changed."""
        status = await self.get_status()
        changed = self._last is not None and status.connected != self._last
        self._last = status.connected
        if changed:
            state = "connected" if status.connected else "disconnected"
            logger.info(f"Network {state} ({self.host}:{self.port})")
            await self._notify(status)
        return status

    async def _watch(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start_watching(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._watch())

    async def stop_watching(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
