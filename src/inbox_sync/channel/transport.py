# =============================================================================
# Push Transports
# =============================================================================
# The push channel is an opaque, bidirectional stream of named events. The
# handshake only needs this much from it:
#
#   - open() / close() / is_open
#   - on(event, handler)   register a handler
#   - off(event)           remove every handler for an event
#   - emit(event, data)    send an event to the server
#
# The transport must also fire a "disconnect" event when the connection
# drops, so the handshake can reset itself.
#
# SocketIOTransport implements this on top of python-socketio's AsyncClient.
# Automatic reconnection is disabled: after a drop the channel must be
# re-authenticated, and silently resuming with old handlers would skip that.
# =============================================================================

import logging
from typing import Any, Callable, Protocol
from urllib.parse import urlsplit

import socketio
import socketio.exceptions

from inbox_sync.errors import TransportError

logger = logging.getLogger(__name__)


# Handlers are plain callables; payload arguments depend on the event
EventHandler = Callable[..., Any]


class PushTransport(Protocol):
    """A bidirectional named-event stream."""

    @property
    def is_open(self) -> bool: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    def on(self, event: str, handler: EventHandler) -> None: ...

    def off(self, event: str) -> None: ...

    async def emit(self, event: str, data: Any = None) -> None: ...


def socketio_endpoint(url: str) -> tuple[str, str]:
    """
    Split an API base URL into a Socket.IO origin and path.

    The Socket.IO server is mounted under the API path:

        >>> socketio_endpoint("https://example.com/notifications/")
        ('https://example.com', 'notifications/socket.io')
        >>> socketio_endpoint("https://example.com")
        ('https://example.com', 'socket.io')
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    origin = f"{parts.scheme}://{parts.netloc}"
    path = parts.path.strip("/")
    return origin, f"{path}/socket.io" if path else "socket.io"


class SocketIOTransport:
    """
    Push transport backed by a python-socketio AsyncClient.

    Usage:
        >>> transport = SocketIOTransport("https://example.com/notifications/")
        >>> await transport.open()
        >>> transport.on("authorized", on_authorized)
        >>> await transport.emit("auth", token)

    Attributes:
        url: API base URL the Socket.IO endpoint is derived from.
    """

    # Seconds to wait for the Socket.IO connection to come up
    CONNECT_TIMEOUT = 10

    def __init__(
        self,
        url: str,
        *,
        transports: list[str] | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        """
        Initialize the transport. Nothing is opened until open() is called.

        Args:
            url: API base URL (e.g., "https://example.com/notifications/").
            transports: Engine.IO transports to allow (default: websocket only).
            connect_timeout: Connection timeout in seconds.
        """
        self.url = url
        self._origin, self._path = socketio_endpoint(url)
        self._transports = transports or ["websocket"]
        self._connect_timeout = connect_timeout or self.CONNECT_TIMEOUT
        self._sio = socketio.AsyncClient(reconnection=False)

    @property
    def is_open(self) -> bool:
        return self._sio.connected

    async def open(self) -> None:
        if self._sio.connected:
            return

        logger.info(f"Opening push channel to {self._origin}/{self._path}")
        try:
            await self._sio.connect(
                self._origin,
                socketio_path=self._path,
                transports=self._transports,
                wait_timeout=self._connect_timeout,
            )
        except socketio.exceptions.ConnectionError as e:
            raise TransportError(f"Could not open push channel to {self._origin}: {e}") from e

    async def close(self) -> None:
        if self._sio.connected:
            logger.info(f"Closing push channel to {self._origin}")
            await self._sio.disconnect()

    def on(self, event: str, handler: EventHandler) -> None:
        self._sio.on(event, handler)

    def off(self, event: str) -> None:
        # AsyncClient keeps handlers per namespace; we only use the default one
        self._sio.handlers.get("/", {}).pop(event, None)

    async def emit(self, event: str, data: Any = None) -> None:
        try:
            await self._sio.emit(event, data)
        except socketio.exceptions.SocketIOError as e:
            raise TransportError(f"Could not send {event!r} on push channel: {e}") from e
