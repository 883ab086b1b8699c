# =============================================================================
# Channel Handshake
# =============================================================================
# Authenticates the push channel and forwards change notices once the server
# has accepted the token.
#
# State machine:
#
#   DISCONNECTED --connect--> HANDSHAKE_PENDING --authorized--> AUTHORIZED
#                                    |                              |
#                                    +--denied--> DENIED            |
#                                                   |               |
#                  HANDSHAKE_PENDING <--connect-----+               |
#   DISCONNECTED <--logout / transport closed-----------------------+
#
# Protocol:
#   client -> "auth"(token)
#   server -> "denied" | "authorized"
#   server -> "created"(id), "read"(id), "deleted"(id)   (after authorized)
#
# Design notes:
#   - Change observers are installed only after "authorized", and at most
#     once. Installing them twice would fan every event out twice.
#   - On "denied" the cached token is dropped so the next authorize() asks
#     for a new one, and the transport is closed. The state stays DENIED
#     until a connect() with a fresh token opens a new connection.
#   - On transport closure every observer is removed; a new handshake is
#     required before events flow again.
#   - A handshake that gets no verdict in time is abandoned, so the caller
#     can retry with a fresh connect().
# =============================================================================

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Protocol

from inbox_sync.channel.transport import EventHandler, PushTransport
from inbox_sync.errors import AuthRejected, TransportError
from inbox_sync.session import SessionManager

logger = logging.getLogger(__name__)


class ChannelState(Enum):
    """Where the push channel is in its handshake."""
    DISCONNECTED = auto()       # No authenticated channel
    HANDSHAKE_PENDING = auto()  # "auth" sent, waiting for the verdict
    AUTHORIZED = auto()         # Server accepted the token; events flow
    DENIED = auto()             # Server rejected the token


@dataclass(frozen=True)
class EventNames:
    """
    Wire names of the push-channel events.

    The defaults match the current server. Use EventNames.legacy() for
    servers that still speak the older vocabulary.
    """
    auth: str = "auth"
    denied: str = "denied"
    authorized: str = "authorized"
    created: str = "created"
    read: str = "read"
    deleted: str = "deleted"
    disconnect: str = "disconnect"

    @classmethod
    def legacy(cls) -> "EventNames":
        """Event names used by older servers ("deny", "push", "patch", "delete")."""
        return cls(denied="deny", created="push", read="patch", deleted="delete")


class ChangeSink(Protocol):
    """Receives raw change notices from an authorized channel."""

    def receive_created(self, notification_id: str) -> None: ...

    def receive_read(self, notification_id: str) -> None: ...

    def receive_deleted(self, notification_id: str) -> None: ...


def _coerce_id(payload: Any) -> str | None:
    """Extract a notification id from an event payload."""
    if isinstance(payload, str) and payload:
        return payload
    if isinstance(payload, int) and not isinstance(payload, bool):
        return str(payload)
    return None


class ChannelHandshake:
    """
    Runs the token handshake over a push transport.

    Usage:
        >>> handshake = ChannelHandshake(transport, session)
        >>> handshake.attach(sync_core)
        >>> await handshake.connect(token)
        >>> state = await handshake.wait_settled(timeout=10)

    Attributes:
        transport: The underlying push transport.
        session: Session whose credentials are cleared on denial.
        events: Wire names of the protocol events.
    """

    def __init__(
        self,
        transport: PushTransport,
        session: SessionManager,
        *,
        events: EventNames | None = None,
    ) -> None:
        self.transport = transport
        self.session = session
        self.events = events or EventNames()
        self._state = ChannelState.DISCONNECTED
        self._sink: ChangeSink | None = None
        self._observers: set[str] = set()
        self._settled = asyncio.Event()
        self._settled.set()
        self._disconnected = asyncio.Event()
        self._disconnected.set()
        self._closing: asyncio.Task | None = None

        session.bind_channel(self)

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_authorized(self) -> bool:
        return self._state is ChannelState.AUTHORIZED

    def attach(self, sink: ChangeSink) -> None:
        """Set where change notices are forwarded once authorized."""
        self._sink = sink

    # =========================================================================
    # Public API
    # =========================================================================

    async def connect(self, token: str) -> None:
        """
        Start the handshake. Returns once "auth" is sent, not when answered.

        Does nothing if the channel is already authorized or waiting for a
        verdict. Use wait_settled() to wait for the outcome.

        Raises:
            AuthRejected: If `token` is empty.
            TransportError: If the transport can't be opened or written to.
        """
        if self._state in (ChannelState.AUTHORIZED, ChannelState.HANDSHAKE_PENDING):
            logger.debug(f"connect() ignored, channel is {self._state.name}")
            return

        if not token:
            raise AuthRejected("Cannot authenticate push channel without a token")

        self._settled.clear()
        self._disconnected.clear()
        self._set_state(ChannelState.HANDSHAKE_PENDING)

        try:
            await self._finish_closing()
            if not self.transport.is_open:
                await self.transport.open()

            self._observe(self.events.denied, self._on_denied)
            self._observe(self.events.authorized, self._on_authorized)
            self._observe(self.events.disconnect, self._on_transport_closed)

            await self.transport.emit(self.events.auth, token)
        except TransportError:
            self._reset()
            raise

        logger.debug("Sent auth on push channel")

    async def wait_settled(self, timeout: float | None = None) -> ChannelState:
        """
        Wait for a pending handshake to be answered.

        Returns:
            The resulting state (AUTHORIZED, DENIED, or DISCONNECTED).

        Raises:
            TransportError: If no verdict arrives within `timeout` seconds.
                            The handshake is abandoned and the channel is
                            back in DISCONNECTED.
        """
        try:
            await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"No handshake response within {timeout}s, disconnecting")
            await self.disconnect()
            raise TransportError(f"No handshake response within {timeout}s") from e
        return self._state

    async def wait_disconnected(self) -> None:
        """Wait until the channel is closed (logout, 401, denial, or drop)."""
        await self._disconnected.wait()

    async def disconnect(self) -> None:
        """
        Drop to DISCONNECTED and close the transport. Idempotent.

        Observers are removed before the transport is closed, so no event can
        slip through while the close is in progress.
        """
        if self._state is not ChannelState.DISCONNECTED:
            logger.info("Disconnecting push channel")
        self._reset()
        await self._finish_closing()

        if self.transport.is_open:
            await self.transport.close()

    # =========================================================================
    # Event Handlers
    # =========================================================================

    def _on_denied(self, *args: Any) -> None:
        logger.error("Push channel rejected the authorization token")
        self._remove_observers()
        self._set_state(ChannelState.DENIED)
        self.session.clear_credentials("push channel denied")
        self._closing = asyncio.get_running_loop().create_task(self.transport.close())
        self._settled.set()
        self._disconnected.set()

    def _on_authorized(self, *args: Any) -> None:
        if self._state is not ChannelState.HANDSHAKE_PENDING:
            logger.debug(f"Ignoring authorized while {self._state.name}")
            return

        self._observe(self.events.created, self._on_created)
        self._observe(self.events.read, self._on_read)
        self._observe(self.events.deleted, self._on_deleted)
        self._set_state(ChannelState.AUTHORIZED)
        self._settled.set()
        logger.info("Push channel authorized")

    def _on_transport_closed(self, *args: Any) -> None:
        if self._state is ChannelState.DISCONNECTED:
            return
        logger.warning("Push channel closed by transport")
        self._reset()

    def _on_created(self, payload: Any = None, *args: Any) -> None:
        notification_id = self._accept(self.events.created, payload)
        if notification_id is not None:
            self._sink.receive_created(notification_id)

    def _on_read(self, payload: Any = None, *args: Any) -> None:
        notification_id = self._accept(self.events.read, payload)
        if notification_id is not None:
            self._sink.receive_read(notification_id)

    def _on_deleted(self, payload: Any = None, *args: Any) -> None:
        notification_id = self._accept(self.events.deleted, payload)
        if notification_id is not None:
            self._sink.receive_deleted(notification_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _accept(self, event: str, payload: Any) -> str | None:
        """Validate a change notice; returns its id or None if it must be dropped."""
        if self._state is not ChannelState.AUTHORIZED:
            logger.debug(f"Dropping {event} received while {self._state.name}")
            return None

        notification_id = _coerce_id(payload)
        if notification_id is None:
            logger.warning(f"Dropping {event} with unusable payload: {payload!r}")
            return None

        if self._sink is None:
            logger.warning(f"Dropping {event}({notification_id}): no sink attached")
            return None

        logger.debug(f"Push: {event}({notification_id})")
        return notification_id

    def _observe(self, event: str, handler: EventHandler) -> None:
        if event in self._observers:
            return
        self.transport.on(event, handler)
        self._observers.add(event)

    def _remove_observers(self) -> None:
        for event in list(self._observers):
            self.transport.off(event)
        self._observers.clear()

    async def _finish_closing(self) -> None:
        """Wait for a close started by a denial, so it can't hit a new connection."""
        if self._closing is not None:
            closing, self._closing = self._closing, None
            await closing

    def _reset(self) -> None:
        """Back to DISCONNECTED with no observers installed."""
        self._remove_observers()
        self._set_state(ChannelState.DISCONNECTED)
        self._settled.set()
        self._disconnected.set()

    def _set_state(self, state: ChannelState) -> None:
        if state is not self._state:
            logger.debug(f"Channel state: {self._state.name} -> {state.name}")
            self._state = state
