# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the inbox-sync test suite.
#
#   - FakeServer: the notifications REST API, served through
#     httpx.MockTransport
#   - FakeTransport: an in-memory push channel the test drives by hand
#   - RecordingSubscriber: remembers every change it was handed
# =============================================================================

import asyncio
from typing import Any, Callable

import httpx
import pytest

from inbox_sync.api import NotificationsAPI
from inbox_sync.channel import ChannelHandshake
from inbox_sync.core import Notification, make_scope_key
from inbox_sync.errors import TransportError
from inbox_sync.session import MemoryCredentialStore, SessionManager
from inbox_sync.sync import NotificationSync


BASE_URL = "https://api.example.test/v1/"
VALID_TOKEN = "token-1"


def sample_notifications() -> dict[str, dict[str, Any]]:
    return {
        "n1": {
            "id": "n1",
            "message": "Your payment was received",
            "type": "payment",
            "time": "2024-01-15T10:30:00+00:00",
            "read": False,
            "context": {"amount": 100},
        },
        "n2": {
            "id": "n2",
            "message": "New login from Firefox",
            "type": "security",
            "time": "2024-01-16T08:00:00+00:00",
            "read": True,
        },
    }


class FakeServer:
    """
    In-memory notifications API.

    Attributes:
        notifications: Server-side inbox, keyed by id.
        valid_tokens: Tokens accepted in the Authorization header.
        requests: Every request received, in order.
        status_override: If set, every request is answered with this status.
        delay: Seconds to sleep before answering GET /notification.
        hold: If set, PATCH and DELETE wait for this event before answering.
    """

    def __init__(self) -> None:
        self.notifications = sample_notifications()
        self.valid_tokens = {VALID_TOKEN}
        self.requests: list[httpx.Request] = []
        self.status_override: int | None = None
        self.delay = 0.0
        self.hold: asyncio.Event | None = None

    def add(self, notification_id: str, message: str = "Hello") -> None:
        self.notifications[notification_id] = {
            "id": notification_id,
            "message": message,
            "type": "info",
            "time": "2024-02-01T12:00:00+00:00",
            "read": False,
        }

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.status_override is not None:
            return httpx.Response(self.status_override)

        if request.headers.get("Authorization") not in self.valid_tokens:
            return httpx.Response(401, json={"error": "unauthorized"})

        path = request.url.path
        notification_id = request.url.params.get("id")

        if path == "/v1/notifications" and request.method == "GET":
            return httpx.Response(200, json={"notifications": list(self.notifications.values())})

        if path != "/v1/notification":
            return httpx.Response(404)

        if notification_id not in self.notifications:
            return httpx.Response(404, json={"error": "not found"})

        if request.method == "GET":
            if self.delay:
                await asyncio.sleep(self.delay)
            return httpx.Response(200, json={"notification": self.notifications[notification_id]})

        if self.hold is not None:
            await self.hold.wait()

        if request.method == "PATCH":
            self.notifications[notification_id]["read"] = True
            return httpx.Response(204)

        if request.method == "DELETE":
            del self.notifications[notification_id]
            return httpx.Response(204)

        return httpx.Response(405)


class FakeTransport:
    """
    Push transport driven by the test.

    Handlers are appended, never replaced, so double registration would be
    visible as duplicate deliveries.

    Attributes:
        sent: (event, data) pairs emitted by the client.
        auto_reply: Optional function mapping an auth token to the server's
                    verdict event name ("authorized"/"denied"), sent on the
                    next loop iteration.
        fail_open: Make open() raise TransportError.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, list[Callable[..., Any]]] = {}
        self.sent: list[tuple[str, Any]] = []
        self.auto_reply: Callable[[str], str | None] | None = None
        self.fail_open = False
        self.open_calls = 0
        self.close_calls = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        self.open_calls += 1
        if self.fail_open:
            raise TransportError("connection refused")
        self._open = True

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event: str) -> None:
        self.handlers.pop(event, None)

    async def emit(self, event: str, data: Any = None) -> None:
        self.sent.append((event, data))
        if event == "auth" and self.auto_reply is not None:
            verdict = self.auto_reply(data)
            if verdict:
                asyncio.get_running_loop().call_soon(self.server_emit, verdict)

    # -- test helpers ---------------------------------------------------------

    def server_emit(self, event: str, *args: Any) -> None:
        """Deliver an event from the "server" to every registered handler."""
        for handler in list(self.handlers.get(event, [])):
            handler(*args)

    def drop(self) -> None:
        """Simulate the connection going away underneath the client."""
        self._open = False
        self.server_emit("disconnect")

    def handler_count(self, event: str) -> int:
        return len(self.handlers.get(event, []))

    def auth_tokens(self) -> list[Any]:
        return [data for event, data in self.sent if event == "auth"]


class RecordingSubscriber:
    """Records every change as (kind, id) and keeps resolved notifications."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.notifications: list[Notification] = []

    def on_new(self, notification: Notification) -> None:
        self.events.append(("new", notification.id))
        self.notifications.append(notification)

    def on_read(self, notification_id: str) -> None:
        self.events.append(("read", notification_id))

    def on_deleted(self, notification_id: str) -> None:
        self.events.append(("deleted", notification_id))


def token_source(*tokens: str):
    """Build an acquisition callback returning `tokens` in turn, counting calls."""
    remaining = list(tokens)

    async def acquire() -> str:
        acquire.calls += 1
        return remaining.pop(0)

    acquire.calls = 0
    return acquire


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store():
    """Empty in-memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture
def scope_key():
    return make_scope_key("test")


@pytest.fixture
def session(store, scope_key):
    return SessionManager(store, scope_key)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def api(server, session):
    return NotificationsAPI(BASE_URL, session, transport=httpx.MockTransport(server.handle))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def handshake(transport, session):
    return ChannelHandshake(transport, session)


@pytest.fixture
def sync(api, session, handshake):
    return NotificationSync(api, session, handshake)


@pytest.fixture
def recorder(sync):
    """A RecordingSubscriber already subscribed to `sync`."""
    subscriber = RecordingSubscriber()
    sync.subscribe(subscriber)
    return subscriber


@pytest.fixture
def bring_up(session, handshake, transport):
    """Async helper: authorize with VALID_TOKEN and complete the handshake."""

    async def _bring_up(token: str = VALID_TOKEN) -> None:
        await session.authorize(token_source(token))
        await handshake.connect(token)
        transport.server_emit("authorized")

    return _bring_up
