# =============================================================================
# inbox-sync: Notification Inbox Session & Sync Client
# =============================================================================
#
# inbox-sync keeps a client's view of a notification inbox consistent by
# reconciling two sources:
#
#   - a REST API for listing, reading, and deleting notifications
#   - a push channel that announces new, read, and deleted notifications
#
# Features:
#   - Token caching per account (system keyring by default)
#   - Push-channel handshake with automatic token invalidation on denial
#   - Ordered, exactly-once fan-out of changes to any number of subscribers
#   - Local mutations echoed to subscribers through the same path
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "inbox-sync"

from inbox_sync.api import NotificationsAPI
from inbox_sync.channel import ChannelHandshake, ChannelState, EventNames, SocketIOTransport
from inbox_sync.core import (
    Account,
    ChangeEvent,
    EventOrigin,
    Notification,
    NotificationCreated,
    NotificationDeleted,
    NotificationRead,
)
from inbox_sync.errors import (
    AuthAcquisitionFailed,
    AuthRejected,
    InboxSyncError,
    MalformedResponse,
    NotFound,
    RequestFailed,
    TransportError,
)
from inbox_sync.session import (
    KeyringCredentialStore,
    MemoryCredentialStore,
    SessionManager,
)
from inbox_sync.sync import CallbackSubscriber, Inbox, NotificationSync

__all__ = [
    "__version__",
    "__app_name__",
    # Models
    "Account",
    "Notification",
    "ChangeEvent",
    "EventOrigin",
    "NotificationCreated",
    "NotificationRead",
    "NotificationDeleted",
    # Session
    "SessionManager",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    # API & channel
    "NotificationsAPI",
    "ChannelHandshake",
    "ChannelState",
    "EventNames",
    "SocketIOTransport",
    # Sync
    "NotificationSync",
    "Inbox",
    "CallbackSubscriber",
    # Errors
    "InboxSyncError",
    "AuthAcquisitionFailed",
    "AuthRejected",
    "TransportError",
    "RequestFailed",
    "MalformedResponse",
    "NotFound",
]
