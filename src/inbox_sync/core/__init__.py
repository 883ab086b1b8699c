# =============================================================================
# inbox-sync Core Module
# =============================================================================
# Plain dataclasses shared by every other module:
#   - Account: whose inbox, and where the server lives
#   - Notification: one inbox entry
#   - Change events: created / read / deleted
# =============================================================================

from inbox_sync.core.account import Account, KEYRING_SERVICE, make_scope_key
from inbox_sync.core.events import (
    ChangeEvent,
    EventOrigin,
    NotificationCreated,
    NotificationDeleted,
    NotificationRead,
)
from inbox_sync.core.notification import Notification

__all__ = [
    "Account",
    "KEYRING_SERVICE",
    "make_scope_key",
    "Notification",
    "ChangeEvent",
    "EventOrigin",
    "NotificationCreated",
    "NotificationRead",
    "NotificationDeleted",
]
