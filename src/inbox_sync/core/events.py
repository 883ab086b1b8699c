# =============================================================================
# Change Events
# =============================================================================
# The three kinds of inbox change, modelled as a closed set of frozen
# dataclasses:
#
#   - NotificationCreated: a new notification arrived (fully resolved)
#   - NotificationRead:    a notification was marked as read
#   - NotificationDeleted: a notification was removed
#
# Events are produced either remotely (push channel) or locally (a successful
# mark_read/delete call) and are discarded after fan-out. There is no event
# log.
# =============================================================================

from dataclasses import dataclass
from enum import Enum, auto

from inbox_sync.core.notification import Notification


class EventOrigin(Enum):
    """Where a change event came from."""
    LOCAL = auto()      # Synthesized after a successful mutation call
    REMOTE = auto()     # Delivered by the push channel


@dataclass(frozen=True)
class NotificationCreated:
    """A new notification appeared in the inbox."""
    notification: Notification
    origin: EventOrigin = EventOrigin.REMOTE

    @property
    def notification_id(self) -> str:
        return self.notification.id


@dataclass(frozen=True)
class NotificationRead:
    """A notification was marked as read."""
    notification_id: str
    origin: EventOrigin = EventOrigin.REMOTE


@dataclass(frozen=True)
class NotificationDeleted:
    """A notification was deleted."""
    notification_id: str
    origin: EventOrigin = EventOrigin.REMOTE


# Union of every change event. Consumers should handle all three.
ChangeEvent = NotificationCreated | NotificationRead | NotificationDeleted
