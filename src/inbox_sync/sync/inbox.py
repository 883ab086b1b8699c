# =============================================================================
# Inbox Mirror
# =============================================================================
# A ready-made subscriber that keeps an in-memory copy of the inbox:
#
#   inbox = Inbox()
#   inbox.hydrate(await sync.list_notifications())
#   sync.subscribe(inbox)
#
# Every change is applied as an idempotent overwrite, so a change seen twice
# (e.g., a local mark_read followed by its remote echo) leaves the mirror in
# the same state as seeing it once.
# =============================================================================

from typing import Iterator

from inbox_sync.core import Notification


class Inbox:
    """
    In-memory view of the notification inbox, kept current by change events.

    Notifications keep the order in which they were first seen.
    """

    def __init__(self) -> None:
        self._items: dict[str, Notification] = {}

    def hydrate(self, notifications: list[Notification]) -> None:
        """Replace the contents with a fresh snapshot."""
        self._items = {notification.id: notification for notification in notifications}

    # -------------------------------------------------------------------------
    # Subscriber interface
    # -------------------------------------------------------------------------

    def on_new(self, notification: Notification) -> None:
        self._items[notification.id] = notification

    def on_read(self, notification_id: str) -> None:
        notification = self._items.get(notification_id)
        if notification is not None:
            notification.mark_read()

    def on_deleted(self, notification_id: str) -> None:
        self._items.pop(notification_id, None)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, notification_id: str) -> Notification | None:
        return self._items.get(notification_id)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._items.values())

    @property
    def unread(self) -> list[Notification]:
        return [n for n in self._items.values() if not n.read]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items.values() if not n.read)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Notification]:
        return iter(list(self._items.values()))

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._items
