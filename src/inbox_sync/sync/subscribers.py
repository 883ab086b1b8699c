# =============================================================================
# Subscribers and Fan-out
# =============================================================================
# A subscriber is anything with three methods:
#
#   on_new(notification)     a notification was created
#   on_read(notification_id) a notification was marked read
#   on_deleted(notification_id)
#
# Return values are ignored, except that awaitables are awaited before the
# next subscriber runs. That keeps one event's fan-out in order and complete
# before the next event starts.
#
# The registry fans events out in registration order. A subscriber that
# raises is logged and skipped; the others still receive the event.
# =============================================================================

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Protocol

from inbox_sync.core import (
    ChangeEvent,
    Notification,
    NotificationCreated,
    NotificationDeleted,
    NotificationRead,
)

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Receives inbox changes."""

    def on_new(self, notification: Notification) -> Any: ...

    def on_read(self, notification_id: str) -> Any: ...

    def on_deleted(self, notification_id: str) -> Any: ...


@dataclass
class CallbackSubscriber:
    """
    Adapts loose callables to the Subscriber interface.

    Any callback left as None is simply not called.

    Example:
        >>> sync.subscribe(CallbackSubscriber(new=lambda n: print(n.message)))
    """
    new: Callable[[Notification], Any] | None = None
    read: Callable[[str], Any] | None = None
    deleted: Callable[[str], Any] | None = None

    def on_new(self, notification: Notification) -> Any:
        if self.new is not None:
            return self.new(notification)

    def on_read(self, notification_id: str) -> Any:
        if self.read is not None:
            return self.read(notification_id)

    def on_deleted(self, notification_id: str) -> Any:
        if self.deleted is not None:
            return self.deleted(notification_id)


def _route(event: ChangeEvent) -> tuple[str, Any]:
    """Map an event to the subscriber method name and its argument."""
    if isinstance(event, NotificationCreated):
        return "on_new", event.notification
    if isinstance(event, NotificationRead):
        return "on_read", event.notification_id
    if isinstance(event, NotificationDeleted):
        return "on_deleted", event.notification_id
    raise TypeError(f"Unknown change event: {event!r}")


class SubscriberRegistry:
    """
    Ordered set of subscribers.

    Adding the same subscriber twice has no effect, so nobody can receive an
    event twice through double registration.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def add(self, subscriber: Subscriber) -> bool:
        """Register a subscriber. Returns False if it was already registered."""
        if any(existing is subscriber for existing in self._subscribers):
            logger.debug(f"Subscriber {subscriber!r} already registered")
            return False
        self._subscribers.append(subscriber)
        return True

    def remove(self, subscriber: Subscriber) -> bool:
        """Unregister a subscriber. Returns False if it wasn't registered."""
        for index, existing in enumerate(self._subscribers):
            if existing is subscriber:
                del self._subscribers[index]
                return True
        return False

    def __len__(self) -> int:
        return len(self._subscribers)

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(list(self._subscribers))

    def __contains__(self, subscriber: object) -> bool:
        return any(existing is subscriber for existing in self._subscribers)

    async def dispatch(self, event: ChangeEvent) -> None:
        """
        Deliver one event to every subscriber, in registration order.

        Raises:
            TypeError: If `event` is not a known change event.
        """
        method_name, argument = _route(event)

        # Snapshot so subscribers can (un)subscribe from inside a callback
        for subscriber in list(self._subscribers):
            try:
                result = getattr(subscriber, method_name)(argument)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in subscriber {subscriber!r} handling {method_name}: {e}")
