# =============================================================================
# Sync Module
# =============================================================================
# Reconciles API mutations and push-channel notices into one ordered stream
# of change events:
#   - NotificationSync: the synchronization core
#   - SubscriberRegistry / CallbackSubscriber: fan-out utilities
#   - Inbox: in-memory mirror subscriber
# =============================================================================

from inbox_sync.sync.core import NotificationSync
from inbox_sync.sync.inbox import Inbox
from inbox_sync.sync.subscribers import (
    CallbackSubscriber,
    Subscriber,
    SubscriberRegistry,
)

__all__ = [
    "NotificationSync",
    "Inbox",
    "Subscriber",
    "SubscriberRegistry",
    "CallbackSubscriber",
]
