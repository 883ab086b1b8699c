# =============================================================================
# Notification Sync
# =============================================================================
# The synchronization core. Merges two sources of inbox changes into a
# single ordered stream and fans it out to subscribers:
#
#   1. Remote: change notices forwarded by an authorized push channel
#      - created(id) is only a pointer; the full notification is fetched
#        before dispatch
#      - read(id) / deleted(id) are dispatched as-is
#   2. Local: a successful mark_read() / delete_notification() call
#      synthesizes the matching event
#
# Ordering:
#   - Everything goes through one FIFO queue drained by a single dispatcher
#     task, so a created(A) still being fetched is never overtaken by a
#     later read(A).
#   - One event is fully fanned out before the next one starts.
#
# Cancellation:
#   - Each queued item remembers the session generation it was produced
#     under. After logout (or any invalidation) the generation moves on and
#     stale items are discarded, even mid-fetch.
#   - A local mutation takes its generation when the call starts, not when
#     the request returns.
#
# Delivery semantics:
#   - Every accepted notice and every successful mutation is dispatched once
#     per subscriber.
#   - A local mutation and a later remote echo of the same change are NOT
#     merged: subscribers may see both (at-least-once at the transport
#     boundary). Apply changes idempotently, as Inbox does.
# =============================================================================

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from inbox_sync.api import NotificationsAPI
from inbox_sync.channel import ChannelHandshake, ChannelState
from inbox_sync.core import (
    ChangeEvent,
    EventOrigin,
    Notification,
    NotificationCreated,
    NotificationDeleted,
    NotificationRead,
)
from inbox_sync.errors import AuthRejected, NotFound, TransportError
from inbox_sync.session import SessionManager, TokenAcquirer
from inbox_sync.sync.subscribers import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)


@dataclass
class _Pending:
    """One queued unit of work for the dispatcher."""
    generation: int
    event: ChangeEvent | None = None        # Ready to dispatch
    created_id: str | None = None           # Needs resolving first
    done: asyncio.Future | None = None      # Set once dispatched (local only)


class NotificationSync:
    """
    Consistent, ordered view of inbox changes for any number of subscribers.

    Usage:
        >>> sync = NotificationSync(api, session, handshake)
        >>> sync.subscribe(inbox)
        >>> snapshot = await sync.start(prompt_for_token)
        >>> await sync.mark_read(snapshot[0].id)   # inbox.on_read fires
        >>> await sync.logout()

    Subscribers must not await mark_read()/delete_notification() from inside
    their callbacks: the echo would queue behind the event being delivered.
    Such calls raise RuntimeError; schedule them as separate tasks instead.

    Attributes:
        api: HTTP client for reads and mutations.
        session: Session manager owning the token.
        handshake: Push channel, or None for a request/response-only client.
        subscribers: Registry of change subscribers.
    """

    # How long start() waits for the push channel's verdict (seconds)
    HANDSHAKE_TIMEOUT = 10.0

    def __init__(
        self,
        api: NotificationsAPI,
        session: SessionManager,
        handshake: ChannelHandshake | None = None,
    ) -> None:
        self.api = api
        self.session = session
        self.handshake = handshake
        self.subscribers = SubscriberRegistry()
        self._queue: asyncio.Queue[_Pending] = asyncio.Queue()
        self._dispatcher: asyncio.Task | None = None
        self._closed = False

        if handshake is not None:
            handshake.attach(self)

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        """Register a subscriber. Returns it, for chaining."""
        self.subscribers.add(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self.subscribers.remove(subscriber)

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    async def start(
        self,
        acquire: TokenAcquirer,
        *,
        timeout: float | None = None,
    ) -> list[Notification]:
        """
        Authorize, authenticate the push channel, and load the inbox.

        Args:
            acquire: Callback used only if no token is cached.
            timeout: Seconds to wait for the handshake (default: HANDSHAKE_TIMEOUT).

        Returns:
            The initial inbox snapshot.

        Raises:
            AuthAcquisitionFailed: If a token was needed and couldn't be acquired.
            AuthRejected: If the push channel denied the token. Credentials are
                          already cleared; calling start() again re-acquires.
            TransportError: If the channel couldn't be set up.
        """
        token = await self.session.authorize(acquire)

        if self.handshake is not None:
            await self.handshake.connect(token)
            state = await self.handshake.wait_settled(
                timeout if timeout is not None else self.HANDSHAKE_TIMEOUT
            )
            if state is ChannelState.DENIED:
                raise AuthRejected("Push channel rejected the authorization token")
            if state is not ChannelState.AUTHORIZED:
                raise TransportError("Push channel closed during handshake")

        return await self.list_notifications()

    async def logout(self) -> None:
        """
        End the session. Queued and in-flight remote events are discarded;
        nothing reaches subscribers until a new handshake succeeds.
        """
        await self.session.logout()

    async def drain(self) -> None:
        """Wait until every queued event has been dispatched (or dropped)."""
        await self._queue.join()

    async def close(self) -> None:
        """
        Stop dispatching and release the channel and HTTP client.

        The cached token is kept; use logout() to forget it.
        """
        if self._closed:
            return
        self._closed = True

        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

        # Release anyone still waiting on a local echo
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item.done is not None and not item.done.done():
                item.done.cancel()
            self._queue.task_done()

        if self.handshake is not None:
            await self.handshake.disconnect()
        await self.api.close()

    async def __aenter__(self) -> "NotificationSync":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Reads and Mutations
    # =========================================================================

    async def list_notifications(self) -> list[Notification]:
        """
        Fetch the current inbox snapshot. Emits no change events.

        Use it for initial hydration; rely on subscriptions afterwards.
        """
        return await self.api.list_notifications()

    async def mark_read(self, notification_id: str) -> None:
        """
        Mark a notification as read and notify every subscriber.

        Returns after all subscribers have received on_read. Calling it again
        for the same id succeeds and notifies them again.

        If the session ends while the request is in flight the change is still
        made on the server, but subscribers are not notified.

        Raises:
            AuthRejected: Token refused (credentials already cleared).
            NotFound: The server doesn't know this id.
            TransportError: Network or server failure.
            RuntimeError: If called from inside a subscriber callback.
        """
        generation = self._begin_mutation()
        await self.api.mark_read(notification_id)
        await self._publish(NotificationRead(notification_id, origin=EventOrigin.LOCAL), generation)

    async def delete_notification(self, notification_id: str) -> None:
        """
        Delete a notification and notify every subscriber.

        Raises:
            AuthRejected: Token refused (credentials already cleared).
            NotFound: The server doesn't know this id.
            TransportError: Network or server failure.
            RuntimeError: If called from inside a subscriber callback.
        """
        generation = self._begin_mutation()
        await self.api.delete_notification(notification_id)
        await self._publish(NotificationDeleted(notification_id, origin=EventOrigin.LOCAL), generation)

    # =========================================================================
    # ChangeSink (called by the channel handshake)
    # =========================================================================

    def receive_created(self, notification_id: str) -> None:
        self._enqueue(_Pending(self.session.generation, created_id=notification_id))

    def receive_read(self, notification_id: str) -> None:
        event = NotificationRead(notification_id, origin=EventOrigin.REMOTE)
        self._enqueue(_Pending(self.session.generation, event=event))

    def receive_deleted(self, notification_id: str) -> None:
        event = NotificationDeleted(notification_id, origin=EventOrigin.REMOTE)
        self._enqueue(_Pending(self.session.generation, event=event))

    # =========================================================================
    # Dispatcher
    # =========================================================================

    def _begin_mutation(self) -> int:
        """Return the generation a local mutation belongs to."""
        if self._dispatcher is not None and asyncio.current_task() is self._dispatcher:
            raise RuntimeError("Mutations cannot be awaited from inside a subscriber callback")
        return self.session.generation

    async def _publish(self, event: ChangeEvent, generation: int) -> None:
        """Queue a local event and wait until it has been fanned out (or dropped)."""
        done = asyncio.get_running_loop().create_future()
        self._enqueue(_Pending(generation, event=event, done=done))
        await done

    def _enqueue(self, item: _Pending) -> None:
        if self._closed:
            logger.debug("Dropping change event, sync is closed")
            if item.done is not None:
                item.done.set_result(None)
            return

        self._queue.put_nowait(item)
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._run(), name="inbox-sync-dispatcher")

    async def _run(self) -> None:
        """Drain the queue forever, one item at a time."""
        while True:
            item = await self._queue.get()
            try:
                await self._process(item)
            except asyncio.CancelledError:
                if item.done is not None and not item.done.done():
                    item.done.cancel()
                raise
            except Exception as e:
                if item.done is not None and not item.done.done():
                    item.done.set_exception(e)
                else:
                    logger.error(f"Error dispatching change event: {e}")
            else:
                if item.done is not None and not item.done.done():
                    item.done.set_result(None)
            finally:
                self._queue.task_done()

    async def _process(self, item: _Pending) -> None:
        if item.generation != self.session.generation:
            logger.debug("Dropping change event from an ended session")
            return

        event = item.event
        if event is None:
            event = await self._resolve_created(item.created_id)
            if event is None:
                return
            # The session may have ended while we were fetching
            if item.generation != self.session.generation:
                logger.debug(f"Dropping created({item.created_id}), session ended during fetch")
                return

        await self.subscribers.dispatch(event)

    async def _resolve_created(self, notification_id: str) -> NotificationCreated | None:
        """Fetch the notification a created notice points to."""
        try:
            notification = await self.api.get_notification(notification_id)
        except NotFound:
            logger.warning(f"Notification {notification_id} vanished before it could be fetched")
            return None
        except AuthRejected as e:
            logger.error(f"Could not fetch notification {notification_id}: {e}")
            return None
        except TransportError as e:
            logger.error(f"Could not fetch notification {notification_id}: {e}")
            return None

        return NotificationCreated(notification, origin=EventOrigin.REMOTE)
