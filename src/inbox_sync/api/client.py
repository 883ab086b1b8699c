# =============================================================================
# Notifications API Client
# =============================================================================
# Async HTTP client for the notifications REST API, built on httpx.
#
# Endpoints:
#   GET    /notifications         -> {"notifications": [...]}
#   GET    /notification?id=<id>  -> {"notification": {...}}
#   PATCH  /notification?id=<id>  (mark as read, empty body)
#   DELETE /notification?id=<id>
#
# Every request carries the session's token in the Authorization header.
#
# Status handling:
#   - 2xx: success
#   - 401: the token is dead -> invalidate the session, raise AuthRejected
#   - 404: raise NotFound
#   - anything else: raise RequestFailed
# Network-level failures (timeouts, refused connections) become
# TransportError. Nothing is retried here; retry policy belongs to the caller.
# =============================================================================

import logging
from typing import Any

import httpx

from inbox_sync.core import Notification
from inbox_sync.errors import (
    AuthRejected,
    MalformedResponse,
    NotFound,
    RequestFailed,
    TransportError,
)
from inbox_sync.session import SessionManager

logger = logging.getLogger(__name__)


class NotificationsAPI:
    """
    Request/response access to the notification inbox.

    Usage:
        >>> api = NotificationsAPI("https://example.com/notifications/", session)
        >>> notifications = await api.list_notifications()
        >>> await api.mark_read(notifications[0].id)
        >>> await api.close()

    Attributes:
        base_url: Root URL the endpoint paths are resolved against.
        session: Session supplying (and invalidating) the token.
    """

    # Timeout for API requests (seconds)
    TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        session: SessionManager,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            base_url: Root URL of the notifications API.
            session: Session manager owning the token.
            timeout: Per-request timeout in seconds (default: TIMEOUT).
            transport: Optional httpx transport (e.g., httpx.MockTransport).
        """
        self.base_url = base_url
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else self.TIMEOUT,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "NotificationsAPI":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def list_notifications(self) -> list[Notification]:
        """
        Fetch the current inbox snapshot.

        Returns:
            Every notification the server currently holds for this account.
        """
        payload = await self._request("GET", "/notifications")
        items = payload.get("notifications")
        if not isinstance(items, list):
            raise MalformedResponse("Response is missing the 'notifications' list")
        return [Notification.from_dict(item) for item in items]

    async def get_notification(self, notification_id: str) -> Notification:
        """
        Fetch one notification by id.

        Raises:
            NotFound: If the server doesn't know the id.
        """
        payload = await self._request("GET", "/notification", notification_id)
        return Notification.from_dict(payload.get("notification"))

    # =========================================================================
    # Mutations
    # =========================================================================

    async def mark_read(self, notification_id: str) -> None:
        """Mark a notification as read. Repeating it for a read id is fine."""
        await self._request("PATCH", "/notification", notification_id)

    async def delete_notification(self, notification_id: str) -> None:
        """Delete a notification."""
        await self._request("DELETE", "/notification", notification_id)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        notification_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Send one authorized request and map the outcome onto our errors.

        Returns:
            The decoded JSON object, or an empty dict for bodiless responses.
        """
        token = self.session.token
        if not token:
            raise AuthRejected("Not authorized; call authorize() first")
        if self._client.is_closed:
            raise TransportError("API client is closed")

        params = {"id": notification_id} if notification_id is not None else None
        logger.debug(f"{method} {path} {params or ''}")

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                headers={"Authorization": token},
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code == 401:
            # The token is no good anymore - drop it before anyone reuses it
            await self.session.invalidate(f"{method} {path} returned 401")
            raise AuthRejected(f"Server rejected the authorization token ({method} {path})")

        if response.status_code == 404:
            if notification_id is None:
                raise NotFound(f"{method} {path} returned 404")
            raise NotFound(f"Notification {notification_id!r} not found")

        if not response.is_success:
            raise RequestFailed(
                f"{method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{method} {path} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise MalformedResponse(f"{method} {path} returned {type(payload).__name__}, expected object")
        return payload
