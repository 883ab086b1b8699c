# =============================================================================
# Session Manager
# =============================================================================
# Owns the authorization token for one account.
#
# Key responsibilities:
#   - Resolve the token: memory -> credential store -> acquisition callback
#   - Cache freshly acquired tokens
#   - Invalidate the token on logout, channel denial, or HTTP 401
#   - Tear down the bound push channel when the session ends
#
# Design notes:
#   - authorize() is serialized with an asyncio.Lock. Concurrent callers
#     share a single acquisition instead of racing to write the cache.
#   - Every invalidation bumps `generation`. Work started under an older
#     generation (e.g., a queued push event) must be dropped.
# =============================================================================

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from inbox_sync.errors import AuthAcquisitionFailed
from inbox_sync.session.credentials import CredentialStore

if TYPE_CHECKING:
    from inbox_sync.channel.handshake import ChannelHandshake

logger = logging.getLogger(__name__)


# Async callback that obtains a new token (login form, OAuth flow, ...)
TokenAcquirer = Callable[[], Awaitable[str]]

# Called with a short reason whenever the session's credentials are cleared
InvalidationListener = Callable[[str], None]


class SessionManager:
    """
    Manages the authorization token for a single account scope.

    Usage:
        >>> session = SessionManager(KeyringCredentialStore(), account.scope_key)
        >>> token = await session.authorize(prompt_for_token)
        >>> # ... later ...
        >>> await session.logout()

    Attributes:
        scope_key: Credential-store key this session reads and writes.
    """

    def __init__(self, store: CredentialStore, scope_key: str) -> None:
        """
        Initialize the session manager.

        Args:
            store: Where tokens are cached between runs.
            scope_key: Key for this account (see make_scope_key()).
        """
        self.scope_key = scope_key
        self._store = store
        self._token: str | None = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._channel: "ChannelHandshake | None" = None
        self._listeners: list[InvalidationListener] = []

    @property
    def token(self) -> str | None:
        """The active token, or None if the session is not authorized."""
        return self._token

    @property
    def is_authorized(self) -> bool:
        return self._token is not None

    @property
    def generation(self) -> int:
        """Incremented every time credentials are cleared."""
        return self._generation

    def bind_channel(self, channel: "ChannelHandshake") -> None:
        """Attach the push channel that logout() should disconnect."""
        self._channel = channel

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Register a callback to run whenever credentials are cleared."""
        self._listeners.append(listener)

    # =========================================================================
    # Token Lifecycle
    # =========================================================================

    async def authorize(self, acquire: TokenAcquirer) -> str:
        """
        Return a usable token, acquiring one only if nothing is cached.

        Args:
            acquire: Async callback producing a fresh token. Not called when a
                     token is already held or cached.

        Returns:
            The authorization token.

        Raises:
            AuthAcquisitionFailed: If `acquire` raises or returns an empty token.
                                   Nothing is cached in that case.
        """
        async with self._lock:
            if self._token:
                return self._token

            cached = self._store.get(self.scope_key)
            if cached:
                logger.debug(f"Using cached token for {self.scope_key}")
                self._token = cached
                return cached

            logger.info(f"No cached token for {self.scope_key}, acquiring a new one")
            try:
                token = await acquire()
            except Exception as e:
                raise AuthAcquisitionFailed(f"Could not acquire authorization token: {e}") from e

            if not isinstance(token, str) or not token:
                raise AuthAcquisitionFailed("Credential callback returned an empty token")

            self._store.set(self.scope_key, token)
            self._token = token
            return token

    def clear_credentials(self, reason: str = "invalidated") -> None:
        """
        Forget the token, both in memory and in the credential store.

        The bound channel is left alone; use invalidate() or logout() to also
        tear it down.
        """
        was_signed_in = self._token is not None or self._store.get(self.scope_key) is not None

        self._token = None
        self._store.remove(self.scope_key)
        self._generation += 1

        if not was_signed_in:
            return

        logger.info(f"Cleared credentials for {self.scope_key} ({reason})")
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception as e:
                logger.error(f"Error in invalidation listener: {e}")

    async def invalidate(self, reason: str) -> None:
        """
        Clear credentials and disconnect the channel as one step.

        Called when the server rejects the token. Once this returns, any
        authorize() call will acquire a new token.
        """
        logger.warning(f"Authorization rejected for {self.scope_key}: {reason}")
        self.clear_credentials(reason)
        if self._channel is not None:
            await self._channel.disconnect()

    async def logout(self) -> None:
        """
        End the session: drop the token and disconnect the push channel.

        Idempotent. After this returns no further change events reach
        subscribers until a new handshake succeeds.
        """
        self.clear_credentials("logout")
        if self._channel is not None:
            await self._channel.disconnect()
