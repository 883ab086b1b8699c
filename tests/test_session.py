"""Tests for the session manager and token caching."""

import asyncio

import pytest

from conftest import VALID_TOKEN, token_source
from inbox_sync.channel import ChannelState
from inbox_sync.core import make_scope_key
from inbox_sync.errors import AuthAcquisitionFailed
from inbox_sync.session import MemoryCredentialStore, SessionManager


class TestAuthorize:
    """Tests for SessionManager.authorize()."""

    @pytest.mark.asyncio
    async def test_acquires_once_and_caches(self, session, store, scope_key):
        """Without a cached token the callback runs once and its result is cached."""
        acquire = token_source("fresh", "unexpected")

        token = await session.authorize(acquire)

        assert token == "fresh"
        assert acquire.calls == 1
        assert store.get(scope_key) == "fresh"
        assert session.token == "fresh"

        # A second call reuses the token
        assert await session.authorize(acquire) == "fresh"
        assert acquire.calls == 1

    @pytest.mark.asyncio
    async def test_cached_token_skips_callback(self, scope_key):
        """A token already in the store is used without calling the callback."""
        store = MemoryCredentialStore({scope_key: "cached"})
        session = SessionManager(store, scope_key)
        acquire = token_source("fresh")

        assert await session.authorize(acquire) == "cached"
        assert acquire.calls == 0

    @pytest.mark.asyncio
    async def test_callback_failure(self, session, store, scope_key):
        """A failing callback raises AuthAcquisitionFailed and caches nothing."""

        async def acquire() -> str:
            raise RuntimeError("user cancelled login")

        with pytest.raises(AuthAcquisitionFailed) as exc_info:
            await session.authorize(acquire)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert store.get(scope_key) is None
        assert session.token is None

    @pytest.mark.asyncio
    async def test_empty_token_rejected(self, session, store, scope_key):
        """An empty token counts as a failed acquisition."""
        with pytest.raises(AuthAcquisitionFailed):
            await session.authorize(token_source(""))

        assert store.get(scope_key) is None

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_acquisition(self, session):
        """Callers racing authorize() wait for a single acquisition."""
        calls = 0

        async def slow_acquire() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return f"token-{calls}"

        tokens = await asyncio.gather(*(session.authorize(slow_acquire) for _ in range(3)))

        assert calls == 1
        assert tokens == ["token-1", "token-1", "token-1"]

    @pytest.mark.asyncio
    async def test_scopes_do_not_collide(self, store):
        """Two accounts sharing a store keep separate tokens."""
        alice = SessionManager(store, make_scope_key("alice"))
        bob = SessionManager(store, make_scope_key("bob"))

        await alice.authorize(token_source("alice-token"))
        await bob.authorize(token_source("bob-token"))

        assert store.get(make_scope_key("alice")) == "alice-token"
        assert store.get(make_scope_key("bob")) == "bob-token"

        await alice.logout()
        assert store.get(make_scope_key("bob")) == "bob-token"


class TestInvalidation:
    """Tests for logout(), clear_credentials() and invalidate()."""

    @pytest.mark.asyncio
    async def test_logout_clears_token_and_disconnects(self, session, store, scope_key, handshake, transport, bring_up):
        """Logout drops the cached token and closes the push channel."""
        await bring_up()
        assert handshake.state is ChannelState.AUTHORIZED

        await session.logout()

        assert session.token is None
        assert store.get(scope_key) is None
        assert handshake.state is ChannelState.DISCONNECTED
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_logout_then_authorize_reacquires(self, session):
        """After logout the next authorize() asks for a new token."""
        await session.authorize(token_source("old"))
        await session.logout()

        acquire = token_source("new")
        assert await session.authorize(acquire) == "new"
        assert acquire.calls == 1

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, session):
        """Logging out twice is harmless and notifies listeners once."""
        reasons = []
        session.add_invalidation_listener(reasons.append)
        await session.authorize(token_source(VALID_TOKEN))

        await session.logout()
        await session.logout()

        assert reasons == ["logout"]

    @pytest.mark.asyncio
    async def test_generation_advances(self, session):
        """Each clear moves the generation forward."""
        before = session.generation
        await session.authorize(token_source(VALID_TOKEN))
        session.clear_credentials("test")
        assert session.generation == before + 1

    @pytest.mark.asyncio
    async def test_invalidate_disconnects_channel(self, session, handshake, bring_up):
        """invalidate() clears credentials and disconnects in one call."""
        await bring_up()

        await session.invalidate("401 from server")

        assert session.token is None
        assert handshake.state is ChannelState.DISCONNECTED

    def test_listener_errors_are_contained(self, session, store, scope_key):
        """A failing listener doesn't stop the others."""
        store.set(scope_key, "cached")
        seen = []

        def broken(reason: str) -> None:
            raise ValueError("boom")

        session.add_invalidation_listener(broken)
        session.add_invalidation_listener(seen.append)

        session.clear_credentials("denied")

        assert seen == ["denied"]
        assert store.get(scope_key) is None
