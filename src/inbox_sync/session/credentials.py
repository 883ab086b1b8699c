# =============================================================================
# Credential Stores
# =============================================================================
# Key-value persistence for cached authorization tokens.
#
# A store only needs three operations:
#   - get(scope_key)          -> token or None
#   - set(scope_key, token)
#   - remove(scope_key)       (no error if nothing is stored)
#
# The scope key comes from make_scope_key() so each account/session gets its
# own slot.
#
# Implementations:
#   - KeyringCredentialStore: the OS keyring via the 'keyring' library
#     (Secret Service, macOS Keychain, Windows Credential Locker, ...)
#   - MemoryCredentialStore: a plain dict, for tests and throwaway sessions
# =============================================================================

import logging
from typing import Protocol

import keyring
import keyring.errors

from inbox_sync.core.account import KEYRING_SERVICE

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Anything that can cache a token under a scope key."""

    def get(self, scope_key: str) -> str | None: ...

    def set(self, scope_key: str, token: str) -> None: ...

    def remove(self, scope_key: str) -> None: ...


class KeyringCredentialStore:
    """
    Stores tokens in the system keyring.

    Each token is saved as a "password" with the service name as the keyring
    service and the scope key as the username, so it can be managed with the
    keyring CLI:

        keyring get inbox-sync authorization-token.work
        keyring del inbox-sync authorization-token.work

    Attributes:
        service: Keyring service name. Defaults to "inbox-sync".
    """

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self.service = service

    def get(self, scope_key: str) -> str | None:
        token = keyring.get_password(self.service, scope_key)
        return token or None

    def set(self, scope_key: str, token: str) -> None:
        keyring.set_password(self.service, scope_key, token)
        logger.debug(f"Stored token for {scope_key} in keyring")

    def remove(self, scope_key: str) -> None:
        try:
            keyring.delete_password(self.service, scope_key)
            logger.debug(f"Removed token for {scope_key} from keyring")
        except keyring.errors.PasswordDeleteError:
            # Nothing stored - removal is idempotent
            pass


class MemoryCredentialStore:
    """Keeps tokens in a dict. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._tokens: dict[str, str] = dict(initial or {})

    def get(self, scope_key: str) -> str | None:
        return self._tokens.get(scope_key)

    def set(self, scope_key: str, token: str) -> None:
        self._tokens[scope_key] = token

    def remove(self, scope_key: str) -> None:
        self._tokens.pop(scope_key, None)

    def __contains__(self, scope_key: str) -> bool:
        return scope_key in self._tokens
