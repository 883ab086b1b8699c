# =============================================================================
# Account Model
# =============================================================================
# Identifies whose inbox we are looking at and where the server lives.
#
# IMPORTANT: Tokens are NOT stored here. They live in a credential store
# (the system keyring by default) under a key derived from the account name,
# so several accounts can be signed in at the same time without colliding.
# =============================================================================

from dataclasses import dataclass


# Service name under which tokens are filed in the system keyring
KEYRING_SERVICE = "inbox-sync"


def make_scope_key(identifier: str) -> str:
    """
    Derive the credential-store key for an account or session identifier.

    The same identifier always yields the same key, and different identifiers
    never share one.

    Example:
        >>> make_scope_key("alice")
        'authorization-token.alice'
    """
    if not identifier:
        raise ValueError("Account identifier must not be empty")
    return f"authorization-token.{identifier}"


@dataclass
class Account:
    """
    A notifications account.

    Attributes:
        name: Unique identifier for this account/session (e.g., "work").
              Used to namespace the cached token.
        url: Base URL of the notifications API
             (e.g., "https://example.com/notifications/").
    """

    name: str
    url: str = ""

    @property
    def scope_key(self) -> str:
        """Credential-store key for this account's token."""
        return make_scope_key(self.name)

    @property
    def keyring_service(self) -> str:
        """
        Service name used for keyring storage.

        Tokens can be inspected via the keyring CLI if needed:
            keyring get inbox-sync authorization-token.work
        """
        return KEYRING_SERVICE

    def __str__(self) -> str:
        return f"{self.name} <{self.url}>"
