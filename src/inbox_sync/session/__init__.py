# =============================================================================
# Session Module
# =============================================================================
# Authorization-token lifecycle:
#   - Credential stores (keyring, in-memory)
#   - SessionManager: authorize / logout / invalidate
# =============================================================================

from inbox_sync.session.credentials import (
    CredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
)
from inbox_sync.session.manager import (
    InvalidationListener,
    SessionManager,
    TokenAcquirer,
)

__all__ = [
    "CredentialStore",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    "SessionManager",
    "TokenAcquirer",
    "InvalidationListener",
]
