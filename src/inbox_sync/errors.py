# =============================================================================
# Error Taxonomy
# =============================================================================
# Every failure surfaced to callers derives from InboxSyncError, so a UI can
# catch the family and then branch on the concrete type:
#
#   - AuthAcquisitionFailed: the credential callback failed -> show the error
#   - AuthRejected:          the token was refused -> re-prompt for login
#   - TransportError:        network/server trouble -> retry later
#   - NotFound:              the id is unknown to the server -> ignore/refresh
#
# Only AuthRejected has a local side effect (credential invalidation), which
# is performed before the error is raised.
# =============================================================================


class InboxSyncError(Exception):
    """Base class for all inbox-sync errors."""
    pass


class AuthAcquisitionFailed(InboxSyncError):
    """Raised when the credential-acquisition callback fails."""
    pass


class AuthRejected(InboxSyncError):
    """
    Raised when the server refuses the authorization token.

    By the time this is raised the cached token has already been cleared,
    so the next authorize() call will acquire a fresh one.
    """
    pass


class TransportError(InboxSyncError):
    """Raised on network, channel, or unexpected server failures."""
    pass


class RequestFailed(TransportError):
    """
    Raised when the API answers with an unexpected error status.

    Attributes:
        status_code: The HTTP status returned by the server.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(TransportError):
    """Raised when a response body does not match the expected envelope."""
    pass


class NotFound(InboxSyncError):
    """Raised when a request references a notification the server doesn't know."""
    pass
