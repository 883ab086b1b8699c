# =============================================================================
# API Module
# =============================================================================
# HTTP access to the notifications inbox (list, get, mark read, delete).
# Uses httpx for async requests.
# =============================================================================

from inbox_sync.api.client import NotificationsAPI

__all__ = ["NotificationsAPI"]
