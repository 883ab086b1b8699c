# =============================================================================
# Notification Model
# =============================================================================
# A single inbox entry as returned by the notifications API:
#
#   {"id": "...", "message": "...", "type": "...", "time": "...",
#    "read": false, "context": {...}}
#
# Only the envelope is validated here. The contents of `message` and
# `context` are opaque to this library and passed through untouched.
#
# Everything except `read` is immutable once received. `read` flips from
# False to True at most once, and re-applying it is harmless.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from inbox_sync.errors import MalformedResponse


@dataclass
class Notification:
    """
    Represents one notification in the user's inbox.

    Attributes:
        id: Stable, unique identifier assigned by the server.
        message: Human-readable text of the notification.
        type: Category tag (e.g., "info", "payment", "security").
        time: Timestamp as sent by the server (usually ISO-8601).
        read: Whether the notification has been marked as read.
        context: Optional opaque payload attached by the sender.

    Example:
        >>> n = Notification.from_dict({"id": "n1", "message": "Hi"})
        >>> n.read
        False
    """

    id: str
    message: str = ""
    type: str = ""
    time: str = ""
    read: bool = False
    context: dict[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> "Notification":
        """
        Build a Notification from a decoded JSON object.

        Raises:
            MalformedResponse: If `data` is not an object or lacks a usable id.
        """
        if not isinstance(data, dict):
            raise MalformedResponse(f"Expected a notification object, got {type(data).__name__}")

        notification_id = data.get("id")
        if not isinstance(notification_id, str) or not notification_id:
            raise MalformedResponse(f"Notification without a valid id: {data!r}")

        context = data.get("context")
        return cls(
            id=notification_id,
            message=str(data.get("message") or ""),
            type=str(data.get("type") or ""),
            time=str(data.get("time") or ""),
            read=data.get("read") is True,
            context=context if isinstance(context, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the wire representation."""
        data: dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "type": self.type,
            "time": self.time,
            "read": self.read,
        }
        if self.context is not None:
            data["context"] = self.context
        return data

    @property
    def timestamp(self) -> datetime | None:
        """The `time` field parsed as ISO-8601, or None if it can't be parsed."""
        if not self.time:
            return None
        try:
            return datetime.fromisoformat(self.time)
        except ValueError:
            return None

    def mark_read(self) -> None:
        """Mark as read. Safe to call repeatedly."""
        self.read = True

    def __str__(self) -> str:
        marker = " " if self.read else "*"
        return f"{marker} [{self.type or '-'}] {self.message}"
