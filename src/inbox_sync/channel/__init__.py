# =============================================================================
# Channel Module
# =============================================================================
# The push channel:
#   - PushTransport protocol and the Socket.IO implementation
#   - ChannelHandshake: token handshake and change-notice forwarding
# =============================================================================

from inbox_sync.channel.handshake import (
    ChangeSink,
    ChannelHandshake,
    ChannelState,
    EventNames,
)
from inbox_sync.channel.transport import (
    EventHandler,
    PushTransport,
    SocketIOTransport,
    socketio_endpoint,
)

__all__ = [
    "ChannelHandshake",
    "ChannelState",
    "ChangeSink",
    "EventNames",
    "PushTransport",
    "SocketIOTransport",
    "EventHandler",
    "socketio_endpoint",
]
