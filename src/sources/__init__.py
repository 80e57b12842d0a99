"""
Sources module - inbound connections to the game server.
"""

from sources.push_channel import ChannelMetrics, PushChannelClient

__all__ = [
    "ChannelMetrics",
    "PushChannelClient",
]
