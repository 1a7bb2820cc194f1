"""Acquisition channels, in the order the harvester tries them."""

from xharvest.channels.base import Channel, ChannelResult
from xharvest.channels.api import ApiChannel
from xharvest.channels.session import SessionChannel
from xharvest.channels.mirror import MirrorChannel
from xharvest.channels.feed import FeedChannel

__all__ = [
    "Channel",
    "ChannelResult",
    "ApiChannel",
    "SessionChannel",
    "MirrorChannel",
    "FeedChannel",
]
