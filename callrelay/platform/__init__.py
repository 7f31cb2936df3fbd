"""
Platform transport implementations.
"""

from .base import Transport, TransportError, ChannelInfo
from .payload import MessagePayload
from .factory import get_transport

__all__ = ["Transport", "TransportError", "ChannelInfo", "MessagePayload", "get_transport"]
