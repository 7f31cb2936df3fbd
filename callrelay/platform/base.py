"""
Base interface for platform transports.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
from callrelay.platform.payload import MessagePayload
from callrelay.utils.logging import LoggerMixin


class TransportError(Exception):
    """A platform call failed: unreachable, forbidden or not found."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404


@dataclass
class ChannelInfo:
    """What the transport knows about a channel."""
    id: str
    guild_id: Optional[str] = None
    type: int = 0


class Transport(ABC, LoggerMixin):
    """Abstract base class for platform transports."""

    def __init__(self, token: Optional[str] = None, **kwargs):
        """
        Initialize transport.

        Args:
            token: Bot token for the platform
            **kwargs: Additional transport-specific configuration
        """
        self.token = token
        self.config = kwargs
        self._initialized = False

    async def initialize(self):
        """Initialize the transport (e.g., open HTTP sessions)."""
        if not self._initialized:
            await self._initialize()
            self._initialized = True
            self.logger.info(f"{self.__class__.__name__} initialized")

    @abstractmethod
    async def _initialize(self):
        """Transport-specific initialization logic."""
        pass

    @abstractmethod
    async def send_message(self, channel_id: str, payload: MessagePayload) -> str:
        """
        Send a message to a channel.

        Returns:
            The id of the created message
        """
        pass

    @abstractmethod
    async def edit_message(self, channel_id: str, message_id: str, payload: MessagePayload) -> None:
        pass

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None:
        pass

    @abstractmethod
    async def post_typing(self, channel_id: str) -> None:
        pass

    @abstractmethod
    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        pass

    @abstractmethod
    async def fetch_member_roles(self, guild_id: str, user_id: str) -> Optional[List[str]]:
        """
        Get the role ids of a guild member.

        Returns:
            Role ids, or None when the user is not a member
        """
        pass

    async def close(self):
        """Clean up resources."""
        self._initialized = False
        self.logger.info(f"{self.__class__.__name__} closed")
