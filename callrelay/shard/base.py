"""
Base interface for cross-shard coordination.

Shards share no memory. A coordinator finds which shard owns a channel and
runs named procedures on another shard. Delivery is at-most-once and never
retried; the database stays the source of truth.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional
from callrelay.platform.base import Transport, TransportError
from callrelay.utils.logging import LoggerMixin

Procedure = Callable[[Dict[str, Any]], Awaitable[Any]]


class ShardInvocationError(Exception):
    """A remote procedure could not be delivered or failed on the peer."""

    def __init__(self, message: str, shard_id: Optional[int] = None, procedure: Optional[str] = None):
        super().__init__(message)
        self.shard_id = shard_id
        self.procedure = procedure


def shard_id_for_guild(guild_id: str, shard_count: int) -> int:
    """Platform partitioning: guilds are spread over shards by snowflake timestamp."""
    return (int(guild_id) >> 22) % shard_count


class ShardCoordinator(ABC, LoggerMixin):
    """Abstract base class for shard coordinators."""

    def __init__(self, shard_id: int, shard_count: int, transport: Transport, **kwargs):
        """
        Initialize coordinator.

        Args:
            shard_id: Id of the shard this process runs
            shard_count: Total number of shards
            transport: Used to look up a channel's guild
            **kwargs: Additional coordinator-specific configuration
        """
        self.shard_id = shard_id
        self.shard_count = shard_count
        self.transport = transport
        self.config = kwargs
        self.procedures: Dict[str, Procedure] = {}
        self._initialized = False

    async def initialize(self):
        if not self._initialized:
            await self._initialize()
            self._initialized = True
            self.logger.info(f"{self.__class__.__name__} initialized", shard_id=self.shard_id)

    async def _initialize(self):
        pass

    def register(self, name: str, handler: Procedure):
        """Expose a procedure to other shards."""
        self.procedures[name] = handler

    def is_local(self, shard_id: Optional[int]) -> bool:
        return shard_id == self.shard_id

    async def resolve_shard_for(self, channel_id: str) -> Optional[int]:
        """
        Find the shard owning a channel.

        Returns:
            The owning shard id (possibly this one), or None when the channel
            cannot be resolved
        """
        if self.shard_count == 1:
            return self.shard_id

        try:
            channel = await self.transport.fetch_channel(channel_id)
        except TransportError as e:
            self.logger.warning("Could not resolve shard for channel", channel_id=channel_id, error=str(e))
            return None

        # Direct-message channels are handled by shard 0
        if not channel.guild_id:
            return 0
        return shard_id_for_guild(channel.guild_id, self.shard_count)

    async def handle_invocation(self, procedure: str, context: Dict[str, Any]) -> Any:
        """Run a procedure requested by another shard."""
        handler = self.procedures.get(procedure)
        if handler is None:
            raise ShardInvocationError(f"Unknown procedure {procedure}", self.shard_id, procedure)
        return await handler(context)

    async def invoke_on_shard(self, shard_id: int, procedure: str, context: Dict[str, Any]) -> Any:
        """
        Run a procedure on a shard.

        Raises:
            ShardInvocationError: The shard is unreachable or the procedure failed
        """
        if self.is_local(shard_id):
            try:
                return await self.handle_invocation(procedure, context)
            except ShardInvocationError:
                raise
            except Exception as e:
                raise ShardInvocationError(str(e), shard_id, procedure) from e

        return await self._invoke_remote(shard_id, procedure, context)

    @abstractmethod
    async def _invoke_remote(self, shard_id: int, procedure: str, context: Dict[str, Any]) -> Any:
        pass

    async def close(self):
        self._initialized = False
