"""
Factory for creating shard coordinator instances.
"""

from typing import Optional
from callrelay.config import settings
from callrelay.platform.base import Transport
from callrelay.shard.base import ShardCoordinator
from callrelay.shard.http import HttpShardCoordinator
from callrelay.shard.in_process import InProcessShardCoordinator
from callrelay.utils.logging import get_logger

logger = get_logger(__name__)


def get_shard_coordinator(
    transport: Transport,
    shard_id: Optional[int] = None,
    shard_count: Optional[int] = None,
    **kwargs
) -> ShardCoordinator:
    """
    Factory function to get a shard coordinator.

    A single shard, or a deployment without peer URLs, runs in-process.
    """
    shard_id = settings.shard_id if shard_id is None else shard_id
    shard_count = shard_count or settings.shard_count

    if shard_count > 1 and settings.shard_urls:
        logger.info("Creating HTTP shard coordinator", shard_id=shard_id, shard_count=shard_count)
        return HttpShardCoordinator(shard_id, shard_count, transport, **kwargs)

    logger.info("Creating in-process shard coordinator", shard_id=shard_id, shard_count=shard_count)
    return InProcessShardCoordinator(shard_id, shard_count, transport, **kwargs)
