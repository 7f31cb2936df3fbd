"""
Cross-shard coordination.
"""

from .base import ShardCoordinator, ShardInvocationError, shard_id_for_guild
from .in_process import InProcessShardCoordinator, ShardCluster
from .http import HttpShardCoordinator
from .factory import get_shard_coordinator

__all__ = [
    "ShardCoordinator",
    "ShardInvocationError",
    "shard_id_for_guild",
    "InProcessShardCoordinator",
    "ShardCluster",
    "HttpShardCoordinator",
    "get_shard_coordinator",
]
