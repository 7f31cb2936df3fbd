"""
Coordinator for shards living in the same process.
"""

import json
from typing import Any, Dict, Optional
from callrelay.platform.base import Transport
from callrelay.shard.base import ShardCoordinator, ShardInvocationError


class ShardCluster:
    """Directory of in-process coordinators by shard id."""

    def __init__(self):
        self.members: Dict[int, "InProcessShardCoordinator"] = {}

    def join(self, coordinator: "InProcessShardCoordinator"):
        self.members[coordinator.shard_id] = coordinator

    def leave(self, shard_id: int):
        self.members.pop(shard_id, None)

    def get(self, shard_id: int) -> Optional["InProcessShardCoordinator"]:
        return self.members.get(shard_id)


class InProcessShardCoordinator(ShardCoordinator):
    """
    Routes procedures to sibling shards through a shared ShardCluster.

    Contexts are passed through a JSON round trip so they behave exactly as
    they would over HTTP.
    """

    def __init__(
        self,
        shard_id: int = 0,
        shard_count: int = 1,
        transport: Optional[Transport] = None,
        cluster: Optional[ShardCluster] = None,
        **kwargs
    ):
        super().__init__(shard_id, shard_count, transport, **kwargs)
        self.cluster = cluster or ShardCluster()
        self.cluster.join(self)

    async def _invoke_remote(self, shard_id: int, procedure: str, context: Dict[str, Any]) -> Any:
        peer = self.cluster.get(shard_id)
        if peer is None:
            raise ShardInvocationError(f"Shard {shard_id} is unreachable", shard_id, procedure)

        try:
            result = await peer.handle_invocation(procedure, json.loads(json.dumps(context)))
        except ShardInvocationError:
            raise
        except Exception as e:
            raise ShardInvocationError(str(e), shard_id, procedure) from e
        return json.loads(json.dumps(result))

    async def close(self):
        self.cluster.leave(self.shard_id)
        await super().close()
