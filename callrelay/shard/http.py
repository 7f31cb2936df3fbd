"""
Coordinator for shards running as separate processes, talking over HTTP.
"""

from typing import Any, Dict, Optional
import asyncio
import aiohttp
import time
from callrelay.config import settings
from callrelay.platform.base import Transport
from callrelay.shard.base import ShardCoordinator, ShardInvocationError


class HttpShardCoordinator(ShardCoordinator):
    """Posts procedures to the peer shard's /internal/invoke endpoint."""

    def __init__(
        self,
        shard_id: int,
        shard_count: int,
        transport: Transport,
        api_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(shard_id, shard_count, transport, **kwargs)
        self.api_key = api_key or settings.internal_api_key
        self.timeout = aiohttp.ClientTimeout(total=kwargs.get("timeout", settings.rpc_timeout))
        self.session: Optional[aiohttp.ClientSession] = None

    async def _initialize(self):
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[settings.api_key_header] = self.api_key
        self.session = aiohttp.ClientSession(headers=headers, timeout=self.timeout)

    async def _invoke_remote(self, shard_id: int, procedure: str, context: Dict[str, Any]) -> Any:
        base_url = settings.get_shard_url(shard_id)
        if not base_url:
            raise ShardInvocationError(f"No URL configured for shard {shard_id}", shard_id, procedure)
        if not self.session:
            await self.initialize()

        start_time = time.time()
        try:
            async with self.session.post(
                f"{base_url}/internal/invoke",
                json={"procedure": procedure, "context": context},
            ) as response:
                if response.status != 200:
                    raise ShardInvocationError(
                        f"Shard {shard_id} answered {response.status}", shard_id, procedure
                    )
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ShardInvocationError(f"Shard {shard_id} is unreachable: {e}", shard_id, procedure) from e
        finally:
            self.log_latency("shard_invoke", start_time, shard=shard_id, procedure=procedure)

        if not data.get("ok"):
            raise ShardInvocationError(data.get("error") or "Remote procedure failed", shard_id, procedure)
        return data.get("result")

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
        await super().close()
