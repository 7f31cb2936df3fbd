"""
Discord REST transport implementation.
"""

from typing import Any, List, Optional
import asyncio
import aiohttp
import time
from callrelay.platform.payload import MessagePayload
from callrelay.platform.base import Transport, TransportError, ChannelInfo
from callrelay.config import settings


class DiscordRestTransport(Transport):
    """Talks to the Discord HTTP API with a bot token."""

    def __init__(self, token: Optional[str] = None, **kwargs):
        super().__init__(token or settings.discord_token, **kwargs)
        self.base_url = kwargs.get("base_url", settings.discord_api_base).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=kwargs.get("timeout", settings.request_timeout))
        self.session: Optional[aiohttp.ClientSession] = None

    async def _initialize(self):
        """Open the HTTP session."""
        self.session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bot {self.token}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        if not self.session:
            await self.initialize()

        start_time = time.time()
        url = f"{self.base_url}{path}"
        try:
            async with self.session.request(method, url, json=json) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise TransportError(f"{method} {path} -> {response.status}: {detail[:200]}", status=response.status)
                if response.status == 204:
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        finally:
            self.log_latency("discord_request", start_time, method=method, path=path)

    async def send_message(self, channel_id: str, payload: MessagePayload) -> str:
        data = await self._request("POST", f"/channels/{channel_id}/messages", json=payload.to_dict())
        return str(data["id"])

    async def edit_message(self, channel_id: str, message_id: str, payload: MessagePayload) -> None:
        await self._request("PATCH", f"/channels/{channel_id}/messages/{message_id}", json=payload.to_dict())

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._request("DELETE", f"/channels/{channel_id}/messages/{message_id}")

    async def post_typing(self, channel_id: str) -> None:
        await self._request("POST", f"/channels/{channel_id}/typing")

    async def fetch_channel(self, channel_id: str) -> ChannelInfo:
        data = await self._request("GET", f"/channels/{channel_id}")
        return ChannelInfo(
            id=str(data["id"]),
            guild_id=str(data["guild_id"]) if data.get("guild_id") else None,
            type=int(data.get("type", 0)),
        )

    async def fetch_member_roles(self, guild_id: str, user_id: str) -> Optional[List[str]]:
        try:
            data = await self._request("GET", f"/guilds/{guild_id}/members/{user_id}")
        except TransportError as e:
            if e.not_found:
                return None
            raise
        return [str(role) for role in data.get("roles", [])]

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
        await super().close()
