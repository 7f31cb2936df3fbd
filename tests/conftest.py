"""
Shared fixtures: a file-backed SQLite store, a recording transport and a
two-shard in-process cluster.
"""

import pytest
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from callrelay.call.manager import CallManager
from callrelay.call.services import CallServices
from callrelay.config import Settings
from callrelay.i18n import Localizer
from callrelay.models import Guild, Mailbox, Number
from callrelay.models.database import create_engine_for, create_session_factory, init_database
from callrelay.permissions import PermissionResolver
from callrelay.persistence import CallRepository
from callrelay.platform.base import ChannelInfo, Transport, TransportError
from callrelay.platform.payload import MessagePayload
from callrelay.shard import InProcessShardCoordinator, ShardCluster

# Guild snowflakes that land on shard 0 and shard 1 of a two-shard cluster
GUILD_SHARD_0 = str((1000 << 22) | 7)
GUILD_SHARD_1 = str((1001 << 22) | 7)

CALLER = "03010000001"
CALLEE = "03010000002"
REMOTE = "03010000003"
EXPIRED = "03010000004"
BLOCKER = "03010000005"
OTHER = "03010000006"
SUPPORT = "08007877678"

CHANNELS = {
    CALLER: ("100", GUILD_SHARD_0),
    CALLEE: ("200", GUILD_SHARD_0),
    REMOTE: ("300", GUILD_SHARD_1),
    EXPIRED: ("400", GUILD_SHARD_0),
    BLOCKER: ("500", GUILD_SHARD_0),
    OTHER: ("600", GUILD_SHARD_0),
    SUPPORT: ("611", GUILD_SHARD_0),
}

DONATOR_ROLE = "role-donator"
SUPPORT_ROLE = "role-support"


@dataclass
class SentMessage:
    channel_id: str
    payload: MessagePayload
    message_id: str


class MockTransport(Transport):
    """Records everything the service sends instead of calling the platform."""

    def __init__(self, channels: Optional[Dict[str, Optional[str]]] = None, **kwargs):
        super().__init__(token="test-token", **kwargs)
        self.channels = dict(channels or {})
        self.roles: Dict[str, List[str]] = {}
        self.sent: List[SentMessage] = []
        self.edited: List[SentMessage] = []
        self.deleted: List[tuple] = []
        self.typing: List[str] = []

        self.fail_channels = set()
        self.fail_edits = False
        self.fail_deletes = False
        self.fail_roles = False
        self.role_lookups = 0
        self._next_id = 9000

    async def _initialize(self):
        pass

    async def send_message(self, channel_id, payload):
        if channel_id in self.fail_channels:
            raise TransportError("Missing Access", status=403)
        self._next_id += 1
        message_id = str(self._next_id)
        self.sent.append(SentMessage(channel_id, payload, message_id))
        return message_id

    async def edit_message(self, channel_id, message_id, payload):
        if self.fail_edits:
            raise TransportError("Unknown Message", status=404)
        self.edited.append(SentMessage(channel_id, payload, message_id))

    async def delete_message(self, channel_id, message_id):
        if self.fail_deletes:
            raise TransportError("Unknown Message", status=404)
        self.deleted.append((channel_id, message_id))

    async def post_typing(self, channel_id):
        self.typing.append(channel_id)

    async def fetch_channel(self, channel_id):
        if channel_id not in self.channels:
            raise TransportError("Unknown Channel", status=404)
        return ChannelInfo(id=channel_id, guild_id=self.channels[channel_id])

    async def fetch_member_roles(self, guild_id, user_id):
        self.role_lookups += 1
        if self.fail_roles:
            raise TransportError("Service Unavailable", status=503)
        return self.roles.get(user_id)

    def sent_to(self, channel_id: str) -> List[SentMessage]:
        return [m for m in self.sent if m.channel_id == channel_id]


def embed_texts(message: SentMessage) -> str:
    """Flatten a sent message's embeds for substring checks."""
    parts = []
    for embed in message.payload.embeds or []:
        parts.append(embed.get("title", ""))
        parts.append(embed.get("description", ""))
        for field in embed.get("fields", []):
            parts.append(field["name"])
            parts.append(field["value"])
    return "\n".join(parts)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        ring_timeout_seconds=120,
        support_guild_id="support-guild",
        support_roles={"donator": DONATOR_ROLE, "customer_support": SUPPORT_ROLE},
        maintainers=["maintainer-1"],
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite:///{tmp_path}/calls.db")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    return CallRepository(session_factory)


@pytest.fixture
async def seeded(session_factory):
    """Numbers used across the tests, all valid for a year unless noted."""
    now = datetime.utcnow()
    async with session_factory() as session:
        session.add_all([
            Guild(id=GUILD_SHARD_0, locale="en-US"),
            Guild(id=GUILD_SHARD_1, locale="en-US"),
        ])
        for number, (channel_id, guild_id) in CHANNELS.items():
            session.add(Number(
                number=number,
                channel_id=channel_id,
                guild_id=guild_id,
                expiry=now - timedelta(days=1) if number == EXPIRED else now + timedelta(days=365),
                blocked=[CALLER] if number == BLOCKER else [],
            ))
        session.add(Mailbox(number=CALLEE, autoreply="Leave a message after the tone", receiving=True, messages=[]))
        await session.commit()


@pytest.fixture
def transport():
    return MockTransport({channel_id: guild_id for channel_id, guild_id in CHANNELS.values()})


@pytest.fixture
def cluster():
    return ShardCluster()


@pytest.fixture
async def make_manager(transport, repository, cluster, test_settings, seeded):
    """Build a started CallManager for a shard of the two-shard cluster."""
    managers = []

    async def factory(shard_id: int = 0, shard_count: int = 2, rebuild: bool = False) -> CallManager:
        coordinator = InProcessShardCoordinator(shard_id, shard_count, transport, cluster=cluster)
        services = CallServices(
            transport=transport,
            repository=repository,
            coordinator=coordinator,
            permissions=PermissionResolver(transport, test_settings),
            localizer=Localizer(test_settings.default_locale),
            settings=test_settings,
        )
        manager = CallManager(services)
        await manager.start(rebuild=rebuild)
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        await manager.stop()


@pytest.fixture
async def shard0(make_manager):
    return await make_manager(0)


@pytest.fixture
async def shard1(make_manager):
    return await make_manager(1)
