"""
Collaborators shared by the call manager and its sessions.
"""

from dataclasses import dataclass
from typing import Optional

from callrelay.config import Settings, settings as default_settings
from callrelay.i18n import Localizer
from callrelay.permissions import PermissionResolver
from callrelay.persistence import CallRepository
from callrelay.platform import Transport, get_transport
from callrelay.shard import ShardCoordinator, get_shard_coordinator


@dataclass
class CallServices:
    transport: Transport
    repository: CallRepository
    coordinator: ShardCoordinator
    permissions: PermissionResolver
    localizer: Localizer
    settings: Settings

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        repository: Optional[CallRepository] = None,
        coordinator: Optional[ShardCoordinator] = None,
    ) -> "CallServices":
        """Build the service bundle, filling gaps from settings."""
        settings = settings or default_settings
        transport = transport or get_transport(settings.transport_provider)
        return cls(
            transport=transport,
            repository=repository or CallRepository(),
            coordinator=coordinator or get_shard_coordinator(
                transport, shard_id=settings.shard_id, shard_count=settings.shard_count
            ),
            permissions=PermissionResolver(transport, settings),
            localizer=Localizer(settings.default_locale),
            settings=settings,
        )

    async def initialize(self):
        await self.transport.initialize()
        await self.coordinator.initialize()

    async def close(self):
        await self.coordinator.close()
        await self.transport.close()
