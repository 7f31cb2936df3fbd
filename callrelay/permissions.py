"""
Permission tiers, derived from the user's roles in the support guild.
"""

from collections import OrderedDict
from enum import IntEnum
from typing import Dict, Optional

from callrelay.config import Settings, settings as default_settings
from callrelay.platform.base import Transport, TransportError
from callrelay.utils.logging import LoggerMixin


class PermissionLevel(IntEnum):
    NONE = 0
    DONATOR = 1
    CONTRIBUTOR = 2
    CUSTOMER_SUPPORT = 3
    MANAGER = 4
    MAINTAINER = 5


# Highest tier first, so a member with several roles gets the best one
ROLE_PRECEDENCE = [
    ("maintainer", PermissionLevel.MAINTAINER),
    ("manager", PermissionLevel.MANAGER),
    ("customer_support", PermissionLevel.CUSTOMER_SUPPORT),
    ("contributor", PermissionLevel.CONTRIBUTOR),
    ("donator", PermissionLevel.DONATOR),
]


def phone_tag(level: PermissionLevel, manages_guild: bool, phones: Dict[str, str]) -> str:
    """Pick the prefix shown before a relayed message."""
    if level < PermissionLevel.CUSTOMER_SUPPORT and manages_guild:
        return phones.get("admin", phones.get("default", ""))
    if level == PermissionLevel.DONATOR:
        key = "donator"
    elif level == PermissionLevel.CONTRIBUTOR:
        key = "contributor"
    elif level >= PermissionLevel.CUSTOMER_SUPPORT:
        key = "support"
    else:
        key = "default"
    return phones.get(key, phones.get("default", ""))


class PermissionResolver(LoggerMixin):
    """
    Resolves a user's permission tier.

    Lookups are cached per process in a bounded cache that drops the oldest
    entries first.
    """

    def __init__(self, transport: Transport, settings: Optional[Settings] = None):
        self.transport = transport
        self.settings = settings or default_settings
        self.cache: "OrderedDict[str, PermissionLevel]" = OrderedDict()

    async def get_permission_level(self, user_id: str) -> PermissionLevel:
        if user_id in self.settings.maintainers:
            return PermissionLevel.MAINTAINER

        cached = self.cache.get(user_id)
        if cached is not None:
            self.cache.move_to_end(user_id)
            return cached

        try:
            level = await self._fetch_level(user_id)
        except TransportError as e:
            # Not cached, the next message retries the lookup
            self.log_error("fetch_member_roles", e, user_id=user_id)
            return PermissionLevel.NONE

        self.cache[user_id] = level
        while len(self.cache) > self.settings.perms_cache_size:
            self.cache.popitem(last=False)
        return level

    async def _fetch_level(self, user_id: str) -> PermissionLevel:
        guild_id = self.settings.support_guild_id
        if not guild_id:
            return PermissionLevel.NONE

        roles = await self.transport.fetch_member_roles(guild_id, user_id)
        if not roles:
            return PermissionLevel.NONE

        for tier, level in ROLE_PRECEDENCE:
            role_id = self.settings.support_roles.get(tier)
            if role_id and role_id in roles:
                return level
        return PermissionLevel.NONE
