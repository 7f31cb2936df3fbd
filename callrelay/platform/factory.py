"""
Factory for creating transport instances.
"""

from typing import Optional
from callrelay.config import settings, TransportProvider as TransportProviderEnum
from callrelay.platform.base import Transport
from callrelay.platform.discord_rest import DiscordRestTransport
from callrelay.utils.logging import get_logger

logger = get_logger(__name__)


def get_transport(
    provider_type: Optional[TransportProviderEnum] = None,
    **kwargs
) -> Transport:
    """
    Factory function to get a transport instance.

    Args:
        provider_type: Type of transport to create
        **kwargs: Additional configuration for the transport

    Returns:
        Transport instance

    Raises:
        ValueError: If transport type is not supported
    """
    provider_type = provider_type or settings.transport_provider

    logger.info(f"Creating transport: {provider_type}")

    if provider_type == TransportProviderEnum.DISCORD:
        return DiscordRestTransport(**kwargs)
    else:
        raise ValueError(f"Unsupported transport: {provider_type}")
