"""
Configuration module for the call relay service.
Centralizes all environment variables and configuration settings.
"""

from typing import Optional, List, Dict
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, ValidationInfo
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class TransportProvider(str, Enum):
    DISCORD = "discord"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # Database Configuration
    database_url: str = Field(default="sqlite:///./callrelay.db")
    connection_pool_size: int = Field(default=20)

    # Platform Transport Configuration
    transport_provider: TransportProvider = Field(default=TransportProvider.DISCORD)
    discord_token: Optional[str] = Field(default=None)
    discord_api_base: str = Field(default="https://discord.com/api/v10")
    request_timeout: int = Field(default=15)

    # Sharding Configuration
    shard_count: int = Field(default=1)
    shard_id: int = Field(default=0)
    # Base URL of every shard process, indexed by shard id
    shard_urls: List[str] = Field(default_factory=list)
    internal_api_key: Optional[str] = Field(default=None)
    api_key_header: str = Field(default="X-API-Key")
    rpc_timeout: float = Field(default=5.0)

    # Call Configuration
    ring_timeout_seconds: float = Field(default=120.0)
    alias_numbers: Dict[str, str] = Field(default_factory=lambda: {"*611": "08007877678"})
    support_number: str = Field(default="08007877678")
    support_role_id: Optional[str] = Field(default=None)
    mailbox_limit: int = Field(default=25)
    suppress_relay_on_hold: bool = Field(default=False)
    default_locale: str = Field(default="en-US")

    # Permissions
    maintainers: List[str] = Field(default_factory=list)
    support_guild_id: Optional[str] = Field(default=None)
    # Role id per permission tier in the support guild
    support_roles: Dict[str, str] = Field(default_factory=dict)
    perms_cache_size: int = Field(default=200)
    call_phones: Dict[str, str] = Field(
        default_factory=lambda: {
            "default": "📞",
            "donator": "💸",
            "support": "☎️",
            "contributor": "🛠️",
            "admin": "📠",
        }
    )

    # Presentation
    colors: Dict[str, int] = Field(
        default_factory=lambda: {
            "info": 0x3498DB,
            "success": 0x2ECC71,
            "error": 0xE74C3C,
            "yellowbook": 0xFFFF00,
        }
    )

    # Monitoring
    log_conversation_content: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("shard_count")
    @classmethod
    def validate_shard_count(cls, v):
        if v < 1:
            raise ValueError("Shard count must be at least 1")
        return v

    @field_validator("shard_id")
    @classmethod
    def validate_shard_id(cls, v, info: ValidationInfo):
        shard_count = info.data.get("shard_count", 1)
        if not 0 <= v < shard_count:
            raise ValueError(f"Shard id must be between 0 and {shard_count - 1}")
        return v

    @field_validator("ring_timeout_seconds")
    @classmethod
    def validate_ring_timeout(cls, v):
        if v <= 0:
            raise ValueError("Ring timeout must be positive")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v, info: ValidationInfo):
        """Ensure database URL is properly formatted."""
        if info.data.get("environment") == Environment.PRODUCTION and v.startswith("sqlite"):
            raise ValueError("SQLite should not be used in production")
        return v

    def get_shard_url(self, shard_id: int) -> Optional[str]:
        """Get the base URL of a shard process."""
        if 0 <= shard_id < len(self.shard_urls):
            return self.shard_urls[shard_id].rstrip("/")
        return None

    def resolve_alias(self, number: str) -> str:
        """Map an alias (e.g. *611) to the number it stands for."""
        return self.alias_numbers.get(number, number)


# Global settings instance
settings = Settings()
