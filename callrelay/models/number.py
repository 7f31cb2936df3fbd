"""
Database models for numbers (call endpoints), their guilds and mailboxes.
"""

from sqlalchemy import Column, String, DateTime, Boolean, JSON, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from typing import Dict, Any
from callrelay.models.database import Base


class Guild(Base):
    """A guild (server) owning one or more numbers."""

    __tablename__ = "guilds"

    id = Column(String(32), primary_key=True)
    locale = Column(String(10), nullable=False, default="en-US")

    def __repr__(self):
        return f"<Guild(id={self.id}, locale={self.locale})>"


class Number(Base):
    """A dialable number bound to one channel."""

    __tablename__ = "numbers"

    number = Column(String(11), primary_key=True)
    channel_id = Column(String(32), unique=True, index=True, nullable=False)
    # Null for numbers living in a direct-message channel
    guild_id = Column(String(32), ForeignKey("guilds.id"), nullable=True)

    expiry = Column(DateTime, nullable=False)
    blocked = Column(JSON, nullable=False, default=list)

    vip_expiry = Column(DateTime, nullable=True)
    vip_hidden = Column(Boolean, default=False)
    vip_name = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    guild = relationship("Guild", lazy="joined")

    def __repr__(self):
        return f"<Number(number={self.number}, channel_id={self.channel_id})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "number": self.number,
            "channel_id": self.channel_id,
            "guild_id": self.guild_id,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "blocked": list(self.blocked or []),
            "vip_expiry": self.vip_expiry.isoformat() if self.vip_expiry else None,
            "vip_hidden": self.vip_hidden,
            "vip_name": self.vip_name,
        }


class Mailbox(Base):
    """Answering machine attached to a number."""

    __tablename__ = "mailboxes"

    number = Column(String(11), primary_key=True)
    autoreply = Column(Text, nullable=False, default="")
    receiving = Column(Boolean, default=True)
    messages = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<Mailbox(number={self.number}, messages={len(self.messages or [])})>"
