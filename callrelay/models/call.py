"""
Database models for calls and their relayed messages.
"""

from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from typing import Dict, Any
from callrelay.models.database import Base


class Call(Base):
    """A call between two numbers. Kept after the call ends for history."""

    __tablename__ = "calls"

    id = Column(String(36), primary_key=True)

    # Endpoints; the referenced number can disappear while the call is live
    from_number = Column(String(11), ForeignKey("numbers.number", ondelete="SET NULL"), nullable=True, index=True)
    to_number = Column(String(11), ForeignKey("numbers.number", ondelete="SET NULL"), nullable=True, index=True)
    random_call = Column(Boolean, default=False)

    # Lifecycle
    started_at = Column(DateTime, nullable=False)
    started_by = Column(String(32), nullable=False)
    picked_up_at = Column(DateTime, nullable=True)
    picked_up_by = Column(String(32), nullable=True)
    ended_at = Column(DateTime, nullable=True)
    ended_by = Column(String(64), nullable=True)
    active = Column(Boolean, default=True, nullable=False, index=True)

    # Hold state
    hold_on = Column(Boolean, default=False, nullable=False)
    holding_side = Column(String(32), nullable=True)

    notification_message_id = Column(String(32), nullable=True)

    # Metadata
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    from_endpoint = relationship("Number", foreign_keys=[from_number], lazy="joined")
    to_endpoint = relationship("Number", foreign_keys=[to_number], lazy="joined")

    def __repr__(self):
        return f"<Call(id={self.id}, from={self.from_number}, to={self.to_number}, active={self.active})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "from_number": self.from_number,
            "to_number": self.to_number,
            "random_call": self.random_call,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "started_by": self.started_by,
            "picked_up_at": self.picked_up_at.isoformat() if self.picked_up_at else None,
            "picked_up_by": self.picked_up_by,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "ended_by": self.ended_by,
            "active": self.active,
            "hold_on": self.hold_on,
            "holding_side": self.holding_side,
            "notification_message_id": self.notification_message_id,
        }


class CallMessage(Base):
    """Correlates a message sent in one channel with its forwarded copy."""

    __tablename__ = "call_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    call_id = Column(String(36), ForeignKey("calls.id", ondelete="CASCADE"), nullable=False, index=True)

    original_message_id = Column(String(32), nullable=False, index=True)
    forwarded_message_id = Column(String(32), nullable=False)
    sender = Column(String(32), nullable=False)
    sent_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<CallMessage(call_id={self.call_id}, original={self.original_message_id})>"
