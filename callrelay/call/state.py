"""
Domain types shared by call sessions, the registry and the repository.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# End reasons recorded in ``ended.by`` besides a user id
MISSED = "missed"
NUMBER_LOST = "system - number lost"
SYSTEM = "system"


class CallState(str, Enum):
    """Lifecycle state of a call, derived from its fields."""
    DIALING = "dialing"
    RINGING = "ringing"
    CONNECTED = "connected"
    ENDED = "ended"


class CallSide(str, Enum):
    """Which endpoint of a call a shard is looking from."""
    FROM = "from"
    TO = "to"


@dataclass
class AtAndBy:
    at: datetime
    by: str

    def to_dict(self) -> Dict[str, str]:
        return {"at": self.at.isoformat(), "by": self.by}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtAndBy":
        at = data["at"]
        if isinstance(at, str):
            at = datetime.fromisoformat(at)
        return cls(at=at, by=str(data["by"]))


@dataclass
class HoldState:
    on_hold: bool = False
    holding_side: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"on_hold": self.on_hold, "holding_side": self.holding_side}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HoldState":
        return cls(on_hold=bool(data.get("on_hold")), holding_side=data.get("holding_side"))


@dataclass
class Endpoint:
    """One side of a call: a number and the channel it rings in."""
    number: str
    channel_id: str
    expiry: datetime
    guild_id: Optional[str] = None
    locale: str = "en-US"
    blocked: List[str] = field(default_factory=list)
    vip_expiry: Optional[datetime] = None
    vip_hidden: bool = False
    vip_name: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expiry < now

    def has_blocked(self, number: str) -> bool:
        return number in self.blocked

    def caller_display(self, now: datetime) -> str:
        """What the other side sees as the caller."""
        if self.vip_expiry and self.vip_expiry > now:
            if self.vip_name:
                return self.vip_name
            if self.vip_hidden:
                return "Hidden"
        return self.number


@dataclass
class RelayRecord:
    """A relayed message: the source id and where its copy landed."""
    original_message_id: str
    forwarded_message_id: str
    sender: str
    sent_at: datetime


@dataclass
class CallSnapshot:
    """A call as read back from the store."""
    id: str
    from_number: Optional[str]
    to_number: Optional[str]
    started: AtAndBy
    from_endpoint: Optional[Endpoint] = None
    to_endpoint: Optional[Endpoint] = None
    random_call: bool = False
    picked_up: Optional[AtAndBy] = None
    ended: Optional[AtAndBy] = None
    hold: HoldState = field(default_factory=HoldState)
    active: bool = True
    notification_message_id: Optional[str] = None

    @property
    def endpoints_present(self) -> bool:
        return self.from_endpoint is not None and self.to_endpoint is not None


def utcnow() -> datetime:
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.utcnow()
