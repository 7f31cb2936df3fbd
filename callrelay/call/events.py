"""
Inbound platform events routed to the call manager.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class Attachment(BaseModel):
    name: str
    url: str
    content_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return bool(self.content_type and self.content_type.startswith("image/"))


class InboundMessage(BaseModel):
    """A message created or edited in a channel."""
    id: str
    channel_id: str
    author_id: str
    author_tag: str
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    author_is_bot: bool = False
    # Author holds Manage Server in the guild the message was sent from
    author_manages_guild: bool = False


class MessageDeleted(BaseModel):
    id: str
    channel_id: str


class TypingStarted(BaseModel):
    channel_id: str
    user_id: str


class Interaction(BaseModel):
    """A button press or command in a call channel."""
    channel_id: str
    user_id: str
    message_id: Optional[str] = None


class CallRequest(BaseModel):
    """Dial request from a caller's channel."""
    from_number: str
    to_number: str
    started_by: str
    random: bool = False
