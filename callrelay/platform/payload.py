"""
Outbound message bodies.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass
class MessagePayload:
    """
    Outbound message body.

    Fields left as None are not sent, so an edit only touches what is set.
    """
    content: Optional[str] = None
    embeds: Optional[List[dict]] = None
    components: Optional[List[dict]] = None
    reply_to: Optional[str] = None
    fail_if_reference_missing: bool = True
    allowed_mentions: Optional[dict] = None

    def to_dict(self) -> dict:
        body: dict = {}
        if self.content is not None:
            body["content"] = self.content
        if self.embeds is not None:
            body["embeds"] = self.embeds
        if self.components is not None:
            body["components"] = self.components
        if self.allowed_mentions is not None:
            body["allowed_mentions"] = self.allowed_mentions
        if self.reply_to:
            body["message_reference"] = {
                "message_id": self.reply_to,
                "fail_if_not_exists": self.fail_if_reference_missing,
            }
        return body
