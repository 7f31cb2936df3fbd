"""
Rendering of relayed messages and call notices.
"""

from typing import Any, Dict, List, Optional

from callrelay.call.events import InboundMessage
from callrelay.call.state import Endpoint
from callrelay.config import Settings
from callrelay.i18n import Localizer
from callrelay.permissions import PermissionLevel, phone_tag
from callrelay.platform.payload import MessagePayload

# Button styles understood by the platform
STYLE_PRIMARY = 1
STYLE_SECONDARY = 2


def build_embed(
    color: Optional[int] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    fields: Optional[List[Dict[str, Any]]] = None,
    footer: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Dict[str, Any]:
    embed: Dict[str, Any] = {}
    if color is not None:
        embed["color"] = color
    if title:
        embed["title"] = title
    if description:
        embed["description"] = description
    if fields:
        embed["fields"] = fields
    if footer:
        embed["footer"] = {"text": footer}
    if image_url:
        embed["image"] = {"url": image_url}
    return embed


def button(custom_id: str, label: str, style: int = STYLE_PRIMARY, emoji: Optional[str] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": 2, "custom_id": custom_id, "label": label, "style": style}
    if emoji:
        data["emoji"] = {"name": emoji}
    return data


def action_row(*buttons: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": 1, "components": list(buttons)}


def error_payload(localizer: Localizer, locale: str, key: str, settings: Settings, **params: Any) -> MessagePayload:
    text_key = key if key.startswith("errors.") else f"errors.{key}"
    return MessagePayload(embeds=[build_embed(
        color=settings.colors.get("error"),
        title=localizer.text_for(locale, "errors.title"),
        description=localizer.text_for(locale, text_key, **params),
    )])


def render_relay_content(
    message: InboundMessage,
    destination: Endpoint,
    level: PermissionLevel,
    settings: Settings,
    localizer: Localizer,
) -> MessagePayload:
    """
    Build the copy of a message shown on the other side of a call.

    The author label carries the raw user id when the destination is the
    support line. Images are inlined, other files become link embeds.
    """
    content = f"**{message.author_tag}"
    if destination.number == settings.support_number:
        content += f" ({message.author_id})"
    tag = phone_tag(level, message.author_manages_guild, settings.call_phones)
    content += f"** {tag} {message.content}"

    embeds: List[Dict[str, Any]] = []
    for attachment in message.attachments:
        if attachment.is_image:
            embeds.append(build_embed(image_url=attachment.url))
        else:
            embeds.append(build_embed(
                color=settings.colors.get("yellowbook"),
                description=f"File: **[{attachment.name}]({attachment.url})**",
                footer=localizer.text_for(destination.locale, "dontTrustStrangers"),
            ))

    return MessagePayload(
        content=content,
        embeds=embeds,
        # Relayed text must not ping anyone on the other side
        allowed_mentions={"parse": []},
    )
