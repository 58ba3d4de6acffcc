"""
Event types for the warelay message pipeline.

InboundMessage is a closed variant over content kind: each content class
carries only the fields that make sense for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Union

from warelay.utils.phone import is_group_id, is_status_id, phone_from_id


# ---------------------------------------------------------------------
# Content variants
# ---------------------------------------------------------------------

MediaKind = Literal["image", "video", "audio", "voice", "sticker", "document"]


@dataclass(frozen=True, slots=True)
class TextContent:
    body: str

    kind: Literal["text"] = "text"


@dataclass(frozen=True, slots=True)
class LocationContent:
    """Static or live location share."""

    latitude: float
    longitude: float

    accuracy: float | None = None
    name: str | None = None
    address: str | None = None
    comment: str | None = None
    live: bool = False

    @property
    def kind(self) -> str:
        return "live_location" if self.live else "location"

    @property
    def map_url(self) -> str:
        return f"https://maps.google.com/?q={self.latitude},{self.longitude}"


@dataclass(frozen=True, slots=True)
class MediaContent:
    """
    Media attachment reference.

    The bytes are not carried here: they are fetched on demand through
    the session's download_media().
    """

    kind: MediaKind
    caption: str | None = None
    mimetype: str | None = None
    filename: str | None = None
    size: int | None = None


@dataclass(frozen=True, slots=True)
class SystemContent:
    """Notifications, status broadcasts, revoked messages and the like."""

    event: str = "notification"
    body: str | None = None

    kind: Literal["system"] = "system"


Content = Union[TextContent, LocationContent, MediaContent, SystemContent]


# ---------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class InboundMessage:
    """
    Message received from the WhatsApp session.
    """

    id: str                   # Globally unique message id
    sender_id: str            # Chat the message arrived in (person or group)
    content: Content

    author_id: str | None = None      # Group participant, None for 1:1 chats
    sender_name: str | None = None    # Push name as seen by the session
    quoted_id: str | None = None      # Id of the message this one replies to
    from_group: bool = False

    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    # -----------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self.content.kind

    @property
    def is_group(self) -> bool:
        return self.from_group or is_group_id(self.sender_id)

    @property
    def is_system(self) -> bool:
        return isinstance(self.content, SystemContent) or is_status_id(self.sender_id)

    @property
    def has_quote(self) -> bool:
        return bool(self.quoted_id)

    @property
    def text(self) -> str:
        """Text body, or the caption for media and location messages."""
        content = self.content
        if isinstance(content, TextContent):
            return content.body
        if isinstance(content, MediaContent):
            return content.caption or ""
        if isinstance(content, LocationContent):
            return content.comment or ""
        return ""

    @property
    def sender_number(self) -> str:
        return phone_from_id(self.author_id or self.sender_id)


# ---------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MediaPayload:
    """Downloaded or generated media, ready to send."""

    data: bytes
    mimetype: str
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class SendOptions:
    caption: str | None = None
    quoted_message_id: str | None = None
    send_as_sticker: bool = False
    send_as_voice: bool = False
    send_as_document: bool = False


@dataclass(frozen=True, slots=True)
class SentMessage:
    """Handle returned by the session after a successful send."""

    id: str
    chat_id: str


@dataclass(frozen=True, slots=True)
class ChatSummary:
    id: str
    name: str | None = None
    is_group: bool = False
    timestamp: int | None = None
    participants: int | None = None
