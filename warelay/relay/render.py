"""
Text rendering for operator-channel messages.

Everything user-controlled passes through `clean()` before it is placed
into an outbound message.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

from warelay.bus.events import InboundMessage, LocationContent
from warelay.utils.phone import is_group_id, phone_from_id, wa_link


PLACEHOLDER: Final[str] = "-"

_ZERO_WIDTH = re.compile("[\u200b-\u200f\u2028-\u202e\u2060-\u2064\ufeff]")

KIND_LABELS: Final[dict[str, str]] = {
    "text": "Text",
    "location": "Location",
    "live_location": "Live location",
    "image": "Image",
    "video": "Video",
    "audio": "Audio",
    "voice": "Voice note",
    "sticker": "Sticker",
    "document": "Document",
    "system": "System",
}


# ===========================
# Sanitization
# ===========================

def strip_invisible(text: str | None) -> str:
    """Drop control characters (except newline and tab) and zero-width marks."""
    if not text:
        return ""
    text = _ZERO_WIDTH.sub("", text)
    return "".join(
        ch for ch in text
        if ch in "\n\t" or unicodedata.category(ch) != "Cc"
    )


def clean(text: str | None, placeholder: str = PLACEHOLDER) -> str:
    """Sanitize text for an outbound message, with a placeholder for blanks."""
    cleaned = strip_invisible(text).strip()
    return cleaned or placeholder


# ===========================
# Identity
# ===========================

def identity_lines(msg: InboundMessage) -> list[str]:
    number = phone_from_id(msg.author_id or msg.sender_id)
    lines = [
        f"*From:* {clean(msg.sender_name)}",
        f"*Number:* {clean(number)}",
    ]
    if is_group_id(msg.sender_id):
        lines.append(f"*Group:* {msg.sender_id}")
    else:
        lines.append(f"*Chat:* {wa_link(msg.sender_id)}")
    return lines


def kind_label(kind: str) -> str:
    return KIND_LABELS.get(kind, kind.replace("_", " ").capitalize())


# ===========================
# Forwarded blocks
# ===========================

def text_block(msg: InboundMessage) -> str:
    return "\n".join([
        "📩 *New message*",
        *identity_lines(msg),
        "",
        clean(msg.text),
    ])


def location_lines(loc: LocationContent) -> list[str]:
    lines = [f"*Coordinates:* {loc.latitude:.6f}, {loc.longitude:.6f}"]
    if loc.accuracy is not None:
        lines.append(f"*Accuracy:* ±{loc.accuracy:.0f} m")
    if loc.name:
        lines.append(f"*Place:* {clean(loc.name)}")
    if loc.address:
        lines.append(f"*Address:* {clean(loc.address)}")
    if loc.comment:
        lines.append(f"*Note:* {clean(loc.comment)}")
    lines.append(f"*Map:* {loc.map_url}")
    return lines


def location_block(msg: InboundMessage, loc: LocationContent, update: bool = False) -> str:
    if update:
        title = "🔄 *Live location update*"
    elif loc.live:
        title = "📡 *Live location*"
    else:
        title = "📍 *Location*"

    return "\n".join([title, *identity_lines(msg), "", *location_lines(loc)])


def media_header(msg: InboundMessage) -> str:
    """Separate header for kinds that cannot carry a caption."""
    return "\n".join([f"📎 *{kind_label(msg.kind)}*", *identity_lines(msg)])


def media_caption(msg: InboundMessage, max_inline: int) -> tuple[str, str | None]:
    """
    Caption for image, video and document sends.

    Returns (caption, overflow): an original caption longer than
    `max_inline` is left out of the caption and returned as overflow.
    """
    original = strip_invisible(msg.text).strip()
    lines = [f"📎 *{kind_label(msg.kind)}*", *identity_lines(msg)]

    if not original:
        return "\n".join(lines), None

    if len(original) <= max_inline:
        return "\n".join([*lines, "", original]), None

    lines.extend(["", "_(caption sent separately)_"])
    return "\n".join(lines), original


def overflow_block(msg: InboundMessage, text: str) -> str:
    return "\n".join([
        f"📝 *{kind_label(msg.kind)} caption*",
        f"*From:* {clean(msg.sender_name)}",
        "",
        text,
    ])


# ===========================
# Command output
# ===========================

def outgoing_mirror(target: str, text: str) -> str:
    destination = target if is_group_id(target) else wa_link(target)
    return "\n".join([
        "📤 *Outgoing message*",
        f"*To:* {destination}",
        "",
        clean(text),
    ])


def location_reply(loc: LocationContent) -> str:
    title = "📡 *Live location*" if loc.live else "📍 *Location*"
    return "\n".join([title, *location_lines(loc)])
