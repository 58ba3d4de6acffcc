"""
WhatsApp id and phone number helpers.

Chat ids come in two shapes:
    <digits>@c.us    individual
    <id>@g.us        group
"""

from __future__ import annotations

import re
from typing import Final
from urllib.parse import quote

from warelay.errors import InvalidTargetError


USER_SUFFIX: Final[str] = "@c.us"
GROUP_SUFFIX: Final[str] = "@g.us"
STATUS_BROADCAST: Final[str] = "status@broadcast"

DEFAULT_COUNTRY_CODE: Final[str] = "62"

_NON_DIGITS = re.compile(r"\D")
_VALID_ID = re.compile(r"^[\w.\-]+@(c|g)\.us$")

# Modern group ids: 120363 followed by a long digit run
_GROUP_DIGITS = re.compile(r"^120363\d{9,}$")

# Legacy group ids: <creator phone>-<creation unix time>
_LEGACY_GROUP = re.compile(r"^\d{8,15}-\d{10}$")


def format_phone_number(number: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Canonicalize a phone number to international digits.

    Example:
        0812-3456-789 → 628123456789
        +62 812 3456  → 628123456
        8123456       → 628123456
    """
    digits = _NON_DIGITS.sub("", number)
    if not digits:
        raise InvalidTargetError(f"Invalid phone number: {number!r}")

    if digits.startswith("0"):
        digits = country_code + digits[1:]

    if not digits.startswith(country_code):
        digits = country_code + digits

    return digits


def is_group_id(chat_id: str) -> bool:
    return chat_id.endswith(GROUP_SUFFIX)


def is_status_id(chat_id: str) -> bool:
    return chat_id == STATUS_BROADCAST


def is_whatsapp_id(target: str) -> bool:
    return bool(_VALID_ID.match(target))


def to_whatsapp_id(
    target: str,
    is_group: bool = False,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> str:
    """
    Turn a user supplied target into a chat id.

    Already suffixed ids pass through untouched. Groups keep their raw id
    and gain the group suffix; everything else is treated as a phone number.
    """
    target = target.strip()
    if not target:
        raise InvalidTargetError("Empty target")

    if target.endswith(USER_SUFFIX) or target.endswith(GROUP_SUFFIX):
        return target

    if is_group:
        return f"{target}{GROUP_SUFFIX}"

    return format_phone_number(target, country_code) + USER_SUFFIX


def canonical_target(target: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Resolve a free-form target that may be either a person or a group.

    Legacy group ids contain a dash (<creator>-<timestamp>), modern ones are
    long digit runs starting with 120363.
    """
    raw = target.strip()
    looks_like_group = bool(_LEGACY_GROUP.match(raw) or _GROUP_DIGITS.match(raw))
    return to_whatsapp_id(raw, is_group=looks_like_group, country_code=country_code)


def phone_from_id(chat_id: str) -> str:
    """Strip the server suffix (and device part) from a chat id."""
    user = chat_id.split("@", 1)[0]
    return user.split(":", 1)[0]


def wa_link(target: str, text: str | None = None) -> str:
    """
    Build a click-to-chat link.

    Example:
        wa_link("628123@c.us") → https://wa.me/628123
    """
    number = target.removesuffix(USER_SUFFIX)
    number = _NON_DIGITS.sub("", number)
    if number.startswith("0"):
        number = DEFAULT_COUNTRY_CODE + number[1:]

    suffix = f"?text={quote(text)}" if text else ""
    return f"https://wa.me/{number}{suffix}"
