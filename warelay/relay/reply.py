"""
Operator reply routing.

An operator quoting a forwarded message in the operator channel gets
their reply relayed to the original sender. A leading `-> <digits>`
sends this one reply to another number instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger

from warelay.bus.events import InboundMessage, LocationContent, MediaContent, SendOptions
from warelay.errors import InvalidTargetError
from warelay.relay import render
from warelay.relay.correlation import CorrelationMap
from warelay.session.base import SessionAdapter
from warelay.utils.phone import DEFAULT_COUNTRY_CODE, to_whatsapp_id


OVERRIDE_PATTERN = re.compile(r"^\s*->\s*\+?(\d+)\s*")


@dataclass(frozen=True, slots=True)
class ReplyTarget:
    chat_id: str
    body: str
    overridden: bool = False


def parse_override(text: str) -> tuple[str, str] | None:
    """
    Split `-> 628123 hello` into ("628123", "hello").
    """
    cleaned = render.strip_invisible(text)
    match = OVERRIDE_PATTERN.match(cleaned)
    if not match:
        return None
    return match.group(1), cleaned[match.end():]


class ReplyDispatcher:
    """
    Relays operator replies back to the chat a forwarded message came from.

    Relayed replies are terminal: they are not recorded for correlation.
    """

    def __init__(
        self,
        session: SessionAdapter,
        correlations: CorrelationMap,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.session = session
        self.correlations = correlations
        self.country_code = country_code

    def resolve(self, msg: InboundMessage) -> ReplyTarget | None:
        if not msg.quoted_id:
            return None

        sender = self.correlations.resolve(msg.quoted_id)
        if sender is None:
            return None

        override = parse_override(msg.text)
        if override is None:
            return ReplyTarget(chat_id=sender, body=msg.text)

        digits, body = override
        try:
            chat_id = to_whatsapp_id(digits, country_code=self.country_code)
        except InvalidTargetError:
            logger.warning("Invalid reply override target | digits={}", digits)
            return ReplyTarget(chat_id=sender, body=msg.text)

        return ReplyTarget(chat_id=chat_id, body=body, overridden=True)

    async def dispatch_reply(self, msg: InboundMessage) -> None:
        try:
            target = self.resolve(msg)
            if target is None:
                logger.warning(
                    "Reply cannot be routed, no correlation | message_id={} quoted={}",
                    msg.id,
                    msg.quoted_id,
                )
                return

            await self._relay(msg, target)

        except Exception:
            logger.exception(
                "Reply relay failed | message_id={} quoted={} kind={}",
                msg.id,
                msg.quoted_id,
                msg.kind,
            )

    async def _relay(self, msg: InboundMessage, target: ReplyTarget) -> None:
        content = msg.content

        if isinstance(content, MediaContent):
            media = await self.session.download_media(msg)
            if media is None or not media.data:
                logger.warning("Reply media unavailable, dropping | message_id={}", msg.id)
                return

            await self.session.send(
                target.chat_id,
                media,
                SendOptions(
                    caption=target.body.strip() or None,
                    send_as_sticker=content.kind == "sticker",
                    send_as_voice=content.kind == "voice",
                    send_as_document=content.kind == "document",
                ),
            )

        elif isinstance(content, LocationContent):
            await self.session.send(target.chat_id, render.location_reply(content))

        else:
            if not target.body.strip():
                logger.warning("Empty reply, nothing to relay | message_id={}", msg.id)
                return
            await self.session.send(target.chat_id, target.body)

        logger.info(
            "Operator reply relayed | to={} message_id={} kind={} override={}",
            target.chat_id,
            msg.id,
            msg.kind,
            target.overridden,
        )
