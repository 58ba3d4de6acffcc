"""
Forwarding of inbound traffic into the operator channel.

Each successful post into the operator channel is recorded in the
CorrelationMap so an operator reply to it can be routed back.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from warelay.bus.events import (
    InboundMessage,
    LocationContent,
    MediaContent,
    MediaPayload,
    SendOptions,
    SentMessage,
    TextContent,
)
from warelay.config.schema import VIDEO_COMPRESS_THRESHOLD
from warelay.errors import RelayError, TranscodeError
from warelay.relay import render
from warelay.relay.correlation import CorrelationMap, LiveLocationTracker
from warelay.session.base import SendContent, SessionAdapter
from warelay.utils.helpers import human_size


# Kinds that cannot carry a rich caption: identity goes in a header message
HEADER_KINDS = ("sticker", "audio", "voice")


class MediaTransform(Protocol):
    async def compress_image(self, media: MediaPayload) -> MediaPayload: ...

    async def compress_video(self, media: MediaPayload) -> MediaPayload: ...


class Forwarder:
    """
    Renders inbound messages for the operator channel and posts them.

    Failures are logged and the message is dropped; there is no one to
    report them to on the passive forwarding path.
    """

    def __init__(
        self,
        session: SessionAdapter,
        operator_chat_id: str | None,
        correlations: CorrelationMap,
        live_locations: LiveLocationTracker,
        transformer: MediaTransform,
        max_inline_caption: int = 700,
        video_threshold: int = VIDEO_COMPRESS_THRESHOLD,
    ):
        self.session = session
        self.operator_chat_id = operator_chat_id
        self.correlations = correlations
        self.live_locations = live_locations
        self.transformer = transformer
        self.max_inline_caption = max_inline_caption
        self.video_threshold = video_threshold

    # =========================
    # Entry point
    # =========================

    async def forward(self, msg: InboundMessage) -> None:
        if not self.operator_chat_id:
            logger.warning(
                "Operator channel not configured, dropping | sender={} message_id={}",
                msg.sender_id,
                msg.id,
            )
            return

        content = msg.content
        try:
            if isinstance(content, TextContent):
                await self._post(msg, render.text_block(msg))

            elif isinstance(content, LocationContent):
                await self._forward_location(msg, content)

            elif isinstance(content, MediaContent):
                await self._forward_media(msg, content)

            else:
                logger.debug("Nothing to forward | kind={} message_id={}", msg.kind, msg.id)
                return

            logger.info(
                "Forwarded to operator | sender={} message_id={} kind={}",
                msg.sender_id,
                msg.id,
                msg.kind,
            )

        except Exception:
            logger.exception(
                "Forwarding failed | sender={} message_id={} kind={}",
                msg.sender_id,
                msg.id,
                msg.kind,
            )

    # =========================
    # Location
    # =========================

    async def _forward_location(self, msg: InboundMessage, loc: LocationContent) -> None:
        if not loc.live:
            await self._post(msg, render.location_block(msg, loc))
            return

        session = self.live_locations.active(msg.sender_id)
        if session is not None:
            await self.session.send(
                self.operator_chat_id,
                render.location_block(msg, loc, update=True),
                SendOptions(quoted_message_id=session.operator_message_id),
            )
            self.live_locations.refresh(msg.sender_id)
            self.correlations.touch(session.operator_message_id)
            return

        sent = await self._post(msg, render.location_block(msg, loc))
        self.live_locations.start(msg.sender_id, sent.id)

    # =========================
    # Media
    # =========================

    async def _forward_media(self, msg: InboundMessage, content: MediaContent) -> None:
        media = await self._download(msg)
        if media is None:
            return

        media = await self._transform(msg, content, media)
        if media is None or not media.data:
            logger.warning(
                "Empty media after transform, dropping | sender={} message_id={} kind={}",
                msg.sender_id,
                msg.id,
                content.kind,
            )
            return

        kind = content.kind

        if kind in HEADER_KINDS:
            await self._post(msg, render.media_header(msg))
            await self._post(
                msg,
                media,
                SendOptions(
                    send_as_sticker=kind == "sticker",
                    send_as_voice=kind == "voice",
                ),
            )
            return

        caption, overflow = render.media_caption(msg, self.max_inline_caption)
        await self._post(
            msg,
            media,
            SendOptions(caption=caption, send_as_document=kind == "document"),
        )

        if overflow:
            await self._post(msg, render.overflow_block(msg, overflow))

    async def _download(self, msg: InboundMessage) -> MediaPayload | None:
        try:
            media = await self.session.download_media(msg)
        except RelayError as e:
            logger.warning(
                "Media download failed | sender={} message_id={} err={}",
                msg.sender_id,
                msg.id,
                e,
            )
            return None

        if media is None or not media.data:
            logger.warning(
                "Media unavailable, dropping | sender={} message_id={} kind={}",
                msg.sender_id,
                msg.id,
                msg.kind,
            )
            return None

        return media

    async def _transform(
        self,
        msg: InboundMessage,
        content: MediaContent,
        media: MediaPayload,
    ) -> MediaPayload | None:
        try:
            if content.kind == "image":
                return await self.transformer.compress_image(media)

            if content.kind == "video":
                if media.size > self.video_threshold:
                    logger.info(
                        "Compressing video | message_id={} size={}",
                        msg.id,
                        human_size(media.size),
                    )
                    return await self.transformer.compress_video(media)
                return media

            return media

        except TranscodeError as e:
            logger.warning(
                "Media transform failed, dropping | sender={} message_id={} kind={} err={}",
                msg.sender_id,
                msg.id,
                content.kind,
                e,
            )
            return None

    # =========================
    # Sending
    # =========================

    async def _post(
        self,
        msg: InboundMessage,
        content: SendContent,
        options: SendOptions | None = None,
    ) -> SentMessage:
        sent = await self.session.send(self.operator_chat_id, content, options)
        self.correlations.record(sent.id, msg.sender_id)
        return sent
