"""
WhatsApp session backed by a Node.js WhatsApp Web bridge.

The bridge owns the browser session; this adapter talks to it over a
WebSocket using JSON frames.

Architecture:
    WhatsApp Web
          ↓
    Node.js Bridge (WebSocket)
          ↓
    BridgeSession (Python)
          ↓
    MessageBus

Frames from the bridge:
    {"type": "qr" | "authenticated" | "auth_failure" | "ready" | "disconnected", ...}
    {"type": "message", "message": {...}}
    {"type": "result", "requestId": "...", "ok": true, "data": ...}

Frames to the bridge:
    {"type": "request", "requestId": "...", "action": "...", "params": {...}}
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import websockets
from loguru import logger

from warelay.bus.events import (
    ChatSummary,
    Content,
    InboundMessage,
    LocationContent,
    MediaContent,
    MediaPayload,
    SendOptions,
    SentMessage,
    SystemContent,
    TextContent,
)
from warelay.config.schema import BridgeConfig
from warelay.errors import BridgeError, BridgeTimeoutError, SessionNotReadyError
from warelay.session.base import SendContent, SessionAdapter
from warelay.utils.helpers import truncate


# WhatsApp Web message types → media kinds
_MEDIA_TYPES: dict[str, str] = {
    "image": "image",
    "video": "video",
    "audio": "audio",
    "ptt": "voice",
    "sticker": "sticker",
    "document": "document",
}

_LOCATION_TYPES = ("location", "live_location", "liveLocation")


class BridgeSession(SessionAdapter):
    """
    Session adapter backed by the WebSocket bridge.

    Responsibilities:
        - Maintain persistent WebSocket connection with reconnect loop
        - Translate bridge events into lifecycle callbacks and InboundMessages
        - Correlate request/response frames for send, download and lookups
    """

    name = "bridge"

    def __init__(self, config: BridgeConfig):
        super().__init__()

        self.config = config
        self._ws: Optional[Any] = None
        self._running: bool = False
        self._loop_task: Optional[asyncio.Task] = None
        self._pending: dict[str, asyncio.Future] = {}
        self._background: set[asyncio.Task] = set()

    # =============================
    # Lifecycle
    # =============================

    async def connect(self) -> None:
        """Start the connection loop in the background."""
        if self._loop_task and not self._loop_task.done():
            return
        self._running = True
        self._loop_task = asyncio.create_task(self.run(), name="whatsapp-bridge")

    async def run(self) -> None:
        """
        Connection loop.

        Behavior:
            - Establish WebSocket connection to the bridge
            - Dispatch frames until the socket drops
            - Reconnect after the configured interval
        """
        self._running = True
        logger.info("WhatsApp bridge session starting | url={}", self.config.url)

        while self._running:
            try:
                async with websockets.connect(self.config.url, max_size=None) as ws:
                    self._ws = ws
                    logger.success("WhatsApp bridge connected")

                    async for raw in ws:
                        await self._handle_frame(raw)

            except asyncio.CancelledError:
                logger.warning("WhatsApp bridge session cancelled")
                break

            except Exception as e:
                logger.error("WhatsApp bridge error | {}", e)

            finally:
                self._ws = None
                self._fail_pending("bridge connection lost")

            if self._running:
                if self._ready:
                    await self._emit_disconnected("bridge connection lost", rebuild=False)
                logger.info(
                    "Reconnecting WhatsApp bridge in {}s...",
                    self.config.reconnect_interval,
                )
                await asyncio.sleep(self.config.reconnect_interval)

        logger.warning("WhatsApp bridge session stopped")

    async def _rebuild(self) -> None:
        if self._ws is not None:
            await self._request("reinitialize")
            return

        # No socket: the connection loop will bring everything back up.
        await self.connect()

    async def logout(self) -> None:
        await self._request("logout")
        self._ready = False
        self._authenticated = False
        logger.info("Logged out successfully")

    async def destroy(self) -> None:
        """Destroy the remote client and stop the connection loop."""
        if self._ws is not None:
            try:
                await self._request("destroy")
            except BridgeError as e:
                logger.warning("Bridge destroy request failed | {}", e)

        self._running = False
        self._ready = False

        if self._ws is not None:
            await self._ws.close()
            self._ws = None

        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        logger.info("Client destroyed")

    # =============================
    # Operations
    # =============================

    async def send(
        self,
        target: str,
        content: SendContent,
        options: SendOptions | None = None,
    ) -> SentMessage:
        if not self._ready:
            raise SessionNotReadyError()

        options = options or SendOptions()
        params: dict[str, Any] = {"to": target, "options": _encode_options(options)}

        if isinstance(content, MediaPayload):
            params["media"] = {
                "data": base64.b64encode(content.data).decode("ascii"),
                "mimetype": content.mimetype,
                "filename": content.filename,
            }
        else:
            params["text"] = content

        data = await self._request("send", **params) or {}
        message_id = data.get("id")
        if not message_id:
            raise BridgeError(f"Bridge returned no message id for send to {target}")

        logger.debug("Message sent | to={} id={}", target, message_id)
        return SentMessage(id=str(message_id), chat_id=target)

    async def download_media(self, message: InboundMessage) -> MediaPayload | None:
        data = await self._request("download_media", messageId=message.id)
        if not data or not data.get("data"):
            return None

        try:
            raw = base64.b64decode(data["data"], validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Bridge returned invalid base64 media | message_id={}", message.id)
            return None

        return MediaPayload(
            data=raw,
            mimetype=data.get("mimetype") or "application/octet-stream",
            filename=data.get("filename"),
        )

    async def get_quoted_message(self, message: InboundMessage) -> InboundMessage | None:
        if not message.quoted_id:
            return None
        data = await self._request("get_quoted", messageId=message.id)
        return message_from_payload(data) if data else None

    async def get_chats(self) -> list[ChatSummary]:
        data = await self._request("get_chats") or []
        return [
            ChatSummary(
                id=chat["id"],
                name=chat.get("name"),
                is_group=bool(chat.get("isGroup")),
                timestamp=chat.get("timestamp"),
                participants=chat.get("participants"),
            )
            for chat in data
            if chat.get("id")
        ]

    async def get_contact_name(self, chat_id: str) -> str | None:
        data = await self._request("get_contact", id=chat_id) or {}
        return data.get("name") or data.get("pushname")

    async def get_chat_messages(self, chat_id: str, limit: int = 10) -> list[InboundMessage]:
        data = await self._request("get_chat_messages", id=chat_id, limit=limit) or []
        return [message_from_payload(item) for item in data]

    async def is_registered(self, chat_id: str) -> bool:
        return bool(await self._request("is_registered", id=chat_id))

    # =============================
    # Request / response
    # =============================

    async def _request(self, action: str, **params: Any) -> Any:
        ws = self._ws
        if ws is None:
            raise BridgeError("WhatsApp bridge not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        frame = {
            "type": "request",
            "requestId": request_id,
            "action": action,
            "params": params,
        }

        try:
            await ws.send(json.dumps(frame))
            return await asyncio.wait_for(future, timeout=self.config.request_timeout)
        except asyncio.TimeoutError as e:
            raise BridgeTimeoutError(
                f"Bridge request timed out after {self.config.request_timeout}s: {action}"
            ) from e
        finally:
            self._pending.pop(request_id, None)

    def _resolve(self, data: dict) -> None:
        future = self._pending.pop(str(data.get("requestId")), None)
        if future is None or future.done():
            logger.debug("Result for unknown request | id={}", data.get("requestId"))
            return

        if data.get("ok"):
            future.set_result(data.get("data"))
        else:
            future.set_exception(BridgeError(str(data.get("error") or "bridge request failed")))

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(BridgeError(reason))

    # =============================
    # Frame handling
    # =============================

    async def _handle_frame(self, raw: str | bytes) -> None:
        """
        Handle frames from the bridge.

        Message listeners run inline on the reader, so they must hand the
        message off (the relay publishes to the bus) rather than wait on
        further bridge requests.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from WhatsApp bridge: {}", truncate(str(raw), 200))
            return

        if not isinstance(data, dict):
            logger.warning("Unexpected frame from WhatsApp bridge: {}", truncate(str(raw), 200))
            return

        frame_type = data.get("type")

        if frame_type == "result":
            self._resolve(data)

        elif frame_type == "message":
            try:
                message = message_from_payload(data.get("message") or {})
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Malformed message from bridge | {} | {}", e, truncate(str(data), 200))
                return
            await self._emit_message(message)

        elif frame_type == "qr":
            logger.info("WhatsApp QR received – scan it in the bridge terminal")

        elif frame_type == "authenticated":
            await self._emit_authenticated()

        elif frame_type == "auth_failure":
            await self._emit_auth_failure(str(data.get("message") or "unknown"))

        elif frame_type == "ready":
            await self._emit_ready(data.get("me"))

        elif frame_type == "disconnected":
            # Rebuilding needs this reader to deliver the request result.
            self._spawn(self._emit_disconnected(str(data.get("reason") or "unknown")))

        elif frame_type == "error":
            logger.error("WhatsApp bridge error | {}", data.get("error"))

        else:
            logger.debug("Unknown WhatsApp bridge event: {}", data)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


# =============================
# Payload translation
# =============================

def _encode_options(options: SendOptions) -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    if options.caption:
        encoded["caption"] = options.caption
    if options.quoted_message_id:
        encoded["quotedMessageId"] = options.quoted_message_id
    if options.send_as_sticker:
        encoded["sendMediaAsSticker"] = True
    if options.send_as_voice:
        encoded["sendAudioAsVoice"] = True
    if options.send_as_document:
        encoded["sendMediaAsDocument"] = True
    return encoded


def _content_from_payload(data: dict) -> Content:
    msg_type = data.get("type") or "chat"
    body = data.get("body") or ""

    if msg_type == "chat":
        return TextContent(body=body)

    if msg_type in _LOCATION_TYPES:
        loc = data.get("location") or {}
        return LocationContent(
            latitude=float(loc["latitude"]),
            longitude=float(loc["longitude"]),
            accuracy=_optional_float(loc.get("accuracy")),
            name=loc.get("name"),
            address=loc.get("address"),
            comment=loc.get("description") or data.get("comment"),
            live=msg_type != "location" or bool(data.get("isLive")),
        )

    if msg_type in _MEDIA_TYPES:
        return MediaContent(
            kind=_MEDIA_TYPES[msg_type],  # type: ignore[arg-type]
            caption=data.get("caption") or body or None,
            mimetype=data.get("mimetype"),
            filename=data.get("filename"),
            size=data.get("filesize"),
        )

    return SystemContent(event=msg_type, body=body or None)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def message_from_payload(data: dict) -> InboundMessage:
    """
    Normalize a bridge message payload → InboundMessage.
    """
    timestamp = data.get("timestamp")
    when = (
        datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
        if timestamp
        else datetime.now(timezone.utc)
    )

    return InboundMessage(
        id=str(data["id"]),
        sender_id=str(data["from"]),
        content=_content_from_payload(data),
        author_id=data.get("author") or None,
        sender_name=data.get("notifyName") or None,
        quoted_id=data.get("quotedMsgId") or None,
        from_group=bool(data.get("isGroup")),
        timestamp=when,
    )
