"""
Session-facing service surface.

Thin, validated operations an HTTP layer can call directly. Every method
raises; mapping errors to responses is the caller's job.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from warelay.bus.events import ChatSummary, MediaPayload, SendOptions, SentMessage
from warelay.errors import InvalidTargetError, MediaDownloadError, SessionNotReadyError
from warelay.session.base import SessionAdapter
from warelay.utils.phone import (
    DEFAULT_COUNTRY_CODE,
    is_whatsapp_id,
    to_whatsapp_id,
)


MAX_MEDIA_BYTES = 64 * 1024 * 1024


class WhatsAppService:
    """
    Operations exposed to the outside world.

    Wraps a SessionAdapter with readiness checks and target canonicalization.
    """

    def __init__(
        self,
        session: SessionAdapter,
        country_code: str = DEFAULT_COUNTRY_CODE,
        http: httpx.AsyncClient | None = None,
    ):
        self.session = session
        self.country_code = country_code
        self._http = http

    # =============================
    # Status
    # =============================

    def get_status(self) -> dict[str, Any]:
        return {
            "is_ready": self.session.is_ready(),
            "is_authenticated": self.session.is_authenticated,
            "is_reinitializing": self.session.is_reinitializing,
            "me": self.session.me,
        }

    # =============================
    # Messaging
    # =============================

    async def send_message(self, to: str, text: str) -> SentMessage:
        """Send text to a phone number or chat id."""
        self._require_ready()
        chat_id = self._chat_id(to)
        sent = await self.session.send(chat_id, text)
        logger.info("Message sent to: {}", chat_id)
        return sent

    async def send_message_global(self, to: str, text: str) -> SentMessage:
        """Send text to an already suffixed chat id (@c.us or @g.us)."""
        self._require_ready()
        self.validate_whatsapp_id(to)
        sent = await self.session.send(to, text)
        logger.info("Message sent to: {}", to)
        return sent

    async def send_message_to_group(self, group_id: str, text: str) -> SentMessage:
        self._require_ready()
        chat_id = self._chat_id(group_id, is_group=True)
        sent = await self.session.send(chat_id, text)
        logger.info("Message sent to group: {}", chat_id)
        return sent

    async def send_media(self, to: str, source: str, caption: str | None = None) -> SentMessage:
        """
        Send media loaded from an http(s) URL or a local file path.
        """
        self._require_ready()
        chat_id = self._chat_id(to)
        media = await self.load_media(source)
        sent = await self.session.send(chat_id, media, SendOptions(caption=caption))
        logger.info("Media sent to: {}", chat_id)
        return sent

    async def send_media_to_group(
        self, group_id: str, source: str, caption: str | None = None
    ) -> SentMessage:
        self._require_ready()
        chat_id = self._chat_id(group_id, is_group=True)
        media = await self.load_media(source)
        sent = await self.session.send(chat_id, media, SendOptions(caption=caption))
        logger.info("Media sent to group: {}", chat_id)
        return sent

    # =============================
    # Queries
    # =============================

    async def get_chats(self) -> list[ChatSummary]:
        self._require_ready()
        return await self.session.get_chats()

    async def get_groups(self) -> list[ChatSummary]:
        self._require_ready()
        return [chat for chat in await self.session.get_chats() if chat.is_group]

    async def get_chat_messages(self, to: str, limit: int = 10, is_group: bool = False):
        self._require_ready()
        chat_id = self._chat_id(to, is_group=is_group)
        return await self.session.get_chat_messages(chat_id, limit)

    async def is_registered(self, number: str) -> bool:
        self._require_ready()
        return await self.session.is_registered(self._chat_id(number))

    # =============================
    # Lifecycle
    # =============================

    async def logout(self) -> None:
        await self.session.logout()

    async def destroy(self) -> None:
        await self.session.destroy()

    # =============================
    # Helpers
    # =============================

    def _require_ready(self) -> None:
        if not self.session.is_ready():
            raise SessionNotReadyError()

    def _chat_id(self, target: str, is_group: bool = False) -> str:
        return to_whatsapp_id(target, is_group=is_group, country_code=self.country_code)

    @staticmethod
    def validate_whatsapp_id(target: str) -> None:
        if not is_whatsapp_id(target):
            raise InvalidTargetError("Invalid WhatsApp ID: must end with @c.us or @g.us")

    async def load_media(self, source: str) -> MediaPayload:
        if source.startswith(("http://", "https://")):
            return await self._fetch_url(source)
        return self._read_file(Path(source).expanduser())

    async def _fetch_url(self, url: str) -> MediaPayload:
        try:
            if self._http is not None:
                resp = await self._http.get(url, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    resp = await client.get(url, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise MediaDownloadError(f"Failed to fetch media from {url}: {e}") from e

        if len(resp.content) > MAX_MEDIA_BYTES:
            raise MediaDownloadError("File too large (max 64MB)")

        filename = Path(httpx.URL(url).path).name or None
        mimetype = (
            resp.headers.get("content-type", "").split(";")[0].strip()
            or _guess_mimetype(filename)
        )
        return MediaPayload(data=resp.content, mimetype=mimetype, filename=filename)

    @staticmethod
    def _read_file(path: Path) -> MediaPayload:
        if not path.is_file():
            raise MediaDownloadError(f"File not found: {path}")
        if path.stat().st_size > MAX_MEDIA_BYTES:
            raise MediaDownloadError("File too large (max 64MB)")
        return MediaPayload(
            data=path.read_bytes(),
            mimetype=_guess_mimetype(path.name),
            filename=path.name,
        )


def _guess_mimetype(filename: str | None) -> str:
    if not filename:
        return "application/octet-stream"
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"
