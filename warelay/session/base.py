"""Base session abstraction for the WhatsApp connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Union

from loguru import logger

from warelay.bus.events import (
    ChatSummary,
    InboundMessage,
    MediaPayload,
    SendOptions,
    SentMessage,
)


MessageCallback = Callable[[InboundMessage], Awaitable[None]]
ReadyCallback = Callable[[str | None], Awaitable[None]]
DisconnectCallback = Callable[[str], Awaitable[None]]

SendContent = Union[str, MediaPayload]


class SessionAdapter(ABC):
    """
    Base abstraction for the messaging session.

    Lifecycle:
        Unauthenticated -> Authenticating -> Ready -> Disconnected -> (rebuilt)

    Listener lists belong to the adapter, not to the underlying connection,
    so a subscription made once keeps receiving messages across every
    rebuild. Rebuilds are one-at-a-time: overlapping disconnect events
    collapse into a single reinitialization.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._message_listeners: list[MessageCallback] = []
        self._ready_listeners: list[ReadyCallback] = []
        self._disconnect_listeners: list[DisconnectCallback] = []

        self._ready: bool = False
        self._authenticated: bool = False
        self._reinitializing: bool = False
        self.me: str | None = None
        self.rebuilds: int = 0

    # =============================
    # Subscriptions
    # =============================

    def on_message(self, callback: MessageCallback) -> None:
        if callback in self._message_listeners:
            logger.debug("Message listener already registered, ignoring")
            return
        self._message_listeners.append(callback)

    def on_ready(self, callback: ReadyCallback) -> None:
        self._ready_listeners.append(callback)

    def on_disconnected(self, callback: DisconnectCallback) -> None:
        self._disconnect_listeners.append(callback)

    @property
    def message_listener_count(self) -> int:
        return len(self._message_listeners)

    # =============================
    # State
    # =============================

    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def is_reinitializing(self) -> bool:
        return self._reinitializing

    # =============================
    # Lifecycle
    # =============================

    @abstractmethod
    async def connect(self) -> None:
        """Bring up the underlying connection and start receiving events."""
        ...

    @abstractmethod
    async def _rebuild(self) -> None:
        """Tear down the current connection and start a fresh one."""
        ...

    async def reconnect(self) -> bool:
        """
        Rebuild the session.

        Returns False when a rebuild is already in progress.
        """
        if self._reinitializing:
            logger.info("Session rebuild already in progress, skipping")
            return False

        self._reinitializing = True
        self._ready = False
        try:
            logger.warning("Rebuilding WhatsApp session | generation={}", self.rebuilds + 1)
            await self._rebuild()
            self.rebuilds += 1
            return True
        except Exception:
            logger.exception("Session rebuild failed")
            return False
        finally:
            self._reinitializing = False

    @abstractmethod
    async def logout(self) -> None:
        ...

    @abstractmethod
    async def destroy(self) -> None:
        ...

    # =============================
    # Operations
    # =============================

    @abstractmethod
    async def send(
        self,
        target: str,
        content: SendContent,
        options: SendOptions | None = None,
    ) -> SentMessage:
        """Send text or media; raises on failure."""
        ...

    @abstractmethod
    async def download_media(self, message: InboundMessage) -> MediaPayload | None:
        ...

    @abstractmethod
    async def get_quoted_message(self, message: InboundMessage) -> InboundMessage | None:
        ...

    @abstractmethod
    async def get_chats(self) -> list[ChatSummary]:
        ...

    @abstractmethod
    async def get_contact_name(self, chat_id: str) -> str | None:
        ...

    @abstractmethod
    async def get_chat_messages(self, chat_id: str, limit: int = 10) -> list[InboundMessage]:
        ...

    @abstractmethod
    async def is_registered(self, chat_id: str) -> bool:
        ...

    # =============================
    # Event emission (for subclasses)
    # =============================

    async def _emit_message(self, message: InboundMessage) -> None:
        for callback in list(self._message_listeners):
            try:
                await callback(message)
            except Exception:
                logger.exception(
                    "Message listener failed | message_id={} sender={}",
                    message.id,
                    message.sender_id,
                )

    async def _emit_authenticated(self) -> None:
        self._authenticated = True
        logger.info("WhatsApp session authenticated")

    async def _emit_auth_failure(self, reason: str) -> None:
        self._authenticated = False
        self._ready = False
        logger.error("WhatsApp authentication failed | reason={}", reason)

    async def _emit_ready(self, me: str | None) -> None:
        self._ready = True
        self.me = me
        logger.success("WhatsApp session ready | me={}", me)

        for callback in list(self._ready_listeners):
            try:
                await callback(me)
            except Exception:
                logger.exception("Ready listener failed")

    async def _emit_disconnected(self, reason: str, rebuild: bool = True) -> None:
        self._ready = False
        logger.warning("WhatsApp session disconnected | reason={}", reason)

        for callback in list(self._disconnect_listeners):
            try:
                await callback(reason)
            except Exception:
                logger.exception("Disconnect listener failed")

        if rebuild:
            await self.reconnect()
