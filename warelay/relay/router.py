"""
Inbound message router.

Flow:
    DedupGate.admit -> classify -> one of
        ReplyDispatcher.dispatch_reply   (operator quoting a forwarded message)
        CommandRegistry.dispatch          (`!token args...`)
        Forwarder.forward                 (1:1 chat content)
        ignore                            (group chatter, status broadcasts)

No exception escapes `route()`: one bad message must not stop the stream.
"""

from __future__ import annotations

import enum
from typing import Final

from loguru import logger

from warelay.bus.events import InboundMessage
from warelay.config.schema import COMMAND_PREFIX
from warelay.errors import CommandUsageError
from warelay.relay.commands import CommandOutcome, CommandRegistry, parse_command, reply_to
from warelay.relay.dedup import DedupGate
from warelay.relay.forwarder import Forwarder
from warelay.relay.render import strip_invisible
from warelay.relay.reply import ReplyDispatcher
from warelay.session.base import SessionAdapter


UNKNOWN_COMMAND_REPLY: Final[str] = (
    f"❓ Command not recognized. Type *{COMMAND_PREFIX}help* for the list of commands."
)
COMMAND_FAILED_REPLY: Final[str] = "⚠️ Something went wrong while running that command."


class Route(enum.Enum):
    OPERATOR_REPLY = "operator_reply"
    COMMAND = "command"
    FORWARD = "forward"
    IGNORE = "ignore"


class Router:
    """
    Classifies admitted messages and hands them to the matching handler.
    """

    def __init__(
        self,
        session: SessionAdapter,
        registry: CommandRegistry,
        forwarder: Forwarder,
        replies: ReplyDispatcher,
        operator_chat_id: str | None,
        dedup: DedupGate | None = None,
        prefix: str = COMMAND_PREFIX,
    ):
        self.session = session
        self.registry = registry
        self.forwarder = forwarder
        self.replies = replies
        self.operator_chat_id = operator_chat_id
        self.dedup = dedup if dedup is not None else DedupGate()
        self.prefix = prefix

    # =========================
    # Classification
    # =========================

    def is_command(self, msg: InboundMessage) -> bool:
        return strip_invisible(msg.text).strip().startswith(self.prefix)

    def classify(self, msg: InboundMessage) -> Route:
        if self.operator_chat_id and msg.sender_id == self.operator_chat_id:
            if msg.has_quote:
                return Route.OPERATOR_REPLY
            # Operators may still run commands from their own channel.
            if self.is_command(msg):
                return Route.COMMAND
            return Route.IGNORE

        if self.is_command(msg):
            return Route.COMMAND

        if not msg.is_group and not msg.is_system:
            return Route.FORWARD

        return Route.IGNORE

    # =========================
    # Entry points
    # =========================

    async def handle(self, msg: InboundMessage) -> Route | None:
        """
        Admit through the dedup gate, then route.

        Returns the chosen route, or None for a duplicate delivery.
        """
        if not self.dedup.admit(msg.id):
            logger.debug("Duplicate delivery dropped | message_id={}", msg.id)
            return None
        return await self.route(msg)

    async def route(self, msg: InboundMessage) -> Route:
        route = self.classify(msg)
        logger.debug(
            "Routing | message_id={} sender={} kind={} route={}",
            msg.id,
            msg.sender_id,
            msg.kind,
            route.value,
        )

        try:
            if route is Route.OPERATOR_REPLY:
                await self.replies.dispatch_reply(msg)
            elif route is Route.COMMAND:
                await self._run_command(msg)
            elif route is Route.FORWARD:
                await self.forwarder.forward(msg)
        except Exception:
            logger.exception(
                "Unhandled routing error | message_id={} sender={} kind={} route={}",
                msg.id,
                msg.sender_id,
                msg.kind,
                route.value,
            )

        return route

    # =========================
    # Commands
    # =========================

    async def _run_command(self, msg: InboundMessage) -> None:
        parsed = parse_command(msg.text, self.prefix)
        if parsed is None:
            return

        try:
            outcome = await self.registry.dispatch(parsed.token, msg, parsed.args)

        except CommandUsageError as e:
            logger.info(
                "Command usage error | token={} sender={} message_id={}",
                parsed.token,
                msg.sender_id,
                msg.id,
            )
            await self._safe_reply(msg, f"⚠️ {e.usage}")
            return

        except Exception:
            logger.exception(
                "Command failed | token={} sender={} message_id={}",
                parsed.token,
                msg.sender_id,
                msg.id,
            )
            await self._safe_reply(msg, COMMAND_FAILED_REPLY)
            return

        if outcome is CommandOutcome.UNKNOWN:
            logger.info("Unknown command | token={} sender={}", parsed.token, msg.sender_id)
            await self._safe_reply(msg, UNKNOWN_COMMAND_REPLY)

    async def _safe_reply(self, msg: InboundMessage, text: str) -> None:
        try:
            await reply_to(self.session, msg, text)
        except Exception:
            logger.exception(
                "Could not reply to command sender | sender={} message_id={}",
                msg.sender_id,
                msg.id,
            )
