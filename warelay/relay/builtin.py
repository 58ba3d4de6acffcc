"""
Built-in bot commands.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from warelay.bus.events import ChatSummary, InboundMessage, LocationContent
from warelay.config.schema import COMMAND_PREFIX, LOOKUP_TIMEOUT_S
from warelay.errors import CommandUsageError, InvalidTargetError
from warelay.relay import render
from warelay.relay.commands import CommandRegistry, CommandRegistryBuilder, reply_to
from warelay.relay.correlation import CorrelationMap
from warelay.session.base import SessionAdapter
from warelay.utils.phone import DEFAULT_COUNTRY_CODE, canonical_target, is_group_id, wa_link


GET_CHAT_LIMIT = 10

# Shortcuts offered by the menu command, in display order
MENU_ACTIONS = ("status", "get-chat", "send", "location")

SEND_SYNTAX = f"{COMMAND_PREFIX}send <number|group id> <text>"
SEND_USAGE = f"Usage: {SEND_SYNTAX}"
LOCATION_USAGE = (
    f"Usage: attach a location to {COMMAND_PREFIX}location, "
    f"or reply to a location message with {COMMAND_PREFIX}location"
)


class BuiltinCommands:
    """
    Handlers for the commands every relay ships with.

    `install()` registers them on a builder; the help command reads the
    frozen registry through `bind()`.
    """

    def __init__(
        self,
        session: SessionAdapter,
        correlations: CorrelationMap,
        operator_chat_id: str | None,
        country_code: str = DEFAULT_COUNTRY_CODE,
        lookup_timeout: float = LOOKUP_TIMEOUT_S,
    ):
        self.session = session
        self.correlations = correlations
        self.operator_chat_id = operator_chat_id
        self.country_code = country_code
        self.lookup_timeout = lookup_timeout
        self._registry: CommandRegistry | None = None

    # =========================
    # Registration
    # =========================

    def install(self, builder: CommandRegistryBuilder) -> CommandRegistryBuilder:
        p = COMMAND_PREFIX
        return (
            builder
            .register("ping", self.ping, "Check that the bot is alive")
            .register("help", self.help, "List available commands")
            .register("send", self.send, "Send a message to a number or group", SEND_SYNTAX)
            .register(
                "location",
                self.location,
                "Show details and a map link for a location",
                f"{p}location (attached or quoted)",
            )
            .register("get-chat", self.get_chat, f"List the {GET_CHAT_LIMIT} most recent chats")
            .register("status", self.status, "Show the WhatsApp session status")
            .register("menu", self.menu, "Show a menu of common actions")
        )

    def bind(self, registry: CommandRegistry) -> None:
        self._registry = registry

    # =========================
    # Handlers
    # =========================

    async def ping(self, message: InboundMessage, args: list[str]) -> None:
        await reply_to(self.session, message, "pong 🏓")

    async def help(self, message: InboundMessage, args: list[str]) -> None:
        commands = list(self._registry) if self._registry is not None else []
        lines = [
            f"• *{COMMAND_PREFIX}{cmd.token}*" + (f" – {cmd.description}" if cmd.description else "")
            for cmd in commands
        ]
        await reply_to(self.session, message, "\n".join(["*WhatsApp Bot Commands*", *lines]))

    async def send(self, message: InboundMessage, args: list[str]) -> None:
        """
        `!send <target> <text...>`

        Relays the text, then mirrors it into the operator channel so that
        operator replies to the mirror reach the target too.
        """
        # Re-split the raw body so line breaks in the text survive.
        body = render.strip_invisible(message.text).strip()
        parts = body[len(COMMAND_PREFIX):].split(maxsplit=2)
        if len(parts) < 3 or not parts[2].strip():
            raise CommandUsageError(SEND_USAGE)

        _, raw_target, text = parts
        try:
            target = canonical_target(raw_target, self.country_code)
        except InvalidTargetError as e:
            raise CommandUsageError(f"{e}\n{SEND_USAGE}") from e

        await self.session.send(target, text)
        logger.info("Command send delivered | to={} by={}", target, message.sender_id)

        if self.operator_chat_id:
            mirror = await self.session.send(
                self.operator_chat_id,
                render.outgoing_mirror(target, text),
            )
            self.correlations.record(mirror.id, target)

        destination = target if is_group_id(target) else wa_link(target)
        await reply_to(self.session, message, f"✅ Message sent to {destination}")

    async def location(self, message: InboundMessage, args: list[str]) -> None:
        loc = await self._find_location(message)
        if loc is None:
            raise CommandUsageError(LOCATION_USAGE)
        await reply_to(self.session, message, render.location_reply(loc))

    async def get_chat(self, message: InboundMessage, args: list[str]) -> None:
        chats = [c for c in await self.session.get_chats() if c.id][:GET_CHAT_LIMIT]
        if not chats:
            await reply_to(self.session, message, "*Get Chat*\n(no chats)")
            return

        names = await asyncio.gather(*(self._lookup_name(c) for c in chats))
        lines = [
            f"• {render.clean(name)} – {c.id if c.is_group else wa_link(c.id)}"
            for c, name in zip(chats, names)
        ]
        await reply_to(self.session, message, "\n".join(["*Get Chat*", *lines]))

    async def menu(self, message: InboundMessage, args: list[str]) -> None:
        registry = self._registry
        commands = [registry.get(t) for t in MENU_ACTIONS] if registry is not None else []
        lines = [
            f"{n}. *{cmd.usage}*\n    {cmd.description}"
            for n, cmd in enumerate([c for c in commands if c is not None], start=1)
        ]
        await reply_to(
            self.session,
            message,
            "\n".join(["📋 *Menu*", "Pick an action below 👇", "", *lines]),
        )

    async def status(self, message: InboundMessage, args: list[str]) -> None:
        lines = [
            "*Session status*",
            f"Ready: {'yes' if self.session.is_ready() else 'no'}",
            f"Account: {self.session.me or '-'}",
            f"Rebuilds: {self.session.rebuilds}",
            f"Tracked replies: {len(self.correlations)}",
        ]
        await reply_to(self.session, message, "\n".join(lines))

    # =========================
    # Helpers
    # =========================

    async def _find_location(self, message: InboundMessage) -> LocationContent | None:
        if isinstance(message.content, LocationContent):
            return message.content

        if not message.quoted_id:
            return None

        quoted = await self.session.get_quoted_message(message)
        if quoted is not None and isinstance(quoted.content, LocationContent):
            return quoted.content
        return None

    async def _lookup_name(self, chat: ChatSummary) -> str | None:
        """Per-chat name lookup, degraded to the cached name on timeout."""
        try:
            return await asyncio.wait_for(
                self.session.get_contact_name(chat.id),
                timeout=self.lookup_timeout,
            ) or chat.name
        except asyncio.TimeoutError:
            logger.warning("Name lookup timed out | chat={}", chat.id)
        except Exception as e:
            logger.warning("Name lookup failed | chat={} err={}", chat.id, e)
        return chat.name
