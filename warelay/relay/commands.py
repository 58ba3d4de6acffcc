"""
Command registry.

Commands are collected with a CommandRegistryBuilder at startup and frozen
into a CommandRegistry; nothing is added or removed afterwards.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Iterator, Mapping

from loguru import logger

from warelay.bus.events import InboundMessage, SendOptions, SentMessage
from warelay.config.schema import COMMAND_PREFIX
from warelay.relay.render import strip_invisible
from warelay.session.base import SessionAdapter


CommandHandler = Callable[[InboundMessage, list[str]], Awaitable[None]]


async def reply_to(session: SessionAdapter, message: InboundMessage, text: str) -> SentMessage:
    """Answer in the chat the message came from, quoting it."""
    return await session.send(
        message.sender_id,
        text,
        SendOptions(quoted_message_id=message.id),
    )


class CommandOutcome(enum.Enum):
    EXECUTED = "executed"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Command:
    token: str
    handler: CommandHandler
    description: str = ""
    usage: str = ""


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    token: str
    args: list[str]


def parse_command(text: str, prefix: str = COMMAND_PREFIX) -> ParsedCommand | None:
    """
    Split `!token arg1 arg2` into a lower-cased token and its arguments.

    Returns None when the text is not a command.
    """
    body = strip_invisible(text).strip()
    if not body.startswith(prefix):
        return None

    parts = body[len(prefix):].split()
    if not parts:
        return ParsedCommand(token="", args=[])

    return ParsedCommand(token=parts[0].lower(), args=parts[1:])


class CommandRegistry:
    """
    Immutable token → command table.
    """

    def __init__(self, commands: Mapping[str, Command]):
        self._commands: Mapping[str, Command] = MappingProxyType(dict(commands))

    # =========================
    # Lookup
    # =========================

    def get(self, token: str) -> Command | None:
        return self._commands.get(token.lower())

    def __contains__(self, token: str) -> bool:
        return token.lower() in self._commands

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def tokens(self) -> list[str]:
        return list(self._commands.keys())

    # =========================
    # Execution
    # =========================

    async def dispatch(
        self,
        token: str,
        message: InboundMessage,
        args: list[str],
    ) -> CommandOutcome:
        """
        Run the handler registered for `token`.

        Handler exceptions propagate: the router owns the failure reply.
        """
        command = self.get(token)
        if command is None:
            return CommandOutcome.UNKNOWN

        logger.info(
            "Executing command | token={} sender={} message_id={}",
            command.token,
            message.sender_id,
            message.id,
        )
        await command.handler(message, args)
        return CommandOutcome.EXECUTED


class CommandRegistryBuilder:
    """Collects commands before the registry is frozen."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(
        self,
        token: str,
        handler: CommandHandler,
        description: str = "",
        usage: str = "",
    ) -> "CommandRegistryBuilder":
        key = token.strip().lower()
        if not key or any(ch.isspace() for ch in key):
            raise ValueError(f"Invalid command token: {token!r}")
        if key in self._commands:
            raise ValueError(f"Command already registered: {key}")

        self._commands[key] = Command(
            token=key,
            handler=handler,
            description=description,
            usage=usage or f"{COMMAND_PREFIX}{key}",
        )
        return self

    def build(self) -> CommandRegistry:
        return CommandRegistry(self._commands)
