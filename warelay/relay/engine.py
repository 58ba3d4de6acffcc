"""
Relay engine
------------
Wires the session, the relay state and the router together and runs the
single consumer loop.

Responsibilities:
1. Subscribe once to session messages (survives every session rebuild)
2. Drain the inbound queue strictly in order
3. Route each message through dedup, classification and handlers
"""

from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from warelay.bus.events import InboundMessage
from warelay.bus.queue import MessageBus
from warelay.config.schema import Config
from warelay.media.transcode import MediaTransformer
from warelay.relay.builtin import BuiltinCommands
from warelay.relay.commands import CommandRegistry, CommandRegistryBuilder
from warelay.relay.correlation import CorrelationMap, LiveLocationTracker
from warelay.relay.dedup import DedupGate
from warelay.relay.forwarder import Forwarder, MediaTransform
from warelay.relay.reply import ReplyDispatcher
from warelay.relay.router import Route, Router
from warelay.session.base import SessionAdapter


class RelayEngine:
    """Owns the relay state and the consumer loop."""

    def __init__(
        self,
        config: Config,
        session: SessionAdapter,
        transformer: Optional[MediaTransform] = None,
        bus: Optional[MessageBus] = None,
    ):
        self.config = config
        self.session = session
        self.bus = bus or MessageBus()

        relay = config.relay
        operator = config.operator_chat_id

        self.dedup = DedupGate()
        self.correlations = CorrelationMap(ttl=relay.correlation_ttl)
        self.live_locations = LiveLocationTracker(idle=relay.live_location_idle)

        self.forwarder = Forwarder(
            session=session,
            operator_chat_id=operator,
            correlations=self.correlations,
            live_locations=self.live_locations,
            transformer=transformer or MediaTransformer(config.media),
            max_inline_caption=relay.max_inline_caption,
        )
        self.replies = ReplyDispatcher(
            session=session,
            correlations=self.correlations,
            country_code=relay.country_code,
        )

        self.builtins = BuiltinCommands(
            session=session,
            correlations=self.correlations,
            operator_chat_id=operator,
            country_code=relay.country_code,
        )
        self.registry: CommandRegistry = self.builtins.install(CommandRegistryBuilder()).build()
        self.builtins.bind(self.registry)

        self.router = Router(
            session=session,
            registry=self.registry,
            forwarder=self.forwarder,
            replies=self.replies,
            operator_chat_id=operator,
            dedup=self.dedup,
        )

        self._running = False

        session.on_message(self.bus.publish_inbound)
        session.on_ready(self._on_ready)

        if not operator:
            logger.warning("No operator channel configured: forwarding and mirroring are off")

    # --------------------------------------------------------------------- #
    # Runtime
    # --------------------------------------------------------------------- #

    async def run(self) -> None:
        """Connect the session and process inbound messages until stopped."""
        self._running = True
        await self.session.connect()
        logger.info("Relay engine started | commands={}", ", ".join(self.registry.tokens))

        while self._running:
            try:
                msg = await asyncio.wait_for(
                    self.bus.consume_inbound(),
                    timeout=1.0,
                )
            except asyncio.TimeoutError:
                continue

            try:
                await self.process(msg)
            finally:
                self.bus.task_done()

        logger.info("Relay engine stopped")

    def stop(self) -> None:
        self._running = False

    async def process(self, msg: InboundMessage) -> Route | None:
        """Handle one message; never raises."""
        try:
            return await self.router.handle(msg)
        except Exception:
            logger.exception("Relay loop error | message_id={}", msg.id)
            return None

    # --------------------------------------------------------------------- #
    # Session events
    # --------------------------------------------------------------------- #

    async def _on_ready(self, me: str | None) -> None:
        logger.info(
            "Relay active | me={} operator={} tracked_replies={}",
            me,
            self.config.operator_chat_id or "-",
            len(self.correlations),
        )
