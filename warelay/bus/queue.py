"""
Async message bus between the WhatsApp session and the relay loop.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from warelay.bus.events import InboundMessage


class MessageBus:
    """
    FIFO hand-off from the session to the relay core.

    Architecture:
        Session -> publish_inbound -> inbound queue -> RelayEngine loop -> Router

    The session may deliver from any number of reconnect generations;
    the single consumer loop keeps processing strictly sequential.
    """

    # ---------------------------------------------------------------------

    def __init__(self, inbound_size: int = 0):
        self.inbound: asyncio.Queue[InboundMessage] = asyncio.Queue(
            maxsize=inbound_size
        )

    # ---------------------------------------------------------------------
    # Inbound
    # ---------------------------------------------------------------------

    async def publish_inbound(self, msg: InboundMessage) -> None:
        """Publish a message from the session into the relay pipeline."""
        if self.inbound.full():
            logger.warning(
                "Inbound queue full, waiting | size={} message_id={}",
                self.inbound.qsize(),
                msg.id,
            )
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        """Consume next inbound message (blocking)."""
        return await self.inbound.get()

    def task_done(self) -> None:
        self.inbound.task_done()

    # ---------------------------------------------------------------------
    # Metrics
    # ---------------------------------------------------------------------

    @property
    def inbound_size(self) -> int:
        return self.inbound.qsize()
