"""Tests for message classification and routing."""

import pytest

from warelay.relay.router import Route

from tests.fakes import (
    ALICE,
    BOB,
    OPERATOR,
    SOME_GROUP,
    location_msg,
    media_msg,
    system_msg,
    text_msg,
)


# ============================================================
# Classification
# ============================================================

class TestClassify:

    def test_operator_quote_is_reply(self, router):
        assert router.classify(text_msg("hi", OPERATOR, quoted_id="out-1")) is Route.OPERATOR_REPLY

    def test_operator_quote_with_prefix_is_still_reply(self, router):
        msg = text_msg("!ping", OPERATOR, quoted_id="out-1")
        assert router.classify(msg) is Route.OPERATOR_REPLY

    def test_operator_command(self, router):
        assert router.classify(text_msg("!help", OPERATOR)) is Route.COMMAND

    def test_operator_chatter_ignored(self, router):
        assert router.classify(text_msg("morning all", OPERATOR)) is Route.IGNORE

    def test_direct_command(self, router):
        assert router.classify(text_msg("!ping")) is Route.COMMAND

    def test_command_after_invisible_prefix(self, router):
        assert router.classify(text_msg("\u200b !ping")) is Route.COMMAND

    def test_command_from_group(self, router):
        assert router.classify(text_msg("!ping", SOME_GROUP, from_group=True)) is Route.COMMAND

    def test_direct_message_forwarded(self, router):
        assert router.classify(text_msg("hello")) is Route.FORWARD
        assert router.classify(location_msg()) is Route.FORWARD
        assert router.classify(media_msg("image")) is Route.FORWARD

    def test_direct_quote_is_forwarded(self, router):
        assert router.classify(text_msg("re", quoted_id="abc")) is Route.FORWARD

    def test_group_chatter_ignored(self, router):
        assert router.classify(text_msg("hi", SOME_GROUP)) is Route.IGNORE
        assert router.classify(text_msg("hi", "6281234567890-1600000000@g.us")) is Route.IGNORE

    def test_system_ignored(self, router):
        assert router.classify(system_msg()) is Route.IGNORE
        assert router.classify(system_msg(ALICE)) is Route.IGNORE

    def test_without_operator_channel_nothing_is_a_reply(self, router):
        router.operator_chat_id = None
        assert router.classify(text_msg("hi", OPERATOR, quoted_id="out-1")) is Route.IGNORE
        assert router.classify(text_msg("hi", BOB, quoted_id="out-1")) is Route.FORWARD


# ============================================================
# Handling
# ============================================================

class TestHandle:

    @pytest.mark.asyncio
    async def test_forward_records_correlation(self, router, session, correlations):
        route = await router.handle(text_msg("hello"))

        assert route is Route.FORWARD
        post = session.sent[0]
        assert post.target == OPERATOR
        assert "hello" in post.text
        assert correlations.resolve(post.id) == ALICE

    @pytest.mark.asyncio
    async def test_duplicate_delivery_dropped(self, router, session):
        msg = text_msg("hello")

        assert await router.handle(msg) is Route.FORWARD
        assert await router.handle(msg) is None
        assert len(session.sent) == 1

    @pytest.mark.asyncio
    async def test_redelivery_after_window_processed(self, router, session, clock):
        msg = text_msg("hello")
        await router.handle(msg)
        clock.advance(61)

        assert await router.handle(msg) is Route.FORWARD
        assert len(session.sent) == 2

    @pytest.mark.asyncio
    async def test_ignored_messages_send_nothing(self, router, session):
        assert await router.handle(text_msg("chatter", SOME_GROUP)) is Route.IGNORE
        assert await router.handle(system_msg()) is Route.IGNORE
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_stream(self, router, session, forwarder):
        async def explode(msg):
            raise RuntimeError("boom")

        forwarder.forward = explode
        assert await router.handle(text_msg("first")) is Route.FORWARD

        del forwarder.forward
        assert await router.handle(text_msg("second")) is Route.FORWARD
        assert "second" in session.sent[0].text

    @pytest.mark.asyncio
    async def test_failed_post_is_not_retried_on_redelivery(self, router, session):
        session.fail_sends_to.add(OPERATOR)
        msg = text_msg("hello")

        assert await router.handle(msg) is Route.FORWARD
        session.fail_sends_to.clear()
        assert await router.handle(msg) is None
        assert session.sent == []
