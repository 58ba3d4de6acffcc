"""Tests for operator reply routing."""

import pytest

from warelay.bus.events import MediaPayload
from warelay.relay.reply import parse_override
from warelay.relay.router import Route

from tests.conftest import CORRELATION_TTL
from tests.fakes import (
    ALICE,
    OPERATOR,
    location_msg,
    media_msg,
    payload,
    text_msg,
)


class TestParseOverride:

    def test_override(self):
        assert parse_override("-> 6281234567890 hello") == ("6281234567890", "hello")

    def test_override_with_plus_and_no_space(self):
        assert parse_override("->+6281234 hi\nthere") == ("6281234", "hi\nthere")

    def test_plain_text(self):
        assert parse_override("hello -> 628") is None
        assert parse_override("->abc") is None


# ============================================================
# Round trips through the router
# ============================================================

async def _forward_from_alice(router, session, body="need help"):
    await router.handle(text_msg(body))
    return session.sent[-1]


class TestOperatorReply:

    @pytest.mark.asyncio
    async def test_reply_reaches_original_sender(self, router, session):
        post = await _forward_from_alice(router, session)

        route = await router.handle(text_msg("on it", OPERATOR, quoted_id=post.id))

        assert route is Route.OPERATOR_REPLY
        relayed = session.sent[-1]
        assert relayed.target == ALICE
        assert relayed.text == "on it"

    @pytest.mark.asyncio
    async def test_override_redirects_one_reply(self, router, session, correlations):
        post = await _forward_from_alice(router, session)

        await router.handle(
            text_msg("-> 6281234567890 hello", OPERATOR, quoted_id=post.id)
        )

        relayed = session.sent[-1]
        assert relayed.target == "6281234567890@c.us"
        assert relayed.text == "hello"
        assert correlations.resolve(post.id) == ALICE

    @pytest.mark.asyncio
    async def test_override_local_number(self, router, session):
        post = await _forward_from_alice(router, session)

        await router.handle(text_msg("-> 0812345 yo", OPERATOR, quoted_id=post.id))
        assert session.sent[-1].target == "62812345@c.us"

    @pytest.mark.asyncio
    async def test_unknown_quote_dropped(self, router, session):
        await router.handle(text_msg("hello?", OPERATOR, quoted_id="never-posted"))
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_expired_correlation_dropped(self, router, session, clock):
        post = await _forward_from_alice(router, session)
        clock.advance(CORRELATION_TTL + 1)

        await router.handle(text_msg("late", OPERATOR, quoted_id=post.id))
        assert len(session.sent) == 1

    @pytest.mark.asyncio
    async def test_reply_to_command_mirror(self, router, session):
        await router.handle(text_msg("!send 081234567890 hi"))
        mirror = session.sent[1]

        await router.handle(text_msg("follow up", OPERATOR, quoted_id=mirror.id))
        assert session.sent[-1].target == "6281234567890@c.us"
        assert session.sent[-1].text == "follow up"

    @pytest.mark.asyncio
    async def test_relayed_reply_is_not_correlated(self, router, session, correlations):
        post = await _forward_from_alice(router, session)
        before = len(correlations)

        await router.handle(text_msg("ok", OPERATOR, quoted_id=post.id))
        assert len(correlations) == before

    @pytest.mark.asyncio
    async def test_empty_reply_dropped(self, router, session):
        post = await _forward_from_alice(router, session)

        await router.handle(text_msg("-> 6281234567890   ", OPERATOR, quoted_id=post.id))
        assert len(session.sent) == 1

    @pytest.mark.asyncio
    async def test_media_reply(self, router, session):
        post = await _forward_from_alice(router, session)
        reply = media_msg("image", OPERATOR, caption="here you go", quoted_id=post.id)
        session.media[reply.id] = payload(64, "image/jpeg")

        await router.handle(reply)

        relayed = session.sent[-1]
        assert relayed.target == ALICE
        assert isinstance(relayed.content, MediaPayload)
        assert relayed.options.caption == "here you go"

    @pytest.mark.asyncio
    async def test_sticker_reply_keeps_kind(self, router, session):
        post = await _forward_from_alice(router, session)
        reply = media_msg("sticker", OPERATOR, quoted_id=post.id)
        session.media[reply.id] = payload(64, "image/webp")

        await router.handle(reply)

        assert session.sent[-1].options.send_as_sticker is True
        assert session.sent[-1].options.caption is None

    @pytest.mark.asyncio
    async def test_media_reply_unavailable(self, router, session):
        post = await _forward_from_alice(router, session)

        await router.handle(media_msg("image", OPERATOR, quoted_id=post.id))
        assert len(session.sent) == 1

    @pytest.mark.asyncio
    async def test_location_reply(self, router, session):
        post = await _forward_from_alice(router, session)
        reply = location_msg(OPERATOR, quoted_id=post.id)

        await router.handle(reply)

        relayed = session.sent[-1]
        assert relayed.target == ALICE
        assert relayed.text.startswith("📍 *Location*")

    @pytest.mark.asyncio
    async def test_send_failure_is_contained(self, router, session):
        post = await _forward_from_alice(router, session)
        session.fail_sends_to.add(ALICE)

        route = await router.handle(text_msg("on it", OPERATOR, quoted_id=post.id))
        assert route is Route.OPERATOR_REPLY
