"""Tests for operator-channel rendering."""

from warelay.bus.events import InboundMessage, LocationContent, TextContent
from warelay.relay import render

from tests.fakes import ALICE, SOME_GROUP, location_msg, media_msg, system_msg, text_msg


class TestSanitize:

    def test_strip_invisible_removes_zero_width_and_controls(self):
        assert render.strip_invisible("a\u200bb\x00c\ufeff") == "abc"

    def test_strip_invisible_keeps_newlines(self):
        assert render.strip_invisible("line1\nline2\tx") == "line1\nline2\tx"

    def test_clean_blank_uses_placeholder(self):
        assert render.clean(None) == render.PLACEHOLDER
        assert render.clean("  \u200b ") == render.PLACEHOLDER
        assert render.clean("", placeholder="?") == "?"


class TestIdentity:

    def test_direct_chat(self):
        lines = render.identity_lines(text_msg("hi"))
        assert lines == [
            "*From:* Alice",
            "*Number:* 6281111111111",
            "*Chat:* https://wa.me/6281111111111",
        ]

    def test_missing_name_placeholder(self):
        lines = render.identity_lines(text_msg("hi", name=None))
        assert lines[0] == "*From:* -"

    def test_group_uses_author_number(self):
        msg = text_msg("hi", SOME_GROUP, author="6283333333333@c.us", from_group=True)
        lines = render.identity_lines(msg)
        assert "*Number:* 6283333333333" in lines
        assert f"*Group:* {SOME_GROUP}" in lines


class TestBlocks:

    def test_text_block(self):
        block = render.text_block(text_msg("hello\u200b there"))
        assert block.startswith("📩 *New message*")
        assert block.endswith("hello there")

    def test_text_block_empty_body(self):
        block = render.text_block(text_msg("   "))
        assert block.endswith("\n-")

    def test_location_block_static(self):
        msg = location_msg()
        block = render.location_block(msg, msg.content)
        assert block.startswith("📍 *Location*")
        assert "*Coordinates:* -6.200000, 106.816666" in block
        assert "*Accuracy:* ±12 m" in block
        assert "https://maps.google.com/?q=-6.2,106.816666" in block

    def test_location_block_live_and_update(self):
        msg = location_msg(live=True)
        assert render.location_block(msg, msg.content).startswith("📡 *Live location*")
        assert render.location_block(msg, msg.content, update=True).startswith(
            "🔄 *Live location update*"
        )

    def test_location_optional_fields_omitted(self):
        loc = LocationContent(latitude=1.0, longitude=2.0)
        lines = render.location_lines(loc)
        assert lines == [
            "*Coordinates:* 1.000000, 2.000000",
            "*Map:* https://maps.google.com/?q=1.0,2.0",
        ]

    def test_media_header(self):
        header = render.media_header(media_msg("voice"))
        assert header.splitlines()[0] == "📎 *Voice note*"

    def test_media_caption_inline(self):
        caption, overflow = render.media_caption(media_msg("image", caption="look"), 700)
        assert caption.startswith("📎 *Image*")
        assert caption.endswith("\n\nlook")
        assert overflow is None

    def test_media_caption_without_original(self):
        caption, overflow = render.media_caption(media_msg("document"), 700)
        assert caption.splitlines()[0] == "📎 *Document*"
        assert overflow is None

    def test_media_caption_overflow(self):
        long = "x" * 701
        caption, overflow = render.media_caption(media_msg("video", caption=long), 700)
        assert long not in caption
        assert overflow == long

    def test_outgoing_mirror(self):
        mirror = render.outgoing_mirror("6281234567890@c.us", "hello")
        assert mirror.splitlines() == [
            "📤 *Outgoing message*",
            "*To:* https://wa.me/6281234567890",
            "",
            "hello",
        ]

    def test_outgoing_mirror_group(self):
        assert f"*To:* {SOME_GROUP}" in render.outgoing_mirror(SOME_GROUP, "hi")

    def test_kind_label_fallback(self):
        assert render.kind_label("poll_creation") == "Poll creation"


class TestInboundMessageProperties:

    def test_text_of_each_variant(self):
        assert text_msg("b").text == "b"
        assert media_msg("image", caption="c").text == "c"
        assert location_msg(comment="n").text == "n"
        assert system_msg().text == ""

    def test_system_and_group_flags(self):
        assert system_msg().is_system
        assert system_msg(ALICE).is_system
        assert InboundMessage(id="x", sender_id=SOME_GROUP, content=TextContent(body="b")).is_group
        assert not text_msg("b").is_group
