"""Tests for correlation and live-location bookkeeping."""

from warelay.relay.correlation import CorrelationMap, LiveLocationTracker

from tests.fakes import ALICE, BOB, FakeClock


# ============================================================
# CorrelationMap
# ============================================================

class TestCorrelationMap:

    def test_record_and_resolve(self):
        cmap = CorrelationMap(ttl=100, clock=FakeClock())
        cmap.record("op-1", ALICE)
        assert cmap.resolve("op-1") == ALICE

    def test_unknown_id_resolves_none(self):
        cmap = CorrelationMap(ttl=100, clock=FakeClock())
        assert cmap.resolve("missing") is None

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cmap = CorrelationMap(ttl=100, clock=clock)

        cmap.record("op-1", ALICE)
        clock.advance(100)

        assert cmap.resolve("op-1") is None
        assert len(cmap) == 0

    def test_touch_refreshes_entry(self):
        clock = FakeClock()
        cmap = CorrelationMap(ttl=100, clock=clock)

        cmap.record("op-1", ALICE)
        cmap.record("op-2", BOB)
        clock.advance(80)
        assert cmap.touch("op-1") is True
        clock.advance(50)

        assert cmap.resolve("op-1") == ALICE
        assert cmap.resolve("op-2") is None

    def test_touch_missing_entry(self):
        cmap = CorrelationMap(ttl=100, clock=FakeClock())
        assert cmap.touch("nope") is False

    def test_many_entries_for_one_sender(self):
        cmap = CorrelationMap(ttl=100, clock=FakeClock())
        cmap.record("op-1", ALICE)
        cmap.record("op-2", ALICE)

        assert cmap.resolve("op-1") == ALICE
        assert cmap.resolve("op-2") == ALICE
        assert len(cmap) == 2


# ============================================================
# LiveLocationTracker
# ============================================================

class TestLiveLocationTracker:

    def test_start_and_active(self):
        tracker = LiveLocationTracker(idle=60, clock=FakeClock())
        tracker.start(ALICE, "op-1")

        session = tracker.active(ALICE)
        assert session is not None
        assert session.operator_message_id == "op-1"

    def test_idle_session_ends(self):
        clock = FakeClock()
        tracker = LiveLocationTracker(idle=60, clock=clock)

        tracker.start(ALICE, "op-1")
        clock.advance(60)

        assert tracker.active(ALICE) is None
        assert len(tracker) == 0

    def test_refresh_keeps_session_alive(self):
        clock = FakeClock()
        tracker = LiveLocationTracker(idle=60, clock=clock)

        tracker.start(ALICE, "op-1")
        clock.advance(50)
        assert tracker.refresh(ALICE) is True
        clock.advance(50)

        assert tracker.active(ALICE) is not None

    def test_refresh_unknown_sender(self):
        tracker = LiveLocationTracker(idle=60, clock=FakeClock())
        assert tracker.refresh(BOB) is False

    def test_abandoned_shares_evicted(self):
        clock = FakeClock()
        tracker = LiveLocationTracker(idle=60, clock=clock)

        for i in range(1000):
            tracker.start(f"62800{i:07d}@c.us", f"op-{i}")
        clock.advance(3600)
        tracker.start(ALICE, "op-alice")

        assert len(tracker) == 1
        assert tracker.active(ALICE).operator_message_id == "op-alice"

    def test_refreshed_share_outlives_older_ones(self):
        clock = FakeClock()
        tracker = LiveLocationTracker(idle=60, clock=clock)

        tracker.start(ALICE, "op-1")
        clock.advance(10)
        tracker.start(BOB, "op-2")
        clock.advance(40)
        tracker.refresh(ALICE)
        clock.advance(15)

        assert tracker.active(BOB) is None
        assert tracker.active(ALICE) is not None
        assert len(tracker) == 1
