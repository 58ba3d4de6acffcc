"""Tests for the inbound dedup gate."""

import threading

from warelay.relay.dedup import DedupGate

from tests.fakes import FakeClock


class TestDedupGate:

    def test_first_delivery_admitted(self):
        gate = DedupGate(window=60.0, clock=FakeClock())
        assert gate.admit("m1") is True
        assert "m1" in gate

    def test_redelivery_within_window_rejected(self):
        clock = FakeClock()
        gate = DedupGate(window=60.0, clock=clock)

        assert gate.admit("m1") is True
        clock.advance(59.9)
        assert gate.admit("m1") is False

    def test_rejection_does_not_extend_window(self):
        clock = FakeClock()
        gate = DedupGate(window=60.0, clock=clock)

        gate.admit("m1")
        clock.advance(30)
        assert gate.admit("m1") is False
        clock.advance(30)
        assert gate.admit("m1") is True

    def test_expired_ids_readmitted(self):
        clock = FakeClock()
        gate = DedupGate(window=60.0, clock=clock)

        gate.admit("m1")
        clock.advance(61)
        assert "m1" not in gate
        assert gate.admit("m1") is True

    def test_distinct_ids_independent(self):
        gate = DedupGate(window=60.0, clock=FakeClock())
        assert gate.admit("m1") is True
        assert gate.admit("m2") is True
        assert len(gate) == 2

    def test_purge_keeps_newer_entries(self):
        clock = FakeClock()
        gate = DedupGate(window=60.0, clock=clock)

        gate.admit("old")
        clock.advance(40)
        gate.admit("new")
        clock.advance(25)

        assert len(gate) == 1
        assert "new" in gate
        assert "old" not in gate

    def test_concurrent_admission_admits_once(self):
        gate = DedupGate(window=60.0, clock=FakeClock())
        workers = 16
        barrier = threading.Barrier(workers)
        results = []
        results_lock = threading.Lock()

        def admit():
            barrier.wait()
            admitted = gate.admit("m1")
            with results_lock:
                results.append(admitted)

        threads = [threading.Thread(target=admit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == workers
        assert results.count(True) == 1
