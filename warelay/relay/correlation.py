"""
Operator-channel correlation state.

CorrelationMap remembers which external chat each message posted into
the operator channel stands for, so operator replies can find their way
back. LiveLocationTracker remembers ongoing live-location shares so that
updates are posted as updates instead of as new conversations.

Both are in-memory only and evict by age.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from warelay.utils.helpers import monotonic


# ===========================
# Correlation
# ===========================

@dataclass(slots=True)
class CorrelationEntry:
    sender_id: str
    created_at: float
    updated_at: float


class CorrelationMap:
    """
    operator message id → original sender id.

    Entries are immutable apart from `touch()`, which refreshes the
    timestamp of live-location entries. Anything not touched for `ttl`
    seconds is evicted.
    """

    def __init__(
        self,
        ttl: float,
        clock: Callable[[], float] = monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, CorrelationEntry] = OrderedDict()
        self._lock = threading.Lock()

    def record(self, operator_message_id: str, sender_id: str) -> None:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._entries[operator_message_id] = CorrelationEntry(
                sender_id=sender_id,
                created_at=now,
                updated_at=now,
            )
            self._entries.move_to_end(operator_message_id)

        logger.debug(
            "Correlation recorded | operator_message={} sender={}",
            operator_message_id,
            sender_id,
        )

    def resolve(self, operator_message_id: str) -> str | None:
        with self._lock:
            self._purge(self._clock())
            entry = self._entries.get(operator_message_id)
            return entry.sender_id if entry else None

    def touch(self, operator_message_id: str) -> bool:
        """Refresh an entry's timestamp. Returns False if it is gone."""
        with self._lock:
            now = self._clock()
            self._purge(now)
            entry = self._entries.get(operator_message_id)
            if entry is None:
                return False
            entry.updated_at = now
            self._entries.move_to_end(operator_message_id)
            return True

    def _purge(self, now: float) -> None:
        cutoff = now - self.ttl
        while self._entries:
            oldest_id, entry = next(iter(self._entries.items()))
            if entry.updated_at > cutoff:
                break
            del self._entries[oldest_id]

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._entries)


# ===========================
# Live location
# ===========================

@dataclass(slots=True)
class LiveLocationSession:
    operator_message_id: str
    last_update: float


class LiveLocationTracker:
    """
    sender id → ongoing live-location share.

    A share is live while updates keep arriving within `idle` seconds;
    after that the next update from the same sender starts a new session.
    Shares are kept in last-update order, so abandoned ones are purged
    from the front whatever the sender does next.
    """

    def __init__(
        self,
        idle: float,
        clock: Callable[[], float] = monotonic,
    ):
        self.idle = idle
        self._clock = clock
        self._sessions: OrderedDict[str, LiveLocationSession] = OrderedDict()
        self._lock = threading.Lock()

    def active(self, sender_id: str) -> LiveLocationSession | None:
        with self._lock:
            self._purge(self._clock())
            return self._sessions.get(sender_id)

    def start(self, sender_id: str, operator_message_id: str) -> LiveLocationSession:
        with self._lock:
            now = self._clock()
            self._purge(now)
            session = LiveLocationSession(
                operator_message_id=operator_message_id,
                last_update=now,
            )
            self._sessions[sender_id] = session
            self._sessions.move_to_end(sender_id)
            return session

    def refresh(self, sender_id: str) -> bool:
        with self._lock:
            now = self._clock()
            self._purge(now)
            session = self._sessions.get(sender_id)
            if session is None:
                return False
            session.last_update = now
            self._sessions.move_to_end(sender_id)
            return True

    def _purge(self, now: float) -> None:
        while self._sessions:
            sender_id, session = next(iter(self._sessions.items()))
            if now - session.last_update < self.idle:
                break
            del self._sessions[sender_id]

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._sessions)
