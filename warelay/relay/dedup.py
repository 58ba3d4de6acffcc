"""
Inbound message deduplication.

The session may redeliver a message after a reconnect; the gate admits
each message id once per retention window. Admission is final: an id
stays blocked until the window passes, whatever happened downstream.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Callable

from warelay.config.schema import DEDUP_WINDOW_S
from warelay.utils.helpers import monotonic


class DedupGate:
    """
    At-most-once admission of message ids within a time window.

    Ids are kept in admission order, so expired entries are always at the
    front and purging stops at the first live one.
    """

    def __init__(
        self,
        window: float = DEDUP_WINDOW_S,
        clock: Callable[[], float] = monotonic,
    ):
        self.window = window
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def admit(self, message_id: str) -> bool:
        """Return True the first time an id is seen within the window."""
        with self._lock:
            now = self._clock()
            self._purge(now)

            if message_id in self._seen:
                return False

            self._seen[message_id] = now
            return True

    def _purge(self, now: float) -> None:
        cutoff = now - self.window
        while self._seen:
            oldest_id, admitted_at = next(iter(self._seen.items()))
            if admitted_at > cutoff:
                break
            del self._seen[oldest_id]

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._seen)

    def __contains__(self, message_id: str) -> bool:
        with self._lock:
            self._purge(self._clock())
            return message_id in self._seen
