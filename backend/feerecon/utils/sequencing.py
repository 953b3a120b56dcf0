# ============================================================
# feerecon/utils/sequencing.py
#
# Last-write-wins by sequence number.
#
# The bursar clicks Term 1, then Term 2, then Term 3 in quick
# succession. Three balance refreshes are now in flight, and the
# Term 1 one might be the slowest. Without this, it lands last
# and the screen shows Term 1 numbers under a "Term 3" heading.
#
# How it works:
#   seq = board.issue(key)        # tag the request when it starts
#   ... slow store calls ...
#   board.publish(key, seq, value) # applied only if seq is still
#                                  # the newest issued for key
#
# Superseded requests are not cancelled; their results are just
# dropped on arrival.
# ============================================================

from typing import Generic, Optional, TypeVar
import itertools
import threading

T = TypeVar("T")


class RequestSequencer:
    """Hands out strictly increasing numbers and remembers the newest per key."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}

    def issue(self, key: str) -> int:
        with self._lock:
            seq = next(self._counter)
            self._latest[key] = seq
            return seq

    def latest(self, key: str) -> int:
        with self._lock:
            return self._latest.get(key, 0)

    def is_latest(self, key: str, seq: int) -> bool:
        return self.latest(key) == seq


class LatestResultBoard(Generic[T]):
    """Shared result state that only the newest request may write to."""

    def __init__(self, sequencer: Optional[RequestSequencer] = None):
        self.sequencer = sequencer or RequestSequencer()
        self._lock = threading.Lock()
        self._results: dict[str, tuple[int, T]] = {}

    def issue(self, key: str) -> int:
        return self.sequencer.issue(key)

    def publish(self, key: str, seq: int, value: T) -> bool:
        with self._lock:
            if not self.sequencer.is_latest(key, seq):
                return False
            self._results[key] = (seq, value)
            return True

    def current(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._results.get(key)
        return entry[1] if entry else None

    def clear(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._results.clear()
            else:
                self._results.pop(key, None)
