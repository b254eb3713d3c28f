# cardbeacon/seen_cache.py
from __future__ import annotations
import time
from typing import Callable, Dict, Optional


class SeenCache:
    """
    Beacon names already handled in the current window:
    name -> first_seen (monotonic seconds).

    sliding=False : entries live until clear() (the pipeline's flush tick)
    sliding=True  : an entry counts as absent once it is `window` old;
                    expire() only reclaims memory

    Not thread-safe on its own; the pipeline serializes access under its lock.
    """
    def __init__(self, window_s: float, clock: Callable[[], float] = time.monotonic,
                 sliding: bool = False):
        self.window = float(window_s)
        self.sliding = sliding
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def check_and_add(self, name: str) -> bool:
        """True if `name` was not present (and is now), False if already seen."""
        now = self._clock()
        first = self._seen.get(name)
        if first is not None and not (self.sliding and now - first >= self.window):
            return False
        self._seen[name] = now
        return True

    def clear(self) -> int:
        n = len(self._seen)
        self._seen.clear()
        return n

    def expire(self, now: Optional[float] = None) -> int:
        """Drop entries older than the window; return how many were dropped."""
        now = self._clock() if now is None else now
        stale = [k for k, t in self._seen.items() if now - t >= self.window]
        for k in stale:
            del self._seen[k]
        return len(stale)

    def __contains__(self, name: object) -> bool:
        return name in self._seen

    def __len__(self) -> int:
        return len(self._seen)
