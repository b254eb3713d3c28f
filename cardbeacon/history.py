# cardbeacon/history.py
from __future__ import annotations
import threading
from collections import deque
from typing import Any, Dict, List, Optional

from .card import Card
from .pipeline import CardObserved

DEFAULT_HISTORY = 10


class CardHistory:
    """
    What a screen shows: the latest card plus a bounded, newest-first history.
    Plug in with `pipeline.add_listener(history)`.
    """
    def __init__(self, maxlen: int = DEFAULT_HISTORY):
        if maxlen < 1:
            raise ValueError("history size must be >= 1")
        self._lock = threading.Lock()
        self._items: deque[CardObserved] = deque(maxlen=maxlen)

    def __call__(self, event: CardObserved) -> None:
        with self._lock:
            self._items.appendleft(event)

    @property
    def latest(self) -> Optional[Card]:
        with self._lock:
            return self._items[0].card if self._items else None

    def cards(self) -> List[Card]:
        with self._lock:
            return [ev.card for ev in self._items]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            items = list(self._items)
        return {
            "latest": items[0].card.to_dict() if items else None,
            "history": [
                {**ev.card.to_dict(), "observed_at": ev.observed_at} for ev in items
            ],
        }
