# cardbeacon/simulator.py
# -----------------------------------------------------------------------------
# Simulated broadcasters for mock mode and tests.
#
# A real broadcaster (the watch firmware) puts one card on the air as ~50
# beacon frames 100 ms apart, i.e. the name is visible for about 5 seconds.
# SimulatedAir models exactly that: a card is "visible" for ttl_s seconds.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import random
import threading
import time
from typing import Callable, Dict, List, Optional

from .card import Card, Suit, RANK_MIN, RANK_MAX
from .codec import encode, describe

DEFAULT_TTL_S = 5.0

log = logging.getLogger("beacon.sim")


class SimulatedAir:
    """Beacon names currently on the air: name -> expiry (monotonic seconds)."""
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._live: Dict[str, float] = {}

    def broadcast(self, card: Card, ttl_s: float = DEFAULT_TTL_S) -> str:
        name = encode(card)
        self.broadcast_raw(name, ttl_s)
        log.info("broadcast", extra={"card": card.short_name, "ttl_s": ttl_s})
        return name

    def broadcast_raw(self, name: str, ttl_s: float = DEFAULT_TTL_S) -> None:
        """Put an arbitrary name on the air (noise, malformed beacons)."""
        with self._lock:
            self._live[name] = self._clock() + float(ttl_s)

    def visible_names(self, now: Optional[float] = None) -> List[str]:
        with self._lock:
            now = self._clock() if now is None else now
            for name in [n for n, exp in self._live.items() if exp <= now]:
                del self._live[name]
            return list(self._live)


class RandomBroadcaster:
    """Puts a random card on the air every period_s seconds (mock mode)."""
    def __init__(self, air: SimulatedAir, period_s: float = 6.0,
                 ttl_s: float = DEFAULT_TTL_S, seed: Optional[int] = None):
        self.air = air
        self.period_s = max(0.5, float(period_s))
        self.ttl_s = float(ttl_s)
        self._rng = random.Random(seed)
        self._t: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def next_card(self) -> Card:
        return Card(self._rng.choice(list(Suit)), self._rng.randint(RANK_MIN, RANK_MAX))

    def start(self):
        if self._t and self._t.is_alive():
            return
        self._stop.clear()
        self._t = threading.Thread(target=self._run_loop, name="RandomBroadcaster", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        if self._t and self._t.is_alive():
            self._t.join(timeout=2.0)

    def _run_loop(self):
        while not self._stop.is_set():
            card = self.next_card()
            name = self.air.broadcast(card, self.ttl_s)
            log.debug("on_air", extra={"beacon": describe(name)})
            self._stop.wait(self.period_s)
