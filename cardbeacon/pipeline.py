# cardbeacon/pipeline.py
# -----------------------------------------------------------------------------
# Scan pipeline: drives a ScanFacility and turns raw beacon names into
# CardObserved events.
#
#   IDLE --start()--> SCANNING --stop()--> IDLE
#
# While SCANNING:
#   - re-trigger timer   every interval_ms     -> facility.trigger_scan()
#   - cache-flush timer  every cache_flush_ms  -> seen-cache clear / expire
#   - results callback   (facility thread)     -> batch pass -> events
#
# Threading:
#   One RLock owns state, the seen-cache and the timers. A batch pass runs to
#   completion under the lock, so a flush can never land mid-batch. Events are
#   delivered to listeners after the lock is released.
#   Every timer carries the generation it was armed in; stop() (and the next
#   start()) bump the generation, so callbacks already queued just return.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .card import Card
from .codec import decode, describe, is_card_beacon
from .errors import FacilityError, InvariantViolation
from .facility import ScanFacility
from .seen_cache import SeenCache

log = logging.getLogger("beacon.pipeline")

CACHE_MODES = ("flush", "sliding")


# ---------- config snapshot ----------

@dataclass
class PipelineConfig:
    interval_ms: int = 500
    cache_flush_ms: int = 10_000
    # flush   : drop the whole seen-cache on every flush tick
    # sliding : each entry lives cache_flush_ms from its first sighting;
    #           the flush tick only reclaims expired entries
    cache_mode: str = "flush"

    def __post_init__(self):
        if self.interval_ms <= 0 or self.cache_flush_ms <= 0:
            raise ValueError("interval_ms and cache_flush_ms must be > 0")
        if self.cache_mode not in CACHE_MODES:
            raise ValueError(f"cache_mode must be one of {CACHE_MODES}, not {self.cache_mode!r}")

    @classmethod
    def from_app(cls, app_dict: Dict[str, Any]) -> "PipelineConfig":
        scan = (app_dict or {}).get("scan", {}) or {}
        return cls(
            interval_ms=int(scan.get("interval_ms", 500)),
            cache_flush_ms=int(scan.get("cache_flush_ms", 10_000)),
            cache_mode=str(scan.get("cache_mode", "flush")).lower(),
        )


# ---------- events / results ----------

class PipelineState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass(frozen=True)
class CardObserved:
    card: Card
    beacon_name: str
    observed_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ScanOutcome:
    """
    Result of start()/stop().
      ok       the requested state was reached
      scanning state after the call
      changed  the call actually transitioned
      error    facility error met on the way (fatal for start, best-effort for stop)
    """
    ok: bool
    scanning: bool
    changed: bool
    error: Optional[FacilityError] = None


CardListener = Callable[[CardObserved], None]


class TimerHandle(Protocol):
    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(interval_s: float, fn: Callable[[], None]) -> TimerHandle:
    t = threading.Timer(interval_s, fn)
    t.daemon = True
    return t


@dataclass
class PipelineStats:
    batches: int = 0
    names: int = 0
    ignored: int = 0          # no card prefix
    duplicates: int = 0       # already in the seen-cache
    malformed: int = 0        # prefixed but did not decode
    observed: int = 0         # CardObserved events emitted
    trigger_failures: int = 0
    stale_results: int = 0    # results delivered while IDLE
    flushes: int = 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


# ---------- pipeline ----------

class ScanPipeline:
    def __init__(
        self,
        facility: ScanFacility,
        config: Optional[PipelineConfig] = None,
        *,
        timer_factory: TimerFactory = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.facility = facility
        self.cfg = config or PipelineConfig()
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._state = PipelineState.IDLE
        self._generation = 0
        self._cache: Optional[SeenCache] = None
        self._scan_timer: Optional[TimerHandle] = None
        self._flush_timer: Optional[TimerHandle] = None

        self._listeners: List[CardListener] = []
        self._listeners_lock = threading.Lock()

        self.stats = PipelineStats()

    # ----------------------- listeners -----------------------

    def add_listener(self, listener: CardListener) -> Callable[[], None]:
        """Register a CardObserved listener; returns a callable that removes it."""
        with self._listeners_lock:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: CardListener) -> None:
        with self._listeners_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    # ----------------------- lifecycle -----------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    def is_scanning(self) -> bool:
        return self._state is PipelineState.SCANNING

    def start(self) -> ScanOutcome:
        with self._lock:
            if self._state is PipelineState.SCANNING:
                return ScanOutcome(ok=True, scanning=True, changed=False)

            try:
                self.facility.subscribe(self._on_results_available)
            except FacilityError as e:
                log.warning("start_subscribe_failed", extra={"err": str(e)})
                return ScanOutcome(ok=False, scanning=False, changed=False, error=e)

            # state flips before the first trigger: a facility may deliver synchronously
            self._generation += 1
            self._state = PipelineState.SCANNING
            self._cache = SeenCache(
                self.cfg.cache_flush_ms / 1000.0,
                clock=self._clock,
                sliding=self.cfg.cache_mode == "sliding",
            )

            try:
                self.facility.trigger_scan()
            except FacilityError as e:
                log.warning("start_trigger_failed", extra={"err": str(e)})
                self._teardown()
                return ScanOutcome(ok=False, scanning=False, changed=False, error=e)

            self._arm_scan(self._generation)
            self._arm_flush(self._generation)
            log.info(
                "scan_start",
                extra={
                    "interval_ms": self.cfg.interval_ms,
                    "cache_flush_ms": self.cfg.cache_flush_ms,
                    "cache_mode": self.cfg.cache_mode,
                },
            )
            return ScanOutcome(ok=True, scanning=True, changed=True)

    def stop(self) -> ScanOutcome:
        with self._lock:
            if self._state is PipelineState.IDLE:
                return ScanOutcome(ok=True, scanning=False, changed=False)
            err = self._teardown()
            log.info("scan_stop", extra=self.stats.as_dict())
            return ScanOutcome(ok=True, scanning=False, changed=True, error=err)

    def _teardown(self) -> Optional[FacilityError]:
        """Back to IDLE: cancel timers, drop the cache, unsubscribe (best effort)."""
        self._state = PipelineState.IDLE
        self._generation += 1
        for t in (self._scan_timer, self._flush_timer):
            if t is not None:
                t.cancel()
        self._scan_timer = None
        self._flush_timer = None
        if self._cache is not None:
            self._cache.clear()
        self._cache = None

        try:
            self.facility.unsubscribe()
        except FacilityError as e:
            log.warning("unsubscribe_failed", extra={"err": str(e)})
            return e
        return None

    # ----------------------- timers -----------------------

    def _arm_scan(self, gen: int) -> None:
        t = self._timer_factory(self.cfg.interval_ms / 1000.0, lambda: self._on_scan_tick(gen))
        self._scan_timer = t
        t.start()

    def _arm_flush(self, gen: int) -> None:
        t = self._timer_factory(self.cfg.cache_flush_ms / 1000.0, lambda: self._on_flush_tick(gen))
        self._flush_timer = t
        t.start()

    def _live(self, gen: int) -> bool:
        return gen == self._generation and self._state is PipelineState.SCANNING

    def _on_scan_tick(self, gen: int) -> None:
        with self._lock:
            if not self._live(gen):
                return
            try:
                self.facility.trigger_scan()
            except FacilityError as e:
                self.stats.trigger_failures += 1
                log.warning("trigger_failed", extra={"err": str(e)})
            self._arm_scan(gen)

    def _on_flush_tick(self, gen: int) -> None:
        with self._lock:
            if not self._live(gen):
                return
            if self._cache is None:
                raise InvariantViolation("flush tick without a seen-cache")
            if self.cfg.cache_mode == "sliding":
                dropped = self._cache.expire()
            else:
                dropped = self._cache.clear()
            self.stats.flushes += 1
            log.debug("cache_flush", extra={"dropped": dropped, "mode": self.cfg.cache_mode})
            self._arm_flush(gen)

    # ----------------------- results -----------------------

    def _on_results_available(self) -> None:
        """Facility callback; may run on any thread, may arrive after stop()."""
        with self._lock:
            if self._state is not PipelineState.SCANNING:
                self.stats.stale_results += 1
                log.debug("results_ignored_idle")
                return
            try:
                names = self.facility.current_results()
            except FacilityError as e:
                log.warning("results_read_failed", extra={"err": str(e)})
                return
            events = self._process_batch(names)

        for ev in events:
            self._emit(ev)

    def _process_batch(self, names: Iterable[str]) -> List[CardObserved]:
        """One batch pass; caller holds the lock and the pipeline is SCANNING."""
        if self._state is not PipelineState.SCANNING or self._cache is None:
            raise InvariantViolation("batch processed outside SCANNING")

        self.stats.batches += 1
        events: List[CardObserved] = []
        for name in names:
            self.stats.names += 1
            if not is_card_beacon(name):
                self.stats.ignored += 1
                continue
            if not self._cache.check_and_add(name):
                self.stats.duplicates += 1
                continue
            card = decode(name)
            if card is None:
                self.stats.malformed += 1
                log.info("malformed_beacon", extra={"beacon": describe(name)})
                continue
            self.stats.observed += 1
            events.append(CardObserved(card=card, beacon_name=name))
        return events

    def _emit(self, event: CardObserved) -> None:
        log.info("card_observed", extra={"card": event.card.short_name, "beacon": describe(event.beacon_name)})
        with self._listeners_lock:
            listeners = list(self._listeners)
        for fn in listeners:
            try:
                fn(event)
            except Exception:
                log.exception("listener_failed")

    # ----------------------- introspection -----------------------

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "cached": len(self._cache) if self._cache is not None else 0,
                "listeners": len(self._listeners),
                **self.stats.as_dict(),
            }
