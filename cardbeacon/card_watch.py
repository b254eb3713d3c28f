"""
cardbeacon - Card Watch
=======================

Purpose
-------
Scan for card beacons, decode them, de-duplicate repeated sightings and hand
each newly observed card to the configured publishers.

Wiring
------
    ScanFacility (mock | nmcli)
        -> ScanPipeline (prefix filter -> seen-cache -> decode)
            -> CardHistory          (latest card + bounded history)
            -> Publisher(s)         (console | http | osc)

In mock mode a RandomBroadcaster puts a random card on the simulated air
every few seconds so the whole chain can be exercised without hardware.

Observability
-------------
- Event-style log lines (`card_observed`, `malformed_beacon`, `trigger_failed`, ...)
- A heartbeat line with pipeline counters every `log.heartbeat_s` seconds
- Final counters on shutdown

CLI
---
    python -m cardbeacon.card_watch --config /path/to/config.yaml
    # Optional runtime overrides:
    --facility mock|nmcli
    --log-level DEBUG
"""

from __future__ import annotations
import argparse
import logging
import signal
import threading
from typing import List, Optional

from . import config_loader
from .facility import ScanFacility, build_facility
from .history import CardHistory, DEFAULT_HISTORY
from .pipeline import PipelineConfig, ScanPipeline
from .publisher import HttpPublisher, Publisher, build_publishers
from .simulator import DEFAULT_TTL_S, RandomBroadcaster, SimulatedAir


# ------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------
class CardWatchService:
    """
    Wires: facility -> pipeline -> (history, publishers).
    """
    def __init__(self, cfg_dict: dict, facility_type: Optional[str] = None):
        self.cfg = cfg_dict
        self.log = logging.getLogger("beacon")

        fac_cfg = dict(config_loader.get_facility_cfg(self.cfg))
        if facility_type:
            fac_cfg["type"] = facility_type
        self.facility_type = str(fac_cfg.get("type", "mock")).lower()
        self.heartbeat_s = config_loader.get_heartbeat_s(10.0, cfg=self.cfg)

        self.air: Optional[SimulatedAir] = None
        self.broadcaster: Optional[RandomBroadcaster] = None
        if self.facility_type == "mock":
            mock = fac_cfg.get("mock", {}) or {}
            self.air = SimulatedAir()
            seed = mock.get("seed")
            self.broadcaster = RandomBroadcaster(
                self.air,
                period_s=float(mock.get("broadcast_period_s", 6.0)),
                ttl_s=float(mock.get("broadcast_ttl_s", DEFAULT_TTL_S)),
                seed=int(seed) if seed is not None else None,
            )

        self.facility: ScanFacility = build_facility(fac_cfg, air=self.air)
        self.pipeline = ScanPipeline(self.facility, PipelineConfig.from_app(self.cfg.get("app", {})))

        hist_cfg = config_loader.get_history_cfg(self.cfg)
        self.history = CardHistory(int(hist_cfg.get("size", DEFAULT_HISTORY)))
        self.pipeline.add_listener(self.history)

        self.publishers: List[Publisher] = build_publishers(config_loader.get_publisher_cfg(self.cfg))
        for pub in self.publishers:
            self.pipeline.add_listener(pub.publish)

    def run(self, stop_evt: threading.Event) -> int:
        for pub in self.publishers:
            pub.start()
        if self.broadcaster is not None:
            self.broadcaster.start()

        outcome = self.pipeline.start()
        if not outcome.ok:
            self.log.error("scan_start_failed", extra={"facility": self.facility_type, "err": str(outcome.error)})
            self._shutdown()
            return 1

        self.log.info(
            "watch_start",
            extra={
                "facility": self.facility_type,
                "publishers": [type(p).__name__ for p in self.publishers],
            },
        )
        try:
            while not stop_evt.wait(self.heartbeat_s):
                self._heartbeat()
        finally:
            self._shutdown()
        return 0

    def _heartbeat(self) -> None:
        """Periodic log line so ops can see counters move."""
        payload = self.pipeline.status()
        latest = self.history.latest
        payload["latest"] = latest.short_name if latest else None
        for pub in self.publishers:
            if isinstance(pub, HttpPublisher):
                payload.update({"qsize": pub.qsize(), "sent": pub.sent, "failed": pub.failed})
        logging.getLogger("beacon.hb").info("heartbeat", extra=payload)

    def _shutdown(self) -> None:
        out = self.pipeline.stop()
        if out.error is not None:
            self.log.warning("scan_stop_unsubscribe_failed", extra={"err": str(out.error)})
        if self.broadcaster is not None:
            self.broadcaster.stop()
        for pub in self.publishers:
            try:
                pub.stop()
            except Exception:
                self.log.exception("publisher_stop_failed")
        self.log.info("watch_stop", extra=self.pipeline.stats.as_dict())


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="cardbeacon card watch")
    ap.add_argument("--config", help="Path to config/config.yaml (optional)")
    ap.add_argument("--facility", choices=["mock", "nmcli"], help="Override app.facility.type")
    ap.add_argument("--log-level", help="Override log.level (DEBUG, INFO, ...)")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    cfg_dict = config_loader.load_config(args.config)

    level = (args.log_level or config_loader.get_log_level("INFO", cfg=cfg_dict)).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    stop_evt = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: stop_evt.set())

    svc = CardWatchService(cfg_dict, facility_type=args.facility)
    return svc.run(stop_evt)


if __name__ == "__main__":
    raise SystemExit(main())
