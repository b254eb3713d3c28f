# cardbeacon/publisher.py
# -----------------------------------------------------------------------------
# CardObserved transports. Each publisher is a pipeline listener:
#
#   pipeline.add_listener(pub.publish)
#
#   ConsolePublisher : one line per card on a text stream
#   HttpPublisher    : POST {base_url}/cards/observed (queue + retry/backoff)
#   OscPublisher     : OSC message /cardbeacon/card [suit_index, rank]
#
# publish() never blocks the pipeline on network I/O.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import queue
import sys
import threading
import time
from typing import Any, Dict, List, Optional, TextIO

import httpx
from pythonosc.udp_client import SimpleUDPClient

from .pipeline import CardObserved

log = logging.getLogger("beacon.pub")


class Publisher:
    """
    Publisher interface. Concrete implementations:
      - ConsolePublisher
      - HttpPublisher (with retry/queue)
      - OscPublisher
    """
    def start(self) -> None:
        """Optional background work."""
        return

    def stop(self) -> None:
        """Graceful shutdown hook."""
        return

    def publish(self, event: CardObserved) -> None:
        raise NotImplementedError


class ConsolePublisher(Publisher):
    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def publish(self, event: CardObserved) -> None:
        out = self.stream or sys.stdout
        out.write(f"{event.card.short_name:<4} {event.card.display_name}\n")
        out.flush()


def event_payload(event: CardObserved) -> Dict[str, Any]:
    return {
        **event.card.to_dict(),
        "beacon": event.beacon_name,
        "observed_at": event.observed_at,
    }


class HttpPublisher(Publisher):
    """
    Posts cards to {base_url}/cards/observed with:
      - small queue to absorb bursts (drop-oldest when full)
      - retry with exponential backoff (0.1 s doubling, cap 2 s)
      - one shared httpx.Client on a sender thread
    """
    PATH = "/cards/observed"

    def __init__(self, base_url: str, *, timeout_ms: int = 500, max_queue: int = 64,
                 max_attempts: int = 5):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_ms / 1000.0
        self.max_attempts = max(1, int(max_attempts))
        self._queue: "queue.Queue[Dict[str, Any]]" = queue.Queue(maxsize=max_queue)
        self._client: Optional[httpx.Client] = None
        self._t: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._put_lock = threading.Lock()

        # Observability counters
        self.enqueued = 0
        self.sent = 0
        self.failed = 0
        self.dropped = 0
        self.send_attempts = 0

    def start(self) -> None:
        if self._t and self._t.is_alive():
            return
        self._stopping.clear()
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout)
        self._t = threading.Thread(
            target=self._run_sender, args=(self._client,), name="HttpPublisher", daemon=True
        )
        self._t.start()

    def stop(self) -> None:
        self._stopping.set()
        if self._t and self._t.is_alive():
            self._t.join(timeout=3.0)
        if self._client:
            self._client.close()
            self._client = None

    def qsize(self) -> int:
        return self._queue.qsize()

    def publish(self, event: CardObserved) -> None:
        payload = event_payload(event)
        # several facility threads may publish at once
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(payload)
                    break
                except queue.Full:
                    # lossy: keep the newest cards
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass
            self.enqueued += 1

    def _run_sender(self, client: httpx.Client) -> None:
        backoff = 0.1
        while not self._stopping.is_set():
            try:
                payload = self._queue.get(timeout=0.25)
            except queue.Empty:
                continue

            attempts = 0
            while not self._stopping.is_set():
                attempts += 1
                self.send_attempts += 1
                t0 = time.perf_counter()
                try:
                    resp = client.post(self.PATH, json=payload)
                    if 200 <= resp.status_code < 300:
                        self.sent += 1
                        backoff = 0.1
                        log.info(
                            "published",
                            extra={
                                "card": payload["short"],
                                "publisher": "http",
                                "status": resp.status_code,
                                "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
                            },
                        )
                        break
                    log.warning(
                        "http_non_2xx",
                        extra={"card": payload["short"], "publisher": "http", "status": resp.status_code},
                    )
                except httpx.HTTPError as e:
                    log.warning("http_error", extra={"card": payload["short"], "publisher": "http", "err": str(e)})

                if attempts >= self.max_attempts:
                    self.failed += 1
                    log.error("http_gave_up", extra={"card": payload["short"], "attempts": attempts})
                    break
                self._stopping.wait(backoff)
                backoff = min(backoff * 2.0, 2.0)


class OscPublisher(Publisher):
    """
    Fire-and-forget OSC over UDP with optional repeats for UDP resiliency.
    Message: <address> [suit_index (0..3, wire order), rank (1..13)]
    """
    def __init__(self, host: str = "127.0.0.1", port: int = 9000,
                 address: str = "/cardbeacon/card", repeat: int = 1):
        self.host = host
        self.port = int(port)
        self.address = address
        self.repeat = max(1, int(repeat))
        self._client: Optional[SimpleUDPClient] = None

    def start(self) -> None:
        if self._client is None:
            self._client = SimpleUDPClient(self.host, self.port)

    def stop(self) -> None:
        self._client = None

    def publish(self, event: CardObserved) -> None:
        if self._client is None:
            return
        args = [event.card.suit.index, event.card.rank]
        for _ in range(self.repeat):
            try:
                self._client.send_message(self.address, args)
            except OSError as e:
                log.warning("osc_send_failed", extra={"publisher": "osc", "err": str(e)})
                return


# ---------- factory ----------

def build_publishers(pub_cfg: Dict[str, Any]) -> List[Publisher]:
    """
    publisher:
      modes: [console, http, osc]
      http: { base_url, timeout_ms, max_queue, max_attempts }
      osc:  { host, port, address, repeat }
    """
    cfg = pub_cfg or {}
    modes = cfg.get("modes") or ["console"]
    if isinstance(modes, str):
        modes = [modes]

    pubs: List[Publisher] = []
    for mode in (str(m).lower() for m in modes):
        if mode == "console":
            pubs.append(ConsolePublisher())
        elif mode == "http":
            http_cfg = cfg.get("http", {}) or {}
            pubs.append(HttpPublisher(
                http_cfg.get("base_url", "http://127.0.0.1:8000"),
                timeout_ms=int(http_cfg.get("timeout_ms", 500)),
                max_queue=int(http_cfg.get("max_queue", 64)),
                max_attempts=int(http_cfg.get("max_attempts", 5)),
            ))
        elif mode == "osc":
            osc_cfg = cfg.get("osc", {}) or {}
            pubs.append(OscPublisher(
                host=osc_cfg.get("host", "127.0.0.1"),
                port=int(osc_cfg.get("port", 9000)),
                address=osc_cfg.get("address", "/cardbeacon/card"),
                repeat=int(osc_cfg.get("repeat", 1)),
            ))
        else:
            raise ValueError(f"Unknown publisher mode: {mode}")
    return pubs
