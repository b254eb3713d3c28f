# cardbeacon/facility.py
# -----------------------------------------------------------------------------
# Radio scan facilities: the external "scan for beacons" capability the
# pipeline drives.
#
# Contract (all implementations):
#   subscribe(cb)      register the "results available" callback
#   unsubscribe()      drop it; FacilityError if nothing was subscribed
#   trigger_scan()     fire-and-forget; completion is signalled through cb
#   current_results()  snapshot of the names seen by the last finished scan
#
# Any refusal is raised as FacilityError. The callback may run on any thread.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import FacilityError
from .simulator import SimulatedAir

ResultsCallback = Callable[[], None]

log = logging.getLogger("beacon.facility")


class ScanFacility(ABC):
    @abstractmethod
    def subscribe(self, on_results_available: ResultsCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def unsubscribe(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def trigger_scan(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def current_results(self) -> List[str]:
        raise NotImplementedError


# ---------- mock (simulated air) ----------

class MockFacility(ScanFacility):
    """
    Reads a SimulatedAir. Each trigger snapshots the air and delivers the
    snapshot after `latency_s` on a timer thread, like a real scan would.
    """
    def __init__(self, air: SimulatedAir, latency_s: float = 0.1,
                 background: Sequence[str] = ()):
        self.air = air
        self.latency_s = max(0.0, float(latency_s))
        self.background = list(background)
        self._lock = threading.Lock()
        self._cb: Optional[ResultsCallback] = None
        self._results: List[str] = []

    def subscribe(self, on_results_available: ResultsCallback) -> None:
        with self._lock:
            self._cb = on_results_available

    def unsubscribe(self) -> None:
        with self._lock:
            if self._cb is None:
                raise FacilityError("not subscribed")
            self._cb = None

    def trigger_scan(self) -> None:
        snapshot = self.background + self.air.visible_names()
        t = threading.Timer(self.latency_s, self._deliver, args=(snapshot,))
        t.daemon = True
        t.start()

    def _deliver(self, snapshot: List[str]) -> None:
        with self._lock:
            self._results = snapshot
            cb = self._cb
        if cb is not None:
            cb()

    def current_results(self) -> List[str]:
        with self._lock:
            return list(self._results)


# ---------- NetworkManager (nmcli) ----------

def parse_nmcli_terse(output: str) -> List[str]:
    """
    Parse `nmcli -t -f SSID device wifi list`. Terse mode escapes ':' and
    '\\' with a backslash; hidden networks show up as empty lines.
    """
    names: List[str] = []
    for line in output.splitlines():
        if not line:
            continue
        out, i = [], 0
        while i < len(line):
            ch = line[i]
            if ch == "\\" and i + 1 < len(line):
                out.append(line[i + 1])
                i += 2
                continue
            out.append(ch)
            i += 1
        names.append("".join(out))
    return names


class NmcliFacility(ScanFacility):
    """
    Wi-Fi scan through NetworkManager's CLI. One scan in flight at a time;
    a trigger while busy is dropped (the next periodic tick retries).
    """
    def __init__(self, binary: str = "nmcli", interface: Optional[str] = None,
                 timeout_s: float = 15.0):
        self.binary = binary
        self.interface = interface
        self.timeout_s = float(timeout_s)
        self._lock = threading.Lock()
        self._cb: Optional[ResultsCallback] = None
        self._results: List[str] = []
        self._busy = False
        self._exe: Optional[str] = None

    def subscribe(self, on_results_available: ResultsCallback) -> None:
        exe = shutil.which(self.binary)
        if not exe:
            raise FacilityError(f"{self.binary!r} not found on PATH")
        with self._lock:
            self._exe = exe
            self._cb = on_results_available

    def unsubscribe(self) -> None:
        with self._lock:
            if self._cb is None:
                raise FacilityError("not subscribed")
            self._cb = None

    def trigger_scan(self) -> None:
        with self._lock:
            if self._exe is None:
                raise FacilityError("trigger_scan before subscribe")
            if self._busy:
                log.debug("scan_in_flight")
                return
            self._busy = True
        t = threading.Thread(target=self._scan, name="NmcliScan", daemon=True)
        t.start()

    def _cmd(self, *args: str) -> List[str]:
        cmd = [self._exe or self.binary, *args]
        if self.interface:
            cmd += ["ifname", self.interface]
        return cmd

    def _scan(self) -> None:
        try:
            rescan = subprocess.run(
                self._cmd("device", "wifi", "rescan"),
                capture_output=True, text=True, timeout=self.timeout_s,
            )
            if rescan.returncode != 0:
                # NetworkManager refuses a rescan while another is running
                log.debug("rescan_refused", extra={"err": rescan.stderr.strip()})

            listing = subprocess.run(
                self._cmd("-t", "-f", "SSID", "device", "wifi", "list", "--rescan", "no"),
                capture_output=True, text=True, timeout=self.timeout_s,
            )
            if listing.returncode != 0:
                log.warning("list_failed", extra={"rc": listing.returncode, "err": listing.stderr.strip()})
                return
            names = parse_nmcli_terse(listing.stdout)
        except (OSError, subprocess.SubprocessError) as e:
            log.warning("scan_error", extra={"err": str(e)})
            return
        finally:
            with self._lock:
                self._busy = False

        with self._lock:
            self._results = names
            cb = self._cb
        if cb is not None:
            cb()

    def current_results(self) -> List[str]:
        with self._lock:
            return list(self._results)


# ---------- factory ----------

def build_facility(facility_cfg: Dict[str, Any], air: Optional[SimulatedAir] = None) -> ScanFacility:
    """Build the facility named by facility.type ('mock' | 'nmcli')."""
    cfg = facility_cfg or {}
    kind = str(cfg.get("type", "mock")).lower()

    if kind == "mock":
        mock = cfg.get("mock", {}) or {}
        return MockFacility(
            air if air is not None else SimulatedAir(),
            latency_s=float(mock.get("latency_ms", 100)) / 1000.0,
            background=[str(x) for x in (mock.get("background") or [])],
        )

    if kind == "nmcli":
        nm = cfg.get("nmcli", {}) or {}
        return NmcliFacility(
            binary=str(nm.get("binary", "nmcli")),
            interface=nm.get("interface"),
            timeout_s=float(nm.get("timeout_s", 15.0)),
        )

    raise ValueError(f"Unknown facility.type: {kind}")
