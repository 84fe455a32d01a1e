"""Background package-power sampling from the RAPL energy counter."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable
from pathlib import Path

from ..console import get_logger
from ..models import PowerSummary
from ..utils import read_text, safe_float


logger = get_logger(__name__)

SAMPLE_INTERVAL = 5.0
POWERCAP_ZONES = ("intel-rapl:0", "amd-rapl:0")


def find_energy_counter(sys_root: Path = Path("/sys")) -> Path | None:
    """Readable package-0 ``energy_uj`` file, if any."""
    powercap = sys_root / "class" / "powercap"
    candidates = [powercap / zone / "energy_uj" for zone in POWERCAP_ZONES]
    candidates.extend(sorted(powercap.glob("*rapl*:0/energy_uj")))
    for candidate in candidates:
        if read_text(candidate):
            return candidate
    return None


class PowerSampler:
    """Poll an energy counter in a thread and average the resulting wattage.

    Samples are pushed onto an in-memory queue as they are taken; ``stop()``
    drains it and returns the average.
    """

    def __init__(
        self,
        counter: Path,
        interval: float = SAMPLE_INTERVAL,
        reader: Callable[[Path], str] = read_text,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.counter = counter
        self.interval = interval
        self._reader = reader
        self._clock = clock
        self._samples: queue.Queue[float] = queue.Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        max_range = safe_float(reader(counter.parent / "max_energy_range_uj"))
        self._max_range = max_range if max_range > 0 else 0.0

    def _read_energy(self) -> float | None:
        value = self._reader(self.counter)
        if not value:
            return None
        return safe_float(value) if value.isdigit() else None

    def _run(self) -> None:
        previous = self._read_energy()
        previous_time = self._clock()
        while not self._stop.wait(self.interval):
            current = self._read_energy()
            now = self._clock()
            if current is None or previous is None:
                previous, previous_time = current, now
                continue
            delta = current - previous
            if delta < 0 and self._max_range:
                delta += self._max_range
            elapsed = now - previous_time
            if delta >= 0 and elapsed > 0:
                # energy_uj is in microjoules
                self._samples.put(delta / 1_000_000 / elapsed)
            previous, previous_time = current, now

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="proxmark-power", daemon=True)
        self._thread.start()

    def stop(self) -> PowerSummary:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
        samples: list[float] = []
        while True:
            try:
                samples.append(self._samples.get_nowait())
            except queue.Empty:
                break
        average = sum(samples) / len(samples) if samples else 0.0
        logger.verbose("Power samples: %d, average %.1f W", len(samples), average)
        return PowerSummary(load_watts=round(average, 1), samples=len(samples), source=str(self.counter))

