"""Stopwatch used to time an attempt and turn it into a score.

The authoritative elapsed time is always derived from a monotonic clock
(``now - reference`` while running, a frozen value otherwise). Periodic
sampling only exists to push display ticks and never feeds back into the
measured value.
"""

import random
import string
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from sportsday.errors import RecordNotFound

IDLE = 'idle'
RUNNING = 'running'
STOPPED = 'stopped'


def format_elapsed(ms: int) -> str:
    """MM:SS.cc, e.g. 83456 -> '01:23.45'."""
    ms = max(0, int(ms))
    minutes = ms // 60000
    seconds = (ms % 60000) // 1000
    centis = (ms % 1000) // 10
    return f"{minutes:02d}:{seconds:02d}.{centis:02d}"


class Stopwatch:
    def __init__(self, clock: Optional[Callable[[], float]] = None, sample_interval: float = 0.01,
                 sleep: Optional[Callable[[float], None]] = None):
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self.sample_interval = sample_interval
        self.state = IDLE
        self._reference_ms = 0.0
        self._frozen_ms = 0.0
        self._laps: List[int] = []
        self._run_id = 0
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _elapsed_exact(self) -> float:
        if self.state == RUNNING:
            return max(0.0, self._now_ms() - self._reference_ms)
        return self._frozen_ms

    @property
    def elapsed_ms(self) -> int:
        return int(self._elapsed_exact())

    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed_ms / 1000

    @property
    def laps(self) -> Tuple[int, ...]:
        return tuple(self._laps)

    def start(self) -> bool:
        """idle/stopped -> running, resuming from the current elapsed value."""
        with self._lock:
            if self.state == RUNNING:
                return False
            self._reference_ms = self._now_ms() - self._frozen_ms
            self.state = RUNNING
            self._run_id += 1
            return True

    def stop(self) -> bool:
        with self._lock:
            if self.state != RUNNING:
                return False
            self._frozen_ms = self._elapsed_exact()
            self.state = STOPPED
            return True

    def lap(self) -> Optional[int]:
        """Record the current elapsed time. Ignored unless running."""
        with self._lock:
            if self.state != RUNNING:
                return None
            mark = self.elapsed_ms
            self._laps.append(mark)
            return mark

    def reset(self) -> None:
        with self._lock:
            self.state = IDLE
            self._frozen_ms = 0.0
            self._reference_ms = 0.0
            self._laps = []

    def _is_current(self, run_id: int) -> bool:
        return self.state == RUNNING and self._run_id == run_id

    def run_sampler(self, on_tick: Callable[[int], None]) -> int:
        """Call ``on_tick(elapsed_ms)`` every interval for the current run.

        Blocks until the watch leaves ``running`` (or is restarted, which
        belongs to a newer sampler) and returns the number of ticks sent.
        """
        run_id = self._run_id
        ticks = 0
        while self._is_current(run_id):
            self._sleep(self.sample_interval)
            if not self._is_current(run_id):
                break
            on_tick(self.elapsed_ms)
            ticks += 1
        return ticks

    def to_dict(self) -> Dict[str, object]:
        elapsed = self.elapsed_ms
        return {
            'state': self.state,
            'elapsedMs': elapsed,
            'elapsed': format_elapsed(elapsed),
            'laps': list(self._laps),
        }


def generate_stopwatch_code(taken, length: int = 4) -> str:
    """Generate a short code not already in ``taken``."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


class StopwatchRegistry:
    """Process-wide stopwatches shared by every connected device."""

    def __init__(self, sample_interval: float = 0.01, clock: Optional[Callable[[], float]] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.sample_interval = sample_interval
        self._clock = clock
        self._sleep = sleep
        self._watches: Dict[str, Stopwatch] = {}
        self._lock = threading.Lock()

    def create(self) -> Tuple[str, Stopwatch]:
        with self._lock:
            code = generate_stopwatch_code(self._watches)
            watch = Stopwatch(clock=self._clock, sample_interval=self.sample_interval, sleep=self._sleep)
            self._watches[code] = watch
        return code, watch

    def get(self, code: str) -> Stopwatch:
        watch = self._watches.get((code or '').upper())
        if watch is None:
            raise RecordNotFound(f"No stopwatch with code {code}")
        return watch

    def discard(self, code: str) -> bool:
        with self._lock:
            watch = self._watches.pop((code or '').upper(), None)
        if watch is None:
            return False
        # leaving RUNNING ends any sampler still attached to it
        watch.reset()
        return True

    def __len__(self) -> int:
        return len(self._watches)
