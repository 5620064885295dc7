"""
Rate Samplers.

Turn successive snapshots of cumulative OS counters into rates. Each
sampler owns its previous snapshot, so there must be exactly one sampler
per resource kind and exactly one caller per sampler.
"""

import logging
from typing import Callable, Optional

from .models import CounterSample, CpuTimes, RateResult

logger = logging.getLogger(__name__)

# Intervals outside this window (seconds) are not trusted for a rate:
# too short is noise, too long is a pause, clock jump or system sleep.
MIN_INTERVAL = 0.1
MAX_INTERVAL = 60.0


def interval_is_reliable(elapsed: float) -> bool:
    return MIN_INTERVAL <= elapsed <= MAX_INTERVAL


class RateSampler:
    """
    Converts cumulative per-device counters into an aggregate rate.

    The first call only records a baseline and returns a zero rate. Every
    later call diffs against the previous snapshot, clamping per-device
    decreases (counter reset or wraparound) to zero, and returns KB/s.
    """

    def __init__(self, kind: str, include: Optional[Callable[[str], bool]] = None):
        """Initialize the sampler."""
        self.kind = kind
        self.include = include or (lambda name: True)

        self._previous: dict[str, CounterSample] = {}
        self._previous_time = 0.0
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def sample(self, snapshot: dict[str, CounterSample], now: float) -> RateResult:
        """Return the rate since the previous snapshot."""
        if not self._initialized:
            self._store(snapshot, now)
            self._initialized = True
            return RateResult(0, 0)

        elapsed = now - self._previous_time

        if not interval_is_reliable(elapsed):
            logger.debug(f"{self.kind}: unreliable interval {elapsed:.3f}s, re-baselining")
            self._store(snapshot, now)
            return RateResult(0, 0)

        total_in = 0
        total_out = 0

        for device, current in snapshot.items():
            previous = self._previous.get(device)
            if previous is None or not self.include(device):
                continue

            total_in += max(0, current.bytes_in - previous.bytes_in)
            total_out += max(0, current.bytes_out - previous.bytes_out)

        self._store(snapshot, now)

        return RateResult(
            in_rate=round(total_in / elapsed / 1024),
            out_rate=round(total_out / elapsed / 1024),
        )

    def reset(self) -> None:
        """Forget the baseline; the next call re-baselines."""
        self._previous = {}
        self._previous_time = 0.0
        self._initialized = False

    def _store(self, snapshot: dict[str, CounterSample], now: float) -> None:
        self._previous = dict(snapshot)
        self._previous_time = now


class CpuSampler:
    """
    Converts per-core cumulative tick buckets into user/system/idle shares.

    Same discipline as RateSampler: the first call and any unreliable
    interval re-baseline and return None. A change in core count (CPU
    hotplug) also re-baselines.
    """

    def __init__(self):
        self._previous: list[CpuTimes] = []
        self._previous_time = 0.0
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def sample(self, cores: list[CpuTimes], now: float) -> Optional[tuple[float, float, float]]:
        """
        Return (user, system, idle) as fractions of total time averaged
        over all cores, or None if there is no usable baseline yet.
        """
        if not self._initialized or len(cores) != len(self._previous):
            self._store(cores, now)
            self._initialized = True
            return None

        elapsed = now - self._previous_time
        if not interval_is_reliable(elapsed):
            logger.debug(f"cpu: unreliable interval {elapsed:.3f}s, re-baselining")
            self._store(cores, now)
            return None

        user = system = idle = 0.0
        counted = 0

        for prev, curr in zip(self._previous, cores):
            total_diff = curr.total - prev.total
            if total_diff <= 0:
                continue
            counted += 1
            user += max(0.0, curr.user - prev.user) / total_diff
            system += max(0.0, curr.system - prev.system) / total_diff
            idle += max(0.0, curr.idle - prev.idle) / total_diff

        self._store(cores, now)

        if counted == 0:
            return None
        return user / counted, system / counted, idle / counted

    def reset(self) -> None:
        self._previous = []
        self._previous_time = 0.0
        self._initialized = False

    def _store(self, cores: list[CpuTimes], now: float) -> None:
        self._previous = list(cores)
        self._previous_time = now
