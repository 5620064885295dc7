"""
System Counter Source.

Reads raw CPU, memory, disk, network and process counters using psutil.
Every method is blocking and is meant to run in an executor.
"""

import time
from dataclasses import dataclass
import psutil

from ..models import CounterSample, CpuTimes

DISK = "disk"
NETWORK = "network"


@dataclass
class MemoryReading:
    """Raw memory figures in bytes."""
    total: int
    available: int


@dataclass
class DiskUsageReading:
    """Raw filesystem usage in bytes."""
    total: int
    used: int
    free: int


@dataclass
class ProcessReading:
    """Process counts by state."""
    total: int
    running: int
    sleeping: int


class SystemCounterSource:
    """Reads cumulative host counters using psutil."""

    def read_cpu_times(self) -> list[CpuTimes]:
        """Per-core cumulative tick buckets."""
        cores = []
        for times in psutil.cpu_times(percpu=True):
            cores.append(CpuTimes(
                user=times.user,
                nice=getattr(times, 'nice', 0.0),
                system=times.system,
                idle=times.idle,
                irq=getattr(times, 'irq', 0.0),
            ))
        return cores

    def read_load_average(self) -> tuple[float, float, float]:
        return psutil.getloadavg()

    def read_memory(self) -> MemoryReading:
        mem = psutil.virtual_memory()
        return MemoryReading(total=mem.total, available=mem.available)

    def read_disk_usage(self, path: str = "/") -> DiskUsageReading:
        usage = psutil.disk_usage(path)
        return DiskUsageReading(total=usage.total, used=usage.used, free=usage.free)

    def read_counters(self, kind: str) -> dict[str, CounterSample]:
        """
        Snapshot cumulative counters for every device of ``kind``.

        Disk counters are read/write bytes, network counters are
        received/sent bytes. Filtering is left to the sampler.
        """
        now = time.time()

        if kind == DISK:
            counters = psutil.disk_io_counters(perdisk=True) or {}
            return {
                name: CounterSample(io.read_bytes, io.write_bytes, now)
                for name, io in counters.items()
            }

        if kind == NETWORK:
            counters = psutil.net_io_counters(pernic=True) or {}
            return {
                name: CounterSample(stats.bytes_recv, stats.bytes_sent, now)
                for name, stats in counters.items()
            }

        raise ValueError(f"Unknown counter kind: {kind}")

    def read_process_states(self) -> ProcessReading:
        """Count processes by state; disk sleep counts as sleeping."""
        total = running = sleeping = 0

        for proc in psutil.process_iter(['status']):
            status = proc.info.get('status')
            total += 1
            if status == psutil.STATUS_RUNNING:
                running += 1
            elif status in (psutil.STATUS_SLEEPING, psutil.STATUS_DISK_SLEEP):
                sleeping += 1

        return ProcessReading(total=total, running=running, sleeping=sleeping)

    def read_uptime(self) -> float:
        return time.time() - psutil.boot_time()
