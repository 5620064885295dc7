"""
Metrics Collector.

Runs one sampling pass across CPU, memory, disk, network, processes and
containers, and assembles the MetricDocument for that pass.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .collectors import DISK, NETWORK, DockerCollector, SystemCounterSource
from .devices import DISK_FILTER, NETWORK_FILTER
from .models import (
    CpuStats,
    DiskStats,
    DockerStats,
    MemoryStats,
    MetricDocument,
    NetworkStats,
    ProcessStats,
)
from .sampling import CpuSampler, RateSampler

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class CollectionError(Exception):
    """Mandatory counters (CPU or memory) could not be read."""


class MetricsCollector:
    """
    Orchestrates a sampling pass.

    Sub-collections touch disjoint resources and run concurrently in the
    default executor; the pass joins on all of them before the document
    is built. Each stateful sampler is owned here and fed by exactly one
    sub-collection, and passes are serialized, so samplers never see
    concurrent calls.
    """

    def __init__(
        self,
        agent_id: str,
        source: Optional[SystemCounterSource] = None,
        docker: Optional[DockerCollector] = None,
        disk_path: str = "/",
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the collector."""
        self.agent_id = agent_id
        self.source = source or SystemCounterSource()
        self.docker = docker
        self.disk_path = disk_path
        self.clock = clock

        self.cpu_sampler = CpuSampler()
        self.disk_sampler = RateSampler(DISK, DISK_FILTER)
        self.network_sampler = RateSampler(NETWORK, NETWORK_FILTER)

        self._lock = asyncio.Lock()

    def prime(self) -> None:
        """Record baselines so the next pass can report rates."""
        for name, step in (
            ("cpu", lambda: self.cpu_sampler.sample(self.source.read_cpu_times(), self.clock())),
            (DISK, lambda: self.disk_sampler.sample(self.source.read_counters(DISK), self.clock())),
            (NETWORK, lambda: self.network_sampler.sample(self.source.read_counters(NETWORK), self.clock())),
        ):
            try:
                step()
            except Exception as e:
                logger.warning(f"Could not take {name} baseline: {e}")

    async def collect(self) -> MetricDocument:
        """
        Collect all metrics for one pass.

        Raises CollectionError if CPU or memory counters are unreadable;
        every other failure degrades its section to zeros or None.
        """
        async with self._lock:
            loop = asyncio.get_event_loop()

            (cpu, memory, disk_usage, disk_io, network,
             processes, docker, uptime) = await asyncio.gather(
                loop.run_in_executor(None, self._collect_cpu),
                loop.run_in_executor(None, self._collect_memory),
                loop.run_in_executor(None, self._collect_disk_usage),
                loop.run_in_executor(None, self._collect_disk_io),
                loop.run_in_executor(None, self._collect_network),
                loop.run_in_executor(None, self._collect_processes),
                loop.run_in_executor(None, self._collect_docker),
                loop.run_in_executor(None, self.source.read_uptime),
                return_exceptions=True,
            )

        if isinstance(cpu, BaseException):
            raise CollectionError(f"CPU counters unavailable: {cpu}") from cpu
        if isinstance(memory, BaseException):
            raise CollectionError(f"Memory counters unavailable: {memory}") from memory

        disk_usage = self._degrade("disk usage", disk_usage, DiskStats())
        disk_io = self._degrade("disk I/O", disk_io, (0, 0))
        network = self._degrade("network", network, NetworkStats())
        processes = self._degrade("processes", processes, ProcessStats())
        docker = self._degrade("docker", docker, None)
        uptime = self._degrade("uptime", uptime, 0.0)

        return MetricDocument(
            agent_id=self.agent_id,
            timestamp=datetime.fromtimestamp(self.clock(), tz=timezone.utc),
            cpu=cpu,
            memory=memory,
            disk=DiskStats(
                total=disk_usage.total,
                used=disk_usage.used,
                free=disk_usage.free,
                usage=disk_usage.usage,
                read=disk_io[0],
                write=disk_io[1],
            ),
            network=network,
            processes=processes,
            docker=docker,
            uptime=round(uptime),
        )

    def _degrade(self, name: str, result: Any, fallback: Any) -> Any:
        if isinstance(result, BaseException):
            logger.warning(f"{name} collection failed: {result}")
            return fallback
        return result

    def _collect_cpu(self) -> CpuStats:
        """Collect CPU usage from tick deltas plus load averages."""
        shares = self.cpu_sampler.sample(self.source.read_cpu_times(), self.clock())

        try:
            load1, load5, load15 = self.source.read_load_average()
        except (OSError, AttributeError):
            load1 = load5 = load15 = 0.0

        if shares is None:
            user, system, idle = 0.0, 0.0, 1.0
        else:
            user, system, idle = shares

        return CpuStats(
            usage=round((1 - idle) * 100, 2),
            user=round(user * 100, 2),
            system=round(system * 100, 2),
            idle=round(idle * 100, 2),
            load1=round(load1, 2),
            load5=round(load5, 2),
            load15=round(load15, 2),
        )

    def _collect_memory(self) -> MemoryStats:
        """Collect memory metrics."""
        mem = self.source.read_memory()
        used = mem.total - mem.available

        return MemoryStats(
            total=round(mem.total / MB),
            free=round(mem.available / MB),
            used=round(used / MB),
            usage=round(used / mem.total * 100, 2) if mem.total else 0.0,
        )

    def _collect_disk_usage(self) -> DiskStats:
        """Collect filesystem usage for the configured path."""
        usage = self.source.read_disk_usage(self.disk_path)

        return DiskStats(
            total=round(usage.total / MB),
            used=round(usage.used / MB),
            free=round(usage.free / MB),
            usage=round(usage.used / usage.total * 100, 2) if usage.total else 0.0,
        )

    def _collect_disk_io(self) -> tuple[int, int]:
        rate = self.disk_sampler.sample(self.source.read_counters(DISK), self.clock())
        return rate.in_rate, rate.out_rate

    def _collect_network(self) -> NetworkStats:
        rate = self.network_sampler.sample(self.source.read_counters(NETWORK), self.clock())
        return NetworkStats(in_rate=rate.in_rate, out_rate=rate.out_rate)

    def _collect_processes(self) -> ProcessStats:
        reading = self.source.read_process_states()
        return ProcessStats(
            total=reading.total,
            running=reading.running,
            sleeping=reading.sleeping,
        )

    def _collect_docker(self) -> Optional[DockerStats]:
        if self.docker is None:
            return None
        return self.docker.census()
