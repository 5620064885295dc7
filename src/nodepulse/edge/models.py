"""
Metric data model.

Counter samples consumed by the rate samplers and the metric document
that is sent to the collection endpoint.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CounterSample:
    """Cumulative in/out counters for one device or interface."""
    bytes_in: int
    bytes_out: int
    captured_at: float


@dataclass(frozen=True)
class RateResult:
    """In/out rates in KB/s."""
    in_rate: int = 0
    out_rate: int = 0


@dataclass(frozen=True)
class CpuTimes:
    """Cumulative tick buckets for one core."""
    user: float
    nice: float
    system: float
    idle: float
    irq: float = 0.0

    @property
    def total(self) -> float:
        return self.user + self.nice + self.system + self.idle + self.irq


@dataclass(frozen=True)
class CpuStats:
    """CPU usage percentages and load averages."""
    usage: float
    user: float
    system: float
    idle: float
    load1: float
    load5: float
    load15: float


@dataclass(frozen=True)
class MemoryStats:
    """Memory snapshot, sizes in MB."""
    total: int
    free: int
    used: int
    usage: float


@dataclass(frozen=True)
class DiskStats:
    """Disk usage in MB plus aggregate I/O rates in KB/s."""
    total: int = 0
    used: int = 0
    free: int = 0
    usage: float = 0.0
    read: int = 0
    write: int = 0


@dataclass(frozen=True)
class NetworkStats:
    """Aggregate network rates in KB/s."""
    in_rate: int = 0
    out_rate: int = 0


@dataclass(frozen=True)
class ProcessStats:
    """Process-state census."""
    total: int = 0
    running: int = 0
    sleeping: int = 0


@dataclass(frozen=True)
class DockerStats:
    """Container census."""
    containers: int
    running: int
    paused: int
    stopped: int


@dataclass(frozen=True)
class MetricDocument:
    """
    One complete sampling pass.

    Immutable once built; serialized with camelCase ``agentId`` and an
    ISO-8601 timestamp so the collection endpoint can store it as-is.
    """
    agent_id: str
    timestamp: datetime
    cpu: CpuStats
    memory: MemoryStats
    disk: DiskStats
    network: NetworkStats
    processes: ProcessStats
    docker: Optional[DockerStats]
    uptime: float

    @property
    def timestamp_iso(self) -> str:
        return self.timestamp.isoformat()

    def to_dict(self) -> dict:
        """Convert to the wire format."""
        return {
            'agentId': self.agent_id,
            'timestamp': self.timestamp_iso,
            'cpu': {
                'usage': self.cpu.usage,
                'user': self.cpu.user,
                'system': self.cpu.system,
                'idle': self.cpu.idle,
                'load1': self.cpu.load1,
                'load5': self.cpu.load5,
                'load15': self.cpu.load15,
            },
            'memory': {
                'total': self.memory.total,
                'free': self.memory.free,
                'used': self.memory.used,
                'usage': self.memory.usage,
            },
            'disk': {
                'total': self.disk.total,
                'used': self.disk.used,
                'free': self.disk.free,
                'usage': self.disk.usage,
                'read': self.disk.read,
                'write': self.disk.write,
            },
            'network': {
                'in': self.network.in_rate,
                'out': self.network.out_rate,
            },
            'processes': {
                'total': self.processes.total,
                'running': self.processes.running,
                'sleeping': self.processes.sleeping,
            },
            'docker': {
                'containers': self.docker.containers,
                'running': self.docker.running,
                'paused': self.docker.paused,
                'stopped': self.docker.stopped,
            } if self.docker else None,
            'uptime': self.uptime,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
