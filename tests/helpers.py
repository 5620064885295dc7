"""Test doubles and builders."""

import asyncio
from datetime import datetime, timezone

from nodepulse.edge.models import (
    CpuStats,
    DiskStats,
    DockerStats,
    MemoryStats,
    MetricDocument,
    NetworkStats,
    ProcessStats,
)
from nodepulse.edge.transports import Transport


def make_document(agent_id: str = "node-1", second: int = 0) -> MetricDocument:
    """Build a small, fully populated metric document."""
    return MetricDocument(
        agent_id=agent_id,
        timestamp=datetime(2024, 5, 1, 12, 0, second, tzinfo=timezone.utc),
        cpu=CpuStats(usage=12.5, user=10.0, system=2.5, idle=87.5, load1=0.5, load5=0.4, load15=0.3),
        memory=MemoryStats(total=8192, free=4096, used=4096, usage=50.0),
        disk=DiskStats(total=100000, used=25000, free=75000, usage=25.0, read=1024, write=512),
        network=NetworkStats(in_rate=64, out_rate=32),
        processes=ProcessStats(total=120, running=2, sleeping=110),
        docker=DockerStats(containers=3, running=2, paused=0, stopped=1),
        uptime=3600,
    )


class FakeTransport(Transport):
    """Transport with a scripted outcome that records its calls."""

    def __init__(self, name: str, outcome=True, delay: float = 0.0):
        self.name = name
        self.outcome = outcome
        self.delay = delay
        self.calls = []
        self.closed = False

    async def send(self, document, timeout):
        self.calls.append(document)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    async def close(self):
        self.closed = True
