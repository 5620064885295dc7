"""
NodePulse Collectors.

Each collector reads raw counters from the host system.
"""

from .system import SystemCounterSource, DISK, NETWORK
from .docker import DockerCollector

__all__ = [
    "SystemCounterSource",
    "DockerCollector",
    "DISK",
    "NETWORK",
]
