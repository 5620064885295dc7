"""
NodePulse Edge Agent - host metrics sampling and delivery.

Samples host counters, turns them into rates and delivers the resulting
metric documents over HTTP, WebSocket or UDP with a bounded retry queue.
"""

from .agent import MetricsAgent, build_collector
from .collector import CollectionError, MetricsCollector
from .config import AgentConfig
from .devices import DeviceFilter, DISK_FILTER, NETWORK_FILTER
from .models import CounterSample, MetricDocument, RateResult
from .retry import DeadLetterStore, RetryDrainer, RetryEntry, RetryQueue
from .sampling import CpuSampler, RateSampler
from .sender import DeliveryCoordinator

__all__ = [
    "MetricsAgent",
    "build_collector",
    "MetricsCollector",
    "CollectionError",
    "AgentConfig",
    "DeviceFilter",
    "DISK_FILTER",
    "NETWORK_FILTER",
    "CounterSample",
    "MetricDocument",
    "RateResult",
    "RateSampler",
    "CpuSampler",
    "DeliveryCoordinator",
    "RetryEntry",
    "RetryQueue",
    "RetryDrainer",
    "DeadLetterStore",
]
