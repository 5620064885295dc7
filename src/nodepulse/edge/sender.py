"""
Delivery Coordinator.

Sends each MetricDocument through an ordered chain of transports and
stops at the first one that succeeds. Confirmable transports come first;
UDP, which has no acknowledgment, is the last resort. When every
transport fails the document goes to the retry queue.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import AgentConfig
from .models import MetricDocument
from .retry import RetryEntry, RetryQueue
from .transports import HttpTransport, Transport, UdpTransport, WebSocketTransport

logger = logging.getLogger(__name__)


@dataclass
class TransportStats:
    """Outcome counters for one transport."""
    successes: int = 0
    failures: int = 0
    timeouts: int = 0


@dataclass
class DeliveryResult:
    """Result of one attempt cycle."""
    delivered: bool
    transport: Optional[str] = None
    errors: dict = field(default_factory=dict)


def default_transports(config: AgentConfig) -> list[Transport]:
    """HTTP, then WebSocket, then UDP."""
    return [
        HttpTransport(config.host, config.primary_port),
        WebSocketTransport(config.host, config.primary_port, config.websocket_path),
        UdpTransport(config.host, config.datagram_port),
    ]


class DeliveryCoordinator:
    """
    Tries transports in priority order for each document.

    Different documents may be delivered concurrently; for a single
    document the transports are always tried one at a time, in order,
    and at most one of them wins.
    """

    def __init__(
        self,
        transports: list[Transport],
        retry_queue: Optional[RetryQueue] = None,
        timeout: float = 5.0,
    ):
        """Initialize the coordinator."""
        self.transports = list(transports)
        self.retry_queue = retry_queue if retry_queue is not None else RetryQueue()
        self.timeout = timeout

        self.delivered = 0
        self.failed = 0
        self._transport_stats = {t.name: TransportStats() for t in self.transports}

    async def deliver(self, document: MetricDocument) -> bool:
        """Deliver a fresh document; queue it for retry if nothing works."""
        result = await self.attempt(document)
        if result.delivered:
            return True

        logger.warning(f"All transports failed for document {document.timestamp_iso}, queueing for retry")
        self.retry_queue.enqueue(RetryEntry(document=document, attempt_count=1))
        return False

    async def redeliver(self, entry: RetryEntry) -> bool:
        """Deliver a drained retry entry, handing it back to the queue on failure."""
        result = await self.attempt(entry.document)
        if result.delivered:
            logger.info(f"Delivered queued document via {result.transport} on attempt {entry.attempt_count + 1}")
            return True

        # May write a dead letter to SQLite
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.retry_queue.retry_failed, entry)
        return False

    async def attempt(self, document: MetricDocument) -> DeliveryResult:
        """Run one attempt cycle through the transport chain."""
        errors = {}

        for transport in self.transports:
            stats = self._transport_stats.setdefault(transport.name, TransportStats())

            try:
                success = await asyncio.wait_for(
                    transport.send(document, self.timeout),
                    self.timeout,
                )
            except asyncio.TimeoutError:
                stats.timeouts += 1
                success = False
                errors[transport.name] = "timeout"
                logger.warning(f"{transport.name} timed out after {self.timeout}s")
            except Exception as e:
                success = False
                errors[transport.name] = str(e)
                logger.warning(f"{transport.name} send error: {e}")

            if success:
                stats.successes += 1
                self.delivered += 1
                logger.debug(f"Metrics sent via {transport.name}")
                return DeliveryResult(delivered=True, transport=transport.name, errors=errors)

            stats.failures += 1
            errors.setdefault(transport.name, "failed")

        self.failed += 1
        return DeliveryResult(delivered=False, errors=errors)

    def get_stats(self) -> dict:
        return {
            'delivered': self.delivered,
            'failed': self.failed,
            'transports': {
                name: {
                    'successes': s.successes,
                    'failures': s.failures,
                    'timeouts': s.timeouts,
                }
                for name, s in self._transport_stats.items()
            },
            'retry_queue': self.retry_queue.get_stats(),
        }

    async def close(self):
        """Close transport connections."""
        for transport in self.transports:
            try:
                await transport.close()
            except Exception as e:
                logger.debug(f"Error closing {transport.name}: {e}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
