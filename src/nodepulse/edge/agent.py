"""
NodePulse Agent - Main Daemon.

Runs one collection pass per sampling interval, delivers each document
through the transport chain and drains the retry queue in the background.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from ..utils import setup_logging
from .collector import CollectionError, MetricsCollector
from .collectors import DockerCollector, SystemCounterSource
from .config import AgentConfig
from .models import MetricDocument
from .retry import DeadLetterStore, RetryDrainer, RetryQueue
from .sender import DeliveryCoordinator, default_transports

logger = logging.getLogger(__name__)


def build_collector(config: AgentConfig) -> MetricsCollector:
    """psutil-backed collector for this host."""
    return MetricsCollector(
        agent_id=config.agent_id,
        source=SystemCounterSource(),
        docker=DockerCollector(
            socket_path=config.docker_socket,
            enabled=config.collect_docker,
        ),
        disk_path=config.disk_usage_path,
    )


class MetricsAgent:
    """
    Main agent daemon.

    Wires the collector, delivery coordinator and retry drainer together
    and drives them on a fixed interval.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        collector: Optional[MetricsCollector] = None,
        coordinator: Optional[DeliveryCoordinator] = None,
    ):
        """Initialize the agent."""
        self.config = config or AgentConfig.from_env()

        self.dead_letter = (
            DeadLetterStore(self.config.dead_letter_path)
            if self.config.dead_letter_path else None
        )

        self.retry_queue = RetryQueue(
            max_retries=self.config.max_retries,
            capacity=self.config.retry_capacity,
            dead_letter=self.dead_letter,
        )

        self.collector = collector or build_collector(self.config)

        self.coordinator = coordinator or DeliveryCoordinator(
            transports=default_transports(self.config),
            retry_queue=self.retry_queue,
            timeout=self.config.transport_timeout,
        )
        self.retry_queue = self.coordinator.retry_queue

        self.drainer = RetryDrainer(
            queue=self.retry_queue,
            coordinator=self.coordinator,
            period=self.config.retry_drain_period,
            redelivery_delay=self.config.retry_redelivery_delay,
        )

        self.passes = 0
        self.skipped = 0

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None

        # In-flight deliveries started by the collection loop
        self._deliveries: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the collection loop and the retry drainer."""
        if self._running:
            raise RuntimeError("Agent is already running")

        logger.info(f"Starting NodePulse agent {self.config.agent_id}")
        logger.info(
            f"Target {self.config.host}: HTTP/WebSocket {self.config.primary_port}, "
            f"UDP {self.config.datagram_port}"
        )

        self._running = True
        self._stopped = asyncio.Event()

        # Baseline the rate samplers so the first pass reports rates
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.collector.prime)

        self.drainer.start()
        self._task = asyncio.create_task(self._collection_loop())

    async def run(self):
        """Start, then block until stop() is called or a signal arrives."""
        await self.start()

        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._on_signal)
            except NotImplementedError:
                # Signal handlers are unavailable on Windows event loops
                pass

        await self._stopped.wait()

    def _on_signal(self):
        """Signal handler: schedule stop() once and keep a reference to it."""
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.create_task(self.stop())

    async def stop(self):
        """Stop the agent, abandoning any undelivered retry entries."""
        if not self._running:
            return

        logger.info("Stopping NodePulse agent...")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._deliveries:
            logger.info(f"Cancelling {len(self._deliveries)} in-flight deliveries")
            for task in list(self._deliveries):
                task.cancel()
            await asyncio.gather(*self._deliveries, return_exceptions=True)
            self._deliveries.clear()

        await self.drainer.stop()

        abandoned = self.retry_queue.clear()
        if abandoned:
            logger.warning(f"Abandoned {abandoned} undelivered documents")

        await self.coordinator.close()
        if self.dead_letter:
            self.dead_letter.close()

        if self._stopped:
            self._stopped.set()

        logger.info("NodePulse agent stopped")

    async def collect_and_send(self) -> Optional[bool]:
        """
        Run one pass. Returns None if no document could be collected,
        otherwise whether it was delivered.
        """
        document = await self._collect()
        if document is None:
            return None
        return await self._deliver(document)

    async def _collect(self) -> Optional[MetricDocument]:
        try:
            document = await self.collector.collect()
        except CollectionError as e:
            self.skipped += 1
            logger.error(f"Skipping collection pass: {e}")
            return None

        self.passes += 1
        return document

    async def _deliver(self, document: MetricDocument) -> bool:
        delivered = await self.coordinator.deliver(document)
        if delivered:
            logger.debug(f"Metrics sent at {document.timestamp_iso}")
        return delivered

    def _spawn_delivery(self, document: MetricDocument) -> asyncio.Task:
        """Deliver in the background so a slow endpoint never delays the next pass."""
        task = asyncio.create_task(self._deliver(document))
        self._deliveries.add(task)
        task.add_done_callback(self._delivery_done)
        return task

    def _delivery_done(self, task: asyncio.Task):
        self._deliveries.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Delivery error: {task.exception()}")

    async def _collection_loop(self):
        """
        Collect once per sampling interval, starting one interval after
        priming. Passes are scheduled against the loop's monotonic clock,
        so collection time does not push later passes back. Ticks missed
        while a pass overran are skipped rather than run back to back.
        """
        loop = asyncio.get_event_loop()
        interval = self.config.sampling_interval
        next_tick = loop.time()

        while self._running:
            next_tick += interval
            await asyncio.sleep(max(0, next_tick - loop.time()))

            try:
                document = await self._collect()
                if document is not None:
                    self._spawn_delivery(document)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Collection pass error: {e}")

            lag = loop.time() - next_tick
            if lag >= interval:
                missed = int(lag // interval)
                next_tick += missed * interval
                logger.warning(f"Collection pass overran, skipping {missed} ticks")


def run_agent(config_path: Optional[str] = None):
    """Run the agent until interrupted."""
    if config_path:
        config = AgentConfig.from_yaml(config_path)
    else:
        config = AgentConfig.from_env()

    setup_logging(config.log_level, config.log_file)
    agent = MetricsAgent(config)

    try:
        asyncio.run(agent.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    run_agent(config_path)
