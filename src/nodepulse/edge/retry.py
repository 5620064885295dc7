"""
Retry Queue.

Holds documents that no transport could deliver and re-attempts them on a
fixed schedule. The queue is bounded (oldest entries are dropped first)
and each entry gets a bounded number of attempts; documents that run out
of attempts are dropped and counted, and optionally written to a SQLite
dead-letter store.
"""

import asyncio
import json
import logging
import sqlite3
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .models import MetricDocument

if TYPE_CHECKING:
    from .sender import DeliveryCoordinator

logger = logging.getLogger(__name__)


@dataclass
class RetryEntry:
    """A document awaiting redelivery."""
    document: MetricDocument
    attempt_count: int = 1


@dataclass
class DeadLetter:
    """A document that exhausted its attempts."""
    id: int
    data: str
    attempts: int
    dropped_at: float


class DeadLetterStore:
    """SQLite store for documents dropped after their last attempt."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS dead_letters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        agent_id TEXT NOT NULL,
        data TEXT NOT NULL,
        attempts INTEGER NOT NULL,
        dropped_at REAL NOT NULL
    );
    """

    def __init__(self, path: str):
        """Initialize the store."""
        self.path = path
        self._lock = threading.Lock()

        # Ensure directory exists
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.executescript(self.SCHEMA)
        self._conn.commit()

    def add(self, entry: RetryEntry) -> int:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO dead_letters (agent_id, data, attempts, dropped_at)
                VALUES (?, ?, ?, ?)
                """,
                (entry.document.agent_id, entry.document.to_json(), entry.attempt_count, time.time())
            )
            self._conn.commit()
            return cursor.lastrowid

    def count(self) -> int:
        with self._lock:
            cursor = self._conn.execute("SELECT COUNT(*) FROM dead_letters")
            return cursor.fetchone()[0]

    def get_batch(self, limit: int = 100) -> list[DeadLetter]:
        """Oldest dead letters first."""
        with self._lock:
            cursor = self._conn.execute(
                """
                SELECT id, data, attempts, dropped_at
                FROM dead_letters
                ORDER BY id ASC
                LIMIT ?
                """,
                (limit,)
            )
            return [DeadLetter(*row) for row in cursor.fetchall()]

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


class RetryQueue:
    """
    Bounded FIFO of undelivered documents.

    Producers are the collection passes, the consumer is the drainer;
    every operation holds a single lock. ``drain_one`` and ``retry_failed``
    may write to the dead-letter store, so async callers run them in the
    executor.
    """

    def __init__(
        self,
        max_retries: int = 3,
        capacity: int = 1000,
        dead_letter: Optional[DeadLetterStore] = None,
    ):
        """Initialize the queue."""
        self.max_retries = max_retries
        self.capacity = capacity
        self.dead_letter = dead_letter

        self._entries: deque[RetryEntry] = deque()
        self._lock = threading.Lock()

        self.enqueued = 0
        self.overflowed = 0
        self.exhausted = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def enqueue(self, entry: RetryEntry) -> None:
        """Add an entry, dropping the oldest one if the queue is full."""
        with self._lock:
            if len(self._entries) >= self.capacity:
                oldest = self._entries.popleft()
                self.overflowed += 1
                logger.warning(
                    f"Retry queue full ({self.capacity}), dropped oldest document "
                    f"from {oldest.document.timestamp_iso}"
                )
            self._entries.append(entry)
            self.enqueued += 1
            size = len(self._entries)

        logger.info(f"Queued document for retry (attempt {entry.attempt_count}, {size} queued)")

    def drain_one(self) -> Optional[RetryEntry]:
        """Pop the oldest entry that still has attempts left."""
        while True:
            with self._lock:
                if not self._entries:
                    return None
                entry = self._entries.popleft()

            if entry.attempt_count < self.max_retries:
                return entry
            self._drop(entry)

    def retry_failed(self, entry: RetryEntry) -> bool:
        """
        Record a failed redelivery. Returns True if the entry was queued
        again, False if it ran out of attempts and was dropped.
        """
        entry.attempt_count += 1
        if entry.attempt_count >= self.max_retries:
            self._drop(entry)
            return False
        self.enqueue(entry)
        return True

    def clear(self) -> int:
        """Abandon every queued entry; returns how many were discarded."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def get_stats(self) -> dict:
        with self._lock:
            return {
                'queued': len(self._entries),
                'capacity': self.capacity,
                'max_retries': self.max_retries,
                'enqueued': self.enqueued,
                'overflowed': self.overflowed,
                'exhausted': self.exhausted,
            }

    def _drop(self, entry: RetryEntry) -> None:
        with self._lock:
            self.exhausted += 1

        logger.warning(
            f"Dropping document from {entry.document.timestamp_iso} "
            f"after {entry.attempt_count} attempts"
        )

        if self.dead_letter is not None:
            try:
                self.dead_letter.add(entry)
            except sqlite3.Error as e:
                logger.error(f"Failed to write dead letter: {e}")


class RetryDrainer:
    """
    Scheduled task that drains the retry queue.

    Each firing takes at most one entry and redelivers it after a short
    delay, so a still-down endpoint is not hammered.
    """

    def __init__(
        self,
        queue: RetryQueue,
        coordinator: "DeliveryCoordinator",
        period: float = 10.0,
        redelivery_delay: float = 2.0,
    ):
        """Initialize the drainer."""
        self.queue = queue
        self.coordinator = coordinator
        self.period = period
        self.redelivery_delay = redelivery_delay
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the drain loop, including any in-flight redelivery."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_once(self) -> Optional[bool]:
        """
        Redeliver one entry. Returns None if the queue was empty,
        otherwise whether the redelivery succeeded.
        """
        loop = asyncio.get_event_loop()
        entry = await loop.run_in_executor(None, self.queue.drain_one)
        if entry is None:
            return None

        logger.info(f"Retrying document (attempt {entry.attempt_count + 1}, {len(self.queue)} remaining)")
        await asyncio.sleep(self.redelivery_delay)
        return await self.coordinator.redeliver(entry)

    async def _run(self):
        """Main drain loop."""
        while True:
            await asyncio.sleep(self.period)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Retry drain error: {e}")
