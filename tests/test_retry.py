"""Tests for the retry queue, drainer and dead-letter store."""

import json
import threading

import pytest

from nodepulse.edge.retry import DeadLetterStore, RetryDrainer, RetryEntry, RetryQueue
from nodepulse.edge.sender import DeliveryCoordinator
from tests.helpers import FakeTransport, make_document


class ThreadRecordingStore(DeadLetterStore):
    """Dead-letter store that remembers which thread wrote each entry."""

    def __init__(self, path):
        super().__init__(path)
        self.writer_threads = []

    def add(self, entry):
        self.writer_threads.append(threading.get_ident())
        return super().add(entry)


class TestRetryQueue:
    """Tests for RetryQueue."""

    def test_fifo_order(self):
        queue = RetryQueue()
        first, second = make_document(second=1), make_document(second=2)
        queue.enqueue(RetryEntry(first))
        queue.enqueue(RetryEntry(second))

        assert queue.drain_one().document is first
        assert queue.drain_one().document is second
        assert queue.drain_one() is None

    def test_drain_empty(self):
        assert RetryQueue().drain_one() is None

    def test_capacity_drops_oldest(self):
        queue = RetryQueue(capacity=2)
        docs = [make_document(second=i) for i in range(3)]
        for doc in docs:
            queue.enqueue(RetryEntry(doc))

        assert len(queue) == 2
        assert queue.get_stats()['overflowed'] == 1
        assert queue.drain_one().document is docs[1]
        assert queue.drain_one().document is docs[2]

    def test_retry_failed_requeues_until_max(self):
        queue = RetryQueue(max_retries=3)
        entry = RetryEntry(make_document(), attempt_count=1)

        assert queue.retry_failed(entry) is True
        assert entry.attempt_count == 2
        assert queue.drain_one() is entry

        assert queue.retry_failed(entry) is False
        assert entry.attempt_count == 3
        assert len(queue) == 0
        assert queue.get_stats()['exhausted'] == 1

    def test_exhausted_entry_is_never_drained(self):
        queue = RetryQueue(max_retries=3)
        queue.enqueue(RetryEntry(make_document(), attempt_count=3))

        assert queue.drain_one() is None
        assert queue.get_stats()['exhausted'] == 1

    def test_clear(self):
        queue = RetryQueue()
        queue.enqueue(RetryEntry(make_document()))
        queue.enqueue(RetryEntry(make_document()))

        assert queue.clear() == 2
        assert len(queue) == 0

    def test_exhausted_entries_go_to_dead_letter_store(self, tmp_path):
        store = DeadLetterStore(str(tmp_path / "dead" / "letters.db"))
        queue = RetryQueue(max_retries=2, dead_letter=store)
        document = make_document(agent_id="node-7")

        queue.retry_failed(RetryEntry(document, attempt_count=1))

        assert store.count() == 1
        letter = store.get_batch()[0]
        assert letter.attempts == 2
        assert json.loads(letter.data)['agentId'] == "node-7"
        store.close()


class TestRetryDrainer:
    """Tests for RetryDrainer."""

    @pytest.mark.asyncio
    async def test_run_once_on_empty_queue(self):
        queue = RetryQueue()
        coordinator = DeliveryCoordinator([FakeTransport("http", True)], queue)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        assert await drainer.run_once() is None

    @pytest.mark.asyncio
    async def test_run_once_redelivers_one_entry(self):
        queue = RetryQueue()
        transport = FakeTransport("http", True)
        coordinator = DeliveryCoordinator([transport], queue)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        queue.enqueue(RetryEntry(make_document(second=1)))
        queue.enqueue(RetryEntry(make_document(second=2)))

        assert await drainer.run_once() is True
        assert len(transport.calls) == 1
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_entry_dropped_after_max_retries(self):
        queue = RetryQueue(max_retries=3)
        transport = FakeTransport("http", False)
        coordinator = DeliveryCoordinator([transport], queue, timeout=1.0)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        assert await coordinator.deliver(make_document()) is False
        assert await drainer.run_once() is False  # attempt 2
        assert await drainer.run_once() is False  # attempt 3, dropped
        assert await drainer.run_once() is None

        assert len(transport.calls) == 3
        assert queue.get_stats()['exhausted'] == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        queue = RetryQueue()
        coordinator = DeliveryCoordinator([FakeTransport("http", True)], queue)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        drainer.start()
        assert drainer.running
        await drainer.stop()
        assert not drainer.running

    @pytest.mark.asyncio
    async def test_failed_redelivery_writes_dead_letter_off_the_event_loop(self, tmp_path):
        store = ThreadRecordingStore(str(tmp_path / "letters.db"))
        queue = RetryQueue(max_retries=2, dead_letter=store)
        coordinator = DeliveryCoordinator([FakeTransport("http", False)], queue, timeout=1.0)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        queue.enqueue(RetryEntry(make_document(), attempt_count=1))
        assert await drainer.run_once() is False

        assert store.count() == 1
        assert store.writer_threads
        assert threading.get_ident() not in store.writer_threads
        store.close()

    @pytest.mark.asyncio
    async def test_draining_exhausted_entry_writes_dead_letter_off_the_event_loop(self, tmp_path):
        store = ThreadRecordingStore(str(tmp_path / "letters.db"))
        queue = RetryQueue(max_retries=3, dead_letter=store)
        transport = FakeTransport("http", True)
        coordinator = DeliveryCoordinator([transport], queue)
        drainer = RetryDrainer(queue, coordinator, period=10, redelivery_delay=0)

        queue.enqueue(RetryEntry(make_document(), attempt_count=3))
        assert await drainer.run_once() is None

        assert transport.calls == []
        assert store.count() == 1
        assert threading.get_ident() not in store.writer_threads
        store.close()
