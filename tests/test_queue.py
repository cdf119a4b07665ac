"""Tests for the persistent outbound sync queue."""

import pytest

from studiosync.schemas.sync_schema import QueueStatus, SyncAction, SyncEntity
from studiosync.sync.queue import SyncQueue


@pytest.fixture
def queue(store):
    return SyncQueue(store)


class TestSyncQueue:
    @pytest.mark.asyncio
    async def test_enqueue_assigns_increasing_seq(self, queue):
        a = await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1"})
        b = await queue.enqueue(SyncAction.UPDATE, SyncEntity.BOOKING, "b1", {"title": "x"})
        c = await queue.enqueue(SyncAction.CREATE, SyncEntity.REMINDER, "r1", {"id": "r1"})
        assert (a.seq, b.seq, c.seq) == (1, 2, 3)

    @pytest.mark.asyncio
    async def test_pending_in_enqueue_order_with_payload(self, queue):
        await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1", "title": "A"})
        await queue.enqueue(
            SyncAction.UPDATE, SyncEntity.BOOKING, "b1", {"title": "B"}, base_version="2026-01-01T00:00:00+00:00"
        )
        entries = await queue.pending()
        assert [e.action for e in entries] == [SyncAction.CREATE, SyncAction.UPDATE]
        assert entries[0].data == {"id": "b1", "title": "A"}
        assert entries[1].base_version == "2026-01-01T00:00:00+00:00"
        assert entries[0].key == ("booking", "b1")

    @pytest.mark.asyncio
    async def test_has_pending_and_dequeue(self, queue):
        entry = await queue.enqueue(SyncAction.DELETE, SyncEntity.REMINDER, "r1", {})
        assert await queue.has_pending(SyncEntity.REMINDER, "r1")
        assert not await queue.has_pending(SyncEntity.BOOKING, "r1")
        await queue.dequeue(entry.id)
        assert not await queue.has_pending(SyncEntity.REMINDER, "r1")

    @pytest.mark.asyncio
    async def test_record_failure_counts_attempts(self, queue):
        entry = await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1"})
        assert await queue.record_failure(entry.id, "timeout") == 1
        assert await queue.record_failure(entry.id, "timeout") == 2
        [pending] = await queue.pending()
        assert pending.retry_count == 2
        assert pending.last_error == "timeout"

    @pytest.mark.asyncio
    async def test_dead_letter_and_revive(self, queue):
        booking = await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1"})
        reminder = await queue.enqueue(SyncAction.CREATE, SyncEntity.REMINDER, "r1", {"id": "r1"})
        await queue.mark_failed(booking.id, "400 bad column")
        await queue.mark_failed(reminder.id, "400 bad column")

        assert await queue.pending() == []
        assert {e.status for e in await queue.failed()} == {QueueStatus.FAILED}
        # dead letters still count as unsynced local changes
        assert await queue.pending_ids(SyncEntity.BOOKING) == {"b1"}
        assert not await queue.has_pending(SyncEntity.BOOKING, "b1")

        assert await queue.revive_failed([SyncEntity.REMINDER]) == 1
        [revived] = await queue.pending()
        assert revived.entity == SyncEntity.REMINDER
        assert revived.retry_count == 0

    @pytest.mark.asyncio
    async def test_stats(self, queue):
        await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1"})
        await queue.enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b2", {"id": "b2"})
        failed = await queue.enqueue(SyncAction.CREATE, SyncEntity.INVENTORY, "i1", {"id": "i1"})
        await queue.mark_failed(failed.id, "rejected")
        stats = await queue.stats()
        assert stats["pending"] == 2
        assert stats["failed"] == 1
        assert stats["by_entity"]["booking"] == {"pending": 2}
        assert stats["by_entity"]["inventory"] == {"failed": 1}

    @pytest.mark.asyncio
    async def test_queue_survives_reopen(self, tmp_path):
        from studiosync.store.bridge import InProcessBridge
        from studiosync.store.local_store import LocalStore

        path = str(tmp_path / "studio.db")
        store = LocalStore(InProcessBridge(path))
        await store.init_schema()
        await SyncQueue(store).enqueue(SyncAction.CREATE, SyncEntity.BOOKING, "b1", {"id": "b1"})
        await store.close()

        reopened = LocalStore(InProcessBridge(path))
        await reopened.init_schema()
        [entry] = await SyncQueue(reopened).pending()
        assert entry.entity_id == "b1"
        await reopened.close()
