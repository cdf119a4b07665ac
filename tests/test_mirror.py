"""Tests for the cloud mirror read path and reconciliation."""

import pytest
import pytest_asyncio

from studiosync.cloud.connectivity import Connectivity
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.store.tables import bookings, reminders
from studiosync.sync.mirror import MirrorFetcher
from studiosync.sync.queue import SyncQueue

from tests.helpers import make_client


def local_reminder(reminder_id: str, title: str = "Local") -> dict:
    return {"id": reminder_id, "bookingId": None, "title": title, "dueDate": "2026-05-01", "completed": 0, "type": "general"}


def cloud_reminder(reminder_id: str, title: str = "Cloud") -> dict:
    return {"id": reminder_id, "booking_id": None, "title": title, "due_date": "2026-05-01", "completed": True}


class Mirror:
    def __init__(self, store, cloud) -> None:
        self.store = store
        self.cloud = cloud
        self.client = make_client(cloud)
        self.queue = SyncQueue(store)
        self.connectivity = Connectivity(self.client, online=True)
        self.fetcher = MirrorFetcher(store, self.queue, self.connectivity, self.client)


@pytest_asyncio.fixture
async def mirror(store, cloud):
    m = Mirror(store, cloud)
    yield m
    await m.client.aclose()


class TestMirrorFetch:
    @pytest.mark.asyncio
    async def test_offline_serves_local_rows(self, mirror):
        await mirror.store.upsert(reminders, local_reminder("r1"))
        mirror.cloud.seed("reminders", cloud_reminder("r2"))
        mirror.connectivity.set_online(False)

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER)

        assert [r["id"] for r in rows] == ["r1"]
        assert mirror.cloud.requests == []

    @pytest.mark.asyncio
    async def test_cloud_rows_are_mirrored_locally(self, mirror):
        mirror.cloud.seed("reminders", cloud_reminder("r1", "From cloud"))

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER)

        assert rows[0]["title"] == "From cloud"
        assert rows[0]["dueDate"] == "2026-05-01"
        stored = await mirror.store.get(reminders, "r1")
        assert stored["title"] == "From cloud"
        assert stored["completed"] == 1

    @pytest.mark.asyncio
    async def test_legacy_cloud_columns_are_read(self, mirror):
        mirror.cloud.seed("bookings", {
            "id": "b1",
            "client": "Legacy Client",
            "phone": "0770",
            "date": "2026-06-01",
            "amount": 900,
            "details": {"startTime": "09:00", "endTime": "11:00"},
        })

        [row] = await mirror.fetcher.fetch(SyncEntity.BOOKING)

        assert row["clientName"] == "Legacy Client"
        assert row["shootDate"] == "2026-06-01"
        assert row["totalAmount"] == 900
        assert row["status"] == "Inquiry"
        assert (await mirror.store.get(bookings, "b1"))["clientPhone"] == "0770"

    @pytest.mark.asyncio
    async def test_stale_local_rows_are_pruned(self, mirror):
        await mirror.store.upsert(reminders, local_reminder("gone"))
        mirror.cloud.seed("reminders", cloud_reminder("r1"))

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER)

        assert [r["id"] for r in rows] == ["r1"]
        assert await mirror.store.get(reminders, "gone") is None

    @pytest.mark.asyncio
    async def test_unsynced_local_rows_survive_and_win(self, mirror):
        await mirror.store.upsert(reminders, local_reminder("new", "Created offline"))
        await mirror.store.upsert(reminders, local_reminder("r1", "Edited offline"))
        await mirror.queue.enqueue(SyncAction.CREATE, SyncEntity.REMINDER, "new", {"id": "new"})
        await mirror.queue.enqueue(SyncAction.UPDATE, SyncEntity.REMINDER, "r1", {"title": "Edited offline"})
        mirror.cloud.seed("reminders", cloud_reminder("r1", "Old cloud title"))

        rows = {r["id"]: r for r in await mirror.fetcher.fetch(SyncEntity.REMINDER)}

        assert rows["new"]["title"] == "Created offline"
        assert rows["r1"]["title"] == "Edited offline"
        assert (await mirror.store.get(reminders, "r1"))["title"] == "Edited offline"

    @pytest.mark.asyncio
    async def test_pending_delete_is_not_resurrected(self, mirror):
        mirror.cloud.seed("reminders", cloud_reminder("r1"))
        await mirror.queue.enqueue(SyncAction.DELETE, SyncEntity.REMINDER, "r1", {})

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER)

        assert rows == []
        assert await mirror.store.get(reminders, "r1") is None

    @pytest.mark.asyncio
    async def test_cloud_failure_falls_back_to_local(self, mirror):
        await mirror.store.upsert(reminders, local_reminder("r1"))
        mirror.cloud.fail_status = 503

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER)

        assert [r["id"] for r in rows] == ["r1"]
        assert await mirror.store.get(reminders, "r1") is not None

    @pytest.mark.asyncio
    async def test_partial_read_keeps_local_only_rows(self, mirror):
        await mirror.store.upsert(reminders, local_reminder("old"))
        mirror.cloud.seed("reminders", cloud_reminder("r1"))

        rows = await mirror.fetcher.fetch(SyncEntity.REMINDER, limit=1, prune=False)

        assert {r["id"] for r in rows} == {"old", "r1"}
        assert await mirror.store.get(reminders, "old") is not None
