"""Tests for soft delete, restore, cascades, purge and the retention sweep."""

import pytest
from sqlalchemy import update

from studiosync.errors import AuthorizationError, InvalidInputError, NotFoundError
from studiosync.lifecycle.manager import DAY_MS
from studiosync.schemas.sync_schema import SyncEntity
from studiosync.store.tables import bookings, dashboard_tasks, reminders
from studiosync.utils import iso_to_ms, now_ms

from tests.helpers import booking_input, go_online


async def booking_with_dependents(app, actor):
    booking = await app.bookings.create(actor, booking_input())
    reminder = await app.reminders.add(actor, {"bookingId": booking.id, "title": "Confirm venue", "dueDate": "2026-05-01"})
    task = await app.tasks.add(actor, "Prepare contract", related_booking_id=booking.id)
    return booking, reminder, task


async def backdate_deletion(app, booking_id: str, days: int) -> None:
    await app.store.execute(
        update(bookings).where(bookings.c.id == booking_id).values(deletedAt=now_ms() - days * DAY_MS)
    )


class TestSoftDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_hides_booking_and_removes_dependents(self, app, cloud, manager):
        booking, reminder, task = await booking_with_dependents(app, manager)

        await app.bookings.soft_delete(manager, booking.id)

        assert booking.id not in {b.id for b in await app.bookings.get_bookings()}
        assert [b.id for b in await app.bookings.get_deleted_bookings()] == [booking.id]
        assert await app.store.get(reminders, reminder.id) is None
        assert await app.store.get(dashboard_tasks, task.id) is None
        assert reminder.id not in cloud.table("reminders")
        assert task.id not in cloud.table("dashboard_tasks")
        assert iso_to_ms(cloud.table("bookings")[booking.id]["deleted_at"]) is not None

    @pytest.mark.asyncio
    async def test_restore_returns_identical_booking(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        await app.bookings.update_status(manager, booking.id, "Confirmed")
        before = await app.store.get(bookings, booking.id)

        await app.bookings.soft_delete(manager, booking.id)
        await app.bookings.restore(manager, booking.id)

        after = await app.store.get(bookings, booking.id)
        assert after == before
        assert after["deletedAt"] is None

    @pytest.mark.asyncio
    async def test_dependents_are_not_restored(self, app, manager):
        booking, reminder, _ = await booking_with_dependents(app, manager)
        await app.bookings.soft_delete(manager, booking.id)
        await app.bookings.restore(manager, booking.id)
        assert await app.reminders.get_reminders(booking.id) == []

    @pytest.mark.asyncio
    async def test_double_delete_rejected(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        await app.bookings.soft_delete(manager, booking.id)
        with pytest.raises(InvalidInputError):
            await app.bookings.soft_delete(manager, booking.id)

    @pytest.mark.asyncio
    async def test_restore_of_live_booking_rejected(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        with pytest.raises(InvalidInputError):
            await app.bookings.restore(manager, booking.id)

    @pytest.mark.asyncio
    async def test_deleted_booking_cannot_be_edited(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        await app.bookings.soft_delete(manager, booking.id)
        with pytest.raises(InvalidInputError):
            await app.bookings.update(manager, booking.id, {"notes": "edit in trash"})

    @pytest.mark.asyncio
    async def test_unsupported_entity(self, app, manager):
        with pytest.raises(InvalidInputError):
            await app.lifecycle.soft_delete(SyncEntity.ACTIVITY_LOG, "x", manager)

    @pytest.mark.asyncio
    async def test_activity_is_logged(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        await app.bookings.soft_delete(manager, booking.id)
        await app.bookings.restore(manager, booking.id)
        actions = [log.action for log in await app.activity.get_logs_for_entity("booking", booking.id)]
        assert actions == ["create", "soft_delete", "restore"]


class TestOfflineDeletion:
    @pytest.mark.asyncio
    async def test_deleted_dependents_do_not_come_back(self, app, cloud, manager):
        booking, reminder, task = await booking_with_dependents(app, manager)
        app.connectivity.set_online(False)

        await app.bookings.soft_delete(manager, booking.id)
        assert reminder.id in cloud.table("reminders")  # not synced yet

        await go_online(app)

        assert reminder.id not in cloud.table("reminders")
        assert task.id not in cloud.table("dashboard_tasks")
        assert await app.reminders.get_reminders() == []
        assert await app.tasks.get_tasks() == []
        assert await app.store.get(reminders, reminder.id) is None

    @pytest.mark.asyncio
    async def test_online_fetch_before_drain_does_not_resurrect(self, app, cloud, manager):
        booking, reminder, _ = await booking_with_dependents(app, manager)
        app.connectivity.set_online(False)
        await app.bookings.soft_delete(manager, booking.id)

        # cloud reachable for reads, but the queued deletes have not drained
        app.connectivity._online = True
        assert await app.reminders.get_reminders() == []
        assert await app.store.get(reminders, reminder.id) is None


class TestPurge:
    @pytest.mark.asyncio
    async def test_permanent_delete_is_audited_then_removed(self, app, cloud, manager):
        booking, reminder, _ = await booking_with_dependents(app, manager)
        await app.bookings.soft_delete(manager, booking.id)

        await app.bookings.permanent_delete(manager, booking.id)

        assert await app.store.get(bookings, booking.id) is None
        assert booking.id not in cloud.table("bookings")
        logs = await app.activity.get_logs_for_entity("booking", booking.id)
        assert logs[-1].action == "permanent_delete"
        with pytest.raises(NotFoundError):
            await app.bookings.get_booking(booking.id)

    @pytest.mark.asyncio
    async def test_only_managers_purge(self, app, manager, reception):
        booking = await app.bookings.create(reception, booking_input())
        with pytest.raises(AuthorizationError):
            await app.bookings.permanent_delete(reception, booking.id)

    @pytest.mark.asyncio
    async def test_sweep_respects_retention_window(self, app, manager):
        old = await app.bookings.create(manager, booking_input(title="Old shoot", shootDate="2026-01-10"))
        recent = await app.bookings.create(manager, booking_input(title="Recent shoot", shootDate="2026-02-10"))
        live = await app.bookings.create(manager, booking_input(title="Live shoot", shootDate="2026-03-10"))
        await app.bookings.soft_delete(manager, old.id)
        await app.bookings.soft_delete(manager, recent.id)
        await backdate_deletion(app, old.id, 31)
        await backdate_deletion(app, recent.id, 29)

        purged = await app.bookings.cleanup_old_deleted()

        assert purged == 1
        assert await app.store.get(bookings, old.id) is None
        assert await app.store.get(bookings, recent.id) is not None
        assert await app.store.get(bookings, live.id) is not None
        [audit] = [
            log for log in await app.activity.get_logs_for_entity("booking", old.id)
            if log.action == "permanent_delete"
        ]
        assert audit.userId == "system"

    @pytest.mark.asyncio
    async def test_sweep_with_custom_window(self, app, manager):
        booking = await app.bookings.create(manager, booking_input())
        await app.bookings.soft_delete(manager, booking.id)
        await backdate_deletion(app, booking.id, 8)
        assert await app.lifecycle.sweep(retention_days=7) == {"booking": 1}
