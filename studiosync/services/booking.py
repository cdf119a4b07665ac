"""
Booking service: validation, authorization, workflow side effects and the
local-first write path for bookings.

Every mutation is made under a per-booking lock, stamped with the acting
user's identity and rank, checked by the conflict resolver, written through
``DualWriter`` and recorded in the activity log.
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from studiosync.cloud.mapping import BOOKING_MAPPING
from studiosync.config import LifecycleConfig, settings
from studiosync.errors import AuthorizationError, InvalidInputError, NotFoundError, validate_input
from studiosync.lifecycle.manager import LifecycleManager
from studiosync.logging_context import get_op_logger, new_operation_id
from studiosync.schemas.booking_schema import (
    ApprovalStatus,
    AvailabilityResult,
    Booking,
    BookingCreate,
    BookingStatus,
    BookingUpdate,
    RentalType,
    StatusHistoryEntry,
)
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import Conflict, ConflictDecision, SyncAction, SyncEntity
from studiosync.services import availability
from studiosync.services.activity_log import ActivityLogService
from studiosync.services.deadlines import delivery_deadline, selection_deadline
from studiosync.services.notifications import NotificationCenter
from studiosync.store.locks import KeyedLock
from studiosync.store.tables import bookings
from studiosync.sync.conflicts import ConflictResolver, Resolution
from studiosync.sync.mirror import MirrorFetcher
from studiosync.sync.pusher import PushOutcome
from studiosync.utils import new_id, utc_now, utc_now_iso

logger = get_op_logger(__name__)

# entering either stage means the client has confirmed their selection
SELECTION_STAGES = (BookingStatus.SELECTION, BookingStatus.EDITING)

Mutation = Callable[[Booking], dict[str, Any]]


def new_client_token() -> str:
    """Token the client portal uses to reach its own selection state."""
    return f"vh-{uuid.uuid4().hex[:12]}"


def _editor_stamp(actor: SessionContext, now: str) -> dict[str, Any]:
    return {
        "updatedBy": actor.user_id,
        "updatedByName": actor.full_name,
        "updated_by": actor.user_id,
        "lastEditorRank": actor.rank.name,
        "updatedAt": now,
    }


class BookingService:
    def __init__(
        self,
        mirror: MirrorFetcher,
        resolver: ConflictResolver,
        lifecycle: LifecycleManager,
        activity: ActivityLogService,
        notifications: NotificationCenter,
        config: LifecycleConfig = settings.lifecycle,
    ) -> None:
        self.writer = resolver.writer
        self.store = resolver.writer.store
        self.mirror = mirror
        self.resolver = resolver
        self.lifecycle = lifecycle
        self.activity = activity
        self.notifications = notifications
        self.config = config
        self._locks = KeyedLock()
        self._background: set[asyncio.Task] = set()

    # -- reads ----------------------------------------------------------

    async def get_bookings(self, include_deleted: bool = False) -> list[Booking]:
        result = []
        for row in await self.mirror.fetch(SyncEntity.BOOKING):
            try:
                booking = Booking.from_row(row)
            except ValidationError as e:
                logger.warning("Skipping unreadable booking %s: %s", row.get("id"), e)
                continue
            if include_deleted or not booking.is_deleted:
                result.append(booking)
        result.sort(key=lambda b: (b.shootDate or "", b.createdAt or ""), reverse=True)
        return result

    async def get_booking(self, booking_id: str) -> Booking:
        return Booking.from_row(await self._load(booking_id))

    async def _load(self, booking_id: str) -> dict[str, Any]:
        row = await self.store.get(bookings, booking_id)
        if row is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return row

    async def get_deleted_bookings(self) -> list[Booking]:
        return [Booking.from_row(row) for row in await self.lifecycle.deleted(SyncEntity.BOOKING)]

    async def get_pending_approvals(self) -> list[Booking]:
        return [
            b for b in await self.get_bookings()
            if b.approvalStatus == ApprovalStatus.PENDING.value
        ]

    async def check_availability(
        self,
        shoot_date: str,
        start_time: str,
        end_time: str,
        rental_type: Optional[RentalType] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        return availability.check_availability(
            await self.get_bookings(), shoot_date, start_time, end_time,
            rental_type=rental_type, exclude_booking_id=exclude_booking_id,
        )

    # -- create / update ------------------------------------------------

    async def create(
        self, actor: SessionContext, data: Union[BookingCreate, dict[str, Any]]
    ) -> Booking:
        """
        Validate and store a new booking.

        A window that clashes with another booking is still saved, but when
        the actor is not a manager it is held as an Inquiry pending approval.
        """
        new_operation_id("booking-create")
        payload = validate_input(BookingCreate, data)
        status = payload.status.value
        approval = payload.approvalStatus.value if payload.approvalStatus else None

        details = payload.details
        if payload.shootDate and details.startTime and details.endTime:
            check = await self.check_availability(
                payload.shootDate, details.startTime, details.endTime, details.rentalType
            )
            if not check.available:
                raise InvalidInputError(check.conflictMessage or "Time window is not available")
            if check.hasConflict and not actor.is_manager:
                status = BookingStatus.INQUIRY.value
                approval = ApprovalStatus.PENDING.value
                logger.info("Booking clashes with another (%s), holding for approval", check.conflictType)

        now = utc_now_iso()
        fields = payload.model_dump(exclude={"id", "status", "approvalStatus", "client_token", "details"})
        booking = Booking.model_validate({
            **fields,
            "details": payload.details,
            "id": payload.id or new_id(),
            "status": status,
            "approvalStatus": approval,
            "client_token": payload.client_token or new_client_token(),
            "statusHistory": [StatusHistoryEntry(status=status, timestamp=now, note="Booking created")],
            "selectionDeadline": selection_deadline(payload.shootDate, self.config.selection_deadline_days),
            "createdBy": actor.user_id,
            "createdByName": actor.full_name,
            "created_by": actor.user_id,
            "createdAt": now,
            **_editor_stamp(actor, now),
        })

        async with self._locks.hold(booking.id):
            if await self.store.get(bookings, booking.id) is not None:
                raise InvalidInputError(f"Booking {booking.id} already exists")
            await self.writer.save(SyncEntity.BOOKING, SyncAction.CREATE, booking.to_row())
        await self.activity.log_action(
            actor, "create", "booking", booking.id, f"Created booking {booking.title} for {booking.clientName}"
        )
        return booking

    async def update(
        self,
        actor: SessionContext,
        booking_id: str,
        changes: Union[BookingUpdate, dict[str, Any]],
        expected_version: Optional[str] = None,
    ) -> Booking:
        """
        Apply a partial update. Only the creator or a manager may edit.
        Status changes go through ``update_status``.

        ``expected_version`` is the ``updatedAt`` the caller last saw. If
        someone of higher rank has edited since, the change is recorded as a
        pending conflict and the live booking is returned unchanged.
        """
        new_operation_id("booking-update")
        if isinstance(changes, dict) and "status" in changes:
            raise InvalidInputError("Booking status is changed with update_status, not update")
        update = validate_input(BookingUpdate, changes)
        fields = update.model_dump(exclude_unset=True)
        if update.details is not None:
            fields["details"] = update.details

        return await self._mutate(
            actor, booking_id, lambda booking: fields, "update", "Updated booking details",
            expected_version=expected_version, require_owner=True,
        )

    async def update_status(
        self, actor: SessionContext, booking_id: str, new_status: Union[BookingStatus, str],
        note: Optional[str] = None,
    ) -> Booking:
        """Move a booking to ``new_status``, appending to its history and stamping milestones."""
        new_operation_id("booking-status")
        try:
            status = BookingStatus(new_status)
        except ValueError:
            raise InvalidInputError(f"Unknown booking status: {new_status!r}") from None

        def mutate(booking: Booking) -> dict[str, Any]:
            now = utc_now_iso()
            changes: dict[str, Any] = {
                "status": status.value,
                "statusHistory": [
                    *booking.statusHistory,
                    StatusHistoryEntry(status=status.value, timestamp=now, note=note),
                ],
            }
            if status in SELECTION_STAGES and not booking.actualSelectionDate:
                today = utc_now().date().isoformat()
                changes["actualSelectionDate"] = today
                changes["deliveryDeadline"] = delivery_deadline(today, self.config.delivery_deadline_days)
            if status == BookingStatus.READY_TO_PRINT and not booking.photoEditCompletedAt:
                changes["photoEditCompletedAt"] = now
            if status == BookingStatus.DELIVERED and not booking.printCompletedAt:
                changes["printCompletedAt"] = now
            return changes

        booking = await self._mutate(
            actor, booking_id, mutate, "update", f"Updated status to {status.value}"
        )
        if booking.status == BookingStatus.DELIVERED.value:
            self._spawn(self.notifications.notify_nas_cleanup(
                booking.id, booking.clientName or booking.title or booking.id
            ))
        return booking

    async def approve_booking(self, actor: SessionContext, booking_id: str) -> Booking:
        return await self._decide_approval(actor, booking_id, approve=True)

    async def reject_booking(self, actor: SessionContext, booking_id: str) -> Booking:
        return await self._decide_approval(actor, booking_id, approve=False)

    async def _decide_approval(self, actor: SessionContext, booking_id: str, approve: bool) -> Booking:
        if not actor.is_manager:
            raise AuthorizationError(f"{actor.full_name} cannot approve bookings")
        status = BookingStatus.CONFIRMED if approve else BookingStatus.ARCHIVED
        verdict = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED

        def mutate(booking: Booking) -> dict[str, Any]:
            now = utc_now_iso()
            return {
                "status": status.value,
                "approvalStatus": verdict.value,
                "approvedBy": actor.full_name,
                "approvedAt": now,
                "statusHistory": [
                    *booking.statusHistory,
                    StatusHistoryEntry(status=status.value, timestamp=now, note=f"{verdict.value} by {actor.full_name}"),
                ],
            }

        action = "approve" if approve else "reject"
        return await self._mutate(
            actor, booking_id, mutate, action, f"{actor.full_name} {verdict.value} the booking"
        )

    async def _mutate(
        self,
        actor: SessionContext,
        booking_id: str,
        mutation: Mutation,
        action: str,
        summary: str,
        expected_version: Optional[str] = None,
        require_owner: bool = False,
    ) -> Booking:
        async with self._locks.hold(booking_id):
            current = await self._load(booking_id)
            booking = Booking.from_row(current)
            if booking.is_deleted:
                raise InvalidInputError(f"Booking {booking_id} is in the trash; restore it first")
            if require_owner:
                self._authorize(actor, booking)

            now = utc_now_iso()
            changes = mutation(booking)
            merged = Booking.model_validate({
                **booking.model_dump(), "details": booking.details, **changes, **_editor_stamp(actor, now),
            })
            if merged.paidAmount > merged.totalAmount:
                raise InvalidInputError("Paid amount cannot exceed total amount")
            row = merged.to_row()
            base_version = expected_version or current.get("updatedAt")

            if self.resolver.check(current, actor, base_version) == Resolution.DEFER:
                conflict = await self.resolver.defer(BOOKING_MAPPING.to_cloud(row))
                await self.activity.log_action(
                    actor, "conflict", "booking", booking_id,
                    f"Edit held for manager review (conflict {conflict.id})",
                )
                return booking

            result = await self.writer.save(
                SyncEntity.BOOKING, SyncAction.UPDATE, row, base_version=base_version,
            )
            if result.outcome == PushOutcome.DEFERRED:
                summary = f"{summary} (held for manager review)"
        await self.activity.log_action(actor, action, "booking", booking_id, summary)
        return await self.get_booking(booking_id)

    def _authorize(self, actor: SessionContext, booking: Booking) -> None:
        owner = booking.createdBy or booking.created_by
        if actor.is_manager or (owner is not None and owner == actor.user_id):
            return
        raise AuthorizationError(
            f"{actor.full_name} may not edit booking {booking.id} created by {booking.createdByName or owner}"
        )

    # -- conflicts ------------------------------------------------------

    async def get_pending_conflicts(self, booking_id: Optional[str] = None) -> list[Conflict]:
        return await self.resolver.pending(booking_id)

    async def resolve_conflict(
        self, manager: SessionContext, conflict_id: str, decision: Union[ConflictDecision, str]
    ) -> Conflict:
        new_operation_id("conflict")
        booking_id = (await self.resolver.get(conflict_id)).booking_id
        async with self._locks.hold(booking_id):
            conflict = await self.resolver.adjudicate(conflict_id, ConflictDecision(decision), manager)
        await self.activity.log_action(
            manager, f"conflict_{conflict.status.value.lower()}", "booking", conflict.booking_id,
            f"Proposal by {conflict.proposed_by_name or conflict.proposed_by} {conflict.status.value.lower()}",
        )
        return conflict

    # -- deletion -------------------------------------------------------

    async def soft_delete(self, actor: SessionContext, booking_id: str) -> None:
        """Move to trash. Reminders and dashboard tasks are removed for good."""
        new_operation_id("booking-delete")
        async with self._locks.hold(booking_id):
            self._authorize(actor, Booking.from_row(await self._load(booking_id)))
            await self.lifecycle.soft_delete(SyncEntity.BOOKING, booking_id, actor)

    async def restore(self, actor: SessionContext, booking_id: str) -> Booking:
        new_operation_id("booking-restore")
        async with self._locks.hold(booking_id):
            self._authorize(actor, Booking.from_row(await self._load(booking_id)))
            await self.lifecycle.restore(SyncEntity.BOOKING, booking_id, actor)
        return await self.get_booking(booking_id)

    async def permanent_delete(self, actor: SessionContext, booking_id: str) -> None:
        if not actor.is_manager:
            raise AuthorizationError(f"{actor.full_name} cannot permanently delete bookings")
        new_operation_id("booking-purge")
        async with self._locks.hold(booking_id):
            await self.lifecycle.purge(SyncEntity.BOOKING, booking_id, actor)

    async def cleanup_old_deleted(self, retention_days: Optional[int] = None) -> int:
        purged = await self.lifecycle.sweep(retention_days, entities=(SyncEntity.BOOKING,))
        return purged.get(SyncEntity.BOOKING.value, 0)

    # -- background work ------------------------------------------------

    def _spawn(self, work: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(work)
        self._background.add(task)
        task.add_done_callback(self._finish_background)

    def _finish_background(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background booking task failed: %s", task.exception())

    async def wait_background(self) -> None:
        """Wait for fire-and-forget work (notifications) to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
