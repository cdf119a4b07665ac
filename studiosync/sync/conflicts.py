"""
Rank-based conflict resolution for bookings.

A write that would overwrite a row last edited by someone else, since the
writer read it, is decided by ``resolve()``: a strictly lower-ranked writer
is deferred and its full proposed row becomes a pending ``Conflict`` for a
manager to ACCEPT or REJECT. Equal or higher rank applies directly.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import select

from studiosync.cloud.mapping import BOOKING_MAPPING, CONFLICT_MAPPING
from studiosync.errors import AuthorizationError, InvalidInputError, NotFoundError
from studiosync.logging_context import get_op_logger
from studiosync.schemas.session_schema import AuthorityRank, SessionContext
from studiosync.schemas.sync_schema import (
    Conflict, ConflictDecision, ConflictStatus, SyncAction, SyncEntity,
)
from studiosync.store.tables import booking_conflicts, bookings
from studiosync.utils import iso_to_ms, new_id, utc_now_iso

if TYPE_CHECKING:
    from studiosync.sync.dual_write import DualWriter

logger = get_op_logger(__name__)


class Resolution(str, Enum):
    APPLY = "apply"
    DEFER = "defer"


class ResolutionPolicy(str, Enum):
    RANK = "rank"
    LAST_WRITER_WINS = "last_writer_wins"


def resolve(
    incoming: AuthorityRank, stored: AuthorityRank, policy: ResolutionPolicy = ResolutionPolicy.RANK
) -> Resolution:
    """Decide whether an edit of rank ``incoming`` may replace one of rank ``stored``."""
    if policy == ResolutionPolicy.LAST_WRITER_WINS:
        return Resolution.APPLY
    return Resolution.DEFER if incoming < stored else Resolution.APPLY


@dataclass(frozen=True)
class EditStamp:
    """Who last wrote a row, at what rank, and its version (updated-at)."""
    editor: Optional[str]
    rank: AuthorityRank
    version: Optional[str] = None

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> "EditStamp":
        return cls(
            editor=row.get("updatedBy") or row.get("updated_by"),
            rank=AuthorityRank.parse(row.get("lastEditorRank")),
            version=row.get("updatedAt"),
        )

    @classmethod
    def from_cloud(cls, row: dict[str, Any]) -> "EditStamp":
        return cls(
            editor=row.get("updated_by"),
            rank=AuthorityRank.parse(row.get("last_editor_rank")),
            version=row.get("updated_at"),
        )

    @classmethod
    def from_session(cls, actor: SessionContext) -> "EditStamp":
        return cls(editor=actor.user_id, rank=actor.rank)


def _same_version(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a == b or (iso_to_ms(a) is not None and iso_to_ms(a) == iso_to_ms(b))


def check_edit(
    stored: Optional[EditStamp],
    incoming: EditStamp,
    base_version: Optional[str] = None,
    policy: ResolutionPolicy = ResolutionPolicy.RANK,
) -> Resolution:
    """
    Apply unless someone else changed the row since ``base_version`` was read
    and outranks the incoming writer.
    """
    if stored is None or stored.editor is None:
        return Resolution.APPLY
    if incoming.editor is not None and stored.editor == incoming.editor:
        return Resolution.APPLY
    if _same_version(stored.version, base_version):
        return Resolution.APPLY
    return resolve(incoming.rank, stored.rank, policy)


def _conflict_from_row(row: dict[str, Any]) -> Conflict:
    data = row.get("proposed_data")
    if isinstance(data, str):
        data = json.loads(data or "{}")
    return Conflict.model_validate({**row, "proposed_data": data or {}})


class ConflictResolver:
    """Records deferred proposals and applies a manager's decision."""

    def __init__(
        self, writer: "DualWriter", policy: ResolutionPolicy = ResolutionPolicy.RANK
    ) -> None:
        self.writer = writer
        self.store = writer.store
        self.policy = policy
        writer.set_defer_handler(self.defer)

    def check(
        self,
        stored_row: Optional[dict[str, Any]],
        actor: SessionContext,
        base_version: Optional[str] = None,
    ) -> Resolution:
        stored = EditStamp.from_local(stored_row) if stored_row else None
        return check_edit(stored, EditStamp.from_session(actor), base_version, self.policy)

    async def defer(
        self, proposed: dict[str, Any], winner: Optional[dict[str, Any]] = None
    ) -> Conflict:
        """
        Record ``proposed`` (cloud-form booking row) as a pending conflict.

        If ``winner`` is given, the local row is reset to it, undoing the
        optimistic local write of the losing proposal.
        """
        conflict = Conflict(
            id=new_id(),
            booking_id=proposed["id"],
            proposed_by=proposed.get("updated_by") or "",
            proposed_by_name=proposed.get("updated_by_name") or "",
            proposed_by_rank=AuthorityRank.parse(proposed.get("last_editor_rank")).name,
            proposed_data=proposed,
            created_at=utc_now_iso(),
        )
        if winner is not None:
            await self.store.upsert(bookings, BOOKING_MAPPING.to_local(winner))
        await self._save(conflict, SyncAction.CREATE)
        logger.warning(
            "Edit of booking %s by %s deferred to manager review (conflict %s)",
            conflict.booking_id, conflict.proposed_by_name or conflict.proposed_by, conflict.id,
        )
        return conflict

    async def _save(self, conflict: Conflict, action: SyncAction) -> None:
        row = conflict.model_dump(mode="json")
        row["proposed_data"] = json.dumps(conflict.proposed_data, ensure_ascii=False, default=str)
        await self.store.upsert(booking_conflicts, row)
        await self.writer.mirror(SyncEntity.CONFLICT, action, conflict.id, CONFLICT_MAPPING.to_cloud(row))

    async def get(self, conflict_id: str) -> Conflict:
        row = await self.store.get(booking_conflicts, conflict_id)
        if row is None:
            raise NotFoundError(f"Conflict {conflict_id} not found")
        return _conflict_from_row(row)

    async def pending(self, booking_id: Optional[str] = None) -> list[Conflict]:
        stmt = (
            select(booking_conflicts)
            .where(booking_conflicts.c.status == ConflictStatus.PENDING.value)
            .order_by(booking_conflicts.c.created_at)
        )
        if booking_id is not None:
            stmt = stmt.where(booking_conflicts.c.booking_id == booking_id)
        return [_conflict_from_row(row) for row in await self.store.fetch_all(stmt)]

    async def adjudicate(
        self, conflict_id: str, decision: ConflictDecision, manager: SessionContext
    ) -> Conflict:
        """ACCEPT writes the proposal over the live row at top rank; REJECT drops it."""
        if not manager.is_manager:
            raise AuthorizationError(f"{manager.full_name} cannot resolve conflicts")
        conflict = await self.get(conflict_id)
        if not conflict.is_pending:
            raise InvalidInputError(f"Conflict {conflict_id} is already {conflict.status.value}")

        decision = ConflictDecision(decision)
        if decision == ConflictDecision.ACCEPT:
            current = await self.store.get(bookings, conflict.booking_id)
            if current is None:
                raise NotFoundError(f"Booking {conflict.booking_id} not found")
            row = BOOKING_MAPPING.to_local(conflict.proposed_data)
            proposer = row.get("updatedByName") or conflict.proposed_by_name or "Unknown"
            row.update({
                "lastEditorRank": AuthorityRank.highest().name,
                "updatedByName": f"{proposer} (Approved by {manager.full_name})",
                "updatedAt": utc_now_iso(),
                "deletedAt": current.get("deletedAt"),
            })
            await self.writer.save(SyncEntity.BOOKING, SyncAction.UPDATE, row)
            status = ConflictStatus.RESOLVED
        else:
            status = ConflictStatus.REJECTED

        resolved = conflict.model_copy(update={
            "status": status,
            "resolved_by": manager.user_id,
            "resolved_at": utc_now_iso(),
        })
        await self._save(resolved, SyncAction.UPDATE)
        logger.info(
            "Conflict %s on booking %s %s by %s",
            conflict_id, conflict.booking_id, status.value.lower(), manager.full_name,
        )
        return resolved
