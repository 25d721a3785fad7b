"""
Module: erp_kernel.selectors.snapshot_selector
Responsibility: Read-only access to monthly inventory snapshots and the
    derived closing view (DRAFT / COUNTING / VARIANCE / CLOSED).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - COUNTING vs. VARIANCE is computed from the lines on every read
      (domain/closing.py); no intermediate status is trusted from storage.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_kernel.db.types import to_quantity
from erp_kernel.domain.closing import (
    ClosingState,
    derive_closing_state,
    differing_lines,
    unexplained_lines,
)
from erp_kernel.domain.dtos import SnapshotInfo, SnapshotLineInfo
from erp_kernel.models.item import Item
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine, SnapshotStatus
from erp_kernel.selectors.base import BaseSelector


def snapshot_line_to_dto(line: SnapshotLine) -> SnapshotLineInfo:
    return SnapshotLineInfo(
        id=line.id,
        snapshot_id=line.snapshot_id,
        item_id=line.item_id,
        calculated_qty=to_quantity(line.calculated_qty),
        actual_qty=to_quantity(line.actual_qty),
        difference_qty=to_quantity(line.difference_qty),
        difference_reason=line.difference_reason,
        item_code=line.item.code if line.item is not None else None,
        item_name=line.item.name if line.item is not None else None,
    )


def snapshot_to_dto(snapshot: InventorySnapshot) -> SnapshotInfo:
    lines = sorted(
        (snapshot_line_to_dto(line) for line in snapshot.lines),
        key=lambda l: (l.item_code or "", str(l.item_id)),
    )
    return SnapshotInfo(
        id=snapshot.id,
        month=snapshot.month,
        status=getattr(snapshot.status, "value", snapshot.status),
        adjustment_tx_id=snapshot.adjustment_tx_id,
        closed_at=snapshot.closed_at,
        lines=tuple(lines),
    )


class SnapshotSelector(BaseSelector[InventorySnapshot]):
    """Selector for inventory snapshots."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_by_month(self, month: str) -> SnapshotInfo | None:
        snapshot = self.session.execute(
            select(InventorySnapshot).where(InventorySnapshot.month == month)
        ).scalar_one_or_none()
        return snapshot_to_dto(snapshot) if snapshot is not None else None

    def get_line(self, line_id: UUID) -> SnapshotLineInfo | None:
        line = self.session.get(SnapshotLine, line_id)
        return snapshot_line_to_dto(line) if line is not None else None

    def list_snapshots(self) -> list[SnapshotInfo]:
        """All snapshots, most recent month first, without lines."""
        snapshots = self.session.execute(
            select(InventorySnapshot).order_by(InventorySnapshot.month.desc())
        ).scalars().all()
        return [
            SnapshotInfo(
                id=s.id,
                month=s.month,
                status=getattr(s.status, "value", s.status),
                adjustment_tx_id=s.adjustment_tx_id,
                closed_at=s.closed_at,
            )
            for s in snapshots
        ]

    def closing_view(self, month: str) -> tuple[ClosingState, int, int]:
        """(state, differing line count, differing lines without a reason)."""
        snapshot = self.get_by_month(month)
        if snapshot is None:
            return derive_closing_state(None, ()), 0, 0
        return (
            derive_closing_state(snapshot.status, snapshot.lines),
            len(differing_lines(snapshot.lines)),
            len(unexplained_lines(snapshot.lines)),
        )

    def item_ids_for_snapshot(self) -> list[UUID]:
        """Every item, in code order; the population a new snapshot covers."""
        return list(self.session.execute(select(Item.id).order_by(Item.code)).scalars())

    def latest_month(self) -> str | None:
        """Latest month with a snapshot, open or closed."""
        return self.session.execute(
            select(func.max(InventorySnapshot.month))
        ).scalar_one_or_none()

    def earliest_open_month(self) -> str | None:
        """Oldest month whose snapshot is not closed yet."""
        return self.session.execute(
            select(func.min(InventorySnapshot.month)).where(
                InventorySnapshot.status != SnapshotStatus.CLOSED.value
            )
        ).scalar_one_or_none()
