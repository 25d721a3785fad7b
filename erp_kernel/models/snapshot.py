"""
Module: erp_kernel.models.snapshot
Responsibility: ORM persistence for monthly inventory snapshots -- the
    calculated-vs-counted record that, once CLOSED, becomes the ledger
    baseline for its month.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One snapshot per month (uq_snapshot_month).
    - Stored status is only COUNTING (created) or CLOSED (terminal).
      DRAFT and VARIANCE are derived views (domain/closing.py).
    - Once CLOSED, the snapshot row and all its lines are immutable
      (db/immutability.py).
    - difference_qty == actual_qty - calculated_qty on every line
      (maintained by SnapshotLine.set_actual_qty()).

Failure modes:
    - IntegrityError on a second snapshot for the same month.
    - ImmutabilityViolationError on any change to a closed snapshot.

Audit relevance:
    A closed snapshot's actual_qty values replace full-history replay for
    every later inventory query.  adjustment_tx_id links the snapshot to the
    single ADJUSTMENT transaction that reconciled the log to the count.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from erp_kernel.models.item import Item


class SnapshotStatus(str, Enum):
    """Persisted lifecycle status of a snapshot.

    Contract: COUNTING -> CLOSED, one-way.  The DRAFT and VARIANCE views
    are derived (domain/closing.ClosingState), never stored.
    """

    COUNTING = "COUNTING"
    CLOSED = "CLOSED"


class InventorySnapshot(TrackedBase):
    """Snapshot header for one month."""

    __tablename__ = "inventory_snapshots"

    __table_args__ = (
        UniqueConstraint("month", name="uq_snapshot_month"),
        Index("idx_snapshot_status", "status"),
    )

    month: Mapped[str] = mapped_column(String(7), nullable=False)

    status: Mapped[SnapshotStatus] = mapped_column(
        String(20),
        default=SnapshotStatus.COUNTING,
        nullable=False,
    )

    # The ADJUSTMENT written at close, if any line differed
    adjustment_tx_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["SnapshotLine"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InventorySnapshot {self.month}: {self.status}>"

    @property
    def is_closed(self) -> bool:
        return self.status == SnapshotStatus.CLOSED


class SnapshotLine(TrackedBase):
    """Calculated vs. counted quantity of one item."""

    __tablename__ = "inventory_snapshot_lines"

    __table_args__ = (
        UniqueConstraint("snapshot_id", "item_id", name="uq_snapshot_line_item"),
        Index("idx_snapshot_line_item", "item_id"),
    )

    snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_snapshots.id"),
        nullable=False,
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    # System-derived, frozen at snapshot creation
    calculated_qty: Mapped[Decimal] = mapped_column(nullable=False)

    # Physical count, editable until close
    actual_qty: Mapped[Decimal] = mapped_column(nullable=False)

    # actual_qty - calculated_qty
    difference_qty: Mapped[Decimal] = mapped_column(nullable=False)

    difference_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    snapshot: Mapped["InventorySnapshot"] = relationship(back_populates="lines")

    item: Mapped["Item"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<SnapshotLine {self.item_id}: calc={self.calculated_qty} "
            f"actual={self.actual_qty}>"
        )

    def set_actual_qty(self, actual_qty: Decimal) -> None:
        """Record a physical count and recompute the difference."""
        self.actual_qty = actual_qty
        self.difference_qty = actual_qty - self.calculated_qty
