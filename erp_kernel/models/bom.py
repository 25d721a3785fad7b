"""
Module: erp_kernel.models.bom
Responsibility: ORM persistence for monthly bills of materials -- one header
    per (produced item, month) and one line per consumed material.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one BomHeader per (item_id, version) (uq_bom_item_version).
    - Once is_fixed is True the header and its lines are immutable
      (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate (item_id, version).
    - ImmutabilityViolationError on any change to a fixed BOM.
"""

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from erp_kernel.models.item import Item


class BomHeader(TrackedBase):
    """
    BOM header for one produced item in one month.

    Contract:
        version is the month code "YYYY-MM".  Fixing is one-way: the only
        permitted change after creation is is_fixed False -> True.
    """

    __tablename__ = "bom_headers"

    __table_args__ = (
        UniqueConstraint("item_id", "version", name="uq_bom_item_version"),
        Index("idx_bom_version", "version"),
    )

    # Produced item
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    # Month code "YYYY-MM"
    version: Mapped[str] = mapped_column(String(7), nullable=False)

    is_fixed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    lines: Mapped[list["BomLine"]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BomLine.line_no",
    )

    item: Mapped["Item"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        state = "fixed" if self.is_fixed else "draft"
        return f"<BomHeader {self.item_id} {self.version} ({state})>"


class BomLine(TrackedBase):
    """One material consumed per unit of the parent item."""

    __tablename__ = "bom_lines"

    __table_args__ = (
        Index("idx_bom_line_header", "bom_header_id"),
    )

    bom_header_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bom_headers.id"),
        nullable=False,
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    # Position within the BOM, 1-based
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    # Quantity of material per one unit of the parent (>= 0)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    # Optional process tag (PRESS/WELD/PAINT) for display and sequencing
    process: Mapped[str | None] = mapped_column(String(20), nullable=True)

    header: Mapped["BomHeader"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<BomLine {self.material_id} x {self.quantity}>"
