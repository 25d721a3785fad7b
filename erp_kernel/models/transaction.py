"""
Module: erp_kernel.models.transaction
Responsibility: ORM persistence for the transaction log -- movement headers
    and their signed quantity lines.  This log is the single source of truth
    for stock; every inventory figure is derived from it at query time.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Append-only: Transaction and TxLine rows are never updated
      (ORM listeners in db/immutability.py).  Corrections are a delete of
      the whole transaction or a new ADJUSTMENT.
    - Signed quantities: a line's quantity IS its stock effect.  The
      transaction type is metadata; sign rules are enforced at commit.
    - seq is unique and monotonic (allocated by SequenceService) and is the
      same-date ordering tie-break for the ledger.
    - Lines are created and deleted together with their header.

Failure modes:
    - IntegrityError on duplicate seq.
    - ImmutabilityViolationError on UPDATE of a logged transaction or line.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from erp_kernel.models.partner import Partner


class TransactionType(str, Enum):
    """Kind of stock movement.

    TRANSFER is carried for data-model completeness only; it has no stock
    semantics and the commit pipeline rejects it.
    """

    PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
    PRODUCTION_PRESS = "PRODUCTION_PRESS"
    PRODUCTION_WELD = "PRODUCTION_WELD"
    PRODUCTION_PAINT = "PRODUCTION_PAINT"
    SHIPMENT = "SHIPMENT"
    SCRAP_SHIPMENT = "SCRAP_SHIPMENT"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"


class Transaction(TrackedBase):
    """
    Transaction header -- one logged stock movement event.

    Contract:
        A header is never visible without its full line set: header and
        lines are written inside one savepoint by TransactionService.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_transaction_seq"),
        Index("idx_transaction_date", "date"),
        Index("idx_transaction_type", "type"),
    )

    # Allocation order; ledger tie-break for same-date movements
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Business date of the movement (drives the month)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    type: Mapped[TransactionType] = mapped_column(String(30), nullable=False)

    partner_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("partners.id"),
        nullable=True,
    )

    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["TxLine"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TxLine.line_no",
    )

    partner: Mapped["Partner | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Transaction #{self.seq} {self.date} {self.type}>"


class TxLine(TrackedBase):
    """One signed quantity movement of one item."""

    __tablename__ = "tx_lines"

    __table_args__ = (
        Index("idx_tx_line_transaction", "transaction_id"),
        Index("idx_tx_line_item", "item_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    # Position within the transaction, 1-based
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    # Signed stock effect: positive = inbound, negative = outbound
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    transaction: Mapped["Transaction"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<TxLine {self.line_no}: {self.item_id} {self.quantity}>"
