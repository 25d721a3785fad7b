"""
Module: erp_kernel.models.price
Responsibility: ORM persistence for monthly purchase/sales unit prices and
    the per-month "prices fixed" flag.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One price per (month, item, type) (uq_monthly_price).
    - Once MonthlyPriceStatus.is_fixed is True for a month, that status row
      and every MonthlyPrice of the month are immutable (db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, TrackedBase, UUIDString


class PriceType(str, Enum):
    """Which side of the business a price applies to."""

    PURCHASE = "PURCHASE"
    SALES = "SALES"


class MonthlyPrice(TrackedBase):
    """Unit price of one item for one month."""

    __tablename__ = "monthly_prices"

    __table_args__ = (
        UniqueConstraint("month", "item_id", "type", name="uq_monthly_price"),
        Index("idx_monthly_price_month", "month"),
    )

    month: Mapped[str] = mapped_column(String(7), nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    type: Mapped[PriceType] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<MonthlyPrice {self.month} {self.item_id} {self.type}={self.price}>"


class MonthlyPriceStatus(Base):
    """
    Whether the price set of a month is fixed.

    The month code is the natural key; a missing row means "not fixed".
    """

    __tablename__ = "monthly_price_status"

    __table_args__ = (
        UniqueConstraint("month", name="uq_monthly_price_status_month"),
    )

    month: Mapped[str] = mapped_column(String(7), nullable=False)

    is_fixed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    fixed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<MonthlyPriceStatus {self.month} fixed={self.is_fixed}>"
