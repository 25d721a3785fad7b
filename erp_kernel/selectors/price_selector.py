"""
Module: erp_kernel.selectors.price_selector
Responsibility: Read-only access to monthly prices and the per-month
    price-fixed status.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.dtos import MonthlyPriceInfo, PriceStatusInfo
from erp_kernel.models.price import MonthlyPrice, MonthlyPriceStatus
from erp_kernel.selectors.base import BaseSelector


def price_to_dto(row: MonthlyPrice) -> MonthlyPriceInfo:
    return MonthlyPriceInfo(
        id=row.id,
        month=row.month,
        item_id=row.item_id,
        type=getattr(row.type, "value", row.type),
        price=row.price,
    )


class PriceSelector(BaseSelector[MonthlyPrice]):
    """Selector for monthly prices."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_status(self, month: str) -> PriceStatusInfo:
        """Price status of a month; a month never touched is not fixed."""
        status = self.session.execute(
            select(MonthlyPriceStatus).where(MonthlyPriceStatus.month == month)
        ).scalar_one_or_none()
        if status is None:
            return PriceStatusInfo(month=month, is_fixed=False)
        return PriceStatusInfo(
            month=month,
            is_fixed=bool(status.is_fixed),
            fixed_at=status.fixed_at,
        )

    def is_price_fixed_for_month(self, month: str) -> bool:
        return self.get_status(month).is_fixed

    def get_price(self, month: str, item_id: UUID, price_type: str) -> MonthlyPriceInfo | None:
        row = self.session.execute(
            select(MonthlyPrice).where(
                MonthlyPrice.month == month,
                MonthlyPrice.item_id == item_id,
                MonthlyPrice.type == getattr(price_type, "value", price_type),
            )
        ).scalar_one_or_none()
        return price_to_dto(row) if row is not None else None

    def list_prices(
        self,
        month: str,
        price_type: str | None = None,
    ) -> list[MonthlyPriceInfo]:
        query = select(MonthlyPrice).where(MonthlyPrice.month == month)
        if price_type is not None:
            query = query.where(MonthlyPrice.type == getattr(price_type, "value", price_type))
        rows = self.session.execute(
            query.order_by(MonthlyPrice.type, MonthlyPrice.created_at)
        ).scalars().all()
        return [price_to_dto(row) for row in rows]
