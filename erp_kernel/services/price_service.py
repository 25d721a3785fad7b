"""
PriceService -- monthly purchase/sales prices and the month's price fix.

Prices are informational for the stock ledger; the kernel cares that a
closed month's prices can no longer move.  Once ``fix_prices(month)`` runs,
every set/delete for that month raises PriceMonthFixedError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_price
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.dtos import MonthlyPriceInfo, PriceStatusInfo
from erp_kernel.domain.months import validate_month
from erp_kernel.exceptions import (
    ItemNotFoundError,
    NotFoundError,
    PriceMonthFixedError,
    ValidationError,
)
from erp_kernel.logging_config import get_logger
from erp_kernel.models.item import Item
from erp_kernel.models.price import MonthlyPrice, MonthlyPriceStatus, PriceType
from erp_kernel.selectors.price_selector import PriceSelector, price_to_dto
from erp_kernel.services.base import BaseService

logger = get_logger("services.price")


class PriceService(BaseService[MonthlyPrice]):
    """Write side of monthly prices."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._prices = PriceSelector(session)

    def _require_open(self, month: str) -> None:
        if self._prices.is_price_fixed_for_month(month):
            raise PriceMonthFixedError(month)

    def set_price(
        self,
        month: str,
        item_id: UUID,
        price_type: str,
        price: Decimal,
    ) -> MonthlyPriceInfo:
        """Insert or update the price of (month, item, type)."""
        validate_month(month)
        type_value = getattr(price_type, "value", price_type)
        if type_value not in {t.value for t in PriceType}:
            raise ValidationError(f"Unknown price type: {price_type}")
        if not isinstance(price, Decimal) or not price.is_finite() or price < 0:
            raise ValidationError(f"Price must be a Decimal >= 0, got {price}")
        if self.session.get(Item, item_id) is None:
            raise ItemNotFoundError(str(item_id))
        self._require_open(month)

        row = self.session.execute(
            select(MonthlyPrice).where(
                MonthlyPrice.month == month,
                MonthlyPrice.item_id == item_id,
                MonthlyPrice.type == type_value,
            )
        ).scalar_one_or_none()

        if row is None:
            row = MonthlyPrice(month=month, item_id=item_id, type=type_value, price=round_price(price))
            self.session.add(row)
        else:
            row.price = round_price(price)
        self.session.flush()

        logger.info(
            "monthly_price_set",
            extra={"month": month, "item_id": str(item_id), "price_type": type_value},
        )
        return price_to_dto(row)

    def delete_price(self, price_id: UUID) -> None:
        row = self.session.get(MonthlyPrice, price_id)
        if row is None:
            raise NotFoundError(f"Monthly price not found: {price_id}")
        self._require_open(row.month)

        self.session.delete(row)
        self.session.flush()
        logger.info("monthly_price_deleted", extra={"price_id": str(price_id)})

    def fix_prices(self, month: str) -> PriceStatusInfo:
        """
        Fix the month's price set.  Idempotent: fixing a fixed month returns
        its existing status unchanged.
        """
        validate_month(month)
        status = self.session.execute(
            select(MonthlyPriceStatus).where(MonthlyPriceStatus.month == month)
        ).scalar_one_or_none()

        if status is not None and status.is_fixed:
            return PriceStatusInfo(month=month, is_fixed=True, fixed_at=status.fixed_at)

        fixed_at = self._clock.now()
        if status is None:
            status = MonthlyPriceStatus(month=month, is_fixed=True, fixed_at=fixed_at)
            self.session.add(status)
        else:
            status.is_fixed = True
            status.fixed_at = fixed_at
        self.session.flush()

        logger.info("prices_fixed", extra={"month": month})
        return PriceStatusInfo(month=month, is_fixed=True, fixed_at=fixed_at)
