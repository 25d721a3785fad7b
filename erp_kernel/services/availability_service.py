"""
AvailabilityService -- inventory availability validator.

Responsibility:
    Checks that a set of proposed lines does not draw any item below zero
    as of a date.  Outbound lines are aggregated per item first, stock is
    fetched for exactly those items with one batch query, and each shortage
    is reported with the item's code and name for the operator.

Architecture position:
    Kernel > Services.  Read-only against the store; lives on the service
    side because it feeds the commit pipeline and raises its errors.

Invariants enforced:
    - Aggregation: two outbound lines of 3 and 4 against stock 6 are a
      shortage of 7, never two passing checks.
    - No partial writes: callers run this before anything is flushed.
"""

from collections.abc import Sequence
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.availability import find_shortages, required_quantities
from erp_kernel.domain.dtos import AvailabilityResult, ProposedLine, Shortage
from erp_kernel.exceptions import InsufficientInventoryError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.item import Item
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.services.base import BaseService

logger = get_logger("services.availability")


class AvailabilityService(BaseService[Item]):
    """Validates outbound lines against derived stock."""

    def __init__(self, session: Session, inventory: InventorySelector | None = None):
        super().__init__(session)
        self._inventory = inventory or InventorySelector(session)

    def validate_availability(
        self,
        lines: Sequence[ProposedLine],
        as_of_date: date,
    ) -> AvailabilityResult:
        """
        Returns valid=True iff no item is short.

        Shortages carry item_name/item_code for display.
        """
        required = required_quantities(lines)
        if not required:
            return AvailabilityResult(valid=True)

        available = self._inventory.get_inventory_batch(required.keys(), as_of_date)
        result = find_shortages(required, available)
        if result.valid:
            return result

        items = {
            item.id: item
            for item in self.session.execute(
                select(Item).where(Item.id.in_([s.item_id for s in result.errors]))
            ).scalars()
        }
        enriched = tuple(
            Shortage(
                item_id=s.item_id,
                available=s.available,
                required=s.required,
                item_name=items[s.item_id].name if s.item_id in items else None,
                item_code=items[s.item_id].code if s.item_id in items else None,
            )
            for s in result.errors
        )
        return AvailabilityResult(valid=False, errors=enriched)

    def require_availability(
        self,
        lines: Sequence[ProposedLine],
        as_of_date: date,
        stage: str = "submitted",
    ) -> None:
        """Raise InsufficientInventoryError listing every short item."""
        result = self.validate_availability(lines, as_of_date)
        if result.valid:
            return

        details = [shortage.to_dict() for shortage in result.errors]
        logger.warning(
            "insufficient_inventory",
            extra={
                "stage": stage,
                "as_of_date": as_of_date,
                "shortage_count": len(details),
                "shortages": [
                    {
                        "item_id": str(d["item_id"]),
                        "available": str(d["available"]),
                        "required": str(d["required"]),
                    }
                    for d in details
                ],
            },
        )
        raise InsufficientInventoryError(details, stage=stage)
