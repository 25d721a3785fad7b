"""
Pure half of the inventory availability validator.

The selector supplies stock levels; these functions decide which items are
short.  Outbound lines against the same item are aggregated before the
comparison, never evaluated line by line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from erp_kernel.domain.bom_consumption import aggregate_outbound
from erp_kernel.domain.dtos import AvailabilityResult, ProposedLine, Shortage


def required_quantities(lines: Sequence[ProposedLine]) -> dict[UUID, Decimal]:
    """Aggregated outbound magnitude per item; inbound lines are ignored."""
    return aggregate_outbound(lines)


def find_shortages(
    required: Mapping[UUID, Decimal],
    available: Mapping[UUID, Decimal],
) -> AvailabilityResult:
    """One Shortage per item whose available stock is below the requirement."""
    shortages = tuple(
        Shortage(
            item_id=item_id,
            available=available.get(item_id, Decimal("0")),
            required=needed,
        )
        for item_id, needed in required.items()
        if available.get(item_id, Decimal("0")) < needed
    )
    return AvailabilityResult(valid=not shortages, errors=shortages)
