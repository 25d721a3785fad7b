"""
BOM consumption generator and validator.

Responsibility:
    For a production transaction, expand the produced quantity into one
    negative consumption line per BOM material, and re-check caller-supplied
    consumption lines against the BOM.

Architecture position:
    Kernel > Domain -- pure functions over BomDefinition/ProposedLine DTOs.

Invariants enforced:
    - Exact decimal multiplication: -(component.quantity * produced_qty)
      is computed in Decimal and never truncated.
    - No BOM means no consumption (raw-material-only processes are valid).
    - An unfixed BOM is a warning, not an error.  The commit pipeline may
      escalate it under policy.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from erp_kernel.domain.dtos import BomDefinition, BomValidationResult, ProposedLine

DEFAULT_TOLERANCE = Decimal("0.001")


def generate_consumption_lines(
    bom: BomDefinition | None,
    produced_qty: Decimal,
) -> list[ProposedLine]:
    """
    One outbound line per BOM component.

    Returns an empty list when there is no BOM.  price/amount are None.
    """
    if bom is None:
        return []
    return [
        ProposedLine(
            item_id=component.material_id,
            quantity=-(component.quantity * produced_qty),
        )
        for component in bom.components
    ]


def expected_consumption(bom: BomDefinition, produced_qty: Decimal) -> dict[UUID, Decimal]:
    """Expected outbound magnitude per material, summed over repeated components."""
    expected: dict[UUID, Decimal] = defaultdict(Decimal)
    for component in bom.components:
        expected[component.material_id] += component.quantity * produced_qty
    return dict(expected)


def aggregate_outbound(lines: Sequence[ProposedLine]) -> dict[UUID, Decimal]:
    """Sum |quantity| of negative lines per item, in first-seen order."""
    totals: dict[UUID, Decimal] = {}
    for line in lines:
        if line.quantity < 0:
            totals[line.item_id] = totals.get(line.item_id, Decimal("0")) + (-line.quantity)
    return totals


def validate_bom_consumption(
    bom: BomDefinition | None,
    produced_qty: Decimal,
    lines: Sequence[ProposedLine],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> BomValidationResult:
    """
    Check caller-supplied consumption lines against the BOM.

    Negative lines are aggregated per item and compared to
    ``component.quantity * produced_qty`` within ``tolerance``.  A consumed
    material that is not in the BOM is an error.
    """
    if not produced_qty.is_finite() or produced_qty <= 0:
        return BomValidationResult(
            valid=False,
            errors=(f"invalid produced quantity {produced_qty}",),
        )

    if bom is None:
        return BomValidationResult(valid=True)

    warnings: list[str] = []
    if not bom.is_fixed:
        warnings.append(f"BOM {bom.version} for item {bom.item_id} is not fixed")

    consumed = aggregate_outbound(lines)
    expected = expected_consumption(bom, produced_qty)

    errors: list[str] = []
    for material_id, expected_qty in expected.items():
        actual_qty = consumed.get(material_id, Decimal("0"))
        if abs(actual_qty - expected_qty) > tolerance:
            errors.append(
                f"material {material_id}: expected {expected_qty}, supplied {actual_qty}"
            )

    for material_id in consumed:
        if material_id not in expected:
            errors.append(f"material {material_id} is not in the BOM")

    return BomValidationResult(
        valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
    )
