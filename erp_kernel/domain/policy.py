"""
LedgerPolicy -- business rules the commit pipeline and closing engine consult.

Responsibility:
    One frozen value object holding every tunable rule.  Services receive it
    via constructor injection; the defaults reproduce the shop floor's
    established behaviour, so a service built without a policy is correct.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``erp_config`` builds instances from
    YAML; the kernel never imports ``erp_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_BOM_CONSUMING_TYPES = frozenset({"PRODUCTION_WELD", "PRODUCTION_PAINT"})

# Output process -> the process whose stock must exist first
DEFAULT_PROCESS_PREREQUISITES = {
    "WELD": "PRESS",
    "PAINT": "WELD",
}


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Rules for committing movements and closing months.

    Attributes:
        quantity_places: fractional digits kept on quantities.
        bom_tolerance: max |supplied - expected| per material when a caller
            supplies explicit consumption lines.
        bom_consuming_types: production types that draw materials from a BOM.
        enforce_process_sequence: reject WELD/PAINT output when the previous
            process's BOM materials have no stock.
        process_prerequisites: output process -> required earlier process.
        require_fixed_bom_for_production: an unfixed BOM is an error rather
            than a warning.
        enforce_closing_preconditions: snapshot creation and close require
            the month's BOM and price sets to be fixed.
        adjustment_remarks: remarks template for the closing ADJUSTMENT;
            ``{month}`` is substituted.
    """

    quantity_places: int = 4
    bom_tolerance: Decimal = Decimal("0.001")
    bom_consuming_types: frozenset[str] = DEFAULT_BOM_CONSUMING_TYPES
    enforce_process_sequence: bool = True
    process_prerequisites: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PROCESS_PREREQUISITES)
    )
    require_fixed_bom_for_production: bool = False
    enforce_closing_preconditions: bool = True
    adjustment_remarks: str = "{month} monthly closing adjustment"

    def consumes_bom(self, transaction_type: str) -> bool:
        return transaction_type in self.bom_consuming_types

    def adjustment_remarks_for(self, month: str) -> str:
        return self.adjustment_remarks.format(month=month)


DEFAULT_POLICY = LedgerPolicy()
