"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from erp_kernel.domain.availability import find_shortages, required_quantities
from erp_kernel.domain.bom_consumption import (
    generate_consumption_lines,
    validate_bom_consumption,
)
from erp_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from erp_kernel.domain.closing import ClosingState, derive_closing_state
from erp_kernel.domain.dtos import (
    AvailabilityResult,
    BomComponent,
    BomDefinition,
    BomValidationResult,
    ClosingChecklist,
    CloseResult,
    CommitResult,
    InventoryLevel,
    LedgerEntry,
    MonthlyPriceInfo,
    PriceStatusInfo,
    ProposedLine,
    Shortage,
    SnapshotInfo,
    SnapshotLineInfo,
    TransactionHeader,
    TransactionInfo,
    TxLineInfo,
)
from erp_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from erp_kernel.domain.process_sequence import check_process_sequence
from erp_kernel.domain.sign_policy import validate_line_signs

__all__ = [
    # DTOs
    "AvailabilityResult",
    "BomComponent",
    "BomDefinition",
    "BomValidationResult",
    "ClosingChecklist",
    "CloseResult",
    "CommitResult",
    "InventoryLevel",
    "LedgerEntry",
    "MonthlyPriceInfo",
    "PriceStatusInfo",
    "ProposedLine",
    "Shortage",
    "SnapshotInfo",
    "SnapshotLineInfo",
    "TransactionHeader",
    "TransactionInfo",
    "TxLineInfo",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Policy
    "LedgerPolicy",
    "DEFAULT_POLICY",
    # Rules
    "ClosingState",
    "check_process_sequence",
    "derive_closing_state",
    "find_shortages",
    "generate_consumption_lines",
    "required_quantities",
    "validate_bom_consumption",
    "validate_line_signs",
]
