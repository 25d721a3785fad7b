"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the commit
    pipeline and out of selectors: TransactionHeader/ProposedLine (input),
    BomDefinition (BOM read model), Shortage/AvailabilityResult and
    BomValidationResult (validator output), LedgerEntry/InventoryLevel
    (ledger read model), TransactionInfo/CommitResult (persistence
    boundary), and the snapshot/closing DTOs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Transaction types and statuses travel as
    plain strings; the ORM enums are ``str`` subclasses and compare equal.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - Quantities are Decimal, never float.

Data flow:
    TransactionHeader + ProposedLine -> (validators) -> TransactionInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


# =============================================================================
# Commit pipeline input
# =============================================================================


@dataclass(frozen=True)
class TransactionHeader:
    """Header of a transaction submitted for commit."""

    date: date
    type: str
    partner_id: UUID | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class ProposedLine:
    """
    A line submitted for commit, or derived from a BOM.

    quantity is the signed stock effect.  price/amount are informational
    and always None on BOM-derived consumption lines.
    """

    item_id: UUID
    quantity: Decimal
    price: Decimal | None = None
    amount: Decimal | None = None

    @property
    def is_outbound(self) -> bool:
        return self.quantity < 0


# =============================================================================
# BOM read model
# =============================================================================


@dataclass(frozen=True)
class BomComponent:
    """One material of a BOM: quantity per one unit of the parent."""

    material_id: UUID
    quantity: Decimal
    process: str | None = None
    line_no: int = 0
    line_id: UUID | None = None


@dataclass(frozen=True)
class BomDefinition:
    """A BOM header with its components."""

    header_id: UUID
    item_id: UUID
    version: str
    is_fixed: bool
    components: tuple[BomComponent, ...] = ()


@dataclass(frozen=True)
class BomValidationResult:
    """Outcome of checking supplied consumption lines against a BOM."""

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


# =============================================================================
# Availability
# =============================================================================


@dataclass(frozen=True)
class Shortage:
    """An item whose aggregated outbound quantity exceeds stock."""

    item_id: UUID
    available: Decimal
    required: Decimal
    item_name: str | None = None
    item_code: str | None = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "item_code": self.item_code,
            "available": self.available,
            "required": self.required,
        }


@dataclass(frozen=True)
class AvailabilityResult:
    """valid is True iff there are no shortages."""

    valid: bool
    errors: tuple[Shortage, ...] = ()


# =============================================================================
# Ledger read model
# =============================================================================


@dataclass(frozen=True)
class InventoryLevel:
    """Signed stock quantity of an item as of a date."""

    item_id: UUID
    quantity: Decimal
    as_of_date: date


@dataclass(frozen=True)
class LedgerEntry:
    """
    One row of an item's in/out/balance trail.

    in_qty/out_qty are magnitudes.  The synthetic OPENING_BALANCE row has
    no transaction and carries the opening figure in balance only.
    """

    date: date
    type: str
    type_name: str
    in_qty: Decimal
    out_qty: Decimal
    balance: Decimal
    partner_name: str | None = None
    remarks: str | None = None
    transaction_id: UUID | None = None
    seq: int | None = None


# =============================================================================
# Persistence boundary
# =============================================================================


@dataclass(frozen=True)
class TxLineInfo:
    id: UUID
    line_no: int
    item_id: UUID
    quantity: Decimal
    price: Decimal | None = None
    amount: Decimal | None = None


@dataclass(frozen=True)
class TransactionInfo:
    """A persisted transaction with its full line set."""

    id: UUID
    seq: int
    date: date
    type: str
    partner_id: UUID | None
    remarks: str | None
    lines: tuple[TxLineInfo, ...]
    created_at: datetime | None = None


@dataclass(frozen=True)
class CommitResult:
    """
    Result of the commit pipeline.

    consumption_derived is True when the consumption lines came from the BOM
    rather than from the caller.  warnings carry non-fatal findings such as
    an unfixed BOM.
    """

    transaction: TransactionInfo
    consumption_derived: bool = False
    warnings: tuple[str, ...] = ()


# =============================================================================
# Prices
# =============================================================================


@dataclass(frozen=True)
class MonthlyPriceInfo:
    id: UUID
    month: str
    item_id: UUID
    type: str
    price: Decimal


@dataclass(frozen=True)
class PriceStatusInfo:
    month: str
    is_fixed: bool
    fixed_at: datetime | None = None


# =============================================================================
# Snapshots and closing
# =============================================================================


@dataclass(frozen=True)
class SnapshotLineInfo:
    id: UUID
    snapshot_id: UUID
    item_id: UUID
    calculated_qty: Decimal
    actual_qty: Decimal
    difference_qty: Decimal
    difference_reason: str | None = None
    item_code: str | None = None
    item_name: str | None = None


@dataclass(frozen=True)
class SnapshotInfo:
    id: UUID
    month: str
    status: str
    adjustment_tx_id: UUID | None
    closed_at: datetime | None
    lines: tuple[SnapshotLineInfo, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ClosingChecklist:
    """What stands between a month and its close."""

    month: str
    bom_fixed: bool
    prices_fixed: bool
    snapshot_exists: bool
    state: str
    differing_lines: int = 0
    unexplained_differences: int = 0

    @property
    def preconditions_met(self) -> bool:
        return self.bom_fixed and self.prices_fixed


@dataclass(frozen=True)
class CloseResult:
    """Closed snapshot plus the adjustment written for it, if any."""

    snapshot: SnapshotInfo
    adjustment: TransactionInfo | None
    message: str

    @property
    def adjustment_created(self) -> bool:
        return self.adjustment is not None
