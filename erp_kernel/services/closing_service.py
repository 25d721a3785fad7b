"""
ClosingService -- the monthly closing state machine.

Responsibility:
    Snapshot a month's calculated stock, record physical counts against it,
    and close the month: one ADJUSTMENT for every differing item, then the
    snapshot is frozen as the ledger baseline for later queries.

Architecture position:
    Kernel > Services.  Uses TransactionService to post the adjustment, so
    the adjustment goes through the same atomic write as any other
    transaction.

States:
    DRAFT (no snapshot) -> COUNTING / VARIANCE (derived from the lines)
    -> CLOSED (terminal).  Only "snapshot created" and CLOSED are stored.

Invariants enforced:
    - One snapshot per month: pre-check plus the uq_snapshot_month
      constraint inside a savepoint.
    - Exactly one close: close_month() locks the snapshot row
      (SELECT ... FOR UPDATE); a loser sees CLOSED and gets
      SnapshotAlreadyClosedError, never a second adjustment.
    - A closed snapshot and its lines never change (SnapshotClosedError
      here, ImmutabilityViolationError at the ORM layer).
    - With enforce_closing_preconditions, snapshot creation and close
      require the month's BOM and price sets to be fixed.
    - Months are snapshotted and closed oldest first, one open snapshot
      at a time; while it is open, TransactionService rejects postings
      dated in or before its month, so calculated_qty stays equal to the
      log until the close.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_quantity
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.closing import close_message, differing_lines
from erp_kernel.domain.dtos import (
    ClosingChecklist,
    CloseResult,
    ProposedLine,
    SnapshotInfo,
    SnapshotLineInfo,
    TransactionHeader,
)
from erp_kernel.domain.months import last_day, validate_month
from erp_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from erp_kernel.exceptions import (
    ClosedMonthError,
    ClosingPreconditionError,
    SnapshotAlreadyClosedError,
    SnapshotAlreadyExistsError,
    SnapshotClosedError,
    SnapshotLineNotFoundError,
    SnapshotNotFoundError,
    SnapshotOrderError,
    ValidationError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine, SnapshotStatus
from erp_kernel.models.transaction import TransactionType
from erp_kernel.selectors.bom_selector import BomSelector
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.selectors.price_selector import PriceSelector
from erp_kernel.selectors.snapshot_selector import (
    SnapshotSelector,
    snapshot_line_to_dto,
    snapshot_to_dto,
)
from erp_kernel.services.base import BaseService
from erp_kernel.services.transaction_service import TransactionService

logger = get_logger("services.closing")


class ClosingService(BaseService[InventorySnapshot]):
    """
    Monthly closing.

    Contract:
        Every method flushes and never commits.  close_month() writes the
        adjustment and the CLOSED status in the caller's transaction, so a
        failure anywhere leaves the month open with no adjustment.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or DEFAULT_POLICY
        self._inventory = InventorySelector(session, self._clock)
        self._boms = BomSelector(session)
        self._prices = PriceSelector(session)
        self._snapshots = SnapshotSelector(session)
        self._transactions = TransactionService(session, self._clock, self._policy)

    # -------------------------------------------------------------------------
    # Checklist
    # -------------------------------------------------------------------------

    def checklist(self, month: str) -> ClosingChecklist:
        """What stands between ``month`` and its close."""
        validate_month(month)
        state, differing, unexplained = self._snapshots.closing_view(month)
        snapshot = self._snapshots.get_by_month(month)
        return ClosingChecklist(
            month=month,
            bom_fixed=self._boms.is_bom_fixed_for_month(month),
            prices_fixed=self._prices.is_price_fixed_for_month(month),
            snapshot_exists=snapshot is not None,
            state=state.value,
            differing_lines=differing,
            unexplained_differences=unexplained,
        )

    def _require_preconditions(self, month: str) -> None:
        if not self._policy.enforce_closing_preconditions:
            return
        bom_fixed = self._boms.is_bom_fixed_for_month(month)
        prices_fixed = self._prices.is_price_fixed_for_month(month)
        if not (bom_fixed and prices_fixed):
            logger.warning(
                "closing_precondition_failed",
                extra={"month": month, "bom_fixed": bom_fixed, "prices_fixed": prices_fixed},
            )
            raise ClosingPreconditionError(month, bom_fixed, prices_fixed)

    def _require_after_last_close(self, month: str) -> None:
        closed = self._transactions.latest_closed_month()
        if closed is not None and month < closed:
            raise ClosedMonthError(closed, last_day(month).isoformat())

    def _require_in_order(self, month: str) -> None:
        """
        One month in count at a time, oldest first.

        A close posts its adjustment on the last day of ``month``, which
        shifts every later calculated figure; a later snapshot taken before
        that would freeze a stale one.
        """
        later = self._snapshots.latest_month()
        if later is not None and later > month:
            raise SnapshotOrderError(month, later, "a later month already has a snapshot")
        earlier = self._snapshots.earliest_open_month()
        if earlier is not None and earlier < month:
            raise SnapshotOrderError(month, earlier, "an earlier snapshot is still open")

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def create_snapshot(self, month: str) -> SnapshotInfo:
        """
        Snapshot every item's stock at the end of ``month``.

        calculated_qty = actual_qty = get_inventory(item, last day);
        difference_qty = 0.

        Raises:
            SnapshotAlreadyExistsError: the month already has a snapshot.
            ClosingPreconditionError: BOM or prices not fixed (policy).
            ClosedMonthError: a later month is already closed.
            SnapshotOrderError: a later snapshot exists or an earlier one is
                still open.
        """
        validate_month(month)
        with LogContext.bind(month=month):
            self._require_preconditions(month)

            if self._snapshots.get_by_month(month) is not None:
                raise SnapshotAlreadyExistsError(month)
            self._require_after_last_close(month)
            self._require_in_order(month)

            item_ids = self._snapshots.item_ids_for_snapshot()
            quantities = self._inventory.get_inventory_batch(item_ids, last_day(month))

            snapshot = InventorySnapshot(month=month, status=SnapshotStatus.COUNTING.value)
            snapshot.lines = [
                SnapshotLine(
                    item_id=item_id,
                    calculated_qty=quantities[item_id],
                    actual_qty=quantities[item_id],
                    difference_qty=Decimal("0"),
                )
                for item_id in item_ids
            ]

            try:
                with self.session.begin_nested():
                    self.session.add(snapshot)
                    self.session.flush()
            except IntegrityError as exc:
                raise SnapshotAlreadyExistsError(month) from exc

            logger.info(
                "snapshot_created",
                extra={"snapshot_id": str(snapshot.id), "line_count": len(item_ids)},
            )
            return snapshot_to_dto(snapshot)

    def update_snapshot_line(
        self,
        line_id: UUID,
        actual_qty: Decimal | None = None,
        difference_reason: str | None = None,
    ) -> SnapshotLineInfo:
        """
        Record a physical count and/or the reason for a difference.

        difference_qty is recomputed on every actual_qty write.  An empty
        reason clears it.
        """
        line = self.session.get(SnapshotLine, line_id)
        if line is None:
            raise SnapshotLineNotFoundError(str(line_id))
        if line.snapshot.is_closed:
            raise SnapshotClosedError(line.snapshot.month, "update snapshot line")

        if actual_qty is not None:
            if not isinstance(actual_qty, Decimal) or not actual_qty.is_finite():
                raise ValidationError(f"actual_qty must be a finite Decimal, got {actual_qty!r}")
            line.set_actual_qty(round_quantity(actual_qty, self._policy.quantity_places))
        if difference_reason is not None:
            line.difference_reason = difference_reason.strip() or None

        self.session.flush()
        logger.info(
            "snapshot_line_updated",
            extra={
                "snapshot_line_id": str(line_id),
                "difference_qty": str(line.difference_qty),
            },
        )
        return snapshot_line_to_dto(line)

    # -------------------------------------------------------------------------
    # Close
    # -------------------------------------------------------------------------

    def _get_snapshot_for_update(self, month: str) -> InventorySnapshot | None:
        return self.session.execute(
            select(InventorySnapshot)
            .where(InventorySnapshot.month == month)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def close_month(self, month: str) -> CloseResult:
        """
        Close ``month``.

        1. Lock the snapshot; fail if absent or already CLOSED.
        2. Post one ADJUSTMENT dated the last day of the month with one line
           per differing item (quantity = difference_qty, sign as-is).
        3. Mark the snapshot CLOSED with closed_at and adjustment_tx_id.

        Raises:
            SnapshotNotFoundError, SnapshotAlreadyClosedError,
            ClosingPreconditionError, SnapshotOrderError.
        """
        validate_month(month)
        with LogContext.bind(month=month):
            snapshot = self._get_snapshot_for_update(month)
            if snapshot is None:
                raise SnapshotNotFoundError(month)
            if snapshot.is_closed:
                logger.warning("month_already_closed")
                raise SnapshotAlreadyClosedError(month)

            self._require_preconditions(month)
            self._require_after_last_close(month)
            self._require_in_order(month)

            snapshot_id = snapshot.id
            differing = differing_lines(snapshot_to_dto(snapshot).lines)

            adjustment = None
            if differing:
                result = self._transactions.commit_transaction(
                    TransactionHeader(
                        date=last_day(month),
                        type=TransactionType.ADJUSTMENT.value,
                        remarks=self._policy.adjustment_remarks_for(month),
                    ),
                    [ProposedLine(item_id=l.item_id, quantity=l.difference_qty) for l in differing],
                    is_close_posting=True,
                )
                adjustment = result.transaction

            snapshot = self.session.get(InventorySnapshot, snapshot_id)
            snapshot.status = SnapshotStatus.CLOSED.value
            snapshot.closed_at = self._clock.now()
            snapshot.adjustment_tx_id = adjustment.id if adjustment is not None else None
            self.session.flush()

            message = close_message(month, len(differing))
            logger.info(
                "month_closed",
                extra={
                    "snapshot_id": str(snapshot_id),
                    "adjustment_tx_id": str(adjustment.id) if adjustment else None,
                    "differing_lines": len(differing),
                },
            )
            return CloseResult(
                snapshot=snapshot_to_dto(snapshot),
                adjustment=adjustment,
                message=message,
            )

