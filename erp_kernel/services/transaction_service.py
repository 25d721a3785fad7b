"""
TransactionService -- the transaction commit pipeline.

Responsibility:
    Turns a submitted header + signed lines into one logged transaction,
    or nothing at all.  For BOM-consuming production it derives (or
    re-checks) the material consumption lines, so the log carries both the
    output and the draw-down of its materials.

Architecture position:
    Kernel > Services.  Orchestrates pure domain rules (sign policy, BOM
    consumption, process sequence) and selectors; the only writer of
    Transaction/TxLine rows.

Pipeline (fixed order, fail fast, nothing written before step 6):
    1. Line-insertion rules (sign per type, TRANSFER rejected), items and
       partner must exist.
    2. Closed-month guard (closed or being counted).
    3. Availability of the submitted lines.
    4. BOM-consuming production: BOM lookup for (output item, month),
       fixed-BOM policy, process sequence, derive or validate consumption,
       availability of the consumption lines.
    5. Allocate the transaction seq from the locked counter.
    6. Write header, then lines, inside one SAVEPOINT.

Invariants enforced:
    - All-or-nothing: a failed line write rolls the savepoint back, header
      included.  A header still visible after that rollback is an
      IntegrityFailureError (logged CRITICAL, never swallowed).
    - Read-after-write: everything is flushed before returning, so ledger
      reads in the same session see the new transaction.
    - Deleting a transaction removes its lines first, then the header.

Failure modes:
    - ValidationError family: malformed input, sign mismatch, BOM mismatch,
      process sequence violation, unfixed BOM under strict policy.
    - InsufficientInventoryError: submitted or consumption lines short.
    - ClosedMonthError: date inside (or before) the latest closed month.
    - MonthInCountError: date inside (or before) a month whose snapshot is
      still open.
    - PersistenceError: the write failed and was rolled back cleanly.
    - IntegrityFailureError: the rollback did not take.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_price, round_quantity
from erp_kernel.domain.bom_consumption import (
    generate_consumption_lines,
    validate_bom_consumption,
)
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.dtos import (
    BomDefinition,
    CommitResult,
    ProposedLine,
    TransactionHeader,
    TransactionInfo,
)
from erp_kernel.domain.months import month_of
from erp_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from erp_kernel.domain.process_sequence import (
    check_process_sequence,
    prerequisite_materials,
)
from erp_kernel.domain.sign_policy import (
    find_output_line,
    production_process,
    type_code,
    validate_line_signs,
)
from erp_kernel.exceptions import (
    BomConsumptionMismatchError,
    ClosedMonthError,
    IntegrityFailureError,
    InvalidLineError,
    ItemNotFoundError,
    MonthInCountError,
    PartnerNotFoundError,
    PersistenceError,
    TransactionNotFoundError,
    UnfixedBomError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.item import Item
from erp_kernel.models.partner import Partner
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotStatus
from erp_kernel.models.transaction import Transaction, TxLine
from erp_kernel.selectors.bom_selector import BomSelector
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.selectors.transaction_selector import transaction_to_dto
from erp_kernel.services.availability_service import AvailabilityService
from erp_kernel.services.base import BaseService
from erp_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction")


class TransactionService(BaseService[Transaction]):
    """
    Commit pipeline for the transaction log.

    Contract:
        commit_transaction() either returns a CommitResult whose transaction
        is flushed with its complete line set, or raises and leaves the
        session's visible state as it was.  The caller commits.
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
        self._availability = AvailabilityService(session, self._inventory)
        self._sequences = SequenceService(session)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def latest_closed_month(self) -> str | None:
        return self.session.execute(
            select(func.max(InventorySnapshot.month)).where(
                InventorySnapshot.status == SnapshotStatus.CLOSED.value
            )
        ).scalar_one_or_none()

    def latest_counting_month(self) -> str | None:
        """Latest month whose snapshot exists but is not closed yet."""
        return self.session.execute(
            select(func.max(InventorySnapshot.month)).where(
                InventorySnapshot.status != SnapshotStatus.CLOSED.value
            )
        ).scalar_one_or_none()

    def _require_open_month(self, tx_date) -> None:
        """
        Reject dates inside or before the latest snapshotted month.

        A closed month is the baseline of every later query; a month being
        counted has its calculated figures frozen, and close_month() posts
        counted - calculated.  Either way a back-dated line would be lost.
        """
        month = month_of(tx_date)
        closed = self.latest_closed_month()
        if closed is not None and month <= closed:
            raise ClosedMonthError(closed, tx_date.isoformat())
        counting = self.latest_counting_month()
        if counting is not None and month <= counting:
            raise MonthInCountError(counting, tx_date.isoformat())

    def _require_references(self, header: TransactionHeader, lines: Sequence[ProposedLine]) -> None:
        if header.partner_id is not None and self.session.get(Partner, header.partner_id) is None:
            raise PartnerNotFoundError(str(header.partner_id))

        wanted = {line.item_id for line in lines}
        found = set(
            self.session.execute(select(Item.id).where(Item.id.in_(wanted))).scalars()
        )
        for line in lines:
            if line.item_id not in found:
                raise ItemNotFoundError(str(line.item_id))

    # -------------------------------------------------------------------------
    # BOM consumption
    # -------------------------------------------------------------------------

    def _consumption(
        self,
        header: TransactionHeader,
        lines: Sequence[ProposedLine],
        warnings: list[str],
    ) -> tuple[list[ProposedLine], bool]:
        """
        Derived consumption lines for a BOM-consuming production.

        Returns (lines to append, derived?).  Caller-supplied consumption is
        validated and kept as submitted, so nothing is appended.
        """
        output = find_output_line(lines)
        month = month_of(header.date)
        bom = self._boms.get_bom(output.item_id, month)

        if bom is not None and not bom.is_fixed:
            if self._policy.require_fixed_bom_for_production:
                raise UnfixedBomError(str(output.item_id), month)
            warnings.append(f"BOM {month} for item {output.item_id} is not fixed")
            logger.warning(
                "bom_not_fixed_warning",
                extra={"item_id": str(output.item_id), "month": month},
            )

        if self._policy.enforce_process_sequence:
            self._check_sequence(header, bom)

        supplied = [line for line in lines if line.quantity < 0]
        if supplied:
            result = validate_bom_consumption(
                bom,
                output.quantity,
                supplied,
                tolerance=self._policy.bom_tolerance,
            )
            if not result.valid:
                raise BomConsumptionMismatchError(str(output.item_id), month, list(result.errors))
            return [], False

        derived = [
            ProposedLine(
                item_id=line.item_id,
                quantity=round_quantity(line.quantity, self._policy.quantity_places),
            )
            for line in generate_consumption_lines(bom, output.quantity)
            if line.quantity != 0
        ]
        if derived:
            self._availability.require_availability(derived, header.date, stage="consumption")
        return derived, bool(derived)

    def _check_sequence(self, header: TransactionHeader, bom: BomDefinition | None) -> None:
        process = production_process(header.type)
        required = self._policy.process_prerequisites.get(process or "")
        if bom is None or required is None:
            return

        material_processes = self._boms.material_processes(
            [c.material_id for c in bom.components]
        )
        candidates = prerequisite_materials(bom, required, material_processes)
        stock = self._inventory.get_inventory_batch(candidates, header.date)
        check_process_sequence(
            process,
            bom,
            material_processes,
            stock,
            self._policy.process_prerequisites,
        )

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def commit_transaction(
        self,
        header: TransactionHeader,
        lines: Sequence[ProposedLine],
        *,
        is_close_posting: bool = False,
    ) -> CommitResult:
        """
        Validate, expand and atomically append one transaction.

        Args:
            header: date, type, optional partner and remarks.
            lines: signed lines as submitted.
            is_close_posting: the month-closing adjustment.  It is dated in
                the month being closed and reconciles to a physical count,
                so the closed-month guard and availability checks do not
                apply.
        """
        tx_type = type_code(header.type)
        lines = list(lines)

        validate_line_signs(tx_type, lines)
        self._require_references(header, lines)

        if not is_close_posting:
            self._require_open_month(header.date)
            self._availability.require_availability(lines, header.date, stage="submitted")

        warnings: list[str] = []
        derived: list[ProposedLine] = []
        consumption_derived = False
        if self._policy.consumes_bom(tx_type):
            derived, consumption_derived = self._consumption(header, lines, warnings)

        all_lines = lines + derived
        seq = self._sequences.next_value(SequenceService.TRANSACTION)
        tx = self._write(header, tx_type, seq, all_lines)

        info = transaction_to_dto(tx)
        logger.info(
            "transaction_committed",
            extra={
                "transaction_id": str(tx.id),
                "seq": seq,
                "transaction_type": tx_type,
                "tx_date": header.date,
                "line_count": len(all_lines),
                "consumption_derived": consumption_derived,
            },
        )
        return CommitResult(
            transaction=info,
            consumption_derived=consumption_derived,
            warnings=tuple(warnings),
        )

    def _write(
        self,
        header: TransactionHeader,
        tx_type: str,
        seq: int,
        lines: Sequence[ProposedLine],
    ) -> Transaction:
        """Header then lines inside one savepoint."""
        tx = Transaction(
            seq=seq,
            date=header.date,
            type=tx_type,
            partner_id=header.partner_id,
            remarks=header.remarks,
        )
        try:
            with self.session.begin_nested():
                self.session.add(tx)
                self.session.flush()
                for line_no, line in enumerate(lines, start=1):
                    tx.lines.append(self._build_line(line_no, line))
                self.session.flush()
        except SQLAlchemyError as exc:
            if self._header_visible(seq):
                logger.critical(
                    "integrity_failure",
                    extra={
                        "entity_type": "Transaction",
                        "seq": seq,
                        "reason": "header visible after line write rollback",
                    },
                )
                raise IntegrityFailureError(
                    "Transaction", f"seq={seq}", "header visible after line write rollback"
                ) from exc
            logger.error(
                "transaction_write_rolled_back",
                extra={"seq": seq, "error": str(exc)},
            )
            raise PersistenceError("commit_transaction", str(exc)) from exc
        return tx

    def _build_line(self, line_no: int, line: ProposedLine) -> TxLine:
        quantity = round_quantity(line.quantity, self._policy.quantity_places)
        if quantity == 0:
            raise InvalidLineError(line_no, f"quantity {line.quantity} rounds to zero")
        amount = line.amount
        if amount is None and line.price is not None:
            amount = line.price * abs(quantity)
        return TxLine(
            line_no=line_no,
            item_id=line.item_id,
            quantity=quantity,
            price=round_price(line.price),
            amount=round_price(amount),
        )

    def _header_visible(self, seq: int) -> bool:
        return (
            self.session.execute(
                select(Transaction.id).where(Transaction.seq == seq)
            ).scalar_one_or_none()
            is not None
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete_transaction(self, transaction_id: UUID) -> TransactionInfo:
        """
        Remove a transaction and all its lines.

        Lines go first, then the header, inside one savepoint; a
        transaction dated in a closed or counted month cannot be deleted.
        """
        tx = self.session.get(Transaction, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(str(transaction_id))
        self._require_open_month(tx.date)

        info = transaction_to_dto(tx)
        with LogContext.bind(transaction_id=str(transaction_id)):
            with self.session.begin_nested():
                self.session.execute(
                    delete(TxLine).where(TxLine.transaction_id == transaction_id)
                )
                self.session.expire(tx, ["lines"])
                self.session.delete(tx)
                self.session.flush()

            logger.info(
                "transaction_deleted",
                extra={"seq": info.seq, "line_count": len(info.lines)},
            )
        return info

