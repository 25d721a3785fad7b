"""
Module: erp_kernel.selectors.inventory_selector
Responsibility: Point-in-time stock levels and the per-item in/out/balance
    ledger, computed from the most recent closed monthly baseline plus the
    transaction lines logged after it.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Algorithm (get_inventory):
    1. M = month of as_of_date.
    2. Baseline = actual_qty of the latest CLOSED snapshot with month < M that
       has a line for the item; the replay window starts on the first day of
       the month after it.
    3. No baseline: 0 and the window is unbounded below.
    4. Result = baseline + sum of signed line quantities with
       window_start <= date <= as_of_date.

Invariants enforced:
    - Baseline + replay equals full replay, because every closing writes an
      ADJUSTMENT that reconciles the log to the counted figure before the
      snapshot becomes a baseline.
    - No stored balances.
    - Ledger entries are ordered by (date, seq, line_no); seq is the
      allocation order of the transaction, so same-date order is stable.

Failure modes:
    - Returns 0 for an item with no movements (the item is not checked here).
"""

from collections.abc import Iterable, Iterator
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_kernel.db.types import ZERO, to_quantity
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.dtos import InventoryLevel, LedgerEntry
from erp_kernel.domain.months import day_before, month_of, next_month_start
from erp_kernel.domain.sign_policy import OPENING_BALANCE, type_code, type_label
from erp_kernel.logging_config import get_logger
from erp_kernel.models.partner import Partner
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine, SnapshotStatus
from erp_kernel.models.transaction import Transaction, TxLine
from erp_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.inventory")


class InventorySelector(BaseSelector[TxLine]):
    """
    Ledger query engine.

    Contract:
        Every figure is derived at query time from the caller's session, so
        writes flushed earlier in the same request are visible.

    Non-goals:
        - No location dimension; stock is one number per item.
        - No valuation; quantities only.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Baselines
    # -------------------------------------------------------------------------

    def _baseline(self, item_id: UUID, month: str) -> tuple[Decimal, date | None]:
        """(baseline quantity, replay window start) for item before ``month``."""
        row = self.session.execute(
            select(SnapshotLine.actual_qty, InventorySnapshot.month)
            .join(InventorySnapshot, SnapshotLine.snapshot_id == InventorySnapshot.id)
            .where(
                SnapshotLine.item_id == item_id,
                InventorySnapshot.status == SnapshotStatus.CLOSED.value,
                InventorySnapshot.month < month,
            )
            .order_by(InventorySnapshot.month.desc())
            .limit(1)
        ).first()

        if row is None:
            return ZERO, None
        actual_qty, snapshot_month = row
        return to_quantity(actual_qty), next_month_start(snapshot_month)

    def _baselines(
        self, item_ids: list[UUID], month: str
    ) -> dict[UUID, tuple[Decimal, date | None]]:
        """Batched _baseline: one query for every item."""
        rows = self.session.execute(
            select(SnapshotLine.item_id, SnapshotLine.actual_qty, InventorySnapshot.month)
            .join(InventorySnapshot, SnapshotLine.snapshot_id == InventorySnapshot.id)
            .where(
                SnapshotLine.item_id.in_(item_ids),
                InventorySnapshot.status == SnapshotStatus.CLOSED.value,
                InventorySnapshot.month < month,
            )
            .order_by(InventorySnapshot.month.desc())
        ).all()

        baselines: dict[UUID, tuple[Decimal, date | None]] = {
            item_id: (ZERO, None) for item_id in item_ids
        }
        seen: set[UUID] = set()
        for item_id, actual_qty, snapshot_month in rows:
            if item_id in seen:
                continue
            seen.add(item_id)
            baselines[item_id] = (to_quantity(actual_qty), next_month_start(snapshot_month))
        return baselines

    # -------------------------------------------------------------------------
    # Stock levels
    # -------------------------------------------------------------------------

    def get_inventory(self, item_id: UUID, as_of_date: date) -> Decimal:
        """Signed stock of ``item_id`` at the end of ``as_of_date``."""
        baseline, window_start = self._baseline(item_id, month_of(as_of_date))

        query = (
            select(func.coalesce(func.sum(TxLine.quantity), 0))
            .join(Transaction, TxLine.transaction_id == Transaction.id)
            .where(
                TxLine.item_id == item_id,
                Transaction.date <= as_of_date,
            )
        )
        if window_start is not None:
            query = query.where(Transaction.date >= window_start)

        movement = self.session.execute(query).scalar_one()
        return baseline + to_quantity(movement)

    def get_inventory_batch(
        self, item_ids: Iterable[UUID], as_of_date: date
    ) -> dict[UUID, Decimal]:
        """
        get_inventory for several items with one baseline query and one pass
        over the relevant transaction lines.

        Items without movements map to their baseline (or 0).
        """
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return {}

        baselines = self._baselines(ids, month_of(as_of_date))
        starts = [start for _, start in baselines.values()]
        lower_bound = None if any(s is None for s in starts) else min(starts)

        query = (
            select(TxLine.item_id, Transaction.date, TxLine.quantity)
            .join(Transaction, TxLine.transaction_id == Transaction.id)
            .where(
                TxLine.item_id.in_(ids),
                Transaction.date <= as_of_date,
            )
        )
        if lower_bound is not None:
            query = query.where(Transaction.date >= lower_bound)

        totals = {item_id: baseline for item_id, (baseline, _) in baselines.items()}
        for item_id, tx_date, quantity in self.session.execute(query):
            window_start = baselines[item_id][1]
            if window_start is not None and tx_date < window_start:
                continue
            totals[item_id] += to_quantity(quantity)

        return totals

    def inventory(self, item_id: UUID, as_of_date: date | None = None) -> InventoryLevel:
        """Inventory response; the date defaults to the clock's today."""
        as_of = as_of_date or self._clock.today()
        return InventoryLevel(
            item_id=item_id,
            quantity=self.get_inventory(item_id, as_of),
            as_of_date=as_of,
        )

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def iter_ledger(
        self,
        item_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> Iterator[LedgerEntry]:
        """
        Yield the item's ledger in chronological order.

        With ``start``, the first entry is a synthetic OPENING_BALANCE equal
        to the stock at the end of the previous day.  Without it, the replay
        starts from zero at the beginning of the log.
        """
        balance = ZERO
        if start is not None:
            balance = self.get_inventory(item_id, day_before(start))
            yield LedgerEntry(
                date=start,
                type=OPENING_BALANCE,
                type_name=type_label(OPENING_BALANCE),
                in_qty=ZERO,
                out_qty=ZERO,
                balance=balance,
            )

        query = (
            select(
                TxLine.quantity,
                Transaction.id,
                Transaction.seq,
                Transaction.date,
                Transaction.type,
                Transaction.remarks,
                Partner.name,
            )
            .join(Transaction, TxLine.transaction_id == Transaction.id)
            .outerjoin(Partner, Transaction.partner_id == Partner.id)
            .where(TxLine.item_id == item_id)
            .order_by(Transaction.date, Transaction.seq, TxLine.line_no)
        )
        if start is not None:
            query = query.where(Transaction.date >= start)
        if end is not None:
            query = query.where(Transaction.date <= end)

        for quantity, tx_id, seq, tx_date, tx_type, remarks, partner_name in (
            self.session.execute(query)
        ):
            quantity = to_quantity(quantity)
            balance += quantity
            yield LedgerEntry(
                date=tx_date,
                type=type_code(tx_type),
                type_name=type_label(tx_type),
                in_qty=quantity if quantity > 0 else ZERO,
                out_qty=-quantity if quantity < 0 else ZERO,
                balance=balance,
                partner_name=partner_name,
                remarks=remarks,
                transaction_id=tx_id,
                seq=seq,
            )

    def get_ledger(
        self,
        item_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[LedgerEntry]:
        """Materialized iter_ledger()."""
        entries = list(self.iter_ledger(item_id, start, end))
        logger.debug(
            "ledger_computed",
            extra={"item_id": str(item_id), "entry_count": len(entries)},
        )
        return entries
