"""
ORM immutability enforcement (``erp_kernel.db.immutability``).

Verifies:
- Logged transactions and their lines never change
- A fixed BOM and its lines are frozen; the fixing flush touches only is_fixed
- Prices of a fixed month cannot be inserted, changed or deleted
- A fixed price month cannot be reopened
- A closed snapshot and its lines are frozen; closed_at is set only on close

These go around the services and write through the ORM directly, the way a
buggy caller would.
"""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from erp_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.models.bom import BomHeader, BomLine
from erp_kernel.models.price import MonthlyPrice, MonthlyPriceStatus
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine
from erp_kernel.models.transaction import Transaction, TxLine


def _price_status(session, month: str) -> MonthlyPriceStatus:
    return session.execute(
        select(MonthlyPriceStatus).where(MonthlyPriceStatus.month == month)
    ).scalar_one()


@contextmanager
def disabled_immutability():
    """Disable ORM immutability listeners for the duration of the block."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


@pytest.fixture
def receipt(post, plant):
    return post("PURCHASE_RECEIPT", date(2025, 9, 5), (plant.coil, 500)).transaction


@pytest.fixture
def fixed_bom(bom_service, frame_bom):
    bom_service.fix_month("2025-09")
    return frame_bom


@pytest.fixture
def closed_snapshot(closing_service, price_service, post, plant):
    post("PURCHASE_RECEIPT", date(2025, 9, 5), (plant.coil, 500))
    price_service.fix_prices("2025-09")
    closing_service.create_snapshot("2025-09")
    return closing_service.close_month("2025-09").snapshot


class TestTransactionImmutability:

    def test_header_field_change_blocked(self, session, receipt):
        tx = session.get(Transaction, receipt.id)
        tx.remarks = "edited"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Transaction"

    def test_date_change_blocked(self, session, receipt):
        tx = session.get(Transaction, receipt.id)
        tx.date = date(2025, 9, 6)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_line_quantity_change_blocked(self, session, receipt):
        line = session.get(TxLine, receipt.lines[0].id)
        line.quantity = Decimal("5000")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "TxLine"

    def test_violation_is_logged(self, session, receipt, captured_logs):
        session.get(Transaction, receipt.id).remarks = "edited"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["entity_type"] == "Transaction"
        assert blocked[0]["field"] == "remarks"

    def test_listeners_can_be_disabled_for_repair(self, session, receipt):
        with disabled_immutability():
            session.get(Transaction, receipt.id).remarks = "repaired"
            session.flush()

        assert session.get(Transaction, receipt.id).remarks == "repaired"


class TestBomImmutability:

    def test_draft_bom_lines_are_editable(self, session, frame_bom):
        line = session.get(BomLine, frame_bom.components[0].line_id)
        line.quantity = Decimal("3")
        session.flush()

    def test_fixed_header_change_blocked(self, session, fixed_bom):
        header = session.get(BomHeader, fixed_bom.header_id)
        header.version = "2025-10"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unfixing_blocked(self, session, fixed_bom):
        header = session.get(BomHeader, fixed_bom.header_id)
        header.is_fixed = False

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_fixing_flush_only_touches_is_fixed(self, session, frame_bom):
        header = session.get(BomHeader, frame_bom.header_id)
        header.is_fixed = True
        header.version = "2025-10"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_fixed_line_update_blocked(self, session, fixed_bom):
        line = session.get(BomLine, fixed_bom.components[0].line_id)
        line.quantity = Decimal("99")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "BomLine"

    def test_line_added_to_fixed_bom_blocked(self, session, fixed_bom, plant):
        session.add(
            BomLine(
                bom_header_id=fixed_bom.header_id,
                material_id=plant.coil,
                line_no=3,
                quantity=Decimal("1"),
            )
        )

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_fixed_bom_delete_blocked(self, session, fixed_bom):
        session.delete(session.get(BomHeader, fixed_bom.header_id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestPriceImmutability:

    def test_insert_into_fixed_month_blocked(self, session, price_service, plant):
        price_service.fix_prices("2025-09")
        session.add(
            MonthlyPrice(month="2025-09", item_id=plant.coil, type="PURCHASE", price=Decimal("1"))
        )

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_update_in_fixed_month_blocked(self, session, price_service, plant):
        price = price_service.set_price("2025-09", plant.coil, "PURCHASE", Decimal("1000"))
        price_service.fix_prices("2025-09")

        session.get(MonthlyPrice, price.id).price = Decimal("1")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_reopening_month_blocked(self, session, price_service):
        price_service.fix_prices("2025-09")
        status = _price_status(session, "2025-09")
        status.is_fixed = False

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_status_delete_blocked(self, session, price_service):
        price_service.fix_prices("2025-09")
        session.delete(_price_status(session, "2025-09"))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestSnapshotImmutability:

    def test_closed_line_change_blocked(self, session, closed_snapshot):
        line = session.get(SnapshotLine, closed_snapshot.lines[0].id)
        line.actual_qty = Decimal("1")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "SnapshotLine"

    def test_reopening_blocked(self, session, closed_snapshot):
        snapshot = session.get(InventorySnapshot, closed_snapshot.id)
        snapshot.status = "COUNTING"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_closed_snapshot_delete_blocked(self, session, closed_snapshot):
        session.delete(session.get(InventorySnapshot, closed_snapshot.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_closed_at_requires_closed_status(self, session, closing_service, price_service, plant):
        price_service.fix_prices("2025-09")
        snapshot_id = closing_service.create_snapshot("2025-09").id

        snapshot = session.get(InventorySnapshot, snapshot_id)
        snapshot.closed_at = datetime(2025, 10, 1, tzinfo=timezone.utc)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_open_snapshot_lines_are_editable(self, session, closing_service, price_service, plant):
        price_service.fix_prices("2025-09")
        snapshot = closing_service.create_snapshot("2025-09")

        line = session.get(SnapshotLine, snapshot.lines[0].id)
        line.set_actual_qty(Decimal("2"))
        session.flush()
