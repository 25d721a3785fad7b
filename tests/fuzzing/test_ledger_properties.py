"""
Property-based tests for the stock ledger.

Properties:
- BOM expansion is exact and always passes its own validation
- Availability: a set of outbound lines is accepted iff every item's
  aggregated requirement fits its stock
- Stock never goes negative through committed movements, and the ledger's
  running balance ends on get_inventory()
- A closed month's counted baseline plus later movements equals the full
  replay of every line
  (postings dated into the month while it is being counted are refused)

Database examples run inside a savepoint that is rolled back after each
example, so the function-scoped ``session`` is shared safely.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select

from erp_kernel.domain.availability import find_shortages, required_quantities
from erp_kernel.domain.bom_consumption import generate_consumption_lines, validate_bom_consumption
from erp_kernel.domain.dtos import BomComponent, BomDefinition, ProposedLine
from erp_kernel.exceptions import InsufficientInventoryError, MonthInCountError
from erp_kernel.models.transaction import TxLine


DB_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

bom_quantities = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)

produced_quantities = st.integers(min_value=1, max_value=10_000).map(Decimal)

september_days = st.integers(min_value=1, max_value=30).map(lambda d: date(2025, 9, d))
october_days = st.integers(min_value=1, max_value=31).map(lambda d: date(2025, 10, d))


@contextmanager
def rolled_back(session):
    """Run one example inside a savepoint that is always discarded."""
    savepoint = session.begin_nested()
    try:
        yield
    finally:
        if savepoint.is_active:
            savepoint.rollback()


class TestBomExpansionProperties:

    @given(
        quantities=st.lists(bom_quantities, min_size=1, max_size=8),
        produced=produced_quantities,
    )
    @settings(max_examples=200)
    def test_expansion_is_exact_and_self_consistent(self, quantities, produced):
        bom = BomDefinition(
            header_id=uuid4(),
            item_id=uuid4(),
            version="2025-09",
            is_fixed=True,
            components=tuple(
                BomComponent(material_id=uuid4(), quantity=q, line_no=n)
                for n, q in enumerate(quantities, start=1)
            ),
        )

        lines = generate_consumption_lines(bom, produced)

        assert [line.quantity for line in lines] == [-(q * produced) for q in quantities]
        nonzero = [line for line in lines if line.quantity != 0]
        assert validate_bom_consumption(bom, produced, nonzero, tolerance=Decimal("0")).valid


class TestAvailabilityProperties:

    @given(
        outbound=st.lists(
            st.tuples(st.integers(0, 2), st.integers(min_value=1, max_value=500)),
            min_size=1,
            max_size=10,
        ),
        stock=st.lists(st.integers(min_value=0, max_value=1500), min_size=3, max_size=3),
    )
    @settings(max_examples=200)
    def test_accepted_iff_every_sum_fits(self, outbound, stock):
        items = [uuid4(), uuid4(), uuid4()]
        lines = [ProposedLine(item_id=items[i], quantity=Decimal(-q)) for i, q in outbound]
        available = {item: Decimal(s) for item, s in zip(items, stock)}

        result = find_shortages(required_quantities(lines), available)

        totals = {}
        for i, q in outbound:
            totals[items[i]] = totals.get(items[i], 0) + q
        fits = all(total <= available[item] for item, total in totals.items())
        assert result.valid == fits
        assert {s.item_id for s in result.errors} == {
            item for item, total in totals.items() if total > available[item]
        }


class TestLedgerProperties:

    @given(
        moves=st.lists(
            st.tuples(september_days, st.integers(min_value=-300, max_value=300).filter(bool)),
            min_size=1,
            max_size=12,
        )
    )
    @DB_SETTINGS
    def test_stock_never_negative_and_ledger_ends_on_stock(
        self, session, post, plant, inventory_selector, moves
    ):
        with rolled_back(session):
            balance = 0
            for day, qty in sorted(moves, key=lambda m: m[0]):
                if qty > 0:
                    post("PURCHASE_RECEIPT", day, (plant.coil, qty))
                    balance += qty
                elif -qty > balance:
                    with pytest.raises(InsufficientInventoryError):
                        post("SHIPMENT", day, (plant.coil, qty))
                else:
                    post("SHIPMENT", day, (plant.coil, qty))
                    balance += qty
                assert balance >= 0

            entries = inventory_selector.get_ledger(plant.coil)
            stock = inventory_selector.get_inventory(plant.coil, date(2025, 9, 30))
            assert stock == Decimal(balance)
            if entries:
                assert entries[-1].balance == stock
                assert all(e.balance >= 0 for e in entries)

    @given(
        september=st.lists(
            st.tuples(september_days, st.integers(min_value=1, max_value=1000)),
            min_size=1,
            max_size=6,
        ),
        counted_delta=st.integers(min_value=-500, max_value=500),
        late=st.lists(
            st.tuples(september_days, st.integers(min_value=1, max_value=1000)),
            max_size=3,
        ),
        october=st.lists(
            st.tuples(october_days, st.integers(min_value=1, max_value=1000)),
            max_size=6,
        ),
    )
    @DB_SETTINGS
    def test_baseline_plus_replay_equals_full_replay(
        self,
        session,
        post,
        plant,
        closing_service,
        price_service,
        inventory_selector,
        september,
        counted_delta,
        late,
        october,
    ):
        with rolled_back(session):
            for day, qty in september:
                post("PURCHASE_RECEIPT", day, (plant.coil, qty))

            price_service.fix_prices("2025-09")
            snapshot = closing_service.create_snapshot("2025-09")
            for day, qty in late:
                with pytest.raises(MonthInCountError):
                    post("PURCHASE_RECEIPT", day, (plant.coil, qty))
            line = next(l for l in snapshot.lines if l.item_id == plant.coil)
            counted = max(line.calculated_qty + counted_delta, Decimal("0"))
            closing_service.update_snapshot_line(line.id, counted, "count")
            closing_service.close_month("2025-09")

            for day, qty in october:
                post("PURCHASE_RECEIPT", day, (plant.coil, qty))

            full_replay = session.execute(
                select(func.coalesce(func.sum(TxLine.quantity), 0)).where(
                    TxLine.item_id == plant.coil
                )
            ).scalar_one()
            from_baseline = inventory_selector.get_inventory(plant.coil, date(2025, 10, 31))

            assert from_baseline == Decimal(str(full_replay)).quantize(Decimal("0.0001"))
            assert from_baseline == counted + sum(Decimal(q) for _, q in october)
