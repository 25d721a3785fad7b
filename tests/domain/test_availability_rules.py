"""Tests for the pure availability rule (``erp_kernel.domain.availability``)."""

from decimal import Decimal
from uuid import uuid4

from erp_kernel.domain.availability import find_shortages, required_quantities
from erp_kernel.domain.dtos import ProposedLine


class TestRequiredQuantities:

    def test_outbound_lines_aggregate_per_item(self):
        item = uuid4()
        lines = [
            ProposedLine(item_id=item, quantity=Decimal("-3")),
            ProposedLine(item_id=item, quantity=Decimal("-4")),
        ]
        assert required_quantities(lines) == {item: Decimal("7")}

    def test_inbound_lines_need_nothing(self):
        lines = [ProposedLine(item_id=uuid4(), quantity=Decimal("50"))]
        assert required_quantities(lines) == {}


class TestFindShortages:

    def test_shortage_reports_available_and_required(self):
        item = uuid4()

        result = find_shortages({item: Decimal("7")}, {item: Decimal("5")})

        assert not result.valid
        assert len(result.errors) == 1
        shortage = result.errors[0]
        assert shortage.item_id == item
        assert shortage.available == Decimal("5")
        assert shortage.required == Decimal("7")

    def test_split_lines_judged_on_their_sum(self):
        # 3 + 4 against 6 on hand: each line fits, the sum does not
        item = uuid4()
        required = required_quantities([
            ProposedLine(item_id=item, quantity=Decimal("-3")),
            ProposedLine(item_id=item, quantity=Decimal("-4")),
        ])

        result = find_shortages(required, {item: Decimal("6")})

        assert not result.valid
        assert result.errors[0].required == Decimal("7")

    def test_exact_stock_is_enough(self):
        item = uuid4()
        assert find_shortages({item: Decimal("6")}, {item: Decimal("6")}).valid

    def test_unknown_stock_counts_as_zero(self):
        item = uuid4()
        result = find_shortages({item: Decimal("1")}, {})
        assert result.errors[0].available == Decimal("0")

    def test_shortage_to_dict(self):
        item = uuid4()
        shortage = find_shortages({item: Decimal("2")}, {item: Decimal("1")}).errors[0]
        assert shortage.to_dict() == {
            "item_id": item,
            "item_name": None,
            "item_code": None,
            "available": Decimal("1"),
            "required": Decimal("2"),
        }
