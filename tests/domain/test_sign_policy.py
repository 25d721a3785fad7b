"""
Tests for the line sign rules (``erp_kernel.domain.sign_policy``).

Lines carry their signed stock effect and the transaction type is only a
category; these rules keep the two consistent at the insertion boundary.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.domain.dtos import ProposedLine
from erp_kernel.domain.sign_policy import (
    OPENING_BALANCE,
    find_output_line,
    production_process,
    type_code,
    type_label,
    validate_line_shape,
    validate_line_signs,
)
from erp_kernel.exceptions import (
    InvalidLineError,
    LineSignError,
    ProductionOutputError,
    UnsupportedTransactionTypeError,
    ValidationError,
)
from erp_kernel.models.transaction import TransactionType


def _line(qty) -> ProposedLine:
    return ProposedLine(item_id=uuid4(), quantity=Decimal(str(qty)))


class TestLineShape:

    def test_empty_line_set_rejected(self):
        with pytest.raises(ValidationError):
            validate_line_shape([])

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidLineError) as exc_info:
            validate_line_shape([_line(5), _line(0)])
        assert exc_info.value.line_index == 2

    def test_float_quantity_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_line_shape([ProposedLine(item_id=uuid4(), quantity=1.5)])

    def test_non_finite_quantity_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_line_shape([ProposedLine(item_id=uuid4(), quantity=Decimal("NaN"))])

    def test_missing_item_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_line_shape([ProposedLine(item_id=None, quantity=Decimal("1"))])


class TestSignRules:

    def test_receipt_accepts_positive_lines(self):
        validate_line_signs("PURCHASE_RECEIPT", [_line(10), _line("0.5")])

    def test_receipt_rejects_negative_line(self):
        with pytest.raises(LineSignError) as exc_info:
            validate_line_signs("PURCHASE_RECEIPT", [_line(10), _line(-1)])
        assert exc_info.value.line_index == 2
        assert exc_info.value.expected == "positive"

    @pytest.mark.parametrize("tx_type", ["SHIPMENT", "SCRAP_SHIPMENT"])
    def test_outbound_types_reject_positive_line(self, tx_type):
        with pytest.raises(LineSignError) as exc_info:
            validate_line_signs(tx_type, [_line(3)])
        assert exc_info.value.expected == "negative"

    def test_shipment_accepts_negative_lines(self):
        validate_line_signs("SHIPMENT", [_line(-3), _line(-4)])

    def test_adjustment_accepts_either_sign(self):
        validate_line_signs("ADJUSTMENT", [_line(-100), _line(25)])

    def test_enum_member_accepted(self):
        validate_line_signs(TransactionType.SHIPMENT, [_line(-1)])

    def test_transfer_is_not_committable(self):
        with pytest.raises(UnsupportedTransactionTypeError):
            validate_line_signs("TRANSFER", [_line(5), _line(-5)])

    def test_unknown_type_rejected(self):
        with pytest.raises(UnsupportedTransactionTypeError):
            validate_line_signs("GIFT", [_line(1)])


class TestProductionOutput:

    def test_single_output_with_consumption(self):
        validate_line_signs("PRODUCTION_WELD", [_line(10), _line(-20), _line(-40)])

    def test_output_only(self):
        validate_line_signs("PRODUCTION_PRESS", [_line(100)])

    def test_two_outputs_rejected(self):
        with pytest.raises(ProductionOutputError) as exc_info:
            validate_line_signs("PRODUCTION_PAINT", [_line(1), _line(2)])
        assert exc_info.value.output_count == 2

    def test_no_output_rejected(self):
        with pytest.raises(ProductionOutputError):
            validate_line_signs("PRODUCTION_WELD", [_line(-2)])

    def test_find_output_line(self):
        output = _line(7)
        assert find_output_line([_line(-1), output, _line(-2)]) is output
        assert find_output_line([_line(-1)]) is None


class TestTypeHelpers:

    def test_type_code_unwraps_enum(self):
        assert type_code(TransactionType.ADJUSTMENT) == "ADJUSTMENT"
        assert type_code("SHIPMENT") == "SHIPMENT"

    def test_production_process(self):
        assert production_process("PRODUCTION_WELD") == "WELD"
        assert production_process(TransactionType.PRODUCTION_PAINT) == "PAINT"
        assert production_process("SHIPMENT") is None

    def test_labels(self):
        assert type_label("PURCHASE_RECEIPT") == "Purchase receipt"
        assert type_label(OPENING_BALANCE) == "Opening balance"
        assert type_label("SOMETHING_ELSE") == "SOMETHING_ELSE"
