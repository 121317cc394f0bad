import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from restostock.core.errors import ValidationError
from restostock.ledger import (
    TransactionType,
    build_entry,
    make_request,
    to_decimal,
    to_money,
    to_quantity,
    total_cost,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
PID = uuid.uuid4()


class TestMakeRequest:
    def test_normalizes_types_and_text(self):
        req = make_request(
            str(PID), "OUT", -3, reference_number="  PO-17 ", notes="   ", performed_by="Chef"
        )
        assert req.product_id == PID
        assert req.transaction_type is TransactionType.OUT
        assert req.quantity_change == Decimal("-3")
        assert req.reference_number == "PO-17"
        assert req.notes is None
        assert req.performed_by == "Chef"
        assert req.metadata == {}

    @pytest.mark.parametrize("kind", ["", None, "SALE", "in"])
    def test_rejects_unknown_transaction_type(self, kind):
        with pytest.raises(ValidationError):
            make_request(PID, kind, 1)

    @pytest.mark.parametrize("change", [None, "abc", "NaN", float("inf"), True])
    def test_rejects_non_finite_or_non_numeric_change(self, change):
        with pytest.raises(ValidationError):
            make_request(PID, "ADJUSTMENT", change)

    def test_rejects_bad_product_id(self):
        with pytest.raises(ValidationError, match="required"):
            make_request(None, "IN", 1)
        with pytest.raises(ValidationError, match="UUID"):
            make_request("not-a-uuid", "IN", 1)

    def test_rejects_negative_unit_cost(self):
        with pytest.raises(ValidationError, match="Unit cost"):
            make_request(PID, "IN", 1, unit_cost=-1)

    def test_rejects_non_mapping_metadata(self):
        with pytest.raises(ValidationError, match="Metadata"):
            make_request(PID, "IN", 1, metadata=["a"])

    def test_metadata_is_copied(self):
        meta = {"supplier": "Metro"}
        req = make_request(PID, "IN", 1, metadata=meta)
        meta["supplier"] = "changed"
        assert req.metadata == {"supplier": "Metro"}


def test_floats_keep_their_decimal_spelling():
    assert to_decimal(0.1, "q") == Decimal("0.1")


def test_total_cost_uses_absolute_change():
    assert total_cost(Decimal("2.50"), Decimal("-4")) == Decimal("10.00")
    assert total_cost(None, Decimal("4")) is None


def test_build_entry_reconciles_and_stamps_date():
    req = make_request(PID, "WASTE", "-1.5", unit_cost="4")
    entry = build_entry(req, Decimal("10"), NOW)

    assert entry.previous_quantity == Decimal("10")
    assert entry.new_quantity == Decimal("8.5")
    assert entry.previous_quantity + entry.quantity_change == entry.new_quantity
    assert entry.total_cost == Decimal("6.0")
    assert entry.transaction_date == NOW
    assert entry.transaction_type is TransactionType.WASTE

    row = entry.as_row()
    assert row["transaction_type"] == "WASTE"
    assert row["meta_json"] == {}


def test_build_entry_is_deterministic_given_an_id():
    req = make_request(PID, "IN", 2)
    eid = uuid.uuid4()
    assert build_entry(req, Decimal("1"), NOW, entry_id=eid) == build_entry(
        req, Decimal("1"), NOW, entry_id=eid
    )


class TestColumnScale:
    def test_values_come_back_at_column_scale(self):
        assert str(to_quantity("1.2", "q")) == "1.200"
        assert str(to_quantity(0.1, "q")) == "0.100"
        assert str(to_money("4", "c")) == "4.00"

    def test_trailing_zeros_are_not_extra_places(self):
        assert to_quantity("1.2340000", "q") == Decimal("1.234")

    @pytest.mark.parametrize("value", ["1.2345", "0.0001", "-3.1415"])
    def test_quantity_places(self, value):
        with pytest.raises(ValidationError, match="3 decimal places"):
            make_request(PID, "ADJUSTMENT", value)

    def test_money_places(self):
        with pytest.raises(ValidationError, match="2 decimal places"):
            make_request(PID, "IN", 1, unit_cost="0.125")

    def test_magnitudes(self):
        assert to_quantity("99999999999.999", "q") == Decimal("99999999999.999")
        with pytest.raises(ValidationError, match="out of range"):
            to_quantity("100000000000", "q")
        with pytest.raises(ValidationError, match="out of range"):
            to_money("-10000000000", "c")

    def test_total_cost_must_fit(self):
        req = make_request(PID, "IN", "10000000", unit_cost="10000000")
        with pytest.raises(ValidationError, match="Total cost"):
            build_entry(req, Decimal("0"), NOW)

    def test_result_must_fit(self):
        req = make_request(PID, "IN", 1)
        with pytest.raises(ValidationError, match="Resulting quantity"):
            build_entry(req, Decimal("99999999999.500"), NOW)
