"""
Tests for salestrack.extraction module.
"""
import json
import logging
import pytest
from datetime import date

from salestrack.exceptions import ValidationError
from salestrack.extraction import (
    ExtractedItem,
    ExtractionResult,
    parse_extraction,
    sanitize,
    to_daily_row,
)
from salestrack.models import Shift
from salestrack.projection import COMPACT_DAILY_LAYOUT, DAILY_LAYOUT, project


@pytest.fixture
def ocr_payload():
    """Typical OCR answer with mixed value types."""
    return {
        "top": {"date": "1/6/25", "shift": "Morning", "Bal PKT": 4, "totalPkt": "120"},
        "items": [
            {"no": "1", "shopName": "Om Sharma", "packetPrice": "10", "sale": "5",
             "cashAmount": "50", "balanceAmount": "0", "delPerson": "Ravi"},
            {"no": 2, "name": "Gupta Kirana", "packetPrice": 95, "sale": 2.0,
             "cash": None, "balanceAmount": "190", "samp": "1", "unknownField": "x"},
            {"shopName": "", "sale": "3"},
            "not an item",
        ],
    }


class TestSchema:
    """Tests for the extraction models."""

    def test_values_stringified(self):
        """Numbers and None become strings."""
        item = ExtractedItem.model_validate({"shopName": "Om", "sale": 2.0, "packetPrice": 95, "rep": None})
        assert item.sale == "2"
        assert item.packetPrice == "95"
        assert item.rep == ""

    def test_aliases(self):
        """'name' and 'cash' are accepted as shopName and cashAmount."""
        item = ExtractedItem.model_validate({"name": "Om", "cash": "40"})
        assert item.shopName == "Om"
        assert item.cashAmount == "40"

    def test_bad_shapes_become_empty(self):
        """Non-object header and non-list items are tolerated."""
        result = ExtractionResult.model_validate({"top": "oops", "items": "none"})
        assert result.top.date == ""
        assert result.items == []


class TestSanitize:
    """Tests for sanitize function."""

    def test_consistent_cash_unchanged(self):
        """price 10 x sale 5 == cash 50: passes through unchanged."""
        item = ExtractedItem(packetPrice="10", sale="5", cashAmount="50", balanceAmount="0")
        result = sanitize(item)
        assert result.amounts_consistent
        assert result.expected == 50
        assert result.cash_amount == 50
        assert result.item.cashAmount == "50"

    def test_consistent_balance(self):
        """All-credit sale: balance carries the amount."""
        result = sanitize(ExtractedItem(packetPrice="10", sale="5", cashAmount="0", balanceAmount="50"))
        assert result.amounts_consistent

    def test_consistent_split(self):
        """Cash plus balance adding up is consistent."""
        result = sanitize(ExtractedItem(packetPrice="10", sale="5", cashAmount="30", balanceAmount="20"))
        assert result.amounts_consistent

    def test_inconsistent_logged_not_corrected(self, caplog):
        """Wrong amounts are reported and left as read."""
        item = ExtractedItem(shopName="Om", packetPrice="10", sale="5", cashAmount="45", balanceAmount="0")
        with caplog.at_level(logging.WARNING, logger="salestrack.extraction"):
            result = sanitize(item)
        assert not result.amounts_consistent
        assert result.cash_amount == 45
        assert result.item.cashAmount == "45"
        assert "do not match" in caplog.text

    def test_unparseable_numbers_zero(self):
        """Garbage numbers coerce to 0; expected 0 matches a zero field."""
        result = sanitize(ExtractedItem(packetPrice="abc", sale="5", cashAmount="??"))
        assert result.expected == 0
        assert result.amounts_consistent

    def test_rupee_slash_dash_suffix(self):
        """Handwritten '50/-' reads as 50 and stays consistent."""
        result = sanitize(ExtractedItem(packetPrice="10", sale="5", cashAmount="50/-", balanceAmount="0"))
        assert result.cash_amount == 50
        assert result.amounts_consistent

    def test_currency_formatting(self):
        """Amounts with currency marks still compare."""
        result = sanitize(ExtractedItem(packetPrice="₹95", sale="2", cashAmount="₹190"))
        assert result.amounts_consistent


class TestParseExtraction:
    """Tests for parse_extraction function."""

    def test_mapping_input(self, ocr_payload):
        """A decoded mapping is validated, normalized and sanitized."""
        parsed = parse_extraction(ocr_payload)
        assert parsed.header.date == "01-06-2025"
        assert parsed.header.balPkt == "4"
        assert parsed.shift == Shift.MORNING
        assert [i.item.shopName for i in parsed.items] == ["Om Sharma", "Gupta Kirana"]
        assert parsed.inconsistent_count == 0

    def test_plain_json_text(self, ocr_payload):
        """Raw JSON text parses."""
        parsed = parse_extraction(json.dumps(ocr_payload))
        assert len(parsed.items) == 2

    def test_json_inside_prose(self, ocr_payload):
        """JSON wrapped in prose or code fences is recovered."""
        text = "Here is the result:\n```json\n" + json.dumps(ocr_payload) + "\n```"
        parsed = parse_extraction(text)
        assert parsed.header.date == "01-06-2025"

    def test_unparseable_text_raises(self):
        """Text without JSON raises ValidationError."""
        with pytest.raises(ValidationError, match="Could not parse JSON"):
            parse_extraction("no json here")

    def test_non_object_raises(self):
        """A JSON array is not an extraction."""
        with pytest.raises(ValidationError):
            parse_extraction("[1, 2, 3]")

    def test_unknown_date_kept(self):
        """A header date that cannot be normalized is kept as read."""
        parsed = parse_extraction({"top": {"date": "Monday"}, "items": []})
        assert parsed.header.date == "Monday"


class TestToDailyRow:
    """Tests for to_daily_row function."""

    def test_standard_layout_round_trip(self):
        """Built rows project back into the same values."""
        sanitized = sanitize(ExtractedItem(
            shopName="Om Sharma", address="Main Road", packetPrice="10", sale="5",
            samp="1", cashAmount="50", delPerson="Ravi",
        ))
        row = to_daily_row(sanitized, date(2025, 6, 1), Shift.EVENING, DAILY_LAYOUT)
        assert len(row) == 16
        record = project(row, DAILY_LAYOUT)
        assert record.key == "omsharma"
        assert record.date == date(2025, 6, 1)
        assert record.shift == Shift.EVENING
        assert record.sale_amount == 50
        assert record.sample_amount == 10
        assert record.delivery_person == "Ravi"
        assert record.is_cash

    def test_sale_amount_is_price_times_quantity(self):
        """Sale amount ignores the reported cash."""
        sanitized = sanitize(ExtractedItem(shopName="Om", packetPrice="10", sale="5", cashAmount="45"))
        row = to_daily_row(sanitized, date(2025, 6, 1), Shift.MORNING, COMPACT_DAILY_LAYOUT)
        assert len(row) == 15
        assert row[COMPACT_DAILY_LAYOUT.index_of("sale_amount")] == "50"

    def test_no_cash_no_payment_status(self):
        """Without cash the payment status is blank."""
        sanitized = sanitize(ExtractedItem(shopName="Om", packetPrice="10", sale="5", balanceAmount="50"))
        row = to_daily_row(sanitized, date(2025, 6, 1), Shift.MORNING, DAILY_LAYOUT)
        assert row[DAILY_LAYOUT.index_of("payment_status")] == ""
        assert row[DAILY_LAYOUT.index_of("balance_amount")] == "50"
