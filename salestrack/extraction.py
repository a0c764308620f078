"""
OCR extraction handling: schema for the model's output, amount sanity checks,
and conversion of extracted items into daily period-table rows.

The OCR collaborator returns one object:

    {"top": {"date", "shift", "balPkt", "totalPkt", "newPkt"},
     "items": [{"shopName", "address", "packetPrice", "sale", "samp", "rep",
                "cashAmount", "balanceAmount", "delPerson"}, ...]}

with no guaranteed types: any value may be a string, a number or missing.
"""
import json
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from salestrack.exceptions import ValidationError
from salestrack.models import Shift
from salestrack.observability import get_logger
from salestrack.periods import format_period_date, normalize_date_text
from salestrack.projection import ColumnLayout, coerce_number, coerce_text, daily_layout

logger = get_logger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMA
# ═══════════════════════════════════════════════════════════════════════════════

class ExtractedHeader(BaseModel):
    """Header block of a scanned delivery sheet."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    date: str = Field("", description="Sheet date as written")
    shift: str = Field("", description="Morning or Evening")
    balPkt: str = Field("", validation_alias=AliasChoices("balPkt", "Bal PKT"))
    totalPkt: str = Field("", validation_alias=AliasChoices("totalPkt", "Total PKT"))
    newPkt: str = Field("", validation_alias=AliasChoices("newPkt", "New PKT"))

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return _as_text(value)


class ExtractedItem(BaseModel):
    """One shop line of a scanned delivery sheet. Values are kept as read."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    shopName: str = Field("", validation_alias=AliasChoices("shopName", "name"))
    address: str = ""
    packetPrice: str = ""
    sale: str = ""
    samp: str = ""
    rep: str = ""
    cashAmount: str = Field("", validation_alias=AliasChoices("cashAmount", "cash"))
    balanceAmount: str = ""
    delPerson: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return _as_text(value)


class ExtractionResult(BaseModel):
    """Whole OCR answer."""
    model_config = ConfigDict(extra="ignore")

    top: ExtractedHeader = Field(default_factory=ExtractedHeader)
    items: List[ExtractedItem] = Field(default_factory=list)

    @field_validator("top", mode="before")
    @classmethod
    def _header_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else {}

    @field_validator("items", mode="before")
    @classmethod
    def _items_or_empty(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, Mapping)]


# ═══════════════════════════════════════════════════════════════════════════════
# SANITIZER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SanitizedItem:
    """An extracted item with its numbers coerced and the amount check result."""
    item: ExtractedItem
    packet_price: float
    sale_qty: float
    sample_qty: float
    rep_qty: float
    cash_amount: float
    balance_amount: float
    expected: float
    amounts_consistent: bool


def sanitize(item: ExtractedItem) -> SanitizedItem:
    """
    Coerce an item's numbers and check its amounts against price x quantity.

    Amounts are consistent when cash or balance equals the expected amount,
    or when the two add up to it. Inconsistent items are logged and passed
    through unchanged. Never raises.
    """
    price = coerce_number(item.packetPrice)
    quantity = coerce_number(item.sale)
    cash = coerce_number(item.cashAmount)
    balance = coerce_number(item.balanceAmount)
    expected = price * quantity

    consistent = (
        _close(cash, expected)
        or _close(balance, expected)
        or _close(cash + balance, expected)
    )
    if not consistent:
        logger.warning(
            "Extracted amounts do not match price x quantity",
            extra={
                "shop_name": item.shopName,
                "expected": expected,
                "cash_amount": cash,
                "balance_amount": balance,
            }
        )

    return SanitizedItem(
        item=item,
        packet_price=price,
        sale_qty=quantity,
        sample_qty=coerce_number(item.samp),
        rep_qty=coerce_number(item.rep),
        cash_amount=cash,
        balance_amount=balance,
        expected=expected,
        amounts_consistent=consistent,
    )


def _close(actual: float, expected: float) -> bool:
    return abs(actual - expected) < 0.005


# ═══════════════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ParsedExtraction:
    """Validated OCR answer: normalised header plus sanitised items."""
    header: ExtractedHeader
    items: List[SanitizedItem]

    @property
    def shift(self) -> Optional[Shift]:
        return Shift.parse(self.header.shift)

    @property
    def inconsistent_count(self) -> int:
        return sum(1 for item in self.items if not item.amounts_consistent)


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass

    # models sometimes wrap the object in prose or code fences
    match = _JSON_OBJECT_RE.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except ValueError:
            pass
    raise ValidationError("extraction", "Could not parse JSON", value=text[:500])


def parse_extraction(raw: Union[str, Mapping[str, Any]]) -> ParsedExtraction:
    """
    Parse an OCR answer given as raw model text or an already-decoded mapping.

    Raises:
        ValidationError: If no JSON object can be recovered from the text
    """
    data = _load_json(raw) if isinstance(raw, str) else raw
    if not isinstance(data, Mapping):
        raise ValidationError("extraction", "Expected a JSON object", value=type(data).__name__)

    try:
        result = ExtractionResult.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("extraction", "Invalid OCR result", value=str(e)) from e

    header = result.top.model_copy(update={"date": normalize_date_text(result.top.date)})
    items = [sanitize(item) for item in result.items if coerce_text(item.shopName)]

    logger.info(
        "Parsed extraction",
        extra={"items": len(items), "date": header.date, "shift": header.shift}
    )
    return ParsedExtraction(header=header, items=items)


def to_daily_row(
    sanitized: SanitizedItem,
    day: date,
    shift: Shift,
    layout: Optional[ColumnLayout] = None,
) -> List[str]:
    """
    Build a positional row for a daily period table from one extracted item.

    Sale amount is always price x sale quantity; the reported cash and balance
    are stored as read.
    """
    layout = layout or daily_layout()
    item = sanitized.item
    values = {
        "date": format_period_date(day),
        "shop_name": item.shopName,
        "phone": "",
        "packet_price": sanitized.packet_price,
        "sale_qty": sanitized.sale_qty,
        "sample_qty": sanitized.sample_qty,
        "return_qty": 0,
        "sale_amount": sanitized.expected,
        "sample_amount": sanitized.packet_price * sanitized.sample_qty,
        "return_amount": 0,
        "shift": shift.value,
        "address": item.address,
        "rep": sanitized.rep_qty,
        "delivery_person": item.delPerson,
        "payment_status": "Cash" if sanitized.cash_amount > 0 else "",
        "balance_amount": sanitized.balance_amount,
    }

    row = [""] * layout.width
    for spec in layout.fields:
        row[spec.index] = _as_text(values.get(spec.name, ""))
    return row
