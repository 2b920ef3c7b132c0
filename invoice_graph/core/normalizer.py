"""Normalization of JSON returned by an LLM extraction service.

The response is expected to hold one JSON object, possibly wrapped in prose or
markdown code fences, with document-level scalars and "one entry per line item"
arrays. Normalization:

1. cuts the object out of the surrounding text;
2. parses it, retrying once after a bounded repair (trailing commas, Python
   literals, unclosed braces/brackets);
3. fills missing fields with typed defaults;
4. pads every per-item array to a common length so index ``i`` always
   describes the same line item.

Only text that cannot be parsed even after repair is an error.
"""

import json
import logging
import re
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from invoice_graph.core.allocation import (
    allocate_proportionally,
    format_discount_string,
    format_tax_string,
    round2,
)
from invoice_graph.core.schema import AllocatedItem, DocumentFields, to_decimal
from invoice_graph.shared.errors import MalformedMachineResponse

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
ZERO_TEXT = "0"
HUNDRED = Decimal(100)

# Document-level fields and their defaults
SCALAR_DEFAULTS: dict[str, str] = {
    "Invoice number": UNKNOWN,
    "Date": UNKNOWN,
    "Total amount": ZERO_TEXT,
    "Tax amount": ZERO_TEXT,
    "Tax rate": ZERO_TEXT,
    "Discount amount": ZERO_TEXT,
    "Party name": UNKNOWN,
    "Company name": UNKNOWN,
    "Phone number": "",
    "Email": "",
    "Address": "",
}

# Per-line-item fields and the filler used to pad them
PER_ITEM_FILLERS: dict[str, str] = {
    "Product names": UNKNOWN,
    "Quantity": ZERO_TEXT,
    "Unit Amount": ZERO_TEXT,
    "Price with tax": ZERO_TEXT,
    "Discount": ZERO_TEXT,
    "Tax per item": ZERO_TEXT,
}

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_PY_LITERALS = (
    (re.compile(r"\bTrue\b"), "true"),
    (re.compile(r"\bFalse\b"), "false"),
    (re.compile(r"\bNone\b"), "null"),
)


class MachineInvoice(BaseModel):
    """A normalized extraction-service response.

    Scalars are kept as the service's text; per-item arrays are aligned.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    invoice_number: str = Field(UNKNOWN, alias="Invoice number")
    date: str = Field(UNKNOWN, alias="Date")
    total_amount: str = Field(ZERO_TEXT, alias="Total amount")
    tax_amount: str = Field(ZERO_TEXT, alias="Tax amount")
    tax_rate: str = Field(ZERO_TEXT, alias="Tax rate")
    discount_amount: str = Field(ZERO_TEXT, alias="Discount amount")
    party_name: str = Field(UNKNOWN, alias="Party name")
    company_name: str = Field(UNKNOWN, alias="Company name")
    phone_number: str = Field("", alias="Phone number")
    email: str = Field("", alias="Email")
    address: str = Field("", alias="Address")

    product_names: list[str] = Field(default_factory=list, alias="Product names")
    quantities: list[str] = Field(default_factory=list, alias="Quantity")
    unit_amounts: list[str] = Field(default_factory=list, alias="Unit Amount")
    prices_with_tax: list[str] = Field(default_factory=list, alias="Price with tax")
    discounts: list[str] = Field(default_factory=list, alias="Discount")
    item_taxes: list[str] = Field(default_factory=list, alias="Tax per item")

    def per_item_arrays(self) -> dict[str, list[str]]:
        """Per-item arrays keyed by their response field name."""
        dumped = self.model_dump(by_alias=True)
        return {name: dumped[name] for name in PER_ITEM_FILLERS}

    @property
    def item_count(self) -> int:
        return len(self.product_names)


def extract_json_block(text: str) -> str:
    """Cut the JSON object out of fenced or chatty model output."""
    cleaned = _FENCE_RE.sub("", text).strip()
    start = cleaned.find("{")
    if start == -1:
        raise MalformedMachineResponse("No JSON object found in response", text)
    end = cleaned.rfind("}")
    if end < start:
        return cleaned[start:]
    return cleaned[start : end + 1]


def _split_strings(text: str) -> list[tuple[str, bool]]:
    """Cut text into (chunk, is_string) pieces; string chunks keep their quotes."""
    pieces: list[tuple[str, bool]] = []
    start = 0
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                pieces.append((text[start : index + 1], True))
                start = index + 1
                in_string = False
        elif char == '"':
            pieces.append((text[start:index], False))
            start = index
            in_string = True
    pieces.append((text[start:], in_string))
    return pieces


def _balance(text: str) -> str:
    """Close brackets and braces left open, ignoring those inside strings."""
    stack: list[str] = []
    pieces = _split_strings(text)
    for chunk, is_string in pieces:
        if is_string:
            continue
        for char in chunk:
            if char in "{[":
                stack.append("}" if char == "{" else "]")
            elif char in "}]" and stack and stack[-1] == char:
                stack.pop()
    if pieces[-1][1]:
        text += '"'
    return text + "".join(reversed(stack))


def _repair_outside_strings(text: str) -> str:
    """Drop trailing commas and swap Python literals, leaving string values alone."""
    pieces = []
    for chunk, is_string in _split_strings(text):
        if not is_string:
            chunk = _TRAILING_COMMA_RE.sub(r"\1", chunk)
            for pattern, replacement in _PY_LITERALS:
                chunk = pattern.sub(replacement, chunk)
        pieces.append(chunk)
    return "".join(pieces)


def repair_json(text: str) -> str:
    """Best-effort fix of the usual LLM JSON mistakes.

    Handles trailing commas, Python ``True``/``False``/``None`` and unclosed
    containers. Nothing beyond that is attempted.
    """
    return _balance(_repair_outside_strings(text).rstrip().rstrip(","))


def parse_machine_json(text: str) -> dict[str, Any]:
    """Parse the JSON object in an extraction-service response.

    Raises:
        MalformedMachineResponse: If no object survives parsing and repair
    """
    if not text or not text.strip():
        raise MalformedMachineResponse("Empty response from extraction service")

    block = extract_json_block(text)
    try:
        parsed = json.loads(block)
    except json.JSONDecodeError:
        logger.warning("Malformed JSON detected, attempting repair")
        try:
            parsed = json.loads(repair_json(block))
        except json.JSONDecodeError as e:
            raise MalformedMachineResponse(f"JSON repair failed ({e.msg})", block) from e

    if not isinstance(parsed, dict):
        raise MalformedMachineResponse("Response JSON is not an object", block)
    return parsed


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if v is not None) or default
    text = str(value).strip()
    return text if text else default


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def normalize_machine_response(text: str) -> MachineInvoice:
    """Parse, default and align an extraction-service response.

    Args:
        text: Raw response text

    Returns:
        MachineInvoice whose per-item arrays all share one length

    Raises:
        MalformedMachineResponse: If the text holds no parseable JSON object
    """
    raw = parse_machine_json(text)

    values: dict[str, Any] = {}
    for name, default in SCALAR_DEFAULTS.items():
        values[name] = _as_text(raw.get(name), default)

    arrays = {name: _as_list(raw.get(name)) for name in PER_ITEM_FILLERS}
    length = max((len(items) for items in arrays.values()), default=0)
    for name, filler in PER_ITEM_FILLERS.items():
        items = [_as_text(item, filler) for item in arrays[name]]
        if len(items) < length:
            logger.debug(f"Padding '{name}' from {len(items)} to {length} entries")
        values[name] = items + [filler] * (length - len(items))

    return MachineInvoice.model_validate(values)


def machine_invoice_to_document(invoice: MachineInvoice) -> DocumentFields:
    """Turn a normalized response into a document bundle with allocated items.

    Gross line value is unit amount times quantity, or the reported price when
    no unit amount is given. Discount comes before tax. Per-item discount and
    tax values win; otherwise the document-level amounts are allocated
    proportionally, or the document tax rate is applied when no tax amount is
    known.
    """
    tax_rate = to_decimal(invoice.tax_rate)
    total_tax = to_decimal(invoice.tax_amount)

    quantities: list[Decimal] = []
    units: list[Decimal] = []
    gross: list[Decimal] = []
    for qty_text, unit_text, price_text in zip(
        invoice.quantities, invoice.unit_amounts, invoice.prices_with_tax, strict=True
    ):
        quantity = to_decimal(qty_text) or Decimal(1)
        unit = to_decimal(unit_text)
        if unit > 0:
            line = round2(unit * quantity)
        else:
            line = to_decimal(price_text)
            unit = round2(line / quantity)
        quantities.append(quantity)
        units.append(unit)
        gross.append(line)

    item_discounts = [to_decimal(v) for v in invoice.discounts]
    if any(item_discounts):
        discounts = [round2(d) for d in item_discounts]
    else:
        discounts = allocate_proportionally(gross, to_decimal(invoice.discount_amount))
    taxable = [g - d for g, d in zip(gross, discounts, strict=True)]

    item_taxes = [to_decimal(v) for v in invoice.item_taxes]
    if any(item_taxes):
        taxes = [round2(t) for t in item_taxes]
    elif total_tax > 0:
        taxes = allocate_proportionally(taxable, total_tax)
    else:
        taxes = [round2(base * tax_rate / HUNDRED) for base in taxable]

    items = []
    for index, name in enumerate(invoice.product_names):
        discount = discounts[index]
        discount_rate = round2(discount / gross[index] * HUNDRED) if gross[index] else Decimal(0)
        item_rate = tax_rate
        if item_rate == 0 and taxable[index] > 0 and taxes[index] > 0:
            item_rate = round2(taxes[index] / taxable[index] * HUNDRED)
        items.append(
            AllocatedItem(
                name=name,
                quantity=quantities[index],
                unit_price=units[index],
                discount_rate=discount_rate,
                discount_amount=discount,
                discount_display=format_discount_string(discount_rate, discount),
                tax_rate=item_rate,
                tax_amount=taxes[index],
                tax_display=format_tax_string(item_rate, taxes[index]),
                price_with_tax=round2(taxable[index] + taxes[index]),
            )
        )

    return DocumentFields(
        invoice_number=invoice.invoice_number,
        date=invoice.date,
        total_amount=to_decimal(invoice.total_amount),
        tax_amount=total_tax if total_tax > 0 else sum(taxes, Decimal(0)),
        tax_rate=tax_rate,
        party_name=invoice.party_name,
        phone_number=invoice.phone_number,
        email=invoice.email,
        address=invoice.address,
        items=items,
    )
