"""Invoice graph models.

Two families live here:

* stage records passed between pipeline steps (``SegmentedLine``,
  ``AllocatedItem``, ``DocumentFields``), using snake_case Python names;
* the output graph (``Customer``, ``Product``, ``Invoice``, ``ExtractedData``),
  serialized with camelCase aliases for the presentation layer.

Money is held as ``Decimal`` and serialized as a fixed 2-decimal string, never
as a binary float.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

CENT = Decimal("0.01")

_NUMBER_RE = re.compile(r"-?\d*\.?\d+")

INVOICE_PREFIX = "INV_"
PRODUCT_PREFIX = "PROD_"
CUSTOMER_PREFIX = "CUST_"


def to_decimal(value: Any) -> Decimal:
    """Best-effort conversion of a scalar to Decimal.

    Strips thousands separators, currency symbols and whitespace. Anything that
    still fails to parse becomes ``Decimal(0)``.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, int | float):
        return Decimal(str(value))
    match = _NUMBER_RE.search(str(value).replace(",", ""))
    if match is None:
        return Decimal(0)
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal(0)


def format_number(value: Decimal) -> str:
    """Render a Decimal without trailing zeros or exponent ("18.00" -> "18")."""
    normalized = value.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


def _serialize_money(value: Decimal) -> str:
    return f"{value.quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


def _serialize_number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _coerce_decimal(value: Any) -> Any:
    if isinstance(value, str):
        return to_decimal(value)
    return value


Money = Annotated[
    Decimal, BeforeValidator(_coerce_decimal), PlainSerializer(_serialize_money, return_type=str)
]
Percent = Annotated[
    Decimal, BeforeValidator(_coerce_decimal), PlainSerializer(format_number, return_type=str)
]
Number = Annotated[
    Decimal,
    BeforeValidator(_coerce_decimal),
    PlainSerializer(_serialize_number, return_type=int | float),
]


class SegmentedLine(BaseModel):
    """One product row recovered from free text, before tax allocation."""

    model_config = ConfigDict(frozen=True)

    name: str
    quantity: Decimal = Decimal(1)
    unit_price: Decimal = Decimal(0)
    amount: Decimal = Field(Decimal(0), description="Line amount (pre-tax basis)")


class AllocatedItem(BaseModel):
    """A line item with discount and tax finalized."""

    model_config = ConfigDict(frozen=True)

    name: str
    quantity: Decimal
    unit_price: Decimal
    discount_rate: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    discount_display: str = ""
    tax_rate: Decimal = Decimal(0)
    tax_amount: Decimal = Decimal(0)
    tax_display: str = ""
    price_with_tax: Decimal = Decimal(0)


class DocumentFields(BaseModel):
    """Everything recovered from a single document, ready for id assignment."""

    model_config = ConfigDict(frozen=True)

    invoice_number: str = "unknown"
    date: str = "unknown"
    total_amount: Decimal = Decimal(0)
    tax_amount: Decimal = Decimal(0)
    tax_rate: Decimal = Decimal(0)
    party_name: str = "unknown"
    phone_number: str = ""
    email: str = ""
    address: str = ""
    items: list[AllocatedItem] = Field(default_factory=list)


class GraphModel(BaseModel):
    """Base for output entities: camelCase on the wire, immutable once built."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Customer(GraphModel):
    """Customer (party) record."""

    id: str
    name: str
    phone_number: str
    email: str = ""
    address: str = ""
    total_purchase_amount: Money = Decimal(0)


class Product(GraphModel):
    """Product record; one per invoice line item."""

    id: str
    name: str
    quantity: Number
    unit_price: Money
    discount_rate: Percent = Decimal(0)
    discount_amount: Money = Decimal(0)
    discount_display: str = ""
    tax_rate: Percent = Decimal(0)
    tax_amount: Money = Decimal(0)
    tax_display: str = ""
    price_with_tax: Money


class Invoice(GraphModel):
    """Invoice line pointing at exactly one customer and one product."""

    id: str
    serial_number: str
    customer_id: str
    product_id: str
    quantity: Number
    tax_rate: Percent = Decimal(0)
    tax_amount: Money = Decimal(0)
    total_amount: Money
    date: str
    customer_name: str = ""
    product_name: str = ""


class ExtractedData(GraphModel):
    """Top-level output: three sequences, never null."""

    invoices: list[Invoice] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    customers: list[Customer] = Field(default_factory=list)

    @field_validator("invoices", "products", "customers", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with camelCase keys and wire formatting."""
        return self.model_dump(mode="json", by_alias=True)
