"""Header mapping for spreadsheet rows.

Spreadsheets arrive as a list of records keyed by whatever column titles the
author used. Titles are lower-cased, trimmed and looked up in
``HEADER_MAPPING``; each record becomes a typed ``SpreadsheetRow``.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, time
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from invoice_graph.core.schema import to_decimal

logger = logging.getLogger(__name__)

HEADER_MAPPING: Mapping[str, str] = {
    # Invoice headers
    "invoice date": "invoice_date",
    "date": "invoice_date",
    "invoice number": "invoice_number",
    "invoice no": "invoice_number",
    "invoice #": "invoice_number",
    "number": "invoice_number",
    # Customer headers
    "customer name": "customer_name",
    "party name": "customer_name",
    "name": "customer_name",
    "customer": "customer_name",
    "customer phone": "customer_phone",
    "phone": "customer_phone",
    "phone number": "customer_phone",
    "mobile": "customer_phone",
    "customer email": "customer_email",
    "email": "customer_email",
    "customer address": "customer_address",
    "address": "customer_address",
    # Product headers
    "product name": "product_name",
    "product": "product_name",
    "item": "product_name",
    "description": "product_name",
    "quantity": "quantity",
    "qty": "quantity",
    "unit price": "unit_price",
    "price": "unit_price",
    "rate": "unit_price",
    "discount": "discount_amount",
    "discount amount": "discount_amount",
    "discount %": "discount_rate",
    "discount rate": "discount_rate",
    "tax rate": "tax_rate",
    "tax %": "tax_rate",
    "gst %": "tax_rate",
    "tax amount": "tax_amount",
    "tax": "tax_amount",
    "total amount": "total_amount",
    "total": "total_amount",
    "net amount": "total_amount",
}


class SpreadsheetRow(BaseModel):
    """One header-mapped spreadsheet record; missing cells are ``None``."""

    model_config = ConfigDict(frozen=True)

    invoice_date: str | None = None
    invoice_number: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    customer_address: str | None = None
    product_name: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    discount_amount: Decimal | None = None
    discount_rate: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    total_amount: Decimal | None = None


_NUMERIC_FIELDS = {
    "quantity",
    "unit_price",
    "discount_amount",
    "discount_rate",
    "tax_rate",
    "tax_amount",
    "total_amount",
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _cell_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == time.min else value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def map_row(record: Mapping[str, Any]) -> SpreadsheetRow:
    """Map one raw record onto ``SpreadsheetRow`` fields.

    Unknown columns are dropped. When two columns map to the same field the
    first non-blank one wins.
    """
    values: dict[str, Any] = {}
    for header, cell in record.items():
        field = HEADER_MAPPING.get(str(header).strip().lower())
        if field is None or field in values or _is_blank(cell):
            continue
        if field in _NUMERIC_FIELDS:
            values[field] = to_decimal(cell)
        else:
            values[field] = _cell_text(cell)
    return SpreadsheetRow(**values)


def map_rows(records: Iterable[Mapping[str, Any]]) -> list[SpreadsheetRow]:
    """Map every record, skipping rows with no recognised value at all."""
    rows = []
    for index, record in enumerate(records):
        row = map_row(record)
        if not row.model_dump(exclude_none=True):
            logger.debug(f"Skipping empty spreadsheet row {index}")
            continue
        rows.append(row)
    return rows
