"""Relationship building: id assignment and foreign-key wiring.

This module is the only place identifiers are minted. A single document yields
N invoices, N products and one customer; a spreadsheet yields one invoice and
one product per row, with customers grouped by name.
"""

import logging
import uuid
from collections.abc import Callable, Sequence
from decimal import Decimal

from invoice_graph.core.allocation import (
    format_discount_string,
    format_tax_string,
    round2,
)
from invoice_graph.core.schema import (
    CUSTOMER_PREFIX,
    INVOICE_PREFIX,
    PRODUCT_PREFIX,
    AllocatedItem,
    Customer,
    DocumentFields,
    ExtractedData,
    Invoice,
    Product,
)
from invoice_graph.core.spreadsheet import SpreadsheetRow

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_PRODUCT = "Unknown Product"
MISSING_CONTACT = "-"

ZERO = Decimal(0)
HUNDRED = Decimal(100)


def _uuid_hex() -> str:
    return uuid.uuid4().hex


class IdFactory:
    """Mints prefixed identifiers for one extraction run.

    Args:
        minter: Callable returning a fresh unique suffix; uuid4 hex by default
    """

    def __init__(self, minter: Callable[[], str] | None = None) -> None:
        self._mint = minter or _uuid_hex

    def invoice_id(self) -> str:
        return f"{INVOICE_PREFIX}{self._mint()}"

    def product_id(self) -> str:
        return f"{PRODUCT_PREFIX}{self._mint()}"

    def customer_id(self) -> str:
        return f"{CUSTOMER_PREFIX}{self._mint()}"


def resolve_customer_name(name: str | None) -> str:
    """Party name, or the placeholder when it is missing or unknown."""
    if not name or not name.strip() or name.strip().lower() == "unknown":
        return UNKNOWN_CUSTOMER
    return name.strip()


def _contact(value: str | None) -> str:
    return value.strip() if value and value.strip() else MISSING_CONTACT


def _product(product_id: str, item: AllocatedItem) -> Product:
    return Product(
        id=product_id,
        name=item.name or UNKNOWN_PRODUCT,
        quantity=item.quantity,
        unit_price=item.unit_price,
        discount_rate=item.discount_rate,
        discount_amount=item.discount_amount,
        discount_display=item.discount_display,
        tax_rate=item.tax_rate,
        tax_amount=item.tax_amount,
        tax_display=item.tax_display,
        price_with_tax=item.price_with_tax,
    )


def build_document_graph(fields: DocumentFields, ids: IdFactory) -> ExtractedData:
    """Wire one document's items into an N:N:1 invoice/product/customer graph.

    Every invoice points at the single document customer and at its own
    product. The customer's purchase total is the document total, or the sum of
    the items' prices when the document shows no total.
    """
    customer_id = ids.customer_id()
    customer_name = resolve_customer_name(fields.party_name)

    invoices: list[Invoice] = []
    products: list[Product] = []
    for index, item in enumerate(fields.items):
        product = _product(ids.product_id(), item)
        products.append(product)
        invoices.append(
            Invoice(
                id=ids.invoice_id(),
                serial_number=f"{fields.invoice_number}-{index + 1}",
                customer_id=customer_id,
                product_id=product.id,
                quantity=item.quantity,
                tax_rate=item.tax_rate,
                tax_amount=item.tax_amount,
                total_amount=item.price_with_tax,
                date=fields.date,
                customer_name=customer_name,
                product_name=product.name,
            )
        )

    total = fields.total_amount
    if total == 0:
        total = sum((item.price_with_tax for item in fields.items), ZERO)

    customer = Customer(
        id=customer_id,
        name=customer_name,
        phone_number=_contact(fields.phone_number),
        email=_contact(fields.email),
        address=_contact(fields.address),
        total_purchase_amount=total,
    )

    logger.info(f"Built document graph with {len(invoices)} invoices for '{customer_name}'")
    return ExtractedData(invoices=invoices, products=products, customers=[customer])


def row_to_item(row: SpreadsheetRow) -> AllocatedItem:
    """Finalize discount and tax for one spreadsheet row.

    With a unit price, the line is ``unit * quantity`` less discount plus tax
    (the row's tax amount, or its rate applied to the discounted base). Without
    one, the row total is taken as the price with tax and the unit price is
    derived from it.
    """
    quantity = row.quantity or Decimal(1)
    discount = row.discount_amount
    tax = row.tax_amount

    if row.unit_price:
        unit_price = row.unit_price
        gross = round2(unit_price * quantity)
        if discount is None:
            discount = round2(gross * (row.discount_rate or ZERO) / HUNDRED)
        taxable = gross - discount
        if tax is None:
            tax = round2(taxable * (row.tax_rate or ZERO) / HUNDRED)
        price_with_tax = round2(taxable + tax)
    else:
        price_with_tax = row.total_amount or ZERO
        discount = discount or ZERO
        tax = tax or ZERO
        gross = price_with_tax - tax + discount
        unit_price = round2(gross / quantity)
        taxable = gross - discount

    discount_rate = row.discount_rate
    if discount_rate is None:
        discount_rate = round2(discount / gross * HUNDRED) if gross else ZERO
    tax_rate = row.tax_rate
    if tax_rate is None:
        tax_rate = round2(tax / taxable * HUNDRED) if taxable > 0 else ZERO

    return AllocatedItem(
        name=row.product_name or UNKNOWN_PRODUCT,
        quantity=quantity,
        unit_price=unit_price,
        discount_rate=discount_rate,
        discount_amount=discount,
        discount_display=format_discount_string(discount_rate, discount),
        tax_rate=tax_rate,
        tax_amount=tax,
        tax_display=format_tax_string(tax_rate, tax),
        price_with_tax=price_with_tax,
    )


def build_spreadsheet_graph(rows: Sequence[SpreadsheetRow], ids: IdFactory) -> ExtractedData:
    """Wire spreadsheet rows into an N:N:M graph, M being distinct customer names.

    Each customer's purchase total is the sum of its invoices' totals. The
    first row seen for a customer supplies its contact details.
    """
    customers: dict[str, Customer] = {}
    totals: dict[str, Decimal] = {}
    invoices: list[Invoice] = []
    products: list[Product] = []

    for index, row in enumerate(rows):
        name = resolve_customer_name(row.customer_name)
        customer = customers.get(name)
        if customer is None:
            customer = Customer(
                id=ids.customer_id(),
                name=name,
                phone_number=_contact(row.customer_phone),
                email=_contact(row.customer_email),
                address=_contact(row.customer_address),
            )
            customers[name] = customer
            totals[name] = ZERO

        item = row_to_item(row)
        product = _product(ids.product_id(), item)
        products.append(product)

        invoice_total = row.total_amount or item.price_with_tax
        totals[name] += invoice_total
        invoices.append(
            Invoice(
                id=ids.invoice_id(),
                serial_number=row.invoice_number or f"ROW-{index + 1}",
                customer_id=customer.id,
                product_id=product.id,
                quantity=item.quantity,
                tax_rate=item.tax_rate,
                tax_amount=item.tax_amount,
                total_amount=invoice_total,
                date=row.invoice_date or "unknown",
                customer_name=name,
                product_name=product.name,
            )
        )

    finalized = [
        customer.model_copy(update={"total_purchase_amount": totals[name]})
        for name, customer in customers.items()
    ]
    logger.info(
        f"Built spreadsheet graph with {len(invoices)} invoices across {len(finalized)} customers"
    )
    return ExtractedData(invoices=invoices, products=products, customers=finalized)
