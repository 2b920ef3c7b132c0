"""Tax and discount allocation across invoice line items.

Document-level aggregates (total tax, total discount) are spread over the line
items in proportion to each line's share of the pre-allocation total. Every
per-line value is rounded half away from zero to 2 decimal places. The rounded
shares are not reconciled against the document total, so the sum may drift from
it by at most one cent per line.

Nothing in this module raises: bad input degrades to zero amounts.
"""

import logging
import re
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from invoice_graph.core.schema import CENT, AllocatedItem, SegmentedLine, format_number, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)

_RATE_IN_PARENS_RE = re.compile(r"\(\s*(\d+(?:\.\d+)?)\s*%\s*\)")
_AMOUNT_IN_PARENS_RE = re.compile(r"\(\s*([\d,]*\.?\d+)\s*\)")
_LEADING_RATE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%")
_LEADING_AMOUNT_RE = re.compile(r"^\s*([\d,]*\.?\d+)")


class TaxInfo(NamedTuple):
    """Amount and percentage parsed back out of a display string."""

    amount: Decimal
    rate: Decimal


def round2(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def allocate_proportionally(bases: Sequence[Decimal], total: Decimal) -> list[Decimal]:
    """Split ``total`` across ``bases`` by each base's share of their sum.

    Args:
        bases: Per-line pre-allocation amounts
        total: Document-level aggregate to distribute

    Returns:
        One rounded share per base; all zeros when the bases sum to zero
    """
    denominator = sum(bases, ZERO)
    if denominator == 0 or total == 0:
        return [ZERO for _ in bases]
    return [round2(base / denominator * total) for base in bases]


def format_tax_string(rate: Decimal, amount: Decimal) -> str:
    """Render a rate/amount pair for display.

    ``"18% (108.00)"`` when both are present, ``"18%"`` for a bare rate,
    ``"108.00"`` for a bare amount and ``""`` when neither is set.
    """
    if rate > 0 and amount > 0:
        return f"{format_number(rate)}% ({round2(amount):.2f})"
    if rate > 0:
        return f"{format_number(rate)}%"
    if amount > 0:
        return f"{round2(amount):.2f}"
    return ""


format_discount_string = format_tax_string


def parse_tax_info(text: str) -> TaxInfo:
    """Parse a tax display string back into amount and rate.

    Understands both the ``"18% (108.00)"`` form produced by
    :func:`format_tax_string` and the ``"8,115.25 (18%)"`` form found on
    documents. Unparseable input yields zeros.
    """
    if not text:
        return TaxInfo(ZERO, ZERO)

    rate_match = _LEADING_RATE_RE.match(text)
    if rate_match:
        amount_match = _AMOUNT_IN_PARENS_RE.search(text, rate_match.end())
        amount = to_decimal(amount_match.group(1)) if amount_match else ZERO
        return TaxInfo(amount, Decimal(rate_match.group(1)))

    amount_match = _LEADING_AMOUNT_RE.match(text)
    if amount_match is None:
        return TaxInfo(ZERO, ZERO)
    rate_match = _RATE_IN_PARENS_RE.search(text)
    rate = Decimal(rate_match.group(1)) if rate_match else ZERO
    return TaxInfo(to_decimal(amount_match.group(1)), rate)


def _rate_of(part: Decimal, base: Decimal) -> Decimal:
    if base == 0:
        return ZERO
    return round2(part / base * HUNDRED)


def allocate_line_items(
    lines: Sequence[SegmentedLine],
    total_tax: Decimal = ZERO,
    tax_rate: Decimal = ZERO,
    total_discount: Decimal = ZERO,
) -> list[AllocatedItem]:
    """Finalize tax and discount for lines whose amount is the pre-tax basis.

    Discount is allocated first and reduces the taxable base. Tax is then
    allocated over the discounted bases; when no document tax amount is known
    but a rate is, each line is taxed at that rate instead.

    Args:
        lines: Segmented line items; ``amount`` is the pre-tax line amount
        total_tax: Document-level tax amount
        tax_rate: Document-level tax rate (percent)
        total_discount: Document-level discount amount

    Returns:
        Allocated items in input order
    """
    bases = [line.amount for line in lines]
    discounts = allocate_proportionally(bases, total_discount)
    taxable = [base - discount for base, discount in zip(bases, discounts, strict=True)]

    if total_tax > 0:
        taxes = allocate_proportionally(taxable, total_tax)
    else:
        taxes = [round2(base * tax_rate / HUNDRED) for base in taxable]

    items = []
    for line, base, discount, tax in zip(lines, taxable, discounts, taxes, strict=True):
        discount_rate = _rate_of(discount, line.amount)
        items.append(
            AllocatedItem(
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_rate=discount_rate,
                discount_amount=discount,
                discount_display=format_discount_string(discount_rate, discount),
                tax_rate=tax_rate,
                tax_amount=tax,
                tax_display=format_tax_string(tax_rate, tax),
                price_with_tax=round2(base + tax),
            )
        )

    logger.debug(
        f"Allocated tax {total_tax} (rate {tax_rate}%) and discount {total_discount} "
        f"across {len(items)} line items"
    )
    return items
