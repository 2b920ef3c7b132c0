"""Line-item segmentation of free invoice text.

Finds the product table inside OCR or PDF text and turns each row into a
``SegmentedLine`` using numeric-token heuristics:

1. the first line matching a section header (most specific header first);
2. an optional column-header row right after it;
3. rows up to the first end-of-section marker (subtotal, total, tax labels).

Rows without any numeric token are skipped. An empty result is reported to the
caller, which treats it as a failed extraction.
"""

import logging
import re
from collections.abc import Sequence
from decimal import Decimal

from invoice_graph.core.fields import is_similar, parse_amount
from invoice_graph.core.schema import SegmentedLine

logger = logging.getLogger(__name__)

SECTION_HEADERS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bITEM\s+DESCRIPTION\b",
        r"\bDESCRIPTION\b",
        r"\bPRODUCTS?\b",
        r"\bITEM\s+NAME\b",
        r"\bITEMS\b",
        r"\bDETAILS\b",
    )
)

EXPECTED_COLUMNS: tuple[str, ...] = ("Qty", "Price", "Amount")

SECTION_END = re.compile(
    r"\b(?:SUB\s*TOTAL|GRAND\s*TOTAL|TOTAL|TAX|IGST|CGST|SGST|GST|VAT)\b|\bTHANK\s*YOU\b",
    re.IGNORECASE,
)

# Decimal with optional thousands separators: "2", "500.00", "1,000.00"
NUMBER_TOKEN = re.compile(r"(?<![\w.,])(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?![\w,]|\.\d)")
# Fallback: decimal with a mandatory fraction
FRACTION_TOKEN = re.compile(r"[\d,]*\d\.\d+")

UNKNOWN_PRODUCT = "Unknown Product"


def find_section_start(lines: Sequence[str]) -> int | None:
    """Index of the product section header line, trying headers in priority order."""
    for header in SECTION_HEADERS:
        for index, line in enumerate(lines):
            if header.search(line):
                return index
    return None


def is_column_header(line: str) -> bool:
    """True when the line names any of the expected table columns."""
    tokens = line.split()
    for column in EXPECTED_COLUMNS:
        for token in tokens:
            if token == column or is_similar(token, column):
                return True
    return False


def _strip_spans(line: str, spans: Sequence[tuple[int, int]]) -> str:
    text = line
    for start, end in sorted(set(spans), reverse=True):
        text = text[:start] + " " + text[end:]
    return " ".join(text.split()).strip(" -:|,")


def parse_product_line(line: str) -> SegmentedLine | None:
    """Parse one table row; ``None`` when the row carries no numbers."""
    tokens = list(NUMBER_TOKEN.finditer(line))

    if len(tokens) >= 2:
        quantity_token, amount_token = tokens[0], tokens[-1]
        quantity = parse_amount(quantity_token.group(0))
        amount = parse_amount(amount_token.group(0))
        spans = [quantity_token.span(), amount_token.span()]
        if len(tokens) >= 3:
            unit_token = tokens[-2]
            unit_price = parse_amount(unit_token.group(0))
            spans.append(unit_token.span())
        elif quantity > 0:
            unit_price = amount / quantity
        else:
            unit_price = Decimal(0)
    else:
        fractions = list(FRACTION_TOKEN.finditer(line))
        if not fractions:
            logger.warning(f"Could not parse product line: {line}")
            return None
        quantity = Decimal(1)
        amount = parse_amount(fractions[-1].group(0))
        spans = [fractions[-1].span()]
        if len(fractions) >= 2:
            unit_price = parse_amount(fractions[-2].group(0))
            spans.append(fractions[-2].span())
        else:
            unit_price = amount

    name = _strip_spans(line, spans) or UNKNOWN_PRODUCT
    return SegmentedLine(
        name=name,
        quantity=quantity,
        unit_price=unit_price.quantize(Decimal("0.01")),
        amount=amount,
    )


def segment_line_items(lines: Sequence[str]) -> list[SegmentedLine]:
    """Split the product section of a document into line items.

    Args:
        lines: Trimmed, non-empty document lines

    Returns:
        Parsed line items in document order; empty when no section was found
        or no row in it could be parsed
    """
    start = find_section_start(lines)
    if start is None:
        logger.warning("Could not find the start of the products section")
        return []

    logger.debug(f"Products section starts at line {start}: {lines[start]}")
    first_row = start + 1
    if first_row < len(lines) and is_column_header(lines[first_row]):
        first_row += 1

    items: list[SegmentedLine] = []
    for line in lines[first_row:]:
        if SECTION_END.search(line):
            break
        parsed = parse_product_line(line)
        if parsed is not None:
            items.append(parsed)

    logger.info(f"Segmented {len(items)} product lines")
    return items
