"""Single-field extractors over line-oriented invoice text.

Each field has an ordered table of ``(label, pattern)`` pairs, most specific
first. Lines are scanned top to bottom and the first line matching any pattern
in the table wins. Extractors never raise; a miss returns the field's sentinel.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from types import MappingProxyType

from invoice_graph.core.schema import to_decimal

logger = logging.getLogger(__name__)

PatternTable = tuple[tuple[str, re.Pattern[str]], ...]

UNKNOWN = "unknown"

# Optional currency marker in front of amounts
_CUR = r"(?:Rs\.?|INR|USD|EUR|GBP|[$€£₹])?\s*"
_AMOUNT = r"([\d,]+\.\d+)"
_TAX_LABEL = r"(?:IGST|CGST|SGST|GST|VAT)"


def _table(*pairs: tuple[str, str]) -> PatternTable:
    return tuple((label, re.compile(pattern, re.IGNORECASE)) for label, pattern in pairs)


DEFAULT_PATTERNS: Mapping[str, PatternTable] = MappingProxyType(
    {
        "invoice_number": _table(
            ("invoice_number", r"INVOICE\s*NUMBER\b\s*[:\s]*([\w/-]+)"),
            ("invoice_no", r"INVOICE\s*NO\b\.?\s*[:\s]*([\w/-]+)"),
            ("bill_no", r"BILL\s*NO\b\.?\s*[:\s]*([\w/-]+)"),
            ("invoice_hash", r"INVOICE\s*#[:\s]*([\w/-]+)"),
            ("bill_hash", r"BILL\s*#[:\s]*([\w/-]+)"),
        ),
        "date": _table(
            ("numeric", r"DATE[:\s]*(\d[\d/.-]*\d)"),
            ("month_first", r"DATE[:\s]*([A-Za-z]+\s+\d{1,2},?\s+\d{4})"),
            ("day_first", r"DATE[:\s]*(\d{1,2}\s+[A-Za-z]+\s+\d{4})"),
        ),
        "total_amount": _table(
            ("total_amount", rf"\bTOTAL\s+AMOUNT\b[:\s]*{_CUR}{_AMOUNT}"),
            ("grand_total", rf"\bGRAND\s+TOTAL\b[:\s]*{_CUR}{_AMOUNT}"),
            ("total", rf"\bTOTAL\b[:\s]*{_CUR}{_AMOUNT}"),
            ("amount_due", rf"\bAMOUNT\s+DUE\b[:\s]*{_CUR}{_AMOUNT}"),
        ),
        "tax_amount": _table(
            ("total_tax", rf"\bTOTAL\s+TAX\b[:\s]*{_CUR}{_AMOUNT}"),
            ("tax", rf"\bTAX\b[:\s]*{_CUR}{_AMOUNT}"),
            ("tax_with_rate", rf"\bTAX\b\s*\(?\s*\d+(?:\.\d+)?\s*%\s*\)?[:\s]*{_CUR}{_AMOUNT}"),
            ("gst_with_rate", rf"\b{_TAX_LABEL}\s+\d+(?:\.\d+)?\s*%\s*{_CUR}([\d,]+(?:\.\d+)?)"),
            ("gst", rf"\b{_TAX_LABEL}\b[:\s]*{_CUR}{_AMOUNT}"),
        ),
        "tax_rate": _table(
            ("tax_rate", r"\bTAX\s+RATE\b[:\s]*(\d+(?:\.\d+)?)\s*%"),
            ("gst_rate", rf"\b{_TAX_LABEL}\b\s*[@(]?\s*(\d+(?:\.\d+)?)\s*%"),
            ("tax_percent", r"\bTAX\b\s*[@(]?\s*(\d+(?:\.\d+)?)\s*%"),
        ),
        "party_name": _table(
            (
                "labelled",
                r"\b(?:BILL\s+TO|BILLED\s+TO|CUSTOMER\s+NAME|PARTY\s+NAME|CUSTOMER|CLIENT)\b"
                r"[:\s]*([A-Za-z][\w .&'-]*)",
            ),
            # A bare NAME needs a colon; "Item Name Qty" is a column header
            ("name", r"\bNAME\s*:\s*([A-Za-z][\w .&'-]*)"),
            ("to", r"^TO\b[:\s]+([A-Za-z][\w .&'-]*)"),
        ),
        "phone_number": _table(
            ("phone", r"\b(?:PHONE|PH|TEL)\b\.?[:\s]*(\+?\d[\d -]{8,16}\d)"),
            ("mobile", r"\bMOBILE\b[:\s]*(\+?\d[\d -]{8,16}\d)"),
            ("contact", r"\bCONTACT\b[:\s]*(\+?\d[\d -]{8,16}\d)"),
        ),
        "email": _table(
            ("email", r"([\w.+-]+@[\w-]+(?:\.[\w-]+)+)"),
        ),
    }
)


def split_lines(text: str) -> list[str]:
    """Split raw text into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_amount(value: str) -> Decimal:
    """Parse a number that may carry thousands separators ("1,180.00")."""
    return to_decimal(value.replace(",", ""))


def is_similar(first: str, second: str) -> bool:
    """Compare two tokens ignoring case and every non-letter character.

    Lets header detection tolerate OCR punctuation noise ("Q.ty" vs "Qty").
    """

    def normalize(value: str) -> str:
        return re.sub(r"[^a-z]", "", value.lower())

    return normalize(first) == normalize(second)


class FieldExtractor:
    """Runs the pattern tables against a document's lines.

    Args:
        patterns: Field name to ordered ``(label, pattern)`` table
    """

    def __init__(self, patterns: Mapping[str, PatternTable] = DEFAULT_PATTERNS) -> None:
        self.patterns = patterns

    def first_match(self, field: str, lines: Sequence[str]) -> str | None:
        """Return the first capture for ``field``, scanning lines top to bottom."""
        table = self.patterns.get(field, ())
        for line in lines:
            for label, pattern in table:
                match = pattern.search(line)
                if match:
                    logger.debug(f"{field} matched by '{label}' in line: {line}")
                    return match.group(1).strip()
        return None

    def find_invoice_number(self, lines: Sequence[str]) -> str:
        return self.first_match("invoice_number", lines) or UNKNOWN

    def find_date(self, lines: Sequence[str]) -> str:
        """Document date as printed, or today's ISO date when absent."""
        return self.first_match("date", lines) or date.today().isoformat()

    def find_total_amount(self, lines: Sequence[str]) -> Decimal:
        value = self.first_match("total_amount", lines)
        return parse_amount(value) if value else Decimal(0)

    def find_total_tax_amount(self, lines: Sequence[str]) -> Decimal:
        value = self.first_match("tax_amount", lines)
        return parse_amount(value) if value else Decimal(0)

    def find_tax_rate(self, lines: Sequence[str]) -> Decimal:
        value = self.first_match("tax_rate", lines)
        return parse_amount(value) if value else Decimal(0)

    def find_party_name(self, lines: Sequence[str]) -> str:
        value = self.first_match("party_name", lines)
        return value if value else UNKNOWN

    def find_phone_number(self, lines: Sequence[str]) -> str:
        value = self.first_match("phone_number", lines)
        return re.sub(r"[ -]", "", value) if value else ""

    def find_email(self, lines: Sequence[str]) -> str:
        return self.first_match("email", lines) or ""


default_extractor = FieldExtractor()
