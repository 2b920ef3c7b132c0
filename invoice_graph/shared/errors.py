"""Typed errors raised by the normalization core.

Field extractors and the allocator degrade to sentinel values instead of
raising. Everything else surfaces one of these so the caller can turn it into
a user-facing message.
"""


class ExtractionError(Exception):
    """Base class for all extraction failures."""


class NoTextExtracted(ExtractionError):
    """Upstream OCR or text extraction produced nothing usable."""

    def __init__(self, message: str = "No text extracted from document") -> None:
        super().__init__(message)


class NoProductsFound(ExtractionError):
    """No line-item section or no parseable line items were found."""

    def __init__(self, message: str = "No products found in the invoice") -> None:
        super().__init__(message)


class MalformedMachineResponse(ExtractionError):
    """JSON parsing and repair both failed on an extraction service response.

    Attributes:
        snippet: Leading part of the offending text, for diagnosis
    """

    SNIPPET_LENGTH = 200

    def __init__(self, message: str, text: str = "") -> None:
        self.snippet = text[: self.SNIPPET_LENGTH]
        detail = f"{message}: {self.snippet!r}" if self.snippet else message
        super().__init__(detail)


class SchemaViolation(ExtractionError):
    """A required field is missing or has the wrong type.

    Attributes:
        section: Output section name (invoices, products, customers)
        field: Offending field name
        index: Position of the item within the section, or None for the section itself
    """

    def __init__(self, section: str, field: str | None, index: int | None, problem: str) -> None:
        self.section = section
        self.field = field
        self.index = index
        if field is None:
            message = f"Invalid {section} data: {problem}"
        else:
            message = f"{problem} '{field}' in {section} at index {index}"
        super().__init__(message)


class RelationshipViolation(ExtractionError):
    """An invoice references a customer or product id missing from the output.

    Attributes:
        index: Position of the invoice
        reference: The id that failed to resolve
    """

    def __init__(self, index: int, field: str, reference: str) -> None:
        self.index = index
        self.field = field
        self.reference = reference
        super().__init__(
            f"Invoice at index {index} references unknown {field} '{reference}'"
        )
