"""Entry point of the normalization core.

``normalize`` turns one raw input (document text, an LLM response, spreadsheet
records or a model-built graph) into a validated ``ExtractedData``. It is pure:
no file access, no network, no retries.
"""

import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from invoice_graph.core.allocation import allocate_line_items
from invoice_graph.core.fields import FieldExtractor, default_extractor, split_lines
from invoice_graph.core.normalizer import (
    machine_invoice_to_document,
    normalize_machine_response,
    parse_machine_json,
)
from invoice_graph.core.relationships import (
    IdFactory,
    build_document_graph,
    build_spreadsheet_graph,
)
from invoice_graph.core.schema import DocumentFields, ExtractedData
from invoice_graph.core.segmenter import segment_line_items
from invoice_graph.core.spreadsheet import map_rows
from invoice_graph.core.validator import validate_extracted_data
from invoice_graph.shared.errors import NoProductsFound, NoTextExtracted

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Kind of raw input handed to :func:`normalize`."""

    TEXT = "text"  # OCR or PDF text
    LLM = "llm"  # per-item JSON from an extraction service
    ROWS = "rows"  # decoded spreadsheet records
    GRAPH = "graph"  # full invoices/products/customers JSON from a model


def extract_document_fields(text: str, extractor: FieldExtractor = default_extractor) -> DocumentFields:
    """Run field extraction, segmentation and allocation over document text.

    Raises:
        NoTextExtracted: If the text has no non-blank line
        NoProductsFound: If no line item could be segmented
    """
    lines = split_lines(text)
    if not lines:
        raise NoTextExtracted()

    segmented = segment_line_items(lines)
    if not segmented:
        raise NoProductsFound()

    total_tax = extractor.find_total_tax_amount(lines)
    tax_rate = extractor.find_tax_rate(lines)
    items = allocate_line_items(segmented, total_tax=total_tax, tax_rate=tax_rate)

    return DocumentFields(
        invoice_number=extractor.find_invoice_number(lines),
        date=extractor.find_date(lines),
        total_amount=extractor.find_total_amount(lines),
        tax_amount=total_tax,
        tax_rate=tax_rate,
        party_name=extractor.find_party_name(lines),
        phone_number=extractor.find_phone_number(lines),
        email=extractor.find_email(lines),
        items=items,
    )


def _normalize_text(raw_input: Any, ids: IdFactory, extractor: FieldExtractor) -> ExtractedData:
    if not isinstance(raw_input, str) or not raw_input.strip():
        raise NoTextExtracted()
    fields = extract_document_fields(raw_input, extractor)
    return build_document_graph(fields, ids)


def _normalize_llm(raw_input: Any, ids: IdFactory) -> ExtractedData:
    invoice = normalize_machine_response(str(raw_input or ""))
    if not any(name.strip() for name in invoice.product_names):
        raise NoProductsFound("No products found in the extraction response")
    return build_document_graph(machine_invoice_to_document(invoice), ids)


def _normalize_rows(raw_input: Any, ids: IdFactory) -> ExtractedData:
    records: Sequence[Mapping[str, Any]] = raw_input or []
    rows = map_rows(records)
    if not rows:
        raise NoTextExtracted("Spreadsheet is empty or missing data")
    return build_spreadsheet_graph(rows, ids)


def normalize(
    raw_input: Any,
    source_kind: SourceKind | str,
    *,
    ids: IdFactory | None = None,
    extractor: FieldExtractor | None = None,
) -> ExtractedData:
    """Normalize one raw input into a validated invoice graph.

    Args:
        raw_input: Text for ``TEXT``, ``LLM`` and ``GRAPH``; a sequence of
            header-keyed records for ``ROWS``
        source_kind: Which path the input takes
        ids: Identifier factory for this run; a fresh one by default
        extractor: Field extractor for the text path

    Returns:
        ExtractedData with every invoice reference resolved

    Raises:
        ExtractionError: Any subclass, depending on where the input fails
    """
    kind = SourceKind(source_kind)
    ids = ids or IdFactory()
    extractor = extractor or default_extractor
    logger.info(f"Normalizing {kind.value} input")

    if kind is SourceKind.TEXT:
        graph = _normalize_text(raw_input, ids, extractor)
    elif kind is SourceKind.LLM:
        graph = _normalize_llm(raw_input, ids)
    elif kind is SourceKind.ROWS:
        graph = _normalize_rows(raw_input, ids)
    else:
        return validate_extracted_data(parse_machine_json(str(raw_input or "")), strict=True)

    return validate_extracted_data(graph, strict=True)
