"""Schema validation: the last gate before data leaves the core."""

import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from invoice_graph.core.schema import CUSTOMER_PREFIX, INVOICE_PREFIX, PRODUCT_PREFIX, ExtractedData
from invoice_graph.shared.errors import RelationshipViolation, SchemaViolation

logger = logging.getLogger(__name__)

SECTIONS = ("invoices", "products", "customers")

# Required fields per section and the primitive kind each must have
REQUIRED_FIELDS: Mapping[str, Mapping[str, str]] = {
    "invoices": {
        "id": "id",
        "serialNumber": "text",
        "customerId": "id",
        "productId": "id",
        "quantity": "number",
        "totalAmount": "decimal",
        "date": "text",
    },
    "products": {
        "id": "id",
        "name": "text",
        "quantity": "number",
        "unitPrice": "decimal",
        "priceWithTax": "decimal",
    },
    "customers": {
        "id": "id",
        "name": "text",
        "phoneNumber": "text",
        "totalPurchaseAmount": "decimal",
    },
}

ID_PREFIXES: Mapping[tuple[str, str], str] = {
    ("invoices", "id"): INVOICE_PREFIX,
    ("invoices", "customerId"): CUSTOMER_PREFIX,
    ("invoices", "productId"): PRODUCT_PREFIX,
    ("products", "id"): PRODUCT_PREFIX,
    ("customers", "id"): CUSTOMER_PREFIX,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float | Decimal) and not isinstance(value, bool)


def _is_decimal(value: Any) -> bool:
    if _is_number(value):
        return True
    if not isinstance(value, str):
        return False
    try:
        Decimal(value.replace(",", "").strip())
    except InvalidOperation:
        return False
    return True


def _check_field(section: str, index: int, field: str, kind: str, value: Any) -> None:
    if kind in ("id", "text"):
        if not isinstance(value, str):
            raise SchemaViolation(section, field, index, "Expected text for field")
        if kind == "id":
            prefix = ID_PREFIXES[(section, field)]
            if not value.startswith(prefix):
                raise SchemaViolation(section, field, index, f"Expected prefix {prefix} for field")
    elif kind == "number" and not _is_number(value):
        raise SchemaViolation(section, field, index, "Expected number for field")
    elif kind == "decimal" and not _is_decimal(value):
        raise SchemaViolation(section, field, index, "Expected decimal for field")


def _check_items(section: str, items: list[Any]) -> None:
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise SchemaViolation(section, None, index, f"item at index {index} is not an object")
        for field, kind in REQUIRED_FIELDS[section].items():
            if field not in item or item[field] is None:
                raise SchemaViolation(section, field, index, "Missing required field")
            _check_field(section, index, field, kind, item[field])


def _check_relationships(data: Mapping[str, list[Any]]) -> None:
    customer_ids = {item.get("id") for item in data["customers"] if isinstance(item, Mapping)}
    product_ids = {item.get("id") for item in data["products"] if isinstance(item, Mapping)}
    for index, invoice in enumerate(data["invoices"]):
        if not isinstance(invoice, Mapping):
            continue
        if invoice.get("customerId") not in customer_ids:
            raise RelationshipViolation(index, "customerId", str(invoice.get("customerId")))
        if invoice.get("productId") not in product_ids:
            raise RelationshipViolation(index, "productId", str(invoice.get("productId")))


def validate_extracted_data(
    data: ExtractedData | Mapping[str, Any], strict: bool = True
) -> ExtractedData:
    """Check a candidate graph and return it as a frozen ``ExtractedData``.

    Null or missing sections are coerced to empty lists. In strict mode every
    item must carry all required fields with the expected primitive kind, and
    every id must carry its section prefix. Invoice references must always
    resolve.

    Args:
        data: Graph built by the relationship builder, or a raw mapping with
            camelCase keys (e.g. parsed from a model response)
        strict: Enforce required fields, kinds and id prefixes

    Returns:
        The validated graph

    Raises:
        SchemaViolation: If a section or required field is missing or mistyped
        RelationshipViolation: If an invoice references an unknown id
    """
    built = data if isinstance(data, ExtractedData) else None
    raw = built.to_json_dict() if built is not None else data

    sections: dict[str, list[Any]] = {}
    for section in SECTIONS:
        value = raw.get(section)
        if value is None:
            value = []
        if not isinstance(value, list):
            raise SchemaViolation(section, None, None, f"expected a list, got {type(value).__name__}")
        sections[section] = value

    if strict:
        for section in SECTIONS:
            _check_items(section, sections[section])
    _check_relationships(sections)

    if built is not None:
        return built

    try:
        validated = ExtractedData.model_validate(sections)
    except ValidationError as e:
        first = e.errors()[0]
        location = first["loc"]
        section = str(location[0]) if location else "data"
        index = location[1] if len(location) > 1 and isinstance(location[1], int) else None
        field = str(location[2]) if len(location) > 2 else None
        raise SchemaViolation(section, field, index, first["msg"]) from e

    logger.debug(
        f"Validated graph: {len(validated.invoices)} invoices, "
        f"{len(validated.products)} products, {len(validated.customers)} customers"
    )
    return validated
