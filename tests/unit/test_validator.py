"""Unit tests for the schema validator."""

import copy
from decimal import Decimal
from typing import Any

import pytest

from invoice_graph.core.schema import ExtractedData
from invoice_graph.core.validator import validate_extracted_data
from invoice_graph.shared.errors import RelationshipViolation, SchemaViolation


@pytest.fixture
def graph() -> dict[str, Any]:
    """A small valid graph in wire format."""
    return {
        "invoices": [
            {
                "id": "INV_1",
                "serialNumber": "A-1",
                "customerId": "CUST_1",
                "productId": "PROD_1",
                "quantity": 2,
                "taxRate": 18,
                "taxAmount": "36.00",
                "totalAmount": "236.00",
                "date": "2024-01-15",
            }
        ],
        "products": [
            {
                "id": "PROD_1",
                "name": "Bolt",
                "quantity": 2,
                "unitPrice": "100.00",
                "priceWithTax": "236.00",
            }
        ],
        "customers": [
            {
                "id": "CUST_1",
                "name": "Acme",
                "phoneNumber": "-",
                "totalPurchaseAmount": "236.00",
            }
        ],
    }


def test_valid_graph(graph: dict[str, Any]) -> None:
    data = validate_extracted_data(graph)

    assert isinstance(data, ExtractedData)
    assert data.invoices[0].total_amount == Decimal("236.00")
    assert data.products[0].unit_price == Decimal("100.00")


def test_null_sections_become_empty() -> None:
    data = validate_extracted_data({"invoices": None, "products": None})

    assert data.invoices == []
    assert data.products == []
    assert data.customers == []


def test_section_must_be_a_list(graph: dict[str, Any]) -> None:
    graph["products"] = {"id": "PROD_1"}

    with pytest.raises(SchemaViolation, match="Invalid products data") as exc_info:
        validate_extracted_data(graph)

    assert exc_info.value.section == "products"
    assert exc_info.value.field is None


def test_missing_field_names_section_field_and_index(graph: dict[str, Any]) -> None:
    second = copy.deepcopy(graph["products"][0])
    second["id"] = "PROD_2"
    del second["priceWithTax"]
    graph["products"].append(second)

    with pytest.raises(SchemaViolation) as exc_info:
        validate_extracted_data(graph)

    error = exc_info.value
    assert (error.section, error.field, error.index) == ("products", "priceWithTax", 1)
    assert str(error) == "Missing required field 'priceWithTax' in products at index 1"


def test_wrong_primitive_kind(graph: dict[str, Any]) -> None:
    graph["invoices"][0]["quantity"] = "two"

    with pytest.raises(SchemaViolation, match="Expected number for field 'quantity'"):
        validate_extracted_data(graph)


def test_boolean_is_not_a_number(graph: dict[str, Any]) -> None:
    graph["products"][0]["quantity"] = True

    with pytest.raises(SchemaViolation):
        validate_extracted_data(graph)


def test_decimal_field_rejects_text(graph: dict[str, Any]) -> None:
    graph["customers"][0]["totalPurchaseAmount"] = "lots"

    with pytest.raises(SchemaViolation, match="Expected decimal"):
        validate_extracted_data(graph)


def test_id_prefix_is_enforced(graph: dict[str, Any]) -> None:
    graph["customers"][0]["id"] = "C_1"
    graph["invoices"][0]["customerId"] = "C_1"

    with pytest.raises(SchemaViolation, match="CUST_") as exc_info:
        validate_extracted_data(graph)

    assert exc_info.value.section == "invoices"
    assert exc_info.value.field == "customerId"


def test_lenient_mode_skips_prefixes(graph: dict[str, Any]) -> None:
    graph["customers"][0]["id"] = "C_1"
    graph["invoices"][0]["customerId"] = "C_1"

    data = validate_extracted_data(graph, strict=False)

    assert data.customers[0].id == "C_1"


def test_dangling_customer_reference(graph: dict[str, Any]) -> None:
    graph["invoices"][0]["customerId"] = "CUST_404"

    with pytest.raises(RelationshipViolation) as exc_info:
        validate_extracted_data(graph)

    assert exc_info.value.index == 0
    assert exc_info.value.reference == "CUST_404"


def test_dangling_product_reference_checked_in_lenient_mode(graph: dict[str, Any]) -> None:
    graph["invoices"][0]["productId"] = "PROD_9"

    with pytest.raises(RelationshipViolation, match="unknown productId 'PROD_9'"):
        validate_extracted_data(graph, strict=False)


def test_built_graph_is_returned_as_is(graph: dict[str, Any]) -> None:
    built = ExtractedData.model_validate(graph)

    assert validate_extracted_data(built) is built
