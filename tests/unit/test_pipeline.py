"""Unit tests for the normalization entry point."""

import json
from decimal import Decimal

import pytest

from invoice_graph.core.pipeline import SourceKind, extract_document_fields, normalize
from invoice_graph.core.relationships import IdFactory
from invoice_graph.shared.errors import (
    MalformedMachineResponse,
    NoProductsFound,
    NoTextExtracted,
    RelationshipViolation,
    SchemaViolation,
)

INVOICE_TEXT = """
ABC Traders
INVOICE NO: INV-1001
Date: 12/03/2024
Customer Name: Acme Corp
Phone: 98450 12345
Item Description
Qty Price Amount
Widget 2 500.00 1000.00
Tax (18%): 180.00
TOTAL AMOUNT: Rs. 1,180.00
"""

TWO_LINE_TEXT = """
Invoice No: B-77
Bill To: Zenith Stores
Description
Bolt 10 12.50 125.00
Nut 25 3.00 75.00
IGST 18% 36.00
Grand Total 236.00
"""

LLM_RESPONSE = """Here is the extracted data:
```json
{
  "Invoice number": "INV-2024-118",
  "Date": "15/01/2024",
  "Total amount": "194.70",
  "Tax amount": "29.70",
  "Tax rate": "18",
  "Party name": "Acme Traders",
  "Product names": ["Steel Bolt M8", "Hex Nut M8"],
  "Quantity": ["10", "20"],
  "Unit Amount": ["12.50", "2.00"],
}
```"""


class TestTextPath:
    def test_invoice_number_total_and_product(self, ids: IdFactory) -> None:
        data = normalize(INVOICE_TEXT, SourceKind.TEXT, ids=ids)

        assert data.invoices[0].serial_number.startswith("INV-1001")
        assert len(data.products) == 1
        product = data.products[0]
        assert "Widget" in product.name
        assert product.quantity == Decimal(2)
        assert product.tax_amount == Decimal("180.00")
        assert product.price_with_tax == Decimal("1180.00")
        customer = data.customers[0]
        assert customer.name == "Acme Corp"
        assert customer.phone_number == "9845012345"
        assert customer.total_purchase_amount == Decimal("1180.00")

    def test_document_tax_is_allocated_across_lines(self, ids: IdFactory) -> None:
        data = normalize(TWO_LINE_TEXT, SourceKind.TEXT, ids=ids)

        assert [p.name for p in data.products] == ["Bolt", "Nut"]
        taxes = [p.tax_amount for p in data.products]
        assert taxes == [Decimal("22.50"), Decimal("13.50")]
        assert abs(sum(taxes) - Decimal("36.00")) <= Decimal("0.01") * len(taxes)
        assert data.customers[0].name == "Zenith Stores"

    def test_wire_format(self, ids: IdFactory) -> None:
        wire = normalize(INVOICE_TEXT, SourceKind.TEXT, ids=ids).to_json_dict()

        assert set(wire) == {"invoices", "products", "customers"}
        product = wire["products"][0]
        assert product["quantity"] == 2
        assert product["unitPrice"] == "500.00"
        assert product["taxRate"] == "18"
        assert product["taxDisplay"] == "18% (180.00)"
        assert wire["invoices"][0]["taxRate"] == product["taxRate"]
        assert wire["invoices"][0]["customerId"] == wire["customers"][0]["id"]

    def test_header_without_lines_raises_no_products(self) -> None:
        text = "INVOICE NO: 5\nItem Description\nQty Price Amount\nSubtotal 0.00\nTotal 0.00"

        with pytest.raises(NoProductsFound):
            normalize(text, SourceKind.TEXT)

    def test_text_without_section_raises_no_products(self) -> None:
        with pytest.raises(NoProductsFound):
            normalize("Just a letter.\nRegards", SourceKind.TEXT)

    @pytest.mark.parametrize("text", ["", "   \n\t", None])
    def test_empty_text_raises_no_text(self, text: str | None) -> None:
        with pytest.raises(NoTextExtracted):
            normalize(text, SourceKind.TEXT)

    def test_extract_document_fields(self) -> None:
        fields = extract_document_fields(INVOICE_TEXT)

        assert fields.invoice_number == "INV-1001"
        assert fields.date == "12/03/2024"
        assert fields.total_amount == Decimal("1180.00")
        assert fields.tax_rate == Decimal("18")


class TestLlmPath:
    def test_fenced_response_with_trailing_comma(self, ids: IdFactory) -> None:
        data = normalize(LLM_RESPONSE, SourceKind.LLM, ids=ids)

        assert [p.name for p in data.products] == ["Steel Bolt M8", "Hex Nut M8"]
        assert [p.tax_amount for p in data.products] == [Decimal("22.50"), Decimal("7.20")]
        assert [p.price_with_tax for p in data.products] == [Decimal("147.50"), Decimal("47.20")]
        assert [i.serial_number for i in data.invoices] == ["INV-2024-118-1", "INV-2024-118-2"]
        assert data.customers[0].total_purchase_amount == Decimal("194.70")

    def test_no_product_names(self) -> None:
        with pytest.raises(NoProductsFound):
            normalize('{"Invoice number": "1", "Total amount": "10"}', SourceKind.LLM)

    def test_unparseable_response(self) -> None:
        with pytest.raises(MalformedMachineResponse):
            normalize("The invoice is unreadable.", SourceKind.LLM)

    def test_source_kind_accepts_plain_string(self, ids: IdFactory) -> None:
        data = normalize('{"Product names": ["A"], "Unit Amount": ["5"]}', "llm", ids=ids)

        assert data.products[0].price_with_tax == Decimal("5.00")


class TestRowsPath:
    def test_rows_sharing_a_customer(self, ids: IdFactory) -> None:
        records = [
            {"Customer Name": "Acme", "Product Name": "Bolt", "Qty": 10, "Total Amount": 147.5},
            {"Customer Name": "Acme", "Product Name": "Nut", "Qty": 20, "Total Amount": 47.2},
        ]

        data = normalize(records, SourceKind.ROWS, ids=ids)

        assert len(data.customers) == 1
        customer = data.customers[0]
        assert customer.total_purchase_amount == Decimal("194.70")
        assert [invoice.customer_id for invoice in data.invoices] == [customer.id, customer.id]

    def test_no_rows(self) -> None:
        with pytest.raises(NoTextExtracted):
            normalize([], SourceKind.ROWS)


class TestGraphPath:
    def test_model_built_graph_is_validated(self) -> None:
        graph = {
            "invoices": [
                {
                    "id": "INV_1",
                    "serialNumber": "9",
                    "customerId": "CUST_1",
                    "productId": "PROD_1",
                    "quantity": 1,
                    "totalAmount": 10,
                    "date": "2024-01-01",
                }
            ],
            "products": [
                {"id": "PROD_1", "name": "A", "quantity": 1, "unitPrice": 10, "priceWithTax": 10}
            ],
            "customers": [
                {"id": "CUST_1", "name": "Acme", "phoneNumber": "1", "totalPurchaseAmount": 10}
            ],
        }

        data = normalize(f"```json\n{json.dumps(graph)}\n```", SourceKind.GRAPH)

        assert data.to_json_dict()["invoices"][0]["totalAmount"] == "10.00"

    def test_missing_field(self) -> None:
        with pytest.raises(SchemaViolation, match="'priceWithTax' in products at index 0"):
            normalize(
                '{"products": [{"id": "PROD_1", "name": "A", "quantity": 1, "unitPrice": 1}]}',
                SourceKind.GRAPH,
            )

    def test_dangling_reference(self) -> None:
        graph = {
            "invoices": [
                {
                    "id": "INV_1",
                    "serialNumber": "9",
                    "customerId": "CUST_2",
                    "productId": "PROD_1",
                    "quantity": 1,
                    "totalAmount": 10,
                    "date": "x",
                }
            ],
            "products": [
                {"id": "PROD_1", "name": "A", "quantity": 1, "unitPrice": 10, "priceWithTax": 10}
            ],
        }

        with pytest.raises(RelationshipViolation):
            normalize(json.dumps(graph), SourceKind.GRAPH)


class TestRepeatability:
    def test_same_text_gives_same_output_apart_from_ids(self) -> None:
        first = normalize(TWO_LINE_TEXT, SourceKind.TEXT).to_json_dict()
        second = normalize(TWO_LINE_TEXT, SourceKind.TEXT).to_json_dict()

        assert first["invoices"][0]["id"] != second["invoices"][0]["id"]
        assert _without_ids(first) == _without_ids(second)

    def test_same_ids_give_identical_output(self) -> None:
        def counting_ids() -> IdFactory:
            counter = iter(range(1, 100))
            return IdFactory(lambda: str(next(counter)))

        first = normalize(LLM_RESPONSE, SourceKind.LLM, ids=counting_ids())
        second = normalize(LLM_RESPONSE, SourceKind.LLM, ids=counting_ids())

        assert json.dumps(first.to_json_dict()) == json.dumps(second.to_json_dict())


def _without_ids(wire: dict) -> dict:
    id_fields = {"id", "customerId", "productId"}
    return {
        section: [{k: v for k, v in item.items() if k not in id_fields} for item in items]
        for section, items in wire.items()
    }
