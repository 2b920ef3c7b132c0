"""Unit tests for spreadsheet header mapping."""

import math
from datetime import datetime
from decimal import Decimal

from invoice_graph.core.spreadsheet import HEADER_MAPPING, map_row, map_rows


def test_headers_are_case_and_space_insensitive() -> None:
    row = map_row({"  Customer Name ": "Acme", "QTY": 2, "Unit Price": "1,250.00"})

    assert row.customer_name == "Acme"
    assert row.quantity == Decimal("2")
    assert row.unit_price == Decimal("1250.00")


def test_synonyms_map_to_one_field() -> None:
    for header in ("phone", "mobile", "customer phone"):
        assert HEADER_MAPPING[header] == "customer_phone"
    for header in ("total", "total amount"):
        assert HEADER_MAPPING[header] == "total_amount"


def test_unknown_columns_are_dropped() -> None:
    row = map_row({"Warehouse": "B2", "Product": "Bolt"})

    assert row.product_name == "Bolt"
    assert "Warehouse" not in row.model_dump()


def test_first_non_blank_duplicate_wins() -> None:
    row = map_row({"Name": None, "Customer": "Zenith", "Customer Name": "Other"})

    assert row.customer_name == "Zenith"


def test_blank_cells_are_none() -> None:
    row = map_row({"Tax Amount": math.nan, "Email": "  ", "Quantity": None})

    assert row.tax_amount is None
    assert row.customer_email is None
    assert row.quantity is None


def test_cell_text_normalization() -> None:
    row = map_row({"Invoice Number": 1001.0, "Date": datetime(2024, 1, 15)})

    assert row.invoice_number == "1001"
    assert row.invoice_date == "2024-01-15"


def test_map_rows_skips_rows_without_known_values() -> None:
    rows = map_rows([{"Notes": "carry forward"}, {"Product Name": "Bolt", "Total": 10}])

    assert len(rows) == 1
    assert rows[0].total_amount == Decimal("10")
