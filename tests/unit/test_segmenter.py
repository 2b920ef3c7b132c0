"""Unit tests for the line-item segmenter."""

from decimal import Decimal

import pytest

from invoice_graph.core.segmenter import (
    find_section_start,
    is_column_header,
    parse_product_line,
    segment_line_items,
)


class TestSectionStart:
    def test_specific_header_beats_generic(self) -> None:
        lines = ["Product catalogue ref 12", "Item Description Qty Price Amount"]
        assert find_section_start(lines) == 1

    def test_generic_header_used_when_specific_absent(self) -> None:
        lines = ["Invoice", "Products", "Widget 1 10.00"]
        assert find_section_start(lines) == 1

    def test_no_header(self) -> None:
        assert find_section_start(["Invoice", "Total: 10.00"]) is None


class TestColumnHeader:
    @pytest.mark.parametrize("line", ["Qty Price Amount", "Q.ty Rate", "S.No Amount"])
    def test_recognized(self, line: str) -> None:
        assert is_column_header(line)

    def test_data_row_is_not_header(self) -> None:
        assert not is_column_header("Widget 2 500.00 1000.00")


class TestParseProductLine:
    def test_quantity_unit_and_amount(self) -> None:
        line = parse_product_line("Widget 2 500.00 1000.00")

        assert line is not None
        assert line.name == "Widget"
        assert line.quantity == Decimal("2")
        assert line.unit_price == Decimal("500.00")
        assert line.amount == Decimal("1000.00")

    def test_thousands_separators(self) -> None:
        line = parse_product_line("Laptop Stand 1 1,250.00 1,250.00")

        assert line is not None
        assert line.name == "Laptop Stand"
        assert line.amount == Decimal("1250.00")

    def test_two_tokens_derive_unit_price(self) -> None:
        line = parse_product_line("Cable 4 100.00")

        assert line is not None
        assert line.quantity == Decimal("4")
        assert line.unit_price == Decimal("25.00")
        assert line.amount == Decimal("100.00")

    def test_digits_inside_name_are_kept(self) -> None:
        line = parse_product_line("Bolt M8 10 12.50 125.00")

        assert line is not None
        assert line.name == "Bolt M8"
        assert line.quantity == Decimal("10")

    def test_fraction_fallback(self) -> None:
        line = parse_product_line("Service charge Rs.250.00")

        assert line is not None
        assert line.quantity == Decimal(1)
        assert line.amount == Decimal("250.00")
        assert line.unit_price == Decimal("250.00")

    def test_no_numbers_is_skipped(self) -> None:
        assert parse_product_line("Handle with care") is None


class TestSegmentLineItems:
    def test_header_row_skipped_and_stops_at_total(self) -> None:
        lines = [
            "INVOICE NO: 7",
            "Item Description",
            "Qty Price Amount",
            "Widget 2 500.00 1000.00",
            "Gadget 1 250.00 250.00",
            "Subtotal 1250.00",
            "Ghost 9 9.00 81.00",
        ]

        items = segment_line_items(lines)

        assert [item.name for item in items] == ["Widget", "Gadget"]

    def test_first_row_after_header_is_data_when_not_columns(self) -> None:
        lines = ["Items", "Widget 2 500.00 1000.00", "Total 1000.00"]

        items = segment_line_items(lines)

        assert len(items) == 1
        assert items[0].quantity == Decimal("2")

    @pytest.mark.parametrize("marker", ["TOTAL 10.00", "Thank you!", "CGST 9% 12.00", "Tax: 4.00", "Sub Total 10.00", "VAT 2.00"])
    def test_end_markers(self, marker: str) -> None:
        lines = ["Description", "A 1 10.00 10.00", marker, "B 1 5.00 5.00"]
        assert [item.name for item in segment_line_items(lines)] == ["A"]

    def test_marker_inside_product_name_does_not_end_section(self) -> None:
        lines = [
            "Item Description Qty Price Amount",
            "Elevator Cable 2 500.00 1000.00",
            "Renovation Kit 1 400.00 400.00",
            "Totally Tubular Pipe 1 10.00 10.00",
            "TOTAL: 1410.00",
        ]

        items = segment_line_items(lines)

        assert [item.name for item in items] == [
            "Elevator Cable",
            "Renovation Kit",
            "Totally Tubular Pipe",
        ]

    def test_rows_without_numbers_are_skipped(self) -> None:
        lines = ["Description", "-- fragile --", "A 1 10.00 10.00", "Total 10.00"]
        assert len(segment_line_items(lines)) == 1

    def test_no_section_returns_empty(self) -> None:
        assert segment_line_items(["Hello", "Total 10.00"]) == []

    def test_empty_section_returns_empty(self) -> None:
        lines = ["Item Description", "Qty Price Amount", "Subtotal 0.00"]
        assert segment_line_items(lines) == []
