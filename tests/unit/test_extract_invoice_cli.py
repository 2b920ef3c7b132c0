"""Unit tests for the extract_invoice command line script."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from invoice_graph.processing.processor import DocumentProcessor
from scripts.extract_invoice import main, parse_args


def test_parse_args_defaults() -> None:
    args = parse_args(["invoice.pdf"])

    assert args.path == Path("invoice.pdf")
    assert args.method == "ocr"
    assert args.provider is None
    assert args.output is None


def test_parse_args_rejects_unknown_method() -> None:
    with pytest.raises(SystemExit):
        parse_args(["invoice.pdf", "--method", "magic"])


def test_missing_file(tmp_path: Path) -> None:
    assert main([str(tmp_path / "missing.pdf")]) == 1


def test_spreadsheet_to_output_file(tmp_path: Path) -> None:
    sheet = tmp_path / "sales.csv"
    sheet.write_text("Customer,Product,Qty,Unit Price\nAcme,Bolt,2,5\n")
    output = tmp_path / "out" / "graph.json"

    assert main([str(sheet), "--output", str(output)]) == 0

    graph = json.loads(output.read_text())
    assert graph["customers"][0]["name"] == "Acme"
    assert graph["products"][0]["priceWithTax"] == "10.00"
    assert graph["invoices"][0]["serialNumber"] == "ROW-1"


def test_failed_extraction_returns_error_status(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("nothing to see")

    assert main([str(notes)]) == 1


def test_provider_override_reaches_settings(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    sheet = tmp_path / "sales.csv"
    sheet.write_text("Product,Total\nLamp,118\n")

    with patch(
        "scripts.extract_invoice.DocumentProcessor", side_effect=DocumentProcessor
    ) as mock_processor_class:
        assert main([str(sheet), "--provider", "ollama"]) == 0

    settings = mock_processor_class.call_args.args[0]
    assert settings.extraction_provider == "ollama"
    printed = json.loads(capsys.readouterr().out)
    assert printed["products"][0]["name"] == "Lamp"
