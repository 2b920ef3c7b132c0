#!/usr/bin/env python3
"""Extract the invoice graph from a document and print it as JSON.

Usage:
    python scripts/extract_invoice.py invoice.pdf
    python scripts/extract_invoice.py scan.png --method llm --provider ollama
    python scripts/extract_invoice.py sales.xlsx --output graph.json

Exits with status 1 when extraction fails.
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path

from invoice_graph.processing.processor import DocumentProcessor
from invoice_graph.shared.config import get_settings

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract invoices, products and customers")
    parser.add_argument("path", type=Path, help="PDF, image or spreadsheet to process")
    parser.add_argument(
        "--method",
        choices=["ocr", "llm"],
        default="ocr",
        help="Regex/OCR path or LLM extraction (default: ocr)",
    )
    parser.add_argument(
        "--provider",
        choices=["openai", "ollama"],
        default=None,
        help="LLM provider for --method llm (default: APP_EXTRACTION_PROVIDER)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON to this file instead of stdout",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    overrides = {"extraction_provider": args.provider} if args.provider else {}
    settings = get_settings().model_copy(update=overrides)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    if not args.path.is_file():
        logger.error(f"File not found: {args.path}")
        return 1

    content_type, _ = mimetypes.guess_type(args.path.name)
    processor = DocumentProcessor(settings)
    result = asyncio.run(
        processor.process(args.path.read_bytes(), args.path.name, content_type, args.method)
    )

    if not result.success or result.data is None:
        logger.error(f"Extraction failed: {result.error}")
        return 1

    payload = json.dumps(result.data.to_json_dict(), indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload)
        logger.info(f"Saved graph to {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
