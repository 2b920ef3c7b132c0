"""Spreadsheet decoding.

Reads the first sheet of an Excel workbook (openpyxl engine) or a CSV file with
pandas and returns one header-keyed record per data row.
"""

import io
import logging
import zipfile
from pathlib import PurePath
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})
CSV_SUFFIXES = frozenset({".csv"})


class SpreadsheetReader:
    """Decodes spreadsheet bytes into row records."""

    @staticmethod
    def is_spreadsheet(filename: str) -> bool:
        return PurePath(filename).suffix.lower() in EXCEL_SUFFIXES | CSV_SUFFIXES

    def read_rows(self, content: bytes, filename: str) -> list[dict[str, Any]]:
        """Decode a spreadsheet into records keyed by its header row.

        Blank cells come back as ``None``; fully blank rows are dropped.

        Args:
            content: Raw file bytes
            filename: Original file name, used to pick the decoder

        Returns:
            One record per data row

        Raises:
            ValueError: If the file type is unsupported or cannot be decoded
        """
        suffix = PurePath(filename).suffix.lower()
        if suffix not in EXCEL_SUFFIXES | CSV_SUFFIXES:
            raise ValueError(f"Unsupported spreadsheet type: {suffix or filename}")

        buffer = io.BytesIO(content)
        try:
            if suffix in EXCEL_SUFFIXES:
                frame = pd.read_excel(buffer, sheet_name=0, engine="openpyxl")
            else:
                frame = pd.read_csv(buffer)
        except zipfile.BadZipFile as e:
            raise ValueError(f"Could not decode spreadsheet {filename}: {e}") from e

        frame = frame.dropna(how="all")
        frame.columns = [str(column).strip() for column in frame.columns]
        records = frame.astype(object).where(frame.notna(), None).to_dict(orient="records")

        logger.info(f"Read {len(records)} rows from {filename}")
        return records
