"""
Spreadsheet reader.

Reads the first sheet of an xlsx file into ordered rows of trimmed
string cells, header row first. Column meaning is decided by the
callers in price_list_parser.
"""

from io import BytesIO
from pathlib import Path
from typing import Union
import structlog

import pandas as pd

from exceptions import SpreadsheetParseError

logger = structlog.get_logger(__name__)

SpreadsheetSource = Union[str, Path, BytesIO, bytes]


def _cell(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def read_rows(file: SpreadsheetSource) -> list[list[str]]:
    """
    Read the first sheet as strings.

    Args:
        file: File path, raw bytes or file-like object

    Returns:
        Rows of cells; fully blank rows are dropped

    Raises:
        SpreadsheetParseError: If the file cannot be read
    """
    if isinstance(file, (bytes, bytearray)):
        file = BytesIO(file)

    logger.info("reading_spreadsheet", file_type=type(file).__name__)

    try:
        df = pd.read_excel(
            file,
            sheet_name=0,
            header=None,
            dtype=str,
            keep_default_na=False,
            engine="openpyxl",
        )
    except Exception as e:
        logger.error("spreadsheet_read_failed", error=str(e))
        raise SpreadsheetParseError(
            message="Failed to read spreadsheet",
            details={"original_error": str(e)}
        )

    rows = [
        [_cell(value) for value in record]
        for record in df.itertuples(index=False, name=None)
    ]
    rows = [row for row in rows if any(row)]

    logger.debug("spreadsheet_read", rows=len(rows))
    return rows
