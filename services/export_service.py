"""
Export service: write the price list and full reference list to xlsx.

Cells are written as text so a re-import reads back the exact decimal
strings that were exported.
"""

from io import BytesIO
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side
from openpyxl.utils import get_column_letter
import structlog

from models.ledger import FullList, LedgerState
from models.product import PriceColumn
from services.pricing_service import price_row

logger = structlog.get_logger(__name__)

PRICE_LIST_FILENAME = "New Product Prices.xlsx"
PRICE_LIST_SHEET = "New Product Prices"
FULL_LIST_FILENAME = "Full Product List.xlsx"
FULL_LIST_SHEET = "Full Product List"

# Column widths (characters), same order as PriceColumn.LAYOUT
PRICE_LIST_WIDTHS = (35, 14, 16, 16, 14, 13, 10, 16, 12)
FULL_LIST_NAME_WIDTH = 35
FULL_LIST_COLUMN_WIDTH = 14


def write_rows(
    rows: Sequence[Sequence[str]],
    widths: Optional[Sequence[int]] = None,
    title: str = "Sheet1",
) -> BytesIO:
    """
    Write rows (header first) to a single-sheet workbook.

    Args:
        rows: Header row followed by data rows
        widths: Column width hints in characters
        title: Sheet title

    Returns:
        BytesIO containing the xlsx file, positioned at 0
    """
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]  # Excel sheet name limit

    bold_font = Font(bold=True)
    thin_border = Border(bottom=Side(style="thin", color="000000"))

    for r, row in enumerate(rows, start=1):
        for c, value in enumerate(row, start=1):
            cell = ws.cell(row=r, column=c, value=value)
            cell.number_format = "@"
            if r == 1:
                cell.font = bold_font
                cell.border = thin_border

    for c, width in enumerate(widths or (), start=1):
        ws.column_dimensions[get_column_letter(c)].width = width

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def price_list_rows(state: LedgerState) -> list[list[str]]:
    """Header plus one row per product, in PriceColumn.LAYOUT order."""
    table = [list(PriceColumn.LAYOUT)]
    for product in state.products:
        row = price_row(product, state)
        table.append([
            row.name,
            row.old_price,
            row.cny_price,
            row.new_cny or "",
            row.new_local or "",
            row.savings or "",
            str(row.order_qty) if row.order_qty else "",
            row.total_value or "",
            row.office_stock,
        ])
    return table


def export_price_list(state: LedgerState) -> BytesIO:
    """Primary list with current overrides and derived values."""
    table = price_list_rows(state)

    logger.info("exporting_price_list", rows=len(table) - 1, rate=str(state.rate))

    return write_rows(table, PRICE_LIST_WIDTHS, PRICE_LIST_SHEET)


def export_full_list(full_list: FullList) -> BytesIO:
    """Full reference list as imported."""
    widths = [FULL_LIST_NAME_WIDTH] + [FULL_LIST_COLUMN_WIDTH] * max(len(full_list.headers) - 1, 0)
    table = [list(full_list.headers)] + [list(r) for r in full_list.rows]

    logger.info("exporting_full_list", rows=len(full_list.rows))

    return write_rows(table, widths, FULL_LIST_SHEET)
