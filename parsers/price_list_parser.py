"""
Price list and full reference list parsers.

The price list uses fixed column positions. The header row is checked
against the known layouts before any row is read, so a sheet with
shifted columns fails instead of being misread.

Accepted layouts (header names compared case-insensitively):
    full:   the 9-column export layout (PriceColumn.LAYOUT)
    legacy: the first 6 columns (older exports without qty/stock)
    basic:  name, old price, China price
"""

import structlog

from exceptions import SpreadsheetColumnsError, SpreadsheetParseError
from models.ledger import FullList
from models.product import PriceColumn, Product
from services.pricing_service import format_money, parse_decimal, parse_quantity

logger = structlog.get_logger(__name__)

FULL_LAYOUT = PriceColumn.LAYOUT
LEGACY_LAYOUT = PriceColumn.LAYOUT[:6]
BASIC_LAYOUT = PriceColumn.LAYOUT[:3]
LAYOUTS = (FULL_LAYOUT, LEGACY_LAYOUT, BASIC_LAYOUT)

# Positions within FULL_LAYOUT
NAME_COL = 0
OLD_PRICE_COL = 1
CNY_PRICE_COL = 2
NEW_CNY_COL = 3
ORDER_QTY_COL = 6
OFFICE_STOCK_COL = 8


def _normalize_header(value: str) -> str:
    return " ".join(str(value).split()).lower()


def match_layout(header: list[str]) -> tuple[str, ...]:
    """
    Return the layout the header row matches.

    Raises:
        SpreadsheetColumnsError: No layout matches
    """
    cells = [_normalize_header(h) for h in header]
    while cells and not cells[-1]:
        cells.pop()

    for layout in LAYOUTS:
        if cells == [_normalize_header(c) for c in layout]:
            return layout

    raise SpreadsheetColumnsError(
        found=list(header),
        expected=[list(layout) for layout in LAYOUTS]
    )


def _at(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


def parse_price_list(
    rows: list[list[str]],
) -> tuple[list[Product], dict[str, str], dict[str, int]]:
    """
    Map spreadsheet rows to products and override maps.

    Overrides are adopted only when numeric and > 0. Rows with an empty
    name are skipped; a repeated name replaces the earlier row.

    Returns:
        (products, override_cny, override_qty)

    Raises:
        SpreadsheetParseError: Sheet has no header row
        SpreadsheetColumnsError: Header does not match a layout
    """
    if not rows:
        raise SpreadsheetParseError(message="Spreadsheet is empty")

    layout = match_layout(rows[0])
    width = len(layout)

    products: dict[str, Product] = {}
    override_cny: dict[str, str] = {}
    override_qty: dict[str, int] = {}
    skipped = 0

    for row in rows[1:]:
        name = _at(row, NAME_COL).strip()
        if not name:
            skipped += 1
            continue

        products[name] = Product(
            name=name,
            old_price=_at(row, OLD_PRICE_COL),
            cny_price=_at(row, CNY_PRICE_COL),
            office_stock=_at(row, OFFICE_STOCK_COL) if width > OFFICE_STOCK_COL else "",
        )
        override_cny.pop(name, None)
        override_qty.pop(name, None)

        if width > NEW_CNY_COL:
            new_cny = parse_decimal(_at(row, NEW_CNY_COL))
            if new_cny is not None and new_cny > 0:
                override_cny[name] = format_money(new_cny)

        if width > ORDER_QTY_COL:
            qty = parse_quantity(_at(row, ORDER_QTY_COL))
            if qty > 0:
                override_qty[name] = qty

    logger.info(
        "price_list_parsed",
        layout_columns=width,
        products=len(products),
        priced=len(override_cny),
        skipped=skipped
    )

    return list(products.values()), override_cny, override_qty


def parse_full_list(rows: list[list[str]]) -> FullList:
    """
    Header row plus positional data rows.

    Data rows are padded or cut to the header width.
    """
    if not rows:
        return FullList()

    headers = list(rows[0])
    while headers and not headers[-1]:
        headers.pop()
    width = len(headers)

    data = tuple(
        tuple((list(row) + [""] * width)[:width])
        for row in rows[1:]
    )

    logger.info("full_list_parsed", columns=width, rows=len(data))
    return FullList(headers=tuple(headers), rows=data)
