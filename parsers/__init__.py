"""
Spreadsheet parsers.
"""

from parsers.spreadsheet_parser import read_rows
from parsers.price_list_parser import (
    parse_price_list,
    parse_full_list,
    match_layout,
)

__all__ = [
    "read_rows",
    "parse_price_list",
    "parse_full_list",
    "match_layout",
]
