"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Price ledger
    ProductNotFoundError,
    InvalidProductError,
    InvalidExchangeRateError,
    UnknownOperationError,

    # Spreadsheets
    SpreadsheetParseError,
    SpreadsheetColumnsError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Price ledger
    "ProductNotFoundError",
    "InvalidProductError",
    "InvalidExchangeRateError",
    "UnknownOperationError",

    # Spreadsheets
    "SpreadsheetParseError",
    "SpreadsheetColumnsError",
]
