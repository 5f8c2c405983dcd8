"""
Custom exception classes for the application.

Validation failures inside the price ledger are reported as booleans,
not exceptions. These classes cover the HTTP surface, the remote store
and the spreadsheet boundary.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# PRICE LEDGER ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not in the primary list."""

    def __init__(self, name: str):
        super().__init__(
            resource="Product",
            identifier=name,
            code="PRODUCT_NOT_FOUND"
        )


class InvalidProductError(ValidationError):
    """New product rejected (empty name or non-positive price)."""

    def __init__(self, name: str, price: Any):
        super().__init__(
            code="PRODUCT_INVALID",
            message="Product name is required and price must be a number greater than zero",
            details={"name": name, "price": str(price)}
        )


class InvalidExchangeRateError(ValidationError):
    """Exchange rate must be a positive number."""

    def __init__(self, rate: Any):
        super().__init__(
            code="EXCHANGE_RATE_INVALID",
            message="Exchange rate must be a number greater than zero",
            details={"provided": str(rate)}
        )


class UnknownOperationError(ValidationError):
    """Dispatch called with an operation the ledger does not know."""

    def __init__(self, operation: str, valid: list[str]):
        super().__init__(
            code="UNKNOWN_OPERATION",
            message=f"Unknown ledger operation: {operation}",
            details={"provided": operation, "valid": valid}
        )


# ===================
# SPREADSHEET ERRORS
# ===================

class SpreadsheetParseError(ValidationError):
    """Spreadsheet file could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="SPREADSHEET_PARSE_ERROR",
            message=message,
            details=details
        )


class SpreadsheetColumnsError(ValidationError):
    """Header row does not match the expected column layout."""

    def __init__(self, found: list[str], expected: list[list[str]]):
        super().__init__(
            code="SPREADSHEET_COLUMNS_MISMATCH",
            message="Header row does not match a supported column layout",
            details={"found": found, "expected": expected}
        )

