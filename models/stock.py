"""
Stock usage schemas.

Daily consumption is logged per product; each log row carries the
balance left after the movement.
"""

from datetime import date as date_type
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class UsageType(str, Enum):
    """Who consumed the stock."""
    SALON_USE = "Salon Use"
    CUSTOMER = "Customer"
    STAFF = "Staff"


class StockStatus(str, Enum):
    """Balance classification for display."""
    OUT = "OUT"
    LOW = "LOW"
    OK = "OK"


class UsageEntry(BaseSchema):
    """One line of a daily usage submission."""

    product_name: str = Field("", description="Product name (blank lines are skipped)")
    type: UsageType = Field(UsageType.SALON_USE, description="Usage type")
    qty: int = Field(1, ge=0, description="Units consumed")


class UsageSubmitRequest(BaseSchema):
    """Daily usage submission."""

    entries: list[UsageEntry]
    date: Optional[date_type] = Field(None, description="Business date (defaults to today)")


class BalanceRow(BaseSchema):
    """Current balance for a product."""

    product_name: str
    starting_balance: float
    status: StockStatus = StockStatus.OK


class StockLogEntry(BaseSchema):
    """Logged movement."""

    id: Optional[int] = None
    date: date_type
    product_name: str
    type: str
    qty: int
    ending_balance: float


class BalanceListResponse(BaseSchema):
    data: list[BalanceRow]
    total: int


class StockLogResponse(BaseSchema):
    data: list[StockLogEntry]
    total: int
