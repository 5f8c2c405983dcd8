"""
Product schemas for the price ledger.

Stored product fields are decimal strings exactly as entered or imported.
Everything in PriceRow is derived at read time from the current exchange
rate and override maps.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from models.base import BaseSchema


class PriceColumn:
    """Column names in the remote prices table and the exported sheet."""
    NAME = "Product Name"
    OLD_PRICE = "Old Price (RM)"
    CNY_PRICE = "China Price (CNY)"
    NEW_CNY = "New Price (CNY)"
    NEW_LOCAL = "New Price (RM)"
    SAVINGS = "Savings (RM)"
    ORDER_QTY = "Order Qty"
    TOTAL_VALUE = "Total Value (RM)"
    OFFICE_STOCK = "Office Stock"

    # Pending-update columns nulled by clear_price
    PENDING = (NEW_CNY, NEW_LOCAL, SAVINGS, ORDER_QTY, TOTAL_VALUE)

    # Full export/import layout, in order
    LAYOUT = (
        NAME, OLD_PRICE, CNY_PRICE, NEW_CNY, NEW_LOCAL,
        SAVINGS, ORDER_QTY, TOTAL_VALUE, OFFICE_STOCK,
    )


class PriceMode(str, Enum):
    """How a committed foreign price was entered."""
    UNIT = "unit"
    BUNDLE = "bundle"


class Product(BaseSchema):
    """
    A product in the primary list.

    Keyed by name. Serialized with camelCase aliases for the cache blob.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Product name (unique key)")
    old_price: str = Field("", alias="oldPrice", description="Reference price (RM)")
    cny_price: str = Field("", alias="cnyPrice", description="Base foreign cost (CNY)")
    office_stock: str = Field("", alias="officeStock", description="On-hand office stock")
    is_new: bool = Field(
        False,
        exclude=True,
        description="Created through the new-product flow (display only)"
    )

    @field_validator("old_price", "cny_price", "office_stock", mode="before")
    @classmethod
    def coerce_text(cls, v) -> str:
        """Remote rows and spreadsheets may carry numbers or nulls."""
        if v is None:
            return ""
        return str(v)


class PriceRow(BaseSchema):
    """
    Product with derived prices.

    Recomputed on every read; never persisted as a source of truth.
    """

    name: str
    old_price: str
    cny_price: str
    office_stock: str
    is_new: bool = False
    new_cny: Optional[str] = Field(None, description="Pending foreign unit price")
    new_local: Optional[str] = Field(None, description="new_cny / rate")
    savings: Optional[str] = Field(None, description="old_price - new_local")
    order_qty: Optional[int] = Field(None, description="Pending order quantity")
    total_value: Optional[str] = Field(None, description="new_local x order_qty")


class OrderListResponse(BaseSchema):
    """Products with both a pending price and a quantity."""

    data: list[PriceRow]
    total: int
    total_value: str


# ===================
# REQUEST SCHEMAS
# ===================

class CommitPriceRequest(BaseSchema):
    """Enter a new foreign price for an existing product."""

    value: Decimal = Field(..., gt=0, description="Foreign price as entered")
    mode: PriceMode = Field(PriceMode.UNIT, description="unit or bundle")
    bundle_qty: int = Field(0, ge=0, description="Units in the bundle")
    delivery: Decimal = Field(Decimal("0"), ge=0, description="Delivery cost for the order")
    qty: int = Field(0, ge=0, description="Order quantity (unit mode)")


class NewProductRequest(BaseSchema):
    """Create a product through the manual flow."""

    name: str = Field(..., description="Product name")
    foreign_price: str = Field(..., description="Foreign unit price (CNY)")
    qty: int = Field(0, ge=0, description="Order quantity")


class FullListProductRequest(BaseSchema):
    """Seed a primary-list product from the full reference list."""

    name: str = Field(..., description="Product name")
    old_price: str = Field(..., description="Reference price (RM)")
    foreign_price: str = Field(..., description="Base foreign cost (CNY)")


class RateUpdateRequest(BaseSchema):
    """Change the exchange rate."""

    rate: str = Field(..., description="1 RM = rate CNY")
