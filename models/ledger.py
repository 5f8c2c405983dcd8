"""
Price ledger state.

LedgerState is an immutable snapshot. Mutators in services.ledger_state
build a new snapshot instead of editing one in place, so the override
dicts held here must never be mutated after construction.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.product import Product, PriceRow


# ===================
# ENUMS
# ===================

class LoadPhase(str, Enum):
    """
    Startup load progress.

    UNINITIALIZED -> CACHE_LOADED -> REMOTE_RECONCILED
                                  -> REMOTE_FETCH_FAILED (keeps cached data)
    """
    UNINITIALIZED = "UNINITIALIZED"
    CACHE_LOADED = "CACHE_LOADED"
    REMOTE_RECONCILED = "REMOTE_RECONCILED"
    REMOTE_FETCH_FAILED = "REMOTE_FETCH_FAILED"


class SortColumn(str, Enum):
    """Sortable price table columns."""
    NAME = "name"
    OLD_PRICE = "oldPrice"
    CNY_PRICE = "cnyPrice"
    NEW_CNY = "newCNY"
    NEW_LOCAL = "newLocal"
    SAVINGS = "savings"
    ORDER_QTY = "orderQty"
    TOTAL_VALUE = "totalValue"
    OFFICE_STOCK = "officeStock"


# ===================
# STATE
# ===================

@dataclass(frozen=True)
class SortState:
    """Current sort column and direction (+1 ascending, -1 descending)."""
    column: SortColumn = SortColumn.NAME
    direction: int = 1


@dataclass(frozen=True)
class FullList:
    """Full product reference list, addressed by position."""
    headers: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class LedgerState:
    """Everything the price ledger holds in memory."""
    rate: Decimal
    products: tuple[Product, ...] = ()
    override_cny: dict[str, str] = field(default_factory=dict)
    override_qty: dict[str, int] = field(default_factory=dict)
    new_products: frozenset[str] = frozenset()
    full_list: FullList = field(default_factory=FullList)
    sort: SortState = field(default_factory=SortState)
    phase: LoadPhase = LoadPhase.UNINITIALIZED

    def find(self, name: str) -> Optional[Product]:
        """Product by exact name, or None."""
        for product in self.products:
            if product.name == name:
                return product
        return None


@dataclass
class SaveAllResult:
    """Outcome of pushing every product row to the remote store."""
    saved: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


# ===================
# RESPONSE SCHEMAS
# ===================

class LedgerSnapshotResponse(BaseSchema):
    """Price table as displayed."""

    rate: str = Field(..., description="1 RM = rate CNY")
    phase: LoadPhase
    sort_column: SortColumn
    sort_direction: int
    data: list[PriceRow]
    total: int


class FullListResponse(BaseSchema):
    """Full reference list."""

    headers: list[str]
    rows: list[list[str]]
    total: int


class SaveAllResponse(BaseSchema):
    """Result of save-all."""

    saved: int
    failed: list[str]
    success: bool
