"""
Pydantic models and state containers.
"""

from models.base import BaseSchema
from models.product import (
    PriceColumn,
    PriceMode,
    Product,
    PriceRow,
    OrderListResponse,
    CommitPriceRequest,
    NewProductRequest,
    FullListProductRequest,
    RateUpdateRequest,
)
from models.ledger import (
    LoadPhase,
    SortColumn,
    SortState,
    FullList,
    LedgerState,
    SaveAllResult,
    LedgerSnapshotResponse,
    FullListResponse,
    SaveAllResponse,
)
from models.stock import (
    UsageType,
    StockStatus,
    UsageEntry,
    UsageSubmitRequest,
    BalanceRow,
    StockLogEntry,
    BalanceListResponse,
    StockLogResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Product
    "PriceColumn",
    "PriceMode",
    "Product",
    "PriceRow",
    "OrderListResponse",
    "CommitPriceRequest",
    "NewProductRequest",
    "FullListProductRequest",
    "RateUpdateRequest",

    # Ledger
    "LoadPhase",
    "SortColumn",
    "SortState",
    "FullList",
    "LedgerState",
    "SaveAllResult",
    "LedgerSnapshotResponse",
    "FullListResponse",
    "SaveAllResponse",

    # Stock
    "UsageType",
    "StockStatus",
    "UsageEntry",
    "UsageSubmitRequest",
    "BalanceRow",
    "StockLogEntry",
    "BalanceListResponse",
    "StockLogResponse",
]
