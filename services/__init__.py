"""
Business logic services.

Each service handles one domain area. The price ledger service is not
re-exported here because it imports the parsers, which in turn use the
pricing functions from this package; import it from its module.
"""

from services.pricing_service import (
    parse_decimal,
    format_money,
    unit_foreign_price,
    to_local,
    price_row,
)
from services.cache_service import LocalCache
from services.remote_store_service import RemoteTableStore
from services.stock_service import StockService, get_stock_service

__all__ = [
    "parse_decimal",
    "format_money",
    "unit_foreign_price",
    "to_local",
    "price_row",
    "LocalCache",
    "RemoteTableStore",
    "StockService",
    "get_stock_service",
]
