"""
Pure state transitions for the price ledger.

Every function here takes a LedgerState and returns the next one (or a
value derived from it). Nothing here touches the cache or the remote
store; PriceLedgerService does that after swapping in the new state.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from models.ledger import FullList, LedgerState, LoadPhase, SortColumn, SortState
from models.product import PriceColumn, PriceMode, PriceRow, Product
from services.pricing_service import (
    ZERO,
    effective_quantity,
    format_money,
    parse_decimal,
    parse_quantity,
    price_row,
    round_money,
    to_local,
    unit_foreign_price,
)
from utils.text_utils import contains_name, normalize_name

NEGATIVE_INFINITY = Decimal("-Infinity")

# Remote columns that are bookkeeping, not reference data
BOOKKEEPING_COLUMNS = ("id", "created_at", "updated_at")


# ===================
# HELPERS
# ===================

def name_key(name: str) -> str:
    """Case- and accent-insensitive sort key."""
    return normalize_name(name)


def sort_by_name(products: Iterable[Product]) -> tuple[Product, ...]:
    return tuple(sorted(products, key=lambda p: name_key(p.name)))


def _without(mapping: dict, name: str) -> dict:
    return {k: v for k, v in mapping.items() if k != name}


def _insert_sorted(products: tuple[Product, ...], product: Product) -> tuple[Product, ...]:
    """Insert or replace by name, keeping the list sorted by name."""
    kept = [p for p in products if p.name != product.name]
    kept.append(product)
    return sort_by_name(kept)


def _dedupe(products: Iterable[Product]) -> list[Product]:
    """Last occurrence of a name wins."""
    seen: dict[str, Product] = {}
    for product in products:
        seen[product.name] = product
    return list(seen.values())


# ===================
# MUTATORS
# ===================

def commit_price(
    state: LedgerState,
    name: str,
    raw_value: Decimal,
    mode: PriceMode = PriceMode.UNIT,
    bundle_qty: int = 0,
    delivery: Decimal = ZERO,
    qty: int = 0,
) -> LedgerState:
    """
    Record a pending foreign price (and quantity) for a product.

    The caller validates raw_value. A zero effective quantity removes
    any existing quantity override instead of storing 0.
    """
    unit = unit_foreign_price(raw_value, mode, bundle_qty, delivery, qty)
    override_cny = {**state.override_cny, name: format_money(unit)}

    override_qty = _without(state.override_qty, name)
    quantity = effective_quantity(mode, bundle_qty, qty)
    if quantity > 0:
        override_qty[name] = quantity

    return replace(state, override_cny=override_cny, override_qty=override_qty)


def clear_price(state: LedgerState, name: str) -> LedgerState:
    """Drop the pending price and quantity for a product."""
    return replace(
        state,
        override_cny=_without(state.override_cny, name),
        override_qty=_without(state.override_qty, name),
    )


def remove_product(state: LedgerState, name: str) -> LedgerState:
    """Remove a product together with both of its overrides."""
    return replace(
        state,
        products=tuple(p for p in state.products if p.name != name),
        override_cny=_without(state.override_cny, name),
        override_qty=_without(state.override_qty, name),
        new_products=state.new_products - {name},
    )


def validate_new_product(name: Any, foreign_price: Any) -> Optional[Decimal]:
    """
    Parsed price for a valid new product, or None when it must be rejected.

    Rejects a blank name and a zero or non-numeric price.
    """
    if not isinstance(name, str) or not name.strip():
        return None
    price = parse_decimal(foreign_price)
    if price is None or price == 0:
        return None
    return price


def add_new_product(
    state: LedgerState,
    name: str,
    foreign_price: Decimal,
    qty: int = 0,
) -> LedgerState:
    """
    Insert a manually created product with a pending price.

    The reference price is derived from the current rate. Call
    validate_new_product first.
    """
    name = name.strip()
    product = Product(
        name=name,
        old_price=format_money(to_local(foreign_price, state.rate)),
        cny_price=format_money(foreign_price),
        office_stock="0",
        is_new=True,
    )

    override_qty = _without(state.override_qty, name)
    if qty > 0:
        override_qty[name] = qty

    return replace(
        state,
        products=_insert_sorted(state.products, product),
        override_cny={**state.override_cny, name: format_money(foreign_price)},
        override_qty=override_qty,
        new_products=state.new_products | {name},
        sort=SortState(),
    )


def add_from_full_list(
    state: LedgerState,
    name: str,
    old_price: str,
    foreign_price: str,
) -> LedgerState:
    """Seed a product from the reference list without a pending update."""
    name = name.strip()
    product = Product(name=name, old_price=old_price, cny_price=foreign_price)
    return replace(
        state,
        products=_insert_sorted(state.products, product),
        new_products=state.new_products - {name},
        sort=SortState(),
    )


def update_rate(state: LedgerState, rate: Decimal) -> LedgerState:
    return replace(state, rate=rate)


def clear_all_data(state: LedgerState) -> LedgerState:
    """Empty the primary list. The rate and full reference list stay."""
    return replace(
        state,
        products=(),
        override_cny={},
        override_qty={},
        new_products=frozenset(),
        sort=SortState(),
    )


def replace_products(
    state: LedgerState,
    products: Iterable[Product],
    override_cny: dict[str, str],
    override_qty: dict[str, int],
) -> LedgerState:
    """Wholesale replacement of the list and both maps (spreadsheet import)."""
    imported = sort_by_name(_dedupe(products))
    names = {p.name for p in imported}
    return replace(
        state,
        products=imported,
        override_cny={k: v for k, v in override_cny.items() if k in names},
        override_qty={k: v for k, v in override_qty.items() if k in names},
        new_products=state.new_products - names,
        sort=SortState(),
    )


def replace_full_list(state: LedgerState, full_list: FullList) -> LedgerState:
    return replace(state, full_list=full_list)


def set_phase(state: LedgerState, phase: LoadPhase) -> LedgerState:
    return replace(state, phase=phase)


# ===================
# SORTING
# ===================

def toggle_sort(current: SortState, column: SortColumn) -> SortState:
    """Same column flips direction; a new column starts ascending."""
    if current.column == column:
        return SortState(column=column, direction=-current.direction)
    return SortState(column=column, direction=1)


def _number(value: Any) -> Decimal:
    parsed = parse_decimal(value)
    return parsed if parsed is not None else ZERO


def _sort_key(
    column: SortColumn,
    override_cny: dict[str, str],
    override_qty: dict[str, int],
    rate: Decimal,
) -> Callable[[Product], Any]:
    def new_cny(p: Product) -> Optional[Decimal]:
        return parse_decimal(override_cny.get(p.name))

    def new_local(p: Product) -> Decimal:
        cny = new_cny(p)
        return cny / rate if cny is not None else ZERO

    def savings(p: Product) -> Decimal:
        # Unpriced rows rank below every priced row
        cny = new_cny(p)
        if cny is None:
            return NEGATIVE_INFINITY
        return _number(p.old_price) - cny / rate

    def total(p: Product) -> Decimal:
        return new_local(p) * Decimal(override_qty.get(p.name) or 0)

    keys: dict[SortColumn, Callable[[Product], Any]] = {
        SortColumn.NAME: lambda p: name_key(p.name),
        SortColumn.OLD_PRICE: lambda p: _number(p.old_price),
        SortColumn.CNY_PRICE: lambda p: _number(p.cny_price),
        SortColumn.NEW_CNY: lambda p: new_cny(p) or ZERO,
        SortColumn.NEW_LOCAL: new_local,
        SortColumn.SAVINGS: savings,
        SortColumn.ORDER_QTY: lambda p: override_qty.get(p.name) or 0,
        SortColumn.TOTAL_VALUE: total,
        SortColumn.OFFICE_STOCK: lambda p: _number(p.office_stock),
    }
    return keys[column]


def sort_products(
    products: Iterable[Product],
    column: SortColumn,
    direction: int,
    override_cny: dict[str, str],
    override_qty: dict[str, int],
    rate: Decimal,
) -> tuple[Product, ...]:
    """Stable sort; ties keep their current relative order in both directions."""
    key = _sort_key(column, override_cny, override_qty, rate)
    return tuple(sorted(products, key=key, reverse=direction < 0))


def sort_data(state: LedgerState, column: SortColumn) -> LedgerState:
    sort = toggle_sort(state.sort, column)
    products = sort_products(
        state.products,
        sort.column,
        sort.direction,
        state.override_cny,
        state.override_qty,
        state.rate,
    )
    return replace(state, products=products, sort=sort)


# ===================
# READS
# ===================

def rows(state: LedgerState) -> list[PriceRow]:
    return [price_row(p, state) for p in state.products]


def search(state: LedgerState, query: str) -> list[PriceRow]:
    """Case- and accent-insensitive substring match on product name."""
    return [
        price_row(p, state)
        for p in state.products
        if contains_name(p.name, query)
    ]


def search_full_list(full_list: FullList, query: str) -> list[tuple[str, ...]]:
    """Reference rows whose first cell contains the query."""
    if not normalize_name(query):
        return list(full_list.rows)
    return [r for r in full_list.rows if r and contains_name(r[0], query)]


def order_rows(state: LedgerState) -> list[PriceRow]:
    """Products with both a numeric pending price and a quantity."""
    return [
        row for row in rows(state)
        if row.order_qty and row.new_cny is not None
    ]


def order_total(state: LedgerState) -> Decimal:
    """Sum of unrounded line values, rounded once."""
    total = ZERO
    for product in state.products:
        cny = parse_decimal(state.override_cny.get(product.name))
        qty = state.override_qty.get(product.name) or 0
        if cny is not None and qty > 0:
            total += cny / state.rate * Decimal(qty)
    return round_money(total)


# ===================
# CACHE BLOB
# ===================

def _list_at(blob: dict, key: str) -> list:
    value = blob.get(key)
    return list(value) if isinstance(value, list) else []


def _dict_at(blob: dict, key: str) -> dict:
    value = blob.get(key)
    return value if isinstance(value, dict) else {}


def products_from_cache_blob(
    blob: Any,
    new_products: frozenset[str] = frozenset(),
) -> tuple[tuple[Product, ...], dict[str, str], dict[str, int]]:
    """
    Parse a cached primary-list blob.

    Accepts the legacy {importedData, manualData} split and the flat
    {data} shape. Malformed entries are skipped.
    """
    if not isinstance(blob, dict):
        return (), {}, {}

    if "importedData" in blob:
        combined = _list_at(blob, "importedData") + _list_at(blob, "manualData")
    else:
        combined = _list_at(blob, "data")

    parsed = []
    for item in combined:
        if not isinstance(item, dict):
            continue
        try:
            product = Product.model_validate(item)
        except PydanticValidationError:
            continue
        parsed.append(product.model_copy(update={"is_new": product.name in new_products}))

    products = sort_by_name(_dedupe(parsed))
    names = {p.name for p in products}

    override_cny = {}
    for name, value in _dict_at(blob, "overrideCNY").items():
        price = parse_decimal(value)
        if name in names and price is not None:
            override_cny[name] = format_money(price)

    override_qty = {}
    for name, value in _dict_at(blob, "overrideQty").items():
        quantity = parse_quantity(value)
        if name in names and quantity > 0:
            override_qty[name] = quantity

    return products, override_cny, override_qty


def cache_blob(state: LedgerState) -> dict:
    """Flat cache snapshot of the primary list and both maps."""
    return {
        "data": [p.model_dump(by_alias=True) for p in state.products],
        "overrideCNY": dict(state.override_cny),
        "overrideQty": dict(state.override_qty),
    }


# ===================
# REMOTE ROWS
# ===================

def products_from_remote_rows(
    remote_rows: Iterable[dict],
    new_products: frozenset[str] = frozenset(),
) -> tuple[tuple[Product, ...], dict[str, str], dict[str, int]]:
    """
    Build the list and override maps from remote price rows.

    Pending-update columns only count when present and positive; a null
    or missing column is an absent override, not an error.
    """
    parsed = []
    override_cny: dict[str, str] = {}
    override_qty: dict[str, int] = {}

    for row in remote_rows:
        name = str(row.get(PriceColumn.NAME) or "").strip()
        if not name:
            continue
        parsed.append(Product(
            name=name,
            old_price=row.get(PriceColumn.OLD_PRICE),
            cny_price=row.get(PriceColumn.CNY_PRICE),
            office_stock=row.get(PriceColumn.OFFICE_STOCK),
            is_new=name in new_products,
        ))

        override_cny.pop(name, None)
        override_qty.pop(name, None)
        new_cny = parse_decimal(row.get(PriceColumn.NEW_CNY))
        if new_cny is not None and new_cny > 0:
            override_cny[name] = format_money(new_cny)
        quantity = parse_quantity(row.get(PriceColumn.ORDER_QTY))
        if quantity > 0:
            override_qty[name] = quantity

    return sort_by_name(_dedupe(parsed)), override_cny, override_qty


def _as_number(text: Optional[str]) -> Optional[float]:
    parsed = parse_decimal(text)
    return float(parsed) if parsed is not None else None


def pending_columns(state: LedgerState, name: str) -> dict:
    """Remote pending-update columns for a product, derived from state."""
    product = state.find(name)
    if product is None:
        return {column: None for column in PriceColumn.PENDING}
    row = price_row(product, state)
    return {
        PriceColumn.NEW_CNY: _as_number(row.new_cny),
        PriceColumn.NEW_LOCAL: _as_number(row.new_local),
        PriceColumn.SAVINGS: _as_number(row.savings),
        PriceColumn.ORDER_QTY: row.order_qty,
        PriceColumn.TOTAL_VALUE: _as_number(row.total_value),
    }


def base_columns(product: Product) -> dict:
    """Remote reference columns for a product."""
    return {
        PriceColumn.NAME: product.name,
        PriceColumn.OLD_PRICE: _as_number(product.old_price),
        PriceColumn.CNY_PRICE: _as_number(product.cny_price),
        PriceColumn.OFFICE_STOCK: _as_number(product.office_stock),
    }


def full_list_from_remote_rows(remote_rows: list[dict]) -> FullList:
    """Headers are the remote columns in order, minus bookkeeping columns."""
    if not remote_rows:
        return FullList()
    headers = tuple(k for k in remote_rows[0].keys() if k not in BOOKKEEPING_COLUMNS)
    data = tuple(
        tuple("" if row.get(h) is None else str(row.get(h)).strip() for h in headers)
        for row in remote_rows
    )
    return FullList(headers=headers, rows=data)


def full_list_from_cache(headers: Any, data: Any) -> FullList:
    """Cached headers/rows, or an empty list when either is malformed."""
    if not isinstance(headers, list) or not isinstance(data, list):
        return FullList()
    if not all(isinstance(r, list) for r in data):
        return FullList()
    return FullList(
        headers=tuple(str(h) for h in headers),
        rows=tuple(tuple(str(c) for c in r) for r in data),
    )
