"""
Price arithmetic for the ledger.

All values are Decimal. Stored prices are strings; anything derived
(local price, savings, total value) is recomputed here on every read
from the current rate and override maps.

Rate convention: 1 RM buys `rate` CNY, so local = foreign / rate.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Optional

from models.ledger import LedgerState
from models.product import PriceMode, Product, PriceRow

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a user or stored value into a finite Decimal.

    Returns None for blanks, booleans and anything non-numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    return result


def parse_quantity(value: Any) -> int:
    """Whole-unit quantity; non-numeric and negative values become 0."""
    parsed = parse_decimal(value)
    if parsed is None or parsed <= 0:
        return 0
    return int(parsed)


def round_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places, at any magnitude."""
    with localcontext() as ctx:
        # Quantize needs every integer digit plus the two places
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """'25' -> '25.00'."""
    return f"{round_money(value):f}"


# ===================
# COMMIT ARITHMETIC
# ===================

def unit_foreign_price(
    raw: Decimal,
    mode: PriceMode,
    bundle_qty: int = 0,
    delivery: Decimal = ZERO,
    qty: int = 0,
) -> Decimal:
    """
    Per-unit foreign price to store for a commit.

    Bundle prices are divided by the bundle size; delivery cost is then
    spread over the order quantity.

        unit_foreign_price(Decimal("100"), PriceMode.BUNDLE, bundle_qty=4) -> 25
        unit_foreign_price(Decimal("10"), PriceMode.UNIT, delivery=Decimal("20"), qty=4) -> 15
    """
    price = raw
    if mode == PriceMode.BUNDLE and bundle_qty > 0:
        price = price / Decimal(bundle_qty)
    if delivery > 0 and qty > 0:
        price = price + delivery / Decimal(qty)
    return price


def effective_quantity(mode: PriceMode, bundle_qty: int = 0, qty: int = 0) -> int:
    """Quantity recorded with a commit: bundle size in bundle mode, else qty."""
    chosen = bundle_qty if mode == PriceMode.BUNDLE else qty
    return chosen if chosen and chosen > 0 else 0


# ===================
# DERIVED VALUES
# ===================

def to_local(foreign: Decimal, rate: Decimal) -> Decimal:
    """Foreign price converted to local currency, rounded to cents."""
    return round_money(foreign / rate)


def savings(old_price: Decimal, local_price: Decimal) -> Decimal:
    """Reference price minus the new local price."""
    return round_money(old_price - local_price)


def total_value(foreign: Decimal, rate: Decimal, qty: int) -> Decimal:
    """Unrounded local unit price times quantity, rounded at the end."""
    return round_money(foreign / rate * Decimal(qty))


def price_row(product: Product, state: LedgerState) -> PriceRow:
    """Build the displayed row for a product from the current state."""
    new_cny = parse_decimal(state.override_cny.get(product.name))
    qty = state.override_qty.get(product.name) or 0

    new_local = None
    row_savings = None
    row_total = None
    if new_cny is not None:
        local = to_local(new_cny, state.rate)
        new_local = format_money(local)
        old = parse_decimal(product.old_price)
        if old is not None:
            row_savings = format_money(savings(old, local))
        if qty > 0:
            row_total = format_money(total_value(new_cny, state.rate, qty))

    return PriceRow(
        name=product.name,
        old_price=product.old_price,
        cny_price=product.cny_price,
        office_stock=product.office_stock,
        is_new=product.is_new,
        new_cny=format_money(new_cny) if new_cny is not None else None,
        new_local=new_local,
        savings=row_savings,
        order_qty=qty if qty > 0 else None,
        total_value=row_total,
    )
