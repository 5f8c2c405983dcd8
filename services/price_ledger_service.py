"""
Price ledger service.

Owns the in-memory product list, override maps, exchange rate and full
reference list. Every mutation:

    1. computes the next state with a pure function from ledger_state
    2. swaps it in and notifies subscribers
    3. writes the local cache synchronously
    4. hands the remote write to `defer` (inline by default; routes pass
       BackgroundTasks.add_task so the response does not wait)

Remote failures are logged and never roll back local state.
"""

from dataclasses import replace
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Optional, Union
import structlog

from config import settings
from exceptions import DatabaseError, UnknownOperationError
from models.ledger import (
    LedgerState,
    LoadPhase,
    SaveAllResult,
    SortColumn,
    SortState,
)
from models.product import PriceColumn, PriceMode, PriceRow
from parsers.price_list_parser import parse_full_list, parse_price_list
from parsers.spreadsheet_parser import read_rows
from services import ledger_state
from services.cache_service import (
    FULL_LIST_DATA_KEY,
    FULL_LIST_HEADERS_KEY,
    NEW_PRODUCTS_KEY,
    PRICE_DATA_KEY,
    RATE_KEY,
    LocalCache,
)
from services.export_service import export_full_list, export_price_list
from services.pricing_service import ZERO, parse_decimal, parse_quantity
from services.remote_store_service import RemoteTableStore

logger = structlog.get_logger(__name__)

Listener = Callable[[LedgerState], None]
Defer = Callable[..., Any]


def run_now(fn: Callable[..., Any], *args, **kwargs) -> None:
    """Default scheduler: run the remote call before returning."""
    fn(*args, **kwargs)


class PriceLedgerService:
    """
    Single source of truth for the price table.

    Narrow interface for the view layer: snapshot(), subscribe() and
    dispatch(). The named mutators are the same operations.
    """

    OPERATIONS = (
        "commit_price",
        "clear_price",
        "remove_product",
        "add_new_product",
        "add_from_full_list",
        "update_rate",
        "clear_all_data",
        "sort_data",
        "save_data",
    )

    def __init__(
        self,
        cache: Optional[LocalCache] = None,
        prices: Optional[RemoteTableStore] = None,
        full_list: Optional[RemoteTableStore] = None,
        defer: Optional[Defer] = None,
        default_rate: Optional[Decimal] = None,
    ):
        self.cache = cache if cache is not None else LocalCache(
            settings.cache_path, scope=settings.cache_scope
        )
        self.prices = prices if prices is not None else RemoteTableStore(
            settings.prices_table, PriceColumn.NAME
        )
        self.full_list = full_list if full_list is not None else RemoteTableStore(
            settings.full_list_table, PriceColumn.NAME
        )
        self.defer = defer or run_now
        self.default_rate = default_rate or settings.default_exchange_rate
        self._state = LedgerState(rate=self.default_rate)
        self._listeners: list[Listener] = []

    # ===================
    # STORE INTERFACE
    # ===================

    def snapshot(self) -> LedgerState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, operation: str, **params) -> Any:
        """Run a named mutator, e.g. dispatch("clear_price", name="Rose Oil")."""
        if operation not in self.OPERATIONS:
            raise UnknownOperationError(operation, list(self.OPERATIONS))
        return getattr(self, operation)(**params)

    def _apply(self, state: LedgerState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ===================
    # READS
    # ===================

    @property
    def rate(self) -> Decimal:
        return self._state.rate

    def rows(self) -> list[PriceRow]:
        return ledger_state.rows(self._state)

    def search(self, query: str) -> list[PriceRow]:
        return ledger_state.search(self._state, query)

    def order_list(self) -> tuple[list[PriceRow], Decimal]:
        return ledger_state.order_rows(self._state), ledger_state.order_total(self._state)

    def search_full_list(self, query: str) -> list[tuple[str, ...]]:
        return ledger_state.search_full_list(self._state.full_list, query)

    # ===================
    # PERSISTENCE
    # ===================

    def _persist(self) -> None:
        """Mirror the primary list to the cache."""
        try:
            self.cache.set_json(PRICE_DATA_KEY, ledger_state.cache_blob(self._state))
            self.cache.set_json(NEW_PRODUCTS_KEY, sorted(self._state.new_products))
        except OSError as e:
            logger.error("cache_write_failed", error=str(e))

    def _persist_full_list(self) -> None:
        full = self._state.full_list
        try:
            self.cache.set_json(FULL_LIST_HEADERS_KEY, list(full.headers))
            self.cache.set_json(FULL_LIST_DATA_KEY, [list(r) for r in full.rows])
        except OSError as e:
            logger.error("cache_write_failed", error=str(e))

    def _remote(self, defer: Optional[Defer], event: str, fn: Callable[..., Any], *args) -> None:
        """Schedule a best-effort remote call; failures are logged only."""
        (defer or self.defer)(self._run_remote, event, fn, *args)

    @staticmethod
    def _run_remote(event: str, fn: Callable[..., Any], *args) -> None:
        try:
            fn(*args)
            logger.debug(event, status="synced")
        except DatabaseError as e:
            logger.error(event, status="failed", error=e.message)

    def save_data(self) -> None:
        """Rewrite the cache snapshot on demand."""
        self._persist()
        logger.info("ledger_saved_locally", count=len(self._state.products))

    # ===================
    # MUTATORS
    # ===================

    def commit_price(
        self,
        name: str,
        raw_value: Any,
        mode: Union[PriceMode, str] = PriceMode.UNIT,
        bundle_qty: Any = 0,
        delivery: Any = 0,
        qty: Any = 0,
        defer: Optional[Defer] = None,
    ) -> bool:
        """
        Record a new foreign unit price for a product.

        The caller validates raw_value; a non-numeric value is logged
        and ignored. Unknown names keep the local override but skip the
        remote write.
        """
        raw = parse_decimal(raw_value)
        if raw is None:
            logger.warning("commit_price_ignored", name=name, value=str(raw_value))
            return False

        state = ledger_state.commit_price(
            self._state,
            name,
            raw,
            PriceMode(mode),
            parse_quantity(bundle_qty),
            parse_decimal(delivery) or ZERO,
            parse_quantity(qty),
        )
        self._apply(state)
        self._persist()

        logger.info(
            "price_committed",
            name=name,
            unit_cny=state.override_cny[name],
            qty=state.override_qty.get(name)
        )

        product = state.find(name)
        if product is None:
            logger.warning("commit_price_unknown_product", name=name)
            return True

        self._remote(
            defer,
            "remote_commit_price",
            self.prices.upsert,
            name,
            ledger_state.pending_columns(state, name),
            ledger_state.base_columns(product),
        )
        return True

    def clear_price(self, name: str, defer: Optional[Defer] = None) -> None:
        """Drop the pending update; the remote row keeps its reference columns."""
        self._apply(ledger_state.clear_price(self._state, name))
        self._persist()

        logger.info("price_cleared", name=name)

        self._remote(
            defer,
            "remote_clear_price",
            self.prices.update,
            name,
            {column: None for column in PriceColumn.PENDING},
        )

    def remove_product(self, name: str, defer: Optional[Defer] = None) -> None:
        self._apply(ledger_state.remove_product(self._state, name))
        self._persist()

        logger.info("product_removed", name=name)

        self._remote(defer, "remote_remove_product", self.prices.delete, name)

    def add_new_product(
        self,
        name: str,
        foreign_price: Any,
        qty: Any = 0,
        defer: Optional[Defer] = None,
    ) -> bool:
        """
        Create a product with a pending price.

        Returns False (state untouched) for a blank name or a zero or
        non-numeric price.
        """
        price = ledger_state.validate_new_product(name, foreign_price)
        if price is None:
            logger.info("new_product_rejected", name=name, price=str(foreign_price))
            return False

        state = ledger_state.add_new_product(self._state, name, price, parse_quantity(qty))
        self._apply(state)
        self._persist()

        name = name.strip()
        product = state.find(name)
        logger.info("new_product_added", name=name, old_price=product.old_price)

        self._remote(
            defer,
            "remote_add_new_product",
            self.prices.upsert,
            name,
            {**ledger_state.base_columns(product), **ledger_state.pending_columns(state, name)},
        )
        return True

    def add_from_full_list(
        self,
        name: str,
        old_price: Any,
        foreign_price: Any,
        defer: Optional[Defer] = None,
    ) -> bool:
        """Seed a product from the reference list. Returns False for a blank name."""
        if not isinstance(name, str) or not name.strip():
            logger.info("full_list_product_rejected", name=name)
            return False

        state = ledger_state.add_from_full_list(
            self._state,
            name,
            "" if old_price is None else str(old_price).strip(),
            "" if foreign_price is None else str(foreign_price).strip(),
        )
        self._apply(state)
        self._persist()

        name = name.strip()
        product = state.find(name)
        logger.info("full_list_product_added", name=name)

        self._remote(
            defer,
            "remote_add_from_full_list",
            self.prices.upsert,
            name,
            ledger_state.base_columns(product),
        )
        return True

    def update_rate(self, rate: Any) -> bool:
        """Change the exchange rate. Ignored unless numeric and > 0."""
        parsed = parse_decimal(rate)
        if parsed is None or parsed <= 0:
            logger.info("rate_update_rejected", rate=str(rate))
            return False

        self._apply(ledger_state.update_rate(self._state, parsed))
        try:
            self.cache.set(RATE_KEY, str(parsed))
        except OSError as e:
            logger.error("cache_write_failed", error=str(e))

        logger.info("rate_updated", rate=str(parsed))
        return True

    def clear_all_data(self) -> None:
        """Wipe the cached primary list and in-memory maps. Remote is untouched."""
        self._apply(ledger_state.clear_all_data(self._state))
        try:
            self.cache.remove(PRICE_DATA_KEY)
            self.cache.remove(NEW_PRODUCTS_KEY)
        except OSError as e:
            logger.error("cache_write_failed", error=str(e))

        logger.info("ledger_cleared")

    def sort_data(self, column: Union[SortColumn, str]) -> SortState:
        self._apply(ledger_state.sort_data(self._state, SortColumn(column)))
        return self._state.sort

    def save_all(self) -> SaveAllResult:
        """
        Push every product row to the remote store and wait for each call.

        One failed row does not stop the rest.
        """
        state = self._state
        self._persist()
        result = SaveAllResult()

        logger.info("save_all_started", count=len(state.products))

        for product in state.products:
            fields = {
                **ledger_state.base_columns(product),
                **ledger_state.pending_columns(state, product.name),
            }
            try:
                self.prices.upsert(product.name, fields)
                result.saved += 1
            except DatabaseError as e:
                logger.error("save_all_row_failed", name=product.name, error=e.message)
                result.failed.append(product.name)

        logger.info("save_all_complete", saved=result.saved, failed=len(result.failed))
        return result

    # ===================
    # IMPORT / EXPORT
    # ===================

    def import_price_list(self, file: Union[str, Path, BytesIO]) -> int:
        """
        Replace the primary list with a spreadsheet. Local only.

        Raises:
            SpreadsheetParseError: File unreadable
            SpreadsheetColumnsError: Header does not match a known layout
        """
        products, override_cny, override_qty = parse_price_list(read_rows(file))

        state = ledger_state.replace_products(self._state, products, override_cny, override_qty)
        self._apply(state)
        self._persist()

        logger.info(
            "price_list_imported",
            count=len(state.products),
            priced=len(state.override_cny)
        )
        return len(state.products)

    def import_full_list(self, file: Union[str, Path, BytesIO]) -> int:
        """Replace the full reference list. An empty sheet changes nothing."""
        full = parse_full_list(read_rows(file))
        if not full.rows:
            logger.info("full_list_import_empty")
            return 0

        self._apply(ledger_state.replace_full_list(self._state, full))
        self._persist_full_list()

        logger.info("full_list_imported", count=len(full.rows), columns=len(full.headers))
        return len(full.rows)

    def export_price_list(self) -> BytesIO:
        return export_price_list(self._state)

    def export_full_list(self) -> BytesIO:
        return export_full_list(self._state.full_list)

    # ===================
    # LOAD
    # ===================

    def load_from_cache(self) -> LedgerState:
        """Provisional state from the cache. Phase becomes CACHE_LOADED."""
        rate = parse_decimal(self.cache.get(RATE_KEY))
        if rate is None or rate <= 0:
            rate = self.default_rate

        cached_new = self.cache.get_json(NEW_PRODUCTS_KEY)
        new_products = frozenset(
            str(n) for n in cached_new
        ) if isinstance(cached_new, list) else frozenset()

        products, override_cny, override_qty = ledger_state.products_from_cache_blob(
            self.cache.get_json(PRICE_DATA_KEY), new_products
        )
        full = ledger_state.full_list_from_cache(
            self.cache.get_json(FULL_LIST_HEADERS_KEY),
            self.cache.get_json(FULL_LIST_DATA_KEY),
        )

        self._apply(LedgerState(
            rate=rate,
            products=products,
            override_cny=override_cny,
            override_qty=override_qty,
            new_products=new_products & {p.name for p in products},
            full_list=full,
            phase=LoadPhase.CACHE_LOADED,
        ))

        logger.info(
            "ledger_cache_loaded",
            products=len(products),
            priced=len(override_cny),
            full_list_rows=len(full.rows),
            rate=str(rate)
        )
        return self._state

    def reconcile_remote(self) -> bool:
        """
        Replace the list and maps with the remote rows (no merge).

        On failure the cached state stays and the phase becomes
        REMOTE_FETCH_FAILED.
        """
        try:
            remote_rows = self.prices.select_all()
        except DatabaseError as e:
            logger.error("remote_reconcile_failed", error=e.message)
            self._apply(ledger_state.set_phase(self._state, LoadPhase.REMOTE_FETCH_FAILED))
            return False

        products, override_cny, override_qty = ledger_state.products_from_remote_rows(
            remote_rows, self._state.new_products
        )
        self._apply(replace(
            self._state,
            products=products,
            override_cny=override_cny,
            override_qty=override_qty,
            new_products=self._state.new_products & {p.name for p in products},
            sort=SortState(),
            phase=LoadPhase.REMOTE_RECONCILED,
        ))
        self._persist()

        logger.info("remote_reconciled", products=len(products), priced=len(override_cny))
        return True

    def reconcile_full_list(self) -> bool:
        """Replace the reference list with the remote table; keep cache on failure."""
        try:
            remote_rows = self.full_list.select_all()
        except DatabaseError as e:
            logger.error("full_list_reconcile_failed", error=e.message)
            return False

        full = ledger_state.full_list_from_remote_rows(remote_rows)
        self._apply(ledger_state.replace_full_list(self._state, full))
        self._persist_full_list()

        logger.info("full_list_reconciled", rows=len(full.rows))
        return True

    def load(self) -> LoadPhase:
        """Cache first, then remote; returns the final phase."""
        self.load_from_cache()
        self.reconcile_remote()
        self.reconcile_full_list()
        return self._state.phase


# Singleton instance for convenience
_price_ledger_service: Optional[PriceLedgerService] = None


def get_price_ledger_service() -> PriceLedgerService:
    """Get or create PriceLedgerService instance."""
    global _price_ledger_service
    if _price_ledger_service is None:
        _price_ledger_service = PriceLedgerService()
    return _price_ledger_service
