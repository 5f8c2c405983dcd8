"""
Price ledger API routes.

Remote writes run as background tasks so responses reflect local state
immediately; see PriceLedgerService for the persistence order.
"""

from io import BytesIO

from fastapi import APIRouter, BackgroundTasks, File, Query, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
import structlog

from exceptions import (
    AppError,
    InvalidExchangeRateError,
    InvalidProductError,
    ProductNotFoundError,
    ValidationError,
)
from models.ledger import (
    FullListResponse,
    LedgerSnapshotResponse,
    SaveAllResponse,
    SortColumn,
)
from models.product import (
    CommitPriceRequest,
    FullListProductRequest,
    NewProductRequest,
    OrderListResponse,
    PriceRow,
    RateUpdateRequest,
)
from services.export_service import FULL_LIST_FILENAME, PRICE_LIST_FILENAME
from services.price_ledger_service import get_price_ledger_service
from services.pricing_service import format_money

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _snapshot() -> LedgerSnapshotResponse:
    service = get_price_ledger_service()
    state = service.snapshot()
    rows = service.rows()
    return LedgerSnapshotResponse(
        rate=str(state.rate),
        phase=state.phase,
        sort_column=state.sort.column,
        sort_direction=state.sort.direction,
        data=rows,
        total=len(rows),
    )


def _xlsx(content: BytesIO, filename: str) -> StreamingResponse:
    return StreamingResponse(
        content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ===================
# READ ROUTES
# ===================

@router.get("", response_model=LedgerSnapshotResponse)
async def get_prices():
    """Price table with derived local prices, savings and totals."""
    try:
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.get("/search", response_model=list[PriceRow])
async def search_prices(q: str = Query("", description="Case-insensitive name filter")):
    try:
        return get_price_ledger_service().search(q)
    except Exception as e:
        return handle_error(e)


@router.get("/order-list", response_model=OrderListResponse)
async def get_order_list():
    """Products with both a pending price and a quantity."""
    try:
        rows, total = get_price_ledger_service().order_list()
        return OrderListResponse(data=rows, total=len(rows), total_value=format_money(total))
    except Exception as e:
        return handle_error(e)


# ===================
# PRODUCT ROUTES
# ===================
# Declared ahead of the /{name}/price routes, whose name may contain slashes

@router.post("/products", response_model=LedgerSnapshotResponse, status_code=201)
async def add_new_product(data: NewProductRequest, background_tasks: BackgroundTasks):
    try:
        added = get_price_ledger_service().add_new_product(
            data.name,
            data.foreign_price,
            data.qty,
            defer=background_tasks.add_task,
        )
        if not added:
            raise InvalidProductError(data.name, data.foreign_price)
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.post("/products/from-full-list", response_model=LedgerSnapshotResponse, status_code=201)
async def add_from_full_list(data: FullListProductRequest, background_tasks: BackgroundTasks):
    try:
        added = get_price_ledger_service().add_from_full_list(
            data.name,
            data.old_price,
            data.foreign_price,
            defer=background_tasks.add_task,
        )
        if not added:
            raise ValidationError("Product name is required", code="PRODUCT_INVALID")
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.delete("/products/{name:path}", response_model=LedgerSnapshotResponse)
async def remove_product(name: str, background_tasks: BackgroundTasks):
    try:
        service = get_price_ledger_service()
        if service.snapshot().find(name) is None:
            raise ProductNotFoundError(name)
        service.remove_product(name, defer=background_tasks.add_task)
        return _snapshot()
    except Exception as e:
        return handle_error(e)


# ===================
# PRICE ROUTES
# ===================

@router.put("/{name:path}/price", response_model=LedgerSnapshotResponse)
async def commit_price(name: str, data: CommitPriceRequest, background_tasks: BackgroundTasks):
    """Enter a new foreign price (unit or bundle, optional delivery)."""
    try:
        get_price_ledger_service().commit_price(
            name,
            data.value,
            data.mode,
            data.bundle_qty,
            data.delivery,
            data.qty,
            defer=background_tasks.add_task,
        )
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.delete("/{name:path}/price", response_model=LedgerSnapshotResponse)
async def clear_price(name: str, background_tasks: BackgroundTasks):
    try:
        get_price_ledger_service().clear_price(name, defer=background_tasks.add_task)
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.put("/rate", response_model=LedgerSnapshotResponse)
async def update_rate(data: RateUpdateRequest):
    try:
        if not get_price_ledger_service().update_rate(data.rate):
            raise InvalidExchangeRateError(data.rate)
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.post("/sort", response_model=LedgerSnapshotResponse)
async def sort_prices(column: SortColumn = Query(..., description="Column to sort by")):
    """Same column flips direction; a new column sorts ascending."""
    try:
        get_price_ledger_service().sort_data(column)
        return _snapshot()
    except Exception as e:
        return handle_error(e)


# ===================
# BULK ROUTES
# ===================

@router.post("/import", response_model=LedgerSnapshotResponse)
async def import_price_list(file: UploadFile = File(...)):
    """Replace the list with a spreadsheet (local only; use save-all to push)."""
    logger.info("price_list_upload_started", filename=file.filename)
    try:
        content = await file.read()
        get_price_ledger_service().import_price_list(BytesIO(content))
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.get("/export")
async def export_price_list():
    try:
        return _xlsx(get_price_ledger_service().export_price_list(), PRICE_LIST_FILENAME)
    except Exception as e:
        return handle_error(e)


@router.post("/save-all", response_model=SaveAllResponse)
async def save_all():
    """Push every row to the remote store and wait for the result."""
    try:
        result = get_price_ledger_service().save_all()
        return SaveAllResponse(saved=result.saved, failed=result.failed, success=result.success)
    except Exception as e:
        return handle_error(e)


@router.delete("", response_model=LedgerSnapshotResponse)
async def clear_all_data():
    """Clear the local list and cache. The remote store is untouched."""
    try:
        get_price_ledger_service().clear_all_data()
        return _snapshot()
    except Exception as e:
        return handle_error(e)


@router.post("/reload", response_model=LedgerSnapshotResponse)
async def reload_prices():
    """Re-run the cache-then-remote load."""
    try:
        get_price_ledger_service().load()
        return _snapshot()
    except Exception as e:
        return handle_error(e)


# ===================
# FULL LIST ROUTES
# ===================

@router.get("/full-list", response_model=FullListResponse)
async def get_full_list(q: str = Query("", description="Filter on the first column")):
    try:
        service = get_price_ledger_service()
        full = service.snapshot().full_list
        rows = service.search_full_list(q)
        return FullListResponse(
            headers=list(full.headers),
            rows=[list(r) for r in rows],
            total=len(rows),
        )
    except Exception as e:
        return handle_error(e)


@router.post("/full-list/import", response_model=FullListResponse)
async def import_full_list(file: UploadFile = File(...)):
    logger.info("full_list_upload_started", filename=file.filename)
    try:
        content = await file.read()
        service = get_price_ledger_service()
        service.import_full_list(BytesIO(content))
        full = service.snapshot().full_list
        return FullListResponse(
            headers=list(full.headers),
            rows=[list(r) for r in full.rows],
            total=len(full.rows),
        )
    except Exception as e:
        return handle_error(e)


@router.get("/full-list/export")
async def export_full_list():
    try:
        return _xlsx(get_price_ledger_service().export_full_list(), FULL_LIST_FILENAME)
    except Exception as e:
        return handle_error(e)
