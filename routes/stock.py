"""
Stock usage API routes.
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError
from models.stock import (
    BalanceListResponse,
    StockLogResponse,
    UsageSubmitRequest,
)
from services.stock_service import get_stock_service

logger = structlog.get_logger(__name__)

router = APIRouter()


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


@router.get("/balances", response_model=BalanceListResponse)
async def list_balances(
    search: Optional[str] = Query(None, description="Filter by product name")
):
    """Current balance per product with OUT/LOW/OK status."""
    try:
        balances = get_stock_service().get_balances(search=search)
        return BalanceListResponse(data=balances, total=len(balances))
    except Exception as e:
        return handle_error(e)


@router.get("/log", response_model=StockLogResponse)
async def recent_log(
    days: Optional[int] = Query(None, ge=1, le=365, description="Days back (defaults to retention window)")
):
    try:
        entries = get_stock_service().get_recent_log(days=days)
        return StockLogResponse(data=entries, total=len(entries))
    except Exception as e:
        return handle_error(e)


@router.post("/usage", response_model=StockLogResponse, status_code=201)
async def submit_usage(data: UsageSubmitRequest):
    """Log today's usage lines and move balances."""
    try:
        written = get_stock_service().submit_usage(data.entries, on=data.date)
        return StockLogResponse(data=written, total=len(written))
    except Exception as e:
        return handle_error(e)
