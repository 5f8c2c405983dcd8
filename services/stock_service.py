"""
Stock usage service.

Daily consumption is written to the stock log with the ending balance
for each movement, and the product's balance row is moved to that
ending balance. Log rows older than the retention window are purged
after every submission.
"""

from datetime import date, timedelta
from typing import Optional
import structlog

from config import get_supabase_client, settings
from exceptions import DatabaseError
from models.stock import BalanceRow, StockLogEntry, StockStatus, UsageEntry
from utils.text_utils import contains_name

logger = structlog.get_logger(__name__)


class StockService:
    """
    Stock balance and usage log operations.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.balance_table = settings.stock_balance_table
        self.log_table = settings.stock_log_table
        self.retention_days = settings.stock_log_retention_days
        self.low_threshold = settings.low_stock_threshold

    def classify(self, balance: float) -> StockStatus:
        if balance <= 0:
            return StockStatus.OUT
        if balance <= self.low_threshold:
            return StockStatus.LOW
        return StockStatus.OK

    def _cutoff(self, today: date, days: Optional[int] = None) -> str:
        return (today - timedelta(days=days or self.retention_days)).isoformat()

    # ===================
    # READ OPERATIONS
    # ===================

    def get_balances(self, search: Optional[str] = None) -> list[BalanceRow]:
        """
        Current balance per product, ordered by name.

        Args:
            search: Case-insensitive substring filter on product name
        """
        logger.debug("getting_stock_balances", search=search)

        try:
            result = (
                self.db.table(self.balance_table)
                .select("*")
                .order("product_name")
                .execute()
            )
        except Exception as e:
            logger.error("get_stock_balances_failed", error=str(e))
            raise DatabaseError("select", str(e))

        balances = []
        for row in result.data or []:
            balance = float(row.get("starting_balance") or 0)
            balances.append(BalanceRow(
                product_name=row["product_name"],
                starting_balance=balance,
                status=self.classify(balance),
            ))

        if search:
            balances = [b for b in balances if contains_name(b.product_name, search)]

        return balances

    def get_recent_log(
        self,
        days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[StockLogEntry]:
        """Log rows on or after the cutoff, newest first."""
        cutoff = self._cutoff(today or date.today(), days)
        logger.debug("getting_stock_log", cutoff=cutoff)

        try:
            result = (
                self.db.table(self.log_table)
                .select("*")
                .gte("date", cutoff)
                .order("date", desc=True)
                .order("id", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("get_stock_log_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [StockLogEntry(**row) for row in result.data or []]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def submit_usage(
        self,
        entries: list[UsageEntry],
        on: Optional[date] = None,
    ) -> list[StockLogEntry]:
        """
        Log a day's usage and move balances.

        Lines without a product or with qty 0 are skipped. Several lines
        for the same product draw down one running balance.

        Lines are written one at a time. If a line fails, the lines
        before it stay written, the purge is skipped and DatabaseError
        names the failing product.

        Returns:
            Log entries written, in submission order
        """
        on = on or date.today()
        valid = [e for e in entries if e.product_name.strip() and e.qty > 0]
        if not valid:
            logger.info("stock_usage_empty")
            return []

        logger.info("submitting_stock_usage", lines=len(valid), date=on.isoformat())

        running = {b.product_name: b.starting_balance for b in self.get_balances()}
        written = []

        for entry in valid:
            name = entry.product_name.strip()
            if name not in running:
                logger.warning("stock_balance_missing", product_name=name)
            ending = running.get(name, 0) - entry.qty
            running[name] = ending

            log_row = {
                "date": on.isoformat(),
                "product_name": name,
                "type": entry.type.value,
                "qty": entry.qty,
                "ending_balance": ending,
            }

            try:
                result = self.db.table(self.log_table).insert(log_row).execute()
                (
                    self.db.table(self.balance_table)
                    .update({"starting_balance": ending})
                    .eq("product_name", name)
                    .execute()
                )
            except Exception as e:
                logger.error("stock_usage_line_failed", product_name=name, error=str(e))
                raise DatabaseError("insert", str(e), {"product_name": name})

            stored = result.data[0] if result.data else log_row
            written.append(StockLogEntry(**{**log_row, **stored}))

        self.purge_old_logs(on)

        logger.info("stock_usage_submitted", lines=len(written))
        return written

    def purge_old_logs(self, today: Optional[date] = None) -> None:
        """Delete log rows older than the retention window."""
        cutoff = self._cutoff(today or date.today())

        try:
            self.db.table(self.log_table).delete().lt("date", cutoff).execute()
        except Exception as e:
            logger.error("purge_stock_log_failed", cutoff=cutoff, error=str(e))
            raise DatabaseError("delete", str(e))

        logger.debug("stock_log_purged", cutoff=cutoff)


# Singleton instance for convenience
_stock_service: Optional[StockService] = None


def get_stock_service() -> StockService:
    """Get or create StockService instance."""
    global _stock_service
    if _stock_service is None:
        _stock_service = StockService()
    return _stock_service
