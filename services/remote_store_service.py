"""
Remote table store.

Thin wrapper over a Supabase table keyed by a name column. Raises
DatabaseError on failure the same way the other services do; callers
that must not surface remote failures catch it.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class RemoteTableStore:
    """
    Row CRUD against one table, addressed by key column value.

    Usage:
        store = RemoteTableStore("Product Prices", "Product Name")
        store.upsert("Rose Oil", {"New Price (CNY)": 25.0})
    """

    def __init__(self, table: str, key_column: str, client=None):
        self._client = client
        self.table = table
        self.key_column = key_column

    @property
    def db(self):
        # Connect on first use so an offline start still serves cached data
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def select_all(self) -> list[dict]:
        """Every row in the table."""
        logger.debug("remote_select_all", table=self.table)

        try:
            result = self.db.table(self.table).select("*").execute()
            rows = result.data or []

            logger.info("remote_rows_retrieved", table=self.table, count=len(rows))
            return rows

        except Exception as e:
            logger.error("remote_select_failed", table=self.table, error=str(e))
            raise DatabaseError("select", str(e), {"table": self.table})

    def insert(self, row: dict) -> list[dict]:
        logger.debug("remote_insert", table=self.table, key=row.get(self.key_column))

        try:
            result = self.db.table(self.table).insert(row).execute()
            return result.data or []

        except Exception as e:
            logger.error(
                "remote_insert_failed",
                table=self.table,
                key=row.get(self.key_column),
                error=str(e)
            )
            raise DatabaseError("insert", str(e), {"table": self.table})

    def update(self, key: str, fields: dict) -> list[dict]:
        """Update rows where key column equals key. Returns updated rows."""
        logger.debug("remote_update", table=self.table, key=key, fields=list(fields.keys()))

        try:
            result = (
                self.db.table(self.table)
                .update(fields)
                .eq(self.key_column, key)
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("remote_update_failed", table=self.table, key=key, error=str(e))
            raise DatabaseError("update", str(e), {"table": self.table})

    def upsert(self, key: str, fields: dict, base: Optional[dict] = None) -> list[dict]:
        """
        Update the row for key, inserting base + fields when none matched.
        """
        updated = self.update(key, fields)
        if updated:
            return updated

        row = {**(base or {}), **fields, self.key_column: key}
        logger.info("remote_upsert_inserting", table=self.table, key=key)
        return self.insert(row)

    def delete(self, key: str) -> None:
        logger.debug("remote_delete", table=self.table, key=key)

        try:
            self.db.table(self.table).delete().eq(self.key_column, key).execute()

        except Exception as e:
            logger.error("remote_delete_failed", table=self.table, key=key, error=str(e))
            raise DatabaseError("delete", str(e), {"table": self.table})
