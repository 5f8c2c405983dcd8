"""
Local persistent cache.

Scoped string key/value store mirroring the ledger between runs. Backed
by a single JSON file (rewritten whole on every set) or by memory only
when no path is configured. Single process only.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

# Logical keys
RATE_KEY = "exchangeRate"
PRICE_DATA_KEY = "priceLookupData"
NEW_PRODUCTS_KEY = "newProducts"
FULL_LIST_HEADERS_KEY = "fullListHeaders"
FULL_LIST_DATA_KEY = "fullListData"


class LocalCache:
    """
    Scoped key/value blob store.

    Usage:
        cache = LocalCache("cache.json", scope="price-ledger")
        cache.set_json("exchangeRate", "1.77")
        cache.get_json("exchangeRate")  # "1.77"
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, scope: str = ""):
        self.path = Path(path) if path else None
        self.scope = scope
        self._entries: dict[str, str] = self._read_file()

    # ===================
    # RAW ACCESS
    # ===================

    def _key(self, key: str) -> str:
        return f"{self.scope}:{key}" if self.scope else key

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._entries[self._key(key)] = value
        self._write_file()

    def remove(self, key: str) -> None:
        if self._entries.pop(self._key(key), None) is not None:
            self._write_file()

    def keys(self) -> list[str]:
        prefix = self._key("")
        return [k[len(prefix):] for k in self._entries if k.startswith(prefix)]

    # ===================
    # JSON ACCESS
    # ===================

    def get_json(self, key: str) -> Any:
        """Decoded value, or None when missing or not valid JSON."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("cache_entry_malformed", key=key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    # ===================
    # FILE BACKING
    # ===================

    def _read_file(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("cache_file_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("cache_file_unreadable", path=str(self.path), error="not an object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_file(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._entries, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
