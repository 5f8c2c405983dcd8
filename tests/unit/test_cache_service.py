"""
Unit tests for LocalCache.

Run: pytest tests/unit/test_cache_service.py -v
"""

import json

from services.cache_service import LocalCache


class TestLocalCache:
    """Tests for the scoped key/value cache."""

    def test_memory_only_without_path(self):
        cache = LocalCache()

        cache.set("exchangeRate", "1.77")

        assert cache.get("exchangeRate") == "1.77"
        assert cache.path is None

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "cache.json"
        LocalCache(path, scope="shop").set_json("newProducts", ["Clay Mask"])

        reopened = LocalCache(path, scope="shop")

        assert reopened.get_json("newProducts") == ["Clay Mask"]

    def test_scopes_do_not_collide(self, tmp_path):
        path = tmp_path / "cache.json"
        LocalCache(path, scope="a").set("exchangeRate", "1.50")

        other = LocalCache(path, scope="b")

        assert other.get("exchangeRate") is None
        assert other.keys() == []

    def test_file_uses_scoped_keys(self, tmp_path):
        path = tmp_path / "cache.json"
        LocalCache(path, scope="shop").set("exchangeRate", "1.77")

        assert json.loads(path.read_text(encoding="utf-8")) == {"shop:exchangeRate": "1.77"}

    def test_remove(self, tmp_path):
        cache = LocalCache(tmp_path / "cache.json", scope="shop")
        cache.set("a", "1")
        cache.set("b", "2")

        cache.remove("a")
        cache.remove("missing")

        assert cache.keys() == ["b"]

    def test_malformed_json_entry_reads_as_none(self):
        cache = LocalCache()
        cache.set("priceLookupData", "{broken")

        assert cache.get_json("priceLookupData") is None

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        cache = LocalCache(path)

        assert cache.keys() == []

        cache.set("exchangeRate", "2")
        assert LocalCache(path).get("exchangeRate") == "2"

    def test_non_ascii_round_trip(self, tmp_path):
        path = tmp_path / "cache.json"
        LocalCache(path).set_json("fullListHeaders", ["产品名称", "Price (¥)"])

        assert LocalCache(path).get_json("fullListHeaders") == ["产品名称", "Price (¥)"]
