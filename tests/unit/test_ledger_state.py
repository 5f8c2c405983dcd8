"""
Unit tests for the pure ledger state transitions.

Run: pytest tests/unit/test_ledger_state.py -v
"""

import pytest
from decimal import Decimal

from models.ledger import FullList, LedgerState, SortColumn, SortState
from models.product import PriceColumn, PriceMode, Product
from services import ledger_state
from tests.factories import PriceRowFactory


# ===================
# FIXTURES
# ===================

@pytest.fixture
def state():
    """Three products at rate 2.00, one priced with a quantity."""
    return LedgerState(
        rate=Decimal("2.00"),
        products=(
            Product(name="argan serum", old_price="12.50", cny_price="20.00", office_stock="2"),
            Product(name="Bamboo Brush", old_price="8.00", cny_price="", office_stock=""),
            Product(name="Rose Oil", old_price="30.00", cny_price="50.00", office_stock="4"),
        ),
        override_cny={"Rose Oil": "40.00"},
        override_qty={"Rose Oil": 3},
    )


def names(state: LedgerState) -> list[str]:
    return [p.name for p in state.products]


# ===================
# MUTATORS
# ===================

class TestMutators:
    """Tests for commit/clear/add/remove."""

    def test_commit_does_not_touch_previous_state(self, state):
        updated = ledger_state.commit_price(state, "Bamboo Brush", Decimal("9"), qty=2)

        assert "Bamboo Brush" not in state.override_cny
        assert updated.override_cny["Bamboo Brush"] == "9.00"
        assert updated.override_qty["Bamboo Brush"] == 2

    def test_commit_without_quantity_clears_existing_quantity(self, state):
        updated = ledger_state.commit_price(state, "Rose Oil", Decimal("44"))

        assert updated.override_cny["Rose Oil"] == "44.00"
        assert "Rose Oil" not in updated.override_qty

    def test_commit_bundle_records_bundle_size(self, state):
        updated = ledger_state.commit_price(
            state, "Bamboo Brush", Decimal("100.00"), PriceMode.BUNDLE, bundle_qty=4, qty=9
        )

        assert updated.override_cny["Bamboo Brush"] == "25.00"
        assert updated.override_qty["Bamboo Brush"] == 4

    def test_clear_price_is_idempotent(self, state):
        once = ledger_state.clear_price(state, "Rose Oil")
        twice = ledger_state.clear_price(once, "Rose Oil")

        assert once.override_cny == twice.override_cny == {}
        assert once.override_qty == twice.override_qty == {}
        assert names(twice) == names(state)

    def test_remove_product_cleans_both_maps(self, state):
        updated = ledger_state.remove_product(state, "Rose Oil")

        assert "Rose Oil" not in names(updated)
        assert "Rose Oil" not in updated.override_cny
        assert "Rose Oil" not in updated.override_qty

    @pytest.mark.parametrize("name,price", [
        ("", "10"),
        ("   ", "10"),
        ("Clay Mask", "0"),
        ("Clay Mask", "abc"),
        ("Clay Mask", ""),
        (None, "10"),
    ])
    def test_validate_new_product_rejects(self, name, price):
        assert ledger_state.validate_new_product(name, price) is None

    def test_add_new_product_derives_reference_price(self, state):
        updated = ledger_state.add_new_product(state, "Clay Mask", Decimal("50.00"), qty=2)
        product = updated.find("Clay Mask")

        assert product.old_price == "25.00"
        assert product.cny_price == "50.00"
        assert product.office_stock == "0"
        assert product.is_new is True
        assert updated.override_cny["Clay Mask"] == "50.00"
        assert updated.override_qty["Clay Mask"] == 2
        assert "Clay Mask" in updated.new_products
        assert names(updated) == ["argan serum", "Bamboo Brush", "Clay Mask", "Rose Oil"]

    def test_add_new_product_replaces_same_name(self, state):
        updated = ledger_state.add_new_product(state, "Rose Oil", Decimal("10"))

        assert names(updated).count("Rose Oil") == 1
        assert updated.find("Rose Oil").old_price == "5.00"
        assert "Rose Oil" not in updated.override_qty

    def test_add_from_full_list_sets_no_overrides(self, state):
        updated = ledger_state.add_from_full_list(state, " Aloe Gel ", "15.00", "22.00")
        product = updated.find("Aloe Gel")

        assert product.old_price == "15.00"
        assert product.cny_price == "22.00"
        assert product.is_new is False
        assert "Aloe Gel" not in updated.override_cny
        assert names(updated)[0] == "Aloe Gel"

    def test_clear_all_keeps_rate_and_full_list(self, state):
        full = FullList(headers=("Product Name",), rows=(("Rose Oil",),))
        state = ledger_state.replace_full_list(state, full)

        updated = ledger_state.clear_all_data(state)

        assert updated.products == ()
        assert updated.override_cny == {}
        assert updated.override_qty == {}
        assert updated.rate == Decimal("2.00")
        assert updated.full_list == full

    def test_replace_products_drops_orphan_overrides(self, state):
        imported = [Product(name="Zinc Cream"), Product(name="Aloe Gel")]

        updated = ledger_state.replace_products(
            state, imported, {"Zinc Cream": "5.00", "Ghost": "1.00"}, {"Ghost": 2}
        )

        assert names(updated) == ["Aloe Gel", "Zinc Cream"]
        assert updated.override_cny == {"Zinc Cream": "5.00"}
        assert updated.override_qty == {}


# ===================
# SORTING
# ===================

class TestSorting:
    """Tests for sort_data and toggle_sort."""

    def test_toggle_same_column_flips_direction(self):
        current = SortState(column=SortColumn.SAVINGS, direction=1)

        assert ledger_state.toggle_sort(current, SortColumn.SAVINGS).direction == -1

    def test_new_column_resets_to_ascending(self):
        current = SortState(column=SortColumn.SAVINGS, direction=-1)

        toggled = ledger_state.toggle_sort(current, SortColumn.OLD_PRICE)

        assert toggled == SortState(column=SortColumn.OLD_PRICE, direction=1)

    def test_name_sort_is_case_insensitive(self, state):
        by_name = ledger_state.sort_data(
            ledger_state.sort_data(state, SortColumn.OLD_PRICE), SortColumn.NAME
        )

        assert names(by_name) == ["argan serum", "Bamboo Brush", "Rose Oil"]

    def test_savings_ascending_puts_unpriced_first(self):
        state = LedgerState(
            rate=Decimal("2.00"),
            products=(
                Product(name="Gain", old_price="30.00"),
                Product(name="Loss", old_price="5.00"),
                Product(name="Unpriced", old_price="99.00"),
            ),
            override_cny={"Gain": "40.00", "Loss": "20.00"},
        )

        ascending = ledger_state.sort_data(state, SortColumn.SAVINGS)

        # Unpriced < Loss (-5) < Gain (+10)
        assert names(ascending) == ["Unpriced", "Loss", "Gain"]

        descending = ledger_state.sort_data(ascending, SortColumn.SAVINGS)

        assert names(descending) == ["Gain", "Loss", "Unpriced"]

    def test_missing_numbers_sort_as_zero(self, state):
        by_stock = ledger_state.sort_data(state, SortColumn.OFFICE_STOCK)

        assert names(by_stock) == ["Bamboo Brush", "argan serum", "Rose Oil"]

    def test_ties_keep_relative_order(self):
        state = LedgerState(
            rate=Decimal("2.00"),
            products=(
                Product(name="A", office_stock="1"),
                Product(name="B", office_stock="1"),
                Product(name="C", office_stock="0"),
            ),
        )

        ascending = ledger_state.sort_data(state, SortColumn.OFFICE_STOCK)
        assert names(ascending) == ["C", "A", "B"]

        descending = ledger_state.sort_data(ascending, SortColumn.OFFICE_STOCK)
        assert names(descending) == ["A", "B", "C"]

    def test_total_value_sort(self, state):
        state = ledger_state.commit_price(state, "argan serum", Decimal("10"), qty=10)

        by_total = ledger_state.sort_data(state, SortColumn.TOTAL_VALUE)

        # Bamboo 0, Rose 20 x 3 = 60, argan 5 x 10 = 50
        assert names(by_total) == ["Bamboo Brush", "argan serum", "Rose Oil"]


# ===================
# READS
# ===================

class TestReads:
    """Tests for search and the order list."""

    def test_search_is_case_insensitive_substring(self, state):
        result = ledger_state.search(state, "OIL")

        assert [r.name for r in result] == ["Rose Oil"]

    def test_blank_search_returns_everything(self, state):
        assert len(ledger_state.search(state, "  ")) == 3

    def test_order_rows_need_price_and_quantity(self, state):
        state = ledger_state.commit_price(state, "Bamboo Brush", Decimal("4"))

        rows = ledger_state.order_rows(state)

        assert [r.name for r in rows] == ["Rose Oil"]

    def test_order_total_sums_unrounded_lines(self):
        state = LedgerState(
            rate=Decimal("3"),
            products=(Product(name="A"), Product(name="B"), Product(name="C")),
            override_cny={"A": "1.00", "B": "1.00", "C": "1.00"},
            override_qty={"A": 1, "B": 1, "C": 1},
        )

        # Three lines of 0.333..., not 3 x 0.33
        assert ledger_state.order_total(state) == Decimal("1.00")

    def test_full_list_search_matches_first_cell(self):
        full = FullList(
            headers=("Product Name", "Supplier"),
            rows=(("Rose Oil", "Guangzhou"), ("Clay Mask", "Rose Co")),
        )

        assert ledger_state.search_full_list(full, "rose") == [("Rose Oil", "Guangzhou")]
        assert len(ledger_state.search_full_list(full, "")) == 2


# ===================
# CACHE BLOB
# ===================

class TestCacheBlob:
    """Tests for reading and writing the cached primary list."""

    def test_round_trip(self, state):
        blob = ledger_state.cache_blob(state)

        products, override_cny, override_qty = ledger_state.products_from_cache_blob(blob)

        assert products == state.products
        assert override_cny == state.override_cny
        assert override_qty == state.override_qty

    def test_blob_uses_camel_case_keys(self, state):
        blob = ledger_state.cache_blob(state)

        assert blob["data"][0] == {
            "name": "argan serum",
            "oldPrice": "12.50",
            "cnyPrice": "20.00",
            "officeStock": "2",
        }

    def test_legacy_shape_is_merged_and_deduplicated(self):
        blob = {
            "importedData": [
                {"name": "Rose Oil", "oldPrice": "30.00", "cnyPrice": "50.00"},
                {"name": "Aloe Gel", "oldPrice": "15.00", "cnyPrice": "22.00"},
            ],
            "manualData": [
                {"name": "Rose Oil", "oldPrice": "31.00", "cnyPrice": "52.00"},
            ],
            "overrideCNY": {"Rose Oil": "45", "Ghost": "1.00"},
            "overrideQty": {"Rose Oil": 2, "Aloe Gel": 0},
        }

        products, override_cny, override_qty = ledger_state.products_from_cache_blob(
            blob, frozenset({"Rose Oil"})
        )

        assert [p.name for p in products] == ["Aloe Gel", "Rose Oil"]
        assert products[1].old_price == "31.00"
        assert products[1].is_new is True
        assert override_cny == {"Rose Oil": "45.00"}
        assert override_qty == {"Rose Oil": 2}

    @pytest.mark.parametrize("blob", [
        None,
        "not a dict",
        {"data": [{"oldPrice": "1"}, "junk", {"name": ""}]},
        {"data": 5},
        {"importedData": "junk", "manualData": 3},
        {"overrideCNY": ["Rose Oil"], "overrideQty": "x"},
    ])
    def test_malformed_blob_is_ignored(self, blob):
        products, override_cny, override_qty = ledger_state.products_from_cache_blob(blob)

        assert products == ()
        assert override_cny == {}
        assert override_qty == {}

    def test_malformed_override_maps_keep_products(self):
        blob = {
            "data": [{"name": "Rose Oil", "oldPrice": "30.00"}],
            "overrideCNY": ["Rose Oil"],
            "overrideQty": "2",
        }

        products, override_cny, override_qty = ledger_state.products_from_cache_blob(blob)

        assert [p.name for p in products] == ["Rose Oil"]
        assert override_cny == {}
        assert override_qty == {}


# ===================
# REMOTE ROWS
# ===================

class TestRemoteRows:
    """Tests for mapping remote rows to state and back."""

    def test_overrides_only_when_positive(self):
        rows = [
            PriceRowFactory.create(name="Rose Oil", old_price=30, cny_price=50, new_cny=40, qty=3),
            PriceRowFactory.create(name="Aloe Gel", old_price=15, cny_price=22, new_cny=0, qty=0),
            PriceRowFactory.create(name="Clay Mask", new_cny=None, qty=None),
        ]

        products, override_cny, override_qty = ledger_state.products_from_remote_rows(rows)

        assert [p.name for p in products] == ["Aloe Gel", "Clay Mask", "Rose Oil"]
        assert override_cny == {"Rose Oil": "40.00"}
        assert override_qty == {"Rose Oil": 3}
        assert products[2].old_price == "30"

    def test_missing_columns_are_absent_overrides(self):
        rows = [{PriceColumn.NAME: "Rose Oil"}]

        products, override_cny, override_qty = ledger_state.products_from_remote_rows(rows)

        assert products[0].old_price == ""
        assert override_cny == {}
        assert override_qty == {}

    def test_pending_columns_derive_from_state(self, state):
        columns = ledger_state.pending_columns(state, "Rose Oil")

        assert columns == {
            PriceColumn.NEW_CNY: 40.0,
            PriceColumn.NEW_LOCAL: 20.0,
            PriceColumn.SAVINGS: 10.0,
            PriceColumn.ORDER_QTY: 3,
            PriceColumn.TOTAL_VALUE: 60.0,
        }

    def test_base_columns_leave_blanks_null(self, state):
        columns = ledger_state.base_columns(state.find("Bamboo Brush"))

        assert columns[PriceColumn.NAME] == "Bamboo Brush"
        assert columns[PriceColumn.OLD_PRICE] == 8.0
        assert columns[PriceColumn.CNY_PRICE] is None
        assert columns[PriceColumn.OFFICE_STOCK] is None

    def test_full_list_skips_bookkeeping_columns(self):
        rows = [
            {"id": 1, "Product Name": "Rose Oil", "Supplier": "Guangzhou", "created_at": "x"},
            {"id": 2, "Product Name": "Aloe Gel", "Supplier": None, "created_at": "y"},
        ]

        full = ledger_state.full_list_from_remote_rows(rows)

        assert full.headers == ("Product Name", "Supplier")
        assert full.rows == (("Rose Oil", "Guangzhou"), ("Aloe Gel", ""))
