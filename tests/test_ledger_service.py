import pytest

from stockhub.core.errors import InsufficientStock, NotFound, UniquenessConflict, ValidationError
from stockhub.core.outlets import Outlet
from stockhub.models.stock_item import StockKind
from stockhub.services.ledger_service import OutletLedger, StockQuery, open_outlet_store

RAW = StockKind.RAW_MATERIAL
FINISHED = StockKind.FINISHED_GOOD


def test_decrement_to_zero_marks_out_of_stock_and_rejects_overdraw(ledgers, seed_stock, stock_level):
    seed_stock(Outlet.KUWAIT_CITY, FINISHED, "FG-1", 10, reorder_point=5)

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        item = store.finished_goods.decrement("FG-1", 10, actor="cashier")
        store.commit()
        assert item.current_stock == 0
        assert item.status == "Out of Stock"

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        with pytest.raises(InsufficientStock) as exc_info:
            store.finished_goods.decrement("FG-1", 1)
        store.rollback()

    assert exc_info.value.requested == 1
    assert exc_info.value.available == 0
    assert stock_level(Outlet.KUWAIT_CITY, FINISHED, "FG-1") == 0


def test_retail_status_follows_reorder_point(ledgers, seed_stock):
    seed_stock(Outlet.MALL_360, RAW, "RM-FLOUR", 20, reorder_point=5)

    with open_outlet_store(ledgers, Outlet.MALL_360) as store:
        assert store.raw_materials.find_by_code("RM-FLOUR").status == "In Stock"
        low = store.raw_materials.decrement("RM-FLOUR", 15)
        assert low.current_stock == 5
        assert low.status == "Low Stock"
        restocked = store.raw_materials.increment("RM-FLOUR", 0.5)
        assert restocked.status == "In Stock"
        store.commit()


def test_central_kitchen_uses_production_status_vocabulary(ledgers, seed_stock):
    seed_stock(Outlet.CENTRAL_KITCHEN, RAW, "RM-SUGAR", 3, reorder_point=10)

    with open_outlet_store(ledgers, Outlet.CENTRAL_KITCHEN) as store:
        item = store.raw_materials.find_by_code("RM-SUGAR")
        assert item.status == "Active"
        drained = store.raw_materials.decrement("RM-SUGAR", 3)
        assert drained.status == "Maintenance"
        store.commit()


def test_fractional_quantities_are_kept_exactly(ledgers, seed_stock, stock_level):
    seed_stock(Outlet.VIBE_COMPLEX, RAW, "RM-MILK", 2.5)

    with open_outlet_store(ledgers, Outlet.VIBE_COMPLEX) as store:
        store.raw_materials.decrement("RM-MILK", 0.25)
        store.commit()

    assert stock_level(Outlet.VIBE_COMPLEX, RAW, "RM-MILK") == pytest.approx(2.25)


def test_decrement_unknown_code_raises_not_found(ledgers):
    with open_outlet_store(ledgers, Outlet.TAIBA_HOSPITAL) as store:
        with pytest.raises(NotFound):
            store.finished_goods.decrement("FG-MISSING", 1)


def test_non_positive_quantities_are_rejected(ledgers, seed_stock):
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-OIL", 4)

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        with pytest.raises(ValidationError):
            store.raw_materials.decrement("RM-OIL", 0)
        with pytest.raises(ValidationError):
            store.raw_materials.increment("RM-OIL", -2)


def test_create_rejects_duplicate_code_in_same_outlet(ledgers, seed_stock):
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-SALT", 1)

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        with pytest.raises(UniquenessConflict):
            store.raw_materials.create({"code": "RM-SALT", "name": "Salt"})

    # Same code in a different outlet database is independent.
    seed_stock(Outlet.MALL_360, RAW, "RM-SALT", 7)


def test_upsert_increment_creates_then_adds(ledgers, stock_level):
    defaults = {"name": "Basmati Rice", "category": "Grains", "unit_of_measure": "kg", "unit_price": 1.25}

    with open_outlet_store(ledgers, Outlet.MALL_360) as store:
        item, created = store.raw_materials.upsert_increment("RM-RICE", 4, defaults, actor="transfer")
        store.commit()
        assert created is True
        assert item.name == "Basmati Rice"
        assert item.category == "Grains"
        assert item.unit_of_measure == "kg"

    with open_outlet_store(ledgers, Outlet.MALL_360) as store:
        item, created = store.raw_materials.upsert_increment("RM-RICE", 6, {"name": "Ignored"})
        store.commit()
        assert created is False
        assert item.name == "Basmati Rice"

    assert stock_level(Outlet.MALL_360, RAW, "RM-RICE") == 10


def test_upsert_increment_adds_to_row_inserted_by_another_writer(ledgers, stock_level, monkeypatch):
    original_create = OutletLedger.create

    def create_after_other_writer(self, fields, *, actor=None):
        # The other writer lands the code between the existence check and this insert.
        original_create(self, {"code": fields["code"], "name": "Rice", "current_stock": 5}, actor="receiving")
        raise UniquenessConflict(f"{self.kind.label} '{fields['code']}' already exists")

    monkeypatch.setattr(OutletLedger, "create", create_after_other_writer)

    with open_outlet_store(ledgers, Outlet.MALL_360) as store:
        item, created = store.raw_materials.upsert_increment("RM-RICE", 4, {"name": "Basmati Rice"}, actor="transfer")
        store.commit()
        assert created is False
        assert item.name == "Rice"
        assert item.current_stock == 9

    assert stock_level(Outlet.MALL_360, RAW, "RM-RICE") == 9


def test_update_details_refuses_to_clear_required_fields(ledgers, seed_stock):
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-OIL", 4, category="Oils")

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        with pytest.raises(ValidationError) as exc_info:
            store.raw_materials.update_details("RM-OIL", {"name": None, "reorder_point": None})
        assert "name, reorder_point" in exc_info.value.message

        item = store.raw_materials.update_details("RM-OIL", {"category": None})
        store.commit()
        assert item.category is None
        assert item.name == "Rm-Oil"


def test_validate_availability_reports_every_shortfall(ledgers, seed_stock):
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-A", 5)
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-B", 1)

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        shortfalls = store.raw_materials.validate_availability({"RM-A": 5, "RM-B": 2, "RM-C": 1})

    by_code = {shortfall.code: shortfall for shortfall in shortfalls}
    assert set(by_code) == {"RM-B", "RM-C"}
    assert by_code["RM-B"].reason == "insufficient_stock"
    assert by_code["RM-C"].reason == "not_found"
    assert by_code["RM-C"].as_detail()["available"] is None


def test_soft_delete_hides_item_from_default_listing(ledgers, seed_stock):
    seed_stock(Outlet.VIBE_COMPLEX, FINISHED, "FG-CAKE", 3, category="Bakery")
    seed_stock(Outlet.VIBE_COMPLEX, FINISHED, "FG-TART", 3, category="Bakery")

    with open_outlet_store(ledgers, Outlet.VIBE_COMPLEX) as store:
        store.finished_goods.soft_delete("FG-CAKE", actor="manager")
        store.commit()

        rows, total = store.finished_goods.paginated_query(StockQuery())
        assert total == 1
        assert [row.code for row in rows] == ["FG-TART"]

        rows, total = store.finished_goods.paginated_query(StockQuery(include_inactive=True))
        assert total == 2
        assert store.finished_goods.find_by_code("FG-CAKE").is_active is False


def test_low_stock_and_categories(ledgers, seed_stock):
    seed_stock(Outlet.TAIBA_HOSPITAL, RAW, "RM-EGGS", 2, category="Dairy", reorder_point=6)
    seed_stock(Outlet.TAIBA_HOSPITAL, RAW, "RM-FLOUR", 50, category="Dry Goods", reorder_point=10)
    seed_stock(Outlet.TAIBA_HOSPITAL, RAW, "RM-YEAST", 0, category="Dry Goods", reorder_point=1)

    with open_outlet_store(ledgers, Outlet.TAIBA_HOSPITAL) as store:
        low = store.raw_materials.find_low_stock()
        categories = store.raw_materials.distinct_categories()

    assert [item.code for item in low] == ["RM-YEAST", "RM-EGGS"]
    assert categories == ["Dairy", "Dry Goods"]


def test_paginated_query_searches_and_rejects_unknown_sort(ledgers, seed_stock):
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-001", 1, name="Tomato Paste", category="Sauces")
    seed_stock(Outlet.KUWAIT_CITY, RAW, "RM-002", 1, name="Olive Oil", category="Oils")

    with open_outlet_store(ledgers, Outlet.KUWAIT_CITY) as store:
        rows, total = store.raw_materials.paginated_query(StockQuery(search="tomato"))
        assert total == 1
        assert rows[0].code == "RM-001"

        with pytest.raises(ValidationError):
            store.raw_materials.paginated_query(StockQuery(), sort_by="password")
