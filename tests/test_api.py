from sqlalchemy.exc import IntegrityError

from stockhub.core.outlets import Outlet
from stockhub.models.stock_item import StockKind
from stockhub.services.ledger_service import OutletLedger
from stockhub.services.notification_service import emit_notification


def _create_flour(client, outlet: str = "kuwait-city"):
    return client.post(
        f"/outlets/{outlet}/raw-materials",
        json={
            "code": "RM-FLOUR",
            "name": "Flour",
            "category": "Dry Goods",
            "unitOfMeasure": "kg",
            "unitPrice": 1.25,
            "currentStock": 20,
            "reorderPoint": 5,
            "actor": "storekeeper",
        },
    )


def _bom_payload(code: str, *items: dict, product_name: str | None = None) -> dict:
    return {"bomCode": code, "productName": product_name or code.title(), "items": list(items)}


def _raw_line(code: str, qty: float, unit_cost: float = 0) -> dict:
    return {"itemType": "raw_material", "materialCode": code, "materialName": code.title(), "quantity": qty, "unitCost": unit_cost}


def _bom_line(code: str, qty: float) -> dict:
    return {"itemType": "bom", "materialCode": code, "materialName": code.title(), "quantity": qty}


def test_health_ready_and_outlet_directory(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}

    ready = client.get("/ready")
    assert ready.status_code == 200, ready.text
    body = ready.json()
    assert body["ok"] is True
    assert body["central"] is True
    assert set(body["outlets"]) == {outlet.value for outlet in Outlet}

    outlets = client.get("/outlets")
    assert outlets.status_code == 200, outlets.text
    by_slug = {row["slug"]: row for row in outlets.json()["items"]}
    assert by_slug["central-kitchen"]["code"] == "CK-001"
    assert by_slug["central-kitchen"]["status_vocabulary"] == ["Active", "Maintenance"]
    assert by_slug["kuwait-city"]["status_vocabulary"] == ["In Stock", "Low Stock", "Out of Stock"]


def test_stock_item_create_update_adjust_and_delete(test_context, stock_level):
    client, _ = test_context

    created = _create_flour(client)
    assert created.status_code == 201, created.text
    item = created.json()
    assert item["outlet"] == "kuwait-city"
    assert item["item_type"] == "raw_material"
    assert item["status"] == "In Stock"
    assert item["created_by"] == "storekeeper"

    duplicate = _create_flour(client)
    assert duplicate.status_code == 409, duplicate.text
    assert duplicate.json()["error"]["code"] == "conflict"

    # Legacy outlet names resolve to the same ledger.
    fetched = client.get("/outlets/Kuwait City/raw-materials/RM-FLOUR")
    assert fetched.status_code == 200, fetched.text
    assert fetched.json()["id"] == item["id"]

    patched = client.patch("/outlets/kuwait-city/raw-materials/RM-FLOUR", json={"category": "Baking"})
    assert patched.status_code == 200, patched.text
    assert patched.json()["category"] == "Baking"
    assert patched.json()["current_stock"] == 20

    adjusted = client.post("/outlets/kuwait-city/raw-materials/RM-FLOUR/adjust", json={"qty_delta": -16, "reason": "waste"})
    assert adjusted.status_code == 200, adjusted.text
    assert adjusted.json()["current_stock"] == 4
    assert adjusted.json()["status"] == "Low Stock"

    low = client.get("/outlets/kuwait-city/raw-materials/low-stock")
    assert [row["code"] for row in low.json()["items"]] == ["RM-FLOUR"]
    categories = client.get("/outlets/kuwait-city/raw-materials/categories")
    assert categories.json() == {"items": ["Baking"]}

    deleted = client.delete("/outlets/kuwait-city/raw-materials/RM-FLOUR", params={"actor": "manager"})
    assert deleted.status_code == 200, deleted.text
    assert deleted.json()["is_active"] is False

    listed = client.get("/outlets/kuwait-city/raw-materials")
    assert listed.json()["pagination"]["total"] == 0
    listed = client.get("/outlets/kuwait-city/raw-materials", params={"include_inactive": True})
    assert listed.json()["pagination"]["total"] == 1
    assert stock_level(Outlet.KUWAIT_CITY, StockKind.RAW_MATERIAL, "RM-FLOUR") == 4


def test_overdraw_returns_error_envelope_with_request_id(test_context, stock_level):
    client, _ = test_context
    assert _create_flour(client, "360-mall").status_code == 201

    res = client.post(
        "/outlets/360-mall/raw-materials/RM-FLOUR/adjust",
        json={"quantity": -25},
        headers={"X-Request-ID": "req-overdraw-1"},
    )

    assert res.status_code == 409, res.text
    error = res.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["request_id"] == "req-overdraw-1"
    assert error["path"] == "/outlets/360-mall/raw-materials/RM-FLOUR/adjust"
    assert res.headers["X-Request-ID"] == "req-overdraw-1"
    assert stock_level(Outlet.MALL_360, StockKind.RAW_MATERIAL, "RM-FLOUR") == 20


def test_stock_routes_reject_unknown_outlet_and_kind(test_context):
    client, _ = test_context

    unknown_kind = client.get("/outlets/kuwait-city/spices")
    assert unknown_kind.status_code == 404, unknown_kind.text
    assert unknown_kind.json()["error"]["code"] == "not_found"

    unknown_outlet = client.get("/outlets/mars-base/raw-materials")
    assert unknown_outlet.status_code == 422, unknown_outlet.text
    assert unknown_outlet.json()["error"]["code"] == "validation_error"

    zero_adjust = client.post("/outlets/kuwait-city/raw-materials/RM-X/adjust", json={"qty_delta": 0})
    assert zero_adjust.status_code == 422, zero_adjust.text
    assert zero_adjust.json()["error"]["details"][0]["field"] == "qty_delta"


def test_stock_import_upserts_and_reports_failures(test_context, stock_level):
    client, _ = test_context
    assert _create_flour(client, "vibe-complex").status_code == 201

    upsert = client.post(
        "/outlets/vibe-complex/raw-materials/import",
        json={
            "items": [
                {"code": "RM-FLOUR", "name": "Flour", "currentStock": 6},
                {"code": "RM-SUGAR", "name": "Sugar", "currentStock": 3, "category": "Dry Goods"},
            ]
        },
    )
    assert upsert.status_code == 200, upsert.text
    assert upsert.json()["succeeded"] == ["RM-FLOUR", "RM-SUGAR"]
    assert upsert.json()["failed"] == []
    assert stock_level(Outlet.VIBE_COMPLEX, StockKind.RAW_MATERIAL, "RM-FLOUR") == 26
    assert stock_level(Outlet.VIBE_COMPLEX, StockKind.RAW_MATERIAL, "RM-SUGAR") == 3

    create_only = client.post(
        "/outlets/vibe-complex/raw-materials/import",
        json={"mode": "create", "items": [{"code": "RM-SUGAR", "name": "Sugar"}, {"code": "RM-SALT", "name": "Salt"}]},
    )
    assert create_only.status_code == 200, create_only.text
    assert create_only.json()["succeeded"] == ["RM-SALT"]
    [failure] = create_only.json()["failed"]
    assert failure["key"] == "RM-SUGAR"
    assert failure["error_code"] == "conflict"
    assert stock_level(Outlet.VIBE_COMPLEX, StockKind.RAW_MATERIAL, "RM-SUGAR") == 3


def test_stock_item_patch_rejects_null_for_required_fields(test_context):
    client, _ = test_context
    assert _create_flour(client).status_code == 201

    for field in ("name", "unitOfMeasure", "unit_price", "minimumStock", "reorderPoint", "isActive"):
        res = client.patch("/outlets/kuwait-city/raw-materials/RM-FLOUR", json={field: None})
        assert res.status_code == 422, (field, res.text)
        assert res.json()["error"]["code"] == "validation_error"

    # Optional columns can still be cleared.
    cleared = client.patch("/outlets/kuwait-city/raw-materials/RM-FLOUR", json={"category": None})
    assert cleared.status_code == 200, cleared.text
    assert cleared.json()["category"] is None
    assert cleared.json()["name"] == "Flour"
    assert cleared.json()["reorder_point"] == 5


def test_stock_import_upsert_ignores_null_details(test_context, stock_level):
    client, _ = test_context
    assert _create_flour(client, "central-kitchen").status_code == 201

    res = client.post(
        "/outlets/central-kitchen/raw-materials/import",
        json={
            "items": [
                {"code": "NEW-1", "name": "New", "current_stock": 1},
                {"code": "RM-FLOUR", "name": "Bread Flour", "reorder_point": None, "unitOfMeasure": None},
            ]
        },
    )

    assert res.status_code == 200, res.text
    assert res.json()["succeeded"] == ["NEW-1", "RM-FLOUR"]
    assert res.json()["failed"] == []
    flour = client.get("/outlets/central-kitchen/raw-materials/RM-FLOUR").json()
    assert flour["name"] == "Bread Flour"
    assert flour["reorder_point"] == 5
    assert flour["unit_of_measure"] == "kg"
    assert stock_level(Outlet.CENTRAL_KITCHEN, StockKind.RAW_MATERIAL, "NEW-1") == 1


def test_stock_import_reports_constraint_violation_per_row(test_context, stock_level, monkeypatch):
    client, _ = test_context
    assert _create_flour(client, "taiba-hospital").status_code == 201

    def constraint_failure(self, code, fields, *, actor=None):
        raise IntegrityError("UPDATE raw_materials", {}, Exception("NOT NULL constraint failed"))

    monkeypatch.setattr(OutletLedger, "update_details", constraint_failure)

    res = client.post(
        "/outlets/taiba-hospital/raw-materials/import",
        json={
            "items": [
                {"code": "NEW-1", "name": "New", "currentStock": 2},
                {"code": "RM-FLOUR", "name": "Flour", "currentStock": 4},
                {"code": "NEW-2", "name": "Newer", "currentStock": 3},
            ]
        },
    )

    assert res.status_code == 200, res.text
    assert res.json()["succeeded"] == ["NEW-1", "NEW-2"]
    [failure] = res.json()["failed"]
    assert failure["key"] == "RM-FLOUR"
    assert failure["error_code"] == "conflict"
    assert stock_level(Outlet.TAIBA_HOSPITAL, StockKind.RAW_MATERIAL, "RM-FLOUR") == 20
    assert stock_level(Outlet.TAIBA_HOSPITAL, StockKind.RAW_MATERIAL, "NEW-2") == 3


def test_bom_crud_and_cycle_rejection(test_context):
    client, _ = test_context

    frosting = client.post("/boms", json=_bom_payload("bom-frosting", _raw_line("SUGAR", 3, unit_cost=0.5)))
    assert frosting.status_code == 201, frosting.text
    assert frosting.json()["bom_code"] == "BOM-FROSTING"
    assert frosting.json()["total_cost"] == 1.5

    cake = client.post(
        "/boms",
        json=_bom_payload("CAKE-1", _bom_line("BOM-FROSTING", 2), _raw_line("FLOUR", 1, unit_cost=2)),
    )
    assert cake.status_code == 201, cake.text
    assert [line["line_no"] for line in cake.json()["items"]] == [1, 2]
    assert cake.json()["items"][0]["bom_code"] == "BOM-FROSTING"

    duplicate = client.post("/boms", json=_bom_payload("CAKE-1", _raw_line("FLOUR", 1)))
    assert duplicate.status_code == 409, duplicate.text

    cycle = client.put(
        "/boms/BOM-FROSTING",
        json={"productName": "Frosting", "items": [_raw_line("SUGAR", 3), _bom_line("CAKE-1", 1)]},
    )
    assert cycle.status_code == 422, cycle.text
    assert cycle.json()["error"]["code"] == "circular_bom_reference"
    assert cycle.json()["error"]["details"] == [{"path": ["BOM-FROSTING", "CAKE-1", "BOM-FROSTING"]}]

    dangling = client.post("/boms", json=_bom_payload("PIE-1", _bom_line("GHOST", 1)))
    assert dangling.status_code == 422, dangling.text
    assert "GHOST" in dangling.json()["error"]["message"]

    replaced = client.put(
        "/boms/BOM-FROSTING",
        json={"productName": "Vanilla Frosting", "items": [_raw_line("SUGAR", 2), _raw_line("VANILLA", 0.1)]},
    )
    assert replaced.status_code == 200, replaced.text
    assert replaced.json()["product_name"] == "Vanilla Frosting"
    assert len(replaced.json()["items"]) == 2

    listed = client.get("/boms", params={"q": "cake"})
    assert [row["bom_code"] for row in listed.json()["items"]] == ["CAKE-1"]

    in_use = client.delete("/boms/BOM-FROSTING")
    assert in_use.status_code == 422, in_use.text
    assert "CAKE-1" in in_use.json()["error"]["message"]

    assert client.delete("/boms/CAKE-1").status_code == 204
    assert client.get("/boms/CAKE-1").status_code == 404
    assert client.delete("/boms/BOM-FROSTING").status_code == 204


def test_bom_explode_with_and_without_outlet(test_context, seed_stock):
    client, _ = test_context
    assert client.post("/boms", json=_bom_payload("BOM-FROSTING", _raw_line("SUGAR", 3))).status_code == 201
    assert (
        client.post(
            "/boms",
            json=_bom_payload("CAKE-1", _bom_line("BOM-FROSTING", 2), _raw_line("FLOUR", 1), _raw_line("FG-SPONGE", 1)),
        ).status_code
        == 201
    )
    seed_stock(Outlet.KUWAIT_CITY, StockKind.FINISHED_GOOD, "FG-SPONGE", 4)

    plain = client.get("/boms/cake-1/explode", params={"quantity": 2})
    assert plain.status_code == 200, plain.text
    assert plain.json()["raw_materials"] == [
        {"code": "FG-SPONGE", "quantity": 2},
        {"code": "FLOUR", "quantity": 2},
        {"code": "SUGAR", "quantity": 12},
    ]
    assert plain.json()["finished_goods"] == []

    routed = client.get("/boms/CAKE-1/explode", params={"quantity": 2, "outlet": "city"})
    assert routed.status_code == 200, routed.text
    assert routed.json()["outlet"] == "kuwait-city"
    assert routed.json()["finished_goods"] == [{"code": "FG-SPONGE", "quantity": 2}]
    assert [line["code"] for line in routed.json()["raw_materials"]] == ["FLOUR", "SUGAR"]

    missing = client.get("/boms/NOPE/explode")
    assert missing.status_code == 404, missing.text
    assert missing.json()["error"]["code"] == "bom_not_found"


def test_notifications_feed_read_and_read_all(test_context):
    client, session_local = test_context
    first = emit_notification(
        session_local,
        title="Transfer request",
        message="Kuwait City requested stock",
        type="transfer_request",
        target_outlet=Outlet.CENTRAL_KITCHEN,
        source_outlet=Outlet.KUWAIT_CITY,
    )
    emit_notification(
        session_local,
        title="Transfer request",
        message="360 Mall requested stock",
        type="transfer_request",
        target_outlet=Outlet.CENTRAL_KITCHEN,
        source_outlet=Outlet.MALL_360,
    )
    emit_notification(
        session_local,
        title="Other outlet",
        message="Not for the kitchen",
        type="transfer_completed",
        target_outlet=Outlet.VIBE_COMPLEX,
    )

    feed = client.get("/notifications", params={"outlet": "central-kitchen"})
    assert feed.status_code == 200, feed.text
    assert feed.json()["unread_count"] == 2
    assert feed.json()["pagination"]["total"] == 2

    read = client.post(f"/notifications/{first}/read")
    assert read.status_code == 200, read.text
    assert read.json()["read"] is True

    unread = client.get("/notifications", params={"outlet": "ck", "unread_only": True})
    assert unread.json()["unread_count"] == 1
    assert len(unread.json()["items"]) == 1

    read_all = client.post("/notifications/read-all", params={"outlet": "central-kitchen"})
    assert read_all.json() == {"updated": 1}
    assert client.get("/notifications", params={"outlet": "vibes"}).json()["unread_count"] == 1

    missing = client.post("/notifications/does-not-exist/read")
    assert missing.status_code == 404, missing.text
