import json
from datetime import datetime, timezone

import httpx
import pytest

from stockhub.core.errors import MissingItemMapping, MissingLocationMapping, RemoteApiError
from stockhub.core.id_utils import new_id
from stockhub.core.outlets import Outlet
from stockhub.models.transfer_order import TransferOrder, TransferOrderItem
from stockhub.services.external_sync_service import ExternalSyncAdapter, external_transfer_direction
from stockhub.services.inventory_sync_provider import (
    RemoteItem,
    RemoteLocation,
    StubInventorySyncProvider,
    TransferLinePayload,
    TransferOrderPayload,
    ZohoInventorySyncProvider,
    get_sync_provider,
)
from stockhub.services.transfer_service import list_transfer_items, push_pending_transfer_orders, sync_transfer_order
from stockhub.services.zoho_client import ZohoInventoryClient, ZohoTokenProvider


def _approved_order(db, *, from_outlet: Outlet, to_outlet: Outlet, codes: list[str]) -> TransferOrder:
    order = TransferOrder(
        id=new_id(),
        transfer_number=f"TR-TEST-{new_id()[:8]}",
        from_outlet=from_outlet.value,
        to_outlet=to_outlet.value,
        transfer_date=datetime(2026, 10, 19, tzinfo=timezone.utc),
        priority="Normal",
        status="Approved",
        requested_by="tester",
        zoho_sync_status="none",
        is_active=True,
    )
    db.add(order)
    db.flush()
    for line_no, code in enumerate(codes, start=1):
        db.add(
            TransferOrderItem(
                id=new_id(),
                transfer_order_id=order.id,
                line_no=line_no,
                item_type="raw_material",
                item_code=code,
                item_name=code.title(),
                category="Dry Goods",
                quantity=2,
                unit_of_measure="kg",
            )
        )
    db.commit()
    return order


def _seed_mappings(db, provider, *, items: dict[str, str]):
    adapter = ExternalSyncAdapter(db, provider)
    adapter.upsert_location(zoho_location_id="loc-ck", location_name="TLB central kitchen")
    adapter.upsert_location(zoho_location_id="loc-city", location_name="TLB City")
    for sku, item_id in items.items():
        adapter.upsert_item(sku=sku, name=sku.title(), zoho_item_id=item_id)
    db.commit()
    return adapter


def test_outlet_names_resolve_to_cached_location_ids(db, sync_provider):
    adapter = _seed_mappings(db, sync_provider, items={})

    assert adapter.resolve_location_id(Outlet.CENTRAL_KITCHEN) == "loc-ck"
    assert adapter.resolve_location_id("city") == "loc-city"
    assert adapter.resolve_location_id(Outlet.TAIBA_HOSPITAL) is None


def test_central_kitchen_is_always_the_external_source():
    assert external_transfer_direction(Outlet.KUWAIT_CITY, Outlet.CENTRAL_KITCHEN) == (
        Outlet.CENTRAL_KITCHEN,
        Outlet.KUWAIT_CITY,
    )
    assert external_transfer_direction(Outlet.CENTRAL_KITCHEN, Outlet.MALL_360) == (
        Outlet.CENTRAL_KITCHEN,
        Outlet.MALL_360,
    )
    assert external_transfer_direction(Outlet.MALL_360, Outlet.VIBE_COMPLEX) == (
        Outlet.MALL_360,
        Outlet.VIBE_COMPLEX,
    )


def test_push_skips_unmapped_items_and_swaps_direction(db, sync_provider):
    adapter = _seed_mappings(db, sync_provider, items={"RM-FLOUR": "zi-flour"})
    order = _approved_order(
        db,
        from_outlet=Outlet.KUWAIT_CITY,
        to_outlet=Outlet.CENTRAL_KITCHEN,
        codes=["RM-FLOUR", "RM-SUGAR", "RM-SALT"],
    )

    outcome = sync_transfer_order(db, order, adapter)

    assert outcome.status == "pushed"
    assert outcome.skipped_items == ["RM-SUGAR", "RM-SALT"]
    [payload] = sync_provider.transfer_orders
    assert payload.from_location_id == "loc-ck"
    assert payload.to_location_id == "loc-city"
    assert [line.item_id for line in payload.line_items] == ["zi-flour"]
    assert payload.line_items[0].description == "Dry Goods"
    assert payload.line_items[0].unit == "kg"

    db.refresh(order)
    assert order.zoho_sync_status == "pushed"
    assert order.zoho_transfer_order_id == "zto-1"
    assert order.zoho_synced_at is not None


def test_push_with_no_mappable_items_fails_outright(db, sync_provider):
    adapter = _seed_mappings(db, sync_provider, items={})
    order = _approved_order(
        db,
        from_outlet=Outlet.CENTRAL_KITCHEN,
        to_outlet=Outlet.KUWAIT_CITY,
        codes=["RM-FLOUR", "RM-SUGAR", "RM-SALT"],
    )

    with pytest.raises(MissingItemMapping) as exc_info:
        adapter.push_transfer_order(order, list_transfer_items(db, order.id))
    assert exc_info.value.item_codes == ["RM-FLOUR", "RM-SUGAR", "RM-SALT"]

    outcome = sync_transfer_order(db, order, adapter)
    assert outcome.status == "failed"
    assert outcome.skipped_items == ["RM-FLOUR", "RM-SUGAR", "RM-SALT"]
    assert sync_provider.transfer_orders == []

    db.refresh(order)
    assert order.zoho_sync_status == "failed"
    assert "Refresh the item list" in order.zoho_sync_error


def test_push_without_location_mapping_fails(db, sync_provider):
    adapter = ExternalSyncAdapter(db, sync_provider)
    order = _approved_order(db, from_outlet=Outlet.CENTRAL_KITCHEN, to_outlet=Outlet.MALL_360, codes=["RM-1"])

    with pytest.raises(MissingLocationMapping):
        adapter.push_transfer_order(order, [])

    outcome = sync_transfer_order(db, order, adapter)
    assert outcome.status == "failed"
    assert "Central Kitchen" in outcome.error


def test_push_pending_only_picks_unsynced_pushable_orders(db, sync_provider):
    adapter = _seed_mappings(db, sync_provider, items={"RM-1": "zi-1"})
    first = _approved_order(db, from_outlet=Outlet.CENTRAL_KITCHEN, to_outlet=Outlet.KUWAIT_CITY, codes=["RM-1"])
    second = _approved_order(db, from_outlet=Outlet.CENTRAL_KITCHEN, to_outlet=Outlet.KUWAIT_CITY, codes=["RM-1"])
    second.status = "Rejected"
    db.commit()

    outcomes = push_pending_transfer_orders(db, adapter)

    assert [order.id for order, _ in outcomes] == [first.id]
    assert push_pending_transfer_orders(db, adapter) == []


def test_refresh_replaces_cached_locations_and_items(db, sync_provider):
    adapter = _seed_mappings(db, sync_provider, items={"RM-1": "zi-old"})
    sync_provider.locations = [
        RemoteLocation(location_id="loc-ck", name="TLB central kitchen"),
        RemoteLocation(location_id="loc-vibes", name="TLB vibes"),
    ]
    sync_provider.items = [
        RemoteItem(item_id="zi-new", sku="RM-1", name="Flour", unit="kg"),
        RemoteItem(item_id="zi-2", sku="RM-2", name="Sugar"),
    ]

    locations = adapter.refresh_locations()
    items = adapter.refresh_items()
    db.commit()

    assert (locations.total, locations.created, locations.updated) == (2, 1, 1)
    assert (items.total, items.created, items.updated) == (2, 1, 1)
    assert adapter.resolve_item_id("RM-1") == "zi-new"
    assert adapter.resolve_location_id(Outlet.VIBE_COMPLEX) == "loc-vibes"


def test_external_sync_api_upsert_list_and_refresh(test_context, sync_provider):
    client, _ = test_context

    created = client.put("/external-sync/items", json={"sku": "FG-1", "name": "Cake", "zoho_item_id": "zi-1", "rate": 2.5})
    assert created.status_code == 200, created.text
    updated = client.put("/external-sync/items", json={"sku": "FG-1", "name": "Cake Slice", "zoho_item_id": "zi-1"})
    assert updated.status_code == 200, updated.text
    assert updated.json()["id"] == created.json()["id"]

    listed = client.get("/external-sync/items", params={"q": "slice"})
    assert listed.status_code == 200, listed.text
    assert [row["sku"] for row in listed.json()["items"]] == ["FG-1"]

    sync_provider.locations = [RemoteLocation(location_id="loc-1", name="TLB City")]
    refresh = client.post("/external-sync/locations/refresh")
    assert refresh.status_code == 200, refresh.text
    assert refresh.json() == {"total": 1, "created": 1, "updated": 0}

    sync_provider.fail_with = RemoteApiError("invalid oauth token", status_code=401)
    failed = client.post("/external-sync/items/refresh")
    assert failed.status_code == 502, failed.text
    assert failed.json()["error"]["code"] == "remote_api_error"


def test_sync_provider_registry():
    assert isinstance(get_sync_provider("stub"), StubInventorySyncProvider)
    with pytest.raises(ValueError):
        get_sync_provider("sap")


class FakeZoho:
    """Serves the token and inventory endpoints through httpx.MockTransport."""

    def __init__(self):
        self.token_calls = 0
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], list[httpx.Response]] = {}

    def queue(self, method: str, path: str, *responses: httpx.Response) -> None:
        self.responses.setdefault((method, path), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/v2/token":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_calls}", "expires_in": 3600})
        self.requests.append(request)
        queued = self.responses.get((request.method, request.url.path))
        if not queued:
            return httpx.Response(404, json={"code": 404, "message": "not mocked"})
        return queued.pop(0)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def fake_zoho():
    return FakeZoho()


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def zoho_client(fake_zoho, fake_clock):
    http_client = httpx.Client(transport=httpx.MockTransport(fake_zoho.handler))
    tokens = ZohoTokenProvider(
        client_id="client",
        client_secret="secret",
        refresh_token="refresh",
        accounts_url="https://accounts.zoho.test",
        http_client=http_client,
        clock=fake_clock,
    )
    client = ZohoInventoryClient(
        token_provider=tokens,
        organization_id="org-1",
        api_base_url="https://inventory.zoho.test",
        http_client=http_client,
    )
    yield client
    http_client.close()


def test_zoho_client_caches_token_until_expiry(zoho_client, fake_zoho, fake_clock):
    fake_zoho.queue(
        "GET",
        "/inventory/v1/branches",
        httpx.Response(200, json={"code": 0, "branches": []}),
        httpx.Response(200, json={"code": 0, "branches": []}),
        httpx.Response(200, json={"code": 0, "branches": []}),
    )

    zoho_client.list_branches()
    zoho_client.list_branches()
    assert fake_zoho.token_calls == 1

    fake_clock.now += 3600
    zoho_client.list_branches()
    assert fake_zoho.token_calls == 2

    request = fake_zoho.requests[0]
    assert request.headers["Authorization"] == "Zoho-oauthtoken token-1"
    assert request.url.params["organization_id"] == "org-1"


def test_zoho_client_refreshes_token_once_on_unauthorized(zoho_client, fake_zoho):
    fake_zoho.queue(
        "POST",
        "/inventory/v1/transferorders",
        httpx.Response(401, json={"code": 57, "message": "You are not authorized"}),
        httpx.Response(201, json={"code": 0, "transfer_order": {"transfer_order_id": "9001", "transfer_order_number": "TO-9001"}}),
    )

    created = zoho_client.create_transfer_order({"from_location_id": "a", "to_location_id": "b", "line_items": []})

    assert created["transfer_order_id"] == "9001"
    assert fake_zoho.token_calls == 2
    assert fake_zoho.requests[-1].headers["Authorization"] == "Zoho-oauthtoken token-2"
    assert fake_zoho.requests[-1].url.params["ignore_auto_number_generation"] == "false"


def test_zoho_client_raises_on_application_error_code(zoho_client, fake_zoho):
    fake_zoho.queue(
        "POST",
        "/inventory/v1/invoices",
        httpx.Response(200, json={"code": 1001, "message": "Customer does not exist"}),
    )

    with pytest.raises(RemoteApiError) as exc_info:
        zoho_client.create_invoice({"customer_id": "missing"})

    assert exc_info.value.message == "Customer does not exist"
    assert exc_info.value.status_code == 200


def test_zoho_provider_maps_branches_and_paginated_items(zoho_client, fake_zoho):
    fake_zoho.queue(
        "GET",
        "/inventory/v1/branches",
        httpx.Response(
            200,
            json={
                "code": 0,
                "branches": [
                    {"branch_id": "b-1", "branch_name": "TLB City", "status": "active"},
                    {"branch_id": "", "branch_name": "Broken"},
                ],
            },
        ),
    )
    fake_zoho.queue(
        "GET",
        "/inventory/v1/items",
        httpx.Response(
            200,
            json={
                "code": 0,
                "items": [{"item_id": "i-1", "sku": "RM-1", "name": "Flour", "rate": 1.25, "unit": "kg"}],
                "page_context": {"has_more_page": True},
            },
        ),
        httpx.Response(
            200,
            json={
                "code": 0,
                "items": [{"item_id": "i-2", "sku": "", "name": "No SKU"}, {"item_id": "i-3", "sku": "RM-3", "name": "Salt"}],
                "page_context": {"has_more_page": False},
            },
        ),
    )
    provider = ZohoInventorySyncProvider(zoho_client)

    locations = provider.list_locations()
    items = provider.list_items()

    assert locations == [RemoteLocation(location_id="b-1", name="TLB City", status="active")]
    assert [item.sku for item in items] == ["RM-1", "RM-3"]
    assert str(items[0].rate) == "1.25"
    pages = [request.url.params["page"] for request in fake_zoho.requests if request.url.path.endswith("/items")]
    assert pages == ["1", "2"]


def test_zoho_provider_builds_transfer_order_body(zoho_client, fake_zoho):
    fake_zoho.queue(
        "POST",
        "/inventory/v1/transferorders",
        httpx.Response(201, json={"code": 0, "transfer_order": {"transfer_order_id": 77, "transfer_order_number": "TO-77"}}),
    )
    document = ZohoInventorySyncProvider(zoho_client).create_transfer_order(
        TransferOrderPayload(
            transfer_date=datetime(2026, 10, 19).date(),
            from_location_id="loc-ck",
            to_location_id="loc-city",
            line_items=[TransferLinePayload(item_id="zi-1", name="Flour", description="Dry Goods", quantity=2, unit="kg")],
        )
    )

    assert document.external_id == "77"
    assert document.external_number == "TO-77"
    body = json.loads(fake_zoho.requests[-1].content)
    assert body["date"] == "2026-10-19"
    assert body["line_items"][0]["quantity_transfer"] == 2
    assert body["is_intransit_order"] is False
