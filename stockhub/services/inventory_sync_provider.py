import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import Protocol

import httpx

from stockhub.core.config import settings
from stockhub.services.zoho_client import ZohoInventoryClient, ZohoTokenProvider


@dataclass(frozen=True)
class RemoteLocation:
    location_id: str
    name: str
    status: str = "Active"


@dataclass(frozen=True)
class RemoteItem:
    item_id: str
    sku: str
    name: str
    category: str | None = None
    unit: str | None = None
    rate: Decimal = Decimal("0")
    status: str = "active"


@dataclass(frozen=True)
class TransferLinePayload:
    item_id: str
    name: str
    description: str
    quantity: float
    unit: str


@dataclass(frozen=True)
class TransferOrderPayload:
    transfer_date: date
    from_location_id: str
    to_location_id: str
    line_items: list[TransferLinePayload] = field(default_factory=list)


@dataclass(frozen=True)
class InvoiceLinePayload:
    item_id: str
    name: str
    quantity: float
    rate: Decimal


@dataclass(frozen=True)
class InvoicePayload:
    customer_id: str
    invoice_date: date
    reference_number: str
    location_id: str | None
    line_items: list[InvoiceLinePayload] = field(default_factory=list)


@dataclass(frozen=True)
class RemoteDocument:
    external_id: str
    external_number: str | None = None


class InventorySyncProvider(Protocol):
    name: str

    def create_transfer_order(self, payload: TransferOrderPayload) -> RemoteDocument:
        ...

    def create_invoice(self, payload: InvoicePayload) -> RemoteDocument:
        ...

    def mark_invoice_sent(self, invoice_id: str) -> None:
        ...

    def list_locations(self) -> list[RemoteLocation]:
        ...

    def list_items(self) -> list[RemoteItem]:
        ...


class StubInventorySyncProvider:
    name = "stub"

    def create_transfer_order(self, payload: TransferOrderPayload) -> RemoteDocument:
        reference = uuid.uuid4().hex[:12]
        return RemoteDocument(external_id=f"stub-to-{reference}", external_number=f"TO-{reference[:6].upper()}")

    def create_invoice(self, payload: InvoicePayload) -> RemoteDocument:
        reference = uuid.uuid4().hex[:12]
        return RemoteDocument(external_id=f"stub-inv-{reference}", external_number=f"INV-{reference[:6].upper()}")

    def mark_invoice_sent(self, invoice_id: str) -> None:
        return None

    def list_locations(self) -> list[RemoteLocation]:
        return []

    def list_items(self) -> list[RemoteItem]:
        return []


class ZohoInventorySyncProvider:
    name = "zoho"

    def __init__(self, client: ZohoInventoryClient):
        self._client = client

    @classmethod
    def from_settings(cls) -> "ZohoInventorySyncProvider":
        http_client = httpx.Client(timeout=settings.zoho_timeout_seconds)
        tokens = ZohoTokenProvider(
            client_id=settings.zoho_client_id or "",
            client_secret=settings.zoho_client_secret or "",
            refresh_token=settings.zoho_refresh_token or "",
            accounts_url=settings.zoho_accounts_url,
            http_client=http_client,
        )
        return cls(
            ZohoInventoryClient(
                token_provider=tokens,
                organization_id=settings.zoho_organization_id or "",
                api_base_url=settings.zoho_api_base_url,
                http_client=http_client,
            )
        )

    def create_transfer_order(self, payload: TransferOrderPayload) -> RemoteDocument:
        created = self._client.create_transfer_order(
            {
                "date": payload.transfer_date.isoformat(),
                "from_location_id": payload.from_location_id,
                "to_location_id": payload.to_location_id,
                "line_items": [
                    {
                        "item_id": line.item_id,
                        "name": line.name,
                        "description": line.description,
                        "quantity_transfer": line.quantity,
                        "unit": line.unit,
                    }
                    for line in payload.line_items
                ],
                "is_intransit_order": False,
            }
        )
        return RemoteDocument(
            external_id=str(created.get("transfer_order_id") or ""),
            external_number=created.get("transfer_order_number"),
        )

    def create_invoice(self, payload: InvoicePayload) -> RemoteDocument:
        body = {
            "customer_id": payload.customer_id,
            "date": payload.invoice_date.isoformat(),
            "reference_number": payload.reference_number,
            "line_items": [
                {
                    "item_id": line.item_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "rate": float(line.rate),
                }
                for line in payload.line_items
            ],
        }
        if payload.location_id:
            body["location_id"] = payload.location_id
        created = self._client.create_invoice(body)
        return RemoteDocument(
            external_id=str(created.get("invoice_id") or ""),
            external_number=created.get("invoice_number"),
        )

    def mark_invoice_sent(self, invoice_id: str) -> None:
        self._client.mark_invoice_sent(invoice_id)

    def list_locations(self) -> list[RemoteLocation]:
        locations = []
        for branch in self._client.list_branches():
            location_id = str(branch.get("branch_id") or branch.get("location_id") or "")
            name = str(branch.get("branch_name") or branch.get("location_name") or "")
            if not location_id or not name:
                continue
            locations.append(RemoteLocation(location_id=location_id, name=name, status=str(branch.get("status") or "Active")))
        return locations

    def list_items(self) -> list[RemoteItem]:
        items = []
        for raw in self._client.list_items():
            sku = str(raw.get("sku") or "").strip()
            item_id = str(raw.get("item_id") or "")
            if not sku or not item_id:
                continue
            items.append(
                RemoteItem(
                    item_id=item_id,
                    sku=sku,
                    name=str(raw.get("name") or sku),
                    category=raw.get("category_name"),
                    unit=raw.get("unit"),
                    rate=Decimal(str(raw.get("rate") or 0)),
                    status=str(raw.get("status") or "active"),
                )
            )
        return items


_SYNC_PROVIDER_FACTORIES = {
    "stub": StubInventorySyncProvider,
    "zoho": ZohoInventorySyncProvider.from_settings,
}


@lru_cache
def get_sync_provider(name: str) -> InventorySyncProvider:
    normalized = (name or "").strip().lower()
    factory = _SYNC_PROVIDER_FACTORIES.get(normalized)
    if not factory:
        available = ", ".join(sorted(_SYNC_PROVIDER_FACTORIES.keys()))
        raise ValueError(f"Unknown inventory sync provider '{name}'. Available: {available}")
    return factory()
