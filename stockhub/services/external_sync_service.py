"""Translation between internal identifiers and the external inventory system.

The adapter reads the location/item caches to map outlets and item codes to
external ids, builds provider payloads and reports skipped lines. It never
touches outlet ledgers.
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockhub.core.config import settings
from stockhub.core.errors import MissingItemMapping, MissingLocationMapping, ValidationError
from stockhub.core.id_utils import new_id
from stockhub.core.money import to_money
from stockhub.core.outlets import Outlet, canonicalize_outlet
from stockhub.models.external_sync import ExternalItem, ExternalLocation
from stockhub.models.sales_order import SalesOrder, SalesOrderItem
from stockhub.models.transfer_order import TransferOrder, TransferOrderItem
from stockhub.services.inventory_sync_provider import (
    InventorySyncProvider,
    InvoiceLinePayload,
    InvoicePayload,
    TransferLinePayload,
    TransferOrderPayload,
)

logger = logging.getLogger("stockhub.external_sync")


@dataclass(frozen=True)
class PushResult:
    external_id: str
    external_number: str | None
    skipped_items: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SyncSummary:
    total: int
    created: int
    updated: int


def external_transfer_direction(from_outlet: Outlet, to_outlet: Outlet) -> tuple[Outlet, Outlet]:
    """Central Kitchen is always the external source location."""
    if to_outlet.is_central_kitchen and not from_outlet.is_central_kitchen:
        return to_outlet, from_outlet
    return from_outlet, to_outlet


def _as_date(value: datetime | None):
    return (value or datetime.now(timezone.utc)).date()


class ExternalSyncAdapter:
    def __init__(self, db: Session, provider: InventorySyncProvider):
        self.db = db
        self.provider = provider

    def resolve_location_id(self, outlet: "Outlet | str") -> str | None:
        outlet = canonicalize_outlet(outlet)
        names = [name.lower() for name in outlet.profile.external_location_names]
        rows = self.db.execute(
            select(ExternalLocation).where(func.lower(ExternalLocation.location_name).in_(names))
        ).scalars().all()
        by_name = {row.location_name.lower(): row.zoho_location_id for row in rows}
        for name in names:
            if name in by_name:
                return by_name[name]
        return None

    def resolve_item_id(self, code: str) -> str | None:
        return self.db.execute(
            select(ExternalItem.zoho_item_id).where(ExternalItem.sku == code)
        ).scalar_one_or_none()

    def _require_location_id(self, outlet: Outlet) -> str:
        location_id = self.resolve_location_id(outlet)
        if not location_id:
            raise MissingLocationMapping(outlet.display_name)
        return location_id

    def push_transfer_order(self, order: TransferOrder, items: Sequence[TransferOrderItem]) -> PushResult:
        source, destination = external_transfer_direction(Outlet(order.from_outlet), Outlet(order.to_outlet))
        from_location_id = self._require_location_id(source)
        to_location_id = self._require_location_id(destination)

        lines: list[TransferLinePayload] = []
        skipped: list[str] = []
        for item in items:
            item_id = self.resolve_item_id(item.item_code)
            if not item_id:
                skipped.append(item.item_code)
                continue
            description = item.notes or " ".join(part for part in (item.category, item.sub_category) if part)
            lines.append(
                TransferLinePayload(
                    item_id=item_id,
                    name=item.item_name,
                    description=description,
                    quantity=item.quantity,
                    unit=item.unit_of_measure or "pcs",
                )
            )
        if not lines:
            raise MissingItemMapping(skipped)

        document = self.provider.create_transfer_order(
            TransferOrderPayload(
                transfer_date=_as_date(order.transfer_date),
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                line_items=lines,
            )
        )
        logger.info(
            json.dumps(
                {
                    "event": "external_sync.transfer_pushed",
                    "transfer_number": order.transfer_number,
                    "external_id": document.external_id,
                    "lines": len(lines),
                    "skipped_items": skipped,
                }
            )
        )
        return PushResult(document.external_id, document.external_number, skipped)

    def push_invoice(self, order: SalesOrder, items: Sequence[SalesOrderItem]) -> PushResult:
        customer_id = settings.zoho_default_customer_id
        if not customer_id:
            raise ValidationError("ZOHO_DEFAULT_CUSTOMER_ID must be configured to push invoices")

        lines: list[InvoiceLinePayload] = []
        skipped: list[str] = []
        for item in items:
            item_id = self.resolve_item_id(item.product_code)
            if not item_id:
                skipped.append(item.product_code)
                continue
            lines.append(
                InvoiceLinePayload(
                    item_id=item_id,
                    name=item.product_name,
                    quantity=item.quantity,
                    rate=to_money(item.unit_price),
                )
            )
        if not lines:
            raise MissingItemMapping(skipped)

        document = self.provider.create_invoice(
            InvoicePayload(
                customer_id=customer_id,
                invoice_date=_as_date(order.order_date),
                reference_number=order.order_number,
                location_id=self.resolve_location_id(Outlet(order.outlet)),
                line_items=lines,
            )
        )
        return PushResult(document.external_id, document.external_number, skipped)

    def mark_invoice_sent(self, invoice_id: str) -> None:
        self.provider.mark_invoice_sent(invoice_id)

    def upsert_location(self, *, zoho_location_id: str, location_name: str, status: str = "Active") -> tuple[ExternalLocation, bool]:
        row = self.db.execute(
            select(ExternalLocation).where(ExternalLocation.zoho_location_id == zoho_location_id)
        ).scalar_one_or_none()
        if row is None:
            row = ExternalLocation(
                id=new_id(),
                zoho_location_id=zoho_location_id,
                location_name=location_name,
                status=status,
            )
            self.db.add(row)
            self.db.flush()
            return row, True
        row.location_name = location_name
        row.status = status
        return row, False

    def upsert_item(
        self,
        *,
        sku: str,
        name: str,
        zoho_item_id: str,
        category: str | None = None,
        unit: str | None = None,
        rate: Decimal | float = 0,
        status: str = "active",
    ) -> tuple[ExternalItem, bool]:
        row = self.db.execute(select(ExternalItem).where(ExternalItem.sku == sku)).scalar_one_or_none()
        created = row is None
        if row is None:
            row = ExternalItem(id=new_id(), sku=sku)
            self.db.add(row)
        row.name = name
        row.zoho_item_id = zoho_item_id
        row.category = category
        row.unit = unit
        row.rate = to_money(rate)
        row.status = status
        self.db.flush()
        return row, created

    def refresh_locations(self) -> SyncSummary:
        remote = self.provider.list_locations()
        created = updated = 0
        for location in remote:
            _, was_created = self.upsert_location(
                zoho_location_id=location.location_id,
                location_name=location.name,
                status=location.status,
            )
            if was_created:
                created += 1
            else:
                updated += 1
        return SyncSummary(total=len(remote), created=created, updated=updated)

    def refresh_items(self) -> SyncSummary:
        remote = self.provider.list_items()
        created = updated = 0
        for item in remote:
            _, was_created = self.upsert_item(
                sku=item.sku,
                name=item.name,
                zoho_item_id=item.item_id,
                category=item.category,
                unit=item.unit,
                rate=item.rate,
                status=item.status,
            )
            if was_created:
                created += 1
            else:
                updated += 1
        return SyncSummary(total=len(remote), created=created, updated=updated)
