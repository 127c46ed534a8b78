from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.deps import get_db, get_inventory_sync_provider
from stockhub.models.external_sync import ExternalItem, ExternalLocation
from stockhub.schemas.common import pagination
from stockhub.schemas.external_sync import (
    ExternalItemIn,
    ExternalItemListOut,
    ExternalItemOut,
    ExternalLocationIn,
    ExternalLocationListOut,
    ExternalLocationOut,
    SyncSummaryOut,
)
from stockhub.services.audit_service import log_audit_event
from stockhub.services.external_sync_service import ExternalSyncAdapter
from stockhub.services.inventory_sync_provider import InventorySyncProvider

router = APIRouter(prefix="/external-sync", tags=["external-sync"])


def _location_out(row: ExternalLocation) -> ExternalLocationOut:
    return ExternalLocationOut(
        id=row.id,
        zoho_location_id=row.zoho_location_id,
        location_name=row.location_name,
        status=row.status,
        updated_at=row.updated_at,
    )


def _item_out(row: ExternalItem) -> ExternalItemOut:
    return ExternalItemOut(
        id=row.id,
        sku=row.sku,
        name=row.name,
        category=row.category,
        unit=row.unit,
        rate=float(row.rate or 0),
        zoho_item_id=row.zoho_item_id,
        status=row.status,
        updated_at=row.updated_at,
    )


@router.get(
    "/locations",
    response_model=ExternalLocationListOut,
    summary="List cached external locations",
    responses=error_responses(422, 500),
)
def list_external_locations(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    total = int(db.execute(select(func.count(ExternalLocation.id))).scalar_one())
    rows = db.execute(
        select(ExternalLocation).order_by(ExternalLocation.location_name.asc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [_location_out(row) for row in rows]
    return ExternalLocationListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.put(
    "/locations",
    response_model=ExternalLocationOut,
    summary="Create or update a cached external location",
    responses=error_responses(422, 500),
)
def upsert_external_location(
    payload: ExternalLocationIn,
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    row, created = ExternalSyncAdapter(db, provider).upsert_location(
        zoho_location_id=payload.zoho_location_id.strip(),
        location_name=payload.location_name.strip(),
        status=payload.status,
    )
    log_audit_event(
        db,
        actor=None,
        action="external_location.create" if created else "external_location.update",
        target_type="external_location",
        target_id=row.id,
        metadata_json={"zoho_location_id": row.zoho_location_id, "location_name": row.location_name},
    )
    db.commit()
    db.refresh(row)
    return _location_out(row)


@router.post(
    "/locations/refresh",
    response_model=SyncSummaryOut,
    summary="Reload external locations from the inventory system",
    responses=error_responses(500, 502),
)
def refresh_external_locations(
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    summary = ExternalSyncAdapter(db, provider).refresh_locations()
    db.commit()
    return SyncSummaryOut(total=summary.total, created=summary.created, updated=summary.updated)


@router.get(
    "/items",
    response_model=ExternalItemListOut,
    summary="List cached external items",
    responses=error_responses(422, 500),
)
def list_external_items(
    q: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    conditions = []
    if q:
        pattern = f"%{q.strip().lower()}%"
        conditions.append(or_(func.lower(ExternalItem.sku).like(pattern), func.lower(ExternalItem.name).like(pattern)))

    total = int(db.execute(select(func.count(ExternalItem.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(ExternalItem).where(*conditions).order_by(ExternalItem.sku.asc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [_item_out(row) for row in rows]
    return ExternalItemListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.put(
    "/items",
    response_model=ExternalItemOut,
    summary="Create or update a cached external item",
    responses=error_responses(422, 500),
)
def upsert_external_item(
    payload: ExternalItemIn,
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    row, created = ExternalSyncAdapter(db, provider).upsert_item(
        sku=payload.sku.strip(),
        name=payload.name.strip(),
        zoho_item_id=payload.zoho_item_id.strip(),
        category=payload.category,
        unit=payload.unit,
        rate=payload.rate,
        status=payload.status,
    )
    log_audit_event(
        db,
        actor=None,
        action="external_item.create" if created else "external_item.update",
        target_type="external_item",
        target_id=row.id,
        metadata_json={"sku": row.sku, "zoho_item_id": row.zoho_item_id},
    )
    db.commit()
    db.refresh(row)
    return _item_out(row)


@router.post(
    "/items/refresh",
    response_model=SyncSummaryOut,
    summary="Reload external items from the inventory system",
    responses=error_responses(500, 502),
)
def refresh_external_items(
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    summary = ExternalSyncAdapter(db, provider).refresh_items()
    db.commit()
    return SyncSummaryOut(total=summary.total, created=summary.created, updated=summary.updated)
