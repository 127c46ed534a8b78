from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.config import settings
from stockhub.core.deps import get_db, get_ledgers
from stockhub.core.errors import NotFound, StockHubError, UniquenessConflict
from stockhub.core.outlets import Outlet, canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.stock_item import StockItem, StockKind
from stockhub.schemas.common import BulkResultOut, ItemFailureOut, pagination
from stockhub.schemas.outlet import OutletListOut, OutletOut
from stockhub.schemas.stock_item import (
    StockAdjustIn,
    StockCategoriesOut,
    StockImportIn,
    StockItemCreateIn,
    StockItemListOut,
    StockItemOut,
    StockItemUpdateIn,
    StockLowStockOut,
)
from stockhub.services.audit_service import log_audit_event
from stockhub.services.ledger_service import DESCRIPTIVE_FIELDS, OutletLedger, StockQuery, open_outlet_store
from stockhub.services.stock_status import status_policy_for

router = APIRouter(prefix="/outlets", tags=["outlets"])


def _kind_or_404(kind: str) -> StockKind:
    try:
        return StockKind.from_path_segment(kind)
    except ValueError:
        raise NotFound(f"Unknown stock kind '{kind}'. Use raw-materials or finished-goods") from None


def _outlet_out(outlet: Outlet) -> OutletOut:
    profile = outlet.profile
    return OutletOut(
        slug=outlet.value,
        code=profile.code,
        name=profile.display_name,
        outlet_type=profile.outlet_type,
        location=profile.location,
        status_vocabulary=list(status_policy_for(outlet).statuses),
    )


def _stock_item_out(ledger: OutletLedger, item: StockItem) -> StockItemOut:
    return StockItemOut(
        id=item.id,
        outlet=ledger.outlet.value,
        item_type=ledger.kind.value,
        code=item.code,
        name=item.name,
        category=item.category,
        sub_category=item.sub_category,
        unit_of_measure=item.unit_of_measure,
        unit_price=float(item.unit_price or 0),
        current_stock=item.current_stock,
        minimum_stock=item.minimum_stock,
        maximum_stock=item.maximum_stock,
        reorder_point=item.reorder_point,
        status=item.status,
        is_active=item.is_active,
        notes=item.notes,
        created_by=item.created_by,
        updated_by=item.updated_by,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _stock_audit(db: Session, *, actor: str | None, action: str, ledger: OutletLedger, item: StockItem, **extra) -> None:
    log_audit_event(
        db,
        actor=actor,
        action=action,
        target_type=ledger.kind.value,
        target_id=item.id,
        metadata_json={"outlet": ledger.outlet.value, "code": item.code, **extra},
    )
    db.commit()


@router.get(
    "",
    response_model=OutletListOut,
    summary="List outlets",
)
def list_outlets():
    return OutletListOut(items=[_outlet_out(outlet) for outlet in Outlet])


@router.get(
    "/{outlet}/{kind}",
    response_model=StockItemListOut,
    summary="List stock items in an outlet",
    responses=error_responses(404, 422, 500),
)
def list_stock_items(
    outlet: str,
    kind: str,
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=120),
    status: str | None = Query(default=None, max_length=20),
    include_inactive: bool = Query(default=False),
    sort_by: str = Query(default="code"),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        rows, total = ledger.paginated_query(
            StockQuery(search=search, category=category, status=status, include_inactive=include_inactive),
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
        items = [_stock_item_out(ledger, row) for row in rows]
    return StockItemListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/{outlet}/{kind}/categories",
    response_model=StockCategoriesOut,
    summary="List stock categories in an outlet",
    responses=error_responses(404, 422, 500),
)
def list_stock_categories(
    outlet: str,
    kind: str,
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        return StockCategoriesOut(items=store.ledger(stock_kind).distinct_categories())


@router.get(
    "/{outlet}/{kind}/low-stock",
    response_model=StockLowStockOut,
    summary="List items at or below their reorder point",
    responses=error_responses(404, 422, 500),
)
def list_low_stock(
    outlet: str,
    kind: str,
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        return StockLowStockOut(items=[_stock_item_out(ledger, item) for item in ledger.find_low_stock()])


@router.get(
    "/{outlet}/{kind}/{code}",
    response_model=StockItemOut,
    summary="Get stock item by code",
    responses=error_responses(404, 422, 500),
)
def get_stock_item(
    outlet: str,
    kind: str,
    code: str,
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        return _stock_item_out(ledger, ledger.find_by_code(code))


@router.post(
    "/{outlet}/{kind}",
    response_model=StockItemOut,
    status_code=201,
    summary="Create stock item",
    responses=error_responses(404, 409, 422, 500),
)
def create_stock_item(
    outlet: str,
    kind: str,
    payload: StockItemCreateIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    actor = payload.actor or settings.default_actor
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        item = ledger.create(payload.model_dump(exclude={"actor"}), actor=actor)
        store.commit()
        item = ledger.find_by_code(item.code)
        _stock_audit(db, actor=actor, action=f"{stock_kind.value}.create", ledger=ledger, item=item)
        return _stock_item_out(ledger, item)


@router.post(
    "/{outlet}/{kind}/import",
    response_model=BulkResultOut,
    summary="Bulk create or upsert stock items",
    responses=error_responses(404, 422, 500),
)
def import_stock_items(
    outlet: str,
    kind: str,
    payload: StockImportIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    target = canonicalize_outlet(outlet)
    actor = payload.actor or settings.default_actor
    succeeded: list[str] = []
    failed: list[ItemFailureOut] = []
    with open_outlet_store(ledgers, target) as store:
        ledger = store.ledger(stock_kind)
        for row in payload.items:
            fields = {key: value for key, value in row.model_dump(exclude={"actor"}).items() if value is not None}
            try:
                if payload.mode == "upsert" and ledger.exists(row.code):
                    # Existing rows take the supplied non-null details; current_stock is received on top.
                    changes = {key: fields[key] for key in row.model_fields_set & fields.keys() if key in DESCRIPTIVE_FIELDS}
                    if changes:
                        ledger.update_details(row.code, changes, actor=actor)
                    if row.current_stock:
                        ledger.increment(row.code, row.current_stock, actor=actor)
                else:
                    ledger.create(fields, actor=actor)
                store.commit()
            except StockHubError as exc:
                store.rollback()
                failed.append(ItemFailureOut(key=row.code, error_code=exc.error_code, message=exc.message))
                continue
            except IntegrityError:
                store.rollback()
                failed.append(
                    ItemFailureOut(
                        key=row.code,
                        error_code=UniquenessConflict.error_code,
                        message=f"Row '{row.code}' violates a database constraint",
                    )
                )
                continue
            succeeded.append(row.code)

    log_audit_event(
        db,
        actor=actor,
        action=f"{stock_kind.value}.import",
        target_type=stock_kind.value,
        metadata_json={"outlet": target.value, "succeeded": len(succeeded), "failed": len(failed)},
    )
    db.commit()
    return BulkResultOut(succeeded=succeeded, failed=failed)


@router.patch(
    "/{outlet}/{kind}/{code}",
    response_model=StockItemOut,
    summary="Update stock item details",
    responses=error_responses(404, 422, 500),
)
def update_stock_item(
    outlet: str,
    kind: str,
    code: str,
    payload: StockItemUpdateIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    actor = payload.actor or settings.default_actor
    changes = payload.model_dump(include=payload.model_fields_set - {"actor"})
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        ledger.update_details(code, changes, actor=actor)
        store.commit()
        item = ledger.find_by_code(code)
        _stock_audit(db, actor=actor, action=f"{stock_kind.value}.update", ledger=ledger, item=item, fields=sorted(changes))
        return _stock_item_out(ledger, item)


@router.post(
    "/{outlet}/{kind}/{code}/adjust",
    response_model=StockItemOut,
    summary="Adjust stock quantity",
    responses=error_responses(404, 409, 422, 500),
)
def adjust_stock(
    outlet: str,
    kind: str,
    code: str,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    actor = payload.actor or settings.default_actor
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        if payload.qty_delta > 0:
            ledger.increment(code, payload.qty_delta, actor=actor)
        else:
            ledger.decrement(code, -payload.qty_delta, actor=actor)
        store.commit()
        item = ledger.find_by_code(code)
        _stock_audit(
            db,
            actor=actor,
            action=f"{stock_kind.value}.adjust",
            ledger=ledger,
            item=item,
            qty_delta=payload.qty_delta,
            reason=payload.reason,
        )
        return _stock_item_out(ledger, item)


@router.delete(
    "/{outlet}/{kind}/{code}",
    response_model=StockItemOut,
    summary="Deactivate stock item",
    responses=error_responses(404, 422, 500),
)
def delete_stock_item(
    outlet: str,
    kind: str,
    code: str,
    actor: str | None = Query(default=None, max_length=120),
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    stock_kind = _kind_or_404(kind)
    actor = actor or settings.default_actor
    with open_outlet_store(ledgers, canonicalize_outlet(outlet)) as store:
        ledger = store.ledger(stock_kind)
        ledger.soft_delete(code, actor=actor)
        store.commit()
        item = ledger.find_by_code(code)
        _stock_audit(db, actor=actor, action=f"{stock_kind.value}.delete", ledger=ledger, item=item)
        return _stock_item_out(ledger, item)
