from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.config import settings
from stockhub.core.deps import get_db, get_inventory_sync_provider, get_ledgers
from stockhub.core.outlets import Outlet, canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.transfer_order import TransferOrder
from stockhub.schemas.common import pagination
from stockhub.schemas.transfer_order import (
    ExternalSyncOut,
    TransferApproveIn,
    TransferOrderCreateIn,
    TransferOrderItemOut,
    TransferOrderListOut,
    TransferOrderOut,
    TransferPushOutcomeOut,
    TransferPushPendingOut,
    TransferRejectIn,
    TransferResultOut,
    TransferStatsOut,
    TransferStatusCountOut,
    TransferStatusUpdateIn,
)
from stockhub.services.external_sync_service import ExternalSyncAdapter
from stockhub.services.inventory_sync_provider import InventorySyncProvider
from stockhub.services.transfer_service import (
    SyncOutcome,
    advance_transfer_order_status,
    approve_transfer_order,
    create_transfer_order,
    get_transfer_order_or_raise,
    list_transfer_items,
    list_transfer_results,
    push_pending_transfer_orders,
    reject_transfer_order,
    sync_transfer_order,
)

router = APIRouter(prefix="/transfer-orders", tags=["transfer-orders"])
transfers_router = APIRouter(prefix="/transfers", tags=["transfer-orders"])


def _transfer_out(db: Session, order: TransferOrder) -> TransferOrderOut:
    return TransferOrderOut(
        id=order.id,
        transfer_number=order.transfer_number,
        from_outlet=order.from_outlet,
        to_outlet=order.to_outlet,
        from_outlet_name=Outlet(order.from_outlet).display_name,
        to_outlet_name=Outlet(order.to_outlet).display_name,
        transfer_date=order.transfer_date,
        priority=order.priority,
        total_amount=float(order.total_amount or 0),
        status=order.status,
        requested_by=order.requested_by,
        approved_by=order.approved_by,
        notes=order.notes,
        approved_at=order.approved_at,
        transfer_started_at=order.transfer_started_at,
        transfer_completed_at=order.transfer_completed_at,
        is_active=order.is_active,
        items=[
            TransferOrderItemOut(
                item_type=item.item_type,
                item_code=item.item_code,
                item_name=item.item_name,
                category=item.category,
                sub_category=item.sub_category,
                unit_of_measure=item.unit_of_measure,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0),
                total_value=float(item.total_value or 0),
                notes=item.notes,
            )
            for item in list_transfer_items(db, order.id)
        ],
        transfer_results=[
            TransferResultOut(
                item_code=result.item_code,
                item_type=result.item_type,
                quantity=result.quantity,
                status=result.status,
                error=result.error,
            )
            for result in list_transfer_results(db, order.id)
        ],
        external_sync=ExternalSyncOut(
            status=order.zoho_sync_status,
            transfer_order_id=order.zoho_transfer_order_id,
            transfer_order_number=order.zoho_transfer_order_number,
            error=order.zoho_sync_error,
            synced_at=order.zoho_synced_at,
        ),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _push_outcome_out(order: TransferOrder, outcome: SyncOutcome) -> TransferPushOutcomeOut:
    return TransferPushOutcomeOut(
        transfer_order_id=order.id,
        transfer_number=order.transfer_number,
        status=outcome.status,
        external_id=outcome.external_id,
        external_number=outcome.external_number,
        skipped_items=outcome.skipped_items,
        error=outcome.error,
    )


@router.post(
    "",
    response_model=TransferOrderOut,
    status_code=201,
    summary="Request a stock transfer",
    responses=error_responses(409, 422, 500),
)
def create_transfer_order_endpoint(
    payload: TransferOrderCreateIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    order = create_transfer_order(db, ledgers, payload, actor=payload.requested_by or settings.default_actor)
    return _transfer_out(db, order)


@router.get(
    "",
    response_model=TransferOrderListOut,
    summary="List transfer orders",
    responses=error_responses(422, 500),
)
def list_transfer_orders(
    status: str | None = Query(default=None, max_length=20),
    outlet: str | None = Query(default=None, description="Matches either side of the transfer"),
    from_outlet: str | None = Query(default=None),
    to_outlet: str | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    conditions = []
    if status:
        conditions.append(TransferOrder.status == status)
    if outlet:
        slug = canonicalize_outlet(outlet).value
        conditions.append(or_(TransferOrder.from_outlet == slug, TransferOrder.to_outlet == slug))
    if from_outlet:
        conditions.append(TransferOrder.from_outlet == canonicalize_outlet(from_outlet).value)
    if to_outlet:
        conditions.append(TransferOrder.to_outlet == canonicalize_outlet(to_outlet).value)
    if not include_inactive:
        conditions.append(TransferOrder.is_active.is_(True))

    total = int(db.execute(select(func.count(TransferOrder.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(TransferOrder)
        .where(*conditions)
        .order_by(TransferOrder.created_at.desc(), TransferOrder.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    items = [_transfer_out(db, row) for row in rows]
    return TransferOrderListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/stats/summary",
    response_model=TransferStatsOut,
    summary="Transfer order counts and amounts per status",
    responses=error_responses(500),
)
def transfer_order_stats(db: Session = Depends(get_db)):
    rows = db.execute(
        select(
            TransferOrder.status,
            func.count(TransferOrder.id),
            func.coalesce(func.sum(TransferOrder.total_amount), 0),
        )
        .group_by(TransferOrder.status)
        .order_by(TransferOrder.status.asc())
    ).all()
    by_status = [
        TransferStatusCountOut(status=status, count=int(count), total_amount=float(amount or 0))
        for status, count, amount in rows
    ]
    return TransferStatsOut(
        total_orders=sum(row.count for row in by_status),
        total_amount=round(sum(row.total_amount for row in by_status), 3),
        by_status=by_status,
    )


@router.post(
    "/push-pending",
    response_model=TransferPushPendingOut,
    summary="Push every approved, unsynced transfer order to the external inventory system",
    responses=error_responses(422, 500),
)
def push_pending_transfer_orders_endpoint(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    outcomes = push_pending_transfer_orders(db, ExternalSyncAdapter(db, provider), limit=limit)
    succeeded = [_push_outcome_out(order, outcome) for order, outcome in outcomes if outcome.status == "pushed"]
    failed = [_push_outcome_out(order, outcome) for order, outcome in outcomes if outcome.status != "pushed"]
    return TransferPushPendingOut(succeeded=succeeded, failed=failed)


@router.get(
    "/{order_ref}",
    response_model=TransferOrderOut,
    summary="Get transfer order by id or transfer number",
    responses=error_responses(404, 500),
)
def get_transfer_order(order_ref: str, db: Session = Depends(get_db)):
    return _transfer_out(db, get_transfer_order_or_raise(db, order_ref))


@router.post(
    "/{order_ref}/approve",
    response_model=TransferOrderOut,
    summary="Approve a transfer order and move the stock",
    responses=error_responses(400, 404, 409, 422, 500),
)
def approve_transfer_order_endpoint(
    order_ref: str,
    payload: TransferApproveIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    order = get_transfer_order_or_raise(db, order_ref)
    order = approve_transfer_order(
        db,
        ledgers,
        order,
        approved_by=payload.approved_by or settings.default_actor,
        notes=payload.notes,
        edited_items=payload.edited_items,
        adapter=ExternalSyncAdapter(db, provider),
    )
    return _transfer_out(db, order)


@router.post(
    "/{order_ref}/reject",
    response_model=TransferOrderOut,
    summary="Reject a pending transfer order",
    responses=error_responses(400, 404, 422, 500),
)
def reject_transfer_order_endpoint(
    order_ref: str,
    payload: TransferRejectIn,
    db: Session = Depends(get_db),
):
    order = get_transfer_order_or_raise(db, order_ref)
    order = reject_transfer_order(
        db,
        order,
        rejected_by=payload.rejected_by or settings.default_actor,
        notes=payload.notes,
    )
    return _transfer_out(db, order)


@router.patch(
    "/{order_ref}/status",
    response_model=TransferOrderOut,
    summary="Advance transfer order status",
    responses=error_responses(400, 404, 422, 500),
)
def update_transfer_order_status(
    order_ref: str,
    payload: TransferStatusUpdateIn,
    db: Session = Depends(get_db),
):
    order = get_transfer_order_or_raise(db, order_ref)
    order = advance_transfer_order_status(
        db,
        order,
        payload.status,
        actor=payload.actor or settings.default_actor,
        notes=payload.notes,
    )
    return _transfer_out(db, order)


@router.post(
    "/{order_ref}/push",
    response_model=TransferPushOutcomeOut,
    summary="Push a transfer order to the external inventory system",
    responses=error_responses(404, 422, 500),
)
def push_transfer_order(
    order_ref: str,
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    order = get_transfer_order_or_raise(db, order_ref)
    outcome = sync_transfer_order(db, order, ExternalSyncAdapter(db, provider))
    return _push_outcome_out(order, outcome)


@transfers_router.post(
    "",
    response_model=TransferOrderOut,
    status_code=201,
    summary="Create and approve a transfer in one call",
    responses=error_responses(404, 409, 422, 500),
)
def direct_transfer(
    payload: TransferOrderCreateIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    actor = payload.requested_by or settings.default_actor
    order = create_transfer_order(db, ledgers, payload, actor=actor)
    order = approve_transfer_order(
        db,
        ledgers,
        order,
        approved_by=actor,
        adapter=ExternalSyncAdapter(db, provider),
    )
    return _transfer_out(db, order)
