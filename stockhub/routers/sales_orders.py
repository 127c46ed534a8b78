from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.config import settings
from stockhub.core.deps import get_db, get_inventory_sync_provider, get_ledgers
from stockhub.core.outlets import canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.sales_order import SalesOrder
from stockhub.schemas.common import pagination
from stockhub.schemas.external_sync import InvoicePushOut
from stockhub.schemas.sales_order import (
    SalesOrderCreateIn,
    SalesOrderItemOut,
    SalesOrderListOut,
    SalesOrderOut,
    SalesOrderStatusUpdateIn,
    SalesOrderSummaryOut,
    SalesOrderZohoOut,
)
from stockhub.services.external_sync_service import ExternalSyncAdapter
from stockhub.services.inventory_sync_provider import InventorySyncProvider
from stockhub.services.sales_fulfillment_service import (
    create_sales_order,
    get_sales_order_or_raise,
    list_sales_order_items,
    push_sales_invoice,
    update_sales_order_status,
)

router = APIRouter(prefix="/sales-orders", tags=["sales-orders"])


def _sales_order_out(db: Session, order: SalesOrder) -> SalesOrderOut:
    return SalesOrderOut(
        id=order.id,
        order_number=order.order_number,
        outlet=order.outlet,
        outlet_code=order.outlet_code,
        outlet_name=order.outlet_name,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        order_type=order.order_type,
        table_number=order.table_number,
        order_items=[
            SalesOrderItemOut(
                line_type=item.line_type,
                product_code=item.product_code,
                product_name=item.product_name,
                bom_code=item.bom_code,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0),
                line_total=float(item.line_total or 0),
            )
            for item in list_sales_order_items(db, order.id)
        ],
        order_summary=SalesOrderSummaryOut(
            subtotal=float(order.subtotal or 0),
            discount_amount=float(order.discount_amount or 0),
            tax_amount=float(order.tax_amount or 0),
            total_amount=float(order.total_amount or 0),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
        ),
        order_status=order.order_status,
        order_date=order.order_date,
        served_at=order.served_at,
        completed_at=order.completed_at,
        consumption=order.consumption_json,
        zoho_integration=SalesOrderZohoOut(
            status=order.zoho_status,
            invoice_id=order.zoho_invoice_id,
            invoice_number=order.zoho_invoice_number,
            error=order.zoho_error,
            pushed_at=order.zoho_pushed_at,
        ),
        notes=order.notes,
        created_by=order.created_by,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


@router.post(
    "",
    response_model=SalesOrderOut,
    status_code=201,
    summary="Create a sales order and consume its stock",
    responses=error_responses(404, 409, 422, 500),
)
def create_sales_order_endpoint(
    payload: SalesOrderCreateIn,
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    order = create_sales_order(db, ledgers, payload, actor=payload.created_by or settings.default_actor)
    return _sales_order_out(db, order)


@router.get(
    "",
    response_model=SalesOrderListOut,
    summary="List sales orders",
    responses=error_responses(422, 500),
)
def list_sales_orders(
    outlet: str | None = Query(default=None),
    order_status: str | None = Query(default=None, max_length=20),
    payment_status: str | None = Query(default=None, max_length=20),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    conditions = []
    if outlet:
        conditions.append(SalesOrder.outlet == canonicalize_outlet(outlet).value)
    if order_status:
        conditions.append(SalesOrder.order_status == order_status)
    if payment_status:
        conditions.append(SalesOrder.payment_status == payment_status)
    if start_date:
        conditions.append(SalesOrder.order_date >= start_date)
    if end_date:
        conditions.append(SalesOrder.order_date <= end_date)

    total = int(db.execute(select(func.count(SalesOrder.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(SalesOrder)
        .where(*conditions)
        .order_by(SalesOrder.order_date.desc(), SalesOrder.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    items = [_sales_order_out(db, row) for row in rows]
    return SalesOrderListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/{order_ref}",
    response_model=SalesOrderOut,
    summary="Get sales order by id or order number",
    responses=error_responses(404, 500),
)
def get_sales_order(order_ref: str, db: Session = Depends(get_db)):
    return _sales_order_out(db, get_sales_order_or_raise(db, order_ref))


@router.patch(
    "/{order_ref}/status",
    response_model=SalesOrderOut,
    summary="Update sales order status",
    responses=error_responses(400, 404, 422, 500),
)
def update_sales_order_status_endpoint(
    order_ref: str,
    payload: SalesOrderStatusUpdateIn,
    db: Session = Depends(get_db),
):
    order = get_sales_order_or_raise(db, order_ref)
    order = update_sales_order_status(db, order, payload.order_status, actor=payload.actor or settings.default_actor)
    return _sales_order_out(db, order)


@router.post(
    "/{order_ref}/push-invoice",
    response_model=InvoicePushOut,
    summary="Push the sales order as an invoice to the external inventory system",
    responses=error_responses(404, 422, 424, 500, 502),
)
def push_sales_order_invoice(
    order_ref: str,
    db: Session = Depends(get_db),
    provider: InventorySyncProvider = Depends(get_inventory_sync_provider),
):
    order = get_sales_order_or_raise(db, order_ref)
    order = push_sales_invoice(db, order, ExternalSyncAdapter(db, provider))
    return InvoicePushOut(
        sales_order_id=order.id,
        status=order.zoho_status,
        invoice_id=order.zoho_invoice_id,
        invoice_number=order.zoho_invoice_number,
        error=order.zoho_error,
    )
