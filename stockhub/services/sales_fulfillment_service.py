"""Sales fulfillment: validate every line, then decrement, then record the order.

Direct lines consume finished goods. Recipe lines are expanded through the BOM
resolver against the selling outlet's finished-goods ledger, so a component
that is stocked there as a finished good is consumed as one. All demand is
validated before the first decrement; the decrements run in one transaction on
the outlet database.
"""

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from stockhub.core.errors import (
    BomNotFound,
    CircularBomReference,
    InvalidStatusTransition,
    MissingItemMapping,
    NotFound,
    RemoteApiError,
    StockValidationError,
    ValidationError,
)
from stockhub.core.id_utils import new_id
from stockhub.core.money import ZERO_MONEY, line_total, to_money
from stockhub.core.outlets import canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.sales_order import SalesOrder, SalesOrderItem
from stockhub.models.stock_item import StockKind
from stockhub.schemas.sales_order import SalesOrderCreateIn, SalesRecipeLineIn
from stockhub.services.audit_service import log_audit_event
from stockhub.services.bom_resolver import BomDemand, BomResolver
from stockhub.services.bom_service import bom_lookup, get_bom, normalize_bom_code
from stockhub.services.external_sync_service import ExternalSyncAdapter
from stockhub.services.ledger_service import OutletStore, open_outlet_store
from stockhub.services.numbering import generate_order_number, persist_with_generated_key

logger = logging.getLogger("stockhub.sales")

ALLOWED_ORDER_TRANSITIONS: dict[str, set[str]] = {
    "Pending": {"Preparing", "Ready", "Served", "Completed", "Cancelled"},
    "Preparing": {"Ready", "Served", "Completed", "Cancelled"},
    "Ready": {"Served", "Completed", "Cancelled"},
    "Served": {"Completed"},
    "Completed": set(),
    "Cancelled": set(),
}


def _resolve_recipes(
    db: Session,
    store: OutletStore,
    recipe_items: Sequence[SalesRecipeLineIn],
) -> tuple[BomDemand, list[dict[str, Any]]]:
    resolver = BomResolver(bom_lookup(db), is_finished_good=store.finished_goods.exists)
    demand = BomDemand()
    failures: list[dict[str, Any]] = []
    for line in recipe_items:
        bom_code = normalize_bom_code(line.bom_code)
        try:
            demand.merge(resolver.resolve(bom_code, line.quantity))
        except (BomNotFound, CircularBomReference, ValidationError) as exc:
            failures.append(
                {
                    "line_type": "recipe",
                    "bom_code": bom_code,
                    "reason": exc.error_code,
                    "message": exc.message,
                }
            )
    return demand, failures


def _validate_demand(
    store: OutletStore,
    raw_materials: dict[str, float],
    finished_goods: dict[str, float],
) -> list[dict[str, Any]]:
    failures = []
    for kind, demand in ((StockKind.RAW_MATERIAL, raw_materials), (StockKind.FINISHED_GOOD, finished_goods)):
        for shortfall in store.ledger(kind).validate_availability(demand):
            failures.append({"item_type": kind.value, **shortfall.as_detail()})
    return failures


def _apply_consumption(store: OutletStore, consumption: dict[str, dict[str, float]], actor: str) -> None:
    try:
        for code, qty in consumption["raw_materials"].items():
            store.raw_materials.decrement(code, qty, actor=actor)
        for code, qty in consumption["finished_goods"].items():
            store.finished_goods.decrement(code, qty, actor=actor)
        store.commit()
    except Exception:
        store.rollback()
        raise


def _restore_consumption(store: OutletStore, consumption: dict[str, dict[str, float]], actor: str) -> None:
    try:
        for code, qty in consumption["raw_materials"].items():
            store.raw_materials.increment(code, qty, actor=actor)
        for code, qty in consumption["finished_goods"].items():
            store.finished_goods.increment(code, qty, actor=actor)
        store.commit()
    except Exception as exc:
        store.rollback()
        logger.error(
            json.dumps(
                {
                    "event": "sales.consumption_restore_failed",
                    "outlet": store.outlet.value,
                    "consumption": consumption,
                    "error": str(exc),
                }
            )
        )
        return
    logger.warning(json.dumps({"event": "sales.consumption_restored", "outlet": store.outlet.value}))


def create_sales_order(
    db: Session,
    ledgers: LedgerRegistry,
    payload: SalesOrderCreateIn,
    *,
    actor: str,
) -> SalesOrder:
    outlet = canonicalize_outlet(payload.outlet)

    direct_demand: dict[str, float] = {}
    for line in payload.order_items:
        code = line.product_code.strip()
        direct_demand[code] = direct_demand.get(code, 0.0) + line.quantity

    with open_outlet_store(ledgers, outlet) as store:
        bom_demand, failures = _resolve_recipes(db, store, payload.recipe_items)
        finished_demand = dict(direct_demand)
        for code, qty in bom_demand.finished_goods.items():
            finished_demand[code] = finished_demand.get(code, 0.0) + qty
        failures.extend(_validate_demand(store, bom_demand.raw_materials, finished_demand))
        if failures:
            logger.info(
                json.dumps(
                    {
                        "event": "sales.order_rejected",
                        "outlet": outlet.value,
                        "failures": len(failures),
                    }
                )
            )
            raise StockValidationError(
                f"Sales order cannot be fulfilled from {outlet.display_name}: {len(failures)} line(s) failed",
                details=failures,
            )

        order = SalesOrder(
            id=new_id(),
            outlet=outlet.value,
            outlet_code=outlet.code,
            outlet_name=outlet.display_name,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            order_type=payload.order_type,
            table_number=payload.table_number,
            payment_method=payload.payment_method,
            payment_status=payload.payment_status,
            order_status="Pending",
            order_date=datetime.now(timezone.utc),
            zoho_status="none",
            notes=payload.notes,
            created_by=payload.created_by or actor,
            updated_by=payload.created_by or actor,
        )

        items: list[SalesOrderItem] = []
        subtotal = ZERO_MONEY
        for line in payload.order_items:
            code = line.product_code.strip()
            stocked = store.finished_goods.get(code)
            unit_price = line.unit_price if line.unit_price is not None else stocked.unit_price
            total = line_total(line.quantity, unit_price)
            subtotal += total
            items.append(
                SalesOrderItem(
                    id=new_id(),
                    sales_order_id=order.id,
                    line_type="direct",
                    product_code=code,
                    product_name=line.product_name or stocked.name,
                    quantity=line.quantity,
                    unit_price=to_money(unit_price),
                    line_total=total,
                )
            )
        for line in payload.recipe_items:
            bom = get_bom(db, line.bom_code)
            total = line_total(line.quantity, line.unit_price)
            subtotal += total
            items.append(
                SalesOrderItem(
                    id=new_id(),
                    sales_order_id=order.id,
                    line_type="recipe",
                    product_code=bom.bom_code,
                    product_name=line.product_name or bom.product_name,
                    bom_code=bom.bom_code,
                    quantity=line.quantity,
                    unit_price=to_money(line.unit_price),
                    line_total=total,
                )
            )

        discount = to_money(payload.discount_amount)
        if discount > subtotal:
            raise ValidationError("Discount cannot exceed the order subtotal")
        order.subtotal = to_money(subtotal)
        order.discount_amount = discount
        order.tax_amount = to_money(payload.tax_amount)
        order.total_amount = to_money(subtotal - discount + order.tax_amount)

        consumption = {"raw_materials": bom_demand.raw_materials, "finished_goods": finished_demand}
        order.consumption_json = consumption

        persist_with_generated_key(
            db,
            order,
            key_attr="order_number",
            generate_key=lambda attempt: generate_order_number(outlet),
            related=items,
        )
        log_audit_event(
            db,
            actor=order.created_by,
            action="sales_order.create",
            target_type="sales_order",
            target_id=order.id,
            metadata_json={"order_number": order.order_number, "outlet": outlet.value},
        )

        try:
            _apply_consumption(store, consumption, order.created_by)
        except Exception:
            db.rollback()
            raise

        try:
            db.commit()
        except Exception:
            db.rollback()
            _restore_consumption(store, consumption, order.created_by)
            raise

    logger.info(
        json.dumps(
            {
                "event": "sales.order_fulfilled",
                "order_number": order.order_number,
                "outlet": outlet.value,
                "raw_materials": len(consumption["raw_materials"]),
                "finished_goods": len(consumption["finished_goods"]),
            }
        )
    )
    db.refresh(order)
    return order


def get_sales_order_or_raise(db: Session, order_ref: str) -> SalesOrder:
    order = db.execute(
        select(SalesOrder).where(or_(SalesOrder.id == order_ref, SalesOrder.order_number == order_ref))
    ).scalar_one_or_none()
    if order is None:
        raise NotFound(f"Sales order '{order_ref}' not found")
    return order


def list_sales_order_items(db: Session, order_id: str) -> list[SalesOrderItem]:
    lines = db.execute(select(SalesOrderItem).where(SalesOrderItem.sales_order_id == order_id)).scalars().all()
    return sorted(lines, key=lambda line: (line.line_type != "direct", line.product_code))


def update_sales_order_status(db: Session, order: SalesOrder, next_status: str, *, actor: str) -> SalesOrder:
    if next_status not in ALLOWED_ORDER_TRANSITIONS.get(order.order_status, set()):
        raise InvalidStatusTransition("sales order", order.order_status, next_status)

    now = datetime.now(timezone.utc)
    previous_status = order.order_status
    if next_status == "Served":
        order.served_at = now
    elif next_status == "Completed":
        order.completed_at = now
        if order.served_at is None:
            order.served_at = now
    order.order_status = next_status
    order.updated_by = actor
    log_audit_event(
        db,
        actor=actor,
        action="sales_order.status_update",
        target_type="sales_order",
        target_id=order.id,
        metadata_json={"from": previous_status, "to": next_status},
    )
    db.commit()
    db.refresh(order)
    return order


def push_sales_invoice(db: Session, order: SalesOrder, adapter: ExternalSyncAdapter) -> SalesOrder:
    """Create the external invoice and mark it sent; failures are recorded, then raised."""
    if order.zoho_status == "pushed":
        return order
    if order.order_status == "Cancelled":
        raise ValidationError("Cancelled sales orders cannot be invoiced")

    try:
        result = adapter.push_invoice(order, list_sales_order_items(db, order.id))
    except (RemoteApiError, MissingItemMapping, ValidationError) as exc:
        order.zoho_status = "failed"
        order.zoho_error = exc.message
        db.commit()
        logger.warning(
            json.dumps(
                {
                    "event": "external_sync.invoice_failed",
                    "order_number": order.order_number,
                    "code": exc.error_code,
                    "error": exc.message,
                }
            )
        )
        raise

    order.zoho_status = "pushed"
    order.zoho_invoice_id = result.external_id
    order.zoho_invoice_number = result.external_number
    order.zoho_pushed_at = datetime.now(timezone.utc)
    order.zoho_error = None
    try:
        adapter.mark_invoice_sent(result.external_id)
    except RemoteApiError as exc:
        order.zoho_error = f"Invoice created but not marked as sent: {exc.message}"
    if result.skipped_items:
        skipped = ", ".join(result.skipped_items)
        order.zoho_error = _join_errors(order.zoho_error, f"Skipped unmapped items: {skipped}")
    db.commit()
    db.refresh(order)
    return order


def _join_errors(existing: str | None, message: str) -> str:
    return f"{existing}; {message}" if existing else message
