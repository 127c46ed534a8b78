"""Stock transfer coordinator.

Approval is fail-fast: every line is checked against the source ledger before
anything moves. When all lines pass, the source decrements run in one source
transaction and the destination upserts in one destination transaction. The
two outlet databases never share a transaction; if the destination step fails
after the source commit, the source is re-incremented and the caller receives
``PartialTransferFailure`` telling whether that compensation succeeded.
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from stockhub.core.config import settings
from stockhub.core.errors import (
    InsufficientStock,
    InvalidStatusTransition,
    ItemNotFoundInSource,
    MissingItemMapping,
    MissingLocationMapping,
    NotFound,
    PartialTransferFailure,
    RemoteApiError,
    StockHubError,
    ValidationError,
)
from stockhub.core.id_utils import new_id
from stockhub.core.money import ZERO_MONEY, line_total, to_money
from stockhub.core.outlets import Outlet, canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.stock_item import StockKind
from stockhub.models.transfer_order import TransferOrder, TransferOrderItem, TransferResult
from stockhub.schemas.transfer_order import TransferEditedItemIn, TransferOrderCreateIn
from stockhub.services.audit_service import log_audit_event
from stockhub.services.external_sync_service import ExternalSyncAdapter
from stockhub.services.ledger_service import OutletStore, copy_descriptive_fields, open_outlet_store
from stockhub.services.notification_service import (
    TransferNotice,
    notify_transfer_completed,
    notify_transfer_rejected,
    notify_transfer_requested,
    session_factory_for,
)
from stockhub.services.numbering import generate_transfer_number, persist_with_generated_key

logger = logging.getLogger("stockhub.transfers")

ALLOWED_TRANSFER_TRANSITIONS: dict[str, set[str]] = {
    "Pending": {"Approved", "Rejected", "Cancelled", "Failed"},
    "Approved": {"In Transit", "Completed"},
    "In Transit": {"Completed"},
    "Rejected": set(),
    "Completed": set(),
    "Cancelled": set(),
    "Failed": set(),
}
PUSHABLE_STATUSES = ("Approved", "In Transit", "Completed")


def ensure_transition_allowed(current_status: str, next_status: str) -> None:
    if next_status not in ALLOWED_TRANSFER_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransition("transfer order", current_status, next_status)


@dataclass(frozen=True)
class TransferLine:
    item_type: StockKind
    code: str
    quantity: float


@dataclass
class TransferLineResult:
    item_code: str
    item_type: str
    quantity: float
    status: str
    error: str | None = None
    created_in_destination: bool = False

    def as_detail(self) -> dict[str, Any]:
        return asdict(self)


def _line_results(
    lines: Sequence[TransferLine],
    failures: dict[tuple[StockKind, str], StockHubError],
) -> list[TransferLineResult]:
    results = []
    for line in lines:
        failure = failures.get((line.item_type, line.code))
        results.append(
            TransferLineResult(
                item_code=line.code,
                item_type=line.item_type.value,
                quantity=line.quantity,
                status="failed" if failure else "not_applied",
                error=failure.message if failure else None,
            )
        )
    return results


def _prevalidate(source: OutletStore, lines: Sequence[TransferLine]) -> None:
    demand: dict[StockKind, dict[str, float]] = {}
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError(f"Transfer quantity for '{line.code}' must be greater than zero")
        per_kind = demand.setdefault(line.item_type, {})
        per_kind[line.code] = per_kind.get(line.code, 0.0) + line.quantity

    failures: dict[tuple[StockKind, str], StockHubError] = {}
    for kind, codes in demand.items():
        for shortfall in source.ledger(kind).validate_availability(codes):
            if shortfall.available is None:
                failures[(kind, shortfall.code)] = ItemNotFoundInSource(shortfall.code, source.outlet.display_name)
            else:
                failures[(kind, shortfall.code)] = InsufficientStock(
                    shortfall.code,
                    requested=shortfall.requested,
                    available=shortfall.available,
                )
    if not failures:
        return

    details = [result.as_detail() for result in _line_results(lines, failures)]
    first = next(failures[(line.item_type, line.code)] for line in lines if (line.item_type, line.code) in failures)
    first.details = details
    raise first


def _compensate_source(source: OutletStore, lines: Sequence[TransferLine], actor: str | None) -> bool:
    try:
        for line in lines:
            source.ledger(line.item_type).increment(line.code, line.quantity, actor=actor)
        source.commit()
    except Exception as exc:
        source.rollback()
        logger.error(
            json.dumps(
                {
                    "event": "stock.transfer.compensation_failed",
                    "outlet": source.outlet.value,
                    "items": [line.code for line in lines],
                    "error": str(exc),
                }
            )
        )
        return False
    logger.warning(
        json.dumps(
            {
                "event": "stock.transfer.compensated",
                "outlet": source.outlet.value,
                "items": [line.code for line in lines],
            }
        )
    )
    return True


def transfer_items(
    source: OutletStore,
    destination: OutletStore,
    lines: Sequence[TransferLine],
    *,
    actor: str | None = None,
) -> list[TransferLineResult]:
    """Move every line from ``source`` to ``destination`` or nothing at all."""
    if source.outlet is destination.outlet:
        raise ValidationError("Source and destination outlets must be different")
    if not lines:
        raise ValidationError("A transfer needs at least one line")

    _prevalidate(source, lines)

    snapshots: dict[tuple[StockKind, str], dict[str, Any]] = {}
    try:
        for line in lines:
            item = source.ledger(line.item_type).decrement(line.code, line.quantity, actor=actor)
            snapshots[(line.item_type, line.code)] = copy_descriptive_fields(item)
        source.commit()
    except Exception:
        source.rollback()
        raise

    results: list[TransferLineResult] = []
    try:
        for line in lines:
            _, created = destination.ledger(line.item_type).upsert_increment(
                line.code,
                line.quantity,
                snapshots[(line.item_type, line.code)],
                actor=actor,
            )
            results.append(
                TransferLineResult(
                    item_code=line.code,
                    item_type=line.item_type.value,
                    quantity=line.quantity,
                    status="success",
                    created_in_destination=created,
                )
            )
        destination.commit()
    except Exception as exc:
        destination.rollback()
        compensated = _compensate_source(source, lines, actor)
        logger.error(
            json.dumps(
                {
                    "event": "stock.transfer.destination_failed",
                    "from_outlet": source.outlet.value,
                    "to_outlet": destination.outlet.value,
                    "compensated": compensated,
                    "error": str(exc),
                }
            )
        )
        restored = "restored" if compensated else "NOT restored; manual reconciliation required"
        raise PartialTransferFailure(
            f"Destination update failed after source stock was decremented; source stock {restored}",
            compensated=compensated,
            details=[
                TransferLineResult(
                    item_code=line.code,
                    item_type=line.item_type.value,
                    quantity=line.quantity,
                    status="failed",
                    error=str(exc),
                ).as_detail()
                for line in lines
            ],
        ) from exc

    logger.info(
        json.dumps(
            {
                "event": "stock.transfer.applied",
                "from_outlet": source.outlet.value,
                "to_outlet": destination.outlet.value,
                "lines": [{"code": line.code, "type": line.item_type.value, "qty": line.quantity} for line in lines],
            }
        )
    )
    return results


def transfer_item(
    source: OutletStore,
    destination: OutletStore,
    code: str,
    qty: float,
    item_type: StockKind,
    *,
    actor: str | None = None,
) -> TransferLineResult:
    return transfer_items(source, destination, [TransferLine(item_type, code, qty)], actor=actor)[0]


def get_transfer_order_or_raise(db: Session, order_ref: str) -> TransferOrder:
    order = db.execute(
        select(TransferOrder).where(
            or_(TransferOrder.id == order_ref, TransferOrder.transfer_number == order_ref)
        )
    ).scalar_one_or_none()
    if order is None:
        raise NotFound(f"Transfer order '{order_ref}' not found")
    return order


def list_transfer_items(db: Session, order_id: str) -> list[TransferOrderItem]:
    return list(
        db.execute(
            select(TransferOrderItem)
            .where(TransferOrderItem.transfer_order_id == order_id)
            .order_by(TransferOrderItem.line_no.asc())
        ).scalars().all()
    )


def list_transfer_results(db: Session, order_id: str) -> list[TransferResult]:
    return list(
        db.execute(
            select(TransferResult)
            .where(TransferResult.transfer_order_id == order_id)
            .order_by(TransferResult.created_at.asc(), TransferResult.id.asc())
        ).scalars().all()
    )


def _record_results(db: Session, order: TransferOrder, details: Sequence[dict[str, Any]]) -> None:
    db.execute(delete(TransferResult).where(TransferResult.transfer_order_id == order.id))
    for detail in details:
        db.add(
            TransferResult(
                id=new_id(),
                transfer_order_id=order.id,
                item_code=detail["item_code"],
                item_type=detail["item_type"],
                quantity=detail["quantity"],
                status=detail["status"],
                error=detail.get("error"),
            )
        )


def _append_note(existing: str | None, note: str | None) -> str | None:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


def _claim_transition(db: Session, order: TransferOrder, next_status: str, **values: Any) -> str:
    """Move the stored order to ``next_status`` only if it still holds the status this session read.

    Two callers acting on the same order race on this UPDATE; the loser gets
    ``InvalidStatusTransition`` carrying the status the winner wrote.
    """
    previous_status = order.status
    ensure_transition_allowed(previous_status, next_status)
    claimed = db.execute(
        update(TransferOrder)
        .where(TransferOrder.id == order.id, TransferOrder.status == previous_status)
        .values(status=next_status, **values)
    ).rowcount
    if claimed != 1:
        db.rollback()
        db.refresh(order)
        logger.warning(
            json.dumps(
                {
                    "event": "transfer_order.transition_lost",
                    "transfer_order_id": order.id,
                    "status": order.status,
                    "requested": next_status,
                }
            )
        )
        raise InvalidStatusTransition("transfer order", order.status, next_status)
    return previous_status


def _release_claim(db: Session, order: TransferOrder) -> None:
    order.status = "Pending"
    order.approved_by = None
    order.approved_at = None


def create_transfer_order(
    db: Session,
    ledgers: LedgerRegistry,
    payload: TransferOrderCreateIn,
    *,
    actor: str,
) -> TransferOrder:
    from_outlet = canonicalize_outlet(payload.from_outlet)
    to_outlet = canonicalize_outlet(payload.to_outlet)
    if from_outlet is to_outlet:
        raise ValidationError("Source and destination outlets must be different")

    order = TransferOrder(
        id=new_id(),
        from_outlet=from_outlet.value,
        to_outlet=to_outlet.value,
        transfer_date=payload.transfer_date or datetime.now(timezone.utc),
        priority=payload.priority,
        status="Pending",
        requested_by=payload.requested_by or actor,
        notes=payload.notes,
        zoho_sync_status="none",
        is_active=True,
    )

    items: list[TransferOrderItem] = []
    total_amount = ZERO_MONEY
    with open_outlet_store(ledgers, from_outlet) as source:
        for line_no, line in enumerate(payload.items, start=1):
            kind = StockKind(line.item_type)
            stocked = source.ledger(kind).get(line.item_code.strip())
            unit_price = line.unit_price if line.unit_price is not None else (stocked.unit_price if stocked else 0)
            value = line_total(line.quantity, unit_price)
            total_amount += value
            items.append(
                TransferOrderItem(
                    id=new_id(),
                    transfer_order_id=order.id,
                    line_no=line_no,
                    item_type=kind.value,
                    item_code=line.item_code.strip(),
                    item_name=line.item_name or (stocked.name if stocked else line.item_code.strip()),
                    category=stocked.category if stocked else None,
                    sub_category=stocked.sub_category if stocked else None,
                    unit_of_measure=stocked.unit_of_measure if stocked else None,
                    quantity=line.quantity,
                    unit_price=to_money(unit_price),
                    total_value=value,
                    notes=line.notes,
                )
            )
    order.total_amount = to_money(total_amount)

    persist_with_generated_key(
        db,
        order,
        key_attr="transfer_number",
        generate_key=generate_transfer_number,
        related=items,
    )
    log_audit_event(
        db,
        actor=actor,
        action="transfer_order.create",
        target_type="transfer_order",
        target_id=order.id,
        metadata_json={
            "transfer_number": order.transfer_number,
            "from_outlet": order.from_outlet,
            "to_outlet": order.to_outlet,
            "items": len(items),
        },
    )
    notice = TransferNotice.of(order)
    db.commit()
    notify_transfer_requested(session_factory_for(db), notice)
    db.refresh(order)
    return order


def _effective_quantities(
    items: Sequence[TransferOrderItem],
    edited_items: Sequence[TransferEditedItemIn] | None,
) -> list[tuple[TransferOrderItem, float]]:
    if not edited_items:
        return [(item, item.quantity) for item in items]

    remaining = list(edited_items)
    effective = []
    for item in items:
        match = next(
            (
                edit
                for edit in remaining
                if edit.item_code == item.item_code and (edit.item_type is None or edit.item_type == item.item_type)
            ),
            None,
        )
        if match is None:
            effective.append((item, item.quantity))
            continue
        remaining.remove(match)
        if match.quantity > 0:
            effective.append((item, match.quantity))

    if remaining:
        unknown = ", ".join(edit.item_code for edit in remaining)
        raise ValidationError(f"Edited items are not part of this transfer order: {unknown}")
    if not effective:
        raise ValidationError("Every line was edited to zero; reject the transfer order instead")
    return effective


def approve_transfer_order(
    db: Session,
    ledgers: LedgerRegistry,
    order: TransferOrder,
    *,
    approved_by: str,
    notes: str | None = None,
    edited_items: Sequence[TransferEditedItemIn] | None = None,
    adapter: ExternalSyncAdapter | None = None,
) -> TransferOrder:
    ensure_transition_allowed(order.status, "Approved")
    items = list_transfer_items(db, order.id)
    effective = _effective_quantities(items, edited_items)
    lines = [TransferLine(StockKind(item.item_type), item.item_code, qty) for item, qty in effective]
    # The claim is committed before stock moves so a concurrent approval cannot pass it.
    _claim_transition(db, order, "Approved", approved_by=approved_by, approved_at=datetime.now(timezone.utc))
    db.commit()

    try:
        with open_outlet_store(ledgers, Outlet(order.from_outlet)) as source, open_outlet_store(
            ledgers, Outlet(order.to_outlet)
        ) as destination:
            results = transfer_items(source, destination, lines, actor=approved_by)
    except PartialTransferFailure as exc:
        order.status = "Failed"
        order.notes = _append_note(order.notes, exc.message)
        _record_results(db, order, exc.details or [])
        log_audit_event(
            db,
            actor=approved_by,
            action="transfer_order.failed",
            target_type="transfer_order",
            target_id=order.id,
            metadata_json={"compensated": exc.compensated, "error": exc.message},
        )
        db.commit()
        raise
    except (ItemNotFoundInSource, InsufficientStock) as exc:
        failed = {(line.item_type, line.code): exc for line in lines if line.code == exc.item_code}
        details = exc.details or [result.as_detail() for result in _line_results(lines, failed)]
        _release_claim(db, order)
        _record_results(db, order, details)
        db.commit()
        raise
    except Exception:
        db.rollback()
        _release_claim(db, order)
        db.commit()
        raise

    kept = {item.id for item, _ in effective}
    total_amount = ZERO_MONEY
    for item in items:
        if item.id not in kept:
            db.delete(item)
    for item, qty in effective:
        if qty != item.quantity:
            item.quantity = qty
            item.total_value = line_total(qty, item.unit_price)
        total_amount += to_money(item.total_value)

    order.total_amount = to_money(total_amount)
    order.notes = _append_note(order.notes, notes)
    _record_results(db, order, [result.as_detail() for result in results])
    log_audit_event(
        db,
        actor=approved_by,
        action="transfer_order.approve",
        target_type="transfer_order",
        target_id=order.id,
        metadata_json={
            "transfer_number": order.transfer_number,
            "created_in_destination": [r.item_code for r in results if r.created_in_destination],
        },
    )
    notice = TransferNotice.of(order)
    db.commit()
    notify_transfer_completed(session_factory_for(db), notice)
    db.refresh(order)
    if adapter is not None and settings.zoho_auto_push_transfer_orders:
        sync_transfer_order(db, order, adapter)
    return order


def reject_transfer_order(
    db: Session,
    order: TransferOrder,
    *,
    rejected_by: str,
    notes: str | None = None,
) -> TransferOrder:
    _claim_transition(db, order, "Rejected", approved_by=rejected_by)
    order.notes = _append_note(order.notes, notes)
    log_audit_event(
        db,
        actor=rejected_by,
        action="transfer_order.reject",
        target_type="transfer_order",
        target_id=order.id,
        metadata_json={"transfer_number": order.transfer_number},
    )
    notice = TransferNotice.of(order)
    db.commit()
    notify_transfer_rejected(session_factory_for(db), notice)
    db.refresh(order)
    return order


def advance_transfer_order_status(
    db: Session,
    order: TransferOrder,
    next_status: str,
    *,
    actor: str,
    notes: str | None = None,
) -> TransferOrder:
    now = datetime.now(timezone.utc)
    stamps: dict[str, Any] = {}
    if next_status == "In Transit":
        stamps["transfer_started_at"] = now
    elif next_status == "Completed":
        stamps["transfer_completed_at"] = now
    elif next_status == "Cancelled":
        stamps["is_active"] = False
    previous_status = _claim_transition(db, order, next_status, **stamps)
    order.notes = _append_note(order.notes, notes)
    log_audit_event(
        db,
        actor=actor,
        action="transfer_order.status_update",
        target_type="transfer_order",
        target_id=order.id,
        metadata_json={"from": previous_status, "to": next_status},
    )
    db.commit()
    db.refresh(order)
    return order


@dataclass
class SyncOutcome:
    status: str
    external_id: str | None = None
    external_number: str | None = None
    skipped_items: list[str] = field(default_factory=list)
    error: str | None = None


def sync_transfer_order(db: Session, order: TransferOrder, adapter: ExternalSyncAdapter) -> SyncOutcome:
    """Push an approved order; failures are recorded on the order, never raised."""
    if order.status not in PUSHABLE_STATUSES:
        raise ValidationError(f"Transfer order in status '{order.status}' cannot be pushed")
    if order.zoho_sync_status == "pushed":
        return SyncOutcome(
            status="pushed",
            external_id=order.zoho_transfer_order_id,
            external_number=order.zoho_transfer_order_number,
        )

    try:
        result = adapter.push_transfer_order(order, list_transfer_items(db, order.id))
    except (RemoteApiError, MissingLocationMapping, MissingItemMapping, ValidationError) as exc:
        order.zoho_sync_status = "failed"
        order.zoho_sync_error = exc.message
        logger.warning(
            json.dumps(
                {
                    "event": "external_sync.push_failed",
                    "transfer_number": order.transfer_number,
                    "code": exc.error_code,
                    "error": exc.message,
                }
            )
        )
        db.commit()
        return SyncOutcome(
            status="failed",
            error=exc.message,
            skipped_items=[d["item_code"] for d in exc.details or [] if "item_code" in d],
        )

    order.zoho_sync_status = "pushed"
    order.zoho_sync_error = None
    order.zoho_transfer_order_id = result.external_id
    order.zoho_transfer_order_number = result.external_number
    order.zoho_synced_at = datetime.now(timezone.utc)
    db.commit()
    return SyncOutcome(
        status="pushed",
        external_id=result.external_id,
        external_number=result.external_number,
        skipped_items=result.skipped_items,
    )


def push_pending_transfer_orders(
    db: Session,
    adapter: ExternalSyncAdapter,
    *,
    limit: int = 50,
) -> list[tuple[TransferOrder, SyncOutcome]]:
    orders = db.execute(
        select(TransferOrder)
        .where(
            TransferOrder.status.in_(PUSHABLE_STATUSES),
            TransferOrder.zoho_sync_status != "pushed",
        )
        .order_by(TransferOrder.created_at.asc())
        .limit(limit)
    ).scalars().all()
    return [(order, sync_transfer_order(db, order, adapter)) for order in orders]
