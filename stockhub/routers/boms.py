from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.config import settings
from stockhub.core.deps import get_db, get_ledgers
from stockhub.core.errors import UniquenessConflict
from stockhub.core.outlets import canonicalize_outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.bom import BillOfMaterials
from stockhub.schemas.bom import (
    BomCreateIn,
    BomExplosionOut,
    BomItemOut,
    BomListOut,
    BomOut,
    BomUpdateIn,
    DemandLineOut,
)
from stockhub.schemas.common import pagination
from stockhub.services.audit_service import log_audit_event
from stockhub.services.bom_resolver import BomResolver
from stockhub.services.bom_service import (
    bom_lookup,
    create_bom,
    delete_bom,
    get_bom_or_raise,
    list_bom_items,
    update_bom,
)
from stockhub.services.ledger_service import open_outlet_store

router = APIRouter(prefix="/boms", tags=["boms"])


def _bom_out(db: Session, bom: BillOfMaterials) -> BomOut:
    return BomOut(
        id=bom.id,
        bom_code=bom.bom_code,
        product_name=bom.product_name,
        product_description=bom.product_description,
        version=bom.version,
        effective_date=bom.effective_date,
        status=bom.status,
        total_cost=float(bom.total_cost or 0),
        items=[
            BomItemOut(
                line_no=item.line_no,
                item_type=item.item_type,
                material_code=item.material_code,
                material_name=item.material_name,
                bom_code=item.bom_code,
                quantity=item.quantity,
                unit_of_measure=item.unit_of_measure,
                unit_cost=float(item.unit_cost or 0),
                total_cost=float(item.total_cost or 0),
            )
            for item in list_bom_items(db, bom.id)
        ],
        created_by=bom.created_by,
        updated_by=bom.updated_by,
        created_at=bom.created_at,
        updated_at=bom.updated_at,
    )


def _demand_lines(demand: dict[str, float]) -> list[DemandLineOut]:
    return [DemandLineOut(code=code, quantity=qty) for code, qty in sorted(demand.items())]


@router.post(
    "",
    response_model=BomOut,
    status_code=201,
    summary="Create bill of materials",
    responses=error_responses(409, 422, 500),
)
def create_bill_of_materials(payload: BomCreateIn, db: Session = Depends(get_db)):
    actor = payload.actor or settings.default_actor
    bom = create_bom(db, payload, actor=actor)
    log_audit_event(
        db,
        actor=actor,
        action="bom.create",
        target_type="bom",
        target_id=bom.id,
        metadata_json={"bom_code": bom.bom_code, "items": len(payload.items)},
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UniquenessConflict(f"BOM '{payload.bom_code}' already exists") from None
    db.refresh(bom)
    return _bom_out(db, bom)


@router.get(
    "",
    response_model=BomListOut,
    summary="List bills of materials",
    responses=error_responses(422, 500),
)
def list_bills_of_materials(
    q: str | None = Query(default=None, max_length=100),
    status: str | None = Query(default=None, pattern="^(Draft|Active|Inactive|Obsolete)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    conditions = []
    if status:
        conditions.append(BillOfMaterials.status == status)
    if q:
        pattern = f"%{q.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(BillOfMaterials.bom_code).like(pattern),
                func.lower(BillOfMaterials.product_name).like(pattern),
            )
        )

    total = int(db.execute(select(func.count(BillOfMaterials.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(BillOfMaterials)
        .where(*conditions)
        .order_by(BillOfMaterials.bom_code.asc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    items = [_bom_out(db, row) for row in rows]
    return BomListOut(items=items, pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)))


@router.get(
    "/{bom_code}",
    response_model=BomOut,
    summary="Get bill of materials",
    responses=error_responses(404, 500),
)
def get_bill_of_materials(bom_code: str, db: Session = Depends(get_db)):
    return _bom_out(db, get_bom_or_raise(db, bom_code))


@router.put(
    "/{bom_code}",
    response_model=BomOut,
    summary="Replace bill of materials",
    responses=error_responses(404, 422, 500),
)
def replace_bill_of_materials(bom_code: str, payload: BomUpdateIn, db: Session = Depends(get_db)):
    actor = payload.actor or settings.default_actor
    bom = update_bom(db, get_bom_or_raise(db, bom_code), payload, actor=actor)
    log_audit_event(
        db,
        actor=actor,
        action="bom.update",
        target_type="bom",
        target_id=bom.id,
        metadata_json={"bom_code": bom.bom_code, "items": len(payload.items)},
    )
    db.commit()
    db.refresh(bom)
    return _bom_out(db, bom)


@router.delete(
    "/{bom_code}",
    status_code=204,
    summary="Delete bill of materials",
    responses=error_responses(404, 422, 500),
)
def delete_bill_of_materials(
    bom_code: str,
    actor: str | None = Query(default=None, max_length=120),
    db: Session = Depends(get_db),
):
    bom = get_bom_or_raise(db, bom_code)
    bom_id, code = bom.id, bom.bom_code
    delete_bom(db, bom)
    log_audit_event(
        db,
        actor=actor,
        action="bom.delete",
        target_type="bom",
        target_id=bom_id,
        metadata_json={"bom_code": code},
    )
    db.commit()


@router.get(
    "/{bom_code}/explode",
    response_model=BomExplosionOut,
    summary="Expand a recipe into its raw-material and finished-good demand",
    responses=error_responses(404, 422, 500),
)
def explode_bill_of_materials(
    bom_code: str,
    quantity: float = Query(default=1, gt=0),
    outlet: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    bom = get_bom_or_raise(db, bom_code)
    if outlet is None:
        demand = BomResolver(bom_lookup(db)).resolve(bom.bom_code, quantity)
        outlet_slug = None
    else:
        target = canonicalize_outlet(outlet)
        with open_outlet_store(ledgers, target) as store:
            demand = BomResolver(bom_lookup(db), is_finished_good=store.finished_goods.exists).resolve(
                bom.bom_code, quantity
            )
        outlet_slug = target.value

    return BomExplosionOut(
        bom_code=bom.bom_code,
        quantity=quantity,
        outlet=outlet_slug,
        raw_materials=_demand_lines(demand.raw_materials),
        finished_goods=_demand_lines(demand.finished_goods),
    )
