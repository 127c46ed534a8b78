from collections.abc import Callable, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockhub.core.errors import BomNotFound, UniquenessConflict, ValidationError
from stockhub.core.id_utils import new_id
from stockhub.core.money import ZERO_MONEY, line_total, to_money
from stockhub.models.bom import BillOfMaterials, BomItem
from stockhub.schemas.bom import BomCreateIn, BomItemIn, BomUpdateIn
from stockhub.services.bom_resolver import BomDefinition, BomLine, BomResolver


def normalize_bom_code(code: str) -> str:
    return code.strip().upper()


def get_bom(db: Session, bom_code: str) -> BillOfMaterials | None:
    return db.execute(
        select(BillOfMaterials).where(BillOfMaterials.bom_code == normalize_bom_code(bom_code))
    ).scalar_one_or_none()


def get_bom_or_raise(db: Session, bom_code: str) -> BillOfMaterials:
    bom = get_bom(db, bom_code)
    if bom is None:
        raise BomNotFound(normalize_bom_code(bom_code))
    return bom


def list_bom_items(db: Session, bom_id: str) -> list[BomItem]:
    return list(
        db.execute(
            select(BomItem).where(BomItem.bom_id == bom_id).order_by(BomItem.line_no.asc())
        ).scalars().all()
    )


def _definition(bom_code: str, items: Sequence[BomItem | BomItemIn]) -> BomDefinition:
    return BomDefinition(
        bom_code=bom_code,
        lines=tuple(
            BomLine(
                item_type=item.item_type,
                material_code=item.material_code,
                quantity=float(item.quantity),
                bom_code=item.bom_code,
            )
            for item in items
        ),
    )


def load_bom_definition(db: Session, bom_code: str) -> BomDefinition | None:
    bom = get_bom(db, bom_code)
    if bom is None:
        return None
    return _definition(bom.bom_code, list_bom_items(db, bom.id))


def bom_lookup(db: Session) -> Callable[[str], BomDefinition | None]:
    def find_bom(bom_code: str) -> BomDefinition | None:
        return load_bom_definition(db, bom_code)

    return find_bom


def validate_bom_graph(db: Session, bom_code: str, items: Sequence[BomItemIn]) -> None:
    """Reject a candidate BOM whose sub-recipes are unknown or that would close a cycle."""
    candidate = _definition(bom_code, items)
    stored = bom_lookup(db)

    def find_bom(code: str) -> BomDefinition | None:
        return candidate if code == bom_code else stored(code)

    try:
        BomResolver(find_bom).resolve(bom_code, 1.0)
    except BomNotFound as exc:
        raise ValidationError(f"Sub-recipe '{exc.bom_code}' referenced by '{bom_code}' does not exist") from None


def _replace_items(db: Session, bom: BillOfMaterials, items: Sequence[BomItemIn]) -> None:
    for existing in list_bom_items(db, bom.id):
        db.delete(existing)
    db.flush()

    total_cost = ZERO_MONEY
    for line_no, item in enumerate(items, start=1):
        cost = line_total(item.quantity, item.unit_cost)
        total_cost += cost
        db.add(
            BomItem(
                id=new_id(),
                bom_id=bom.id,
                line_no=line_no,
                item_type=item.item_type,
                material_code=item.material_code.strip(),
                material_name=item.material_name.strip(),
                bom_code=item.bom_code,
                quantity=item.quantity,
                unit_of_measure=item.unit_of_measure,
                unit_cost=to_money(item.unit_cost),
                total_cost=cost,
            )
        )
    bom.total_cost = to_money(total_cost)


def create_bom(db: Session, payload: BomCreateIn, *, actor: str) -> BillOfMaterials:
    if get_bom(db, payload.bom_code) is not None:
        raise UniquenessConflict(f"BOM '{payload.bom_code}' already exists")
    validate_bom_graph(db, payload.bom_code, payload.items)

    bom = BillOfMaterials(
        id=new_id(),
        bom_code=payload.bom_code,
        product_name=payload.product_name.strip(),
        product_description=payload.product_description,
        version=payload.version,
        effective_date=payload.effective_date,
        status=payload.status,
        created_by=actor,
        updated_by=actor,
    )
    db.add(bom)
    _replace_items(db, bom, payload.items)
    return bom


def update_bom(db: Session, bom: BillOfMaterials, payload: BomUpdateIn, *, actor: str) -> BillOfMaterials:
    validate_bom_graph(db, bom.bom_code, payload.items)
    bom.product_name = payload.product_name.strip()
    bom.product_description = payload.product_description
    bom.version = payload.version
    bom.effective_date = payload.effective_date
    bom.status = payload.status
    bom.updated_by = actor
    _replace_items(db, bom, payload.items)
    return bom


def bom_referenced_by(db: Session, bom_code: str) -> list[str]:
    rows = db.execute(
        select(func.distinct(BillOfMaterials.bom_code))
        .join(BomItem, BomItem.bom_id == BillOfMaterials.id)
        .where(BomItem.item_type == "bom", BomItem.bom_code == bom_code)
    ).scalars().all()
    return sorted(rows)


def delete_bom(db: Session, bom: BillOfMaterials) -> None:
    parents = bom_referenced_by(db, bom.bom_code)
    if parents:
        raise ValidationError(
            f"BOM '{bom.bom_code}' is used as a sub-recipe by: {', '.join(parents)}"
        )
    for item in list_bom_items(db, bom.id):
        db.delete(item)
    db.delete(bom)
