"""Outlet ledger: stock records of one kind inside one outlet database.

Stock mutations are single conditional UPDATE statements so concurrent
requests for the same code never lose updates and ``current_stock`` never
drops below zero. Status is recomputed by the same statement using the
outlet's status policy. Ledger methods flush but never commit; the caller owns
the transaction through ``OutletStore``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockhub.core.errors import InsufficientStock, NotFound, UniquenessConflict, ValidationError
from stockhub.core.id_utils import new_id
from stockhub.core.money import to_money
from stockhub.core.outlets import Outlet
from stockhub.db.ledgers import LedgerRegistry
from stockhub.models.stock_item import StockItem, StockKind
from stockhub.services.stock_status import status_policy_for

DESCRIPTIVE_FIELDS = (
    "name",
    "category",
    "sub_category",
    "unit_of_measure",
    "unit_price",
    "minimum_stock",
    "maximum_stock",
    "reorder_point",
    "notes",
)
# Columns that are NOT NULL on stock records; updates may change them but never clear them.
REQUIRED_FIELDS = ("name", "unit_of_measure", "unit_price", "minimum_stock", "reorder_point", "is_active")
SORTABLE_FIELDS = ("code", "name", "category", "current_stock", "unit_price", "status", "created_at", "updated_at")


@dataclass(frozen=True)
class StockShortfall:
    code: str
    requested: float
    available: float | None

    @property
    def reason(self) -> str:
        return "not_found" if self.available is None else "insufficient_stock"

    def as_detail(self) -> dict[str, Any]:
        return {
            "item_code": self.code,
            "reason": self.reason,
            "requested": self.requested,
            "available": self.available,
        }


@dataclass(frozen=True)
class StockQuery:
    search: str | None = None
    category: str | None = None
    status: str | None = None
    include_inactive: bool = False


def copy_descriptive_fields(item: StockItem) -> dict[str, Any]:
    return {field: getattr(item, field) for field in DESCRIPTIVE_FIELDS}


class OutletLedger:
    def __init__(self, session: Session, outlet: Outlet, kind: StockKind):
        self.session = session
        self.outlet = outlet
        self.kind = kind
        self.model = kind.model
        self.status_policy = status_policy_for(outlet)

    def _not_found(self, code: str) -> NotFound:
        return NotFound(f"{self.kind.label} '{code}' not found in {self.outlet.display_name}")

    def get(self, code: str) -> StockItem | None:
        stmt = (
            select(self.model)
            .where(self.model.code == code)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def exists(self, code: str) -> bool:
        stmt = select(self.model.id).where(self.model.code == code)
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def find_by_code(self, code: str) -> StockItem:
        item = self.get(code)
        if item is None:
            raise self._not_found(code)
        return item

    def create(self, fields: Mapping[str, Any], *, actor: str | None = None) -> StockItem:
        code = str(fields.get("code") or "").strip()
        if not code:
            raise ValidationError("Item code is required")
        if not fields.get("name"):
            raise ValidationError(f"Name is required to create {self.kind.label.lower()} '{code}'")
        current_stock = float(fields.get("current_stock") or 0)
        if current_stock < 0:
            raise ValidationError("current_stock cannot be negative")
        if self.exists(code):
            raise UniquenessConflict(f"{self.kind.label} '{code}' already exists in {self.outlet.display_name}")

        values = {key: fields[key] for key in DESCRIPTIVE_FIELDS if fields.get(key) is not None}
        if "unit_price" in values:
            values["unit_price"] = to_money(values["unit_price"])
        item = self.model(
            id=new_id(),
            code=code,
            current_stock=current_stock,
            status=self.status_policy.derive(current_stock, float(values.get("reorder_point") or 0)),
            is_active=True,
            created_by=actor,
            updated_by=actor,
            **values,
        )
        try:
            with self.session.begin_nested():
                self.session.add(item)
        except IntegrityError:
            raise UniquenessConflict(
                f"{self.kind.label} '{code}' already exists in {self.outlet.display_name}"
            ) from None
        return item

    def update_details(self, code: str, fields: Mapping[str, Any], *, actor: str | None = None) -> StockItem:
        cleared = [key for key in REQUIRED_FIELDS if key in fields and fields[key] is None]
        if cleared:
            raise ValidationError(f"Cannot clear required fields on '{code}': {', '.join(cleared)}")
        item = self.find_by_code(code)
        for key, value in fields.items():
            if key == "unit_price" and value is not None:
                value = to_money(value)
            if key in DESCRIPTIVE_FIELDS or key == "is_active":
                setattr(item, key, value)
        item.updated_by = actor
        self.session.flush()
        self._refresh_status(code)
        return self.find_by_code(code)

    def _refresh_status(self, code: str) -> None:
        model = self.model
        self.session.execute(
            update(model)
            .where(model.code == code)
            .values(status=self.status_policy.sql_expression(model.current_stock, model.reorder_point))
            .execution_options(synchronize_session=False)
        )

    def _apply_delta(self, code: str, delta: float, actor: str | None) -> bool:
        self.session.flush()
        model = self.model
        new_stock = model.current_stock + delta
        stmt = (
            update(model)
            .where(model.code == code, new_stock >= 0)
            .values(
                current_stock=new_stock,
                status=self.status_policy.sql_expression(new_stock, model.reorder_point),
                updated_by=actor,
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount > 0

    def decrement(self, code: str, qty: float, *, actor: str | None = None) -> StockItem:
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero")
        if not self._apply_delta(code, -qty, actor):
            item = self.get(code)
            if item is None:
                raise self._not_found(code)
            raise InsufficientStock(code, requested=qty, available=item.current_stock)
        return self.find_by_code(code)

    def increment(self, code: str, qty: float, *, actor: str | None = None) -> StockItem:
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero")
        if not self._apply_delta(code, qty, actor):
            raise self._not_found(code)
        return self.find_by_code(code)

    def upsert_increment(
        self,
        code: str,
        delta: float,
        defaults: Mapping[str, Any] | None = None,
        *,
        actor: str | None = None,
    ) -> tuple[StockItem, bool]:
        """Add ``delta`` to an existing record or create it with ``current_stock = delta``.

        Returns the record and whether it was created.
        """
        if self._apply_delta(code, delta, actor):
            return self.find_by_code(code), False

        existing = self.get(code)
        if existing is not None:
            raise InsufficientStock(code, requested=-delta, available=existing.current_stock)
        if delta < 0:
            raise ValidationError(f"Cannot create {self.kind.label.lower()} '{code}' with negative stock")

        try:
            item = self.create({**(defaults or {}), "code": code, "current_stock": delta}, actor=actor)
        except UniquenessConflict:
            # Another request inserted the code first.
            if not self._apply_delta(code, delta, actor):
                raise
            return self.find_by_code(code), False
        return item, True

    def validate_availability(self, demand: Mapping[str, float]) -> list[StockShortfall]:
        if not demand:
            return []
        rows = self.session.execute(
            select(self.model.code, self.model.current_stock).where(self.model.code.in_(list(demand)))
        ).all()
        available = {code: current_stock for code, current_stock in rows}
        shortfalls = []
        for code, requested in demand.items():
            stock = available.get(code)
            if stock is None or requested > stock:
                shortfalls.append(StockShortfall(code=code, requested=requested, available=stock))
        return shortfalls

    def soft_delete(self, code: str, *, actor: str | None = None) -> StockItem:
        item = self.find_by_code(code)
        item.is_active = False
        item.updated_by = actor
        self.session.flush()
        return item

    def distinct_categories(self) -> list[str]:
        stmt = (
            select(self.model.category)
            .where(self.model.is_active.is_(True), self.model.category.is_not(None))
            .distinct()
            .order_by(self.model.category.asc())
        )
        return [row for row in self.session.execute(stmt).scalars().all() if row]

    def find_low_stock(self) -> list[StockItem]:
        stmt = (
            select(self.model)
            .where(
                self.model.is_active.is_(True),
                self.model.current_stock <= self.model.reorder_point,
            )
            .order_by(self.model.current_stock.asc(), self.model.code.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def paginated_query(
        self,
        query: StockQuery,
        *,
        sort_by: str = "code",
        sort_order: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[StockItem], int]:
        if sort_by not in SORTABLE_FIELDS:
            allowed = ", ".join(SORTABLE_FIELDS)
            raise ValidationError(f"Invalid sort field '{sort_by}'. Allowed: {allowed}")

        model = self.model
        conditions = []
        if not query.include_inactive:
            conditions.append(model.is_active.is_(True))
        if query.category:
            conditions.append(model.category == query.category)
        if query.status:
            conditions.append(model.status == query.status)
        if query.search:
            pattern = f"%{query.search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(model.code).like(pattern),
                    func.lower(model.name).like(pattern),
                    func.lower(model.category).like(pattern),
                )
            )

        total = int(self.session.execute(select(func.count(model.id)).where(*conditions)).scalar_one())
        column = getattr(model, sort_by)
        ordering = column.desc() if sort_order.lower() == "desc" else column.asc()
        rows = self.session.execute(
            select(model).where(*conditions).order_by(ordering, model.code.asc()).offset(offset).limit(limit)
        ).scalars().all()
        return list(rows), total


class OutletStore:
    """One session against one outlet database, exposing both ledgers."""

    def __init__(self, outlet: Outlet, session: Session):
        self.outlet = outlet
        self.session = session
        self.raw_materials = OutletLedger(session, outlet, StockKind.RAW_MATERIAL)
        self.finished_goods = OutletLedger(session, outlet, StockKind.FINISHED_GOOD)

    def ledger(self, kind: StockKind) -> OutletLedger:
        return self.raw_materials if kind is StockKind.RAW_MATERIAL else self.finished_goods

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "OutletStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.session.rollback()
        self.session.close()


def open_outlet_store(ledgers: LedgerRegistry, outlet: Outlet) -> OutletStore:
    return OutletStore(outlet, ledgers.session(outlet))
