from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from stockhub.db.base import LedgerBase


class StockItemColumns:
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(60), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    sub_category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(30), nullable=False, default="pcs", server_default="pcs")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    current_stock: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    minimum_stock: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    maximum_stock: Mapped[float | None] = mapped_column(Float, nullable=True)
    reorder_point: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class RawMaterial(StockItemColumns, LedgerBase):
    __tablename__ = "raw_materials"

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_raw_materials_current_stock_non_negative"),
        Index("ix_raw_materials_active_category", "is_active", "category"),
    )


class FinishedGood(StockItemColumns, LedgerBase):
    __tablename__ = "finished_goods"

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_finished_goods_current_stock_non_negative"),
        Index("ix_finished_goods_active_category", "is_active", "category"),
    )


StockItem = RawMaterial | FinishedGood


class StockKind(str, Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"

    @property
    def model(self) -> type[RawMaterial] | type[FinishedGood]:
        return RawMaterial if self is StockKind.RAW_MATERIAL else FinishedGood

    @property
    def label(self) -> str:
        return "Raw material" if self is StockKind.RAW_MATERIAL else "Finished good"

    @property
    def path_segment(self) -> str:
        return "raw-materials" if self is StockKind.RAW_MATERIAL else "finished-goods"

    @classmethod
    def from_path_segment(cls, segment: str) -> "StockKind":
        for kind in cls:
            if kind.path_segment == segment:
                return kind
        raise ValueError(segment)
