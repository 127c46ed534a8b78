from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from stockhub.db.base import Base

BOM_STATUSES = ("Draft", "Active", "Inactive", "Obsolete")
BOM_ITEM_TYPES = ("raw_material", "bom")


class BillOfMaterials(Base):
    __tablename__ = "bill_of_materials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bom_code: Mapped[str] = mapped_column(String(60), nullable=False, unique=True, index=True)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0", server_default="1.0")
    effective_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Active", server_default="Active")
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_bill_of_materials_status_created_at", "status", "created_at"),
    )


class BomItem(Base):
    __tablename__ = "bom_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bom_id: Mapped[str] = mapped_column(String(36), ForeignKey("bill_of_materials.id"), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    material_code: Mapped[str] = mapped_column(String(60), nullable=False)
    material_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bom_code: Mapped[str | None] = mapped_column(String(60), nullable=True, index=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_of_measure: Mapped[str | None] = mapped_column(String(30), nullable=True)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")

    __table_args__ = (
        UniqueConstraint("bom_id", "line_no", name="uq_bom_items_bom_line_no"),
    )
