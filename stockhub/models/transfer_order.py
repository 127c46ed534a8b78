from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockhub.db.base import Base

TRANSFER_PRIORITIES = ("Low", "Normal", "High", "Urgent")
TRANSFER_STATUSES = ("Pending", "Approved", "Rejected", "In Transit", "Completed", "Cancelled", "Failed")


class TransferOrder(Base):
    __tablename__ = "transfer_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    transfer_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)
    from_outlet: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    to_outlet: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    transfer_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="Normal", server_default="Normal")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending", server_default="Pending")
    requested_by: Mapped[str] = mapped_column(String(120), nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transfer_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transfer_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    zoho_transfer_order_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    zoho_transfer_order_number: Mapped[str | None] = mapped_column(String(60), nullable=True)
    zoho_sync_status: Mapped[str] = mapped_column(String(10), nullable=False, default="none", server_default="none")
    zoho_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    zoho_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_transfer_orders_status_created_at", "status", "created_at"),
        Index("ix_transfer_orders_zoho_sync_status", "zoho_sync_status"),
    )


class TransferOrderItem(Base):
    __tablename__ = "transfer_order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    transfer_order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("transfer_orders.id"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_code: Mapped[str] = mapped_column(String(60), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    sub_category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    unit_of_measure: Mapped[str | None] = mapped_column(String(30), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class TransferResult(Base):
    __tablename__ = "transfer_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    transfer_order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("transfer_orders.id"),
        nullable=False,
        index=True,
    )
    item_code: Mapped[str] = mapped_column(String(60), nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
