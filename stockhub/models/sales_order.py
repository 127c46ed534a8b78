from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockhub.db.base import Base

ORDER_TYPES = ("Dine-in", "Takeaway", "Delivery")
ORDER_STATUSES = ("Pending", "Preparing", "Ready", "Served", "Completed", "Cancelled")
PAYMENT_STATUSES = ("Pending", "Paid", "Refunded")


class SalesOrder(Base):
    __tablename__ = "sales_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(60), nullable=False, unique=True, index=True)
    outlet: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    outlet_code: Mapped[str] = mapped_column(String(20), nullable=False)
    outlet_name: Mapped[str] = mapped_column(String(120), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    order_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Dine-in", server_default="Dine-in")
    table_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending", server_default="Pending")
    order_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending", server_default="Pending")
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    served_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    consumption_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    zoho_status: Mapped[str] = mapped_column(String(10), nullable=False, default="none", server_default="none")
    zoho_invoice_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    zoho_invoice_number: Mapped[str | None] = mapped_column(String(60), nullable=True)
    zoho_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    zoho_pushed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_sales_orders_outlet_order_date", "outlet", "order_date"),
        Index("ix_sales_orders_order_status", "order_status"),
    )


class SalesOrderItem(Base):
    __tablename__ = "sales_order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sales_order_id: Mapped[str] = mapped_column(String(36), ForeignKey("sales_orders.id"), nullable=False, index=True)
    line_type: Mapped[str] = mapped_column(String(10), nullable=False)
    product_code: Mapped[str] = mapped_column(String(60), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bom_code: Mapped[str | None] = mapped_column(String(60), nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0, server_default="0")
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
