from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockhub.db.base import Base

NOTIFICATION_TYPES = (
    "transfer_request",
    "transfer_completed",
    "transfer_acceptance",
    "transfer_rejection",
    "info",
    "warning",
    "error",
)
NOTIFICATION_PRIORITIES = ("low", "normal", "high", "urgent")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="info", server_default="info")
    target_outlet: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    source_outlet: Mapped[str | None] = mapped_column(String(40), nullable=True)
    transfer_order_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    item_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal", server_default="normal")
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_notifications_target_read_created_at", "target_outlet", "read", "created_at"),
    )
