from datetime import datetime

from pydantic import BaseModel

from stockhub.schemas.common import PaginationMeta


class NotificationOut(BaseModel):
    id: str
    title: str
    message: str
    type: str
    target_outlet: str
    source_outlet: str | None = None
    transfer_order_id: str | None = None
    item_type: str | None = None
    priority: str
    read: bool
    created_at: datetime | None = None


class NotificationListOut(BaseModel):
    items: list[NotificationOut]
    unread_count: int
    pagination: PaginationMeta


class NotificationReadAllOut(BaseModel):
    updated: int
