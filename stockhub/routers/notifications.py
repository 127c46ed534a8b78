from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockhub.core.api_docs import error_responses
from stockhub.core.deps import get_db
from stockhub.core.errors import NotFound
from stockhub.core.outlets import canonicalize_outlet
from stockhub.models.notification import Notification
from stockhub.schemas.common import pagination
from stockhub.schemas.notification import NotificationListOut, NotificationOut, NotificationReadAllOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_out(row: Notification) -> NotificationOut:
    return NotificationOut(
        id=row.id,
        title=row.title,
        message=row.message,
        type=row.type,
        target_outlet=row.target_outlet,
        source_outlet=row.source_outlet,
        transfer_order_id=row.transfer_order_id,
        item_type=row.item_type,
        priority=row.priority,
        read=row.read,
        created_at=row.created_at,
    )


@router.get(
    "",
    response_model=NotificationListOut,
    summary="List notifications for an outlet",
    responses=error_responses(422, 500),
)
def list_notifications(
    outlet: str = Query(min_length=1),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    slug = canonicalize_outlet(outlet).value
    conditions = [Notification.target_outlet == slug]
    if unread_only:
        conditions.append(Notification.read.is_(False))

    total = int(db.execute(select(func.count(Notification.id)).where(*conditions)).scalar_one())
    unread_count = int(
        db.execute(
            select(func.count(Notification.id)).where(
                Notification.target_outlet == slug,
                Notification.read.is_(False),
            )
        ).scalar_one()
    )
    rows = db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    items = [_notification_out(row) for row in rows]
    return NotificationListOut(
        items=items,
        unread_count=unread_count,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.post(
    "/read-all",
    response_model=NotificationReadAllOut,
    summary="Mark every notification for an outlet as read",
    responses=error_responses(422, 500),
)
def mark_all_notifications_read(
    outlet: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    slug = canonicalize_outlet(outlet).value
    result = db.execute(
        update(Notification)
        .where(Notification.target_outlet == slug, Notification.read.is_(False))
        .values(read=True)
    )
    db.commit()
    return NotificationReadAllOut(updated=result.rowcount or 0)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="Mark a notification as read",
    responses=error_responses(404, 500),
)
def mark_notification_read(notification_id: str, db: Session = Depends(get_db)):
    row = db.execute(select(Notification).where(Notification.id == notification_id)).scalar_one_or_none()
    if row is None:
        raise NotFound("Notification not found")
    row.read = True
    db.commit()
    db.refresh(row)
    return _notification_out(row)
