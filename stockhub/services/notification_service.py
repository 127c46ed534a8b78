"""Fire-and-forget notifications between outlets.

Emission runs in its own central-store session so a failure can never roll
back or fail the operation that triggered it. Callers capture a
``TransferNotice`` before committing; emitting never touches their session.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from stockhub.core.id_utils import new_id
from stockhub.core.outlets import Outlet
from stockhub.models.notification import Notification
from stockhub.models.transfer_order import TransferOrder

logger = logging.getLogger("stockhub.notifications")


def emit_notification(
    session_factory: Callable[[], Session],
    *,
    title: str,
    message: str,
    type: str,
    target_outlet: Outlet,
    source_outlet: Outlet | None = None,
    transfer_order_id: str | None = None,
    item_type: str | None = None,
    priority: str = "normal",
) -> str | None:
    db = session_factory()
    try:
        notification = Notification(
            id=new_id(),
            title=title,
            message=message,
            type=type,
            target_outlet=target_outlet.value,
            source_outlet=source_outlet.value if source_outlet else None,
            transfer_order_id=transfer_order_id,
            item_type=item_type,
            priority=priority,
            read=False,
        )
        db.add(notification)
        db.commit()
        return notification.id
    except Exception as exc:
        db.rollback()
        logger.warning(
            json.dumps(
                {
                    "event": "notification.emit_failed",
                    "type": type,
                    "target_outlet": target_outlet.value,
                    "transfer_order_id": transfer_order_id,
                    "error": str(exc),
                }
            )
        )
        return None
    finally:
        db.close()


@dataclass(frozen=True)
class TransferNotice:
    transfer_order_id: str
    transfer_number: str
    from_outlet: Outlet
    to_outlet: Outlet
    priority: str

    @classmethod
    def of(cls, order: TransferOrder) -> "TransferNotice":
        return cls(
            transfer_order_id=order.id,
            transfer_number=order.transfer_number,
            from_outlet=Outlet(order.from_outlet),
            to_outlet=Outlet(order.to_outlet),
            priority=order.priority.lower() if order.priority else "normal",
        )


def notify_transfer_requested(session_factory: Callable[[], Session], notice: TransferNotice) -> str | None:
    source = notice.from_outlet
    destination = notice.to_outlet
    return emit_notification(
        session_factory,
        title="Transfer requested",
        message=(
            f"{destination.display_name} requested transfer {notice.transfer_number} "
            f"from {source.display_name}."
        ),
        type="transfer_request",
        target_outlet=source,
        source_outlet=destination,
        transfer_order_id=notice.transfer_order_id,
        priority=notice.priority,
    )


def notify_transfer_completed(session_factory: Callable[[], Session], notice: TransferNotice) -> str | None:
    source = notice.from_outlet
    destination = notice.to_outlet
    return emit_notification(
        session_factory,
        title="Transfer completed",
        message=(
            f"Transfer {notice.transfer_number} from {source.display_name} was approved "
            f"and stock has been added to {destination.display_name}."
        ),
        type="transfer_completed",
        target_outlet=destination,
        source_outlet=source,
        transfer_order_id=notice.transfer_order_id,
        priority=notice.priority,
    )


def notify_transfer_rejected(session_factory: Callable[[], Session], notice: TransferNotice) -> str | None:
    source = notice.from_outlet
    destination = notice.to_outlet
    return emit_notification(
        session_factory,
        title="Transfer rejected",
        message=f"Transfer {notice.transfer_number} from {source.display_name} was rejected.",
        type="transfer_rejection",
        target_outlet=destination,
        source_outlet=source,
        transfer_order_id=notice.transfer_order_id,
        priority=notice.priority,
    )


def session_factory_for(db: Session) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())
