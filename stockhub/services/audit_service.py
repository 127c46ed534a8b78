from typing import Any

from sqlalchemy.orm import Session

from stockhub.core.config import settings
from stockhub.core.id_utils import new_id
from stockhub.models.audit_log import AuditLog


def log_audit_event(
    db: Session,
    *,
    actor: str | None,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        id=new_id(),
        actor=actor or settings.default_actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
    )
    db.add(event)
    return event
