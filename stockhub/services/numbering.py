"""Generated business keys for transfer and sales orders.

Uniqueness is enforced by the central store's unique indexes. A collision is
retried exactly once with a freshly generated key; a second collision surfaces
as ``UniquenessConflict``.
"""

import json
import logging
import secrets
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockhub.core.errors import UniquenessConflict
from stockhub.core.id_utils import generate_short_token
from stockhub.core.outlets import Outlet

logger = logging.getLogger("stockhub.numbering")


def _epoch_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def generate_transfer_number(attempt: int = 0, *, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = _epoch_millis(now) % 1_000_000 if attempt == 0 else secrets.randbelow(1_000_000)
    return f"TR-{now:%Y%m%d}-{suffix:06d}"


def generate_order_number(outlet: Outlet, *, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"SO-{outlet.code}-{_epoch_millis(now)}-{generate_short_token(6).upper()}"


def persist_with_generated_key(
    db: Session,
    record: object,
    *,
    key_attr: str,
    generate_key: Callable[[int], str],
    related: Iterable[object] = (),
) -> None:
    """Flush ``record`` (and ``related`` rows) inside a savepoint, regenerating its key once on collision."""
    related = list(related)
    for attempt in range(2):
        setattr(record, key_attr, generate_key(attempt))
        try:
            with db.begin_nested():
                db.add(record)
                db.flush()
                db.add_all(related)
        except IntegrityError:
            logger.warning(
                json.dumps(
                    {
                        "event": "numbering.collision",
                        "table": getattr(record, "__tablename__", type(record).__name__),
                        "key": getattr(record, key_attr),
                        "attempt": attempt + 1,
                    }
                )
            )
            continue
        return
    raise UniquenessConflict(f"Could not allocate a unique {key_attr.replace('_', ' ')}")
