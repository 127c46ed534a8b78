"""Per-outlet ledger databases.

Each outlet owns an independent database. The registry builds one engine and
session factory per outlet once at process start; request handlers receive it
through ``stockhub.core.deps.get_ledgers`` and never create engines themselves.
"""

import json
import logging
from collections.abc import Mapping

from sqlalchemy import Engine, text
from sqlalchemy.orm import Session, sessionmaker

from stockhub.core.config import Settings
from stockhub.core.outlets import Outlet
from stockhub.db.base import LedgerBase
from stockhub.db.session import build_engine

logger = logging.getLogger("stockhub.ledgers")


class LedgerRegistry:
    def __init__(self, engines: Mapping[Outlet, Engine]):
        missing = [outlet.value for outlet in Outlet if outlet not in engines]
        if missing:
            raise ValueError(f"Ledger engines missing for outlets: {', '.join(missing)}")
        self._engines = dict(engines)
        self._session_factories = {
            outlet: sessionmaker(autocommit=False, autoflush=False, bind=engine)
            for outlet, engine in self._engines.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerRegistry":
        return cls(
            {
                outlet: build_engine(getattr(settings, outlet.profile.database_setting))
                for outlet in Outlet
            }
        )

    def engine(self, outlet: Outlet) -> Engine:
        return self._engines[outlet]

    def session(self, outlet: Outlet) -> Session:
        return self._session_factories[outlet]()

    def create_all(self) -> None:
        for engine in self._engines.values():
            LedgerBase.metadata.create_all(bind=engine)

    def ping(self) -> dict[Outlet, bool]:
        status: dict[Outlet, bool] = {}
        for outlet, engine in self._engines.items():
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                status[outlet] = True
            except Exception as exc:
                logger.warning(
                    json.dumps({"event": "ledger.ping_failed", "outlet": outlet.value, "error": str(exc)})
                )
                status[outlet] = False
        return status

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()
