from fastapi import Request

from stockhub.core.config import settings
from stockhub.db.ledgers import LedgerRegistry
from stockhub.db.session import SessionLocal
from stockhub.services.inventory_sync_provider import InventorySyncProvider, get_sync_provider


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ledgers(request: Request) -> LedgerRegistry:
    return request.app.state.ledgers


def get_inventory_sync_provider() -> InventorySyncProvider:
    return get_sync_provider(settings.inventory_sync_provider_default)
