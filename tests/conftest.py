import os
from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
for _name in (
    "CENTRAL_KITCHEN_DATABASE_URL",
    "KUWAIT_CITY_DATABASE_URL",
    "MALL_360_DATABASE_URL",
    "VIBE_COMPLEX_DATABASE_URL",
    "TAIBA_HOSPITAL_DATABASE_URL",
):
    os.environ.setdefault(_name, "sqlite://")
os.environ.setdefault("INVENTORY_SYNC_PROVIDER_DEFAULT", "stub")

import stockhub.models  # noqa: F401,E402
from stockhub.core.config import settings  # noqa: E402
from stockhub.core.deps import get_db, get_inventory_sync_provider, get_ledgers  # noqa: E402
from stockhub.core.outlets import Outlet  # noqa: E402
from stockhub.db.base import Base  # noqa: E402
from stockhub.db.ledgers import LedgerRegistry  # noqa: E402
from stockhub.main import app  # noqa: E402
from stockhub.models.stock_item import StockKind  # noqa: E402
from stockhub.services.inventory_sync_provider import (  # noqa: E402
    InvoicePayload,
    RemoteDocument,
    RemoteItem,
    RemoteLocation,
    TransferOrderPayload,
)
from stockhub.services.ledger_service import open_outlet_store  # noqa: E402


def _sqlite_engine(url: str | None = None):
    if url is None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # File-backed database: each session gets its own DBAPI connection.
        engine = create_engine(url, connect_args={"check_same_thread": False})

    # pysqlite defers BEGIN on its own; SAVEPOINT needs SQLAlchemy to emit it.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@dataclass
class RecordingSyncProvider:
    """Inventory sync provider double that records payloads."""

    name: str = "recording"
    locations: list[RemoteLocation] = field(default_factory=list)
    items: list[RemoteItem] = field(default_factory=list)
    fail_with: Exception | None = None
    transfer_orders: list[TransferOrderPayload] = field(default_factory=list)
    invoices: list[InvoicePayload] = field(default_factory=list)
    sent_invoices: list[str] = field(default_factory=list)

    def create_transfer_order(self, payload: TransferOrderPayload) -> RemoteDocument:
        if self.fail_with is not None:
            raise self.fail_with
        self.transfer_orders.append(payload)
        number = len(self.transfer_orders)
        return RemoteDocument(external_id=f"zto-{number}", external_number=f"TO-{number:05d}")

    def create_invoice(self, payload: InvoicePayload) -> RemoteDocument:
        if self.fail_with is not None:
            raise self.fail_with
        self.invoices.append(payload)
        number = len(self.invoices)
        return RemoteDocument(external_id=f"zinv-{number}", external_number=f"INV-{number:05d}")

    def mark_invoice_sent(self, invoice_id: str) -> None:
        self.sent_invoices.append(invoice_id)

    def list_locations(self) -> list[RemoteLocation]:
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.locations)

    def list_items(self) -> list[RemoteItem]:
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.items)


@pytest.fixture()
def session_local(tmp_path):
    engine = _sqlite_engine(f"sqlite:///{tmp_path}/central.db")
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def ledgers():
    registry = LedgerRegistry({outlet: _sqlite_engine() for outlet in Outlet})
    registry.create_all()
    yield registry
    registry.dispose()


@pytest.fixture()
def sync_provider():
    return RecordingSyncProvider()


@pytest.fixture()
def seed_stock(ledgers):
    def _seed(outlet: Outlet, kind: StockKind, code: str, qty: float, **fields):
        with open_outlet_store(ledgers, outlet) as store:
            store.ledger(kind).create(
                {"code": code, "name": fields.pop("name", code.title()), "current_stock": qty, **fields},
                actor="seed",
            )
            store.commit()

    return _seed


@pytest.fixture()
def stock_level(ledgers):
    def _level(outlet: Outlet, kind: StockKind, code: str) -> float | None:
        with open_outlet_store(ledgers, outlet) as store:
            item = store.ledger(kind).get(code)
            return None if item is None else item.current_stock

    return _level


@pytest.fixture()
def test_context(session_local, ledgers, sync_provider):
    original_auto_push = settings.zoho_auto_push_transfer_orders
    original_customer = settings.zoho_default_customer_id

    def override_get_db():
        session = session_local()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledgers] = lambda: ledgers
    app.dependency_overrides[get_inventory_sync_provider] = lambda: sync_provider

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    settings.zoho_auto_push_transfer_orders = original_auto_push
    settings.zoho_default_customer_id = original_customer

