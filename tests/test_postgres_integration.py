import argparse
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text

from stockhub.core.config import settings


def _test_pg_url() -> str | None:
    return os.getenv("TEST_POSTGRES_DATABASE_URL")


def _alembic_config(section: str, *x_args: str) -> Config:
    project_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(project_root / "alembic.ini"), ini_section=section)
    cfg.cmd_opts = argparse.Namespace(x=list(x_args))
    return cfg


@pytest.mark.integration
def test_postgres_connection_and_core_tables():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")

    engine = create_engine(url, pool_pre_ping=True)
    with engine.connect() as conn:
        assert conn.execute(text("SELECT 1")).scalar_one() == 1

    table_names = set(inspect(engine).get_table_names())
    assert "bill_of_materials" in table_names
    assert "transfer_orders" in table_names
    assert "sales_orders" in table_names


@pytest.mark.integration
def test_alembic_upgrade_downgrade_smoke(monkeypatch):
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run migration smoke tests.")
    if os.getenv("ALLOW_DESTRUCTIVE_MIGRATION_TESTS") != "1":
        pytest.skip("Set ALLOW_DESTRUCTIVE_MIGRATION_TESTS=1 for downgrade smoke test.")

    monkeypatch.setattr(settings, "database_url", url)

    central = _alembic_config("central")
    command.upgrade(central, "head")
    command.downgrade(central, "base")
    command.upgrade(central, "head")

    engine = create_engine(url, pool_pre_ping=True)
    table_names = set(inspect(engine).get_table_names())
    assert {"transfer_results", "location_list", "item_list", "notifications"} <= table_names


@pytest.mark.integration
def test_ledger_migration_smoke(monkeypatch):
    url = os.getenv("TEST_POSTGRES_LEDGER_DATABASE_URL")
    if not url:
        pytest.skip("Set TEST_POSTGRES_LEDGER_DATABASE_URL to run outlet ledger migration tests.")

    monkeypatch.setattr(settings, "kuwait_city_database_url", url)
    command.upgrade(_alembic_config("ledger", "outlet=kuwait-city"), "head")

    table_names = set(inspect(create_engine(url, pool_pre_ping=True)).get_table_names())
    assert {"raw_materials", "finished_goods"} <= table_names
