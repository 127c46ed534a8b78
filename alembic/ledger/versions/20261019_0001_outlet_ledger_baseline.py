"""outlet ledger baseline

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEDGER_TABLES = ("raw_materials", "finished_goods")


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _create_ledger_table(table_name: str) -> None:
    op.create_table(
        table_name,
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=60), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("sub_category", sa.String(length=120), nullable=True),
        sa.Column("unit_of_measure", sa.String(length=30), nullable=False, server_default="pcs"),
        sa.Column("unit_price", sa.Numeric(12, 3), nullable=False, server_default="0"),
        sa.Column("current_stock", sa.Float(), nullable=False, server_default="0"),
        sa.Column("minimum_stock", sa.Float(), nullable=False, server_default="0"),
        sa.Column("maximum_stock", sa.Float(), nullable=True),
        sa.Column("reorder_point", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=120), nullable=True),
        sa.Column("updated_by", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.CheckConstraint("current_stock >= 0", name=f"ck_{table_name}_current_stock_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in LEDGER_TABLES:
        if not _table_exists(inspector, table_name):
            _create_ledger_table(table_name)

    inspector = sa.inspect(bind)
    for table_name in LEDGER_TABLES:
        if not _index_exists(inspector, table_name, f"ix_{table_name}_code"):
            op.create_index(f"ix_{table_name}_code", table_name, ["code"], unique=True)
        if not _index_exists(inspector, table_name, f"ix_{table_name}_category"):
            op.create_index(f"ix_{table_name}_category", table_name, ["category"], unique=False)
        if not _index_exists(inspector, table_name, f"ix_{table_name}_active_category"):
            op.create_index(
                f"ix_{table_name}_active_category",
                table_name,
                ["is_active", "category"],
                unique=False,
            )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in LEDGER_TABLES:
        if not _table_exists(inspector, table_name):
            continue
        for suffix in ("active_category", "category", "code"):
            index_name = f"ix_{table_name}_{suffix}"
            if _index_exists(inspector, table_name, index_name):
                op.drop_index(index_name, table_name=table_name)
        op.drop_table(table_name)
