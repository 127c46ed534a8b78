"""central store baseline

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


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
    ]


# (table, index name, columns, unique)
_INDEXES = [
    ("audit_logs", "ix_audit_logs_actor", ["actor"], False),
    ("audit_logs", "ix_audit_logs_target_id", ["target_id"], False),
    ("audit_logs", "ix_audit_logs_action_created_at", ["action", "created_at"], False),
    ("bill_of_materials", "ix_bill_of_materials_bom_code", ["bom_code"], True),
    ("bill_of_materials", "ix_bill_of_materials_status_created_at", ["status", "created_at"], False),
    ("bom_items", "ix_bom_items_bom_id", ["bom_id"], False),
    ("bom_items", "ix_bom_items_bom_code", ["bom_code"], False),
    ("transfer_orders", "ix_transfer_orders_transfer_number", ["transfer_number"], True),
    ("transfer_orders", "ix_transfer_orders_from_outlet", ["from_outlet"], False),
    ("transfer_orders", "ix_transfer_orders_to_outlet", ["to_outlet"], False),
    ("transfer_orders", "ix_transfer_orders_status_created_at", ["status", "created_at"], False),
    ("transfer_orders", "ix_transfer_orders_zoho_sync_status", ["zoho_sync_status"], False),
    ("transfer_order_items", "ix_transfer_order_items_transfer_order_id", ["transfer_order_id"], False),
    ("transfer_results", "ix_transfer_results_transfer_order_id", ["transfer_order_id"], False),
    ("sales_orders", "ix_sales_orders_order_number", ["order_number"], True),
    ("sales_orders", "ix_sales_orders_outlet", ["outlet"], False),
    ("sales_orders", "ix_sales_orders_outlet_order_date", ["outlet", "order_date"], False),
    ("sales_orders", "ix_sales_orders_order_status", ["order_status"], False),
    ("sales_order_items", "ix_sales_order_items_sales_order_id", ["sales_order_id"], False),
    ("location_list", "ix_location_list_zoho_location_id", ["zoho_location_id"], True),
    ("location_list", "ix_location_list_location_name", ["location_name"], False),
    ("item_list", "ix_item_list_sku", ["sku"], True),
    ("item_list", "ix_item_list_zoho_item_id", ["zoho_item_id"], False),
    ("notifications", "ix_notifications_target_outlet", ["target_outlet"], False),
    ("notifications", "ix_notifications_transfer_order_id", ["transfer_order_id"], False),
    (
        "notifications",
        "ix_notifications_target_read_created_at",
        ["target_outlet", "read", "created_at"],
        False,
    ),
]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor", sa.String(length=120), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=100), nullable=False),
            sa.Column("target_id", sa.String(length=60), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "bill_of_materials"):
        op.create_table(
            "bill_of_materials",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("bom_code", sa.String(length=60), nullable=False),
            sa.Column("product_name", sa.String(length=200), nullable=False),
            sa.Column("product_description", sa.Text(), nullable=True),
            sa.Column("version", sa.String(length=20), nullable=False, server_default="1.0"),
            sa.Column("effective_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Active"),
            sa.Column("total_cost", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("created_by", sa.String(length=120), nullable=True),
            sa.Column("updated_by", sa.String(length=120), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "bom_items"):
        op.create_table(
            "bom_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("bom_id", sa.String(length=36), nullable=False),
            sa.Column("line_no", sa.Integer(), nullable=False),
            sa.Column("item_type", sa.String(length=20), nullable=False),
            sa.Column("material_code", sa.String(length=60), nullable=False),
            sa.Column("material_name", sa.String(length=200), nullable=False),
            sa.Column("bom_code", sa.String(length=60), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("unit_of_measure", sa.String(length=30), nullable=True),
            sa.Column("unit_cost", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("total_cost", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["bom_id"], ["bill_of_materials.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("bom_id", "line_no", name="uq_bom_items_bom_line_no"),
        )

    if not _table_exists(inspector, "transfer_orders"):
        op.create_table(
            "transfer_orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("transfer_number", sa.String(length=40), nullable=False),
            sa.Column("from_outlet", sa.String(length=40), nullable=False),
            sa.Column("to_outlet", sa.String(length=40), nullable=False),
            sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="Normal"),
            sa.Column("total_amount", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Pending"),
            sa.Column("requested_by", sa.String(length=120), nullable=False),
            sa.Column("approved_by", sa.String(length=120), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("transfer_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("transfer_completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("zoho_transfer_order_id", sa.String(length=60), nullable=True),
            sa.Column("zoho_transfer_order_number", sa.String(length=60), nullable=True),
            sa.Column("zoho_sync_status", sa.String(length=10), nullable=False, server_default="none"),
            sa.Column("zoho_sync_error", sa.Text(), nullable=True),
            sa.Column("zoho_synced_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "transfer_order_items"):
        op.create_table(
            "transfer_order_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("transfer_order_id", sa.String(length=36), nullable=False),
            sa.Column("line_no", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("item_type", sa.String(length=20), nullable=False),
            sa.Column("item_code", sa.String(length=60), nullable=False),
            sa.Column("item_name", sa.String(length=200), nullable=False),
            sa.Column("category", sa.String(length=120), nullable=True),
            sa.Column("sub_category", sa.String(length=120), nullable=True),
            sa.Column("unit_of_measure", sa.String(length=30), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("unit_price", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("total_value", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["transfer_order_id"], ["transfer_orders.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "transfer_results"):
        op.create_table(
            "transfer_results",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("transfer_order_id", sa.String(length=36), nullable=False),
            sa.Column("item_code", sa.String(length=60), nullable=False),
            sa.Column("item_type", sa.String(length=20), nullable=False),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["transfer_order_id"], ["transfer_orders.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "sales_orders"):
        op.create_table(
            "sales_orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_number", sa.String(length=60), nullable=False),
            sa.Column("outlet", sa.String(length=40), nullable=False),
            sa.Column("outlet_code", sa.String(length=20), nullable=False),
            sa.Column("outlet_name", sa.String(length=120), nullable=False),
            sa.Column("customer_name", sa.String(length=200), nullable=True),
            sa.Column("customer_phone", sa.String(length=40), nullable=True),
            sa.Column("order_type", sa.String(length=20), nullable=False, server_default="Dine-in"),
            sa.Column("table_number", sa.String(length=20), nullable=True),
            sa.Column("subtotal", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("discount_amount", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("tax_amount", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("total_amount", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=30), nullable=True),
            sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="Pending"),
            sa.Column("order_status", sa.String(length=20), nullable=False, server_default="Pending"),
            sa.Column("order_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("served_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("consumption_json", sa.JSON(), nullable=True),
            sa.Column("zoho_status", sa.String(length=10), nullable=False, server_default="none"),
            sa.Column("zoho_invoice_id", sa.String(length=60), nullable=True),
            sa.Column("zoho_invoice_number", sa.String(length=60), nullable=True),
            sa.Column("zoho_error", sa.Text(), nullable=True),
            sa.Column("zoho_pushed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=120), nullable=True),
            sa.Column("updated_by", sa.String(length=120), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "sales_order_items"):
        op.create_table(
            "sales_order_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sales_order_id", sa.String(length=36), nullable=False),
            sa.Column("line_type", sa.String(length=10), nullable=False),
            sa.Column("product_code", sa.String(length=60), nullable=False),
            sa.Column("product_name", sa.String(length=200), nullable=False),
            sa.Column("bom_code", sa.String(length=60), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("unit_price", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("line_total", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["sales_order_id"], ["sales_orders.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "location_list"):
        op.create_table(
            "location_list",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("zoho_location_id", sa.String(length=60), nullable=False),
            sa.Column("location_name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Active"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "item_list"):
        op.create_table(
            "item_list",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sku", sa.String(length=60), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("category", sa.String(length=120), nullable=True),
            sa.Column("unit", sa.String(length=30), nullable=True),
            sa.Column("rate", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("zoho_item_id", sa.String(length=60), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False, server_default="info"),
            sa.Column("target_outlet", sa.String(length=40), nullable=False),
            sa.Column("source_outlet", sa.String(length=40), nullable=True),
            sa.Column("transfer_order_id", sa.String(length=36), nullable=True),
            sa.Column("item_type", sa.String(length=20), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="normal"),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    for table_name, index_name, columns, unique in _INDEXES:
        if _table_exists(inspector, table_name) and not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=unique)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name, index_name, _, _ in reversed(_INDEXES):
        if _table_exists(inspector, table_name) and _index_exists(inspector, table_name, index_name):
            op.drop_index(index_name, table_name=table_name)

    for table_name in (
        "notifications",
        "item_list",
        "location_list",
        "sales_order_items",
        "sales_orders",
        "transfer_results",
        "transfer_order_items",
        "transfer_orders",
        "bom_items",
        "bill_of_materials",
        "audit_logs",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
