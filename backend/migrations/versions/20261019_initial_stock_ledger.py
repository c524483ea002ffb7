"""Initial stock ledger schema: products, transaction log, alerts, users, audit

Revision ID: 20261019_initial_stock_ledger
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial_stock_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("supplier", sa.String(length=255), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock_threshold", sa.Integer(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("last_updated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lifecycle_state", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        sa.CheckConstraint(
            "min_stock_threshold IS NULL OR min_stock_threshold >= 0",
            name="ck_products_threshold_non_negative",
        ),
        sa.CheckConstraint("unit_price >= 0", name="ck_products_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_lifecycle_state", "products", ["lifecycle_state"], unique=False)
    op.create_index("ix_products_deleted_at", "products", ["deleted_at"], unique=False)
    op.create_index("ix_products_state_name", "products", ["lifecycle_state", "name"], unique=False)

    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("performed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_transactions_sku", "stock_transactions", ["sku"], unique=False)
    op.create_index("ix_stock_transactions_occurred_at", "stock_transactions", ["occurred_at"], unique=False)
    op.create_index("ix_stocktx_sku_occurred", "stock_transactions", ["sku", "occurred_at"], unique=False)
    op.create_index("ix_stocktx_kind_occurred", "stock_transactions", ["kind", "occurred_at"], unique=False)

    op.create_table(
        "sku_sequences",
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("prefix"),
    )

    op.create_table(
        "low_stock_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("alert_sent_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_low_stock_alerts_sku", "low_stock_alerts", ["sku"], unique=False)
    op.create_index("ix_low_stock_alerts_resolved_sent", "low_stock_alerts", ["is_resolved", "alert_sent_at"], unique=False)
    # At most one open alert per SKU
    op.create_index(
        "uq_low_stock_alerts_open_sku",
        "low_stock_alerts",
        ["sku"],
        unique=True,
        sqlite_where=sa.text("is_resolved = 0"),
        postgresql_where=sa.text("NOT is_resolved"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="EMPLOYEE"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("pre_delete_status", sa.String(length=16), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lifecycle_state", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_lifecycle_state", "users", ["lifecycle_state"], unique=False)
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"], unique=False)
    op.create_index("ix_users_role_status", "users", ["role", "status"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(length=64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_audit_logs_occurred", "audit_logs", ["occurred_at"], unique=False)


def downgrade():
    op.drop_index("ix_audit_logs_occurred", table_name="audit_logs")
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_user_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_users_role_status", table_name="users")
    op.drop_index("ix_users_deleted_at", table_name="users")
    op.drop_index("ix_users_lifecycle_state", table_name="users")
    op.drop_table("users")

    op.drop_index("uq_low_stock_alerts_open_sku", table_name="low_stock_alerts")
    op.drop_index("ix_low_stock_alerts_resolved_sent", table_name="low_stock_alerts")
    op.drop_index("ix_low_stock_alerts_sku", table_name="low_stock_alerts")
    op.drop_table("low_stock_alerts")

    op.drop_table("sku_sequences")

    op.drop_index("ix_stocktx_kind_occurred", table_name="stock_transactions")
    op.drop_index("ix_stocktx_sku_occurred", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_occurred_at", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_sku", table_name="stock_transactions")
    op.drop_table("stock_transactions")

    op.drop_index("ix_products_state_name", table_name="products")
    op.drop_index("ix_products_deleted_at", table_name="products")
    op.drop_index("ix_products_lifecycle_state", table_name="products")
    op.drop_table("products")
