"""
Initial schema - accounts, channels, catalog, staging, sync logs

Revision ID: 001
Revises: None
Create Date: 2026-09-14
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Accounts
    op.create_table(
        "accounts",
        sa.Column("account_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("plan", sa.String(50), nullable=False, server_default="free"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 2. Channels
    op.create_table(
        "channels",
        sa.Column("channel_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("account_id", UUID(as_uuid=True), sa.ForeignKey("accounts.account_id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("channel_type", sa.String(50), nullable=False),
        sa.Column("credentials", JSONB, nullable=False, server_default="{}"),
        sa.Column("config", JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("last_error", sa.Text),
        sa.Column("last_sync_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("channel_type IN ('siigo', 'shopify', 'woocommerce')", name="ck_channel_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'connected', 'warning', 'error', 'disconnected')",
            name="ck_channel_status",
        ),
    )
    op.create_index("ix_channels_account", "channels", ["account_id"])

    # 3. Products (catalog)
    op.create_table(
        "products",
        sa.Column("product_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("account_id", UUID(as_uuid=True), sa.ForeignKey("accounts.account_id"), nullable=False),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("price", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="COP"),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("account_id", "sku", name="uq_product_sku_per_account"),
        sa.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )
    op.create_index("ix_products_account", "products", ["account_id"])

    # 4. Channel products (link)
    op.create_table(
        "channel_products",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "channel_id",
            UUID(as_uuid=True),
            sa.ForeignKey("channels.channel_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            UUID(as_uuid=True),
            sa.ForeignKey("products.product_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("external_sku", sa.String(255)),
        sa.Column("external_price", sa.Numeric(15, 2)),
        sa.Column("sync_status", sa.String(50), nullable=False, server_default="synced"),
        sa.Column("sync_error", sa.Text),
        sa.Column("synced_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("channel_id", "product_id", name="uq_channel_product"),
        sa.UniqueConstraint("channel_id", "external_id", name="uq_channel_external_id"),
    )
    op.create_index("ix_channel_products_product", "channel_products", ["product_id"])

    # 5. Channel products staging
    op.create_table(
        "channel_products_staging",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("account_id", UUID(as_uuid=True), sa.ForeignKey("accounts.account_id"), nullable=False),
        sa.Column(
            "channel_id",
            UUID(as_uuid=True),
            sa.ForeignKey("channels.channel_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("external_sku", sa.String(255)),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("price", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(10), nullable=False, server_default="COP"),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(50)),
        sa.Column("raw_data", JSONB),
        sa.Column("import_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("import_error", sa.Text),
        sa.Column("imported_at", sa.DateTime),
        sa.Column(
            "imported_product_id",
            UUID(as_uuid=True),
            sa.ForeignKey("products.product_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("synced_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("channel_id", "external_id", name="uq_staging_product_per_channel"),
        sa.CheckConstraint(
            "import_status IN ('pending', 'imported', 'skipped', 'error')",
            name="ck_staging_import_status",
        ),
    )
    op.create_index("ix_staging_account", "channel_products_staging", ["account_id"])
    op.create_index("ix_staging_channel_status", "channel_products_staging", ["channel_id", "import_status"])
    op.create_index("ix_staging_external_sku", "channel_products_staging", ["external_sku"])

    # 6. Sync logs
    op.create_table(
        "sync_logs",
        sa.Column("log_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("account_id", UUID(as_uuid=True), sa.ForeignKey("accounts.account_id"), nullable=False),
        sa.Column(
            "channel_id",
            UUID(as_uuid=True),
            sa.ForeignKey("channels.channel_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("records_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("payload", JSONB, server_default="{}"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('success', 'warning', 'error')", name="ck_sync_log_status"),
    )
    op.create_index("ix_sync_logs_account_created", "sync_logs", ["account_id", "created_at"])


def downgrade() -> None:
    op.drop_table("sync_logs")
    op.drop_table("channel_products_staging")
    op.drop_table("channel_products")
    op.drop_table("products")
    op.drop_table("channels")
    op.drop_table("accounts")
