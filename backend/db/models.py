"""
Fluxi Database Models

Multi-tenant via account_id on all tables. Staging rows and channel
links are further partitioned by channel_id.

Tables:
  1. accounts                  - Tenant organizations
  2. channels                  - Configured connection to one external platform
  3. products                  - Canonical product catalog, unique per (account, sku)
  4. channel_products          - Catalog product <-> channel external id link
  5. channel_products_staging  - Last fetched external representation per (channel, external_id)
  6. sync_logs                 - Append-only audit of sync / import attempts
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# Alias so Column(UUID(as_uuid=True)) calls read like the migrations
def UUID(as_uuid=True):
    return GUID()


from sqlalchemy.orm import relationship

from db.session import Base

CHANNEL_TYPES = ("siigo", "shopify", "woocommerce")
CHANNEL_STATUSES = ("pending", "connected", "warning", "error", "disconnected")
IMPORT_STATUSES = ("pending", "imported", "skipped", "error")
SYNC_LOG_STATUSES = ("success", "warning", "error")

# Catalog column widths. Staged rows are checked against them before import.
PRODUCT_SKU_LENGTH = 100
PRODUCT_NAME_LENGTH = 255

# ─── 1. Accounts ───────────────────────────────────────────────────────────


class Account(Base):
    __tablename__ = "accounts"

    account_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False)
    plan = Column(String(50), nullable=False, default="free")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    channels = relationship("Channel", back_populates="account", cascade="all, delete-orphan")
    products = relationship("Product", back_populates="account", cascade="all, delete-orphan")


# ─── 2. Channels ───────────────────────────────────────────────────────────


class Channel(Base):
    __tablename__ = "channels"

    channel_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False)
    name = Column(String(255), nullable=False)
    channel_type = Column(String(50), nullable=False)
    credentials = Column(JSON, nullable=False, default=dict)  # secret fields Fernet-sealed
    config = Column(JSON, nullable=False, default=dict)  # base URLs, currency, page size overrides
    status = Column(String(20), nullable=False, default="pending")
    last_error = Column(Text)
    last_sync_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_channels_account", "account_id"),
        CheckConstraint("channel_type IN ('siigo', 'shopify', 'woocommerce')", name="ck_channel_type"),
        CheckConstraint(
            "status IN ('pending', 'connected', 'warning', 'error', 'disconnected')",
            name="ck_channel_status",
        ),
    )

    account = relationship("Account", back_populates="channels")


# ─── 3. Products (catalog) ─────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    product_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False)
    sku = Column(String(PRODUCT_SKU_LENGTH), nullable=False)
    name = Column(String(PRODUCT_NAME_LENGTH), nullable=False)
    description = Column(Text)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="COP")
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("account_id", "sku", name="uq_product_sku_per_account"),
        Index("ix_products_account", "account_id"),
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    account = relationship("Account", back_populates="products")
    channel_links = relationship("ChannelProduct", back_populates="product", cascade="all, delete-orphan")


# ─── 4. Channel Products (link) ────────────────────────────────────────────


class ChannelProduct(Base):
    __tablename__ = "channel_products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    channel_id = Column(UUID(as_uuid=True), ForeignKey("channels.channel_id", ondelete="CASCADE"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(255), nullable=False)
    external_sku = Column(String(255))
    external_price = Column(Numeric(15, 2))
    sync_status = Column(String(50), nullable=False, default="synced")
    sync_error = Column(Text)
    synced_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("channel_id", "product_id", name="uq_channel_product"),
        UniqueConstraint("channel_id", "external_id", name="uq_channel_external_id"),
        Index("ix_channel_products_product", "product_id"),
    )

    product = relationship("Product", back_populates="channel_links")


# ─── 5. Channel Products Staging ───────────────────────────────────────────


class StagedProduct(Base):
    __tablename__ = "channel_products_staging"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False)
    channel_id = Column(UUID(as_uuid=True), ForeignKey("channels.channel_id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(255), nullable=False)
    external_sku = Column(String(255))
    name = Column(String(PRODUCT_NAME_LENGTH), nullable=False)
    description = Column(Text)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="COP")
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String(50))  # free text as reported upstream
    raw_data = Column(JSON)
    import_status = Column(String(20), nullable=False, default="pending")
    import_error = Column(Text)
    imported_at = Column(DateTime)
    imported_product_id = Column(
        UUID(as_uuid=True),
        ForeignKey("products.product_id", ondelete="SET NULL"),
        nullable=True,
    )
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("channel_id", "external_id", name="uq_staging_product_per_channel"),
        Index("ix_staging_account", "account_id"),
        Index("ix_staging_channel_status", "channel_id", "import_status"),
        Index("ix_staging_external_sku", "external_sku"),
        CheckConstraint(
            "import_status IN ('pending', 'imported', 'skipped', 'error')",
            name="ck_staging_import_status",
        ),
    )


# ─── 6. Sync Logs ──────────────────────────────────────────────────────────


class SyncLog(Base):
    __tablename__ = "sync_logs"

    log_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("accounts.account_id"), nullable=False)
    channel_id = Column(UUID(as_uuid=True), ForeignKey("channels.channel_id", ondelete="SET NULL"), nullable=True)
    event_type = Column(String(100), nullable=False)  # channel_product_sync, channel_product_import, ...
    status = Column(String(20), nullable=False)
    records_processed = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_sync_logs_account_created", "account_id", "created_at"),
        CheckConstraint("status IN ('success', 'warning', 'error')", name="ck_sync_log_status"),
    )
