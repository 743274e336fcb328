"""
Catalog Import — channel_products_staging → products.

For each selected staging row:
1. Upsert the catalog product by (account_id, sku = external_sku)
2. Point the channel link for (channel, external_id) at that product
3. Mark the staging row imported with the product id

Each row runs inside its own SAVEPOINT. A failed row is marked "error"
and the batch continues; there is no whole-batch rollback.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.sync_log import IMPORT_EVENT, record_sync_log
from catalog.upsert import upsert
from core.config import get_settings
from db.models import PRODUCT_SKU_LENGTH, Channel, ChannelProduct, Product, StagedProduct

logger = structlog.get_logger()

PRODUCT_UPDATE_FIELDS = ("name", "description", "price", "stock", "currency", "status", "updated_at")
LINK_UPDATE_FIELDS = (
    "product_id",
    "external_sku",
    "external_price",
    "sync_status",
    "sync_error",
    "synced_at",
    "updated_at",
)


@dataclass
class ImportResult:
    imported_count: int = 0
    product_ids: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def status(self) -> str:
        if not self.errors:
            return "success"
        return "warning" if self.imported_count else "error"

    def to_dict(self, sample_size: int) -> dict[str, Any]:
        return {
            "imported_count": self.imported_count,
            "product_ids": self.product_ids,
            "errors": self.errors[:sample_size],
            "error_count": self.error_count,
        }


async def upsert_catalog_product(db: AsyncSession, account_id: uuid.UUID, row, now: datetime) -> uuid.UUID:
    """Insert or update the catalog product for row.external_sku. Returns product_id."""
    returned = await upsert(
        db,
        Product,
        {
            "account_id": account_id,
            "sku": row.external_sku,
            "name": row.name,
            "description": row.description,
            "price": row.price,
            "stock": row.stock,
            "currency": row.currency,
            "status": row.status or "active",
            "updated_at": now,
        },
        conflict_on=("account_id", "sku"),
        update_fields=PRODUCT_UPDATE_FIELDS,
        returning=(Product.product_id,),
    )
    return returned.product_id


async def link_channel_product(
    db: AsyncSession,
    channel_id: uuid.UUID,
    product_id: uuid.UUID,
    row,
    now: datetime,
) -> None:
    """Keep exactly one link per (channel, product) and per (channel, external_id)."""
    await db.execute(
        delete(ChannelProduct).where(
            ChannelProduct.channel_id == channel_id,
            ChannelProduct.product_id == product_id,
            ChannelProduct.external_id != row.external_id,
        )
    )
    await upsert(
        db,
        ChannelProduct,
        {
            "channel_id": channel_id,
            "product_id": product_id,
            "external_id": row.external_id,
            "external_sku": row.external_sku,
            "external_price": row.price,
            "sync_status": "synced",
            "sync_error": None,
            "synced_at": now,
            "updated_at": now,
        },
        conflict_on=("channel_id", "external_id"),
        update_fields=LINK_UPDATE_FIELDS,
    )


async def _mark_error(db: AsyncSession, staging_id: uuid.UUID, message: str, now: datetime) -> None:
    async with db.begin_nested():
        await db.execute(
            update(StagedProduct)
            .where(StagedProduct.id == staging_id)
            .values(import_status="error", import_error=message[:1000], updated_at=now)
        )


async def import_staged_products(
    db: AsyncSession,
    channel: Channel,
    *,
    staging_product_ids: Sequence[uuid.UUID] | None = None,
    import_all: bool = False,
) -> ImportResult:
    """
    Merge staged rows into the catalog.

    Explicit ids select rows in any import status. import_all selects
    pending rows only. Ids that do not belong to the channel are reported
    as errors.
    """
    settings = get_settings()
    log = logger.bind(account_id=str(channel.account_id), channel_id=str(channel.channel_id))

    scope = and_(
        StagedProduct.channel_id == channel.channel_id,
        StagedProduct.account_id == channel.account_id,
    )
    stmt = select(
        StagedProduct.id,
        StagedProduct.external_id,
        StagedProduct.external_sku,
        StagedProduct.name,
        StagedProduct.description,
        StagedProduct.price,
        StagedProduct.stock,
        StagedProduct.currency,
        StagedProduct.status,
    ).where(scope)
    if staging_product_ids:
        stmt = stmt.where(StagedProduct.id.in_(list(staging_product_ids)))
    elif import_all:
        stmt = stmt.where(StagedProduct.import_status == "pending")
    else:
        raise ValueError("Provide staging_product_ids or import_all")

    rows = (await db.execute(stmt.order_by(StagedProduct.created_at, StagedProduct.external_id))).all()
    log.info("catalog.import.started", selected=len(rows), import_all=import_all and not staging_product_ids)

    result = ImportResult()
    if staging_product_ids:
        found = {row.id for row in rows}
        for missing in dict.fromkeys(staging_product_ids):
            if missing not in found:
                result.errors.append({"staging_product_id": str(missing), "error": "Staging product not found"})

    now = datetime.utcnow()
    for row in rows:
        try:
            if not row.external_sku:
                raise ValueError("Staged product has no SKU")
            if len(row.external_sku) > PRODUCT_SKU_LENGTH:
                raise ValueError(f"SKU longer than {PRODUCT_SKU_LENGTH} characters")
            async with db.begin_nested():
                product_id = await upsert_catalog_product(db, channel.account_id, row, now)
                await link_channel_product(db, channel.channel_id, product_id, row, now)
                await db.execute(
                    update(StagedProduct)
                    .where(StagedProduct.id == row.id)
                    .values(
                        import_status="imported",
                        import_error=None,
                        imported_at=now,
                        imported_product_id=product_id,
                        updated_at=now,
                    )
                )
        except Exception as exc:  # noqa: BLE001 - isolated per row
            await _mark_error(db, row.id, str(exc), now)
            result.errors.append(
                {
                    "staging_product_id": str(row.id),
                    "external_id": row.external_id,
                    "sku": row.external_sku,
                    "error": str(exc),
                }
            )
            continue

        result.imported_count += 1
        result.product_ids.append(str(product_id))

    record_sync_log(
        db,
        account_id=channel.account_id,
        channel_id=channel.channel_id,
        event_type=IMPORT_EVENT,
        status=result.status,
        records_processed=result.imported_count,
        payload={
            "selected": len(rows),
            "imported_count": result.imported_count,
            "import_all": bool(import_all and not staging_product_ids),
            "errors": result.errors[: settings.sync_error_sample_size],
            "error_count": result.error_count,
        },
    )
    await db.commit()

    log.info(
        "catalog.import.completed",
        imported_count=result.imported_count,
        error_count=result.error_count,
        status=result.status,
    )
    return result
