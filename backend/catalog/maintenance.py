"""
Staging maintenance — operator review of staged rows.

List with catalog enrichment, skip a row, bulk delete rows.
"""

import math
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import IMPORT_STATUSES, Channel, Product, StagedProduct

logger = structlog.get_logger()


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching `text` literally anywhere. Escape character is a backslash."""
    escaped = text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _channel_scope(channel: Channel):
    return and_(
        StagedProduct.channel_id == channel.channel_id,
        StagedProduct.account_id == channel.account_id,
    )


async def staging_counts(db: AsyncSession, channel: Channel) -> dict[str, int]:
    """Per-status counts for the whole channel, independent of list filters."""
    result = await db.execute(
        select(StagedProduct.import_status, func.count())
        .where(_channel_scope(channel))
        .group_by(StagedProduct.import_status)
    )
    counts = {status: 0 for status in IMPORT_STATUSES}
    for status, count in result.all():
        counts[status] = count
    counts["total"] = sum(counts[status] for status in IMPORT_STATUSES)
    return counts


async def list_staged_products(
    db: AsyncSession,
    channel: Channel,
    *,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict[str, Any]:
    """
    One page of staged rows, each flagged with whether its SKU already
    exists in the account's catalog.
    """
    filters = [_channel_scope(channel)]
    if status:
        filters.append(StagedProduct.import_status == status)
    if search:
        pattern = contains_pattern(search)
        filters.append(
            or_(
                StagedProduct.name.ilike(pattern, escape="\\"),
                StagedProduct.external_sku.ilike(pattern, escape="\\"),
            )
        )

    total = (await db.execute(select(func.count()).select_from(StagedProduct).where(*filters))).scalar_one()

    rows = (
        await db.execute(
            select(StagedProduct, Product.product_id)
            .outerjoin(
                Product,
                and_(
                    Product.account_id == StagedProduct.account_id,
                    Product.sku == StagedProduct.external_sku,
                ),
            )
            .where(*filters)
            .order_by(StagedProduct.synced_at.desc(), StagedProduct.external_id)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
    ).all()

    products = []
    for staged, existing_product_id in rows:
        products.append(
            {
                "id": str(staged.id),
                "external_id": staged.external_id,
                "external_sku": staged.external_sku,
                "name": staged.name,
                "description": staged.description,
                "price": float(staged.price) if staged.price is not None else 0.0,
                "currency": staged.currency,
                "stock": staged.stock,
                "status": staged.status,
                "import_status": staged.import_status,
                "import_error": staged.import_error,
                "imported_product_id": str(staged.imported_product_id) if staged.imported_product_id else None,
                "imported_at": staged.imported_at.isoformat() if staged.imported_at else None,
                "synced_at": staged.synced_at.isoformat() if staged.synced_at else None,
                "exists_in_inventory": existing_product_id is not None,
                "existing_product_id": str(existing_product_id) if existing_product_id else None,
            }
        )

    return {
        "products": products,
        "counts": await staging_counts(db, channel),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


async def skip_staged_product(db: AsyncSession, channel: Channel, staging_id: uuid.UUID) -> StagedProduct | None:
    """Mark one row skipped. Returns None when the row is not in this channel."""
    result = await db.execute(
        select(StagedProduct)
        .where(_channel_scope(channel), StagedProduct.id == staging_id)
        .execution_options(populate_existing=True)
    )
    staged = result.scalar_one_or_none()
    if staged is None:
        return None

    staged.import_status = "skipped"
    staged.updated_at = datetime.utcnow()
    await db.commit()

    logger.info(
        "catalog.staging.skipped",
        account_id=str(channel.account_id),
        channel_id=str(channel.channel_id),
        staging_id=str(staging_id),
    )
    return staged


async def delete_staged_products(
    db: AsyncSession,
    channel: Channel,
    *,
    staging_product_ids: Sequence[uuid.UUID] | None = None,
    delete_all_skipped: bool = False,
) -> int:
    """Delete explicit rows and/or every skipped row of the channel. Returns the count."""
    selectors = []
    if staging_product_ids:
        selectors.append(StagedProduct.id.in_(list(staging_product_ids)))
    if delete_all_skipped:
        selectors.append(StagedProduct.import_status == "skipped")
    if not selectors:
        raise ValueError("Provide staging_product_ids or delete_all_skipped")

    result = await db.execute(
        delete(StagedProduct)
        .where(_channel_scope(channel), or_(*selectors))
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    deleted = result.rowcount or 0
    logger.info(
        "catalog.staging.deleted",
        account_id=str(channel.account_id),
        channel_id=str(channel.channel_id),
        deleted=deleted,
        delete_all_skipped=delete_all_skipped,
    )
    return deleted


async def release_product_references(db: AsyncSession, product_id: uuid.UUID) -> None:
    """Staging rows imported into a product that is being deleted go back to pending."""
    await db.execute(
        update(StagedProduct)
        .where(StagedProduct.imported_product_id == product_id)
        .values(imported_product_id=None, import_status="pending", imported_at=None, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
