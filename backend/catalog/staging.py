"""
Channel Staging Sync — external channel → channel_products_staging.

Called when an operator triggers a sync for one channel:
1. Fetch every product page through the channel adapter
2. Load the external ids already staged for the channel (once)
3. Normalize and upsert each record by (channel_id, external_id)
4. Set channel status / last_sync_at and write a sync log entry

Batch-level upstream failures abort before anything is staged, mark the
channel "error" and raise ChannelSyncError. Record-level failures are
collected and never abort the batch.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.sync_log import SYNC_EVENT, record_sync_log
from catalog.upsert import upsert
from core.config import get_settings
from db.models import PRODUCT_NAME_LENGTH, Channel, StagedProduct
from integrations.base import (
    ChannelAdapter,
    ChannelAdapterError,
    ChannelAuthError,
    ChannelFetchError,
    ExternalProduct,
)

logger = structlog.get_logger()

# Fields a re-sync overwrites. import_status / imported_product_id survive.
STAGING_UPDATE_FIELDS = (
    "external_sku",
    "name",
    "description",
    "price",
    "currency",
    "stock",
    "status",
    "raw_data",
    "synced_at",
    "updated_at",
)


class ChannelSyncError(Exception):
    """The channel could not be fetched. Channel row and sync log already record it."""

    def __init__(self, message: str, *, channel_id, reason: str):
        super().__init__(message)
        self.channel_id = channel_id
        self.reason = reason


@dataclass
class StagingSyncResult:
    channel_id: str
    channel_type: str
    total_fetched: int = 0
    new_products: int = 0
    updated_products: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self, sample_size: int) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "total_fetched": self.total_fetched,
            f"total_from_{self.channel_type}": self.total_fetched,
            "new_products": self.new_products,
            "updated_products": self.updated_products,
            "errors": self.errors[:sample_size],
            "error_count": self.error_count,
        }


def _failure_reason(exc: ChannelAdapterError) -> str:
    if isinstance(exc, ChannelAuthError):
        return "authentication_failed"
    if isinstance(exc, ChannelFetchError):
        return "products_fetch_failed"
    return "configuration_error"


async def stage_external_product(
    db: AsyncSession,
    channel: Channel,
    product: ExternalProduct,
    synced_at: datetime,
) -> None:
    """Upsert one staging row by (channel_id, external_id)."""
    await upsert(
        db,
        StagedProduct,
        {
            "account_id": channel.account_id,
            "channel_id": channel.channel_id,
            "external_id": product.external_id,
            "external_sku": product.external_sku,
            "name": product.name[:PRODUCT_NAME_LENGTH],
            "description": product.description,
            "price": product.price,
            "currency": product.currency,
            "stock": product.stock,
            "status": product.status,
            "raw_data": product.raw_data,
            "import_status": "pending",
            "synced_at": synced_at,
            "updated_at": synced_at,
        },
        conflict_on=("channel_id", "external_id"),
        update_fields=STAGING_UPDATE_FIELDS,
    )


async def sync_channel_products(
    db: AsyncSession,
    channel: Channel,
    adapter: ChannelAdapter,
) -> StagingSyncResult:
    """
    Pull the channel's full product list into staging.

    Raises ChannelSyncError after committing the channel error state
    when authentication or any page fetch fails.
    """
    settings = get_settings()
    log = logger.bind(
        account_id=str(channel.account_id),
        channel_id=str(channel.channel_id),
        channel_type=channel.channel_type,
    )
    log.info("channel.sync.started")

    try:
        records = await adapter.fetch_all_products()
    except ChannelAdapterError as exc:
        reason = _failure_reason(exc)
        channel.status = "error"
        channel.last_error = str(exc)
        record_sync_log(
            db,
            account_id=channel.account_id,
            channel_id=channel.channel_id,
            event_type=SYNC_EVENT,
            status="error",
            payload={"error": reason, "message": str(exc), "upstream_status": exc.status_code},
        )
        await db.commit()
        log.warning("channel.sync.fetch_failed", reason=reason, error=str(exc))
        raise ChannelSyncError(str(exc), channel_id=channel.channel_id, reason=reason) from exc

    result = StagingSyncResult(
        channel_id=str(channel.channel_id),
        channel_type=channel.channel_type,
        total_fetched=len(records),
    )

    existing = await db.execute(
        select(StagedProduct.external_id).where(StagedProduct.channel_id == channel.channel_id)
    )
    known_ids = set(existing.scalars().all())
    now = datetime.utcnow()

    for record in records:
        try:
            product = adapter.normalize(record)
            async with db.begin_nested():
                await stage_external_product(db, channel, product, now)
        except Exception as exc:  # noqa: BLE001 - isolated per record
            result.errors.append(
                {
                    "external_id": str(record.get("id")) if record.get("id") is not None else None,
                    "sku": record.get("code") or record.get("sku"),
                    "error": str(exc),
                }
            )
            continue

        # A repeated id within one fetch counts as updated after its first occurrence
        if product.external_id in known_ids:
            result.updated_products += 1
        else:
            result.new_products += 1
            known_ids.add(product.external_id)

    channel.status = "warning" if result.errors else "connected"
    channel.last_error = f"{result.error_count} products failed to stage" if result.errors else None
    channel.last_sync_at = now

    record_sync_log(
        db,
        account_id=channel.account_id,
        channel_id=channel.channel_id,
        event_type=SYNC_EVENT,
        status="warning" if result.errors else "success",
        records_processed=result.new_products + result.updated_products,
        payload={
            "source": channel.channel_type,
            "total_fetched": result.total_fetched,
            "new_products": result.new_products,
            "updated_products": result.updated_products,
            "errors": result.errors[: settings.sync_error_sample_size],
            "error_count": result.error_count,
        },
    )
    await db.commit()

    log.info(
        "channel.sync.completed",
        total_fetched=result.total_fetched,
        new_products=result.new_products,
        updated_products=result.updated_products,
        error_count=result.error_count,
    )
    return result
