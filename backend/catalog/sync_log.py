"""
Sync log writer.

One immutable row per sync / import attempt. Rows are added to the
caller's session and persisted with the caller's commit.
"""

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import SyncLog

logger = structlog.get_logger()

SYNC_EVENT = "channel_product_sync"
IMPORT_EVENT = "channel_product_import"
TEST_EVENT = "channel_connection_test"


def record_sync_log(
    db: AsyncSession,
    *,
    account_id: uuid.UUID,
    channel_id: uuid.UUID | None,
    event_type: str,
    status: str,
    records_processed: int = 0,
    payload: dict[str, Any] | None = None,
) -> SyncLog:
    entry = SyncLog(
        account_id=account_id,
        channel_id=channel_id,
        event_type=event_type,
        status=status,
        records_processed=records_processed,
        payload=payload or {},
    )
    db.add(entry)
    logger.info(
        "sync_log.recorded",
        account_id=str(account_id),
        channel_id=str(channel_id) if channel_id else None,
        event_type=event_type,
        status=status,
        records_processed=records_processed,
    )
    return entry


async def recent_sync_logs(db: AsyncSession, account_id: uuid.UUID, limit: int = 20) -> list[SyncLog]:
    """Newest first."""
    result = await db.execute(
        select(SyncLog)
        .where(SyncLog.account_id == account_id)
        .order_by(SyncLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
