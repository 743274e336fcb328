"""
Sync Router — recent sync / import activity and channel health.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import RequestContext, get_current_user, get_tenant_db, require_account
from catalog.sync_log import recent_sync_logs
from db.models import Channel

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


class SyncLogResponse(BaseModel):
    log_id: UUID
    channel_id: UUID | None
    event_type: str
    status: str
    records_processed: int
    payload: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ChannelHealth(BaseModel):
    channel_id: UUID
    name: str
    channel_type: str
    status: str
    last_error: str | None
    last_sync_at: datetime | None

    model_config = {"from_attributes": True}


class SyncStatusResponse(BaseModel):
    account_id: UUID
    channels: list[ChannelHealth]
    recent_logs: list[SyncLogResponse]


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    account_id: UUID | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Newest sync log entries plus the state of every channel."""
    account_id = require_account(context, account_id)
    channels = await db.execute(
        select(Channel).where(Channel.account_id == account_id).order_by(Channel.created_at)
    )
    return {
        "account_id": account_id,
        "channels": channels.scalars().all(),
        "recent_logs": await recent_sync_logs(db, account_id, limit=limit),
    }
