"""
Channels Router — channel registration, product sync, staging review and import.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import httpx
import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import (
    RequestContext,
    get_channel_http_client,
    get_current_user,
    get_tenant_db,
    require_account,
)
from catalog.importer import import_staged_products
from catalog.maintenance import delete_staged_products, list_staged_products, skip_staged_product
from catalog.staging import ChannelSyncError, sync_channel_products
from catalog.sync_log import TEST_EVENT, record_sync_log
from core.config import get_settings
from core.security import seal_credentials
from db.models import Channel
from integrations.base import (
    ChannelAdapter,
    ChannelAdapterError,
    ChannelConfigError,
    build_channel_adapter,
    get_adapter,
)

router = APIRouter(prefix="/api/v1/channels", tags=["channels"])
settings = get_settings()
logger = structlog.get_logger()


# ─── Schemas ────────────────────────────────────────────────────────────────


class ChannelCreate(BaseModel):
    account_id: UUID | None = None
    name: str = Field(..., min_length=1, max_length=255)
    channel_type: str = Field(..., min_length=1, max_length=50)
    credentials: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)


class ChannelResponse(BaseModel):
    channel_id: UUID
    account_id: UUID
    name: str
    channel_type: str
    status: str
    last_error: str | None
    last_sync_at: datetime | None
    config: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountScopedRequest(BaseModel):
    account_id: UUID


class ImportRequest(AccountScopedRequest):
    staging_product_ids: list[UUID] | None = None
    import_all: bool = False


class DeleteStagingRequest(AccountScopedRequest):
    staging_product_ids: list[UUID] | None = None
    delete_all_skipped: bool = False


# ─── Helpers ────────────────────────────────────────────────────────────────


async def _get_channel(db: AsyncSession, channel_id: UUID, account_id: UUID) -> Channel:
    result = await db.execute(
        select(Channel)
        .where(Channel.channel_id == channel_id, Channel.account_id == account_id)
        .execution_options(populate_existing=True)
    )
    channel = result.scalar_one_or_none()
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


def _build_adapter(channel: Channel, http_client: httpx.AsyncClient | None) -> ChannelAdapter:
    try:
        return build_channel_adapter(channel, http_client=http_client)
    except ChannelConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ─── Channels ───────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ChannelResponse])
async def list_channels(
    account_id: UUID | None = None,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """List the account's channels."""
    account_id = require_account(context, account_id)
    result = await db.execute(
        select(Channel).where(Channel.account_id == account_id).order_by(Channel.created_at)
    )
    return result.scalars().all()


@router.post("/", response_model=ChannelResponse, status_code=201)
async def create_channel(
    payload: ChannelCreate,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Register a channel. Credentials are validated for shape, then sealed."""
    account_id = require_account(context, payload.account_id)
    try:
        get_adapter(payload.channel_type, str(account_id), payload.credentials, payload.config)
    except ChannelConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    channel = Channel(
        account_id=account_id,
        name=payload.name,
        channel_type=payload.channel_type,
        credentials=seal_credentials(payload.credentials),
        config=payload.config,
        status="pending",
    )
    db.add(channel)
    await db.commit()
    await db.refresh(channel)

    logger.info(
        "channel.created",
        account_id=str(account_id),
        channel_id=str(channel.channel_id),
        channel_type=channel.channel_type,
    )
    return channel


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel(
    channel_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Get a single channel by ID."""
    return await _get_channel(db, channel_id, context.account_id)


@router.post("/{channel_id}/test")
async def test_channel_connection(
    channel_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
    http_client: httpx.AsyncClient | None = Depends(get_channel_http_client),
):
    """Authenticate against the channel without fetching products."""
    channel = await _get_channel(db, channel_id, context.account_id)
    adapter = _build_adapter(channel, http_client)

    try:
        await adapter.test_connection()
    except ChannelAdapterError as exc:
        channel.status = "error"
        channel.last_error = str(exc)
    else:
        channel.status = "connected"
        channel.last_error = None

    connected = channel.status == "connected"
    record_sync_log(
        db,
        account_id=channel.account_id,
        channel_id=channel.channel_id,
        event_type=TEST_EVENT,
        status="success" if connected else "error",
        payload={"error": channel.last_error} if not connected else {},
    )
    await db.commit()

    logger.info(
        "channel.test.completed",
        account_id=str(channel.account_id),
        channel_id=str(channel.channel_id),
        connected=connected,
    )
    return {
        "channel_id": str(channel.channel_id),
        "connected": connected,
        "status": channel.status,
        "error": channel.last_error,
    }


# ─── Sync → staging ─────────────────────────────────────────────────────────


@router.post("/{channel_id}/sync")
async def sync_channel(
    channel_id: UUID,
    payload: AccountScopedRequest,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
    http_client: httpx.AsyncClient | None = Depends(get_channel_http_client),
):
    """Fetch every product from the channel into staging."""
    account_id = require_account(context, payload.account_id)
    channel = await _get_channel(db, channel_id, account_id)
    adapter = _build_adapter(channel, http_client)

    try:
        result = await sync_channel_products(db, channel, adapter)
    except ChannelSyncError as exc:
        raise HTTPException(
            status_code=502,
            detail=f"Failed to sync products from {channel.channel_type}: {exc}",
        )

    return {"success": True, **result.to_dict(settings.sync_error_sample_size)}


@router.get("/{channel_id}/staging-products")
async def get_staging_products(
    channel_id: UUID,
    account_id: UUID = Query(...),
    status: str | None = Query(None, pattern="^(pending|imported|skipped|error)$"),
    search: str | None = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.staging_page_size_max),
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """List staged rows with catalog enrichment, per-status counts and pagination."""
    account_id = require_account(context, account_id)
    channel = await _get_channel(db, channel_id, account_id)
    return await list_staged_products(db, channel, status=status, search=search, page=page, limit=limit)


@router.put("/{channel_id}/staging-products/{staging_id}/skip")
async def skip_staging_product(
    channel_id: UUID,
    staging_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Mark one staged row as skipped."""
    channel = await _get_channel(db, channel_id, context.account_id)
    staged = await skip_staged_product(db, channel, staging_id)
    if staged is None:
        raise HTTPException(status_code=404, detail="Staging product not found")
    return {"success": True, "id": str(staged.id), "import_status": staged.import_status}


@router.delete("/{channel_id}/staging-products")
async def delete_staging_products(
    channel_id: UUID,
    payload: DeleteStagingRequest = Body(...),
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Delete explicit staged rows or every skipped row of the channel."""
    if not payload.staging_product_ids and not payload.delete_all_skipped:
        raise HTTPException(
            status_code=400,
            detail="Provide staging_product_ids or delete_all_skipped",
        )
    account_id = require_account(context, payload.account_id)
    channel = await _get_channel(db, channel_id, account_id)
    deleted = await delete_staged_products(
        db,
        channel,
        staging_product_ids=payload.staging_product_ids,
        delete_all_skipped=payload.delete_all_skipped,
    )
    return {"success": True, "deleted_count": deleted}


# ─── Staging → catalog ──────────────────────────────────────────────────────


@router.post("/{channel_id}/import-to-inventory")
async def import_to_inventory(
    channel_id: UUID,
    payload: ImportRequest,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Merge staged rows into the product catalog by SKU."""
    if not payload.staging_product_ids and not payload.import_all:
        raise HTTPException(
            status_code=400,
            detail="Provide staging_product_ids or import_all",
        )
    account_id = require_account(context, payload.account_id)
    channel = await _get_channel(db, channel_id, account_id)
    result = await import_staged_products(
        db,
        channel,
        staging_product_ids=payload.staging_product_ids,
        import_all=payload.import_all,
    )
    return {"success": True, **result.to_dict(settings.sync_error_sample_size)}
