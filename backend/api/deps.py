"""
Fluxi API Dependencies

Dependency injection for DB sessions, auth context, tenant scoping and
the outbound HTTP client used by channel adapters.
"""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.session import AsyncSessionLocal

settings = get_settings()
security = HTTPBearer(auto_error=False)

# Dev account_id must match scripts/seed data
DEV_ACCOUNT_ID = "00000000-0000-0000-0000-000000000001"


@dataclass(frozen=True)
class RequestContext:
    """Validated identity attached to every authenticated request."""

    user_id: str
    account_id: uuid.UUID
    role: str = "member"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> RequestContext:
    """Decode the bearer JWT into a RequestContext. Bypassed in debug mode."""
    if settings.debug:
        return RequestContext(user_id="dev-user", account_id=uuid.UUID(DEV_ACCOUNT_ID), role="admin")

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    from core.security import decode_access_token

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    try:
        account_id = uuid.UUID(str(payload.get("account_id")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No account context",
        )

    return RequestContext(
        user_id=str(payload.get("sub") or payload.get("user_id") or ""),
        account_id=account_id,
        role=str(payload.get("role") or "member"),
    )


async def get_tenant_db(
    db: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(get_current_user),
) -> AsyncSession:
    """
    Get a DB session with tenant context set.
    Sets PostgreSQL RLS variable for row-level security.
    """
    await db.execute(
        text("SELECT set_config('app.current_account_id', :aid, true)"),
        {"aid": str(context.account_id)},
    )
    return db


def require_account(context: RequestContext, account_id: uuid.UUID | None) -> uuid.UUID:
    """The explicit account_id of a request must be the caller's own account."""
    if account_id is not None and account_id != context.account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account does not match authenticated user",
        )
    return context.account_id


async def get_channel_http_client() -> httpx.AsyncClient | None:
    """Outbound client for channel adapters. None lets each adapter open its own."""
    return None
