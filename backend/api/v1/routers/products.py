"""
Products Router — CRUD for the product catalog.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import RequestContext, get_current_user, get_tenant_db
from catalog.maintenance import contains_pattern, release_product_references
from db.models import ChannelProduct, Product

router = APIRouter(prefix="/api/v1/products", tags=["products"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: float = Field(0, ge=0)
    currency: str = Field("COP", min_length=3, max_length=3)
    stock: int = Field(0, ge=0)
    status: str = "active"


class ProductUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    price: float | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    stock: int | None = Field(None, ge=0)
    status: str | None = None


class ChannelLinkResponse(BaseModel):
    channel_id: UUID
    external_id: str
    external_sku: str | None
    external_price: float | None
    sync_status: str
    synced_at: datetime | None

    model_config = {"from_attributes": True}


class ProductResponse(BaseModel):
    product_id: UUID
    account_id: UUID
    sku: str
    name: str
    description: str | None
    price: float
    currency: str
    stock: int
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductListItem(ProductResponse):
    channels: list[ChannelLinkResponse] | None = None


# ─── Endpoints ──────────────────────────────────────────────────────────────


async def _get_product(db: AsyncSession, product_id: UUID, account_id: UUID) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.product_id == product_id, Product.account_id == account_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/", response_model=list[ProductListItem])
async def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    status: str | None = None,
    search: str | None = Query(None, max_length=255),
    include_channels: bool = False,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """List products with optional status / search filters and channel links."""
    query = select(Product).where(Product.account_id == context.account_id)
    if status:
        query = query.where(Product.status == status)
    if search:
        pattern = contains_pattern(search)
        query = query.where(or_(Product.name.ilike(pattern, escape="\\"), Product.sku.ilike(pattern, escape="\\")))
    if include_channels:
        query = query.options(selectinload(Product.channel_links))
    query = query.order_by(Product.sku).offset(skip).limit(limit).execution_options(populate_existing=True)
    result = await db.execute(query)

    items = []
    for product in result.scalars().all():
        item = ProductListItem.model_validate(ProductResponse.model_validate(product).model_dump())
        if include_channels:
            item.channels = [ChannelLinkResponse.model_validate(link) for link in product.channel_links]
        items.append(item)
    return items


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Get a single product by ID."""
    return await _get_product(db, product_id, context.account_id)


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    product: ProductCreate,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Create a new product."""
    existing = await db.execute(
        select(Product.product_id).where(
            Product.account_id == context.account_id,
            Product.sku == product.sku,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"SKU {product.sku} already exists")

    db_product = Product(
        **product.model_dump(),
        account_id=context.account_id,
    )
    db.add(db_product)
    await db.commit()
    await db.refresh(db_product)
    return db_product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    update: ProductUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Update a product."""
    product = await _get_product(db, product_id, context.account_id)

    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    product.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    context: RequestContext = Depends(get_current_user),
):
    """Delete a product, its channel links and any staging references to it."""
    product = await _get_product(db, product_id, context.account_id)
    await release_product_references(db, product.product_id)
    await db.execute(
        delete(ChannelProduct)
        .where(ChannelProduct.product_id == product.product_id)
        .execution_options(synchronize_session=False)
    )
    await db.delete(product)
    await db.commit()
