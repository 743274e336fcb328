"""
Shopify Channel Adapter

Uses a stored Admin API access token (the OAuth install flow that
produces it lives outside this service).

Auth:   GET /shop.json with X-Shopify-Access-Token verifies the token
Total:  GET /products/count.json
Fetch:  GET /products.json?limit=S, then page_info cursors taken from
        the Link: <...>; rel="next" response header
"""

from typing import Any

import httpx

from core.config import get_settings
from integrations.base import (
    ChannelAdapter,
    ChannelAuthError,
    ChannelConfigError,
    ChannelFetchError,
    ChannelType,
    ExternalProduct,
    ProductPage,
    first,
    register_adapter,
    to_decimal,
    to_stock,
    to_total,
)


def _normalize_domain(value: str) -> str:
    domain = value.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix) :]
    return domain.rstrip("/")


@register_adapter
class ShopifyAdapter(ChannelAdapter):
    channel_type = ChannelType.SHOPIFY
    required_credentials = ("access_token",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        settings = get_settings()
        domain = self.config.get("shop_domain") or self.credentials.get("shop_domain")
        if not domain:
            raise ChannelConfigError("Missing shopify config: shop_domain")
        self.shop_domain = _normalize_domain(str(domain))
        api_version = self.config.get("api_version") or settings.shopify_api_version
        self.base_url = f"https://{self.shop_domain}/admin/api/{api_version}"
        # Shopify caps page size at 250
        self.page_size = min(self.page_size, 250)
        self._page_number = 0

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": token,
        }

    async def authenticate(self) -> str:
        token = self.credentials["access_token"]
        await self._send(
            "GET",
            f"{self.base_url}/shop.json",
            error=ChannelAuthError,
            headers=self._headers(token),
        )
        return token

    async def _count_products(self, token: str) -> int | None:
        response = await self._send(
            "GET",
            f"{self.base_url}/products/count.json",
            error=ChannelFetchError,
            page=1,
            headers=self._headers(token),
        )
        body = self._json(response, ChannelFetchError("Shopify product count returned invalid JSON", page=1))
        count = body.get("count") if isinstance(body, dict) else None
        return to_total(count, page=1, upstream_text=response.text)

    async def fetch_page(self, token: str, cursor: Any = None) -> ProductPage:
        params: dict[str, Any] = {"limit": self.page_size}
        total = None
        if cursor is None:
            self._page_number = 1
            total = await self._count_products(token)
        else:
            self._page_number += 1
            params["page_info"] = cursor

        response = await self._send(
            "GET",
            f"{self.base_url}/products.json",
            error=ChannelFetchError,
            page=self._page_number,
            headers=self._headers(token),
            params=params,
        )
        body = self._json(
            response, ChannelFetchError("Shopify products page returned invalid JSON", page=self._page_number)
        )
        if not isinstance(body, dict):
            raise ChannelFetchError("Unexpected Shopify products payload", page=self._page_number)
        records = [r for r in body.get("products") or [] if isinstance(r, dict)]

        next_cursor = None
        next_url = response.links.get("next", {}).get("url")
        if next_url:
            next_cursor = httpx.URL(next_url).params.get("page_info")

        return ProductPage(records=records, total=total, next_cursor=next_cursor)

    def normalize(self, record: dict[str, Any]) -> ExternalProduct:
        external_id = record.get("id")
        if not external_id:
            raise ValueError("Shopify product without id")

        variant = first(record.get("variants"))
        sku = variant.get("sku") or f"shopify-{external_id}"

        return ExternalProduct(
            external_id=str(external_id),
            external_sku=sku,
            name=record.get("title") or sku,
            description=record.get("body_html") or "",
            price=to_decimal(variant.get("price")),
            currency=self.currency,
            stock=to_stock(variant.get("inventory_quantity")),
            status=record.get("status"),
            raw_data=record,
        )
