"""
WooCommerce Channel Adapter

Auth:   HTTP basic auth with consumer_key / consumer_secret,
        verified against GET {store}/wp-json/wc/v3/system_status
Fetch:  GET {store}/wp-json/wc/v3/products?page=N&per_page=S
Total:  X-WP-Total response header (X-WP-TotalPages bounds the cursor)
"""

from typing import Any

from core.config import get_settings
from integrations.base import (
    ChannelAdapter,
    ChannelAuthError,
    ChannelConfigError,
    ChannelFetchError,
    ChannelType,
    ExternalProduct,
    ProductPage,
    register_adapter,
    to_decimal,
    to_stock,
)


def _header_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@register_adapter
class WooCommerceAdapter(ChannelAdapter):
    channel_type = ChannelType.WOOCOMMERCE
    required_credentials = ("consumer_key", "consumer_secret")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        settings = get_settings()
        store_url = self.config.get("store_url") or self.credentials.get("store_url")
        if not store_url:
            raise ChannelConfigError("Missing woocommerce config: store_url")
        api_path = self.config.get("api_path") or settings.woocommerce_api_path
        self.base_url = f"{str(store_url).rstrip('/')}/{api_path.strip('/')}"
        # WooCommerce caps per_page at 100
        self.page_size = min(self.page_size, 100)

    @property
    def _auth(self) -> tuple[str, str]:
        return (self.credentials["consumer_key"], self.credentials["consumer_secret"])

    async def authenticate(self) -> str:
        await self._send(
            "GET",
            f"{self.base_url}/system_status",
            error=ChannelAuthError,
            auth=self._auth,
        )
        # Basic auth has no bearer token; the key id identifies the session in logs
        return self.credentials["consumer_key"]

    async def fetch_page(self, token: str, cursor: Any = None) -> ProductPage:
        page = int(cursor or 1)
        response = await self._send(
            "GET",
            f"{self.base_url}/products",
            error=ChannelFetchError,
            page=page,
            auth=self._auth,
            params={"page": page, "per_page": self.page_size},
        )
        body = self._json(response, ChannelFetchError("WooCommerce products page returned invalid JSON", page=page))
        if not isinstance(body, list):
            raise ChannelFetchError("Unexpected WooCommerce products payload", page=page, upstream_text=response.text)

        records = [r for r in body if isinstance(r, dict)]
        total_pages = _header_int(response.headers.get("X-WP-TotalPages"))
        has_next = bool(records) and (total_pages is None or page < total_pages)
        return ProductPage(
            records=records,
            total=_header_int(response.headers.get("X-WP-Total")),
            next_cursor=page + 1 if has_next else None,
        )

    def normalize(self, record: dict[str, Any]) -> ExternalProduct:
        external_id = record.get("id")
        if not external_id:
            raise ValueError("WooCommerce product without id")

        return ExternalProduct(
            external_id=str(external_id),
            external_sku=record.get("sku") or None,
            name=record.get("name") or str(record.get("sku") or external_id),
            description=record.get("description") or "",
            price=to_decimal(record.get("price")),
            currency=self.currency,
            stock=to_stock(record.get("stock_quantity")),
            status=record.get("status"),
            raw_data=record,
        )
