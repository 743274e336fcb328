"""
Siigo ERP Channel Adapter

Auth:   POST {api}/auth {username, access_key} → access_token
Fetch:  GET  {api}/v1/products?page=N&page_size=S  (Partner-Id header)
Total:  pagination.total_results
"""

from typing import Any

from core.config import get_settings
from integrations.base import (
    ChannelAdapter,
    ChannelAuthError,
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


@register_adapter
class SiigoAdapter(ChannelAdapter):
    channel_type = ChannelType.SIIGO
    required_credentials = ("username", "access_key")

    def __init__(self, account_id, credentials, config=None, http_client=None):
        credentials = dict(credentials or {})
        # Older channels store the Siigo secret as api_key
        if not credentials.get("access_key") and credentials.get("api_key"):
            credentials["access_key"] = credentials["api_key"]
        super().__init__(account_id, credentials, config, http_client)
        settings = get_settings()
        self.api_url = str(self.config.get("api_url") or settings.siigo_api_url).rstrip("/")
        self.partner_id = (
            self.config.get("partner_id")
            or self.credentials.get("partner_id")
            or settings.siigo_partner_id
            or settings.app_name
        )

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Partner-Id": self.partner_id}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def authenticate(self) -> str:
        response = await self._send(
            "POST",
            f"{self.api_url}/auth",
            error=ChannelAuthError,
            headers=self._headers(),
            json={
                "username": self.credentials["username"],
                "access_key": self.credentials["access_key"],
            },
        )
        body = self._json(response, ChannelAuthError("Siigo auth returned invalid JSON"))
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise ChannelAuthError("No access token received from Siigo", status_code=response.status_code)
        return token

    async def fetch_page(self, token: str, cursor: Any = None) -> ProductPage:
        page = int(cursor or 1)
        response = await self._send(
            "GET",
            f"{self.api_url}/v1/products",
            error=ChannelFetchError,
            page=page,
            headers=self._headers(token),
            params={"page": page, "page_size": self.page_size},
        )
        body = self._json(response, ChannelFetchError("Siigo products page returned invalid JSON", page=page))
        if not isinstance(body, dict):
            raise ChannelFetchError("Unexpected Siigo products payload", page=page, upstream_text=response.text)

        records = [r for r in body.get("results") or [] if isinstance(r, dict)]
        total = (body.get("pagination") or {}).get("total_results")
        return ProductPage(
            records=records,
            total=to_total(total, page=page, upstream_text=response.text),
            next_cursor=page + 1 if records else None,
        )

    def normalize(self, record: dict[str, Any]) -> ExternalProduct:
        external_id = record.get("id")
        if not external_id:
            raise ValueError("Siigo product without id")

        price_entry = first(record.get("prices"))
        price_value = first(price_entry.get("price_list")).get("value")
        active = record.get("active")

        return ExternalProduct(
            external_id=str(external_id),
            external_sku=record.get("code") or None,
            name=record.get("name") or str(record.get("code") or external_id),
            description=record.get("description") or "",
            price=to_decimal(price_value),
            currency=price_entry.get("currency_code") or self.currency,
            stock=to_stock(record.get("available_quantity")),
            status=None if active is None else ("active" if active else "inactive"),
            raw_data=record,
        )
