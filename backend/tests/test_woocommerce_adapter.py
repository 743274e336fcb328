"""
WooCommerce adapter — basic auth, X-WP-Total paging, record projection.
"""

import base64
from decimal import Decimal

import httpx
import pytest

from integrations.base import ChannelAuthError
from integrations.woocommerce import WooCommerceAdapter

STORE = "https://woo.test"


def woo_product(product_id: int, sku: str = "", price: str = "25000", stock=None) -> dict:
    return {
        "id": product_id,
        "name": f"Mochila {product_id}",
        "sku": sku,
        "price": price,
        "stock_quantity": stock,
        "status": "publish",
        "description": "",
    }


def woo_api(products: list[dict], *, auth_status: int = 200, report_total: bool = True):
    expected_auth = "Basic " + base64.b64encode(b"ck_test:cs_test").decode()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != expected_auth:
            return httpx.Response(401, json={"code": "woocommerce_rest_cannot_view"})
        path = request.url.path.removeprefix("/wp-json/wc/v3")
        if path == "/system_status":
            if auth_status != 200:
                return httpx.Response(auth_status, json={"code": "woocommerce_rest_cannot_view"})
            return httpx.Response(200, json={"environment": {}})
        if path == "/products":
            page = int(request.url.params["page"])
            per_page = int(request.url.params["per_page"])
            chunk = products[(page - 1) * per_page : page * per_page]
            headers = {}
            if report_total:
                headers["X-WP-Total"] = str(len(products))
                headers["X-WP-TotalPages"] = str(-(-len(products) // per_page))
            return httpx.Response(200, json=chunk, headers=headers)
        return httpx.Response(404)

    return handler


def _adapter(handler, credentials=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = WooCommerceAdapter(
        "acc-1",
        credentials or {"consumer_key": "ck_test", "consumer_secret": "cs_test"},
        {"store_url": STORE, "page_size": 3},
        http_client=http_client,
    )
    return adapter, http_client


@pytest.mark.asyncio
class TestWooCommerceAdapter:
    async def test_pages_until_total(self):
        products = [woo_product(i, f"W-{i}") for i in range(1, 8)]
        adapter, http_client = _adapter(woo_api(products))
        async with http_client:
            records = await adapter.fetch_all_products()

        assert [r["id"] for r in records] == list(range(1, 8))

    async def test_without_total_header_stops_on_empty_page(self):
        products = [woo_product(i) for i in range(1, 5)]
        adapter, http_client = _adapter(woo_api(products, report_total=False))
        async with http_client:
            records = await adapter.fetch_all_products()

        assert len(records) == 4

    async def test_wrong_keys_fail_authentication(self):
        adapter, http_client = _adapter(woo_api([]), credentials={"consumer_key": "ck_x", "consumer_secret": "cs_x"})
        async with http_client:
            with pytest.raises(ChannelAuthError) as exc_info:
                await adapter.test_connection()

        assert exc_info.value.status_code == 401


class TestWooCommerceNormalize:
    def test_blank_sku_and_null_stock(self):
        adapter = WooCommerceAdapter(
            "acc-1", {"consumer_key": "ck", "consumer_secret": "cs"}, {"store_url": STORE}
        )
        product = adapter.normalize(woo_product(9, sku="", price="", stock=None))

        assert product.external_id == "9"
        assert product.external_sku is None
        assert product.price == Decimal("0")
        assert product.stock == 0
        assert product.status == "publish"
