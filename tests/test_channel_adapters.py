"""
Tests for the Channel Adapter Layer

Covers:
  - Adapter registry / factory
  - Shared pagination policy (total, empty page, cursor end, page cap)
  - Defensive field extraction helpers
  - Credential validation before any network call
"""

from decimal import Decimal

import pytest

from integrations.base import (
    _ADAPTER_REGISTRY,
    ChannelAdapter,
    ChannelAuthError,
    ChannelConfigError,
    ChannelFetchError,
    ChannelType,
    ExternalProduct,
    ProductPage,
    get_adapter,
    supported_channel_types,
    to_decimal,
    to_stock,
    to_total,
)
from integrations.shopify import ShopifyAdapter
from integrations.siigo import SiigoAdapter
from integrations.woocommerce import WooCommerceAdapter


class ScriptedAdapter(ChannelAdapter):
    """Serves pages from a function of the page index. Not registered."""

    channel_type = ChannelType.SIIGO

    def __init__(self, page_for, *, config=None, auth_error=None):
        super().__init__(account_id="acc-1", credentials={}, config=config or {})
        self.page_for = page_for
        self.auth_error = auth_error
        self.cursors = []

    async def authenticate(self) -> str:
        if self.auth_error:
            raise self.auth_error
        return "token"

    async def fetch_page(self, token, cursor=None) -> ProductPage:
        index = cursor or 0
        self.cursors.append(index)
        return self.page_for(index)

    def normalize(self, record) -> ExternalProduct:
        return ExternalProduct(external_id=str(record["id"]), external_sku=None, name="x")


def _records(start, count):
    return [{"id": start + i} for i in range(count)]


# ── Registry ──────────────────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_all_channel_types_registered(self):
        assert _ADAPTER_REGISTRY[ChannelType.SIIGO] is SiigoAdapter
        assert _ADAPTER_REGISTRY[ChannelType.SHOPIFY] is ShopifyAdapter
        assert _ADAPTER_REGISTRY[ChannelType.WOOCOMMERCE] is WooCommerceAdapter
        assert supported_channel_types() == ["shopify", "siigo", "woocommerce"]

    def test_get_adapter_accepts_plain_string(self):
        adapter = get_adapter(
            "woocommerce",
            account_id="acc-1",
            credentials={"consumer_key": "ck", "consumer_secret": "cs"},
            config={"store_url": "https://shop.example.co/"},
        )
        assert isinstance(adapter, WooCommerceAdapter)
        assert adapter.base_url == "https://shop.example.co/wp-json/wc/v3"

    def test_unknown_channel_type_is_config_error(self):
        with pytest.raises(ChannelConfigError, match="Unsupported channel type"):
            get_adapter("mercadolibre", account_id="acc-1", credentials={})

    def test_missing_credentials_are_rejected_before_io(self):
        with pytest.raises(ChannelConfigError, match="access_key"):
            get_adapter("siigo", account_id="acc-1", credentials={"username": "u"})

    def test_siigo_accepts_api_key_credential(self):
        adapter = get_adapter("siigo", account_id="acc-1", credentials={"username": "u", "api_key": "k"})
        assert adapter.credentials["access_key"] == "k"

    def test_shopify_requires_shop_domain(self):
        with pytest.raises(ChannelConfigError, match="shop_domain"):
            get_adapter("shopify", account_id="acc-1", credentials={"access_token": "t"})

    def test_page_size_comes_from_config(self):
        adapter = get_adapter(
            "siigo",
            account_id="acc-1",
            credentials={"username": "u", "access_key": "k"},
            config={"page_size": 25, "currency": "USD"},
        )
        assert adapter.page_size == 25
        assert adapter.currency == "USD"


# ── Pagination policy ─────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestPaginationPolicy:
    async def test_stops_when_reported_total_reached(self):
        adapter = ScriptedAdapter(lambda i: ProductPage(records=_records(i * 10, 10), total=25, next_cursor=i + 1))

        records = await adapter.fetch_all_products()

        assert len(records) == 30
        assert adapter.cursors == [0, 1, 2]

    async def test_stops_on_empty_page(self):
        adapter = ScriptedAdapter(
            lambda i: ProductPage(records=_records(0, 5) if i < 2 else [], total=None, next_cursor=i + 1)
        )

        records = await adapter.fetch_all_products()

        assert len(records) == 10
        assert adapter.cursors == [0, 1, 2]

    async def test_stops_when_no_next_cursor(self):
        adapter = ScriptedAdapter(lambda i: ProductPage(records=_records(0, 5), total=None, next_cursor=None))

        records = await adapter.fetch_all_products()

        assert len(records) == 5
        assert adapter.cursors == [0]

    async def test_page_cap_bounds_misbehaving_upstream(self):
        # Reports a total it never reaches and always offers another page
        adapter = ScriptedAdapter(
            lambda i: ProductPage(records=_records(i, 1), total=1_000_000, next_cursor=i + 1),
            config={"max_pages": 7},
        )

        records = await adapter.fetch_all_products()

        assert len(records) == 7
        assert len(adapter.cursors) == 7

    async def test_default_page_cap_is_sixty(self):
        adapter = ScriptedAdapter(lambda i: ProductPage(records=_records(i, 1), total=None, next_cursor=i + 1))

        records = await adapter.fetch_all_products()

        assert len(records) == 60

    async def test_auth_failure_fetches_nothing(self):
        adapter = ScriptedAdapter(
            lambda i: ProductPage(records=_records(0, 1)),
            auth_error=ChannelAuthError("denied", status_code=401, upstream_text="bad key"),
        )

        with pytest.raises(ChannelAuthError) as exc_info:
            await adapter.fetch_all_products()

        assert adapter.cursors == []
        assert str(exc_info.value) == "denied (401): bad key"


# ── Field extraction ──────────────────────────────────────────────────────


class TestFieldExtraction:
    def test_missing_values_default_to_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("") == Decimal("0")
        assert to_stock(None) == 0

    def test_numeric_strings_are_parsed(self):
        assert to_decimal("15900.5") == Decimal("15900.50")
        assert to_decimal(4200) == Decimal("4200.00")
        assert to_stock("12") == 12
        assert to_stock(3.0) == 3

    def test_negative_stock_is_clamped(self):
        assert to_stock(-4) == 0

    def test_malformed_values_raise(self):
        with pytest.raises(ValueError, match="price"):
            to_decimal("12,50 COP")
        with pytest.raises(ValueError):
            to_decimal(True)
        with pytest.raises(ValueError):
            to_decimal("NaN")
        with pytest.raises(ValueError, match="stock"):
            to_stock("2.5")

    def test_reported_total_parsing(self):
        assert to_total(None, page=1) is None
        assert to_total("230", page=1) == 230
        with pytest.raises(ChannelFetchError) as exc_info:
            to_total("n/a", page=3, upstream_text="{...}")
        assert exc_info.value.page == 3
        with pytest.raises(ChannelFetchError):
            to_total({"value": 1}, page=1)
