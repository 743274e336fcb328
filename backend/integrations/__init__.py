"""
Channel integrations package.

Pluggable adapter pattern for pulling product catalogs from external
commerce / ERP platforms:
  - Siigo        (ERP — token auth, page-number pagination)
  - Shopify      (Admin REST — access token, Link header cursors)
  - WooCommerce  (REST — basic auth, page-number pagination)

Usage:
    from integrations.base import build_channel_adapter

    adapter = build_channel_adapter(channel)
    records = await adapter.fetch_all_products()
    products = [adapter.normalize(r) for r in records]
"""

from integrations.base import (
    ChannelAdapter,
    ChannelAdapterError,
    ChannelAuthError,
    ChannelConfigError,
    ChannelFetchError,
    ChannelType,
    ExternalProduct,
    ProductPage,
    build_channel_adapter,
    get_adapter,
    register_adapter,
    supported_channel_types,
)
from integrations.shopify import ShopifyAdapter
from integrations.siigo import SiigoAdapter
from integrations.woocommerce import WooCommerceAdapter

__all__ = [
    "ChannelAdapter",
    "ChannelAdapterError",
    "ChannelAuthError",
    "ChannelConfigError",
    "ChannelFetchError",
    "ChannelType",
    "ExternalProduct",
    "ProductPage",
    "build_channel_adapter",
    "get_adapter",
    "register_adapter",
    "supported_channel_types",
    "ShopifyAdapter",
    "SiigoAdapter",
    "WooCommerceAdapter",
]
