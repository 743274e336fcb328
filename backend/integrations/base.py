"""
Channel Adapter — Abstract Base Class

Every external commerce / ERP platform (Siigo, Shopify, WooCommerce)
implements this interface so the staging and import pipeline is written
once, against the abstraction, and never branches on channel type.

An adapter only knows how to authenticate, fetch one page of products
and project one raw record into an ExternalProduct. The pagination
policy lives here, in fetch_all_products(), and is shared by all of them.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar

import httpx
import structlog

from core.config import get_settings

logger = structlog.get_logger()


# ── Channel types ─────────────────────────────────────────────────────────


class ChannelType(str, Enum):
    """Supported external platforms."""

    SIIGO = "siigo"  # Colombian ERP
    SHOPIFY = "shopify"  # Admin REST API
    WOOCOMMERCE = "woocommerce"  # WordPress REST API


# ── Errors ────────────────────────────────────────────────────────────────


class ChannelAdapterError(Exception):
    """Base class for batch-level adapter failures."""

    def __init__(self, message: str, *, status_code: int | None = None, upstream_text: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.upstream_text = upstream_text

    def __str__(self) -> str:
        text = self.message
        if self.status_code is not None:
            text = f"{text} ({self.status_code})"
        if self.upstream_text:
            text = f"{text}: {self.upstream_text[:500]}"
        return text


class ChannelConfigError(ChannelAdapterError):
    """Missing credentials or unusable configuration. Raised before any network call."""


class ChannelAuthError(ChannelAdapterError):
    """The upstream rejected our credentials or returned no token."""


class ChannelFetchError(ChannelAdapterError):
    """A product page could not be fetched."""

    def __init__(self, message: str, *, page: int, status_code: int | None = None, upstream_text: str | None = None):
        super().__init__(message, status_code=status_code, upstream_text=upstream_text)
        self.page = page


# ── Records ───────────────────────────────────────────────────────────────


@dataclass
class ExternalProduct:
    """One upstream product projected onto the staging schema."""

    external_id: str
    external_sku: str | None
    name: str
    description: str = ""
    price: Decimal = Decimal("0")
    currency: str = "COP"
    stock: int = 0
    status: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProductPage:
    """One page of raw upstream records plus pagination hints."""

    records: list[dict[str, Any]]
    total: int | None = None  # total reported by the upstream, if any
    next_cursor: Any = None  # None means there is no next page


# ── Field extraction helpers ──────────────────────────────────────────────

_CENTS = Decimal("0.01")


def to_decimal(value: Any, field_name: str = "price") -> Decimal:
    """Missing → 0. Present but not numeric → ValueError."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field_name}: {value!r}")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid {field_name}: {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"Invalid {field_name}: {value!r}")
    return parsed.quantize(_CENTS)


def to_stock(value: Any, field_name: str = "stock") -> int:
    """Missing → 0. Negative upstream quantities are clamped to 0."""
    if value is None or value == "":
        return 0
    quantity = to_decimal(value, field_name)
    if quantity != quantity.to_integral_value():
        raise ValueError(f"Invalid {field_name}: {value!r}")
    return max(int(quantity), 0)


def first(items: Any) -> dict[str, Any]:
    """First element of a list of dicts, or {} when absent."""
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def to_total(value: Any, *, page: int, upstream_text: str | None = None) -> int | None:
    """Record count reported by the upstream. Missing → None, unparseable → ChannelFetchError."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ChannelFetchError(
            f"Invalid product total: {value!r}",
            page=page,
            upstream_text=upstream_text,
        ) from exc


# ── Abstract adapter ──────────────────────────────────────────────────────


class ChannelAdapter(ABC):
    """
    Base class for all channel connectors.

    Lifecycle:
        1. __init__(account_id, credentials, config)  — validate config, no I/O
        2. authenticate()                              — obtain a token
        3. fetch_page(token, cursor)                   — one page of raw records
        4. normalize(record)                           — raw record → ExternalProduct

    fetch_all_products() drives 2 and 3 with a bounded, strictly sequential
    pagination loop. Subclasses do not override it.
    """

    channel_type: ClassVar[ChannelType]
    required_credentials: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        account_id: str,
        credentials: dict[str, Any],
        config: dict[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.account_id = str(account_id)
        self.credentials = credentials or {}
        self.config = config or {}
        self._client = http_client

        missing = [key for key in self.required_credentials if not self.credentials.get(key)]
        if missing:
            raise ChannelConfigError(
                f"Missing {self.channel_type.value} credentials: {', '.join(missing)}"
            )

        self.page_size = max(1, min(int(self.config.get("page_size") or settings.channel_page_size), 250))
        self.max_pages = max(1, int(self.config.get("max_pages") or settings.channel_max_pages))
        self.currency = str(self.config.get("currency") or settings.default_currency)
        self.timeout = settings.channel_http_timeout_seconds
        self.logger = logger.bind(
            adapter=self.channel_type.value,
            account_id=self.account_id,
        )

    # ── HTTP plumbing ──

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Reuse the injected / active client, or open one for the duration."""
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            self._client = client
            try:
                yield client
            finally:
                self._client = None

    async def _send(
        self,
        method: str,
        url: str,
        *,
        error: type[ChannelAdapterError],
        page: int | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue one request; transport errors and non-2xx responses raise `error`."""
        extra = {"page": page} if error is ChannelFetchError else {}
        async with self.session() as client:
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                raise error(f"{self.channel_type.value} request failed", upstream_text=str(exc), **extra) from exc

        if response.is_error:
            raise error(
                f"{self.channel_type.value} returned an error",
                status_code=response.status_code,
                upstream_text=response.text,
                **extra,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, error: ChannelAdapterError) -> Any:
        """Decode a JSON body, raising `error` when the upstream sent something else."""
        try:
            return response.json()
        except ValueError as exc:
            error.upstream_text = response.text
            raise error from exc

    # ── Interface ──

    @abstractmethod
    async def authenticate(self) -> str:
        """Return a token usable by fetch_page. Raises ChannelAuthError."""
        ...

    @abstractmethod
    async def fetch_page(self, token: str, cursor: Any = None) -> ProductPage:
        """Fetch one page. cursor=None requests the first page. Raises ChannelFetchError."""
        ...

    @abstractmethod
    def normalize(self, record: dict[str, Any]) -> ExternalProduct:
        """Project one raw record. Raises ValueError on malformed records."""
        ...

    async def test_connection(self) -> bool:
        """Authenticate only. Raises on failure so callers can surface the reason."""
        async with self.session():
            await self.authenticate()
        return True

    async def fetch_all_products(self) -> list[dict[str, Any]]:
        """
        Authenticate, then fetch every page sequentially.

        Stops when the accumulated record count reaches the reported
        total, when a page comes back empty or without a next cursor, or
        after max_pages pages. Any failure aborts the whole fetch.
        """
        records: list[dict[str, Any]] = []
        total: int | None = None

        async with self.session():
            token = await self.authenticate()
            cursor: Any = None
            for page_number in range(1, self.max_pages + 1):
                page = await self.fetch_page(token, cursor)
                records.extend(page.records)
                if page.total is not None:
                    total = page.total

                self.logger.debug(
                    "channel.fetch.page",
                    page=page_number,
                    page_records=len(page.records),
                    accumulated=len(records),
                    total=total,
                )

                if not page.records or page.next_cursor is None:
                    break
                if total is not None and len(records) >= total:
                    break
                cursor = page.next_cursor
            else:
                self.logger.warning(
                    "channel.fetch.page_cap_reached",
                    max_pages=self.max_pages,
                    accumulated=len(records),
                    total=total,
                )

        self.logger.info("channel.fetch.completed", records=len(records), total=total)
        return records


# ── Adapter registry ──────────────────────────────────────────────────────

_ADAPTER_REGISTRY: dict[ChannelType, type[ChannelAdapter]] = {}


def register_adapter(adapter_cls: type[ChannelAdapter]):
    """Decorator: register an adapter class for its channel type."""
    _ADAPTER_REGISTRY[adapter_cls.channel_type] = adapter_cls
    return adapter_cls


def supported_channel_types() -> list[str]:
    return sorted(channel_type.value for channel_type in _ADAPTER_REGISTRY)


def get_adapter(
    channel_type: ChannelType | str,
    account_id: str,
    credentials: dict[str, Any],
    config: dict[str, Any] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ChannelAdapter:
    """Factory: return the right adapter instance for the given type."""
    try:
        resolved = ChannelType(channel_type)
    except ValueError as exc:
        raise ChannelConfigError(f"Unsupported channel type: {channel_type}") from exc

    adapter_cls = _ADAPTER_REGISTRY.get(resolved)
    if adapter_cls is None:
        raise ChannelConfigError(f"No adapter registered for channel type: {resolved.value}")
    return adapter_cls(
        account_id=account_id,
        credentials=credentials,
        config=config,
        http_client=http_client,
    )


def build_channel_adapter(channel, http_client: httpx.AsyncClient | None = None) -> ChannelAdapter:
    """Build the adapter for a stored Channel row, unsealing its credentials."""
    from cryptography.fernet import InvalidToken

    from core.security import unseal_credentials

    try:
        credentials = unseal_credentials(channel.credentials)
    except InvalidToken as exc:
        raise ChannelConfigError("Stored channel credentials could not be decrypted") from exc

    return get_adapter(
        channel.channel_type,
        account_id=str(channel.account_id),
        credentials=credentials,
        config=channel.config,
        http_client=http_client,
    )
