"""Client-side projections of commerce backend entities.

The backend owns every record; these dataclasses are transient views parsed
from its JSON responses. Amounts stay in minor units (cents) as reported.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

ZERO_DECIMAL_CURRENCIES = frozenset({"jpy", "krw", "vnd", "clp", "isk", "huf", "twd", "ugx"})


def to_major_units(amount: int | None, currency_code: str | None = None) -> Decimal:
    """Convert a backend minor-unit amount to a decimal major-unit value."""
    value = Decimal(int(amount or 0))
    if (currency_code or "").lower() in ZERO_DECIMAL_CURRENCIES:
        return value
    return value / Decimal(100)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass
class Region:
    id: str
    name: str
    currency_code: str
    countries: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Region:
        countries = [
            str(c.get("iso_2") if isinstance(c, dict) else c).lower()
            for c in data.get("countries") or []
        ]
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            currency_code=str(data.get("currency_code", "")).lower(),
            countries=countries,
        )


@dataclass
class LineItem:
    id: str
    variant_id: str | None
    title: str
    quantity: int
    unit_price: int
    total: int | None = None
    thumbnail: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineItem:
        variant = data.get("variant") or {}
        return cls(
            id=str(data.get("id", "")),
            variant_id=_str_or_none(data.get("variant_id") or variant.get("id")),
            title=str(data.get("title", "")),
            quantity=_int(data.get("quantity")),
            unit_price=_int(data.get("unit_price")),
            total=_int(data["total"]) if data.get("total") is not None else None,
            thumbnail=data.get("thumbnail"),
        )


@dataclass
class ShippingAddress:
    first_name: str | None = None
    last_name: str | None = None
    address_1: str | None = None
    address_2: str | None = None
    city: str | None = None
    country_code: str | None = None
    postal_code: str | None = None
    province: str | None = None
    phone: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ShippingAddress | None:
        if not data:
            return None
        return cls(
            first_name=_str_or_none(data.get("first_name")),
            last_name=_str_or_none(data.get("last_name")),
            address_1=_str_or_none(data.get("address_1")),
            address_2=_str_or_none(data.get("address_2")),
            city=_str_or_none(data.get("city")),
            country_code=_str_or_none(data.get("country_code")),
            postal_code=_str_or_none(data.get("postal_code")),
            province=_str_or_none(data.get("province")),
            phone=_str_or_none(data.get("phone")),
        )

    def is_complete(self) -> bool:
        return all([self.address_1, self.city, self.postal_code, self.country_code])


@dataclass
class ShippingOption:
    id: str
    name: str
    amount: int
    currency_code: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShippingOption:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            amount=_int(data.get("amount")),
            currency_code=str(data.get("currency_code") or "eur").lower(),
            data=dict(data.get("data") or {}),
        )


@dataclass
class ShippingMethod:
    id: str
    name: str
    amount: int
    shipping_option_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShippingMethod:
        option = data.get("shipping_option") or {}
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or option.get("name") or "Shipping"),
            amount=_int(data.get("amount", data.get("price"))),
            shipping_option_id=_str_or_none(data.get("shipping_option_id") or option.get("id")),
        )


@dataclass
class PaymentSession:
    id: str
    provider_id: str
    status: str
    data: dict[str, Any] = field(default_factory=dict)
    is_selected: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentSession:
        return cls(
            id=str(data.get("id", "")),
            provider_id=str(data.get("provider_id", "")),
            status=str(data.get("status", "pending")),
            data=dict(data.get("data") or {}),
            is_selected=bool(data.get("is_selected", False)),
        )


@dataclass
class Cart:
    id: str
    region_id: str | None = None
    currency_code: str | None = None
    email: str | None = None
    items: list[LineItem] = field(default_factory=list)
    shipping_address: ShippingAddress | None = None
    shipping_methods: list[ShippingMethod] = field(default_factory=list)
    payment_sessions: list[PaymentSession] = field(default_factory=list)
    payment_session: PaymentSession | None = None
    subtotal: int = 0
    shipping_total: int = 0
    tax_total: int = 0
    total: int = 0
    completed_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cart:
        region = data.get("region") or {}
        selected = data.get("payment_session")
        return cls(
            id=str(data.get("id", "")),
            region_id=_str_or_none(data.get("region_id") or region.get("id")),
            currency_code=_str_or_none(
                (data.get("currency_code") or region.get("currency_code") or "").lower()
            ),
            email=_str_or_none(data.get("email")),
            items=[LineItem.from_dict(item) for item in data.get("items") or []],
            shipping_address=ShippingAddress.from_dict(data.get("shipping_address")),
            shipping_methods=[
                ShippingMethod.from_dict(method) for method in data.get("shipping_methods") or []
            ],
            payment_sessions=[
                PaymentSession.from_dict(session) for session in data.get("payment_sessions") or []
            ],
            payment_session=PaymentSession.from_dict(selected) if selected else None,
            subtotal=_int(data.get("subtotal")),
            shipping_total=_int(data.get("shipping_total")),
            tax_total=_int(data.get("tax_total")),
            total=_int(data.get("total")),
            completed_at=_str_or_none(data.get("completed_at")),
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def has_shipping_address(self) -> bool:
        return self.shipping_address is not None and self.shipping_address.is_complete()

    @property
    def has_shipping_method(self) -> bool:
        return bool(self.shipping_methods)

    @property
    def selected_provider_id(self) -> str | None:
        if self.payment_session:
            return self.payment_session.provider_id
        for session in self.payment_sessions:
            if session.is_selected:
                return session.provider_id
        return None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass
class OrderItem:
    id: str
    title: str
    quantity: int
    unit_price: int
    variant_id: str | None = None
    variant_title: str | None = None
    product_handle: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrderItem:
        variant = data.get("variant") or {}
        product = variant.get("product") or {}
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            quantity=_int(data.get("quantity")),
            unit_price=_int(data.get("unit_price")),
            variant_id=_str_or_none(variant.get("id") or data.get("variant_id")),
            variant_title=_str_or_none(variant.get("title")),
            product_handle=_str_or_none(product.get("handle")),
        )


@dataclass(frozen=True)
class Order:
    """Immutable snapshot of an order created by the backend."""

    id: str
    display_id: int
    email: str | None
    items: tuple[OrderItem, ...]
    shipping_address: ShippingAddress | None
    shipping_methods: tuple[ShippingMethod, ...]
    payment_status: str | None
    fulfillment_status: str | None
    subtotal: int
    shipping_total: int
    tax_total: int
    total: int
    currency_code: str | None
    created_at: str | None
    cart_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Order:
        return cls(
            id=str(data.get("id", "")),
            display_id=_int(data.get("display_id")),
            email=_str_or_none(data.get("email")),
            items=tuple(OrderItem.from_dict(item) for item in data.get("items") or []),
            shipping_address=ShippingAddress.from_dict(data.get("shipping_address")),
            shipping_methods=tuple(
                ShippingMethod.from_dict(method) for method in data.get("shipping_methods") or []
            ),
            payment_status=_str_or_none(data.get("payment_status")),
            fulfillment_status=_str_or_none(data.get("fulfillment_status")),
            subtotal=_int(data.get("subtotal")),
            shipping_total=_int(data.get("shipping_total")),
            tax_total=_int(data.get("tax_total")),
            total=_int(data.get("total")),
            currency_code=_str_or_none(data.get("currency_code")),
            created_at=_str_or_none(data.get("created_at")),
            cart_id=_str_or_none(data.get("cart_id")),
        )


@dataclass
class ProductVariant:
    id: str
    title: str
    prices: list[dict[str, Any]] = field(default_factory=list)
    options: dict[str, str] = field(default_factory=dict)
    inventory_quantity: int | None = None

    @property
    def size(self) -> str | None:
        return self.options.get("Size") or self.title or None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProductVariant:
        raw_options = data.get("options") or {}
        if isinstance(raw_options, list):
            options = {
                str((opt.get("option") or {}).get("title") or opt.get("title") or "Size"): str(
                    opt.get("value", "")
                )
                for opt in raw_options
                if isinstance(opt, dict)
            }
        else:
            options = {str(k): str(v) for k, v in raw_options.items()}
        inventory = data.get("inventory_quantity")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            prices=list(data.get("prices") or []),
            options=options,
            inventory_quantity=_int(inventory) if inventory is not None else None,
        )


@dataclass
class Product:
    """Catalog projection; `price` is in major units."""

    id: str
    handle: str
    title: str
    description: str = ""
    price: Decimal = Decimal(0)
    images: list[str] = field(default_factory=list)
    variants: list[ProductVariant] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def team(self) -> str | None:
        return self.metadata.get("team")

    @property
    def league(self) -> str | None:
        return self.metadata.get("league")

    @property
    def season(self) -> str | None:
        return self.metadata.get("season")

    @property
    def gender(self) -> str | None:
        return self.metadata.get("gender") or self.metadata.get("genero")

    @property
    def version(self) -> str | None:
        return self.metadata.get("version")

    @property
    def featured(self) -> bool:
        return _truthy(self.metadata.get("featured"))

    @property
    def best_seller(self) -> bool:
        return _truthy(self.metadata.get("best_seller", self.metadata.get("bestSeller")))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        variants = [ProductVariant.from_dict(v) for v in data.get("variants") or []]
        base_amount = 0
        currency = None
        if variants and variants[0].prices:
            base_amount = _int(variants[0].prices[0].get("amount"))
            currency = variants[0].prices[0].get("currency_code")
        images = [
            img.get("url") if isinstance(img, dict) else str(img) for img in data.get("images") or []
        ]
        return cls(
            id=str(data.get("id", "")),
            handle=str(data.get("handle", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description") or ""),
            price=to_major_units(base_amount, currency),
            images=[url for url in images if url],
            variants=variants,
            metadata=dict(data.get("metadata") or {}),
        )


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)
