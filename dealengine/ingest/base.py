"""Row types and the snapshot source interface.

Rows arrive already queried for one product. They are immutable for the
duration of a computation pass; every derived value is rebuilt from them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class SourceError(Exception):
    """Raised when a snapshot source fetch fails."""

    pass


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric column value to Decimal, keeping None."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_utc(value: Any) -> Optional[datetime]:
    """Coerce a timestamp (datetime or ISO string) to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RetailerMeta:
    """Retailer record joined onto listings and store rows."""

    id: str
    name: str
    base_url: str = ""
    is_active: bool = True
    description: Optional[str] = None
    ships_from: Optional[str] = None
    return_policy: Optional[str] = None
    authorized_dealer: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "RetailerMeta":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            base_url=data.get("base_url") or "",
            is_active=data.get("is_active") is True,
            description=data.get("description"),
            ships_from=data.get("ships_from"),
            return_policy=data.get("return_policy"),
            authorized_dealer=bool(data.get("authorized_dealer", False)),
        )


@dataclass(frozen=True)
class RawListing:
    """One retailer's current offer for a product."""

    id: str
    product_id: str
    retailer_id: str
    price: Decimal
    last_checked: datetime
    currency: str = "USD"
    in_stock: bool = True
    on_sale: bool = False
    compare_at_price: Optional[Decimal] = None
    product_url: Optional[str] = None
    affiliate_url: Optional[str] = None
    external_id: Optional[str] = None
    offer_title: Optional[str] = None
    retailer: Optional[RetailerMeta] = None

    @property
    def buy_url(self) -> Optional[str]:
        """Affiliate link when present, else the plain product URL."""
        return self.affiliate_url if self.affiliate_url is not None else self.product_url

    @property
    def retailer_name(self) -> str:
        return self.retailer.name if self.retailer and self.retailer.name else self.retailer_id

    @classmethod
    def from_dict(cls, data: dict) -> "RawListing":
        retailer = data.get("retailer")
        if isinstance(retailer, dict):
            retailer = RetailerMeta.from_dict(retailer)
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            retailer_id=str(data["retailer_id"]),
            price=to_decimal(data["price"]),
            last_checked=to_utc(data["last_checked"]),
            currency=(data.get("currency") or "USD").upper(),
            in_stock=bool(data.get("in_stock", False)),
            on_sale=bool(data.get("on_sale", False)),
            compare_at_price=to_decimal(data.get("compare_at_price")),
            product_url=data.get("product_url"),
            affiliate_url=data.get("affiliate_url"),
            external_id=data.get("external_id"),
            offer_title=data.get("offer_title"),
            retailer=retailer,
        )


@dataclass(frozen=True)
class PriceHistoryPoint:
    """A single recorded price for one (product, retailer) series."""

    retailer_id: str
    price: Decimal
    recorded_at: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "PriceHistoryPoint":
        return cls(
            retailer_id=str(data["retailer_id"]),
            price=to_decimal(data["price"]),
            recorded_at=to_utc(data["recorded_at"]),
        )


class DiscountType(str, Enum):
    """Kinds of retailer coupon discounts."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


@dataclass(frozen=True)
class Coupon:
    """A retailer-wide coupon code."""

    id: str
    retailer_id: str
    code: str
    discount_type: DiscountType
    description: str = ""
    discount_value: Optional[Decimal] = None
    min_purchase: Optional[Decimal] = None
    auto_apply_url: Optional[str] = None
    is_active: bool = True
    expires_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Coupon":
        return cls(
            id=str(data["id"]),
            retailer_id=str(data["retailer_id"]),
            code=data["code"],
            discount_type=DiscountType(data.get("discount_type", "percentage")),
            description=data.get("description") or "",
            discount_value=to_decimal(data.get("discount_value")),
            min_purchase=to_decimal(data.get("min_purchase")),
            auto_apply_url=data.get("auto_apply_url"),
            is_active=data.get("is_active", True) is True,
            expires_at=to_utc(data.get("expires_at")),
        )


@dataclass(frozen=True)
class BundleCandidate:
    """A store product row that may be a bundle of the base product."""

    id: str
    retailer_id: str
    title: str
    price: Optional[Decimal] = None
    in_stock: bool = False
    product_url: Optional[str] = None
    affiliate_url: Optional[str] = None
    discontinued: bool = False
    retailer: Optional[RetailerMeta] = None

    @property
    def buy_url(self) -> Optional[str]:
        return self.affiliate_url if self.affiliate_url is not None else self.product_url

    @classmethod
    def from_dict(cls, data: dict) -> "BundleCandidate":
        retailer = data.get("retailer")
        if isinstance(retailer, dict):
            retailer = RetailerMeta.from_dict(retailer)
        raw_flags = data.get("raw_flags") or {}
        return cls(
            id=str(data["id"]),
            retailer_id=str(data["retailer_id"]),
            title=data.get("title") or "",
            price=to_decimal(data.get("price")),
            in_stock=bool(data.get("in_stock", False)),
            product_url=data.get("product_url"),
            affiliate_url=data.get("affiliate_url"),
            discontinued=raw_flags.get("discontinued") is True,
            retailer=retailer,
        )


# Store row flags that hide a listing from the "new" offer table
DISCONTINUED_FLAGS = ("discontinued_new", "discontinued_banner", "discontinued")


@dataclass(frozen=True)
class StoreRowMeta:
    """Title and availability flags of the store row behind a listing."""

    title: str
    discontinued_new: bool = False

    @classmethod
    def from_raw_data(cls, title: str | None, raw_data: dict | None) -> "StoreRowMeta":
        raw = raw_data or {}
        return cls(
            title=title or "",
            discontinued_new=any(raw.get(flag) is True for flag in DISCONTINUED_FLAGS),
        )


@dataclass(frozen=True)
class ProductRequest:
    """Identifies the product a deal view is built for."""

    product_id: str
    product_name: Optional[str] = None
    discontinued: bool = False


@dataclass(frozen=True)
class ProductSnapshot:
    """The independently fetched row sets for one product."""

    request: ProductRequest
    listings: tuple[RawListing, ...] = ()
    history: tuple[PriceHistoryPoint, ...] = ()
    bundle_candidates: tuple[BundleCandidate, ...] = ()
    coupons: tuple[Coupon, ...] = ()
    # (retailer_id, external_id) -> store row; empty when the lookup failed
    store_rows: dict[tuple[str, str], StoreRowMeta] = field(default_factory=dict)
    degraded_sources: tuple[str, ...] = field(default=())


class SnapshotSource(ABC):
    """Abstract read-only source of product rows."""

    @abstractmethod
    async def fetch_listings(self, product_id: str) -> list[RawListing]:
        """
        Fetch current listings for a product, joined with their retailer.

        Raises:
            SourceError: If the fetch fails
        """
        pass

    @abstractmethod
    async def fetch_price_history(self, product_id: str) -> list[PriceHistoryPoint]:
        """Fetch all price history points for a product, ascending by time."""
        pass

    @abstractmethod
    async def fetch_bundle_candidates(self, product_id: str) -> list[BundleCandidate]:
        """Fetch store rows associated with a product that may be bundles."""
        pass

    @abstractmethod
    async def fetch_coupons(self, retailer_ids: list[str]) -> list[Coupon]:
        """Fetch coupon rows for the given retailers."""
        pass

    async def fetch_store_rows(self, product_id: str) -> dict[tuple[str, str], StoreRowMeta]:
        """
        Fetch store row titles and flags keyed by (retailer_id, external_id).

        Sources without store rows return an empty mapping, which leaves
        listings untitled and ungrouped.
        """
        return {}
