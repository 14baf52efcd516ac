"""Deal badges shown next to a retailer's displayed listing."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Optional

from dealengine.detect.insights import PriceInsight, Trend
from dealengine.ingest.base import RawListing


class BadgeType(str, Enum):
    DISCOUNT = "discount"  # % off compare-at price
    ALL_TIME_LOW = "all-time-low"
    PRICE_DROP = "price-drop"  # % change vs trend window, negative
    ON_SALE = "on-sale"  # flagged on sale without a compare-at price


@dataclass(frozen=True)
class DealBadge:
    type: BadgeType
    value: Optional[float] = None


def discount_percent(price: Decimal, compare_at_price: Optional[Decimal]) -> Optional[int]:
    """Whole-percent discount off the compare-at price, rounded half up."""
    if compare_at_price is None or compare_at_price <= price or compare_at_price <= 0:
        return None
    pct = (compare_at_price - price) / compare_at_price * 100
    return int((pct + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def badges_for(listing: RawListing, insight: Optional[PriceInsight] = None) -> list[DealBadge]:
    """Badges for one displayed listing, in display order."""
    badges = []

    pct = discount_percent(listing.price, listing.compare_at_price)
    if pct is not None and pct > 0:
        badges.append(DealBadge(BadgeType.DISCOUNT, float(pct)))

    if insight is not None:
        if insight.is_all_time_low:
            badges.append(DealBadge(BadgeType.ALL_TIME_LOW))
        elif insight.trend == Trend.DOWN and insight.price_change_pct is not None:
            badges.append(DealBadge(BadgeType.PRICE_DROP, insight.price_change_pct))

    if listing.on_sale and not listing.compare_at_price:
        badges.append(DealBadge(BadgeType.ON_SALE))

    return badges


class Availability(str, Enum):
    IN_STOCK = "In Stock"
    DISCONTINUED = "Discontinued"  # out of stock and the product is discontinued
    OUT_OF_STOCK = "Out of Stock"


def availability_for(listing: RawListing, product_discontinued: bool = False) -> Availability:
    """Stock label for a displayed listing."""
    if listing.in_stock:
        return Availability.IN_STOCK
    if product_discontinued:
        return Availability.DISCONTINUED
    return Availability.OUT_OF_STOCK
