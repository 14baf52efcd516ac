"""Attach active retailer coupons to offers."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from dealengine.ingest.base import Coupon, DiscountType

logger = logging.getLogger(__name__)


def is_coupon_valid(coupon: Coupon, now: datetime) -> bool:
    """Active and either open-ended or expiring strictly after ``now``."""
    if coupon.is_active is not True:
        return False
    return coupon.expires_at is None or coupon.expires_at > now


def _format_amount(value: Optional[Decimal]) -> str:
    if value is None:
        return "0"
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def discount_label(coupon: Coupon) -> str:
    """Short human-readable discount, e.g. "10% off"."""
    if coupon.discount_type == DiscountType.PERCENTAGE:
        return f"{_format_amount(coupon.discount_value)}% off"
    if coupon.discount_type == DiscountType.FIXED:
        return f"${_format_amount(coupon.discount_value)} off"
    return "Free shipping"


def product_handle(product_url: Optional[str]) -> Optional[str]:
    """Extract the storefront product handle from a ".../products/<handle>?..." URL."""
    if not product_url or "/products/" not in product_url:
        return None
    handle = product_url.split("/products/", 1)[1].split("?", 1)[0]
    return handle or None


def auto_apply_link(
    coupon: Coupon,
    product_url: Optional[str] = None,
    store_base_url: Optional[str] = None,
) -> Optional[str]:
    """
    Link that applies the coupon and lands on the product page.

    Falls back to the coupon's own auto-apply URL when the product handle
    or store domain is unknown.
    """
    if not coupon.auto_apply_url:
        return coupon.auto_apply_url

    handle = product_handle(product_url)
    domain = store_base_url.replace("https://", "").rstrip("/") if store_base_url else None
    if handle and domain:
        return f"https://{domain}/discount/{coupon.code}?redirect=/products/{handle}"
    return coupon.auto_apply_url


class CouponMatcher:
    """Group valid coupons by retailer."""

    def match(
        self,
        coupons: Iterable[Coupon],
        retailer_ids: Iterable[str],
        now: Optional[datetime] = None,
    ) -> dict[str, list[Coupon]]:
        """
        Restrict coupons to the given retailers, active and unexpired.

        Order within a retailer follows the source order.
        """
        now = now or datetime.now(timezone.utc)
        wanted = set(retailer_ids)

        matched: dict[str, list[Coupon]] = {}
        expired = 0
        for coupon in coupons:
            if coupon.retailer_id not in wanted:
                continue
            if not is_coupon_valid(coupon, now):
                expired += 1
                continue
            matched.setdefault(coupon.retailer_id, []).append(coupon)

        if expired:
            logger.debug(f"Skipped {expired} inactive or expired coupons")
        return matched


coupon_matcher = CouponMatcher()
