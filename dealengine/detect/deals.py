"""Cross-product deals feed."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from dealengine.detect.badges import discount_percent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DealListing:
    """A discounted or on-sale listing joined with its product and retailer names."""

    product_id: str
    product_name: str
    retailer_id: str
    retailer_name: str
    price: Decimal
    compare_at_price: Optional[Decimal]
    on_sale: bool
    in_stock: bool
    product_url: Optional[str] = None
    affiliate_url: Optional[str] = None
    product_brand: Optional[str] = None
    product_category: str = ""

    @property
    def discount_pct(self) -> Optional[int]:
        return discount_percent(self.price, self.compare_at_price)


def _deal_sort_key(deal: DealListing) -> tuple:
    pct = deal.discount_pct
    # Discounted deals first (largest discount), then the rest by price
    if pct is not None:
        return (0, -pct, Decimal("0"))
    return (1, 0, deal.price)


def rank_deals(deals: Iterable[DealListing], limit: Optional[int] = None) -> list[DealListing]:
    """
    Rank in-stock listings that are on sale or carry a compare-at price.

    Listings with a discount come first, largest discount first; the rest
    follow by ascending price. Ties keep input order.
    """
    eligible = [
        d for d in deals
        if d.in_stock and (d.on_sale or d.compare_at_price is not None)
    ]
    ranked = sorted(eligible, key=_deal_sort_key)
    if limit is not None:
        ranked = ranked[:limit]
    logger.debug(f"Ranked {len(ranked)} deals from {len(eligible)} eligible listings")
    return ranked
