"""Normalize raw listing rows before ranking and grouping."""

import logging
from dataclasses import replace
from typing import Iterable

from dealengine.ingest.base import RawListing, StoreRowMeta

logger = logging.getLogger(__name__)


class ListingNormalizer:
    """Filter listings to active retailers and attach store titles."""

    def normalize(self, listings: Iterable[RawListing]) -> list[RawListing]:
        """
        Keep only listings whose retailer is active.

        Listings without a joined retailer are dropped: activity cannot be
        confirmed for them. An empty input gives an empty output.
        """
        active = []
        dropped = 0
        for listing in listings:
            if listing.retailer is not None and listing.retailer.is_active is True:
                active.append(listing)
            else:
                dropped += 1

        if dropped:
            logger.debug(f"Dropped {dropped} listings from inactive retailers")
        return active

    def enrich_with_store_rows(
        self,
        listings: Iterable[RawListing],
        store_rows: dict[tuple[str, str], StoreRowMeta],
    ) -> list[RawListing]:
        """
        Attach the store row title as ``offer_title`` and drop discontinued rows.

        Args:
            listings: Listings for one product
            store_rows: Store row metadata keyed by (retailer_id, external_id)

        Returns:
            Listings with ``offer_title`` set where a store row exists
        """
        enriched = []
        for listing in listings:
            meta = store_rows.get((listing.retailer_id, listing.external_id or ""))
            if meta is not None and meta.discontinued_new:
                continue
            title = meta.title if meta is not None and meta.title else None
            enriched.append(replace(listing, offer_title=title or listing.offer_title))
        return enriched


listing_normalizer = ListingNormalizer()
