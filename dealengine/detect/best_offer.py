"""Deterministic ranking of competing listings."""

from typing import Iterable

from dealengine.ingest.base import RawListing


def offer_sort_key(listing: RawListing) -> tuple:
    """
    Sort key ranking listings best-first.

    In-stock before out-of-stock, then lower price, then the most
    recently checked.
    """
    return (
        not listing.in_stock,
        listing.price,
        -listing.last_checked.timestamp(),
    )


def pick_best_listing(listings: Iterable[RawListing]) -> RawListing:
    """
    Pick the single best listing among candidates for one offer.

    Raises:
        ValueError: If no candidates are given
    """
    candidates = list(listings)
    if not candidates:
        raise ValueError("pick_best_listing requires at least one listing")
    return min(candidates, key=offer_sort_key)


def best_listing_per_retailer(listings: Iterable[RawListing]) -> list[RawListing]:
    """Reduce listings to the best one per retailer, in first-seen retailer order."""
    by_retailer: dict[str, RawListing] = {}
    for listing in listings:
        existing = by_retailer.get(listing.retailer_id)
        if existing is None:
            by_retailer[listing.retailer_id] = listing
        else:
            by_retailer[listing.retailer_id] = pick_best_listing([existing, listing])
    return list(by_retailer.values())
