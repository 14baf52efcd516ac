"""Group same-retailer SKU rows that are color/finish variants of one offer.

Retailers often list one product under several rows whose titles differ
only by a trailing color segment, e.g. ``"Widget X200 - Matte Black"`` and
``"Widget X200 - Gunmetal Gray"``. Those rows collapse into one
``LogicalOffer`` with a variant per row.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from dealengine.detect.best_offer import offer_sort_key, pick_best_listing
from dealengine.ingest.base import RawListing, RetailerMeta

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = " - "

DEFAULT_LABEL = "(default)"
UNTITLED_LABEL = "(listing)"

# Words that name a color on their own
COLOR_WORDS = frozenset({
    "black", "white", "gray", "grey", "silver", "gold", "red", "blue", "green",
    "pink", "purple", "orange", "yellow", "brown", "tan", "beige", "cream",
    "ivory", "navy", "teal", "cyan", "magenta", "clear", "transparent",
})

# Finish and shade modifiers that only accompany a color word
FINISH_WORDS = frozenset({
    "matte", "matt", "gloss", "glossy", "satin", "metallic", "brushed",
    "gunmetal", "graphite", "charcoal", "midnight", "space", "rose",
    "champagne", "titanium", "chrome", "dark", "light", "deep", "pale",
    "slate", "bronze", "copper", "platinum", "pearl", "frost", "frosted",
    "smoke", "smoked", "sky", "forest", "olive", "wine", "ruby", "onyx",
    "jet", "piano", "walnut", "natural",
})

_NON_LETTERS = re.compile(r"[^a-z]+")
_WHITESPACE = re.compile(r"\s+")


def split_title_segments(title: str) -> list[str]:
    """Split a title on " - " into trimmed, non-empty segments."""
    collapsed = _WHITESPACE.sub(" ", title).strip()
    return [seg.strip() for seg in collapsed.split(SEGMENT_SEPARATOR) if seg.strip()]


def looks_like_color_segment(segment: str) -> bool:
    """True if every token is a color/finish word or "and", with at least one color."""
    tokens = [t for t in _NON_LETTERS.split(segment.lower()) if t]
    if not tokens:
        return False
    if not any(t in COLOR_WORDS for t in tokens):
        return False
    return all(t in COLOR_WORDS or t in FINISH_WORDS or t == "and" for t in tokens)


def split_base_and_variant(title: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split an offer title into (base_title, variant_label).

    Returns (None, None) for a missing title and (title, None) when the
    last segment is not a color.
    """
    if not title:
        return None, None
    segments = split_title_segments(title)
    if len(segments) >= 2 and looks_like_color_segment(segments[-1]):
        return SEGMENT_SEPARATOR.join(segments[:-1]), segments[-1]
    return title, None


def model_label_for(base_title: Optional[str]) -> Optional[str]:
    """Drop the leading brand/series segment of a multi-segment base title."""
    if not base_title:
        return base_title
    segments = split_title_segments(base_title)
    if len(segments) >= 2:
        return SEGMENT_SEPARATOR.join(segments[1:])
    return base_title


@dataclass(frozen=True)
class Variant:
    """One selectable SKU row within a logical offer."""

    label: str
    listing: RawListing


@dataclass
class LogicalOffer:
    """One retailer's offer after grouping its variant rows."""

    group_key: str
    retailer_id: str
    retailer_name: str
    retailer: Optional[RetailerMeta]
    base_title: Optional[str]
    model_label: Optional[str]
    variants: list[Variant]

    @property
    def best(self) -> RawListing:
        return pick_best_listing(v.listing for v in self.variants)

    def select(self, external_id: Optional[str] = None) -> RawListing:
        """Resolve a selected variant by external id, falling back to ``best``."""
        if external_id is not None:
            for variant in self.variants:
                if variant.listing.external_id == external_id:
                    return variant.listing
        return self.best


def _unique_by_buy_target(variants: list[Variant]) -> list[Variant]:
    seen: set[str] = set()
    out = []
    for variant in variants:
        listing = variant.listing
        key = listing.buy_url if listing.buy_url is not None else listing.id
        if key in seen:
            continue
        seen.add(key)
        out.append(variant)
    return out


def _disambiguate_labels(variants: list[Variant]) -> list[Variant]:
    counts: dict[str, int] = {}
    out = []
    for variant in variants:
        count = counts.get(variant.label, 0) + 1
        counts[variant.label] = count
        label = variant.label if count == 1 else f"{variant.label} ({count})"
        out.append(Variant(label=label, listing=variant.listing))
    return out


def _group_sort_key(offer: LogicalOffer) -> tuple:
    return offer_sort_key(offer.best) + (offer.retailer_name.casefold(), offer.retailer_name)


class VariantGrouper:
    """Collapse variant rows into logical offers and rank them for display."""

    def group(self, listings: Iterable[RawListing]) -> list[LogicalOffer]:
        """
        Group listings by (retailer, base title).

        Listings without a title never merge with each other. Within a group,
        rows pointing at the same buy target are deduplicated and repeated
        labels get " (2)", " (3)", ... suffixes in first-seen order.

        Returns:
            Logical offers ordered best-first, ties broken by retailer name
        """
        groups: dict[tuple[str, str], LogicalOffer] = {}

        for listing in listings:
            title = listing.offer_title
            base_title, variant_label = split_base_and_variant(title)
            base_key = base_title if base_title is not None else f"{listing.retailer_id}:{listing.id}"
            key = (listing.retailer_id, base_key)

            offer = groups.get(key)
            if offer is None:
                offer = LogicalOffer(
                    group_key=f"{listing.retailer_id}|{base_key}",
                    retailer_id=listing.retailer_id,
                    retailer_name=listing.retailer_name,
                    retailer=listing.retailer,
                    base_title=base_title,
                    model_label=model_label_for(base_title),
                    variants=[],
                )
                groups[key] = offer

            label = variant_label or (DEFAULT_LABEL if title else UNTITLED_LABEL)
            offer.variants.append(Variant(label=label, listing=listing))

        offers = []
        for offer in groups.values():
            offer.variants = _disambiguate_labels(_unique_by_buy_target(offer.variants))
            offers.append(offer)

        offers.sort(key=_group_sort_key)
        logger.debug(f"Grouped listings into {len(offers)} logical offers")
        return offers


variant_grouper = VariantGrouper()
