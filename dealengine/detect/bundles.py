"""Bundle detection for store product titles.

Separates listings of the base product from kits that package it with
extra items ("... with FREE XLR Cable", "(Complete Podcasting Bundle)").
The indicator patterns and keywords are data tables so they can be
extended and tested without touching the classification steps.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from dealengine.config import settings
from dealengine.ingest.base import BundleCandidate

logger = logging.getLogger(__name__)


# Indicator patterns tested against the raw store title (name -> pattern)
BUNDLE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("bundle", re.compile(r"\bbundle\b", re.IGNORECASE)),
    ("kit", re.compile(r"\bkit\b", re.IGNORECASE)),
    ("package", re.compile(r"\bpackage\b", re.IGNORECASE)),
    ("combo", re.compile(r"\bcombo\b", re.IGNORECASE)),
    (
        "with_accessory",
        re.compile(
            r"\bwith\s+(?:free\s+)?(?:\d+'?\s*)?"
            r"(?:xlr|usb|cable|arm|stand|mount|filter|shock|case|bag|headphone)",
            re.IGNORECASE,
        ),
    ),
    (
        "with_word_accessory",
        re.compile(
            r"\bwith\s+(?:free\s+)?\w+\s+(?:cable|arm|stand|mount|filter|shock|case|bag)",
            re.IGNORECASE,
        ),
    ),
    ("with_free", re.compile(r"\bwith\s+free\b", re.IGNORECASE)),
    ("includes", re.compile(r"\bincludes?\b", re.IGNORECASE)),
    ("full_system", re.compile(r"\bfull\s+system\b", re.IGNORECASE)),
    ("plus_item", re.compile(r"\+\s*\w+")),
    ("free_quantity", re.compile(r"\bfree\s+\d", re.IGNORECASE)),
    ("stereo_pair", re.compile(r"\bstereo\s+pair\b", re.IGNORECASE)),
    (
        "podcasting_bundle",
        re.compile(r"\bpodcasting\s+(?:bundle|kit|ultimate|savings|interview)\b", re.IGNORECASE),
    ),
    ("broadcasting_bundle", re.compile(r"\bbroadcasting\s+bundle\b", re.IGNORECASE)),
    ("streaming_bundle", re.compile(r"\bstreaming\s+bundle\b", re.IGNORECASE)),
    ("recording_bundle", re.compile(r"\brecording\s+bundle\b", re.IGNORECASE)),
)

# Keywords that appear in bundle titles but not in base product names
BUNDLE_KEYWORDS: tuple[str, ...] = (
    "bundle", "kit", "package", "combo",
    "with free", "free",
    "includes", "including",
    "complete", "full system",
    "upgrade cable", "upgrade",
    "cloudlifter", "dynamite",
    "podcasting", "podcast",
    "streaming", "broadcasting",
    "premium package", "starter",
    "stereo pair",
    "savings bundle", "ultimate bundle",
)

_PIPE_SUFFIX = re.compile(r"\s*\|.*$")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_MULTI_SPACE = re.compile(r"\s{2,}")

# Where bundle-specific text begins inside the suffix after the product name
_DESCRIPTION_START = re.compile(
    r"\b(?:with|and|\+|bundle|kit|package|combo|set|free|includes?|including|complete|full system|upgrade|stereo)\b|\(",
    re.IGNORECASE,
)
_LEADING_SEPARATORS = re.compile(r"^[-–—:\s|]+")
_LEADING_SEPARATORS_OR_COMMA = re.compile(r"^[-–—:\s|,]+")
_WITH_SUFFIX = re.compile(r"\b(with\s+.+)$", re.IGNORECASE)
_PLUS_SUFFIX = re.compile(r"(\+\s*.+)$")
_BUNDLE_PARENTHETICAL = re.compile(
    r"\(([^)]*(?:bundle|kit|package|combo|set|pair)[^)]*)\)", re.IGNORECASE
)


def simplify_title(name: str) -> str:
    """Lowercase, drop any "| ..." suffix, keep only [a-z0-9] words."""
    text = _PIPE_SUFFIX.sub("", name.lower())
    text = _NON_ALNUM.sub(" ", text)
    return _MULTI_SPACE.sub(" ", text).strip()


def matching_bundle_pattern(store_title: str) -> Optional[str]:
    """Name of the first indicator pattern matching the raw title, if any."""
    for name, pattern in BUNDLE_PATTERNS:
        if pattern.search(store_title):
            return name
    return None


def is_bundle_title(store_title: str, product_name: str) -> bool:
    """
    Decide whether a store title is a bundle of the named product.

    Args:
        store_title: Title of the store row
        product_name: Canonical name of the base product

    Returns:
        True if the title packages the product with extra items
    """
    simple_store = simplify_title(store_title)
    simple_product = simplify_title(product_name)

    if simple_store == simple_product:
        return False

    # Bundles always add descriptive text
    if len(simple_store) <= len(simple_product) + settings.bundle_min_extra_chars:
        return False

    if matching_bundle_pattern(store_title) is not None:
        return True

    lower_title = store_title.lower()
    lower_product = product_name.lower()
    return any(
        keyword in lower_title and keyword not in lower_product
        for keyword in BUNDLE_KEYWORDS
    )


def _strip_wrapping_parens(text: str) -> str:
    if text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip()
    return text


def extract_bundle_description(store_title: str, product_name: str) -> str:
    """
    Describe what a bundle adds on top of the base product.

    Examples:
        "EV RE20 Microphone with FREE 20' XLR Cable" -> "with FREE 20' XLR Cable"
        "Rode Procaster (Complete Podcasting Bundle)" -> "Complete Podcasting Bundle"
        "Focal Clear + Upgrade Cable Bundle" -> "Upgrade Cable Bundle"

    Never fails; the whole title is the last resort.
    """
    idx = store_title.lower().find(product_name.lower())
    if idx != -1:
        raw_suffix = store_title[idx + len(product_name):].strip()
        if raw_suffix:
            start = _DESCRIPTION_START.search(raw_suffix)
            if start is not None:
                desc = raw_suffix[start.start():].strip()
                desc = _LEADING_SEPARATORS.sub("", desc).strip()
                desc = _strip_wrapping_parens(desc)
                if desc:
                    return desc
            cleaned = _LEADING_SEPARATORS_OR_COMMA.sub("", raw_suffix).strip()
            cleaned = _strip_wrapping_parens(cleaned)
            if cleaned:
                return cleaned

    match = _WITH_SUFFIX.search(store_title)
    if match:
        return match.group(1)

    match = _PLUS_SUFFIX.search(store_title)
    if match:
        return match.group(1)

    match = _BUNDLE_PARENTHETICAL.search(store_title)
    if match:
        return match.group(1)

    return store_title


@dataclass(frozen=True)
class BundleOffer:
    """A classified bundle row ready for display under its retailer."""

    candidate: BundleCandidate
    description: str

    @property
    def retailer_id(self) -> str:
        return self.candidate.retailer_id

    @property
    def buy_url(self) -> Optional[str]:
        return self.candidate.buy_url


class BundleClassifier:
    """Filter store rows down to displayable bundle offers."""

    def is_displayable(self, candidate: BundleCandidate) -> bool:
        """Active retailer, positive price, not discontinued."""
        if candidate.discontinued:
            return False
        if candidate.retailer is None or candidate.retailer.is_active is not True:
            return False
        return candidate.price is not None and candidate.price > Decimal("0")

    def classify(
        self,
        candidates: Iterable[BundleCandidate],
        product_name: Optional[str],
    ) -> list[BundleOffer]:
        """
        Keep the candidates that are bundles of ``product_name``.

        Source order is preserved. Without a product name nothing can be
        compared, so no bundles are returned.
        """
        if not product_name:
            return []

        offers = []
        for candidate in candidates:
            if not self.is_displayable(candidate):
                continue
            if not is_bundle_title(candidate.title, product_name):
                continue
            offers.append(
                BundleOffer(
                    candidate=candidate,
                    description=extract_bundle_description(candidate.title, product_name),
                )
            )

        if offers:
            logger.debug(f"Classified {len(offers)} bundle rows for '{product_name}'")
        return offers

    def group_by_retailer(self, offers: Iterable[BundleOffer]) -> dict[str, list[BundleOffer]]:
        """Group bundle offers per retailer, keeping source order."""
        grouped: dict[str, list[BundleOffer]] = {}
        for offer in offers:
            grouped.setdefault(offer.retailer_id, []).append(offer)
        return grouped


bundle_classifier = BundleClassifier()
