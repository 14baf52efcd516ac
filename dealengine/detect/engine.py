"""Deal view assembly.

Runs the independent computations over one product snapshot and merges
them into per-offer annotations for the rendering layer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from dealengine import metrics
from dealengine.detect.badges import Availability, DealBadge, availability_for, badges_for
from dealengine.detect.best_offer import best_listing_per_retailer
from dealengine.detect.bundles import BundleClassifier, BundleOffer, bundle_classifier
from dealengine.detect.coupons import CouponMatcher, coupon_matcher
from dealengine.detect.insights import PriceInsight, PriceInsightEngine, price_insight_engine
from dealengine.detect.staleness import StalenessEvaluator, relative_time, staleness_evaluator
from dealengine.detect.variants import LogicalOffer, VariantGrouper, variant_grouper
from dealengine.ingest.base import Coupon, ProductSnapshot, RawListing, RetailerMeta
from dealengine.normalize.processor import ListingNormalizer, listing_normalizer

logger = logging.getLogger(__name__)


@dataclass
class DealAnnotation:
    """One logical offer with everything attached for display."""

    offer: LogicalOffer
    current: RawListing  # selected variant, else the offer's best
    insight: Optional[PriceInsight] = None
    coupons: list[Coupon] = field(default_factory=list)
    bundles: list[BundleOffer] = field(default_factory=list)
    badges: list[DealBadge] = field(default_factory=list)
    show_base_title: bool = False
    availability: Availability = Availability.IN_STOCK

    @property
    def retailer_id(self) -> str:
        return self.offer.retailer_id

    @property
    def retailer_name(self) -> str:
        return self.offer.retailer_name


@dataclass
class OrphanBundleGroup:
    """Bundles from a retailer that has no regular listing for the product."""

    retailer_id: str
    retailer_name: str
    retailer: Optional[RetailerMeta]
    bundles: list[BundleOffer]


@dataclass
class DealView:
    """Decision-ready view of where to buy one product."""

    product_id: str
    annotations: list[DealAnnotation]
    orphan_bundles: list[OrphanBundleGroup]
    is_stale: bool
    last_checked_overall: Optional[datetime]
    last_checked_label: Optional[str]
    global_lowest: Optional[Decimal]
    discontinued: bool = False  # product-level flag
    degraded_sources: list[str] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.annotations) or bool(self.orphan_bundles)


class DealEngine:
    """Merge offers, insights, coupons and bundles into a ``DealView``."""

    def __init__(
        self,
        normalizer: ListingNormalizer = listing_normalizer,
        grouper: VariantGrouper = variant_grouper,
        classifier: BundleClassifier = bundle_classifier,
        insight_engine: PriceInsightEngine = price_insight_engine,
        matcher: CouponMatcher = coupon_matcher,
        staleness: StalenessEvaluator = staleness_evaluator,
    ):
        self.normalizer = normalizer
        self.grouper = grouper
        self.classifier = classifier
        self.insight_engine = insight_engine
        self.matcher = matcher
        self.staleness = staleness

    def build(
        self,
        snapshot: ProductSnapshot,
        now: Optional[datetime] = None,
        selected_variants: Optional[dict[str, str]] = None,
    ) -> DealView:
        """
        Build the deal view for one product snapshot.

        Args:
            snapshot: Row sets fetched for the product
            now: Reference time for trend, coupon expiry and staleness
            selected_variants: Chosen external id per offer group key

        Returns:
            DealView with annotations ordered best offer first
        """
        now = now or datetime.now(timezone.utc)
        selected_variants = selected_variants or {}
        request = snapshot.request

        # Staleness and orphan bundles see every active listing, discontinued
        # store rows included; offers and insights do not.
        active = self.normalizer.normalize(snapshot.listings)
        listings = self.normalizer.enrich_with_store_rows(active, snapshot.store_rows)
        best_per_retailer = best_listing_per_retailer(listings)
        retailer_ids = [l.retailer_id for l in best_per_retailer]

        offers = self.grouper.group(listings)
        report = self.insight_engine.compute(snapshot.history, best_per_retailer, now=now)
        coupons = self.matcher.match(snapshot.coupons, retailer_ids, now=now)
        bundles = self.classifier.classify(snapshot.bundle_candidates, request.product_name)
        bundles_by_retailer = self.classifier.group_by_retailer(bundles)
        freshness = self.staleness.evaluate(active, now=now)

        offers_per_retailer: dict[str, int] = {}
        for offer in offers:
            offers_per_retailer[offer.retailer_id] = offers_per_retailer.get(offer.retailer_id, 0) + 1

        annotations = []
        bundled_retailers: set[str] = set()
        for offer in offers:
            current = offer.select(selected_variants.get(offer.group_key))
            insight = report.get(offer.retailer_id)

            # Bundles nest under the retailer's first (best-ranked) offer only
            retailer_bundles = []
            if offer.retailer_id not in bundled_retailers:
                retailer_bundles = bundles_by_retailer.get(offer.retailer_id, [])
                bundled_retailers.add(offer.retailer_id)

            annotations.append(
                DealAnnotation(
                    offer=offer,
                    current=current,
                    insight=insight,
                    coupons=coupons.get(offer.retailer_id, []),
                    bundles=retailer_bundles,
                    badges=badges_for(current, insight),
                    show_base_title=(
                        offer.base_title is not None
                        and offers_per_retailer[offer.retailer_id] > 1
                    ),
                    availability=availability_for(current, request.discontinued),
                )
            )

        listed_retailers = {l.retailer_id for l in active}
        orphan_bundles = []
        for retailer_id, retailer_bundles in bundles_by_retailer.items():
            if retailer_id in listed_retailers:
                continue
            retailer = retailer_bundles[0].candidate.retailer
            orphan_bundles.append(
                OrphanBundleGroup(
                    retailer_id=retailer_id,
                    retailer_name=retailer.name if retailer and retailer.name else "Unknown",
                    retailer=retailer,
                    bundles=retailer_bundles,
                )
            )

        if bundles:
            metrics.bundles_detected_total.inc(len(bundles))

        logger.debug(
            f"Built deal view for {request.product_id}: {len(annotations)} offers, "
            f"{len(bundles)} bundles, stale={freshness.is_stale}"
        )

        return DealView(
            product_id=request.product_id,
            annotations=annotations,
            orphan_bundles=orphan_bundles,
            is_stale=freshness.is_stale,
            last_checked_overall=freshness.last_checked_overall,
            last_checked_label=(
                relative_time(freshness.last_checked_overall, now)
                if freshness.last_checked_overall is not None
                else None
            ),
            global_lowest=report.global_lowest,
            discontinued=request.discontinued,
            degraded_sources=list(snapshot.degraded_sources),
        )


deal_engine = DealEngine()
