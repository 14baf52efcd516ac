"""Deal view and deals feed routes."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from dealengine.api.deps import get_snapshot_source
from dealengine.config import settings
from dealengine.detect.bundles import BundleOffer
from dealengine.detect.coupons import auto_apply_link, discount_label
from dealengine.detect.deals import DealListing, rank_deals
from dealengine.detect.engine import DealAnnotation, DealView, OrphanBundleGroup
from dealengine.ingest.base import Coupon, RawListing, RetailerMeta, SourceError
from dealengine.ingest.repository import SqlSnapshotSource
from dealengine.worker.coordinator import DealViewCoordinator, ViewStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["deals"])


class RetailerResponse(BaseModel):
    id: str
    name: str
    base_url: str
    description: str | None
    ships_from: str | None
    return_policy: str | None
    authorized_dealer: bool

    class Config:
        from_attributes = True


class ListingResponse(BaseModel):
    id: str
    retailer_id: str
    external_id: str | None
    offer_title: str | None
    price: float
    compare_at_price: float | None
    currency: str
    in_stock: bool
    on_sale: bool
    buy_url: str | None
    last_checked: datetime


class VariantResponse(BaseModel):
    label: str
    listing: ListingResponse


class InsightResponse(BaseModel):
    current_price: float
    lowest_ever: float
    lowest_ever_date: datetime
    is_all_time_low: bool
    price_change_pct: float | None
    trend: str


class CouponResponse(BaseModel):
    id: str
    code: str
    description: str
    discount_type: str
    discount_label: str
    auto_apply_link: str | None
    expires_at: datetime | None


class BundleResponse(BaseModel):
    id: str
    title: str
    description: str
    price: float | None
    in_stock: bool
    buy_url: str | None


class BadgeResponse(BaseModel):
    type: str
    value: float | None


class OfferResponse(BaseModel):
    group_key: str
    retailer_id: str
    retailer_name: str
    retailer: RetailerResponse | None
    base_title: str | None
    model_label: str | None
    show_base_title: bool
    variants: List[VariantResponse]
    current: ListingResponse
    availability: str
    insight: InsightResponse | None
    coupons: List[CouponResponse]
    bundles: List[BundleResponse]
    badges: List[BadgeResponse]


class OrphanBundleGroupResponse(BaseModel):
    retailer_id: str
    retailer_name: str
    retailer: RetailerResponse | None
    bundles: List[BundleResponse]


class DealViewResponse(BaseModel):
    product_id: str
    status: str
    offers: List[OfferResponse]
    orphan_bundles: List[OrphanBundleGroupResponse]
    is_stale: bool
    last_checked_overall: datetime | None
    last_checked_label: str | None
    global_lowest: float | None
    discontinued: bool
    degraded_sources: List[str]


class DealListingResponse(BaseModel):
    product_id: str
    product_name: str
    product_brand: str | None
    product_category: str
    retailer_id: str
    retailer_name: str
    price: float
    compare_at_price: float | None
    discount_pct: int | None
    on_sale: bool
    in_stock: bool
    product_url: str | None
    affiliate_url: str | None

def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _retailer(retailer: Optional[RetailerMeta]) -> Optional[RetailerResponse]:
    return RetailerResponse.model_validate(retailer) if retailer is not None else None


def _listing(listing: RawListing) -> ListingResponse:
    return ListingResponse(
        id=listing.id,
        retailer_id=listing.retailer_id,
        external_id=listing.external_id,
        offer_title=listing.offer_title,
        price=float(listing.price),
        compare_at_price=_money(listing.compare_at_price),
        currency=listing.currency,
        in_stock=listing.in_stock,
        on_sale=listing.on_sale,
        buy_url=listing.buy_url,
        last_checked=listing.last_checked,
    )


def _coupon(coupon: Coupon, current: RawListing) -> CouponResponse:
    base_url = current.retailer.base_url if current.retailer else None
    return CouponResponse(
        id=coupon.id,
        code=coupon.code,
        description=coupon.description,
        discount_type=coupon.discount_type.value,
        discount_label=discount_label(coupon),
        auto_apply_link=auto_apply_link(coupon, current.product_url, base_url),
        expires_at=coupon.expires_at,
    )


def _bundle(bundle: BundleOffer) -> BundleResponse:
    candidate = bundle.candidate
    return BundleResponse(
        id=candidate.id,
        title=candidate.title,
        description=bundle.description,
        price=_money(candidate.price),
        in_stock=candidate.in_stock,
        buy_url=candidate.buy_url,
    )


def _offer(annotation: DealAnnotation) -> OfferResponse:
    offer = annotation.offer
    insight = annotation.insight
    return OfferResponse(
        group_key=offer.group_key,
        retailer_id=offer.retailer_id,
        retailer_name=offer.retailer_name,
        retailer=_retailer(offer.retailer),
        base_title=offer.base_title,
        model_label=offer.model_label,
        show_base_title=annotation.show_base_title,
        variants=[VariantResponse(label=v.label, listing=_listing(v.listing)) for v in offer.variants],
        current=_listing(annotation.current),
        availability=annotation.availability.value,
        insight=(
            InsightResponse(
                current_price=float(insight.current_price),
                lowest_ever=float(insight.lowest_ever),
                lowest_ever_date=insight.lowest_ever_date,
                is_all_time_low=insight.is_all_time_low,
                price_change_pct=insight.price_change_pct,
                trend=insight.trend.value,
            )
            if insight is not None
            else None
        ),
        coupons=[_coupon(c, annotation.current) for c in annotation.coupons],
        bundles=[_bundle(b) for b in annotation.bundles],
        badges=[BadgeResponse(type=b.type.value, value=b.value) for b in annotation.badges],
    )


def _orphans(group: OrphanBundleGroup) -> OrphanBundleGroupResponse:
    return OrphanBundleGroupResponse(
        retailer_id=group.retailer_id,
        retailer_name=group.retailer_name,
        retailer=_retailer(group.retailer),
        bundles=[_bundle(b) for b in group.bundles],
    )


def view_to_response(status: ViewStatus, view: DealView) -> DealViewResponse:
    return DealViewResponse(
        product_id=view.product_id,
        status=status.value,
        offers=[_offer(a) for a in view.annotations],
        orphan_bundles=[_orphans(g) for g in view.orphan_bundles],
        is_stale=view.is_stale,
        last_checked_overall=view.last_checked_overall,
        last_checked_label=view.last_checked_label,
        global_lowest=_money(view.global_lowest),
        discontinued=view.discontinued,
        degraded_sources=view.degraded_sources,
    )


def parse_variant_selection(values: List[str]) -> dict[str, str]:
    """Parse ``group_key=external_id`` pairs; the last ``=`` splits them."""
    selected = {}
    for value in values:
        group_key, sep, external_id = value.rpartition("=")
        if not sep or not group_key or not external_id:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid variant selection '{value}', expected group_key=external_id",
            )
        selected[group_key] = external_id
    return selected


@router.get("/products/{product_id}/deals", response_model=DealViewResponse)
async def get_product_deals(
    product_id: str,
    variant: List[str] = Query(default=[], description="Selected variant as group_key=external_id"),
    source: SqlSnapshotSource = Depends(get_snapshot_source),
):
    """
    Where to buy a product.

    Offers are ordered best first and carry their price insight, coupons,
    bundles and badges. Bundles from retailers without a regular listing
    are returned separately.
    """
    selected = parse_variant_selection(variant)

    try:
        request = await source.get_product_request(product_id)
    except SourceError as e:
        logger.error(f"Product lookup failed for {product_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to load product")
    if request is None:
        raise HTTPException(status_code=404, detail="Product not found")

    coordinator = DealViewCoordinator(source)
    state = await coordinator.load(request, selected_variants=selected)

    if state.status == ViewStatus.ERROR:
        raise HTTPException(status_code=502, detail="Failed to load price listings")

    return view_to_response(state.status, state.view)


@router.get("/deals", response_model=List[DealListingResponse])
async def list_deals(
    limit: int | None = Query(default=None, ge=1, le=500),
    source: SqlSnapshotSource = Depends(get_snapshot_source),
):
    """Discounted and on-sale listings across products, biggest discount first."""
    try:
        deals = await source.fetch_deal_listings()
    except SourceError as e:
        logger.error(f"Deals feed failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to load deals")

    ranked = rank_deals(deals, limit=limit or settings.deals_feed_limit)
    return [_deal(d) for d in ranked]


def _deal(deal: DealListing) -> DealListingResponse:
    return DealListingResponse(
        product_id=deal.product_id,
        product_name=deal.product_name,
        product_brand=deal.product_brand,
        product_category=deal.product_category,
        retailer_id=deal.retailer_id,
        retailer_name=deal.retailer_name,
        price=float(deal.price),
        compare_at_price=_money(deal.compare_at_price),
        discount_pct=deal.discount_pct,
        on_sale=deal.on_sale,
        in_stock=deal.in_stock,
        product_url=deal.product_url,
        affiliate_url=deal.affiliate_url,
    )
