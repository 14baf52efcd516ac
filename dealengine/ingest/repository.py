"""SQLAlchemy-backed snapshot source."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealengine.db.models import (
    PriceHistory,
    PriceListing,
    Product,
    Retailer,
    RetailerCoupon,
    StoreProduct,
)
from dealengine.db.session import AsyncSessionLocal
from dealengine.detect.deals import DealListing
from dealengine.ingest.base import (
    BundleCandidate,
    Coupon,
    DiscountType,
    PriceHistoryPoint,
    ProductRequest,
    RawListing,
    RetailerMeta,
    SnapshotSource,
    SourceError,
    StoreRowMeta,
    to_decimal,
    to_utc,
)

logger = logging.getLogger(__name__)


def retailer_meta(retailer: Optional[Retailer]) -> Optional[RetailerMeta]:
    if retailer is None:
        return None
    return RetailerMeta(
        id=retailer.id,
        name=retailer.name,
        base_url=retailer.base_url or "",
        is_active=retailer.is_active,
        description=retailer.description,
        ships_from=retailer.ships_from,
        return_policy=retailer.return_policy,
        authorized_dealer=retailer.authorized_dealer,
    )


def listing_from_orm(row: PriceListing) -> RawListing:
    return RawListing(
        id=row.id,
        product_id=row.product_id,
        retailer_id=row.retailer_id,
        price=to_decimal(row.price),
        last_checked=to_utc(row.last_checked),
        currency=(row.currency or "USD").upper(),
        in_stock=row.in_stock,
        on_sale=row.on_sale,
        compare_at_price=to_decimal(row.compare_at_price),
        product_url=row.product_url,
        affiliate_url=row.affiliate_url,
        external_id=row.external_id,
        retailer=retailer_meta(row.retailer),
    )


def bundle_candidate_from_orm(row: StoreProduct) -> BundleCandidate:
    raw = row.raw_data or {}
    return BundleCandidate(
        id=row.id,
        retailer_id=row.retailer_id,
        title=row.title or "",
        price=to_decimal(row.price),
        in_stock=row.in_stock,
        product_url=row.product_url,
        affiliate_url=row.affiliate_url,
        discontinued=raw.get("discontinued") is True,
        retailer=retailer_meta(row.retailer),
    )


def coupon_from_orm(row: RetailerCoupon) -> Coupon:
    return Coupon(
        id=row.id,
        retailer_id=row.retailer_id,
        code=row.code,
        discount_type=DiscountType(row.discount_type),
        description=row.description or "",
        discount_value=to_decimal(row.discount_value),
        min_purchase=to_decimal(row.min_purchase),
        auto_apply_url=row.auto_apply_url,
        is_active=row.is_active,
        expires_at=to_utc(row.expires_at),
    )


class SqlSnapshotSource(SnapshotSource):
    """Read product rows through async SQLAlchemy sessions.

    Each fetch opens its own session so the fetches can run
    concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_product_request(self, product_id: str) -> Optional[ProductRequest]:
        """Look up the product name and discontinued flag, or None if unknown."""
        try:
            async with self.session_factory() as db:
                product = await db.get(Product, product_id)
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load product {product_id}: {e}") from e
        if product is None:
            return None
        return ProductRequest(
            product_id=product.id,
            product_name=product.name,
            discontinued=product.discontinued,
        )

    async def fetch_listings(self, product_id: str) -> list[RawListing]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(PriceListing)
                    .where(PriceListing.product_id == product_id)
                    .order_by(PriceListing.price.asc())
                )
                return [listing_from_orm(row) for row in result.scalars().unique().all()]
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load listings for {product_id}: {e}") from e

    async def fetch_store_rows(self, product_id: str) -> dict[tuple[str, str], StoreRowMeta]:
        """Store row titles and discontinued flags for the product's listings."""
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(
                        StoreProduct.retailer_id,
                        StoreProduct.external_id,
                        StoreProduct.title,
                        StoreProduct.raw_data,
                    ).where(StoreProduct.canonical_product_id == product_id)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load store titles for {product_id}: {e}") from e

        return {
            (retailer_id, external_id): StoreRowMeta.from_raw_data(title, raw_data)
            for retailer_id, external_id, title, raw_data in rows
        }

    async def fetch_price_history(self, product_id: str) -> list[PriceHistoryPoint]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(PriceHistory.retailer_id, PriceHistory.price, PriceHistory.recorded_at)
                    .where(PriceHistory.product_id == product_id)
                    .order_by(PriceHistory.recorded_at.asc(), PriceHistory.id.asc())
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load price history for {product_id}: {e}") from e

        return [
            PriceHistoryPoint(
                retailer_id=retailer_id,
                price=to_decimal(price),
                recorded_at=to_utc(recorded_at),
            )
            for retailer_id, price, recorded_at in rows
        ]

    async def fetch_bundle_candidates(self, product_id: str) -> list[BundleCandidate]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(StoreProduct)
                    .where(StoreProduct.canonical_product_id == product_id)
                    .order_by(StoreProduct.price.asc())
                )
                return [bundle_candidate_from_orm(row) for row in result.scalars().unique().all()]
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load store rows for {product_id}: {e}") from e

    async def fetch_coupons(self, retailer_ids: list[str]) -> list[Coupon]:
        if not retailer_ids:
            return []

        now = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(RetailerCoupon)
                    .where(
                        RetailerCoupon.retailer_id.in_(retailer_ids),
                        RetailerCoupon.is_active.is_(True),
                        or_(RetailerCoupon.expires_at.is_(None), RetailerCoupon.expires_at > now),
                    )
                    .order_by(RetailerCoupon.id.asc())
                )
                return [coupon_from_orm(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load coupons: {e}") from e

    async def fetch_deal_listings(self) -> list[DealListing]:
        """In-stock listings from active retailers that are on sale or discounted."""
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(
                        PriceListing,
                        Product.name,
                        Product.brand,
                        Product.category_id,
                        Retailer.name,
                    )
                    .join(Product, Product.id == PriceListing.product_id)
                    .join(Retailer, Retailer.id == PriceListing.retailer_id)
                    .where(
                        PriceListing.in_stock.is_(True),
                        Retailer.is_active.is_(True),
                        or_(
                            PriceListing.on_sale.is_(True),
                            PriceListing.compare_at_price.is_not(None),
                        ),
                    )
                    .order_by(PriceListing.price.asc())
                )
                rows = result.unique().all()
        except SQLAlchemyError as e:
            raise SourceError(f"Failed to load deal listings: {e}") from e

        return [
            DealListing(
                product_id=listing.product_id,
                product_name=product_name or "Unknown",
                retailer_id=listing.retailer_id,
                retailer_name=retailer_name or "Unknown",
                price=to_decimal(listing.price),
                compare_at_price=to_decimal(listing.compare_at_price),
                on_sale=listing.on_sale,
                in_stock=listing.in_stock,
                product_url=listing.product_url,
                affiliate_url=listing.affiliate_url,
                product_brand=brand,
                product_category=category_id or "",
            )
            for listing, product_name, brand, category_id, retailer_name in rows
        ]
