"""Shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dealengine.db.models import (
    Base,
    PriceHistory,
    PriceListing,
    Product,
    Retailer,
    RetailerCoupon,
    StoreProduct,
)
from dealengine.ingest.repository import SqlSnapshotSource


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def seeded(session_factory):
    """Seed one product with listings, history, store rows and coupons."""
    now = datetime.now(timezone.utc)

    async with session_factory() as db:
        db.add_all([
            Product(id="p1", name="Shure SM7B", brand="Shure", category_id="microphones"),
            Product(id="p2", name="Rode PodMic", brand="Rode", category_id="microphones"),
            Retailer(id="r1", name="Sweetwater", base_url="https://www.sweetwater.com"),
            Retailer(id="r2", name="Podcast Gear Co", base_url="https://podcastgear.example.com"),
            Retailer(id="r3", name="Closed Shop", base_url="https://closed.example.com", is_active=False),
        ])
        await db.flush()

        db.add_all([
            PriceListing(id="l1", product_id="p1", retailer_id="r1", external_id="sku-black",
                         price=Decimal("379.00"), last_checked=now - timedelta(hours=2),
                         product_url="https://www.sweetwater.com/products/sm7b-black"),
            PriceListing(id="l2", product_id="p1", retailer_id="r1", external_id="sku-silver",
                         price=Decimal("389.00"), last_checked=now - timedelta(hours=2),
                         product_url="https://www.sweetwater.com/products/sm7b-silver"),
            PriceListing(id="l3", product_id="p1", retailer_id="r2", external_id="sm7b",
                         price=Decimal("399.00"), compare_at_price=Decimal("429.00"), on_sale=True,
                         last_checked=now - timedelta(hours=5),
                         product_url="https://podcastgear.example.com/products/sm7b"),
            PriceListing(id="l4", product_id="p1", retailer_id="r3", external_id="sm7b",
                         price=Decimal("100.00"), last_checked=now - timedelta(hours=1)),
            PriceListing(id="l5", product_id="p1", retailer_id="r1", external_id="sku-old",
                         price=Decimal("350.00"), last_checked=now - timedelta(hours=2)),
            PriceListing(id="l6", product_id="p2", retailer_id="r1", external_id="podmic",
                         price=Decimal("89.00"), on_sale=True, last_checked=now),
            PriceListing(id="l7", product_id="p2", retailer_id="r2", external_id="podmic",
                         price=Decimal("79.00"), compare_at_price=Decimal("99.00"), in_stock=False,
                         last_checked=now),
            PriceHistory(product_id="p1", retailer_id="r1", price=Decimal("390.00"),
                         recorded_at=now - timedelta(days=10)),
            PriceHistory(product_id="p1", retailer_id="r1", price=Decimal("400.00"),
                         recorded_at=now - timedelta(days=40)),
            StoreProduct(id="s1", retailer_id="r1", canonical_product_id="p1", external_id="sku-black",
                         title="Shure SM7B - Black", price=Decimal("379.00"), in_stock=True),
            StoreProduct(id="s2", retailer_id="r1", canonical_product_id="p1", external_id="sku-silver",
                         title="Shure SM7B - Silver", price=Decimal("389.00"), in_stock=True),
            StoreProduct(id="s3", retailer_id="r1", canonical_product_id="p1", external_id="sku-old",
                         title="Shure SM7B - White", price=Decimal("350.00"),
                         raw_data={"discontinued_new": True}),
            StoreProduct(id="s4", retailer_id="r2", canonical_product_id="p1", external_id="bundle-1",
                         title="Shure SM7B with FREE XLR Cable", price=Decimal("419.00"), in_stock=True,
                         product_url="https://podcastgear.example.com/products/sm7b-xlr"),
            StoreProduct(id="s5", retailer_id="r2", canonical_product_id="p1", external_id="bundle-2",
                         title="Shure SM7B Podcast Bundle", price=Decimal("499.00"),
                         raw_data={"discontinued": True}),
            RetailerCoupon(id="c1", retailer_id="r2", code="PODCAST10", discount_type="percentage",
                           discount_value=Decimal("10")),
            RetailerCoupon(id="c2", retailer_id="r2", code="OLD", discount_type="fixed",
                           discount_value=Decimal("20"), expires_at=now - timedelta(days=1)),
            RetailerCoupon(id="c3", retailer_id="r1", code="OFF", discount_type="fixed",
                           discount_value=Decimal("5"), is_active=False),
            RetailerCoupon(id="c4", retailer_id="r1", code="SHIPFREE", discount_type="free_shipping",
                           expires_at=now + timedelta(days=1)),
        ])
        await db.commit()

    return SqlSnapshotSource(session_factory)
