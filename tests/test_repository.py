"""Tests for the SQLAlchemy snapshot source."""

from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dealengine.ingest.base import DiscountType, ProductRequest, SourceError, StoreRowMeta
from dealengine.ingest.repository import SqlSnapshotSource
from dealengine.worker.coordinator import DealViewCoordinator, ViewStatus


class TestSqlSnapshotSource:
    """Test row loading from the database."""

    @pytest.mark.asyncio
    async def test_get_product_request(self, seeded):
        request = await seeded.get_product_request("p1")

        assert request == ProductRequest(product_id="p1", product_name="Shure SM7B", discontinued=False)
        assert await seeded.get_product_request("missing") is None

    @pytest.mark.asyncio
    async def test_fetch_listings(self, seeded):
        listings = await seeded.fetch_listings("p1")

        assert [l.id for l in listings] == ["l4", "l5", "l1", "l2", "l3"]
        by_id = {l.id: l for l in listings}
        assert by_id["l1"].offer_title is None
        assert by_id["l3"].compare_at_price == Decimal("429.00")
        assert by_id["l4"].retailer.is_active is False
        assert by_id["l1"].retailer.name == "Sweetwater"
        assert by_id["l1"].last_checked.tzinfo is not None

    @pytest.mark.asyncio
    async def test_fetch_store_rows(self, seeded):
        store_rows = await seeded.fetch_store_rows("p1")

        assert store_rows[("r1", "sku-black")] == StoreRowMeta(title="Shure SM7B - Black")
        assert store_rows[("r1", "sku-old")].discontinued_new is True
        assert store_rows[("r2", "bundle-2")].discontinued_new is True
        assert ("r2", "sm7b") not in store_rows
        assert await seeded.fetch_store_rows("missing") == {}

    @pytest.mark.asyncio
    async def test_fetch_price_history_ascending(self, seeded):
        history = await seeded.fetch_price_history("p1")

        assert [p.price for p in history] == [Decimal("400.00"), Decimal("390.00")]
        assert all(p.retailer_id == "r1" for p in history)

    @pytest.mark.asyncio
    async def test_fetch_bundle_candidates(self, seeded):
        candidates = await seeded.fetch_bundle_candidates("p1")

        by_id = {c.id: c for c in candidates}
        assert set(by_id) == {"s1", "s2", "s3", "s4", "s5"}
        assert by_id["s5"].discontinued is True
        assert by_id["s4"].discontinued is False
        assert by_id["s4"].buy_url == "https://podcastgear.example.com/products/sm7b-xlr"

    @pytest.mark.asyncio
    async def test_fetch_coupons(self, seeded):
        coupons = await seeded.fetch_coupons(["r1", "r2"])

        assert [c.id for c in coupons] == ["c1", "c4"]
        assert coupons[1].discount_type == DiscountType.FREE_SHIPPING
        assert await seeded.fetch_coupons([]) == []

    @pytest.mark.asyncio
    async def test_fetch_deal_listings(self, seeded):
        deals = await seeded.fetch_deal_listings()

        assert sorted(d.retailer_id + ":" + d.product_id for d in deals) == ["r1:p2", "r2:p1"]
        podmic = next(d for d in deals if d.product_id == "p2")
        assert podmic.product_name == "Rode PodMic"
        assert podmic.retailer_name == "Sweetwater"
        assert podmic.product_category == "microphones"

    @pytest.mark.asyncio
    async def test_database_errors_become_source_errors(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        source = SqlSnapshotSource(async_sessionmaker(engine, class_=AsyncSession))

        with pytest.raises(SourceError):
            await source.fetch_listings("p1")
        with pytest.raises(SourceError):
            await source.fetch_store_rows("p1")

        await engine.dispose()


@pytest.mark.asyncio
async def test_deal_view_from_database(seeded):
    """Full load through the coordinator against the database."""
    request = await seeded.get_product_request("p1")
    state = await DealViewCoordinator(seeded).load(request)

    assert state.status == ViewStatus.READY
    view = state.view

    assert [a.retailer_id for a in view.annotations] == ["r1", "r2"]
    r1, r2 = view.annotations
    assert [v.label for v in r1.offer.variants] == ["Black", "Silver"]
    assert [c.code for c in r1.coupons] == ["SHIPFREE"]
    assert r1.insight.is_all_time_low is True
    assert [c.code for c in r2.coupons] == ["PODCAST10"]
    assert [b.candidate.id for b in r2.bundles] == ["s4"]
    assert r2.bundles[0].description == "with FREE XLR Cable"
    assert view.is_stale is False
    assert view.orphan_bundles == []
    assert view.discontinued is False
    assert {a.availability.value for a in view.annotations} == {"In Stock"}


@pytest.mark.asyncio
async def test_missing_store_titles_degrade_without_blocking_listings(seeded, session_factory):
    """Listings still load, ungrouped, when the store title lookup fails."""
    async with session_factory() as db:
        await db.execute(text("DROP TABLE store_products"))
        await db.commit()

    request = await seeded.get_product_request("p1")
    state = await DealViewCoordinator(seeded).load(request)

    assert state.status == ViewStatus.READY
    view = state.view
    assert "store_rows" in view.degraded_sources
    assert "bundles" in view.degraded_sources
    assert [a.current.id for a in view.annotations] == ["l5", "l1", "l2", "l3"]
    assert all(a.current.offer_title is None for a in view.annotations)
