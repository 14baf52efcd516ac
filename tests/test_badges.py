"""Tests for deal badges."""

from decimal import Decimal

from dealengine.detect.badges import (
    Availability,
    BadgeType,
    DealBadge,
    availability_for,
    badges_for,
    discount_percent,
)
from dealengine.detect.insights import PriceInsight, Trend
from tests.factories import NOW, make_listing


def _insight(is_all_time_low=False, trend=Trend.STABLE, pct=None):
    return PriceInsight(
        retailer_id="r1",
        current_price=Decimal("80.00"),
        lowest_ever=Decimal("80.00"),
        lowest_ever_date=NOW,
        is_all_time_low=is_all_time_low,
        price_change_pct=pct,
        trend=trend,
    )


def test_discount_percent():
    assert discount_percent(Decimal("80.00"), Decimal("100.00")) == 20
    assert discount_percent(Decimal("66.50"), Decimal("100.00")) == 34
    assert discount_percent(Decimal("100.00"), Decimal("100.00")) is None
    assert discount_percent(Decimal("100.00"), None) is None


def test_badges_in_display_order():
    listing = make_listing(price="80.00", compare_at_price=Decimal("100.00"), on_sale=True)

    badges = badges_for(listing, _insight(is_all_time_low=True))

    assert badges == [
        DealBadge(BadgeType.DISCOUNT, 20.0),
        DealBadge(BadgeType.ALL_TIME_LOW),
    ]


def test_price_drop_badge():
    badges = badges_for(make_listing(price="80.00"), _insight(trend=Trend.DOWN, pct=-12.5))

    assert badges == [DealBadge(BadgeType.PRICE_DROP, -12.5)]


def test_on_sale_without_compare_at_price():
    badges = badges_for(make_listing(on_sale=True))

    assert badges == [DealBadge(BadgeType.ON_SALE)]


def test_no_badges():
    assert badges_for(make_listing(), _insight()) == []


def test_availability():
    assert availability_for(make_listing(in_stock=True), product_discontinued=True) == Availability.IN_STOCK
    assert availability_for(make_listing(in_stock=False)) == Availability.OUT_OF_STOCK
    assert availability_for(make_listing(in_stock=False), product_discontinued=True) == Availability.DISCONTINUED
