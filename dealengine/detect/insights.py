"""Historical price insights per retailer.

For every retailer with recorded history this computes the lowest price
ever seen, whether the current price matches or beats it, and the trend
against the price roughly one window (30 days) ago.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Iterable, Optional

from dealengine.config import settings
from dealengine.ingest.base import PriceHistoryPoint, RawListing

logger = logging.getLogger(__name__)


class Trend(str, Enum):
    """Direction of the current price against the window start."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class PriceInsight:
    """Deal insight for one retailer's current best listing."""

    retailer_id: str
    current_price: Decimal
    lowest_ever: Decimal
    lowest_ever_date: datetime
    is_all_time_low: bool
    price_change_pct: Optional[float]  # vs window start, negative = price dropped
    trend: Trend


@dataclass(frozen=True)
class InsightReport:
    """Insights keyed by retailer plus the lowest current price among them."""

    insights: dict[str, PriceInsight]
    global_lowest: Optional[Decimal]

    def get(self, retailer_id: str) -> Optional[PriceInsight]:
        return self.insights.get(retailer_id)


def round_to_tenth(value: Decimal) -> float:
    """Round half toward positive infinity to one decimal place."""
    return float((value * 10 + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR) / 10)


def classify_trend(change_pct: Optional[Decimal], deadband: Decimal) -> Trend:
    """Exclusive deadband: exactly +/-deadband is still stable."""
    if change_pct is None:
        return Trend.STABLE
    if change_pct < -deadband:
        return Trend.DOWN
    if change_pct > deadband:
        return Trend.UP
    return Trend.STABLE


def lowest_point(history: list[PriceHistoryPoint]) -> PriceHistoryPoint:
    """Minimum price point; the earliest wins on ties."""
    lowest = history[0]
    for point in history:
        if point.price < lowest.price:
            lowest = point
    return lowest


def price_before(history: list[PriceHistoryPoint], cutoff: datetime) -> Optional[Decimal]:
    """Price of the last point recorded at or before ``cutoff``."""
    price = None
    for point in history:
        if point.recorded_at <= cutoff:
            price = point.price
    return price


class PriceInsightEngine:
    """Compute all-time-low flags and trends from price history."""

    def __init__(
        self,
        window_days: Optional[int] = None,
        deadband_pct: Optional[float] = None,
    ):
        """
        Initialize insight engine.

        Args:
            window_days: Days back for the trend comparison point
            deadband_pct: Percent change treated as stable in either direction
        """
        self.window_days = window_days if window_days is not None else settings.trend_window_days
        deadband = deadband_pct if deadband_pct is not None else settings.trend_deadband_pct
        self.deadband = Decimal(str(deadband))

    def group_history(
        self, history: Iterable[PriceHistoryPoint]
    ) -> dict[str, list[PriceHistoryPoint]]:
        """Split history into per-retailer series, each ascending by time."""
        by_retailer: dict[str, list[PriceHistoryPoint]] = {}
        for point in history:
            by_retailer.setdefault(point.retailer_id, []).append(point)
        for series in by_retailer.values():
            series.sort(key=lambda p: p.recorded_at)
        return by_retailer

    def insight_for(
        self,
        listing: RawListing,
        history: list[PriceHistoryPoint],
        now: datetime,
    ) -> Optional[PriceInsight]:
        """
        Build the insight for one retailer's current listing.

        Returns:
            PriceInsight, or None if the retailer has no history
        """
        if not history:
            return None

        lowest = lowest_point(history)
        cutoff = now - timedelta(days=self.window_days)
        price_then = price_before(history, cutoff)
        current = listing.price

        change_pct: Optional[Decimal] = None
        if price_then is not None and price_then > 0:
            change_pct = (current - price_then) / price_then * 100

        return PriceInsight(
            retailer_id=listing.retailer_id,
            current_price=current,
            lowest_ever=lowest.price,
            lowest_ever_date=lowest.recorded_at,
            is_all_time_low=current <= lowest.price,
            price_change_pct=round_to_tenth(change_pct) if change_pct is not None else None,
            trend=classify_trend(change_pct, self.deadband),
        )

    def compute(
        self,
        history: Iterable[PriceHistoryPoint],
        current_listings: Iterable[RawListing],
        now: Optional[datetime] = None,
    ) -> InsightReport:
        """
        Compute insights for the current best listing of each retailer.

        Args:
            history: Full price history for the product (all retailers)
            current_listings: One current best listing per retailer
            now: Reference time (defaults to the current UTC time)

        Returns:
            InsightReport with per-retailer insights and the global lowest
            current price among retailers that have an insight
        """
        now = now or datetime.now(timezone.utc)
        by_retailer = self.group_history(history)

        insights: dict[str, PriceInsight] = {}
        global_lowest: Optional[Decimal] = None

        for listing in current_listings:
            insight = self.insight_for(listing, by_retailer.get(listing.retailer_id, []), now)
            if insight is None:
                continue
            insights[listing.retailer_id] = insight
            if global_lowest is None or insight.current_price < global_lowest:
                global_lowest = insight.current_price

        logger.debug(f"Computed price insights for {len(insights)} retailers")
        return InsightReport(insights=insights, global_lowest=global_lowest)


price_insight_engine = PriceInsightEngine()
