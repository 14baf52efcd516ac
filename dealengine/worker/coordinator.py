"""Concurrent snapshot fetching and deal view assembly.

The row sets for a product are fetched concurrently (coupons wait
only for the listings and store rows that name their retailers). A failed
secondary fetch degrades to an empty row set; only a failed listings
fetch is an error state. Starting a load for another product cancels the
one in flight, and a superseded load never replaces the current state.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Optional

from dealengine import metrics
from dealengine.detect.engine import DealEngine, DealView, deal_engine
from dealengine.ingest.base import ProductRequest, ProductSnapshot, SnapshotSource
from dealengine.logging_config import get_logger

logger = logging.getLogger(__name__)


class ViewStatus(str, Enum):
    READY = "ready"  # at least one offer or bundle
    EMPTY = "empty"  # fetched fine, nothing to show
    ERROR = "error"  # listings could not be fetched


@dataclass
class DealViewState:
    """Outcome of one deal view load."""

    product_id: str
    status: ViewStatus
    view: Optional[DealView] = None
    error: Optional[str] = None


@dataclass
class _FetchResult:
    snapshot: ProductSnapshot
    listings_error: Optional[BaseException] = None


class DealViewCoordinator:
    """Load deal views for a single consumer, newest request wins."""

    def __init__(self, source: SnapshotSource, engine: DealEngine = deal_engine):
        self.source = source
        self.engine = engine
        self.current: Optional[DealViewState] = None
        self._generation = 0
        self._in_flight: Optional[asyncio.Task] = None

    async def _guarded(self, name: str, product_id: str, fetch: Awaitable[Any]) -> tuple[Any, Optional[BaseException]]:
        """Run one fetch, turning any failure into an empty result."""
        try:
            return await fetch, None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            metrics.source_fetch_failures_total.labels(source=name).inc()
            log = get_logger(__name__, product_id=product_id, data_source=name)
            if name == "listings":
                log.error(f"Listings fetch failed for {product_id}: {e}")
            else:
                log.warning(f"{name} fetch failed for {product_id}, continuing without it: {e}")
            return [], e

    async def _fetch_listings_and_coupons(self, product_id: str):
        (listings, listings_error), (store_rows, store_rows_error) = await asyncio.gather(
            self._guarded("listings", product_id, self.source.fetch_listings(product_id)),
            self._guarded("store_rows", product_id, self.source.fetch_store_rows(product_id)),
        )
        if store_rows_error is not None:
            store_rows = {}
        if listings_error is not None:
            return listings, listings_error, store_rows, store_rows_error, [], None

        active = self.engine.normalizer.normalize(listings)
        retailer_ids = sorted(
            {l.retailer_id for l in self.engine.normalizer.enrich_with_store_rows(active, store_rows)}
        )
        if not retailer_ids:
            return listings, None, store_rows, store_rows_error, [], None

        coupons, coupons_error = await self._guarded(
            "coupons", product_id, self.source.fetch_coupons(retailer_ids)
        )
        return listings, None, store_rows, store_rows_error, coupons, coupons_error

    async def fetch_snapshot(self, request: ProductRequest) -> _FetchResult:
        """Fetch all row sets for a product concurrently."""
        pid = request.product_id
        (
            (listings, listings_error, store_rows, store_rows_error, coupons, coupons_error),
            (history, history_error),
            (candidates, bundles_error),
        ) = await asyncio.gather(
            self._fetch_listings_and_coupons(pid),
            self._guarded("history", pid, self.source.fetch_price_history(pid)),
            self._guarded("bundles", pid, self.source.fetch_bundle_candidates(pid)),
        )

        degraded = tuple(
            name
            for name, error in (
                ("history", history_error),
                ("bundles", bundles_error),
                ("coupons", coupons_error),
                ("store_rows", store_rows_error),
            )
            if error is not None
        )

        snapshot = ProductSnapshot(
            request=request,
            listings=tuple(listings),
            history=tuple(history),
            bundle_candidates=tuple(candidates),
            coupons=tuple(coupons),
            store_rows=dict(store_rows),
            degraded_sources=degraded,
        )
        return _FetchResult(snapshot=snapshot, listings_error=listings_error)

    async def load(
        self,
        request: ProductRequest,
        now: Optional[datetime] = None,
        selected_variants: Optional[dict[str, str]] = None,
    ) -> Optional[DealViewState]:
        """
        Fetch rows and build the deal view for a product.

        Returns:
            The new state, or None if a newer load superseded this one
            (its results are discarded and ``current`` is left untouched)
        """
        self._generation += 1
        generation = self._generation

        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()

        task = asyncio.create_task(self.fetch_snapshot(request))
        self._in_flight = task

        with metrics.deal_view_duration_seconds.time():
            try:
                result = await task
            except asyncio.CancelledError:
                if generation != self._generation:
                    return self._discard(request)
                raise
            finally:
                if self._in_flight is task:
                    self._in_flight = None

        if generation != self._generation:
            return self._discard(request)

        if result.listings_error is not None:
            state = DealViewState(
                product_id=request.product_id,
                status=ViewStatus.ERROR,
                error=str(result.listings_error) or "Failed to load price listings",
            )
        else:
            view = self.engine.build(result.snapshot, now=now, selected_variants=selected_variants)
            state = DealViewState(
                product_id=request.product_id,
                status=ViewStatus.READY if view.has_content else ViewStatus.EMPTY,
                view=view,
            )

        metrics.deal_views_total.labels(status=state.status.value).inc()
        self.current = state
        return state

    def _discard(self, request: ProductRequest) -> None:
        metrics.superseded_requests_total.inc()
        logger.debug(f"Discarded superseded deal view load for {request.product_id}")
        return None
