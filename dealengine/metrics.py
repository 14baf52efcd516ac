"""Prometheus metrics for the deal engine."""

from prometheus_client import Counter, Histogram, Info

from dealengine import __version__

# Application info
app_info = Info("dealengine", "Deal engine application info")
app_info.info({"version": __version__, "name": "dealengine"})

# View computation metrics
deal_views_total = Counter(
    "deal_views_total",
    "Total number of deal views requested",
    ["status"],
)

deal_view_duration_seconds = Histogram(
    "deal_view_duration_seconds",
    "Time spent fetching and building a deal view",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Source metrics
source_fetch_failures_total = Counter(
    "source_fetch_failures_total",
    "Total number of failed snapshot source fetches",
    ["source"],
)

superseded_requests_total = Counter(
    "superseded_requests_total",
    "Deal view loads discarded because a newer request replaced them",
)

# Classification metrics
bundles_detected_total = Counter(
    "bundles_detected_total",
    "Total number of store rows classified as bundles",
)
