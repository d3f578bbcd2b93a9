"""
Prometheus metrics for siteledger

Tracks site creations per category, id collisions between concurrent
creations, the cost of the full-store id allocation scan and record store
failures. All metrics live in a dedicated registry so importing this module
never touches the process-wide default one.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# SITE METRICS
# =======================

sites_created_total = Counter(
    name="siteledger_sites_created_total",
    documentation="Sites successfully created",
    labelnames=["category"],
    registry=REGISTRY,
)

# Conditional inserts rejected because two creations allocated the same id
site_id_collisions_total = Counter(
    name="siteledger_site_id_collisions_total",
    documentation="Site creations rejected with a duplicate key",
    labelnames=["category"],
    registry=REGISTRY,
)

last_allocated_site_id = Gauge(
    name="siteledger_last_allocated_site_id",
    documentation="Numeric id of the most recently created site",
    labelnames=["category"],
    registry=REGISTRY,
)


# =======================
# ALLOCATION SCAN METRICS
# =======================

# Grows with store size since every allocation reads every item
id_allocation_duration_seconds = Histogram(
    name="siteledger_id_allocation_duration_seconds",
    documentation="Time spent scanning the store to allocate a site id",
    labelnames=["category"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
    registry=REGISTRY,
)

scan_pages_total = Counter(
    name="siteledger_scan_pages_total",
    documentation="Store pages read by id allocation scans",
    labelnames=["attribute"],
    registry=REGISTRY,
)


# =======================
# STORE METRICS
# =======================

store_errors_total = Counter(
    name="siteledger_store_errors_total",
    documentation="Record store operations that failed",
    labelnames=["operation", "error_type"],
    registry=REGISTRY,
)


# =======================
# HELPERS
# =======================

def generate_metrics() -> bytes:
    """Render the registry in Prometheus text exposition format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Serve the registry over HTTP for Prometheus to scrape.

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT, then 8000)
    """
    from prometheus_client import start_http_server

    start_http_server(port or int(os.getenv("METRICS_PORT", "8000")), registry=REGISTRY)


class track_duration:
    """
    Time a block into a labelled histogram, whether or not it raises.

    Usage:
        with track_duration(id_allocation_duration_seconds, category="production"):
            generator.scan_site_ids("production")
    """

    def __init__(self, histogram: Histogram, **labels):
        self._timer = histogram.labels(**labels).time()

    def __enter__(self):
        self._timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    counter.labels(**labels).inc(value)


def record_site_created(category: str, numeric_id: int) -> None:
    """Count a successful creation and remember the id it received."""
    increment_counter(sites_created_total, category=category)
    last_allocated_site_id.labels(category=category).set(numeric_id)


def record_store_error(operation: str, error: BaseException) -> None:
    """Count a store failure by operation and exception class."""
    increment_counter(
        store_errors_total,
        operation=operation,
        error_type=type(error).__name__,
    )
