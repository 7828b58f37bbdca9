"""
Prometheus metrics for the back office.

Exposes /metrics with HTTP request metrics and purchase write metrics
(outcome per operation, write latency, lines applied/reversed against stock).
Restrict this endpoint to the monitoring network.
"""
from contextlib import contextmanager
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

from backoffice.exceptions import BackofficeError

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share samples through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY


def _metric(metric_cls, name, documentation, labelnames=(), **kwargs):
    """Register on the local registry; in multiprocess mode the collector reads the files."""
    return metric_cls(
        name,
        documentation,
        labelnames,
        registry=None if MULTIPROCESS_MODE else registry,
        **kwargs
    )


# HTTP
http_requests_total = _metric(
    Counter, 'http_requests_total', 'Total HTTP requests',
    ['method', 'endpoint', 'http_status']
)
http_request_duration_seconds = _metric(
    Histogram, 'http_request_duration_seconds', 'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)
http_requests_in_flight = _metric(
    Gauge, 'http_requests_in_flight', 'HTTP requests currently being processed',
    multiprocess_mode='livesum'
)

# Purchases
purchase_operations_total = _metric(
    Counter, 'purchase_operations_total', 'Purchase write operations by outcome',
    ['operation', 'outcome']
)
purchase_operation_duration_seconds = _metric(
    Histogram, 'purchase_operation_duration_seconds', 'Purchase write latency in seconds',
    ['operation'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)
purchase_lines_total = _metric(
    Counter, 'purchase_lines_total', 'Purchase lines applied to or reversed from product stock',
    ['direction']
)


@contextmanager
def track_purchase_operation(operation):
    """
    Time a purchase write and count its outcome.

    Outcome is 'success', the error kind of a BackofficeError, or 'error'.
    Exceptions are re-raised unchanged.
    """
    started = time.perf_counter()
    outcome = 'error'
    try:
        yield
        outcome = 'success'
    except BackofficeError as e:
        outcome = e.kind
        raise
    finally:
        purchase_operations_total.labels(operation=operation, outcome=outcome).inc()
        purchase_operation_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - started
        )


def count_purchase_lines(adjustments):
    """Count committed line adjustments by direction ('apply' / 'reverse')."""
    for adjustment in adjustments:
        purchase_lines_total.labels(direction=adjustment.get('direction', 'apply')).inc()


def setup_metrics_instrumentation(app):
    """Install before/after request hooks recording HTTP metrics."""

    @app.before_request
    def before_request_metrics():
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        started = g.pop('_prometheus_metrics_start_time', None)
        if started is None:
            return response
        try:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.time() - started)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, http_status=response.status_code
            ).inc()
            http_requests_in_flight.dec()
        except Exception as e:
            # Metrics never break the response
            app.logger.warning(f"Failed to record metrics: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus text exposition (unauthenticated)."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
