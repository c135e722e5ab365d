"""Prometheus instruments for HTTP traffic and checkout outcomes.

With ``METRICS_ENABLED`` off every instrument is a sink and ``/metrics``
serves an empty body.
"""

from __future__ import annotations

from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from storefront.core.config import settings

_HTTP_LABELS = ("method", "path", "status_code")


class _Sink:
    def labels(self, *args: Any, **kwargs: Any) -> "_Sink":
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, amount: float) -> None:
        pass


def _build(kind, name: str, documentation: str, labels, **kwargs: Any):
    if not settings.METRICS_ENABLED:
        return _Sink()
    return kind(f"{settings.METRICS_NAMESPACE}_{name}", documentation, labels, **kwargs)


http_latency = _build(
    Histogram,
    "http_request_duration_seconds",
    "Request latency by route template.",
    _HTTP_LABELS,
    buckets=settings.METRICS_LATENCY_BUCKETS,
)
http_requests = _build(Counter, "http_requests_total", "Requests served.", _HTTP_LABELS)
http_errors = _build(Counter, "http_errors_total", "Requests answered with 4xx or 5xx.", _HTTP_LABELS)

orders_finalized = _build(Counter, "checkout_orders_total", "Orders created by checkout.", ("buyer",))
checkout_rejected = _build(Counter, "checkout_rejections_total", "Checkouts refused, by error code.", ("reason",))
identifier_retries = _build(
    Counter, "identifier_collisions_total", "Order number or tracking code collisions.", ("kind",)
)


def normalize_path(request) -> str:
    """Route template (``/orders/{order_id}``) when matched, raw path otherwise."""
    return getattr(request.scope.get("route"), "path", None) or request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    labels = {"method": request.method, "path": normalize_path(request), "status_code": str(status_code)}
    http_requests.labels(**labels).inc()
    http_latency.labels(**labels).observe(elapsed)
    if status_code >= 400:
        http_errors.labels(**labels).inc()


def record_checkout(buyer: str) -> None:
    orders_finalized.labels(buyer=buyer).inc()


def record_checkout_rejection(reason: str) -> None:
    checkout_rejected.labels(reason=reason).inc()


def record_identifier_collision(kind: str) -> None:
    identifier_retries.labels(kind=kind).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
