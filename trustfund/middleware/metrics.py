"""
Prometheus instruments: HTTP traffic, cache use and ledger activity
"""
import time
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Scrape and health-check traffic is not recorded
UNMETERED_PATHS = frozenset({"/metrics", "/health", "/health/ready"})

http_requests_total = Counter(
    'http_requests_total',
    'HTTP requests served, by route template and status',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency by route template',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently being served',
    ['method']
)

cache_operations_total = Counter(
    'cache_operations_total',
    'Campaign cache lookups and writes',
    ['operation', 'status']
)

campaigns_created_total = Counter(
    'campaigns_created_total',
    'Campaigns created, by cause',
    ['cause']
)

donations_recorded_total = Counter(
    'donations_recorded_total',
    'Donations appended to the ledger, by release state',
    ['released']
)

donation_principal_total = Counter(
    'donation_principal_total',
    'Donation principal recorded, in rupees'
)

donation_tips_total = Counter(
    'donation_tips_total',
    'Platform tips recorded, in rupees'
)


def route_template(request: Request) -> str:
    """``/campaigns/{campaign_id}`` rather than ``/campaigns/42``; unmatched paths collapse to one label"""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class MetricsMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNMETERED_PATHS:
            return await call_next(request)

        method = request.method
        in_progress = http_requests_in_progress.labels(method=method)
        in_progress.inc()
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            in_progress.dec()
            endpoint = route_template(request)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )


async def metrics_endpoint(request: Request):
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
