"""
Monitoring and metrics setup.
"""
import logging
from prometheus_client import Counter, Histogram, generate_latest

from routefuzz.core.config import settings

logger = logging.getLogger(__name__)

# Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

fuzz_records_generated_total = Counter(
    'fuzz_records_generated_total',
    'Total fuzz records generated',
    ['method']
)

fuzz_contract_violations_total = Counter(
    'fuzz_contract_violations_total',
    'Total responses violating the response contract',
    ['method']
)


def get_metrics():
    """Get Prometheus metrics."""
    return generate_latest()


def record_http_request(method: str, endpoint: str, status: int, duration: float):
    """Record HTTP request metrics."""
    if not settings.ENABLE_METRICS:
        return
    http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
    http_request_duration.labels(method=method, endpoint=endpoint).observe(duration)


def record_generated(method: str, count: int = 1):
    if settings.ENABLE_METRICS:
        fuzz_records_generated_total.labels(method=method.upper()).inc(count)


def record_violation(method: str):
    if settings.ENABLE_METRICS:
        fuzz_contract_violations_total.labels(method=method.upper()).inc()
