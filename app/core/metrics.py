"""Prometheus metrics for the gateway"""
from prometheus_client import Counter, Histogram, Gauge, Info

# Request metrics
REQUEST_COUNT = Counter(
    'openai_gateway_requests_total',
    'Total number of requests',
    ['method', 'endpoint', 'mode', 'provider', 'status_code']
)

REQUEST_DURATION = Histogram(
    'openai_gateway_request_duration_seconds',
    'Request duration in seconds',
    ['method', 'endpoint', 'mode', 'provider'],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, float('inf'))
)

ACTIVE_REQUESTS = Gauge(
    'openai_gateway_active_requests',
    'Number of active requests',
    ['endpoint']
)

# Load balancer metrics
PROVIDER_SELECTIONS = Counter(
    'openai_gateway_provider_selections_total',
    'Number of times each provider was selected',
    ['provider', 'strategy']
)

UPSTREAM_ERRORS = Counter(
    'openai_gateway_upstream_errors_total',
    'Failures while forwarding to a provider',
    ['provider', 'error_type']
)

# Application info
APP_INFO = Info('openai_gateway_app', 'Application information')
