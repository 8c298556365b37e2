"""
Prometheus metrics definitions for the API.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Generation job metrics
generation_jobs_submitted_total = Counter(
    'generation_jobs_submitted_total',
    'Generation jobs accepted by the provider and persisted',
    ['kind']
)

generation_jobs_rejected_total = Counter(
    'generation_jobs_rejected_total',
    'Generation submissions rejected before a job was created',
    ['kind', 'reason']
)

generation_jobs_resolved_total = Counter(
    'generation_jobs_resolved_total',
    'Generation jobs that reached a terminal state',
    ['kind', 'status']
)

generation_credits_charged_total = Counter(
    'generation_credits_charged_total',
    'Credits debited for generation jobs',
    ['kind']
)

generation_resolution_conflicts_total = Counter(
    'generation_resolution_conflicts_total',
    'Status polls that lost the race to resolve a job'
)

# Provider metrics
provider_requests_total = Counter(
    'provider_requests_total',
    'Total generation provider requests',
    ['provider', 'operation']
)

provider_failures_total = Counter(
    'provider_failures_total',
    'Total generation provider failures',
    ['provider', 'operation']
)

provider_latency_seconds = Histogram(
    'provider_latency_seconds',
    'Generation provider request latency in seconds',
    ['provider', 'operation'],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)

# Storage metrics
asset_migrations_total = Counter(
    'asset_migrations_total',
    'Provider results copied to durable storage',
    ['outcome']
)
