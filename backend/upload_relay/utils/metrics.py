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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Upload protocol metrics
credentials_issued_total = Counter(
    'credentials_issued_total',
    'Total presigned upload credentials issued'
)

uploads_recorded_total = Counter(
    'uploads_recorded_total',
    'Total upload records written to the ledger',
    ['pathway']
)

storage_errors_total = Counter(
    'storage_errors_total',
    'Total storage backend failures',
    ['operation']  # sign, put, head
)
