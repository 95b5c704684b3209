"""
Prometheus metrics definitions for the upload server and the upload client.
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

# Upload server metrics
files_stored_total = Counter(
    'files_stored_total',
    'Total files written to the upload directory',
    ['endpoint']
)

stored_bytes_total = Counter(
    'stored_bytes_total',
    'Total bytes written to the upload directory',
    ['endpoint']
)

upload_rejections_total = Counter(
    'upload_rejections_total',
    'Total uploads rejected by the server',
    ['endpoint', 'reason']
)

# Client metrics
upload_attempts_total = Counter(
    'upload_attempts_total',
    'Total upload strategy attempts',
    ['strategy', 'outcome']
)

image_resolutions_total = Counter(
    'image_resolutions_total',
    'Total image reference resolutions',
    ['source']
)
