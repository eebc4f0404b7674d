from prometheus_client import Counter, Histogram, make_asgi_app

# Label by route template (/api/v1/uploads/...), never by raw path
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

UPLOAD_OPERATIONS = Counter(
    "upload_broker_operations_total",
    "Provider calls brokered, by operation and outcome",
    ["operation", "outcome"],
)

PART_URLS_ISSUED = Counter(
    "upload_broker_part_urls_issued_total",
    "Presigned part upload URLs issued",
)

CHECKSUM_MISMATCHES = Counter(
    "upload_broker_checksum_mismatches_total",
    "Completed uploads whose final ETag did not match the client checksum",
)

metrics_app = make_asgi_app()
