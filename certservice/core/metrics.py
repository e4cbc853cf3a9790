"""Prometheus metric inventory for certificate-service.

All metrics are declared here and imported by the module that owns the
behaviour.  The HTTP metrics are fed by MetricsMiddleware; the
certificate metrics by the issuance, revocation and verification
services.

Counters only go up, so dashboards use rate():
  rate(certificate_verifications_total{outcome="not_found"}[5m])
is the first thing to look at when someone is guessing codes.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # "ip"
)

# ---------------------------------------------------------------------------
# Certificate engine metrics
# ---------------------------------------------------------------------------

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates persisted, by issuance path",
    ["mode"],  # "single" | "participant" | "batch"
)

CERTIFICATE_REVOCATIONS = Counter(
    "certificate_revocations_total",
    "Certificates transitioned from active to revoked",
)

CODE_COLLISIONS = Counter(
    "certificate_code_collisions_total",
    "Generated numbers/codes rejected because they were already taken",
    ["field"],  # "certificate_number" | "verification_code"
)

BATCH_SKIPS = Counter(
    "batch_issuance_skips_total",
    "Batch participants not issued a certificate, by reason",
    ["reason"],
)

VERIFICATIONS = Counter(
    "certificate_verifications_total",
    "Public verification attempts by outcome",
    ["outcome"],  # "verified" | "not_found"
)
