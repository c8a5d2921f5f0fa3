"""Prometheus metrics for monitoring.

Tracks request latency, matching throughput, notification delivery
and chatbot upstream calls.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Info

# Application info
APP_INFO = Info("vc_app", "Volunteer Connect application info")

# HTTP metrics
HTTP_REQUESTS_TOTAL = Counter(
    "vc_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "vc_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Matching metrics
MATCH_REQUESTS = Counter(
    "vc_match_requests_total",
    "Total match computations",
    ["direction", "status"],
)

MATCH_DURATION = Histogram(
    "vc_match_duration_seconds",
    "Match computation duration (fetch + scoring)",
    ["direction"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

MATCH_CANDIDATES = Histogram(
    "vc_match_candidates",
    "Number of candidates scored per match request",
    ["direction"],
    buckets=(0, 1, 5, 10, 20, 50, 100),
)

# Notifications
NOTIFICATIONS_SENT = Counter(
    "vc_notifications_total",
    "Notifications dispatched",
    ["type", "status"],
)

# Chatbot upstream
CHATBOT_CALLS = Counter(
    "vc_chatbot_calls_total",
    "Total chatbot inference API calls",
    ["status"],
)

CHATBOT_CALL_DURATION = Histogram(
    "vc_chatbot_call_duration_seconds",
    "Chatbot inference API call duration",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Rate limiting
RATE_LIMIT_HITS = Counter(
    "vc_rate_limit_hits_total",
    "Total rate limit hits",
    ["endpoint", "limit_type"],
)
