"""
PencilX - Observability Metrics
Prometheus metrics for provider calls and key rotation.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# ============================================================================
# METRIC DEFINITIONS
# ============================================================================

PROVIDER_REQUESTS = Counter(
    "ai_provider_requests_total",
    "Total provider call attempts",
    ["provider", "status"],  # success, exhausted, transient
)

PROVIDER_LATENCY = Histogram(
    "ai_provider_latency_seconds",
    "Latency of successful provider calls",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

KEY_EXHAUSTIONS = Counter(
    "ai_key_exhaustions_total",
    "API keys marked exhausted",
    ["provider"],
)

CHAIN_FAILURES = Counter(
    "ai_fallback_chain_failures_total",
    "Requests where the whole fallback chain failed",
    ["reason"],  # no_providers, all_failed
)


# ============================================================================
# HELPERS
# ============================================================================


def record_attempt(provider: str, status: str, latency_ms: float = 0.0) -> None:
    PROVIDER_REQUESTS.labels(provider=provider, status=status).inc()
    if status == "success":
        PROVIDER_LATENCY.labels(provider=provider).observe(latency_ms / 1000)
    elif status == "exhausted":
        KEY_EXHAUSTIONS.labels(provider=provider).inc()


def render_metrics() -> tuple:
    """Body and content type for a /metrics endpoint"""
    return generate_latest(), CONTENT_TYPE_LATEST
