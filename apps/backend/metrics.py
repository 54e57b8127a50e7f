"""
Optima AI - Prometheus Metrics
==============================
Centralized metrics definitions for observability.
"""

from prometheus_client import Counter, Histogram, Info

# =============================================================================
# Application Info
# =============================================================================

app_info = Info("optima_app", "Application information")
app_info.info({
    "version": "0.1.0",
    "service": "backend",
})

# =============================================================================
# Request Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# =============================================================================
# Language Model Metrics
# =============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total language model requests",
    labelnames=["provider", "mode"]
)

llm_failures_total = Counter(
    "llm_failures_total",
    "Total language model request failures",
    labelnames=["provider"]
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "Language model request duration in seconds",
    labelnames=["provider"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 120.0)
)

# =============================================================================
# Artifact Metrics
# =============================================================================

artifact_generations_total = Counter(
    "artifact_generations_total",
    "Total artifact create/update operations",
    labelnames=["kind", "operation"]
)

artifact_failures_total = Counter(
    "artifact_failures_total",
    "Total artifact create/update failures",
    labelnames=["kind", "operation"]
)

image_fallbacks_total = Counter(
    "image_fallbacks_total",
    "Image generations that fell back to the secondary provider"
)

# =============================================================================
# Auth & Media Metrics
# =============================================================================

password_reset_emails_total = Counter(
    "password_reset_emails_total",
    "Password reset emails sent"
)

external_service_failures_total = Counter(
    "external_service_failures_total",
    "Failures calling third-party media/tool services",
    labelnames=["service"]
)
