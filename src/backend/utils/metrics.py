"""
Prometheus metrics for the assistant pipeline.

Defines counters and histograms for vendor calls, assistant replies
and live event streams.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Standard Prometheus naming: namespace_subsystem_name_unit
NAMESPACE = "teamchat"

# ============================================================================
# Provider Metrics
# ============================================================================

provider_requests_total = Counter(
    f"{NAMESPACE}_provider_requests_total",
    "Vendor LLM calls by provider, mode and outcome",
    ["provider", "mode", "outcome"],  # mode: "complete" | "stream"; outcome: "success" | "error" | "timeout"
)

provider_request_duration_seconds = Histogram(
    f"{NAMESPACE}_provider_request_duration_seconds",
    "Vendor LLM call duration in seconds (whole stream for streaming calls)",
    ["provider", "mode"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

# ============================================================================
# Assistant Reply Metrics
# ============================================================================

assistant_replies_total = Counter(
    f"{NAMESPACE}_assistant_replies_total",
    "Assistant replies attempted by mention dispatch",
    ["outcome"],  # "created" | "failed" | "duplicate_skipped"
)

# ============================================================================
# Live Stream Metrics
# ============================================================================

sse_streams_active = Gauge(
    f"{NAMESPACE}_sse_streams_active",
    "Number of open assistant event streams",
)

sse_streams_total = Counter(
    f"{NAMESPACE}_sse_streams_total",
    "Assistant event streams by terminal event",
    ["terminal"],  # "complete" | "error" | "disconnected"
)
