"""Prometheus metrics for Switchboard.

Session lifecycle, webhook dispatch and conversation recording metrics.
"""

from prometheus_client import Counter, Gauge, Histogram

# Session metrics
ACTIVE_SESSIONS = Gauge(
    "switchboard_active_sessions",
    "Number of sessions currently held in the registry",
    labelnames=["channel"],
)

SESSIONS_OPENED = Counter(
    "switchboard_sessions_opened_total",
    "Total number of sessions admitted to the registry",
    labelnames=["channel"],
)

ADMISSIONS_REJECTED = Counter(
    "switchboard_admissions_rejected_total",
    "Connections refused or closed before reaching ready",
    labelnames=["channel", "reason"],
)

# Webhook metrics
WEBHOOK_DISPATCHES = Counter(
    "switchboard_webhook_dispatches_total",
    "Webhook dispatches by outcome",
    labelnames=["channel", "outcome"],
)

WEBHOOK_LATENCY = Histogram(
    "switchboard_webhook_latency_seconds",
    "Webhook round-trip latency in seconds",
    labelnames=["channel"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

REPLIES_INTERRUPTED = Counter(
    "switchboard_replies_interrupted_total",
    "Streamed replies cut short by a barge-in",
    labelnames=["channel"],
)

# Recording metrics
RECORDS_SAVED = Counter(
    "switchboard_records_saved_total",
    "Conversation records handed to storage",
    labelnames=["channel", "outcome"],
)

SUMMARIES = Counter(
    "switchboard_summaries_total",
    "Conversation summaries by outcome",
    labelnames=["outcome"],
)
