"""Tests for Prometheus metrics definitions."""

from prometheus_client import REGISTRY

from switchboard.observability.metrics import (
    ACTIVE_SESSIONS,
    RECORDS_SAVED,
    WEBHOOK_DISPATCHES,
)


class TestMetrics:
    """Metrics are registered and labelled as expected."""

    def test_webhook_dispatch_counter_increments(self) -> None:
        before = REGISTRY.get_sample_value(
            "switchboard_webhook_dispatches_total",
            {"channel": "chat", "outcome": "replied"},
        ) or 0.0

        WEBHOOK_DISPATCHES.labels(channel="chat", outcome="replied").inc()

        after = REGISTRY.get_sample_value(
            "switchboard_webhook_dispatches_total",
            {"channel": "chat", "outcome": "replied"},
        )
        assert after == before + 1

    def test_active_sessions_gauge_tracks_channel(self) -> None:
        gauge = ACTIVE_SESSIONS.labels(channel="voice")
        start = REGISTRY.get_sample_value("switchboard_active_sessions", {"channel": "voice"}) or 0.0

        gauge.inc()
        gauge.dec()

        assert REGISTRY.get_sample_value(
            "switchboard_active_sessions", {"channel": "voice"}
        ) == start

    def test_records_saved_has_outcome_label(self) -> None:
        RECORDS_SAVED.labels(channel="chat", outcome="failed").inc()

        assert REGISTRY.get_sample_value(
            "switchboard_records_saved_total", {"channel": "chat", "outcome": "failed"}
        ) >= 1
