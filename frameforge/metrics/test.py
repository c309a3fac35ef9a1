"""Tests for the metrics collector."""

from datetime import UTC, datetime, timedelta

import pytest

from .lib import AggregatedMetrics, MetricsCollector


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics(clock):
    return MetricsCollector(clock=clock)


# =============================================================================
# Aggregation
# =============================================================================


class TestOperationMetrics:
    @pytest.mark.unit
    def test_empty_operation(self, metrics):
        assert metrics.get_operation_metrics("missing") == AggregatedMetrics()

    @pytest.mark.unit
    def test_rates_and_latency(self, metrics):
        metrics.record_operation("generate_image", 100, True)
        metrics.record_operation("generate_image", 200, True)
        metrics.record_operation("generate_image", 301, False, error_type="timeout")
        metrics.record_operation("generate_image", 400, False, error_type="timeout")

        result = metrics.get_operation_metrics("generate_image")

        assert result.total_operations == 4
        assert result.successful_operations == 2
        assert result.failed_operations == 2
        assert result.success_rate == 0.5
        assert result.error_rate == 0.5
        assert result.average_latency_ms == 250
        assert result.errors_by_type == {"timeout": 2}

    @pytest.mark.unit
    def test_percentiles_use_floor_index(self, metrics):
        for value in range(1, 101):
            metrics.record_operation("op", float(value), True)

        result = metrics.get_operation_metrics("op")

        # sorted[floor(100 * 0.95)] == sorted[95] == 96
        assert result.p95_latency_ms == 96
        assert result.p99_latency_ms == 100

    @pytest.mark.unit
    def test_single_record_percentiles(self, metrics):
        metrics.record_operation("op", 42, True)
        result = metrics.get_operation_metrics("op")
        assert result.p95_latency_ms == 42
        assert result.p99_latency_ms == 42

    @pytest.mark.unit
    def test_operations_are_grouped_by_name(self, metrics):
        metrics.record_operation("a", 1, True)
        metrics.record_operation("b", 1, False, error_type="validation")

        grouped = metrics.get_all_operation_metrics()

        assert set(grouped) == {"a", "b"}
        assert grouped["b"].errors_by_type == {"validation": 1}


# =============================================================================
# Pruning
# =============================================================================


class TestPruning:
    @pytest.mark.unit
    def test_count_ceiling(self, clock):
        metrics = MetricsCollector(max_operations=5, clock=clock)
        for i in range(8):
            metrics.record_operation("op", float(i), True)

        snapshot = metrics.get_snapshot()

        assert len(snapshot.recent_operations) == 5
        assert snapshot.recent_operations[0].duration_ms == 3.0

    @pytest.mark.unit
    def test_retention_window(self, metrics, clock):
        metrics.record_operation("op", 1, True)
        clock.advance(hours=25)
        metrics.record_operation("op", 2, True)

        assert metrics.get_operation_metrics("op").total_operations == 1

    @pytest.mark.unit
    def test_recent_operations_capped_at_fifty(self, metrics):
        for i in range(60):
            metrics.record_operation("op", float(i), True)
        assert len(metrics.get_snapshot().recent_operations) == 50


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    @pytest.mark.unit
    def test_lifecycle_counts(self, metrics):
        metrics.record_session_created("s1")
        metrics.record_session_created("s2")
        metrics.record_session_closed("s1")

        snapshot = metrics.get_snapshot()

        assert metrics.get_active_session_count() == 1
        assert snapshot.total_sessions_created == 2
        assert snapshot.total_sessions_closed == 1

    @pytest.mark.unit
    def test_close_unknown_session_is_noop(self, metrics):
        metrics.record_session_closed("ghost")
        assert metrics.get_snapshot().total_sessions_closed == 0

    @pytest.mark.unit
    def test_operation_bumps_open_session_counter(self, metrics):
        metrics.record_session_created("s1")
        metrics.record_operation("op", 1, True, session_id="s1")
        metrics.record_operation("op", 1, True, session_id="unknown")

        assert metrics.get_session_operation_count("s1") == 1
        assert metrics.get_session_operation_count("unknown") == 0


class TestReporting:
    @pytest.mark.unit
    def test_summary_text(self, metrics):
        metrics.record_session_created("s1")
        metrics.record_operation("undo", 10, False, error_type="validation")

        summary = metrics.get_summary()

        assert "Active Sessions: 1" in summary
        assert "  undo:" in summary
        assert "Error Rate: 100.0%" in summary
        assert "validation: 1" in summary

    @pytest.mark.unit
    def test_snapshot_is_json_ready(self, metrics):
        import json

        metrics.record_operation("op", 5, True)
        data = metrics.get_snapshot().to_dict()

        assert json.loads(json.dumps(data))["operation_metrics"]["op"]["total_operations"] == 1

    @pytest.mark.unit
    def test_reset(self, metrics):
        metrics.record_session_created("s1")
        metrics.record_operation("op", 5, True)
        metrics.reset()

        assert metrics.get_active_session_count() == 0
        assert metrics.get_all_operation_metrics() == {}
