"""
Unit tests for tracing helpers and MigrationMetrics.
"""

from typing import Any

from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from storemigrate.metrics import MigrationMetrics
from storemigrate.observability import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    create_tracer,
)


def _points(reader: InMemoryMetricReader) -> dict[str, list[Any]]:
    """Collect data points by metric name."""
    data = reader.get_metrics_data()
    points: dict[str, list[Any]] = {}
    if data is None:
        return points
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                points.setdefault(metric.name, []).extend(metric.data.data_points)
    return points


class TestCreateTracer:
    """Tests for create_tracer."""

    def test_enabled_returns_opentelemetry_tracer(self) -> None:
        """Enabled tracing wraps the OpenTelemetry API."""
        tracer = create_tracer(__name__, enable_tracing=True)

        assert isinstance(tracer, OpenTelemetryTracer)
        with tracer.span("storemigrate.orchestrator.run_phase", {"storemigrate.phase": "phase4"}) as span:
            assert span is not None

    def test_disabled_returns_null_tracer(self) -> None:
        """Disabled tracing returns the no-op tracer."""
        tracer = create_tracer(__name__, enable_tracing=False)

        assert isinstance(tracer, NullTracer)
        with tracer.span("anything", {"a": 1}) as span:
            assert span is None


class TestMockTracer:
    """Tests for MockTracer."""

    def test_records_spans(self) -> None:
        """Spans and their attributes are recorded in order."""
        tracer = MockTracer()

        with tracer.span("first", {"storemigrate.entity": "customers"}):
            pass
        with tracer.span("second"):
            pass

        assert tracer.span_names == ["first", "second"]
        assert tracer.spans[0] == ("first", {"storemigrate.entity": "customers"})



class TestMigrationMetrics:
    """Tests for MigrationMetrics."""

    def test_snapshot_tracks_totals(self) -> None:
        """The snapshot reflects every recorded value."""
        metrics = MigrationMetrics("phase4", enable_metrics=False)

        metrics.record_processed("customers", 5)
        metrics.record_batch("customers", succeeded=4, failed=1, duration_seconds=0.2)
        metrics.record_verification_failure("Customer count")
        metrics.record_phase_duration(1.5, success=False)

        snapshot = metrics.get_snapshot()
        assert snapshot.rows_processed == 5
        assert snapshot.rows_succeeded == 4
        assert snapshot.rows_failed == 1
        assert snapshot.batches == 1
        assert snapshot.verification_failures == 1
        assert snapshot.phase_duration_seconds == 1.5

    def test_time_phase_records_duration(self) -> None:
        """time_phase records a duration even when the block raises."""
        metrics = MigrationMetrics("phase1", enable_metrics=False)

        try:
            with metrics.time_phase():
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert metrics.get_snapshot().phase_duration_seconds is not None

    def test_instruments_export_points(self, metric_reader: InMemoryMetricReader) -> None:
        """Recorded values reach the configured meter with phase and entity attributes."""
        metrics = MigrationMetrics("phase4")

        metrics.record_processed("customers", 3)
        metrics.record_batch("customers", succeeded=3, failed=0, duration_seconds=0.1)

        points = _points(metric_reader)
        processed = points["storemigrate.rows.processed"]
        assert processed[0].value == 3
        assert dict(processed[0].attributes) == {"phase": "phase4", "entity": "customers"}
        assert points["storemigrate.rows.succeeded"][0].value == 3
        assert "storemigrate.rows.failed" not in points
        assert points["storemigrate.batch.duration"][0].count == 1

    def test_snapshot_to_dict(self) -> None:
        """to_dict exposes every snapshot field."""
        snapshot = MigrationMetrics("phase1", enable_metrics=False).get_snapshot()

        assert snapshot.to_dict() == {
            "rows_processed": 0,
            "rows_succeeded": 0,
            "rows_failed": 0,
            "batches": 0,
            "verification_failures": 0,
            "phase_duration_seconds": None,
        }
