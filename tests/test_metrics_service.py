"""Tests for the Metrics Service."""

from datetime import datetime, timedelta
from typing import List

import pytest

from quality_kernel.errors import ConfigurationError, StorageWriteError
from quality_kernel.metrics.builtin import EventCountMetric, MeanTimeBetweenEventsMetric
from quality_kernel.metrics.core import Metric, MetricStatus
from quality_kernel.metrics.service import MetricsService, required_telemetry
from quality_kernel.models.telemetry import TelemetryRecord
from quality_kernel.storage.memory_store import InMemoryTelemetryDataSource
from quality_kernel.telemetry.collector import TelemetryCollector

T0 = datetime(2026, 3, 1)


def _make_record(event_type: str, hours: float = 0.0) -> TelemetryRecord:
    return TelemetryRecord(
        attributes={"event_type": event_type},
        timestamp=T0 + timedelta(hours=hours),
        source_type="test",
    )


class _ListTracker:
    def __init__(self):
        self.messages: List[str] = []

    def notify_progress(self, message: str) -> None:
        self.messages.append(message)


class _RecordingCollector(TelemetryCollector):
    def __init__(self, data_source):
        super().__init__(data_source)
        self.requested: List[set] = []

    def fetch(self, kinds):
        self.requested.append(set(kinds))
        return super().fetch(kinds)


class _SpyMetric(Metric):
    """Records the batch it was given and returns its size."""

    def __init__(self, name: str, kinds: List[str]):
        super().__init__(name=name, required_telemetry=kinds)
        self.seen: List[TelemetryRecord] = []

    def calculate(self, data):
        self.seen = list(data)
        return len(data)


class _BrokenMetric(Metric):
    def calculate(self, data):
        raise RuntimeError("sensor offline")


def _make_collector() -> _RecordingCollector:
    store = InMemoryTelemetryDataSource([
        _make_record("failure_event", 0),
        _make_record("build_failed", 1),
        _make_record("failure_event", 48),
        _make_record("crash", 50),
        _make_record("deploy", 60),
        TelemetryRecord(attributes={"note": "no kind"}, timestamp=T0),
    ])
    return _RecordingCollector(store)


class TestTelemetryFiltering:
    def setup_method(self):
        self.tracker = _ListTracker()
        self.service = MetricsService(progress_tracker=self.tracker)
        self.collector = _make_collector()

    def test_fetches_exactly_union_of_required_kinds(self):
        metrics = [
            _SpyMetric("a", ["failure_event"]),
            _SpyMetric("b", ["crash", "failure_event"]),
        ]
        self.service.compute_metrics(self.collector, metrics)

        assert self.collector.requested == [{"failure_event", "crash"}]
        assert required_telemetry(metrics) == {"failure_event", "crash"}

    def test_each_metric_sees_only_its_kinds(self):
        failures = _SpyMetric("failures", ["failure_event"])
        crashes = _SpyMetric("crashes", ["crash"])
        self.service.compute_metrics(self.collector, [failures, crashes])

        assert [r.event_type for r in failures.seen] == ["failure_event", "failure_event"]
        assert [r.event_type for r in crashes.seen] == ["crash"]
        assert failures.value == 2
        assert crashes.value == 1

    def test_no_fetch_when_no_telemetry_required(self):
        metric = _SpyMetric("constant", [])
        self.service.compute_metrics(self.collector, [metric])
        assert self.collector.requested == []
        assert metric.value == 0


class TestIsolation:
    def setup_method(self):
        self.service = MetricsService(progress_tracker=_ListTracker())
        self.collector = _make_collector()

    def test_failing_metric_does_not_abort_batch(self):
        mtbf = MeanTimeBetweenEventsMetric()
        broken = _BrokenMetric(name="broken", required_telemetry=["crash"])
        crashes = EventCountMetric(name="Crash Count", event_type="crash")

        result = self.service.compute_metrics(self.collector, [mtbf, broken, crashes])

        assert result == [mtbf, broken, crashes]
        assert mtbf.value == pytest.approx(48.0)
        assert crashes.value == 1
        assert broken.status == MetricStatus.FAILED
        assert broken.value is None
        assert "sensor offline" in broken.error

    def test_failure_is_logged(self, caplog):
        broken = _BrokenMetric(name="broken", required_telemetry=["crash"])
        with caplog.at_level("WARNING"):
            self.service.compute_metrics(self.collector, [broken])
        assert "broken" in caplog.text


class TestMetricsUpdatedEvent:
    def setup_method(self):
        self.service = MetricsService(progress_tracker=_ListTracker())
        self.collector = _make_collector()

    def test_listeners_called_once_in_registration_order(self):
        calls = []
        self.service.on_metrics_updated(lambda metrics: calls.append(("first", len(metrics))))
        self.service.on_metrics_updated(lambda metrics: calls.append(("second", len(metrics))))

        self.service.compute_metrics(self.collector, [MeanTimeBetweenEventsMetric()])

        assert calls == [("first", 1), ("second", 1)]

    def test_payload_includes_failed_metrics(self):
        received = []
        self.service.on_metrics_updated(received.append)
        broken = _BrokenMetric(name="broken", required_telemetry=["crash"])

        self.service.compute_metrics(self.collector, [broken])

        assert received == [[broken]]
        assert received[0][0].failed

    def test_failing_listener_does_not_block_others(self):
        received = []

        def bad_listener(metrics):
            raise RuntimeError("listener bug")

        self.service.on_metrics_updated(bad_listener)
        self.service.on_metrics_updated(received.append)

        result = self.service.compute_metrics(self.collector, [MeanTimeBetweenEventsMetric()])
        assert received == [result]

    def test_storage_error_in_listener_reaches_caller_after_delivery(self):
        received = []

        def failing_store(metrics):
            raise StorageWriteError("disk full")

        self.service.on_metrics_updated(failing_store)
        self.service.on_metrics_updated(received.append)

        with pytest.raises(StorageWriteError):
            self.service.compute_metrics(self.collector, [MeanTimeBetweenEventsMetric()])
        assert len(received) == 1


class TestProgressTracking:
    def test_missing_tracker_is_configuration_error(self):
        service = MetricsService()
        collector = _make_collector()
        metric = MeanTimeBetweenEventsMetric()

        with pytest.raises(ConfigurationError):
            service.compute_metrics(collector, [metric])

        assert collector.requested == []
        assert metric.status == MetricStatus.PENDING

    def test_progress_reported_around_fetch_and_compute(self):
        tracker = _ListTracker()
        service = MetricsService()
        service.set_progress_tracker(tracker)

        service.compute_metrics(_make_collector(), [MeanTimeBetweenEventsMetric()])

        assert len(tracker.messages) == 4
        assert "Fetching telemetry" in tracker.messages[0]
        assert "Fetched 2 telemetry records" in tracker.messages[1]
        assert "Computing 1 metrics" in tracker.messages[2]
        assert "1 metrics, 0 failed" in tracker.messages[3]
