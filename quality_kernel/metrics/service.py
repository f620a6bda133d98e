"""
Metrics Service — computes requested metrics from a telemetry source.

Behavioral Contract:
- Fetches exactly the union of the requested metrics' telemetry kinds.
- Each metric sees only the records of the kinds it declares.
- A failing metric is marked failed and skipped; the batch never aborts.
- Every completed `compute_metrics` call publishes the full result list,
  failed metrics included, on the metrics-updated channel.
- A progress tracker is mandatory. Its absence is a ConfigurationError.
"""

import logging
from typing import Callable, List, Optional, Protocol, Sequence, Set

from quality_kernel.errors import ConfigurationError, MetricComputationError
from quality_kernel.events.channel import EventChannel
from quality_kernel.metrics.core import Metric
from quality_kernel.models.telemetry import TelemetryRecord

logger = logging.getLogger(__name__)


class ProgressTracker(Protocol):
    """Receives human-readable status strings. Fire-and-forget."""

    def notify_progress(self, message: str) -> None: ...


class LoggingProgressTracker:
    """Progress tracker that forwards every message to the log."""

    def __init__(self, logger_name: str = "quality_kernel.progress"):
        self._logger = logging.getLogger(logger_name)

    def notify_progress(self, message: str) -> None:
        self._logger.info(message)


class TelemetrySource(Protocol):
    """Anything that can return stored telemetry of the given kinds."""

    def fetch(self, kinds: Set[str]) -> List[TelemetryRecord]: ...


def required_telemetry(metrics: Sequence[Metric]) -> Set[str]:
    """Union of the telemetry kinds declared by `metrics`."""
    kinds: Set[str] = set()
    for metric in metrics:
        kinds |= metric.required_telemetry
    return kinds


class MetricsService:
    """Fetches, computes, broadcasts."""

    def __init__(self, progress_tracker: Optional[ProgressTracker] = None):
        self.progress_tracker = progress_tracker
        self._metrics_updated: EventChannel[List[Metric]] = EventChannel("metrics-updated")

    def set_progress_tracker(self, progress_tracker: ProgressTracker) -> None:
        self.progress_tracker = progress_tracker

    def on_metrics_updated(self, listener: Callable[[List[Metric]], None]) -> None:
        """Register a listener, called once per completed computation."""
        self._metrics_updated.subscribe(listener)

    def _tracker(self) -> ProgressTracker:
        if self.progress_tracker is None:
            raise ConfigurationError("Progress tracker not set in MetricsService.")
        return self.progress_tracker

    def compute_metrics(self, source: TelemetrySource, metrics: Sequence[Metric]) -> List[Metric]:
        """
        Compute every requested metric and publish the results.

        Returns the metrics in request order, each with its value populated
        or marked failed.
        """
        tracker = self._tracker()
        metrics = list(metrics)

        kinds = required_telemetry(metrics)
        tracker.notify_progress(
            f"Metrics Service: Fetching telemetry ({', '.join(sorted(kinds)) or 'none'})..."
        )
        telemetry = source.fetch(kinds) if kinds else []
        tracker.notify_progress(
            f"Metrics Service: Fetched {len(telemetry)} telemetry records."
        )

        tracker.notify_progress(f"Metrics Service: Computing {len(metrics)} metrics...")
        failures = 0
        for metric in metrics:
            try:
                metric.compute_value(metric.select_telemetry(telemetry))
            except MetricComputationError as e:
                failures += 1
                logger.warning("Metrics Service: %s", e)
        tracker.notify_progress(
            f"Metrics Service: Computed {len(metrics) - failures} metrics, {failures} failed."
        )

        self._metrics_updated.publish(metrics)
        return metrics
