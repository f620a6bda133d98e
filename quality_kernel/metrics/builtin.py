"""Generic telemetry metrics that need no domain knowledge beyond event kinds."""

from typing import List

from quality_kernel.metrics.core import Metric, MetricValue
from quality_kernel.models.telemetry import TelemetryRecord


class EventCountMetric(Metric):
    """Number of events of one kind."""

    def __init__(self, name: str, event_type: str, description: str = "", acronym: str = ""):
        super().__init__(
            name=name,
            description=description or f"Number of '{event_type}' events",
            acronym=acronym,
            required_telemetry=[event_type],
            unit="events",
        )
        self.event_type = event_type

    def calculate(self, data: List[TelemetryRecord]) -> MetricValue:
        return sum(1 for r in data if r.event_type == self.event_type)


class MeanTimeBetweenEventsMetric(Metric):
    """
    Mean time between consecutive events of one kind, in hours.

    Used as MTBF when the kind is a failure event. Fewer than two events
    give no interval to average and yield 0.0.
    """

    def __init__(
        self,
        name: str = "MTBF",
        event_type: str = "failure_event",
        description: str = "Mean time between failures",
        acronym: str = "MTBF",
    ):
        super().__init__(
            name=name,
            description=description,
            acronym=acronym,
            required_telemetry=[event_type],
            unit="hours",
        )
        self.event_type = event_type

    def calculate(self, data: List[TelemetryRecord]) -> MetricValue:
        timestamps = sorted(r.timestamp for r in data if r.event_type == self.event_type)
        if len(timestamps) < 2:
            return 0.0
        span = (timestamps[-1] - timestamps[0]).total_seconds() / 3600.0
        return span / (len(timestamps) - 1)


class EventRatioMetric(Metric):
    """
    Share of `numerator_type` events among `numerator_type` + `other_type`.

    E.g. successful builds over all builds. Returns 0.0 when neither kind
    was observed.
    """

    def __init__(
        self,
        name: str,
        numerator_type: str,
        other_type: str,
        description: str = "",
        acronym: str = "",
    ):
        super().__init__(
            name=name,
            description=description or f"Ratio of '{numerator_type}' events",
            acronym=acronym,
            required_telemetry=[numerator_type, other_type],
            unit="ratio",
        )
        self.numerator_type = numerator_type
        self.other_type = other_type

    def calculate(self, data: List[TelemetryRecord]) -> MetricValue:
        hits = sum(1 for r in data if r.event_type == self.numerator_type)
        misses = sum(1 for r in data if r.event_type == self.other_type)
        total = hits + misses
        return hits / total if total else 0.0
