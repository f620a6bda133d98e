"""
Metric — a named, deterministic computation over a telemetry batch.

Subclasses implement `calculate()`. `compute_value()` wraps it, caching
valid results and turning any failure into a MetricComputationError.
"""

import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

from quality_kernel.errors import MetricComputationError
from quality_kernel.models.telemetry import TelemetryRecord

# boolean | numeric | structured record
MetricValue = Union[bool, int, float, Dict[str, Any]]


class MetricStatus(str, Enum):
    PENDING = "pending"
    COMPUTED = "computed"
    FAILED = "failed"


def _validate_value(metric_name: str, value: Any) -> MetricValue:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise MetricComputationError(metric_name, f"non-finite value {value!r}")
        return value
    if isinstance(value, dict):
        return value
    raise MetricComputationError(
        metric_name, f"unsupported value type {type(value).__name__}"
    )


class Metric(ABC):
    """
    Base class for every metric.

    Stateless between computations apart from the last computed value and
    status. `required_telemetry` must cover every telemetry kind that
    `calculate()` reads.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        acronym: str = "",
        required_telemetry: Optional[Iterable[str]] = None,
        unit: str = "",
    ):
        self.name = name
        self.description = description
        self.acronym = acronym
        self.unit = unit
        self._required_telemetry: List[str] = []
        self._value: Optional[MetricValue] = None
        self._status = MetricStatus.PENDING
        self._error: Optional[str] = None
        self.set_required_telemetry(required_telemetry or [])

    @property
    def required_telemetry(self) -> Set[str]:
        return set(self._required_telemetry)

    @property
    def value(self) -> Optional[MetricValue]:
        """The last computed value, or None if pending or failed."""
        return self._value

    @property
    def status(self) -> MetricStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def failed(self) -> bool:
        return self._status == MetricStatus.FAILED

    def has_required_telemetry(self, telemetry_type: str) -> bool:
        return telemetry_type in self._required_telemetry

    def set_required_telemetry(self, telemetry_types: Iterable[str]) -> None:
        """Add telemetry kinds to the requirement set. Duplicates are ignored."""
        for telemetry_type in telemetry_types:
            if not self.has_required_telemetry(telemetry_type):
                self._required_telemetry.append(telemetry_type)

    def select_telemetry(self, data: Sequence[TelemetryRecord]) -> List[TelemetryRecord]:
        """The subset of a batch this metric is allowed to read."""
        return [r for r in data if r.event_type in self._required_telemetry]

    def compute_value(self, data: Optional[Sequence[TelemetryRecord]] = None) -> MetricValue:
        """
        Compute and cache the metric's value from a telemetry batch.

        Raises MetricComputationError when `calculate()` raises or returns a
        value outside the supported variant; the metric is then marked failed.
        """
        try:
            value = _validate_value(self.name, self.calculate(list(data or [])))
        except MetricComputationError as e:
            self.mark_failed(str(e))
            raise
        except Exception as e:
            self.mark_failed(f"{type(e).__name__}: {e}")
            raise MetricComputationError(self.name, str(e), cause=e) from e

        self._value = value
        self._status = MetricStatus.COMPUTED
        self._error = None
        return value

    def mark_failed(self, reason: str) -> None:
        self._value = None
        self._status = MetricStatus.FAILED
        self._error = reason

    @abstractmethod
    def calculate(self, data: List[TelemetryRecord]) -> MetricValue:
        """Metric-specific formula. Must be deterministic for a given batch."""
        ...

    def describe(self) -> dict:
        """Serializable view of the metric and its last value."""
        return {
            "name": self.name,
            "acronym": self.acronym,
            "description": self.description,
            "unit": self.unit,
            "required_telemetry": list(self._required_telemetry),
            "value": self._value,
            "status": self._status.value,
            "error": self._error,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, status={self._status.value})"
