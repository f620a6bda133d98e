"""
Telemetry Store — persistence boundary for telemetry and assessment records.

The pipeline depends only on this interface; backend encodings (JSON, CSV,
XML, SQL) stay behind it.

Behavioral Contract:
- `read()` never raises for a missing or unparseable resource. Missing →
  warning + empty snapshot. Unparseable → StorageReadError raised by the
  backend, logged here, empty snapshot returned.
- `store()`/`store_all()` append telemetry. File backends do so by
  read-modify-write, which is not atomic: one writer per store instance.
- `store_assessments()` persists the normalized AssessmentRecord
  projection, never the live Goal/Metric graph.
- Write failures propagate as StorageWriteError.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, Sequence

from quality_kernel.errors import StorageReadError
from quality_kernel.models.assessment import Assessment, AssessmentRecord
from quality_kernel.models.config import TelemetryDataSourceConfig
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord

logger = logging.getLogger(__name__)

AssessmentFilter = Callable[[Assessment], bool]


class TelemetryStore(ABC):
    """Base class for every telemetry data source backend."""

    def __init__(self, config: Optional[TelemetryDataSourceConfig] = None):
        self.config = config

    @property
    def kind(self) -> str:
        return type(self).__name__

    def connect(self) -> None:
        """Open a session with the backend. No-op unless the backend needs one."""

    def disconnect(self) -> None:
        """Close the backend session. No-op unless the backend needs one."""

    def read(self) -> StoreSnapshot:
        """Everything the store holds. Fails soft, see module docstring."""
        try:
            snapshot = self._load()
        except StorageReadError as e:
            logger.error("%s: failed to read store: %s", self.kind, e)
            return StoreSnapshot()

        if snapshot is None:
            logger.warning("%s: backing resource does not exist", self.kind)
            return StoreSnapshot()

        if snapshot.telemetry_data and not snapshot.telemetry_data[0].is_valid:
            logger.warning(
                "%s: invalid telemetry data, first record has no event_type: %s",
                self.kind,
                snapshot.telemetry_data[0].attributes,
            )
        return snapshot

    def read_telemetry(self, kinds: Optional[Iterable[str]] = None) -> List[TelemetryRecord]:
        """Stored telemetry, restricted to the given kinds when provided."""
        records = self.read().telemetry_data
        if kinds is None:
            return list(records)
        wanted = set(kinds)
        return [r for r in records if r.event_type in wanted]

    def store(self, record: TelemetryRecord) -> None:
        self.store_all([record])

    @abstractmethod
    def store_all(self, records: Sequence[TelemetryRecord]) -> None:
        """Append telemetry records, preserving their order."""
        ...

    def store_assessments(
        self,
        assessments: Sequence[Assessment],
        filter: Optional[AssessmentFilter] = None,
    ) -> List[AssessmentRecord]:
        """Persist the normalized projection of the (filtered) assessments."""
        selected = [a for a in assessments if filter is None or filter(a)]
        records = [AssessmentRecord.from_assessment(a) for a in selected]
        if records:
            self._append_assessment_records(records)
        return records

    @abstractmethod
    def _load(self) -> Optional[StoreSnapshot]:
        """Backend read. None when the resource does not exist."""
        ...

    @abstractmethod
    def _append_assessment_records(self, records: List[AssessmentRecord]) -> None:
        ...
