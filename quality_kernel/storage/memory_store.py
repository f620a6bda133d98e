"""In-process telemetry store, for tests and local development."""

from typing import List, Optional, Sequence

from quality_kernel.models.assessment import AssessmentRecord
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord
from quality_kernel.storage.base import TelemetryStore


class InMemoryTelemetryDataSource(TelemetryStore):
    """Keeps records in lists. Never missing, never malformed."""

    def __init__(self, records: Optional[Sequence[TelemetryRecord]] = None):
        super().__init__()
        self._telemetry: List[TelemetryRecord] = list(records or [])
        self._assessments: List[AssessmentRecord] = []

    def _load(self) -> Optional[StoreSnapshot]:
        return StoreSnapshot(
            telemetry_data=list(self._telemetry),
            assessments=list(self._assessments),
        )

    def store_all(self, records: Sequence[TelemetryRecord]) -> None:
        self._telemetry.extend(records)

    def _append_assessment_records(self, records: List[AssessmentRecord]) -> None:
        self._assessments.extend(records)
