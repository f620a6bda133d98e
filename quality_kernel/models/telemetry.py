"""Telemetry records — raw, timestamped events consumed by metrics."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from quality_kernel.models.assessment import AssessmentRecord

EVENT_TYPE_ATTRIBUTE = "event_type"


class TelemetryRecord(BaseModel):
    """A single event produced by the external collector. Never mutated."""

    model_config = ConfigDict(frozen=True)

    attributes: Dict[str, Any]
    timestamp: datetime
    source_type: str = "unknown"          # e.g., "ide_plugin", "ci_runner"

    @property
    def event_type(self) -> Optional[str]:
        """The telemetry kind, read from the `event_type` attribute."""
        value = self.attributes.get(EVENT_TYPE_ATTRIBUTE)
        return str(value) if value is not None else None

    @property
    def is_valid(self) -> bool:
        return self.event_type is not None


class StoreSnapshot(BaseModel):
    """Everything a telemetry store holds, as returned by `read()`."""

    telemetry_data: List[TelemetryRecord] = []
    assessments: List[AssessmentRecord] = []
