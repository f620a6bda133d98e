"""Quality Kernel data models."""

from quality_kernel.models.assessment import (
    Assessment,
    AssessmentRecord,
    GoalSnapshot,
    MetricSnapshot,
)
from quality_kernel.models.config import (
    AssessmentLoopConfig,
    DataFormat,
    StorageEndpoint,
    TelemetryDataSourceConfig,
)
from quality_kernel.models.telemetry import (
    EVENT_TYPE_ATTRIBUTE,
    StoreSnapshot,
    TelemetryRecord,
)

__all__ = [
    "Assessment",
    "AssessmentLoopConfig",
    "AssessmentRecord",
    "DataFormat",
    "EVENT_TYPE_ATTRIBUTE",
    "GoalSnapshot",
    "MetricSnapshot",
    "StorageEndpoint",
    "StoreSnapshot",
    "TelemetryDataSourceConfig",
    "TelemetryRecord",
]
