"""Configuration for telemetry data sources and the assessment loop."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class DataFormat(str, Enum):
    JSON = "JSON"
    CSV = "CSV"
    XML = "XML"


class StorageEndpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str                                # file path, or sqlite:///path


class TelemetryDataSourceConfig(BaseModel):
    """Passed once at construction; fixed for the life of the data source."""

    model_config = ConfigDict(frozen=True)

    storage_endpoint: StorageEndpoint
    data_format: DataFormat = DataFormat.JSON


class AssessmentLoopConfig(BaseModel):
    """Configuration for the scheduled assessment loop."""

    schedule: str = "*/15 * * * *"          # cron expression
    persist_assessments: bool = True
