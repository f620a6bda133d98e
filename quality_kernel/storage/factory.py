"""Backend selection from a data source config."""

from quality_kernel.models.config import TelemetryDataSourceConfig
from quality_kernel.storage.base import TelemetryStore
from quality_kernel.storage.file_store import FileTelemetryDataSource
from quality_kernel.storage.sqlite_store import SQLITE_SCHEME, SQLiteTelemetryDataSource


def create_data_source(config: TelemetryDataSourceConfig) -> TelemetryStore:
    """SQLite for `sqlite://` endpoints, a flat file for everything else."""
    if config.storage_endpoint.uri.startswith(SQLITE_SCHEME):
        return SQLiteTelemetryDataSource(config)
    return FileTelemetryDataSource(config)
