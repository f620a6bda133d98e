"""
File Telemetry Data Source — one flat file holding telemetry and assessments.

The encoding (JSON, CSV, XML) comes from the data source config. Every
write re-reads the file, appends, and writes the union back.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from quality_kernel.errors import StorageReadError, StorageWriteError
from quality_kernel.models.assessment import AssessmentRecord
from quality_kernel.models.config import TelemetryDataSourceConfig
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord
from quality_kernel.storage import codecs
from quality_kernel.storage.base import TelemetryStore

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"


class FileTelemetryDataSource(TelemetryStore):
    """Flat-file backend. Needs no session, so connect/disconnect are no-ops."""

    def __init__(self, config: TelemetryDataSourceConfig):
        super().__init__(config)
        uri = config.storage_endpoint.uri
        if uri.startswith(FILE_SCHEME):
            uri = uri[len(FILE_SCHEME):]
        self.file_path = Path(uri)
        self.data_format = config.data_format

    def _load(self) -> Optional[StoreSnapshot]:
        if not self.file_path.exists():
            return None
        try:
            text = self.file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"cannot read {self.file_path}: {e}") from e
        return codecs.decode(text, self.data_format)

    def store_all(self, records: Sequence[TelemetryRecord]) -> None:
        snapshot = self.read()
        snapshot.telemetry_data.extend(records)
        self._write(snapshot)

    def _append_assessment_records(self, records: List[AssessmentRecord]) -> None:
        snapshot = self.read()
        snapshot.assessments.extend(records)
        self._write(snapshot)

    def _write(self, snapshot: StoreSnapshot) -> None:
        content = codecs.encode(snapshot, self.data_format)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self.file_path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageWriteError(f"cannot write {self.file_path}: {e}") from e
        logger.info("File data source: data written to %s", self.file_path)
