"""
Telemetry Collector — the telemetry source handed to the MetricsService.

Reads telemetry from a TelemetryStore by kind, and ingests new records on
behalf of the external transport, announcing them on its
telemetry-updated channel.
"""

import logging
from typing import Callable, Iterable, List, Sequence

from quality_kernel.events.channel import EventChannel
from quality_kernel.models.telemetry import TelemetryRecord
from quality_kernel.storage.base import TelemetryStore

logger = logging.getLogger(__name__)


class TelemetryCollector:
    """Bridges one TelemetryStore to the assessment pipeline."""

    def __init__(self, data_source: TelemetryStore):
        self.data_source = data_source
        self._telemetry_updated: EventChannel[List[TelemetryRecord]] = EventChannel(
            "telemetry-updated"
        )

    def fetch(self, kinds: Iterable[str]) -> List[TelemetryRecord]:
        """Stored telemetry whose event_type is one of `kinds`, in stored order."""
        return self.data_source.read_telemetry(set(kinds))

    def fetch_all(self) -> List[TelemetryRecord]:
        return self.data_source.read_telemetry()

    def ingest(self, record: TelemetryRecord) -> None:
        self.ingest_all([record])

    def ingest_all(self, records: Sequence[TelemetryRecord]) -> None:
        """Persist new records, then announce them to subscribers."""
        if not records:
            return
        invalid = sum(1 for r in records if not r.is_valid)
        if invalid:
            logger.warning(
                "Collector: %d of %d ingested records have no event_type",
                invalid,
                len(records),
            )
        self.data_source.store_all(records)
        self._telemetry_updated.publish(list(records))

    def on_telemetry_updated(self, listener: Callable[[List[TelemetryRecord]], None]) -> None:
        self._telemetry_updated.subscribe(listener)
