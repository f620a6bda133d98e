"""Tests for the telemetry store backends."""

from datetime import datetime, timedelta

import pytest

from quality_kernel.errors import ConfigurationError, StorageReadError
from quality_kernel.goals.goal import Goal
from quality_kernel.metrics.builtin import MeanTimeBetweenEventsMetric
from quality_kernel.models.assessment import Assessment
from quality_kernel.models.config import DataFormat, StorageEndpoint, TelemetryDataSourceConfig
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord
from quality_kernel.storage import codecs
from quality_kernel.storage.factory import create_data_source
from quality_kernel.storage.file_store import FileTelemetryDataSource
from quality_kernel.storage.memory_store import InMemoryTelemetryDataSource
from quality_kernel.storage.sqlite_store import SQLiteTelemetryDataSource, database_path

T0 = datetime(2026, 3, 1, 12, 0)


def _make_record(event_type: str = "failure_event", hours: float = 0.0, **attrs) -> TelemetryRecord:
    return TelemetryRecord(
        attributes={"event_type": event_type, **attrs},
        timestamp=T0 + timedelta(hours=hours),
        source_type="test_collector",
    )


def _make_assessment(name: str = "Reliability", score: float = 12.5) -> Assessment:
    goal = Goal(
        name=name,
        description=f"{name} goal",
        weight=0.5,
        metrics=[MeanTimeBetweenEventsMetric()],
    )
    return Assessment(
        goal=goal,
        global_score=score,
        timestamp=T0,
        details={"MTBF": score},
    )


def _config(uri: str, data_format: DataFormat = DataFormat.JSON) -> TelemetryDataSourceConfig:
    return TelemetryDataSourceConfig(
        storage_endpoint=StorageEndpoint(uri=uri),
        data_format=data_format,
    )


class TestFileDataSource:
    def test_missing_file_reads_empty(self, tmp_path, caplog):
        store = FileTelemetryDataSource(_config(str(tmp_path / "absent.json")))

        with caplog.at_level("WARNING"):
            snapshot = store.read()

        assert snapshot.telemetry_data == []
        assert snapshot.assessments == []
        assert "does not exist" in caplog.text

    @pytest.mark.parametrize("data_format", list(DataFormat))
    def test_store_all_then_read_preserves_order(self, tmp_path, data_format):
        path = tmp_path / "nested" / f"telemetry.{data_format.value.lower()}"
        store = FileTelemetryDataSource(_config(str(path), data_format))
        first = [_make_record("failure_event", 0, component="db")]
        second = [
            _make_record("crash", 1, count=3, tags=["a", "b"]),
            _make_record("failure_event", 2, ok=True),
        ]

        store.store_all(first)
        store.store_all(second)
        snapshot = store.read()

        assert snapshot.telemetry_data == first + second
        assert path.exists()

    @pytest.mark.parametrize("data_format", list(DataFormat))
    def test_assessments_persisted_as_projection(self, tmp_path, data_format):
        path = tmp_path / f"store.{data_format.value.lower()}"
        store = FileTelemetryDataSource(_config(str(path), data_format))
        store.store(_make_record())

        stored = store.store_assessments([_make_assessment()])
        snapshot = store.read()

        assert len(snapshot.telemetry_data) == 1
        assert snapshot.assessments == stored
        record = snapshot.assessments[0]
        assert record.goal.name == "Reliability"
        assert record.goal.metrics[0].name == "MTBF"
        assert record.details == {"MTBF": 12.5}

    @pytest.mark.parametrize("data_format", list(DataFormat))
    def test_control_characters_survive_later_writes(self, tmp_path, data_format):
        path = tmp_path / f"store.{data_format.value.lower()}"
        store = FileTelemetryDataSource(_config(str(path), data_format))
        odd = TelemetryRecord(
            attributes={"event_type": "crash", "note\x02": "line\x0bbreak"},
            timestamp=T0,
            source_type="agent\x01",
        )

        store.store_all([_make_record(), _make_record("crash", 1)])
        store.store(odd)
        store.store(_make_record("deploy", 2))
        store.store_assessments([_make_assessment("Reli\x1fability")])
        snapshot = store.read()

        assert len(snapshot.telemetry_data) == 4
        assert snapshot.telemetry_data[2] == odd
        assert snapshot.assessments[0].goal.name == "Reli\x1fability"

    def test_store_assessments_filter(self, tmp_path):
        store = FileTelemetryDataSource(_config(str(tmp_path / "store.json")))
        assessments = [_make_assessment("Reliability", 1.0), _make_assessment("Security", 2.0)]

        stored = store.store_assessments(assessments, filter=lambda a: a.goal.name == "Security")

        assert [r.goal.name for r in stored] == ["Security"]
        assert [r.goal.name for r in store.read().assessments] == ["Security"]

    def test_malformed_file_reads_empty_and_logs(self, tmp_path, caplog):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        store = FileTelemetryDataSource(_config(str(path)))

        with caplog.at_level("ERROR"):
            snapshot = store.read()

        assert snapshot == StoreSnapshot()
        assert "failed to read store" in caplog.text

    def test_invalid_first_record_warns_but_returns_data(self, tmp_path, caplog):
        store = FileTelemetryDataSource(_config(str(tmp_path / "store.json")))
        store.store_all([
            TelemetryRecord(attributes={"component": "db"}, timestamp=T0),
            _make_record(),
        ])

        with caplog.at_level("WARNING"):
            snapshot = store.read()

        assert len(snapshot.telemetry_data) == 2
        assert "invalid telemetry data" in caplog.text

    def test_read_telemetry_by_kind(self, tmp_path):
        store = FileTelemetryDataSource(_config(str(tmp_path / "store.json")))
        store.store_all([_make_record("crash"), _make_record("deploy"), _make_record("crash", 1)])

        assert len(store.read_telemetry(["crash"])) == 2
        assert len(store.read_telemetry()) == 3
        assert store.read_telemetry([]) == []

    def test_file_uri_scheme(self, tmp_path):
        store = FileTelemetryDataSource(_config(f"file://{tmp_path}/store.json"))
        assert store.file_path == tmp_path / "store.json"


class TestCodecs:
    def test_blank_content_is_empty_store(self):
        assert codecs.decode("  \n", DataFormat.XML) == StoreSnapshot()

    @pytest.mark.parametrize(
        "text,data_format",
        [
            ("<wrongRoot/>", DataFormat.XML),
            ("<telemetryStore>", DataFormat.XML),
            ("a,b\n1,2\n", DataFormat.CSV),
            ('{"telemetry_data": [{"attributes": {}}]}', DataFormat.JSON),
        ],
    )
    def test_malformed_content_raises(self, text, data_format):
        with pytest.raises(StorageReadError):
            codecs.decode(text, data_format)

    def test_csv_rows(self):
        snapshot = StoreSnapshot(telemetry_data=[_make_record("crash", component="ui")])
        text = codecs.encode(snapshot, DataFormat.CSV)
        header, row = text.strip().splitlines()
        assert header == "record_type,timestamp,source_type,data"
        assert row.startswith("telemetry,2026-03-01T12:00:00,test_collector,")


class TestSQLiteDataSource:
    def setup_method(self):
        self.store = SQLiteTelemetryDataSource(_config("sqlite://:memory:"))
        self.store.connect()

    def teardown_method(self):
        self.store.disconnect()

    def test_requires_connection(self):
        store = SQLiteTelemetryDataSource(_config("sqlite://:memory:"))
        with pytest.raises(ConfigurationError):
            store.read()
        with pytest.raises(ConfigurationError):
            store.store(_make_record())

    def test_never_written_store_reads_empty(self):
        snapshot = self.store.read()
        assert snapshot.telemetry_data == []
        assert snapshot.assessments == []

    def test_store_all_then_read(self):
        records = [_make_record("failure_event", i, seq=i) for i in range(5)]
        self.store.store_all(records[:2])
        self.store.store_all(records[2:])

        assert self.store.read().telemetry_data == records
        assert self.store.count() == 5

    def test_read_telemetry_filters_in_sql(self):
        self.store.store_all([
            _make_record("crash"),
            _make_record("deploy"),
            TelemetryRecord(attributes={"note": "kindless"}, timestamp=T0),
        ])
        assert [r.event_type for r in self.store.read_telemetry({"crash"})] == ["crash"]
        assert self.store.read_telemetry(set()) == []
        assert len(self.store.read_telemetry()) == 3

    def test_assessments_by_goal(self):
        self.store.store_assessments([
            _make_assessment("Reliability", 1.0),
            _make_assessment("Security", 2.0),
            _make_assessment("Reliability", 3.0),
        ])
        scores = [r.global_score for r in self.store.query_assessments("Reliability")]
        assert scores == [1.0, 3.0]
        assert len(self.store.read().assessments) == 3

    def test_disconnect_is_idempotent(self):
        self.store.disconnect()
        self.store.disconnect()
        assert not self.store.connected

    def test_file_database_persists_between_sessions(self, tmp_path):
        uri = f"sqlite:///{tmp_path}/telemetry.db"
        first = SQLiteTelemetryDataSource(_config(uri))
        first.connect()
        first.store(_make_record())
        first.disconnect()

        second = SQLiteTelemetryDataSource(_config(uri))
        second.connect()
        assert len(second.read().telemetry_data) == 1
        second.disconnect()


class TestInMemoryDataSource:
    def test_store_and_read(self):
        store = InMemoryTelemetryDataSource()
        assert store.read() == StoreSnapshot()
        store.store(_make_record())
        store.store_assessments([_make_assessment()])
        snapshot = store.read()
        assert len(snapshot.telemetry_data) == 1
        assert len(snapshot.assessments) == 1


class TestFactory:
    def test_sqlite_uri_selects_database(self):
        assert isinstance(create_data_source(_config("sqlite://:memory:")), SQLiteTelemetryDataSource)

    def test_path_selects_file(self, tmp_path):
        source = create_data_source(_config(str(tmp_path / "t.xml"), DataFormat.XML))
        assert isinstance(source, FileTelemetryDataSource)
        assert source.data_format == DataFormat.XML

    @pytest.mark.parametrize(
        "uri,expected",
        [
            ("sqlite://", ":memory:"),
            ("sqlite://:memory:", ":memory:"),
            ("sqlite:///data/t.db", "data/t.db"),
            ("sqlite:////var/t.db", "/var/t.db"),
        ],
    )
    def test_database_path(self, uri, expected):
        assert database_path(uri) == expected
