"""
SQLite Telemetry Data Source — database backend for telemetry and assessments.

Two append-only tables. Rows keep the full record as JSON plus indexed
columns for querying by telemetry kind and goal. Unlike the file backend,
`store_all` is one transaction.
"""

import json
import logging
import sqlite3
from typing import Iterable, List, Optional, Sequence

from pydantic import ValidationError

from quality_kernel.errors import ConfigurationError, StorageReadError, StorageWriteError
from quality_kernel.models.assessment import AssessmentRecord
from quality_kernel.models.config import TelemetryDataSourceConfig
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord
from quality_kernel.storage.base import TelemetryStore

logger = logging.getLogger(__name__)

SQLITE_SCHEME = "sqlite://"


def database_path(uri: str) -> str:
    """`sqlite:///data/t.db` → `data/t.db`; `sqlite://` or `sqlite://:memory:` → `:memory:`."""
    path = uri[len(SQLITE_SCHEME):] if uri.startswith(SQLITE_SCHEME) else uri
    if path.startswith("/"):
        path = path[1:] or ":memory:"
    return path or ":memory:"


class SQLiteTelemetryDataSource(TelemetryStore):
    """
    Database-backed store.
    Requires `connect()` before use and `disconnect()` when done.
    """

    def __init__(self, config: TelemetryDataSourceConfig):
        super().__init__(config)
        self.db_path = database_path(config.storage_endpoint.uri)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        if self._conn is not None:
            return
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def disconnect(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ConfigurationError(
                f"SQLite data source {self.db_path} is not connected"
            )
        return self._conn

    def _init_schema(self) -> None:
        """Create the tables if they don't exist."""
        conn = self._connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS telemetry (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_type TEXT,
                    source_type TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    attributes_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_telemetry_event_type ON telemetry(event_type)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS assessments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    goal_name TEXT NOT NULL,
                    global_score REAL NOT NULL,
                    timestamp TEXT NOT NULL,
                    record_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_assessments_goal ON assessments(goal_name)
            """)
            conn.commit()
        except sqlite3.DatabaseError as e:
            raise StorageReadError(f"cannot open {self.db_path}: {e}") from e

    def _load(self) -> Optional[StoreSnapshot]:
        return StoreSnapshot(
            telemetry_data=self._query_telemetry(),
            assessments=self.query_assessments(),
        )

    def read_telemetry(self, kinds: Optional[Iterable[str]] = None) -> List[TelemetryRecord]:
        """Filters by kind in SQL instead of reading the whole store."""
        try:
            return self._query_telemetry(kinds)
        except StorageReadError as e:
            logger.error("%s: failed to read telemetry: %s", self.kind, e)
            return []

    def _query_telemetry(self, kinds: Optional[Iterable[str]] = None) -> List[TelemetryRecord]:
        sql = "SELECT source_type, timestamp, attributes_json FROM telemetry"
        params: List[str] = []
        if kinds is not None:
            params = sorted(set(kinds))
            if not params:
                return []
            sql += f" WHERE event_type IN ({', '.join('?' for _ in params)})"
        sql += " ORDER BY id"

        try:
            rows = self._connection().execute(sql, params).fetchall()
            return [
                TelemetryRecord(
                    attributes=json.loads(row["attributes_json"]),
                    timestamp=row["timestamp"],
                    source_type=row["source_type"],
                )
                for row in rows
            ]
        except (sqlite3.DatabaseError, ValidationError, ValueError) as e:
            raise StorageReadError(f"corrupt telemetry in {self.db_path}: {e}") from e

    def query_assessments(self, goal_name: Optional[str] = None) -> List[AssessmentRecord]:
        """Persisted assessments, oldest first, optionally for one goal."""
        sql = "SELECT record_json FROM assessments"
        params: List[str] = []
        if goal_name is not None:
            sql += " WHERE goal_name = ?"
            params.append(goal_name)
        sql += " ORDER BY id"

        try:
            rows = self._connection().execute(sql, params).fetchall()
            return [AssessmentRecord.model_validate_json(r["record_json"]) for r in rows]
        except (sqlite3.DatabaseError, ValidationError) as e:
            raise StorageReadError(f"corrupt assessments in {self.db_path}: {e}") from e

    def store_all(self, records: Sequence[TelemetryRecord]) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO telemetry (event_type, source_type, timestamp, attributes_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (
                            r.event_type,
                            r.source_type,
                            r.timestamp.isoformat(),
                            json.dumps(r.attributes, default=str),
                        )
                        for r in records
                    ],
                )
        except sqlite3.DatabaseError as e:
            raise StorageWriteError(f"cannot write telemetry to {self.db_path}: {e}") from e

    def _append_assessment_records(self, records: List[AssessmentRecord]) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO assessments (goal_name, global_score, timestamp, record_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (
                            r.goal.name,
                            r.global_score,
                            r.timestamp.isoformat(),
                            r.model_dump_json(),
                        )
                        for r in records
                    ],
                )
        except sqlite3.DatabaseError as e:
            raise StorageWriteError(f"cannot write assessments to {self.db_path}: {e}") from e

    def count(self) -> int:
        """Total number of stored telemetry records."""
        row = self._connection().execute("SELECT COUNT(*) as cnt FROM telemetry").fetchone()
        return row["cnt"]
