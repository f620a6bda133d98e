"""
Store codecs — JSON, CSV and XML encodings of a StoreSnapshot.

`decode()` raises StorageReadError for anything it cannot parse;
`encode()` raises StorageWriteError for content it cannot serialize.
"""

import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Any, Callable, Dict

from pydantic import ValidationError

from quality_kernel.errors import StorageReadError, StorageWriteError
from quality_kernel.models.assessment import AssessmentRecord, GoalSnapshot, MetricSnapshot
from quality_kernel.models.config import DataFormat
from quality_kernel.models.telemetry import StoreSnapshot, TelemetryRecord

CSV_FIELDS = ["record_type", "timestamp", "source_type", "data"]
TELEMETRY_ROW = "telemetry"
ASSESSMENT_ROW = "assessment"


# --- JSON ---

def _encode_json(snapshot: StoreSnapshot) -> str:
    return snapshot.model_dump_json(indent=2)


def _decode_json(text: str) -> StoreSnapshot:
    return StoreSnapshot.model_validate_json(text)


# --- CSV ---

def _encode_csv(snapshot: StoreSnapshot) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_FIELDS)
    writer.writeheader()
    for record in snapshot.telemetry_data:
        writer.writerow({
            "record_type": TELEMETRY_ROW,
            "timestamp": record.timestamp.isoformat(),
            "source_type": record.source_type,
            "data": json.dumps(record.attributes, sort_keys=True, default=str),
        })
    for assessment in snapshot.assessments:
        writer.writerow({
            "record_type": ASSESSMENT_ROW,
            "timestamp": assessment.timestamp.isoformat(),
            "source_type": "",
            "data": assessment.model_dump_json(),
        })
    return buffer.getvalue()


def _decode_csv(text: str) -> StoreSnapshot:
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None or list(reader.fieldnames) != CSV_FIELDS:
        raise ValueError(f"unexpected CSV header {reader.fieldnames}")

    snapshot = StoreSnapshot()
    for line, row in enumerate(reader, start=2):
        record_type = row["record_type"]
        if record_type == TELEMETRY_ROW:
            snapshot.telemetry_data.append(TelemetryRecord(
                attributes=json.loads(row["data"]),
                timestamp=datetime.fromisoformat(row["timestamp"]),
                source_type=row["source_type"],
            ))
        elif record_type == ASSESSMENT_ROW:
            snapshot.assessments.append(
                AssessmentRecord.model_validate_json(row["data"])
            )
        else:
            raise ValueError(f"line {line}: unknown record type {record_type!r}")
    return snapshot


# --- XML ---
#
# Free-form strings go into element text as JSON. ensure_ascii escapes every
# control character, so any valid record survives a round trip even where
# XML 1.0 cannot carry the raw character.

def _json_text(parent: ET.Element, tag: str, value: Any) -> ET.Element:
    el = ET.SubElement(parent, tag)
    el.text = json.dumps(value, ensure_ascii=True, default=str)
    return el


def _from_json_text(parent: ET.Element, tag: str, default: Any = None) -> Any:
    el = parent.find(tag)
    if el is None or el.text is None:
        return default
    return json.loads(el.text)


def _encode_xml(snapshot: StoreSnapshot) -> str:
    root = ET.Element("telemetryStore")

    telemetry = ET.SubElement(root, "telemetryData")
    for record in snapshot.telemetry_data:
        el = ET.SubElement(telemetry, "record", timestamp=record.timestamp.isoformat())
        _json_text(el, "sourceType", record.source_type)
        _json_text(el, "attributes", record.attributes)

    assessments = ET.SubElement(root, "assessments")
    for assessment in snapshot.assessments:
        el = ET.SubElement(
            assessments,
            "assessment",
            globalScore=repr(assessment.global_score),
            timestamp=assessment.timestamp.isoformat(),
        )
        goal = assessment.goal
        goal_el = ET.SubElement(el, "goal", weight=repr(goal.weight))
        _json_text(goal_el, "name", goal.name)
        _json_text(goal_el, "description", goal.description)
        for metric in goal.metrics:
            _json_text(goal_el, "metric", metric.model_dump())
        _json_text(el, "details", dict(assessment.details))

    ET.indent(root)
    return ET.tostring(root, encoding="unicode")


def _decode_xml(text: str) -> StoreSnapshot:
    root = ET.fromstring(text)
    if root.tag != "telemetryStore":
        raise ValueError(f"unexpected root element <{root.tag}>")

    snapshot = StoreSnapshot()
    for el in root.iterfind("telemetryData/record"):
        snapshot.telemetry_data.append(TelemetryRecord(
            attributes=_from_json_text(el, "attributes", {}),
            timestamp=datetime.fromisoformat(el.get("timestamp", "")),
            source_type=_from_json_text(el, "sourceType", "unknown"),
        ))

    for el in root.iterfind("assessments/assessment"):
        goal_el = el.find("goal")
        if goal_el is None:
            raise ValueError("assessment without <goal>")
        snapshot.assessments.append(AssessmentRecord(
            goal=GoalSnapshot(
                name=_from_json_text(goal_el, "name", ""),
                description=_from_json_text(goal_el, "description", ""),
                weight=float(goal_el.get("weight", "1.0")),
                metrics=[
                    MetricSnapshot(**json.loads(m.text or "{}"))
                    for m in goal_el.iterfind("metric")
                ],
            ),
            global_score=float(el.get("globalScore", "")),
            timestamp=datetime.fromisoformat(el.get("timestamp", "")),
            details=_from_json_text(el, "details", {}),
        ))
    return snapshot


_ENCODERS: Dict[DataFormat, Callable[[StoreSnapshot], str]] = {
    DataFormat.JSON: _encode_json,
    DataFormat.CSV: _encode_csv,
    DataFormat.XML: _encode_xml,
}

_DECODERS: Dict[DataFormat, Callable[[str], StoreSnapshot]] = {
    DataFormat.JSON: _decode_json,
    DataFormat.CSV: _decode_csv,
    DataFormat.XML: _decode_xml,
}


def encode(snapshot: StoreSnapshot, data_format: DataFormat) -> str:
    """Serialize a snapshot in the given format."""
    try:
        return _ENCODERS[data_format](snapshot)
    except (TypeError, ValueError) as e:
        raise StorageWriteError(f"cannot encode store as {data_format.value}: {e}") from e


def decode(text: str, data_format: DataFormat) -> StoreSnapshot:
    """Parse a snapshot. Blank content is an empty store."""
    if not text.strip():
        return StoreSnapshot()
    try:
        return _DECODERS[data_format](text)
    except (ValidationError, ValueError, KeyError, TypeError, csv.Error, ET.ParseError) as e:
        raise StorageReadError(f"cannot parse store as {data_format.value}: {e}") from e
