"""
Quality Kernel API — FastAPI endpoints.

Exposes the assessment pipeline via a REST API for:
- Telemetry ingestion (triggers reactive reassessment)
- Goal selection
- Explicit assessment cycles
- Assessment history queries
"""

from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from quality_kernel.errors import ConfigurationError, StorageError
from quality_kernel.goals.goal import Goal
from quality_kernel.metrics.builtin import (
    EventCountMetric,
    EventRatioMetric,
    MeanTimeBetweenEventsMetric,
)
from quality_kernel.metrics.service import LoggingProgressTracker, ProgressTracker
from quality_kernel.models.config import AssessmentLoopConfig
from quality_kernel.models.telemetry import TelemetryRecord
from quality_kernel.scheduler.loop import AssessmentLoop
from quality_kernel.services.quality_assessment import QualityAssessmentService
from quality_kernel.storage.base import TelemetryStore
from quality_kernel.storage.memory_store import InMemoryTelemetryDataSource
from quality_kernel.telemetry.collector import TelemetryCollector


# --- Request/Response Models ---

class TelemetryIngestRequest(BaseModel):
    records: List[TelemetryRecord]


class GoalSelectRequest(BaseModel):
    goal_names: List[str]


class AssessResponse(BaseModel):
    goals: list
    overall_score: float


def default_goals() -> List[Goal]:
    """Goals available when the app is created without a catalog."""
    return [
        Goal(
            name="Reliability",
            description="How long the system runs between failures",
            weight=0.5,
            metrics=[MeanTimeBetweenEventsMetric()],
        ),
        Goal(
            name="Stability",
            description="Share of successful builds and number of crashes",
            weight=0.5,
            metrics=[
                EventRatioMetric(
                    name="Build Success Rate",
                    numerator_type="build_succeeded",
                    other_type="build_failed",
                    acronym="BSR",
                ),
                EventCountMetric(name="Crash Count", event_type="crash", acronym="CC"),
            ],
            metric_weights={"Build Success Rate": 0.8, "Crash Count": 0.2},
        ),
    ]


# --- Application Factory ---

def create_app(
    data_source: Optional[TelemetryStore] = None,
    goals: Optional[Sequence[Goal]] = None,
    progress_tracker: Optional[ProgressTracker] = None,
    loop_config: Optional[AssessmentLoopConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Quality Kernel API",
        description="Goal-based software quality assessment from telemetry",
        version="0.1.0",
    )

    # Initialize components
    ds = data_source or InMemoryTelemetryDataSource()
    ds.connect()
    collector = TelemetryCollector(ds)
    catalog = {g.name: g for g in (goals if goals is not None else default_goals())}

    service = QualityAssessmentService(
        progress_tracker=progress_tracker or LoggingProgressTracker(),
    )
    service.set_context(collector, [])
    loop = AssessmentLoop(service, ds, loop_config)

    # Store components on app state for access in endpoints
    app.state.data_source = ds
    app.state.collector = collector
    app.state.service = service
    app.state.loop = loop
    app.state.goal_catalog = catalog

    # === TELEMETRY ===

    @app.post("/telemetry")
    def ingest_telemetry(req: TelemetryIngestRequest):
        """Store new telemetry and reassess the selected goals."""
        try:
            collector.ingest_all(req.records)
        except ConfigurationError as e:
            raise HTTPException(409, str(e))
        except StorageError as e:
            raise HTTPException(503, str(e))
        return {
            "status": "ingested",
            "count": len(req.records),
            "invalid": sum(1 for r in req.records if not r.is_valid),
        }

    @app.get("/telemetry")
    def list_telemetry(event_type: Optional[str] = None):
        """Stored telemetry, optionally of one kind."""
        records = collector.fetch([event_type]) if event_type else collector.fetch_all()
        return [r.model_dump(mode="json") for r in records]

    # === GOALS ===

    @app.get("/goals")
    def list_goals():
        """Available goals with selection state and latest score."""
        selected = {g.name for g in service.selected_goals}
        return [
            {**g.describe(), "selected": g.name in selected}
            for g in catalog.values()
        ]

    @app.post("/goals/select")
    def select_goals(req: GoalSelectRequest):
        """Choose which goals are assessed."""
        unknown = [n for n in req.goal_names if n not in catalog]
        if unknown:
            raise HTTPException(404, f"Unknown goals: {', '.join(unknown)}")
        service.set_context(collector, [catalog[n] for n in req.goal_names])
        return {"selected": req.goal_names}

    @app.get("/goals/{goal_name}/assessments")
    def get_goal_assessments(goal_name: str):
        """In-memory assessment history of one goal."""
        goal = catalog.get(goal_name)
        if goal is None:
            raise HTTPException(404, "Goal not found")
        return [
            {
                "global_score": a.global_score,
                "timestamp": a.timestamp.isoformat(),
                "details": dict(a.details),
                "missing_metrics": list(a.missing_metrics),
            }
            for a in goal.assessments
        ]

    # === ASSESSMENT ===

    @app.post("/assess")
    def assess():
        """Run an explicit assessment cycle."""
        try:
            goals = loop.run_once()
        except ConfigurationError as e:
            raise HTTPException(409, str(e))
        except StorageError as e:
            raise HTTPException(503, str(e))
        latest = [g.latest_assessment for g in goals if g.latest_assessment is not None]
        return AssessResponse(
            goals=[g.describe() for g in goals],
            overall_score=service.assessment_engine.overall_score(latest),
        )

    @app.get("/assessments")
    def list_assessments():
        """Persisted assessment records."""
        return [r.model_dump(mode="json") for r in ds.read().assessments]

    @app.get("/status")
    def status():
        return {
            "loop": loop.status,
            "schedule": loop.config.schedule,
            "cycles": loop.cycle_count,
            "selected_goals": [g.name for g in service.selected_goals],
            "data_source": ds.kind,
        }

    return app


# Default application instance
app = create_app()
