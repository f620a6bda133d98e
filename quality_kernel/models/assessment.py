"""Assessments — immutable results of scoring one goal at a point in time."""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

if TYPE_CHECKING:
    from quality_kernel.goals.goal import Goal


class Assessment(BaseModel):
    """
    The AssessmentEngine's output for one goal.

    Created once per scoring pass and never modified afterwards. `details`
    maps every metric the goal declares to its contribution; metrics that
    had no value in the scored batch contribute 0.0 and are also listed in
    `missing_metrics`. Both are read-only views.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    goal: Any                              # the live Goal this assessment belongs to
    global_score: float
    timestamp: datetime
    details: Mapping[str, float] = Field(default_factory=dict, validate_default=True)
    missing_metrics: Tuple[str, ...] = ()

    @field_validator("details")
    @classmethod
    def freeze_details(cls, v: Mapping[str, float]) -> Mapping[str, float]:
        return MappingProxyType(dict(v))

    @field_serializer("details")
    def serialize_details(self, details: Mapping[str, float]) -> Dict[str, float]:
        return dict(details)

    @property
    def goal_name(self) -> str:
        return self.goal.name


class MetricSnapshot(BaseModel):
    """Metric metadata as persisted alongside an assessment."""

    name: str
    acronym: str = ""
    description: str = ""
    unit: str = ""


class GoalSnapshot(BaseModel):
    """Goal metadata as persisted alongside an assessment."""

    name: str
    description: str = ""
    weight: float = Field(ge=0, le=1, default=1.0)
    metrics: List[MetricSnapshot] = []


class AssessmentRecord(BaseModel):
    """
    Normalized, durable projection of an Assessment.

    Decoupled from the live Goal/Metric objects so that stored history
    survives goal and metric redefinition. Every store backend persists
    exactly this shape.
    """

    goal: GoalSnapshot
    global_score: float
    timestamp: datetime
    details: Dict[str, float] = {}

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> "AssessmentRecord":
        goal: "Goal" = assessment.goal
        return cls(
            goal=GoalSnapshot(
                name=goal.name,
                description=goal.description,
                weight=goal.weight,
                metrics=[
                    MetricSnapshot(
                        name=m.name,
                        acronym=m.acronym,
                        description=m.description,
                        unit=m.unit,
                    )
                    for m in goal.metrics
                ],
            ),
            global_score=assessment.global_score,
            timestamp=assessment.timestamp,
            details=dict(assessment.details),
        )
