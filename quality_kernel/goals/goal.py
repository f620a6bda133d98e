"""
Goal — a weighted grouping of metrics representing one quality characteristic.

A goal owns references to its metrics and an append-only assessment
history (its audit trail). Only `add_assessment` mutates it.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from quality_kernel.metrics.core import Metric
from quality_kernel.models.assessment import Assessment


class Goal:
    """One quality characteristic to be scored, e.g. "Reliability"."""

    def __init__(
        self,
        name: str,
        description: str = "",
        weight: float = 1.0,
        metrics: Optional[Sequence[Metric]] = None,
        metric_weights: Optional[Dict[str, float]] = None,
    ):
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"Goal weight must be within [0, 1], got {weight}")
        for metric_name, metric_weight in (metric_weights or {}).items():
            if metric_weight < 0:
                raise ValueError(
                    f"Metric weight for '{metric_name}' must be non-negative"
                )
        self.name = name
        self.description = description
        self.weight = weight
        self.metrics: List[Metric] = list(metrics or [])
        self.metric_weights: Dict[str, float] = dict(metric_weights or {})
        self._assessments: List[Assessment] = []

    @property
    def metric_names(self) -> List[str]:
        return [m.name for m in self.metrics]

    @property
    def assessments(self) -> Tuple[Assessment, ...]:
        """Assessment history, oldest first."""
        return tuple(self._assessments)

    @property
    def latest_assessment(self) -> Optional[Assessment]:
        return self._assessments[-1] if self._assessments else None

    def add_assessment(self, assessment: Assessment) -> None:
        if assessment.goal is not self:
            raise ValueError(
                f"Assessment for goal '{assessment.goal_name}' cannot be "
                f"attached to goal '{self.name}'"
            )
        self._assessments.append(assessment)

    def metric_weight(self, metric_name: str) -> float:
        """Raw weight of a metric within this goal (1.0 unless configured)."""
        return self.metric_weights.get(metric_name, 1.0)

    def describe(self) -> dict:
        latest = self.latest_assessment
        return {
            "name": self.name,
            "description": self.description,
            "weight": self.weight,
            "metrics": [m.describe() for m in self.metrics],
            "assessment_count": len(self._assessments),
            "latest_score": latest.global_score if latest else None,
            "latest_timestamp": latest.timestamp.isoformat() if latest else None,
        }

    def __repr__(self) -> str:
        return f"Goal(name={self.name!r}, weight={self.weight}, metrics={self.metric_names})"
