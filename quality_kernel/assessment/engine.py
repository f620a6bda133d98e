"""
Assessment Engine — scores goals from computed metric values.

Behavioral Contract:
- One Assessment per input goal, in input order.
- A metric the goal declares but the batch lacks (not computed, or failed)
  contributes 0.0 and is recorded in `missing_metrics`. It never aborts
  the goal's scoring.
- A goal with no metrics scores 0.0.
- Pure: goals are not mutated. Attaching assessments is the caller's job.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from quality_kernel.goals.goal import Goal
from quality_kernel.metrics.core import Metric, MetricValue
from quality_kernel.models.assessment import Assessment

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.0


def score_value(value: Optional[MetricValue]) -> float:
    """
    Map a metric value onto a number.

    bool → 1.0/0.0, numeric → itself, structured record → its numeric
    "score" entry or else the mean of its numeric entries. Anything else,
    including non-finite numbers, scores 0.0.
    """
    if value is None:
        return NEUTRAL_SCORE
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else NEUTRAL_SCORE
    if isinstance(value, dict):
        score = value.get("score")
        if _is_number(score):
            return score_value(score)
        numbers = [float(v) for v in value.values() if _is_number(v) and math.isfinite(v)]
        return sum(numbers) / len(numbers) if numbers else NEUTRAL_SCORE
    return NEUTRAL_SCORE


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def contribution(value: Optional[MetricValue], weight_within_goal: float) -> float:
    """A metric's share of its goal's score."""
    return score_value(value) * weight_within_goal


class AssessmentEngine:
    """Stateless goal scorer."""

    def assess_goals(
        self,
        goals: Sequence[Goal],
        metrics: Sequence[Metric],
        timestamp: Optional[datetime] = None,
    ) -> List[Assessment]:
        """Score every goal against one batch of computed metrics."""
        if timestamp is None:
            timestamp = datetime.utcnow()

        available: Dict[str, Metric] = {}
        for metric in metrics:
            if metric.failed or metric.value is None:
                continue
            available.setdefault(metric.name, metric)

        return [self._assess_goal(goal, available, timestamp) for goal in goals]

    def _assess_goal(
        self,
        goal: Goal,
        available: Dict[str, Metric],
        timestamp: datetime,
    ) -> Assessment:
        names = goal.metric_names
        if not names:
            return Assessment(
                goal=goal,
                global_score=NEUTRAL_SCORE,
                timestamp=timestamp,
            )

        weights = self._normalized_weights(goal, names)
        details: Dict[str, float] = {}
        missing: List[str] = []

        for name in names:
            metric = available.get(name)
            if metric is None:
                details[name] = 0.0
                missing.append(name)
                continue
            details[name] = contribution(metric.value, weights[name])

        if missing:
            logger.warning(
                "Goal '%s' assessed without metrics: %s", goal.name, ", ".join(missing)
            )

        return Assessment(
            goal=goal,
            global_score=sum(details.values()),
            timestamp=timestamp,
            details=details,
            missing_metrics=missing,
        )

    def _normalized_weights(self, goal: Goal, names: List[str]) -> Dict[str, float]:
        raw = {name: goal.metric_weight(name) for name in names}
        total = sum(raw.values())
        if total <= 0:
            return {name: 0.0 for name in names}
        return {name: w / total for name, w in raw.items()}

    def overall_score(self, assessments: Sequence[Assessment]) -> float:
        """Goal-weight-normalized mean of the global scores of sibling goals."""
        total_weight = sum(a.goal.weight for a in assessments)
        if total_weight <= 0:
            return NEUTRAL_SCORE
        return sum(a.global_score * a.goal.weight for a in assessments) / total_weight
