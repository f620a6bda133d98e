"""
Quality Assessment Service — drives the telemetry → metrics → assessment cycle.

Two triggers:
  EXPLICIT  assess_quality_goals(): compute metrics for the selected goals,
            score them, attach assessments, notify listeners.
  REACTIVE  handle_new_metrics(): invoked by the MetricsService's
            metrics-updated event (e.g. after new telemetry arrived);
            scores and notifies the same way, or warns and returns when no
            goals are selected.

Cycles are serialized through one re-entrant lock, so assessment history
stays ordered by timestamp. Context (collector + goals) is replaced as a
whole by set_context(); a single writer is assumed.
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from quality_kernel.assessment.engine import AssessmentEngine
from quality_kernel.errors import ConfigurationError, NotConfiguredError
from quality_kernel.events.channel import EventChannel
from quality_kernel.goals.goal import Goal
from quality_kernel.metrics.core import Metric
from quality_kernel.metrics.service import MetricsService, ProgressTracker
from quality_kernel.models.telemetry import TelemetryRecord
from quality_kernel.telemetry.collector import TelemetryCollector

logger = logging.getLogger(__name__)


class AssessmentContext(BaseModel):
    """The telemetry source and goal selection an assessment runs against."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    collector: Optional[TelemetryCollector] = None
    goals: List[Goal] = []


class QualityAssessmentService:
    """Orchestrates MetricsService and AssessmentEngine for selected goals."""

    def __init__(
        self,
        metrics_service: Optional[MetricsService] = None,
        assessment_engine: Optional[AssessmentEngine] = None,
        progress_tracker: Optional[ProgressTracker] = None,
    ):
        self.metrics_service = metrics_service or MetricsService()
        self.assessment_engine = assessment_engine or AssessmentEngine()
        self.progress_tracker: Optional[ProgressTracker] = None

        self._context = AssessmentContext()
        self._assessment_updated: EventChannel[List[Goal]] = EventChannel("assessment-updated")
        self._lock = threading.RLock()
        self._explicit_cycle = False
        self._watched_collectors: List[TelemetryCollector] = []

        self.metrics_service.on_metrics_updated(self.handle_new_metrics)
        if progress_tracker is not None:
            self.set_progress_tracker(progress_tracker)

    @property
    def context(self) -> AssessmentContext:
        return self._context

    @property
    def selected_goals(self) -> List[Goal]:
        return list(self._context.goals)

    def set_progress_tracker(self, progress_tracker: ProgressTracker) -> None:
        self.progress_tracker = progress_tracker
        self.metrics_service.set_progress_tracker(progress_tracker)

    def set_context(self, collector: Optional[TelemetryCollector], goals: Sequence[Goal]) -> None:
        """Redirect the service to a new telemetry source and goal selection."""
        with self._lock:
            self._context = AssessmentContext(collector=collector, goals=list(goals))
            if collector is not None:
                self._watch(collector)

    def _watch(self, collector: TelemetryCollector) -> None:
        if any(c is collector for c in self._watched_collectors):
            return
        self._watched_collectors.append(collector)

        def on_telemetry(records: List[TelemetryRecord]) -> None:
            # only the current context's collector triggers a recompute
            if self._context.collector is collector:
                self.handle_new_telemetry(records)

        collector.on_telemetry_updated(on_telemetry)

    def on_assessment_updated(self, listener: Callable[[List[Goal]], None]) -> None:
        """Register a listener for updated goals. Listeners are never removed."""
        self._assessment_updated.subscribe(listener)

    def _tracker(self) -> ProgressTracker:
        if self.progress_tracker is None:
            raise ConfigurationError("Progress tracker not set in QualityAssessmentService.")
        return self.progress_tracker

    def assess_quality_goals(self) -> List[Goal]:
        """
        Run one full assessment cycle for the selected goals.

        Raises ConfigurationError without a progress tracker, and
        NotConfiguredError without a collector or goals. Nothing is
        modified in either case.
        """
        tracker = self._tracker()

        with self._lock:
            context = self._context
            if context.collector is None or not context.goals:
                raise NotConfiguredError("QualityAssessmentService: Collector or goals not set.")

            tracker.notify_progress("Quality Assessment Service: Starting quality goal assessment...")

            metrics = self._collect_metrics(context.goals)
            self._explicit_cycle = True
            try:
                computed = self.metrics_service.compute_metrics(context.collector, metrics)
            finally:
                self._explicit_cycle = False

            self._assess_and_publish(context.goals, computed)
            tracker.notify_progress("Quality Assessment Service: Quality goal assessment completed.")
            return list(context.goals)

    def handle_new_telemetry(self, records: Sequence[TelemetryRecord]) -> None:
        """Recompute after new telemetry; scoring follows via the metrics-updated event."""
        with self._lock:
            context = self._context
            if context.collector is None:
                return
            if not context.goals:
                logger.warning(
                    "QualityAssessmentService: %d new telemetry records, no goals set for assessment.",
                    len(records),
                )
                return
            self.metrics_service.compute_metrics(
                context.collector, self._collect_metrics(context.goals)
            )

    def handle_new_metrics(self, metrics: Sequence[Metric]) -> None:
        """Score the selected goals against freshly computed metrics."""
        with self._lock:
            if self._explicit_cycle:
                # the explicit cycle scores these metrics itself
                return

            goals = self._context.goals
            if not goals:
                logger.warning("QualityAssessmentService: No goals set for assessment.")
                return

            tracker = self._tracker()
            tracker.notify_progress("Quality Assessment Service: Computing new assessments...")
            self._assess_and_publish(goals, metrics)

    def _assess_and_publish(self, goals: Sequence[Goal], metrics: Sequence[Metric]) -> None:
        assessments = self.assessment_engine.assess_goals(goals, metrics)
        for goal, assessment in zip(goals, assessments):
            goal.add_assessment(assessment)

        logger.info(
            "Quality Assessment Service: New assessments available, notifying %d listeners",
            self._assessment_updated.listener_count,
        )
        self._assessment_updated.publish(list(goals))

    @staticmethod
    def _collect_metrics(goals: Sequence[Goal]) -> List[Metric]:
        """Every metric referenced by the goals, once each, in goal order."""
        metrics: List[Metric] = []
        for goal in goals:
            for metric in goal.metrics:
                if not any(m is metric for m in metrics):
                    metrics.append(metric)
        return metrics
