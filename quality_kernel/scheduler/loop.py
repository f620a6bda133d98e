"""
Assessment Loop — scheduled trigger and persistence for the assessment service.

Fires an explicit assessment cycle on a cron schedule, and records every
updated goal's latest assessment in the telemetry store, whichever
trigger produced it.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from croniter import croniter

from quality_kernel.errors import ConfigurationError
from quality_kernel.goals.goal import Goal
from quality_kernel.models.config import AssessmentLoopConfig
from quality_kernel.services.quality_assessment import QualityAssessmentService
from quality_kernel.storage.base import TelemetryStore

logger = logging.getLogger(__name__)


class AssessmentLoop:
    """
    Periodic reassessment.

    States:
      STOPPED → RUNNING (run_async) → waits for next cron fire → cycle → RUNNING
    """

    def __init__(
        self,
        service: QualityAssessmentService,
        data_source: TelemetryStore,
        config: Optional[AssessmentLoopConfig] = None,
    ):
        self.service = service
        self.data_source = data_source
        self.config = config or AssessmentLoopConfig()
        if not croniter.is_valid(self.config.schedule):
            raise ValueError(f"Invalid assessment schedule: {self.config.schedule!r}")

        self._running = False
        self._cycles = 0
        self._persisted = 0
        self.service.on_assessment_updated(self._persist)

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def cycle_count(self) -> int:
        return self._cycles

    @property
    def persisted_count(self) -> int:
        return self._persisted

    def _persist(self, goals: List[Goal]) -> None:
        """
        Store the newest assessment of every updated goal.

        A StorageWriteError reaches whoever triggered the cycle.
        """
        if not self.config.persist_assessments:
            return
        latest = [g.latest_assessment for g in goals if g.latest_assessment is not None]
        records = self.data_source.store_assessments(latest)
        self._persisted += len(records)

    def next_run_after(self, current_time: Optional[datetime] = None) -> datetime:
        """Next time the schedule fires after `current_time`."""
        if current_time is None:
            current_time = datetime.utcnow()
        return croniter(self.config.schedule, current_time).get_next(datetime)

    def run_once(self) -> List[Goal]:
        """Run a single explicit assessment cycle."""
        goals = self.service.assess_quality_goals()
        self._cycles += 1
        return goals

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run scheduled cycles until `stop_event` is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                now = datetime.utcnow()
                delay = (self.next_run_after(now) - now).total_seconds()
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=max(delay, 0))
                    break
                except asyncio.TimeoutError:
                    pass
                try:
                    self.run_once()
                except ConfigurationError as e:
                    logger.warning("Assessment loop: skipping scheduled cycle: %s", e)
        finally:
            self._running = False
