"""SLA Scheduler - Periodic SLA and time-automation checks

Polls active instances and lets the engine fire any due SLA warnings,
breaches and timeElapsed automations. Each signal is recorded on the
instance, so overlapping runs or several servers never fire it twice.
"""
from datetime import datetime
from typing import Dict, List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..domain.errors import DomainError
from ..engine.engine import WorkflowEngine
from ..utils.idgen import generate_correlation_id
from ..utils.logger import get_logger, set_correlation_id
from ..utils.time import utc_now

logger = get_logger(__name__)


class SlaScheduler:
    """
    APScheduler job that evaluates time signals of active instances

    Responsibilities:
    - Read active instances in batches
    - Fire SLA warnings / breaches via the engine
    - Run due timeElapsed automations with the system actor
    """

    def __init__(self, engine: WorkflowEngine, interval_seconds: Optional[int] = None, batch_size: int = 500):
        self.engine = engine
        self.interval_seconds = interval_seconds or settings.sla_check_interval_seconds
        self.batch_size = batch_size
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("SLA scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._check_time_signals_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="check_time_signals",
            name="Check SLA and time automations",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"SLA scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _check_time_signals_job(self) -> None:
        try:
            self.run_once()
        except Exception as e:
            logger.error(f"Error in SLA check job: {e}", exc_info=True)

    def run_once(self, now: Optional[datetime] = None) -> Dict[str, List[str]]:
        """
        Evaluate every active instance once

        Returns:
            Signals fired per instance id (instances with nothing due omitted)
        """
        set_correlation_id(generate_correlation_id())
        now = now or utc_now()
        fired: Dict[str, List[str]] = {}

        for instance in self.engine.instance_repo.list_active(limit=self.batch_size):
            try:
                signals = self.engine.check_time_signals(instance.instance_id, now)
            except DomainError as e:
                logger.warning(
                    f"Time signal check failed for {instance.instance_id}: {e.message}",
                    extra={"instance_id": instance.instance_id, "error_code": e.error_code}
                )
                continue
            if signals:
                fired[instance.instance_id] = signals

        if fired:
            logger.info(f"SLA check fired signals on {len(fired)} instance(s)")
        return fired


# Global scheduler instance
_scheduler: Optional[SlaScheduler] = None


def start_scheduler(engine: WorkflowEngine) -> SlaScheduler:
    """Start the global scheduler"""
    global _scheduler
    if _scheduler is None:
        _scheduler = SlaScheduler(engine)
    _scheduler.start()
    return _scheduler


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
