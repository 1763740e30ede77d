"""
Recurring trigger for the batch loader.

Runs on APScheduler's background thread pool, so scheduled syncs are
independent of the dashboard's request handling. Whatever a run raises is
caught in ``fire`` and logged; it never reaches the scheduler thread.
"""

from datetime import datetime
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from record_sync.config import DEFAULT_SCHEDULE
from record_sync.observability.log_sink import LogSink
from record_sync.observability.logger import get_logger

from .loader import BatchLoader

logger = get_logger(__name__)

JOB_ID = "batch-sync"


class BatchScheduler:
    """
    Fires ``loader.load_and_reconcile(source)`` on a cron schedule.

    Overlapping firings are allowed up to ``max_overlap`` at once; the run
    lease inside the loader decides whether an overlapping run proceeds.

    Args:
        loader: Batch loader to invoke
        source: Batch file passed to every run
        sink: Log Sink for trigger events
        cron: Five-field cron expression (default: 00:00 and 12:00)
        timezone: Timezone the expression is evaluated in
        scheduler: APScheduler instance to register on (a new background one by default)
        max_overlap: Concurrent instances of the job APScheduler will start
    """

    def __init__(
        self,
        loader: BatchLoader,
        source: str | Path,
        sink: LogSink,
        cron: str = DEFAULT_SCHEDULE,
        timezone: str = "UTC",
        scheduler: BackgroundScheduler | None = None,
        max_overlap: int = 2,
    ):
        self.loader = loader
        self.source = source
        self.sink = sink
        self.cron = cron
        self.trigger = CronTrigger.from_crontab(cron, timezone=timezone)

        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self.job = self._scheduler.add_job(
            self.fire,
            trigger=self.trigger,
            id=JOB_ID,
            name=f"sync {source}",
            max_instances=max_overlap,
            coalesce=True,
            replace_existing=True,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def next_run_time(self, now: datetime | None = None) -> datetime | None:
        """Next time the cron trigger fires after ``now`` (defaults to the current time)."""
        now = now or datetime.now(self.trigger.timezone)
        return self.trigger.get_next_fire_time(None, now)

    def fire(self) -> None:
        """Body of every scheduled run."""
        self.sink.info("Running scheduled task")
        try:
            self.loader.load_and_reconcile(self.source)
        except Exception as exc:
            self.sink.error(f"Error in scheduled task: {exc}")
            logger.error(f"Scheduled sync of {self.source} failed", exc_info=True)

    def run_now(self) -> None:
        """Queue one immediate run on the scheduler's worker pool."""
        self._scheduler.add_job(self.fire, id=f"{JOB_ID}-now", replace_existing=True)

    def start(self) -> None:
        self._scheduler.start()
        logger.info(f"Scheduler started: '{self.cron}' for {self.source}, next run {self.next_run_time()}")

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
