"""Scheduler service for periodic batch execution."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from autoapply.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "auto-apply-batch"


class SchedulerService:
    """
    Wraps APScheduler to trigger the batch on an interval or a cron schedule.

    Uses BackgroundScheduler so the main thread stays free to handle signals
    and coordinate shutdown.
    """

    def __init__(
        self,
        batch_callable: Callable[[], object],
        interval_seconds: Optional[int] = None,
        cron: Optional[str] = None,
        shutdown_event: Optional[threading.Event] = None,
        run_on_start: bool = True,
    ):
        """
        Initialize the scheduler service.

        Args:
            batch_callable: Called on each scheduled run (e.g. pipeline.run_once)
            interval_seconds: Interval between runs; ignored when cron is set
            cron: Crontab expression (UTC), e.g. "0 6 * * *"
            shutdown_event: Set on shutdown for coordination with the main thread
            run_on_start: Run once immediately when started (interval mode only)

        Raises:
            ValueError: If neither interval_seconds nor cron is given
        """
        if not interval_seconds and not cron:
            raise ValueError("Either interval_seconds or cron must be provided")

        self.batch_callable = batch_callable
        self.interval_seconds = interval_seconds
        self.cron = cron
        self.shutdown_event = shutdown_event
        self.run_on_start = run_on_start

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds or 3600,
            },
            timezone=timezone.utc,
        )

    def _build_trigger(self):
        if self.cron:
            return CronTrigger.from_crontab(self.cron, timezone=timezone.utc)
        return IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc)

    def start(self) -> None:
        """Register the batch job and start the scheduler thread."""
        job_kwargs = {}
        if self.run_on_start and not self.cron:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self.batch_callable,
            trigger=self._build_trigger(),
            id=JOB_ID,
            name="Auto-apply batch",
            replace_existing=True,
            **job_kwargs,
        )
        self.scheduler.start()

        next_run = self.get_next_run_time()
        logger.info(
            "Scheduler started",
            extra={
                "event": "scheduler.started",
                "interval_seconds": None if self.cron else self.interval_seconds,
                "cron": self.cron,
                "next_run_time": next_run.isoformat() if next_run else None,
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: If True, wait for a running batch to finish before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self):
        """Run the batch synchronously in the calling thread and return its result."""
        logger.info("Triggering immediate batch run", extra={"event": "scheduler.trigger_now"})
        return self.batch_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
