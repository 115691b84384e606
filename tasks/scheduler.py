"""
Background scheduler for the booking lifecycle.

Two independent interval jobs:
- expire_reservations: expire unpaid reservations and reopen seats
- reconcile_offerings: recompute is_active / tighten is_available

The scheduler is owned by the Flask app (``app.extensions``) rather than a
module global, and is started/stopped explicitly.
"""
import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tasks.jobs import expire_reservations, reconcile_offerings

logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "expire_reservations"
RECONCILE_JOB_ID = "reconcile_offerings"


def _on_job_error(event):
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, event.exception,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


class LifecycleScheduler:
    def __init__(self, app, clock, sweep_interval=60, reconcile_interval=5):
        self.app = app
        self.clock = clock
        self.sweep_interval = sweep_interval
        self.reconcile_interval = reconcile_interval
        self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            logger.warning("Lifecycle scheduler already running")
            return self._scheduler

        scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # collapse missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 30,
            },
        )
        scheduler.add_job(
            func=expire_reservations,
            args=(self.app, self.clock),
            trigger=IntervalTrigger(seconds=self.sweep_interval),
            id=EXPIRY_JOB_ID,
            name="Expire Unpaid Reservations",
            replace_existing=True,
        )
        scheduler.add_job(
            func=reconcile_offerings,
            args=(self.app, self.clock),
            trigger=IntervalTrigger(seconds=self.reconcile_interval),
            id=RECONCILE_JOB_ID,
            name="Reconcile Offering Status",
            replace_existing=True,
        )
        scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
        scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)
        scheduler.start()

        self._scheduler = scheduler
        logger.info(
            "Lifecycle scheduler started (sweep every %ss, reconcile every %ss)",
            self.sweep_interval, self.reconcile_interval,
        )
        return scheduler

    def shutdown(self, wait=True):
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Lifecycle scheduler stopped")

    def jobs(self):
        if self._scheduler is None:
            return []
        return [
            {"id": job.id, "name": job.name, "next_run_time": job.next_run_time}
            for job in self._scheduler.get_jobs()
        ]
