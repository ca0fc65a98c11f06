"""APScheduler setup: periodic full sync plus a daily expiry sweep."""

import logging
import traceback

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("job_ingestion.scheduler")

SYNC_JOB_ID = "job_ingestion_sync"
EXPIRE_JOB_ID = "job_ingestion_expire"

_scheduler: BackgroundScheduler | None = None


def _job_listener(event):
    """Log scheduler job events for debugging."""
    if event.exception:
        logger.error("Scheduled job %s FAILED: %s", event.job_id, event.exception)
        logger.error("Traceback: %s", event.traceback)
    elif hasattr(event, "job_id"):
        if event.code == EVENT_JOB_MISSED:
            logger.warning("Scheduled job %s MISSED its fire time", event.job_id)
        else:
            logger.info("Scheduled job %s executed successfully", event.job_id)


def init_scheduler(paused: bool = False) -> BackgroundScheduler:
    global _scheduler
    if _scheduler is not None:
        return _scheduler
    _scheduler = BackgroundScheduler(timezone="UTC")
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    _scheduler.start(paused=paused)
    logger.info("APScheduler started")
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("APScheduler stopped")


def _run_sync_wrapper(orchestrator) -> None:
    logger.info("=== SCHEDULER FIRING ingestion sync ===")
    try:
        result = orchestrator.run_all()
        logger.info(
            "=== SCHEDULER COMPLETED ingestion sync [run:%s]: %d fetched, %d upserted ===",
            result.run_id, result.total_fetched, result.total_upserted,
        )
    except Exception:
        logger.error("=== SCHEDULER FAILED ingestion sync ===\n%s", traceback.format_exc())
        raise


def _run_expire_wrapper(orchestrator) -> None:
    logger.info("=== SCHEDULER FIRING expiry sweep ===")
    try:
        count = orchestrator.expire_stale_jobs()
        logger.info("=== SCHEDULER COMPLETED expiry sweep: %d expired ===", count)
    except Exception:
        logger.error("=== SCHEDULER FAILED expiry sweep ===\n%s", traceback.format_exc())
        raise


def schedule_ingestion(orchestrator, interval_hours: int = 6, expire_hour: int = 3) -> None:
    """Add or replace the sync and expiry jobs for ``orchestrator``."""
    global _scheduler
    if _scheduler is None:
        init_scheduler()

    if interval_hours <= 0:
        raise ValueError("interval_hours must be positive")

    _scheduler.add_job(
        _run_sync_wrapper,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[orchestrator],
        id=SYNC_JOB_ID,
        name="Job ingestion sync",
        misfire_grace_time=3600,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    _scheduler.add_job(
        _run_expire_wrapper,
        trigger=CronTrigger(hour=expire_hour, minute=0, timezone="UTC"),
        args=[orchestrator],
        id=EXPIRE_JOB_ID,
        name="Job expiry sweep",
        misfire_grace_time=3600,
        coalesce=True,
        replace_existing=True,
    )
    logger.info("Scheduled sync every %dh and expiry daily at %02d:00 UTC", interval_hours, expire_hour)


def get_scheduler_info() -> dict:
    """Return diagnostic info about the scheduler state."""
    global _scheduler
    if _scheduler is None:
        return {"running": False, "jobs": []}
    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })
    return {
        "running": _scheduler.running,
        "jobs": jobs,
    }
