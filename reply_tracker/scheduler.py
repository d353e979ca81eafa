"""
APScheduler job runner for the periodic pipeline stages.

Each stage is its own job with max_instances=1, so overlapping runs of the
same stage never happen within one process.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reply_tracker.config import settings
from reply_tracker.core.logging import get_logger

log = get_logger(__name__)

# Global scheduler instance
_scheduler: BackgroundScheduler | None = None


def run_stage_job(stage: str) -> dict | None:
    """Scheduled job body: run one batch of a stage.

    A failed batch is logged; the next tick runs the whole batch again.
    """
    from reply_tracker.processors import build_processor

    log.info("scheduled_job_starting", job=stage)
    try:
        processor = build_processor(stage)
        stats = processor.process()
        log.info("scheduled_job_complete", job=stage, **stats)
        return stats
    except Exception as e:
        log.error("scheduled_job_error", job=stage, error=str(e), exc_info=True)
        return None


def start_scheduler() -> BackgroundScheduler:
    """
    Start the background scheduler with one job per stage.

    Returns:
        The scheduler instance
    """
    global _scheduler

    if _scheduler is not None:
        log.warning("scheduler_already_running")
        return _scheduler

    _scheduler = BackgroundScheduler()

    jobs = [
        ("thread", "Match threaded replies", settings.thread_interval_minutes),
        ("heuristic", "Match unthreaded replies", settings.heuristic_interval_minutes),
        ("classify", "Classify replies", settings.classify_interval_minutes),
    ]
    for stage, name, minutes in jobs:
        _scheduler.add_job(
            run_stage_job,
            trigger=IntervalTrigger(minutes=minutes),
            args=[stage],
            id=stage,
            name=name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    _scheduler.start()
    log.info(
        "scheduler_started",
        thread_minutes=settings.thread_interval_minutes,
        heuristic_minutes=settings.heuristic_interval_minutes,
        classify_minutes=settings.classify_interval_minutes,
    )

    return _scheduler


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        log.info("scheduler_stopped")


def get_scheduler() -> BackgroundScheduler | None:
    """Get the current scheduler instance."""
    return _scheduler
