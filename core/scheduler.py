# core/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from typing import Optional

from core.config import settings
from core.logging_config import logger
from jobs.payment_reconcile_job import run_payment_reconcile

_scheduler: Optional[BackgroundScheduler] = None


def start_scheduler() -> Optional[BackgroundScheduler]:
    """
    Initialize the APScheduler background process.
    Only runs the stale payment intent sweep, and only when enabled.
    """
    global _scheduler

    if not settings.PAYMENT_RECONCILE_ENABLED:
        logger.info("Payment reconcile sweep disabled (PAYMENT_RECONCILE_ENABLED=false)")
        return None

    if _scheduler is not None:
        return _scheduler

    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_payment_reconcile,
        trigger=IntervalTrigger(minutes=settings.PAYMENT_RECONCILE_INTERVAL_MINUTES),
        id="payment_reconcile_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    _scheduler = scheduler
    logger.info(
        f"Scheduler started. Payment reconcile every {settings.PAYMENT_RECONCILE_INTERVAL_MINUTES} min"
    )
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
