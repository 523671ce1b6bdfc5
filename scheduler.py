"""
In-process scheduler — runs the exam reminder pass on an interval.

Used when the app runs as a long-lived server. Serverless deployments call
/api/cron/exam-reminders from the platform's cron instead.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


def _reminder_job(app):
    from reminders import run_exam_reminders
    try:
        run_exam_reminders(app)
    except Exception:
        # Keep the scheduler thread alive; the next tick retries.
        logger.error("Scheduled exam reminder run failed", exc_info=True)


def init_scheduler(app) -> BackgroundScheduler:
    """Start a background scheduler with the exam reminder job and return it."""
    from database import init_db, run_migrations

    # The first tick can fire before any request has created the schema.
    with app.app_context():
        init_db()
        run_migrations()

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        func=_reminder_job,
        args=[app],
        trigger="interval",
        minutes=app.config.get("REMINDER_INTERVAL_MINUTES", 60),
        id="exam_reminders",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started (exam reminders every %s min)",
        app.config.get("REMINDER_INTERVAL_MINUTES", 60),
    )
    return scheduler
