"""
Exam reminder scheduler.

One pass over every user: read their reminder offsets from settings, find
scheduled exams whose start falls within ±30 minutes of ``now + offset``,
and send at most one notification per (exam, reminder key). The
exam_reminders table's UNIQUE(exam_id, reminder_type) constraint is the
dedup guarantee, so overlapping runs cannot double-send.

Failures stay inside the smallest unit that can continue: a bad settings
payload skips the user, a failed write skips the exam. Anything else
propagates to the caller.
"""

from __future__ import annotations

import enum
import logging
import sqlite3
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta

from database import get_db
from db_stores import ExamReminderStoreDB, ExamStoreDB, NotificationStoreDB, UserDirectoryDB
from helpers import to_db_ts, utcnow
from models import Exam, InvalidReminderSettings, ReminderSpec, parse_reminder_specs

logger = logging.getLogger(__name__)

# Half-width of the match window; the trigger fires less often than the reminder resolution.
WINDOW_TOLERANCE = timedelta(minutes=30)

NOTIFICATION_TYPE = "exam_reminder"


class Outcome(enum.Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class RunSummary:
    sent: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome is Outcome.SENT:
            self.sent += 1
        elif outcome is Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> dict:
        return asdict(self)


def time_until_text(value, unit: str) -> str:
    """Human phrase for how far away the exam is."""
    if unit == "days":
        if value == 1:
            return "tomorrow"
        return f"in {_fmt(value)} days"
    if value <= 1:
        return "in less than an hour"
    if value <= 3:
        return "in a few hours"
    return f"in {_fmt(value)} hours"


def _fmt(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def reminder_window(now: datetime, spec: ReminderSpec) -> tuple[datetime, datetime]:
    target = now + timedelta(hours=spec.hours)
    return target - WINDOW_TOLERANCE, target + WINDOW_TOLERANCE


def reminder_message(exam: Exam, spec: ReminderSpec) -> str:
    course_code = exam.course.code if exam.course and exam.course.code else "exam"
    message = f"Your {course_code} exam is {time_until_text(spec.value, spec.unit)}"
    if exam.location:
        message += f" at {exam.location}"
    return message


class ReminderScheduler:
    """Runs one reminder pass at a fixed ``now``."""

    def __init__(self, now: datetime | None = None):
        self.now = now or utcnow()
        self.summary = RunSummary()

    def run(self) -> RunSummary:
        for user in UserDirectoryDB.with_settings():
            if user["settings_user_id"] is None:
                continue
            try:
                specs = parse_reminder_specs(user["exam_reminders"])
            except InvalidReminderSettings as e:
                logger.warning("Skipping exam reminders for user %s: %s", user["id"], e)
                continue
            try:
                self._process_user(user["id"], specs)
            except OverflowError:
                # A reminder offset that lands outside the datetime range.
                logger.warning("Skipping exam reminders for user %s: offset out of range", user["id"])

        logger.info(
            "Exam reminders: sent=%d skipped=%d errors=%d",
            self.summary.sent, self.summary.skipped, self.summary.errors,
        )
        return self.summary

    def _process_user(self, user_id: int, specs: list[ReminderSpec]) -> None:
        exams = ExamStoreDB(user_id)
        for spec in specs:
            if not spec.enabled:
                continue
            start, end = reminder_window(self.now, spec)
            for exam in exams.scheduled_between(to_db_ts(start), to_db_ts(end)):
                self.summary.record(self._send(exam, spec))

    def _send(self, exam: Exam, spec: ReminderSpec) -> Outcome:
        key = spec.key
        if key in exam.reminder_keys:
            return Outcome.SKIPPED

        db = get_db()
        try:
            notif = NotificationStoreDB(exam.user_id).add(
                type=NOTIFICATION_TYPE,
                title=f"Exam Reminder: {exam.title}",
                message=reminder_message(exam, spec),
                exam_id=exam.id,
                commit=False,
            )
            ExamReminderStoreDB.record(exam.id, key, notif.id, commit=False)
            db.commit()
        except sqlite3.IntegrityError:
            # Another run recorded this key between our read and our insert.
            db.rollback()
            logger.info("Reminder %s for exam %s already sent by a concurrent run", key, exam.id)
            return Outcome.SKIPPED
        except sqlite3.Error:
            db.rollback()
            logger.error("Failed to send reminder %s for exam %s", key, exam.id, exc_info=True)
            return Outcome.ERROR

        exam.reminder_keys.add(key)
        return Outcome.SENT


def run_exam_reminders(app, now: datetime | None = None) -> RunSummary:
    """Entry point for the cron route and the background scheduler."""
    with app.app_context():
        return ReminderScheduler(now=now).run()
