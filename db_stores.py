"""
DB-backed store classes for the student planner.

Each store is scoped to one user (except the admin/feedback and user
directory stores) and reads/writes SQLite through ``database.get_db()``.
sqlite3 errors propagate to the caller.
"""

from __future__ import annotations

import json
import uuid
from datetime import timedelta
from typing import Optional

from database import get_db
from helpers import from_db_ts, to_db_ts, utcnow
from models import (
    Course,
    DEFAULT_EXAM_REMINDERS,
    ExcludedDate,
    Exam,
    FeedbackItem,
    Notification,
    Settings,
)

# A reschedule larger than this invalidates reminders already sent for the old time.
STALE_REMINDER_THRESHOLD = timedelta(hours=1)


def _now() -> str:
    return to_db_ts(utcnow())


# ── Users ────────────────────────────────────────────────────────────


class UserDirectoryDB:
    """Cross-user lookups used by the scheduler and the admin workflow."""

    @staticmethod
    def with_settings() -> list:
        """All users with their raw exam_reminders payload (None when no settings row)."""
        db = get_db()
        return db.execute(
            "SELECT u.id, u.name, s.user_id AS settings_user_id, s.exam_reminders "
            "FROM users u LEFT JOIN settings s ON s.user_id = u.id "
            "ORDER BY u.id"
        ).fetchall()

    @staticmethod
    def admin_ids() -> list[int]:
        db = get_db()
        rows = db.execute("SELECT id FROM users WHERE is_admin = 1").fetchall()
        return [r["id"] for r in rows]

    @staticmethod
    def name_of(user_id: int) -> str:
        db = get_db()
        row = db.execute("SELECT name FROM users WHERE id = ?", (user_id,)).fetchone()
        return row["name"] if row else ""


# ── Settings ─────────────────────────────────────────────────────────


class SettingsStoreDB:
    """Per-user settings row; missing row reads as defaults."""

    COLUMNS = {
        "dueSoonWindowDays": "due_soon_window_days",
        "weekStartsOn": "week_starts_on",
        "theme": "theme",
        "enableNotifications": "enable_notifications",
        "examReminders": "exam_reminders",
    }

    def __init__(self, user_id: int):
        self.user_id = user_id

    def _row(self):
        db = get_db()
        return db.execute("SELECT * FROM settings WHERE user_id = ?", (self.user_id,)).fetchone()

    def exists(self) -> bool:
        return self._row() is not None

    def get(self) -> Settings:
        row = self._row()
        if row is None:
            return Settings()
        try:
            reminders = json.loads(row["exam_reminders"])
        except ValueError:
            reminders = []
        return Settings(
            due_soon_window_days=row["due_soon_window_days"],
            week_starts_on=row["week_starts_on"],
            theme=row["theme"],
            enable_notifications=bool(row["enable_notifications"]),
            exam_reminders=reminders,
        )

    def upsert(self, **fields) -> Settings:
        """Write the given columns, creating the row with defaults first if needed."""
        db = get_db()
        db.execute(
            "INSERT OR IGNORE INTO settings (user_id, exam_reminders, updated_at) VALUES (?, ?, ?)",
            (self.user_id, json.dumps(DEFAULT_EXAM_REMINDERS), _now()),
        )
        if fields:
            assignments = ", ".join(f"{col} = ?" for col in fields)
            db.execute(
                f"UPDATE settings SET {assignments}, updated_at = ? WHERE user_id = ?",
                (*fields.values(), _now(), self.user_id),
            )
        db.commit()
        return self.get()


# ── Courses ──────────────────────────────────────────────────────────


class CourseStoreDB:
    def __init__(self, user_id: int):
        self.user_id = user_id

    def all(self) -> list[Course]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM courses WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (self.user_id,),
        ).fetchall()
        return [_row_to_course(r) for r in rows]

    def get(self, course_id) -> Optional[Course]:
        db = get_db()
        row = db.execute(
            "SELECT * FROM courses WHERE id = ? AND user_id = ?",
            (course_id, self.user_id),
        ).fetchone()
        return _row_to_course(row) if row else None

    def create(self, code: str, name: str, term: str = "", start_date: str | None = None,
               end_date: str | None = None, meeting_times: list | None = None,
               links: list | None = None, color_tag: str | None = None) -> Course:
        db = get_db()
        cur = db.execute(
            "INSERT INTO courses (user_id, code, name, term, start_date, end_date, "
            "meeting_times, links, color_tag, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (self.user_id, code, name, term, start_date, end_date,
             json.dumps(meeting_times or []), json.dumps(links or []), color_tag, _now()),
        )
        db.commit()
        return self.get(cur.lastrowid)

    def update(self, course_id, **fields) -> Optional[Course]:
        if "meeting_times" in fields:
            fields["meeting_times"] = json.dumps(fields["meeting_times"] or [])
        if "links" in fields:
            fields["links"] = json.dumps(fields["links"] or [])
        if fields:
            db = get_db()
            assignments = ", ".join(f"{col} = ?" for col in fields)
            db.execute(
                f"UPDATE courses SET {assignments} WHERE id = ? AND user_id = ?",
                (*fields.values(), course_id, self.user_id),
            )
            db.commit()
        return self.get(course_id)

    def delete(self, course_id) -> bool:
        db = get_db()
        cur = db.execute(
            "DELETE FROM courses WHERE id = ? AND user_id = ?", (course_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0


def _row_to_course(r) -> Course:
    return Course(
        id=r["id"], user_id=r["user_id"], code=r["code"], name=r["name"],
        term=r["term"], start_date=r["start_date"], end_date=r["end_date"],
        meeting_times=json.loads(r["meeting_times"]), links=json.loads(r["links"]),
        color_tag=r["color_tag"], created_at=r["created_at"],
    )


# ── Exams ────────────────────────────────────────────────────────────


class ExamStoreDB:
    def __init__(self, user_id: int):
        self.user_id = user_id

    def all(self) -> list[Exam]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM exams WHERE user_id = ? ORDER BY exam_at ASC, id ASC",
            (self.user_id,),
        ).fetchall()
        return self._hydrate(rows)

    def get(self, exam_id) -> Optional[Exam]:
        db = get_db()
        row = db.execute(
            "SELECT * FROM exams WHERE id = ? AND user_id = ?", (exam_id, self.user_id),
        ).fetchone()
        if not row:
            return None
        return self._hydrate([row])[0]

    def scheduled_between(self, start: str, end: str) -> list[Exam]:
        """Scheduled exams with ``start <= exam_at <= end``, course and sent reminder keys loaded."""
        db = get_db()
        rows = db.execute(
            "SELECT * FROM exams WHERE user_id = ? AND status = 'scheduled' "
            "AND exam_at >= ? AND exam_at <= ? ORDER BY exam_at ASC, id ASC",
            (self.user_id, start, end),
        ).fetchall()
        return self._hydrate(rows)

    def create(self, title: str, exam_at: str, course_id=None, location: str | None = None,
               notes: str = "", links: list | None = None, status: str = "scheduled") -> Exam:
        db = get_db()
        cur = db.execute(
            "INSERT INTO exams (user_id, course_id, title, exam_at, location, notes, links, "
            "status, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (self.user_id, course_id, title, exam_at, location, notes,
             json.dumps(links or []), status, _now()),
        )
        db.commit()
        return self.get(cur.lastrowid)

    def update(self, exam_id, **fields) -> tuple[Optional[Exam], int]:
        """Apply a partial update. Returns (exam, number of reminder rows purged).

        Moving ``exam_at`` by more than STALE_REMINDER_THRESHOLD deletes the
        exam's sent-reminder rows in the same transaction.
        """
        existing = self.get(exam_id)
        if existing is None:
            return None, 0
        if "links" in fields:
            fields["links"] = json.dumps(fields["links"] or [])

        db = get_db()
        purged = 0
        if fields:
            assignments = ", ".join(f"{col} = ?" for col in fields)
            db.execute(
                f"UPDATE exams SET {assignments} WHERE id = ? AND user_id = ?",
                (*fields.values(), exam_id, self.user_id),
            )
        new_at = fields.get("exam_at")
        if new_at and abs(from_db_ts(new_at) - from_db_ts(existing.exam_at)) > STALE_REMINDER_THRESHOLD:
            purged = ExamReminderStoreDB.purge(exam_id, commit=False)
        db.commit()
        return self.get(exam_id), purged

    def delete(self, exam_id) -> bool:
        db = get_db()
        cur = db.execute(
            "DELETE FROM exams WHERE id = ? AND user_id = ?", (exam_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0

    def _hydrate(self, rows) -> list[Exam]:
        """Attach course and sent reminder keys with one query each."""
        if not rows:
            return []
        db = get_db()
        exam_ids = [r["id"] for r in rows]
        course_ids = sorted({r["course_id"] for r in rows if r["course_id"] is not None})

        courses: dict[int, Course] = {}
        if course_ids:
            placeholders = ",".join("?" * len(course_ids))
            for c in db.execute(
                f"SELECT * FROM courses WHERE id IN ({placeholders})", course_ids,
            ).fetchall():
                courses[c["id"]] = _row_to_course(c)

        keys: dict[int, set[str]] = {eid: set() for eid in exam_ids}
        placeholders = ",".join("?" * len(exam_ids))
        for r in db.execute(
            f"SELECT exam_id, reminder_type FROM exam_reminders WHERE exam_id IN ({placeholders})",
            exam_ids,
        ).fetchall():
            keys[r["exam_id"]].add(r["reminder_type"])

        return [
            Exam(
                id=r["id"], user_id=r["user_id"], title=r["title"], exam_at=r["exam_at"],
                course_id=r["course_id"], location=r["location"], notes=r["notes"],
                links=json.loads(r["links"]), status=r["status"], created_at=r["created_at"],
                course=courses.get(r["course_id"]), reminder_keys=keys[r["id"]],
            )
            for r in rows
        ]


class ExamReminderStoreDB:
    """Sent-reminder ledger. UNIQUE(exam_id, reminder_type) is the dedup guarantee."""

    @staticmethod
    def record(exam_id: int, reminder_key: str, notification_id: str, commit: bool = True) -> None:
        """Insert the ledger row; raises sqlite3.IntegrityError if the key was already sent."""
        db = get_db()
        db.execute(
            "INSERT INTO exam_reminders (exam_id, reminder_type, notification_id, sent_at) "
            "VALUES (?, ?, ?, ?)",
            (exam_id, reminder_key, notification_id, _now()),
        )
        if commit:
            db.commit()

    @staticmethod
    def purge(exam_id: int, commit: bool = True) -> int:
        db = get_db()
        cur = db.execute("DELETE FROM exam_reminders WHERE exam_id = ?", (exam_id,))
        if commit:
            db.commit()
        return cur.rowcount


# ── Notifications ────────────────────────────────────────────────────


class NotificationStoreDB:
    """DB-backed notification inbox."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def add(self, type: str, title: str, message: str, exam_id: int | None = None,
            feature_request_id: int | None = None, issue_report_id: int | None = None,
            college_request_id: int | None = None, commit: bool = True) -> Notification:
        notif = Notification(
            id=uuid.uuid4().hex, user_id=self.user_id, type=type, title=title,
            message=message, created_at=_now(), exam_id=exam_id,
            feature_request_id=feature_request_id, issue_report_id=issue_report_id,
            college_request_id=college_request_id,
        )
        db = get_db()
        db.execute(
            "INSERT INTO notifications (id, user_id, type, title, message, read, dismissed, "
            "exam_id, feature_request_id, issue_report_id, college_request_id, created_at) "
            "VALUES (?, ?, ?, ?, ?, 0, 0, ?, ?, ?, ?, ?)",
            (notif.id, self.user_id, type, title, message, exam_id,
             feature_request_id, issue_report_id, college_request_id, notif.created_at),
        )
        if commit:
            db.commit()
        return notif

    def unread_count(self) -> int:
        db = get_db()
        row = db.execute(
            "SELECT COUNT(*) as cnt FROM notifications WHERE user_id=? AND read=0 AND dismissed=0",
            (self.user_id,),
        ).fetchone()
        return row["cnt"] if row else 0

    def count(self) -> int:
        db = get_db()
        row = db.execute(
            "SELECT COUNT(*) as cnt FROM notifications WHERE user_id=? AND dismissed=0",
            (self.user_id,),
        ).fetchone()
        return row["cnt"] if row else 0

    def recent(self, n: int = 20, offset: int = 0) -> list[Notification]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM notifications WHERE user_id=? AND dismissed=0 "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (self.user_id, n, offset),
        ).fetchall()
        return [self._row_to_notif(r) for r in rows]

    def mark_read(self, notif_id: str) -> None:
        db = get_db()
        db.execute("UPDATE notifications SET read=1 WHERE id=? AND user_id=?", (notif_id, self.user_id))
        db.commit()

    def mark_all_read(self) -> None:
        db = get_db()
        db.execute("UPDATE notifications SET read=1 WHERE user_id=?", (self.user_id,))
        db.commit()

    def dismiss(self, notif_id: str) -> None:
        db = get_db()
        db.execute("UPDATE notifications SET dismissed=1 WHERE id=? AND user_id=?", (notif_id, self.user_id))
        db.commit()

    @staticmethod
    def delete_for_college_request(request_id: int) -> int:
        """Drop every notification linked to a college request, across all inboxes."""
        db = get_db()
        cur = db.execute("DELETE FROM notifications WHERE college_request_id = ?", (request_id,))
        db.commit()
        return cur.rowcount

    def _row_to_notif(self, r) -> Notification:
        return Notification(
            id=r["id"], user_id=r["user_id"], type=r["type"], title=r["title"],
            message=r["message"], created_at=r["created_at"], read=bool(r["read"]),
            dismissed=bool(r["dismissed"]), exam_id=r["exam_id"],
            feature_request_id=r["feature_request_id"], issue_report_id=r["issue_report_id"],
            college_request_id=r["college_request_id"],
        )


# ── Excluded dates ───────────────────────────────────────────────────


class ExcludedDateStoreDB:
    def __init__(self, user_id: int):
        self.user_id = user_id

    def all(self) -> list[ExcludedDate]:
        db = get_db()
        rows = db.execute(
            "SELECT * FROM excluded_dates WHERE user_id = ? ORDER BY date ASC, id ASC",
            (self.user_id,),
        ).fetchall()
        return [self._row_to_date(r) for r in rows]

    def add_many(self, dates: list[str], description: str, course_id=None) -> int:
        db = get_db()
        now = _now()
        db.executemany(
            "INSERT INTO excluded_dates (user_id, course_id, date, description, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            [(self.user_id, course_id, d, description, now) for d in dates],
        )
        db.commit()
        return len(dates)

    def delete(self, date_id) -> bool:
        db = get_db()
        cur = db.execute(
            "DELETE FROM excluded_dates WHERE id = ? AND user_id = ?", (date_id, self.user_id),
        )
        db.commit()
        return cur.rowcount > 0

    def _row_to_date(self, r) -> ExcludedDate:
        return ExcludedDate(
            id=r["id"], user_id=r["user_id"], course_id=r["course_id"], date=r["date"],
            description=r["description"], created_at=r["created_at"],
        )


# ── Feature requests / issue reports ─────────────────────────────────


class FeedbackStoreDB:
    """Shared store for the admin review queues."""

    # table -> (text column, serialized name of that column)
    TABLES = {
        "feature_requests": ("description", "description"),
        "issue_reports": ("description", "description"),
        "college_requests": ("college_name", "collegeName"),
    }

    def __init__(self, table: str):
        if table not in self.TABLES:
            raise ValueError(f"Unknown feedback table: {table}")
        self.table = table
        self.column, self.text_key = self.TABLES[table]

    def create(self, user_id: int, text: str) -> FeedbackItem:
        db = get_db()
        cur = db.execute(
            f"INSERT INTO {self.table} (user_id, {self.column}, status, created_at) "
            "VALUES (?, ?, 'pending', ?)",
            (user_id, text, _now()),
        )
        db.commit()
        return self.get(cur.lastrowid)

    def get(self, item_id) -> Optional[FeedbackItem]:
        db = get_db()
        row = db.execute(
            f"SELECT f.*, u.name AS user_name, u.email AS user_email FROM {self.table} f "
            "JOIN users u ON u.id = f.user_id WHERE f.id = ?",
            (item_id,),
        ).fetchone()
        return self._row_to_item(row) if row else None

    def pending(self) -> list[FeedbackItem]:
        db = get_db()
        rows = db.execute(
            f"SELECT f.*, u.name AS user_name, u.email AS user_email FROM {self.table} f "
            "JOIN users u ON u.id = f.user_id WHERE f.status = 'pending' "
            "ORDER BY f.created_at DESC, f.id DESC",
        ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def set_status(self, item_id, status: str) -> Optional[FeedbackItem]:
        db = get_db()
        db.execute(f"UPDATE {self.table} SET status = ? WHERE id = ?", (status, item_id))
        db.commit()
        return self.get(item_id)

    def delete(self, item_id) -> bool:
        db = get_db()
        cur = db.execute(f"DELETE FROM {self.table} WHERE id = ?", (item_id,))
        db.commit()
        return cur.rowcount > 0

    def _row_to_item(self, r) -> FeedbackItem:
        return FeedbackItem(
            id=r["id"], user_id=r["user_id"], description=r[self.column],
            status=r["status"], created_at=r["created_at"],
            user_name=r["user_name"] or "", user_email=r["user_email"] or "",
            text_key=self.text_key,
        )
