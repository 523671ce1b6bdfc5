"""
Row dataclasses and settings validation for the student planner.

Stores in db_stores.py return these; blueprints serialize them with
``to_dict()``, which produces the camelCase shape the web client expects.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

EXAM_STATUSES = ("scheduled", "completed", "cancelled")
REMINDER_UNITS = ("hours", "days")
WEEK_STARTS = ("Sun", "Mon")
THEMES = ("light", "dark", "system")

# Ten years ahead is the furthest a reminder may fire.
MAX_REMINDER_HOURS = 3650 * 24

DEFAULT_EXAM_REMINDERS = [
    {"enabled": True, "value": 7, "unit": "days"},
    {"enabled": True, "value": 1, "unit": "days"},
    {"enabled": True, "value": 3, "unit": "hours"},
]


class InvalidReminderSettings(ValueError):
    """Raised when a stored or submitted examReminders payload has the wrong shape."""


# ── Exam reminder settings ───────────────────────────────────────────


@dataclass(frozen=True)
class ReminderSpec:
    enabled: bool
    value: int | float
    unit: str

    @property
    def hours(self) -> float:
        return self.value * 24 if self.unit == "days" else self.value

    @property
    def key(self) -> str:
        """Deduplication key, built from the literal value and unit.

        ``24 hours`` and ``1 days`` produce different keys and are sent
        independently.
        """
        value = self.value
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return f"{value}_{self.unit}"

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "value": self.value, "unit": self.unit}


def _parse_reminder_entry(index: int, entry: Any) -> ReminderSpec:
    if not isinstance(entry, dict):
        raise InvalidReminderSettings(f"Reminder #{index + 1} must be an object.")
    missing = [k for k in ("enabled", "value", "unit") if k not in entry]
    if missing:
        raise InvalidReminderSettings(
            f"Reminder #{index + 1} is missing: {', '.join(missing)}."
        )

    enabled, value, unit = entry["enabled"], entry["value"], entry["unit"]
    if not isinstance(enabled, bool):
        raise InvalidReminderSettings(f"Reminder #{index + 1}: 'enabled' must be true or false.")
    # bool is an int subclass; true/false is not a duration
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        raise InvalidReminderSettings(f"Reminder #{index + 1}: 'value' must be a number.")
    if value <= 0:
        raise InvalidReminderSettings(f"Reminder #{index + 1}: 'value' must be positive.")
    if unit not in REMINDER_UNITS:
        raise InvalidReminderSettings(
            f"Reminder #{index + 1}: 'unit' must be one of {', '.join(REMINDER_UNITS)}."
        )
    hours = value * 24 if unit == "days" else value
    if hours > MAX_REMINDER_HOURS:
        raise InvalidReminderSettings(f"Reminder #{index + 1}: 'value' must be at most 3650 days.")
    return ReminderSpec(enabled=enabled, value=value, unit=unit)


def parse_reminder_specs(raw: Any) -> list[ReminderSpec]:
    """Validate an examReminders payload (JSON text or decoded list).

    ``None`` and the empty string mean "no reminders configured". Anything
    that is not a list of ``{enabled, value, unit}`` objects raises
    InvalidReminderSettings; there is no partial result.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidReminderSettings(f"examReminders is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise InvalidReminderSettings("examReminders must be a list.")
    return [_parse_reminder_entry(i, entry) for i, entry in enumerate(raw)]


def dump_reminder_specs(specs: list[ReminderSpec]) -> str:
    return json.dumps([s.to_dict() for s in specs])


# ── Rows ─────────────────────────────────────────────────────────────


@dataclass
class Settings:
    due_soon_window_days: int = 7
    week_starts_on: str = "Sun"
    theme: str = "system"
    enable_notifications: bool = False
    exam_reminders: list[dict] = field(
        default_factory=lambda: [dict(r) for r in DEFAULT_EXAM_REMINDERS]
    )

    def to_dict(self) -> dict:
        return {
            "dueSoonWindowDays": self.due_soon_window_days,
            "weekStartsOn": self.week_starts_on,
            "theme": self.theme,
            "enableNotifications": self.enable_notifications,
            "examReminders": self.exam_reminders,
        }


@dataclass
class Course:
    id: int
    user_id: int
    code: str
    name: str
    term: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    meeting_times: list = field(default_factory=list)
    links: list = field(default_factory=list)
    color_tag: Optional[str] = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "term": self.term,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "meetingTimes": self.meeting_times,
            "links": self.links,
            "colorTag": self.color_tag,
            "createdAt": self.created_at,
        }


@dataclass
class Exam:
    id: int
    user_id: int
    title: str
    exam_at: str
    course_id: Optional[int] = None
    location: Optional[str] = None
    notes: str = ""
    links: list = field(default_factory=list)
    status: str = "scheduled"
    created_at: str = ""
    course: Optional[Course] = None
    reminder_keys: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "courseId": self.course_id,
            "course": self.course.to_dict() if self.course else None,
            "examAt": self.exam_at,
            "location": self.location,
            "notes": self.notes,
            "links": self.links,
            "status": self.status,
            "createdAt": self.created_at,
        }


@dataclass
class Notification:
    id: str
    user_id: int
    type: str
    title: str
    message: str
    created_at: str
    read: bool = False
    dismissed: bool = False
    exam_id: Optional[int] = None
    feature_request_id: Optional[int] = None
    issue_report_id: Optional[int] = None
    college_request_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "examId": self.exam_id,
            "featureRequestId": self.feature_request_id,
            "issueReportId": self.issue_report_id,
            "collegeRequestId": self.college_request_id,
            "createdAt": self.created_at,
        }


@dataclass
class ExcludedDate:
    id: int
    user_id: int
    date: str
    description: str
    course_id: Optional[int] = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "date": self.date,
            "description": self.description,
            "createdAt": self.created_at,
        }


@dataclass
class FeedbackItem:
    """An item in one of the admin review queues.

    ``description`` holds the submitted text; ``text_key`` names it in the
    serialized form (``collegeName`` for college requests).
    """

    id: int
    user_id: int
    description: str
    status: str
    created_at: str
    user_name: str = ""
    user_email: str = ""
    text_key: str = "description"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            self.text_key: self.description,
            "status": self.status,
            "createdAt": self.created_at,
            "user": {"name": self.user_name, "email": self.user_email},
        }
