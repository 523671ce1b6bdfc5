"""Tests for reminders.py — reminder windows, phrasing, dedup and error isolation."""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from conftest import (
    NOW,
    add_course,
    add_exam,
    add_user,
    notifications_for,
    reminder_keys,
    set_reminders,
)

ONE_DAY = [{"enabled": True, "value": 1, "unit": "days"}]
THREE_HOURS = [{"enabled": True, "value": 3, "unit": "hours"}]


def run(app):
    from reminders import run_exam_reminders
    return run_exam_reminders(app, now=NOW)


class TestTimeUntilText:
    @pytest.mark.parametrize("value,unit,expected", [
        (1, "days", "tomorrow"),
        (2, "days", "in 2 days"),
        (7, "days", "in 7 days"),
        (1, "hours", "in less than an hour"),
        (0.5, "hours", "in less than an hour"),
        (2, "hours", "in a few hours"),
        (3, "hours", "in a few hours"),
        (4, "hours", "in 4 hours"),
        (24, "hours", "in 24 hours"),
    ])
    def test_phrase_table(self, value, unit, expected):
        from reminders import time_until_text
        assert time_until_text(value, unit) == expected


class TestReminderSpec:
    def test_days_normalize_to_hours(self):
        from models import ReminderSpec
        assert ReminderSpec(True, 2, "days").hours == 48
        assert ReminderSpec(True, 5, "hours").hours == 5

    def test_key_uses_literal_value_and_unit(self):
        from models import ReminderSpec
        assert ReminderSpec(True, 1, "days").key == "1_days"
        assert ReminderSpec(True, 24, "hours").key == "24_hours"
        assert ReminderSpec(True, 1.0, "days").key == "1_days"
        assert ReminderSpec(True, 1.5, "hours").key == "1.5_hours"

    def test_window_is_half_hour_either_side(self):
        from models import ReminderSpec
        from reminders import reminder_window
        start, end = reminder_window(NOW, ReminderSpec(True, 3, "hours"))
        assert start == NOW + timedelta(hours=2, minutes=30)
        assert end == NOW + timedelta(hours=3, minutes=30)


class TestParseReminderSpecs:
    def test_parses_json_text(self):
        from models import parse_reminder_specs
        specs = parse_reminder_specs('[{"enabled": true, "value": 7, "unit": "days"}]')
        assert len(specs) == 1
        assert specs[0].value == 7 and specs[0].unit == "days" and specs[0].enabled

    def test_empty_payload_means_no_reminders(self):
        from models import parse_reminder_specs
        assert parse_reminder_specs(None) == []
        assert parse_reminder_specs("") == []
        assert parse_reminder_specs("[]") == []

    @pytest.mark.parametrize("payload", [
        "not json",
        "{\"enabled\": true}",
        "null",
        "[1, 2]",
        '[{"enabled": true, "value": 1}]',
        '[{"enabled": true, "value": "1", "unit": "days"}]',
        '[{"enabled": true, "value": 1, "unit": "weeks"}]',
        '[{"enabled": "yes", "value": 1, "unit": "days"}]',
        '[{"enabled": true, "value": true, "unit": "days"}]',
        '[{"enabled": true, "value": -2, "unit": "hours"}]',
        '[{"enabled": true, "value": 5000000, "unit": "days"}]',
        '[{"enabled": true, "value": 87601, "unit": "hours"}]',
        '[{"enabled": true, "value": Infinity, "unit": "hours"}]',
        '[{"enabled": true, "value": 1e400, "unit": "days"}]',
    ])
    def test_rejects_bad_shapes(self, payload):
        from models import InvalidReminderSettings, parse_reminder_specs
        with pytest.raises(InvalidReminderSettings):
            parse_reminder_specs(payload)

    def test_ten_years_is_the_longest_offset(self):
        from models import parse_reminder_specs
        specs = parse_reminder_specs([{"enabled": True, "value": 3650, "unit": "days"}])
        assert specs[0].hours == 3650 * 24


class TestSchedulerSends:
    def test_one_day_reminder_says_tomorrow(self, app, db):
        set_reminders(db, 1, ONE_DAY)
        course_id = add_course(db, 1, code="CHEM201")
        exam_id = add_exam(db, 1, NOW + timedelta(hours=24), title="Organic Final",
                           course_id=course_id, location="Hall B")

        summary = run(app)

        assert summary.to_dict() == {"sent": 1, "skipped": 0, "errors": 0}
        notifs = notifications_for(db, 1)
        assert len(notifs) == 1
        assert notifs[0]["title"] == "Exam Reminder: Organic Final"
        assert notifs[0]["message"] == "Your CHEM201 exam is tomorrow at Hall B"
        assert notifs[0]["type"] == "exam_reminder"
        assert notifs[0]["exam_id"] == exam_id
        assert reminder_keys(db, exam_id) == {"1_days"}

    def test_ledger_row_points_at_notification(self, app, db):
        set_reminders(db, 1, ONE_DAY)
        exam_id = add_exam(db, 1, NOW + timedelta(hours=24))
        run(app)
        row = db.execute(
            "SELECT notification_id FROM exam_reminders WHERE exam_id = ?", (exam_id,),
        ).fetchone()
        assert row["notification_id"] == notifications_for(db, 1)[0]["id"]

    def test_three_hour_reminder_inside_tolerance(self, app, db):
        set_reminders(db, 1, THREE_HOURS)
        add_exam(db, 1, NOW + timedelta(hours=3, minutes=10))

        summary = run(app)

        assert summary.sent == 1
        assert notifications_for(db, 1)[0]["message"] == "Your exam exam is in a few hours"

    def test_window_edges_are_inclusive(self, app, db):
        set_reminders(db, 1, THREE_HOURS)
        add_exam(db, 1, NOW + timedelta(hours=2, minutes=30), title="Early edge")
        add_exam(db, 1, NOW + timedelta(hours=3, minutes=30), title="Late edge")
        add_exam(db, 1, NOW + timedelta(hours=3, minutes=30, seconds=1), title="Outside")

        summary = run(app)

        assert summary.sent == 2
        titles = {n["title"] for n in notifications_for(db, 1)}
        assert titles == {"Exam Reminder: Early edge", "Exam Reminder: Late edge"}

    def test_equivalent_offsets_in_different_units_both_fire(self, app, db):
        set_reminders(db, 1, [
            {"enabled": True, "value": 1, "unit": "days"},
            {"enabled": True, "value": 24, "unit": "hours"},
        ])
        exam_id = add_exam(db, 1, NOW + timedelta(hours=24))

        summary = run(app)

        assert summary.sent == 2
        assert reminder_keys(db, exam_id) == {"1_days", "24_hours"}
        messages = sorted(n["message"] for n in notifications_for(db, 1))
        assert messages == ["Your exam exam is in 24 hours", "Your exam exam is tomorrow"]

    def test_exam_outside_every_window_gets_nothing(self, app, db):
        set_reminders(db, 1, ONE_DAY + THREE_HOURS)
        add_exam(db, 1, NOW + timedelta(hours=10))

        summary = run(app)

        assert summary.to_dict() == {"sent": 0, "skipped": 0, "errors": 0}
        assert notifications_for(db, 1) == []

    def test_disabled_reminder_is_ignored(self, app, db):
        set_reminders(db, 1, [{"enabled": False, "value": 1, "unit": "days"}])
        add_exam(db, 1, NOW + timedelta(hours=24))
        assert run(app).sent == 0

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    def test_only_scheduled_exams_are_reminded(self, app, db, status):
        set_reminders(db, 1, ONE_DAY)
        add_exam(db, 1, NOW + timedelta(hours=24), status=status)
        assert run(app).sent == 0

    def test_reminders_only_cover_the_owners_exams(self, app, db):
        add_user(db, 3)
        set_reminders(db, 1, ONE_DAY)
        add_exam(db, 3, NOW + timedelta(hours=24))  # user 3 has no settings
        assert run(app).sent == 0
        assert notifications_for(db, 3) == []


class TestSchedulerIdempotence:
    def test_second_run_sends_nothing(self, app, db):
        set_reminders(db, 1, ONE_DAY + THREE_HOURS)
        add_exam(db, 1, NOW + timedelta(hours=24), title="A")
        add_exam(db, 1, NOW + timedelta(hours=3), title="B")

        first = run(app)
        second = run(app)

        assert first.to_dict() == {"sent": 2, "skipped": 0, "errors": 0}
        assert second.to_dict() == {"sent": 0, "skipped": 2, "errors": 0}
        assert len(notifications_for(db, 1)) == 2

    def test_concurrent_duplicate_counts_as_skipped(self, app, db, monkeypatch):
        """A ledger row written after our read must not produce a second notification."""
        import reminders
        from db_stores import ExamStoreDB

        set_reminders(db, 1, ONE_DAY)
        exam_id = add_exam(db, 1, NOW + timedelta(hours=24))
        db.execute(
            "INSERT INTO exam_reminders (exam_id, reminder_type, sent_at) VALUES (?, '1_days', '')",
            (exam_id,),
        )
        db.commit()

        original = ExamStoreDB.scheduled_between

        def stale_read(self, start, end):
            exams = original(self, start, end)
            for exam in exams:
                exam.reminder_keys.clear()
            return exams

        monkeypatch.setattr(reminders.ExamStoreDB, "scheduled_between", stale_read)

        summary = run(app)

        assert summary.to_dict() == {"sent": 0, "skipped": 1, "errors": 0}
        assert notifications_for(db, 1) == []

    def test_uniqueness_is_enforced_by_the_schema(self, db):
        exam_id = add_exam(db, 1, NOW)
        db.execute(
            "INSERT INTO exam_reminders (exam_id, reminder_type, sent_at) VALUES (?, '1_days', '')",
            (exam_id,),
        )
        with pytest.raises(sqlite3.IntegrityError):
            db.execute(
                "INSERT INTO exam_reminders (exam_id, reminder_type, sent_at) VALUES (?, '1_days', '')",
                (exam_id,),
            )


class TestSchedulerIsolation:
    def test_unparseable_settings_skip_only_that_user(self, app, db):
        add_user(db, 3)
        set_reminders(db, 1, "{not valid json")
        set_reminders(db, 3, ONE_DAY)
        add_exam(db, 1, NOW + timedelta(hours=24))
        add_exam(db, 3, NOW + timedelta(hours=24))

        summary = run(app)

        assert summary.to_dict() == {"sent": 1, "skipped": 0, "errors": 0}
        assert notifications_for(db, 1) == []
        assert len(notifications_for(db, 3)) == 1

    def test_user_without_settings_is_skipped(self, app, db):
        add_exam(db, 1, NOW + timedelta(hours=24))
        assert run(app).to_dict() == {"sent": 0, "skipped": 0, "errors": 0}

    def test_write_failure_is_counted_and_rolled_back(self, app, db, monkeypatch):
        import reminders

        set_reminders(db, 1, ONE_DAY)
        failing = add_exam(db, 1, NOW + timedelta(hours=24), title="Fails")
        add_exam(db, 1, NOW + timedelta(hours=24, minutes=5), title="Works")

        original = reminders.ExamReminderStoreDB.record

        def flaky_record(exam_id, key, notification_id, commit=True):
            if exam_id == failing:
                raise sqlite3.OperationalError("disk I/O error")
            return original(exam_id, key, notification_id, commit=commit)

        monkeypatch.setattr(reminders.ExamReminderStoreDB, "record", staticmethod(flaky_record))

        summary = run(app)

        assert summary.to_dict() == {"sent": 1, "skipped": 0, "errors": 1}
        titles = [n["title"] for n in notifications_for(db, 1)]
        assert titles == ["Exam Reminder: Works"]
        assert reminder_keys(db, failing) == set()

    def test_storage_failure_propagates(self, app, monkeypatch):
        import reminders

        def broken():
            raise sqlite3.OperationalError("unable to open database file")

        monkeypatch.setattr(reminders.UserDirectoryDB, "with_settings", staticmethod(broken))
        with pytest.raises(sqlite3.OperationalError):
            run(app)

    def test_oversized_stored_offset_skips_only_that_user(self, app, db):
        add_user(db, 3)
        set_reminders(db, 1, [{"enabled": True, "value": 5000000, "unit": "days"}])
        set_reminders(db, 3, ONE_DAY)
        add_exam(db, 3, NOW + timedelta(hours=24))

        summary = run(app)

        assert summary.to_dict() == {"sent": 1, "skipped": 0, "errors": 0}
        assert len(notifications_for(db, 3)) == 1

    def test_out_of_range_window_does_not_abort_the_run(self, app, db, monkeypatch):
        import models

        monkeypatch.setattr(models, "MAX_REMINDER_HOURS", float("inf"))
        add_user(db, 3)
        set_reminders(db, 1, [{"enabled": True, "value": 5000000, "unit": "days"}])
        set_reminders(db, 3, ONE_DAY)
        add_exam(db, 3, NOW + timedelta(hours=24))

        summary = run(app)

        assert summary.to_dict() == {"sent": 1, "skipped": 0, "errors": 0}
        assert len(notifications_for(db, 3)) == 1
