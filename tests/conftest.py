"""
Test fixtures for the student planner.

Provides app, client, auth_client, admin_client and db fixtures with
file-based SQLite, plus small seeding helpers for the scheduler tests.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

STUDENT_PASSWORD = "Testpass123"
ADMIN_PASSWORD = "Adminpass123"
CRON_SECRET = "test-cron-secret"

# Fixed clock for scheduler tests
NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app
    from werkzeug.security import generate_password_hash

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "WTF_CSRF_ENABLED": False,
        "CRON_SECRET": CRON_SECRET,
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()
        app._db_initialized = True

        # Seed a student (1) and an admin (2)
        db = get_db()
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, is_admin, created_at) "
            "VALUES (1, 'Test Student', 'test@example.com', ?, 0, '2026-01-01T00:00:00Z')",
            (generate_password_hash(STUDENT_PASSWORD),),
        )
        db.execute(
            "INSERT INTO users (id, name, email, password_hash, is_admin, created_at) "
            "VALUES (2, 'Test Admin', 'admin@example.com', ?, 1, '2026-01-01T00:00:00Z')",
            (generate_password_hash(ADMIN_PASSWORD),),
        )
        db.commit()

    # Requests must not share the seeding context, or Flask-Login's cached
    # user on g would carry over between clients.
    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _login(app, email, password):
    client = app.test_client()
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def auth_client(app):
    """Authenticated test client (logged in as the student)."""
    return _login(app, "test@example.com", STUDENT_PASSWORD)


@pytest.fixture
def admin_client(app):
    """Authenticated test client (logged in as the admin)."""
    return _login(app, "admin@example.com", ADMIN_PASSWORD)


@pytest.fixture
def db(app):
    """Direct database connection, independent of any app context."""
    from database import connect

    conn = connect(app.config["DATABASE"])
    yield conn
    conn.close()


# ── Seeding helpers ──────────────────────────────────────────────────


def add_user(db, user_id: int, name: str = "Other Student") -> None:
    db.execute(
        "INSERT INTO users (id, name, email, password_hash, created_at) VALUES (?, ?, ?, '', ?)",
        (user_id, name, f"user{user_id}@example.com", "2026-01-01T00:00:00Z"),
    )
    db.commit()


def set_reminders(db, user_id: int, reminders) -> None:
    """Store an examReminders payload verbatim (lists are JSON-encoded, strings kept as-is)."""
    payload = reminders if isinstance(reminders, str) else json.dumps(reminders)
    db.execute(
        "INSERT OR REPLACE INTO settings (user_id, exam_reminders, updated_at) VALUES (?, ?, ?)",
        (user_id, payload, "2026-01-01T00:00:00Z"),
    )
    db.commit()


def add_course(db, user_id: int, code: str = "BIO101", name: str = "Biology") -> int:
    cur = db.execute(
        "INSERT INTO courses (user_id, code, name, created_at) VALUES (?, ?, ?, ?)",
        (user_id, code, name, "2026-01-01T00:00:00Z"),
    )
    db.commit()
    return cur.lastrowid


def add_exam(db, user_id: int, exam_at: datetime, title: str = "Midterm",
             course_id: int | None = None, location: str | None = None,
             status: str = "scheduled") -> int:
    from helpers import to_db_ts
    cur = db.execute(
        "INSERT INTO exams (user_id, course_id, title, exam_at, location, status, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (user_id, course_id, title, to_db_ts(exam_at), location, status, "2026-01-01T00:00:00Z"),
    )
    db.commit()
    return cur.lastrowid


def reminder_keys(db, exam_id: int) -> set[str]:
    rows = db.execute(
        "SELECT reminder_type FROM exam_reminders WHERE exam_id = ?", (exam_id,),
    ).fetchall()
    return {r["reminder_type"] for r in rows}


def notifications_for(db, user_id: int) -> list:
    return db.execute(
        "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at, rowid", (user_id,),
    ).fetchall()
