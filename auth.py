"""
User Authentication — Flask-Login blueprint.

Provides JSON register, login, logout and session routes.
Uses werkzeug.security for password hashing.
"""

from __future__ import annotations

import math
from datetime import timedelta
from functools import wraps

from flask import Blueprint, g, jsonify
from flask_login import UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import get_db
from db_stores import SettingsStoreDB
from extensions import limiter, login_manager
from helpers import error_response, from_db_ts, json_body, to_db_ts, utcnow

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15

auth_bp = Blueprint("auth", __name__)


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, name: str, email: str, is_admin: bool = False):
        self.id = id
        self.name = name
        self.email = email
        self.is_admin = is_admin

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "isAdmin": self.is_admin}

    @staticmethod
    def get(user_id: int):
        db = get_db()
        row = db.execute(
            "SELECT id, name, email, is_admin FROM users WHERE id = ?", (user_id,),
        ).fetchone()
        if row:
            return User(row["id"], row["name"], row["email"], bool(row["is_admin"]))
        return None

    @staticmethod
    def get_by_email(email: str):
        db = get_db()
        return db.execute(
            "SELECT id, name, email, password_hash, is_admin, login_attempts, locked_until "
            "FROM users WHERE email = ?", (email,),
        ).fetchone()


@login_manager.user_loader
def load_user(user_id):
    user = User.get(int(user_id))
    if user is not None:
        g.log_user_id = user.id
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return error_response("Please sign in to continue", 401)


def admin_required(f):
    """Require a logged-in admin; 403 for everyone else."""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_admin:
            return error_response("Forbidden", 403)
        return f(*args, **kwargs)
    return decorated


def _validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters."
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter."
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter."
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit."
    return None


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    data = json_body()
    email = str(data.get("email", "")).strip().lower()
    password = str(data.get("password", ""))

    if not email or not password:
        return error_response("Email and password are required.", 400)

    row = User.get_by_email(email)
    if not row:
        return error_response("Invalid email or password.", 401)

    if row["locked_until"]:
        try:
            remaining = (from_db_ts(row["locked_until"]) - utcnow()).total_seconds()
        except ValueError:
            remaining = 0
        if remaining > 0:
            mins = math.ceil(remaining / 60)
            log_event("login_locked", row["id"], f"email={email}")
            return error_response(f"Account temporarily locked. Try again in {mins} minute(s).", 423)

    db = get_db()
    if not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        attempts = row["login_attempts"] + 1
        if attempts >= LOCKOUT_THRESHOLD:
            db.execute(
                "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
                (attempts, to_db_ts(utcnow() + timedelta(minutes=LOCKOUT_MINUTES)), row["id"]),
            )
        else:
            db.execute("UPDATE users SET login_attempts=? WHERE id=?", (attempts, row["id"]))
        db.commit()
        log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
        return error_response("Invalid email or password.", 401)

    db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
    db.commit()

    user = User(row["id"], row["name"], row["email"], bool(row["is_admin"]))
    login_user(user, remember=True)
    log_event("login_success", row["id"])
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("3 per hour")
def register():
    data = json_body()
    name = str(data.get("name", "")).strip()
    email = str(data.get("email", "")).strip().lower()
    password = str(data.get("password", ""))

    if not name or not email or not password:
        return error_response("All fields are required.", 400)

    pw_error = _validate_password(password)
    if pw_error:
        return error_response(pw_error, 400)

    if User.get_by_email(email):
        return error_response("An account with this email already exists.", 409)

    db = get_db()
    cur = db.execute(
        "INSERT INTO users (name, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (name, email, generate_password_hash(password), to_db_ts(utcnow())),
    )
    user_id = cur.lastrowid
    db.commit()
    # Default reminder offsets apply from the start.
    SettingsStoreDB(user_id).upsert()

    log_event("register", user_id, f"email={email}")
    user = User(user_id, name, email)
    login_user(user, remember=True)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log_event("logout", current_user.id)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/api/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
