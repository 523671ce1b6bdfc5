"""Core routes — health checks, CSRF token, cron."""

from __future__ import annotations

import hmac
import logging
import time

from flask import Blueprint, current_app, jsonify, request
from flask_wtf.csrf import generate_csrf

from extensions import csrf, limiter

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)


# ── Health checks ─────────────────────────────────────────

_start_time = time.time()


@bp.route("/health")
def health():
    uptime = int(time.time() - _start_time)
    return jsonify({"status": "ok", "uptime_seconds": uptime})


@bp.route("/ready")
def ready():
    try:
        from database import get_db
        db = get_db()
        db.execute("SELECT 1").fetchone()
        return jsonify({"status": "ready"}), 200
    except Exception as exc:
        logger.error("Readiness check failed: %s", exc, exc_info=True)
        return jsonify({
            "status": "not_ready",
        }), 503


@bp.route("/live")
def live():
    return jsonify({"status": "alive"}), 200


@bp.route("/api/csrf-token")
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})


# ── Cron Endpoints ────────────────────────────────────────
# Called by the platform's cron trigger. Authenticated via CRON_SECRET bearer header.

def _verify_cron_secret() -> bool:
    """Verify the request carries a valid CRON_SECRET bearer token."""
    expected = current_app.config.get("CRON_SECRET", "")
    if not expected:
        return False
    supplied = request.headers.get("Authorization", "")
    return hmac.compare_digest(supplied.encode(), f"Bearer {expected}".encode())


@bp.route("/api/cron/exam-reminders", methods=["GET", "POST"])
@limiter.exempt
@csrf.exempt
def cron_exam_reminders():
    if not _verify_cron_secret():
        return jsonify({"error": "Unauthorized"}), 401
    try:
        from reminders import run_exam_reminders
        summary = run_exam_reminders(current_app._get_current_object())
        return jsonify(summary.to_dict())
    except Exception as e:
        logger.error("Cron exam-reminders failed: %s", e, exc_info=True)
        return jsonify({"error": "Cron job failed", "details": str(e)}), 500
