"""Excluded dates (holidays, breaks) — single dates or whole ranges."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import CourseStoreDB, ExcludedDateStoreDB
from helpers import current_user_id, error_response, json_body, parse_date, parse_id

logger = logging.getLogger(__name__)

bp = Blueprint("excluded_dates", __name__)


@bp.route("/api/excluded-dates")
@login_required
def list_excluded_dates():
    dates = ExcludedDateStoreDB(current_user_id()).all()
    return jsonify({"excludedDates": [d.to_dict() for d in dates]})


@bp.route("/api/excluded-dates", methods=["POST"])
@login_required
def create_excluded_dates():
    uid = current_user_id()
    data = json_body()

    description = str(data.get("description") or "").strip()
    if not description:
        return error_response("Description is required", 400)

    if isinstance(data.get("dates"), list):
        raw_dates = data["dates"]
    elif data.get("date"):
        raw_dates = [data["date"]]
    else:
        return error_response("Date or dates array is required", 400)

    dates = [parse_date(d) for d in raw_dates]
    if not dates or any(d is None for d in dates):
        return error_response("Dates must be in YYYY-MM-DD format", 400)

    raw_course = data.get("courseId")
    course_id = None
    if raw_course not in (None, ""):
        course_id = parse_id(raw_course)
        if course_id is None or CourseStoreDB(uid).get(course_id) is None:
            return error_response("Course not found or unauthorized", 404)

    store = ExcludedDateStoreDB(uid)
    try:
        created = store.add_many(dates, description, course_id=course_id)
    except Exception as e:
        logger.error("Error creating excluded dates", exc_info=True)
        return error_response("Failed to create excluded dates", 500, details=str(e))
    logger.info("Created %d excluded date(s) for user %s", created, uid)
    return jsonify({"excludedDates": [d.to_dict() for d in store.all()]}), 201


@bp.route("/api/excluded-dates/<int:date_id>", methods=["DELETE"])
@login_required
def delete_excluded_date(date_id: int):
    if not ExcludedDateStoreDB(current_user_id()).delete(date_id):
        return error_response("Excluded date not found", 404)
    return jsonify({"success": True})
