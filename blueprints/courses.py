"""Course routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import CourseStoreDB
from helpers import current_user_id, error_response, json_body, normalize_links, parse_date

logger = logging.getLogger(__name__)

bp = Blueprint("courses", __name__)

# client key -> column
_TEXT_FIELDS = {"code": "code", "name": "name", "term": "term", "colorTag": "color_tag"}


@bp.route("/api/courses")
@login_required
def list_courses():
    courses = CourseStoreDB(current_user_id()).all()
    return jsonify({"courses": [c.to_dict() for c in courses]})


@bp.route("/api/courses", methods=["POST"])
@login_required
def create_course():
    data = json_body()
    code = str(data.get("code") or "").strip()
    name = str(data.get("name") or "").strip()
    if not code or not name:
        return error_response("Course code and name are required", 400)

    try:
        course = CourseStoreDB(current_user_id()).create(
            code=code,
            name=name,
            term=str(data.get("term") or ""),
            start_date=parse_date(data.get("startDate")),
            end_date=parse_date(data.get("endDate")),
            meeting_times=data.get("meetingTimes") or [],
            links=normalize_links(data.get("links")),
            color_tag=data.get("colorTag"),
        )
    except Exception:
        logger.error("Error creating course", exc_info=True)
        return error_response("Failed to create course", 500)
    return jsonify({"course": course.to_dict()}), 201


@bp.route("/api/courses/<int:course_id>")
@login_required
def get_course(course_id: int):
    course = CourseStoreDB(current_user_id()).get(course_id)
    if course is None:
        return error_response("Course not found", 404)
    return jsonify({"course": course.to_dict()})


@bp.route("/api/courses/<int:course_id>", methods=["PATCH"])
@login_required
def update_course(course_id: int):
    store = CourseStoreDB(current_user_id())
    if store.get(course_id) is None:
        return error_response("Course not found", 404)

    data = json_body()
    fields: dict = {}
    for key, column in _TEXT_FIELDS.items():
        # null keeps the existing value
        if data.get(key) is not None:
            fields[column] = str(data[key])
    for key, column in (("startDate", "start_date"), ("endDate", "end_date")):
        if key in data:
            fields[column] = parse_date(data[key])
    if data.get("meetingTimes") is not None:
        fields["meeting_times"] = data["meetingTimes"]
    if data.get("links") is not None:
        fields["links"] = normalize_links(data["links"])

    try:
        course = store.update(course_id, **fields)
    except Exception:
        logger.error("Error updating course %s", course_id, exc_info=True)
        return error_response("Failed to update course", 500)
    return jsonify({"course": course.to_dict()})


@bp.route("/api/courses/<int:course_id>", methods=["DELETE"])
@login_required
def delete_course(course_id: int):
    if not CourseStoreDB(current_user_id()).delete(course_id):
        return error_response("Course not found", 404)
    return jsonify({"success": True})
