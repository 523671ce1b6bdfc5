"""Exam routes — CRUD scoped to the signed-in user."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import CourseStoreDB, ExamStoreDB
from helpers import current_user_id, error_response, json_body, normalize_links, parse_id, parse_ts, to_db_ts
from models import EXAM_STATUSES

logger = logging.getLogger(__name__)

bp = Blueprint("exams", __name__)


def _resolve_course_id(uid: int, raw):
    """Return (course_id, error_response). Empty values clear the course."""
    if raw in (None, ""):
        return None, None
    course_id = parse_id(raw)
    if course_id is None or CourseStoreDB(uid).get(course_id) is None:
        return None, error_response("Course not found", 404)
    return course_id, None


@bp.route("/api/exams")
@login_required
def list_exams():
    try:
        exams = ExamStoreDB(current_user_id()).all()
        return jsonify({"exams": [e.to_dict() for e in exams]})
    except Exception:
        logger.error("Error fetching exams", exc_info=True)
        return error_response("Failed to load exams", 500)


@bp.route("/api/exams", methods=["POST"])
@login_required
def create_exam():
    uid = current_user_id()
    data = json_body()

    title = str(data.get("title") or "").strip()
    if not title:
        return error_response("Title is required", 400)
    if not data.get("examAt"):
        return error_response("Exam date and time is required", 400)
    exam_at = parse_ts(data.get("examAt"))
    if exam_at is None:
        return error_response("Invalid exam date/time", 400)

    status = data.get("status") or "scheduled"
    if status not in EXAM_STATUSES:
        return error_response(f"Status must be one of: {', '.join(EXAM_STATUSES)}", 400)

    course_id, err = _resolve_course_id(uid, data.get("courseId"))
    if err:
        return err

    try:
        exam = ExamStoreDB(uid).create(
            title=title,
            exam_at=to_db_ts(exam_at),
            course_id=course_id,
            location=data.get("location") or None,
            notes=data.get("notes") or "",
            links=normalize_links(data.get("links")),
            status=status,
        )
    except Exception:
        logger.error("Error creating exam", exc_info=True)
        return error_response("Failed to create exam", 500)
    return jsonify({"exam": exam.to_dict()}), 201


@bp.route("/api/exams/<int:exam_id>")
@login_required
def get_exam(exam_id: int):
    exam = ExamStoreDB(current_user_id()).get(exam_id)
    if exam is None:
        return error_response("Exam not found", 404)
    return jsonify({"exam": exam.to_dict()})


@bp.route("/api/exams/<int:exam_id>", methods=["PATCH"])
@login_required
def update_exam(exam_id: int):
    uid = current_user_id()
    store = ExamStoreDB(uid)
    if store.get(exam_id) is None:
        return error_response("Exam not found", 404)

    data = json_body()
    fields: dict = {}

    if "title" in data:
        title = str(data["title"] or "").strip()
        if not title:
            return error_response("Title is required", 400)
        fields["title"] = title
    if data.get("examAt"):
        # An unparseable time keeps the existing one.
        exam_at = parse_ts(data["examAt"])
        if exam_at is not None:
            fields["exam_at"] = to_db_ts(exam_at)
    if "courseId" in data:
        course_id, err = _resolve_course_id(uid, data["courseId"])
        if err:
            return err
        fields["course_id"] = course_id
    if "location" in data:
        fields["location"] = data["location"] or None
    if "notes" in data:
        fields["notes"] = data["notes"] or ""
    if "links" in data:
        fields["links"] = normalize_links(data["links"])
    if "status" in data:
        if data["status"] not in EXAM_STATUSES:
            return error_response(f"Status must be one of: {', '.join(EXAM_STATUSES)}", 400)
        fields["status"] = data["status"]

    try:
        exam, purged = store.update(exam_id, **fields)
    except Exception:
        logger.error("Error updating exam %s", exam_id, exc_info=True)
        return error_response("Failed to update exam", 500)
    if purged:
        logger.info("Exam %s rescheduled; cleared %d sent reminder(s)", exam_id, purged)
    return jsonify({"exam": exam.to_dict()})


@bp.route("/api/exams/<int:exam_id>", methods=["DELETE"])
@login_required
def delete_exam(exam_id: int):
    if not ExamStoreDB(current_user_id()).delete(exam_id):
        return error_response("Exam not found", 404)
    return jsonify({"success": True})
