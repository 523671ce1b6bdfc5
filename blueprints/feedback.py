"""User-submitted feature requests, issue reports and college requests.

Each submission creates a pending row and notifies every admin.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import FeedbackStoreDB, NotificationStoreDB, UserDirectoryDB
from helpers import current_user_id, error_response, json_body

logger = logging.getLogger(__name__)

bp = Blueprint("feedback", __name__)

# table -> (body field, missing-field error, response key, admin notification title,
#           verb, notification type, FK column)
KINDS = {
    "feature_requests": ("description", "Description is required", "featureRequest",
                         "New Feature Request", "requested", "feature_request", "feature_request_id"),
    "issue_reports": ("description", "Description is required", "issueReport",
                      "New Issue Report", "reported", "issue_report", "issue_report_id"),
    "college_requests": ("collegeName", "College name is required", "collegeRequest",
                         "New College Request", "requested", "college_request", "college_request_id"),
}


def submit(table: str):
    field, missing_error, response_key, title, verb, notif_type, fk = KINDS[table]
    uid = current_user_id()
    text = str(json_body().get(field) or "").strip()
    if not text:
        return error_response(missing_error, 400)

    try:
        item = FeedbackStoreDB(table).create(uid, text)
        name = UserDirectoryDB.name_of(uid) or "A user"
        for admin_id in UserDirectoryDB.admin_ids():
            NotificationStoreDB(admin_id).add(
                type=notif_type,
                title=title,
                message=f'{name} {verb}: "{text}"',
                **{fk: item.id},
            )
    except Exception:
        logger.error("Error creating %s", table, exc_info=True)
        return error_response(f"Failed to create {title[4:].lower()}", 500)
    return jsonify({response_key: item.to_dict()}), 201


@bp.route("/api/feature-requests", methods=["POST"])
@login_required
def create_feature_request():
    return submit("feature_requests")


@bp.route("/api/issue-reports", methods=["POST"])
@login_required
def create_issue_report():
    return submit("issue_reports")


@bp.route("/api/college-requests", methods=["POST"])
@login_required
def create_college_request():
    return submit("college_requests")
