"""Admin review queues for feature requests, issue reports and college requests."""

from __future__ import annotations

import logging
import sqlite3

from flask import Blueprint, jsonify, request

from audit import log_event
from auth import admin_required
from db_stores import FeedbackStoreDB, NotificationStoreDB
from helpers import current_user_id, error_response, json_body

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)

# url segment -> (table, label, accepted closing status, FK column on notifications)
QUEUES = {
    "feature-requests": ("feature_requests", "Feature Request", "implemented", "feature_request_id"),
    "issue-reports": ("issue_reports", "Issue Report", "fixed", "issue_report_id"),
    "college-requests": ("college_requests", "College Request", "added", "college_request_id"),
}

COLLEGE_STATUSES = ("pending", "added", "rejected")


def _short(text: str, limit: int = 100) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _notify_submitter(item, label: str, done_status: str, status: str, fk: str) -> None:
    """Tell the submitter their item was closed. Failures are logged, never raised."""
    status_label = status.capitalize() if status in (done_status, "rejected") else status
    outcome = done_status if status == done_status else "rejected"
    try:
        NotificationStoreDB(item.user_id).add(
            type=f"{label.lower().replace(' ', '_')}_{status}",
            title=f"{label} {status_label}",
            message=f'Your {label.lower()} has been marked as {outcome}: "{_short(item.description)}"',
            **{fk: item.id},
        )
    except sqlite3.Error:
        logger.error("Failed to notify user %s about %s %s", item.user_id, label, item.id, exc_info=True)


def _settle_college_request(item, status: str) -> None:
    """Notify the submitter of the decision and clear the admins' notifications for it."""
    if status == "pending":
        return
    approved = status == "added"
    try:
        NotificationStoreDB.delete_for_college_request(item.id)
        NotificationStoreDB(item.user_id).add(
            type="college_request_approved" if approved else "college_request_rejected",
            title="College Request Approved" if approved else "College Request Rejected",
            message=(
                f"Your request for {item.description} has been approved!"
                if approved else f"Your request for {item.description} was not approved."
            ),
        )
    except sqlite3.Error:
        logger.error("Failed to settle notifications for college request %s", item.id, exc_info=True)


@bp.route("/api/admin/<queue>")
@admin_required
def list_queue(queue: str):
    entry = QUEUES.get(queue)
    if entry is None:
        return error_response("Not found", 404)
    items = FeedbackStoreDB(entry[0]).pending()
    return jsonify({"requests": [i.to_dict() for i in items]})


@bp.route("/api/admin/<queue>", methods=["PATCH"])
@admin_required
def update_queue_item(queue: str):
    entry = QUEUES.get(queue)
    if entry is None:
        return error_response("Not found", 404)
    table, label, done_status, fk = entry

    data = json_body()
    item_id = data.get("id") or data.get("requestId") or data.get("reportId")
    status = data.get("status")
    if not item_id or not status:
        return error_response("ID and status are required", 400)
    if table == "college_requests" and status not in COLLEGE_STATUSES:
        return error_response("Invalid status", 400)

    store = FeedbackStoreDB(table)
    if store.get(item_id) is None:
        return error_response(f"{label} not found", 404)

    try:
        item = store.set_status(item_id, status)
    except Exception:
        logger.error("Error updating %s %s", table, item_id, exc_info=True)
        return error_response(f"Failed to update {label.lower()}", 500)

    if table == "college_requests":
        _settle_college_request(item, status)
    else:
        _notify_submitter(item, label, done_status, status, fk)
    log_event(f"admin_{table}_status", current_user_id(), f"id={item_id} status={status}")
    return jsonify({"item": item.to_dict()})


@bp.route("/api/admin/<queue>", methods=["DELETE"])
@admin_required
def delete_queue_item(queue: str):
    entry = QUEUES.get(queue)
    if entry is None:
        return error_response("Not found", 404)
    item_id = json_body().get("id") or request.args.get("id")
    if not item_id:
        return error_response("ID is required", 400)
    if not FeedbackStoreDB(entry[0]).delete(item_id):
        return error_response(f"{entry[1]} not found", 404)
    log_event(f"admin_{entry[0]}_delete", current_user_id(), f"id={item_id}")
    return jsonify({"success": True})
