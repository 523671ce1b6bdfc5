"""Notification inbox routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import NotificationStoreDB
from helpers import current_user_id, json_body, paginate_args, paginated_response

bp = Blueprint("notifications", __name__)


@bp.route("/api/notifications")
@login_required
def api_notifications():
    """Return a page of notifications, newest first."""
    store = NotificationStoreDB(current_user_id())
    page, limit = paginate_args(default_limit=20, max_limit=50)
    notifs = store.recent(limit, offset=(page - 1) * limit)
    result = paginated_response([n.to_dict() for n in notifs], store.count(), page, limit)
    result["notifications"] = result.pop("items")
    result["unread_count"] = store.unread_count()
    return jsonify(result)


@bp.route("/api/notifications/read", methods=["POST"])
@login_required
def api_notifications_read():
    notif_id = json_body().get("id", "")
    store = NotificationStoreDB(current_user_id())
    if notif_id == "all":
        store.mark_all_read()
    else:
        store.mark_read(notif_id)
    return jsonify({"success": True})


@bp.route("/api/notifications/dismiss", methods=["POST"])
@login_required
def api_notifications_dismiss():
    store = NotificationStoreDB(current_user_id())
    store.dismiss(json_body().get("id", ""))
    return jsonify({"success": True})
