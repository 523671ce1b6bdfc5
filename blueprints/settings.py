"""Settings routes, including exam reminder offsets."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from db_stores import SettingsStoreDB
from helpers import current_user_id, error_response, json_body
from models import THEMES, WEEK_STARTS, InvalidReminderSettings, dump_reminder_specs, parse_reminder_specs

logger = logging.getLogger(__name__)

bp = Blueprint("settings", __name__)


@bp.route("/api/settings")
@login_required
def get_settings():
    settings = SettingsStoreDB(current_user_id()).get()
    return jsonify({"settings": settings.to_dict()})


@bp.route("/api/settings", methods=["PATCH"])
@login_required
def update_settings():
    data = json_body()
    fields: dict = {}

    if data.get("dueSoonWindowDays") is not None:
        days = data["dueSoonWindowDays"]
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= 365:
            return error_response("dueSoonWindowDays must be a whole number between 1 and 365", 400)
        fields["due_soon_window_days"] = days
    if data.get("weekStartsOn") is not None:
        if data["weekStartsOn"] not in WEEK_STARTS:
            return error_response(f"weekStartsOn must be one of: {', '.join(WEEK_STARTS)}", 400)
        fields["week_starts_on"] = data["weekStartsOn"]
    if data.get("theme") is not None:
        if data["theme"] not in THEMES:
            return error_response(f"theme must be one of: {', '.join(THEMES)}", 400)
        fields["theme"] = data["theme"]
    if data.get("enableNotifications") is not None:
        fields["enable_notifications"] = 1 if data["enableNotifications"] else 0
    if "examReminders" in data:
        try:
            specs = parse_reminder_specs(data["examReminders"])
        except InvalidReminderSettings as e:
            return error_response(str(e), 400)
        fields["exam_reminders"] = dump_reminder_specs(specs)

    try:
        settings = SettingsStoreDB(current_user_id()).upsert(**fields)
    except Exception as e:
        logger.error("Error updating settings", exc_info=True)
        return error_response("Failed to update settings", 500, details=str(e))
    return jsonify({"settings": settings.to_dict()})
