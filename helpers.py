"""Shared helpers for the planner blueprints: timestamps, request bodies, pagination."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from flask import jsonify, request
from flask_login import current_user

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def current_user_id() -> int:
    """Return the current authenticated user's ID."""
    return current_user.id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_ts(dt: datetime) -> str:
    """Serialize a datetime as a UTC timestamp string (naive values are taken as UTC).

    The fixed-width format keeps lexical and chronological order identical,
    so range filters can compare the stored strings directly.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_ts(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def parse_ts(value: Any) -> datetime | None:
    """Parse an ISO-8601 string from a client, returning an aware UTC datetime or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Any) -> str | None:
    """Normalize a client date (``YYYY-MM-DD`` or full ISO timestamp) to ``YYYY-MM-DD``."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date().isoformat()
    except ValueError:
        return None


def parse_id(value: Any) -> int | None:
    """Accept a row id sent as an int or a digit string; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def json_body() -> dict:
    """Return the request's JSON object body, or an empty dict for anything else."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(message: str, status: int, **extra):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def normalize_links(raw: Any) -> list[dict]:
    """Drop links without a URL; default a missing label to the URL's host."""
    links = []
    for item in raw or []:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        url = str(item["url"])
        label = item.get("label") or urlparse(url).hostname or url
        links.append({"label": label, "url": url})
    return links


def paginate_args(default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    """Extract page/limit from request.args. Returns (page, limit)."""
    try:
        page = max(1, int(request.args.get("page", 1)))
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def paginated_response(items: list, total: int, page: int, limit: int) -> dict:
    """Standard pagination envelope."""
    return {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": max(1, (total + limit - 1) // limit),
        },
    }
