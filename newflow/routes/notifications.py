import logging

from flask import Blueprint, jsonify, request

from newflow.models import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES
from newflow.notifications import KINDS
from newflow.state import get_runtime

log = logging.getLogger("newflow.routes.notifications")

bp = Blueprint("notifications", __name__)

SYNC_LIMIT_MAX = 100


def _server_error(what: str):
    return jsonify({"error": f"{what} failed on the server"}), 502


@bp.route("/notifications")
def list_notifications():
    state = get_runtime().store.state
    records = list(state.notifications)
    ntype = request.args.get("type", "")
    priority = request.args.get("priority", "")
    if ntype:
        records = [n for n in records if n.type == ntype]
    if priority:
        records = [n for n in records if n.priority == priority]
    if request.args.get("unread") in ("1", "true"):
        records = [n for n in records if not n.read]
    return jsonify({
        "notifications": [n.to_dict() for n in records],
        "unreadCount": state.unread_count,
        "isConnected": state.is_connected,
    })


@bp.route("/notifications", methods=["POST"])
def add_notification():
    data = request.json or {}
    if not isinstance(data, dict):
        return jsonify({"error": "body must be a JSON object"}), 400
    title = str(data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "title is required"}), 400
    if data.get("type") and data["type"] not in NOTIFICATION_TYPES:
        return jsonify({"error": f"type must be one of {NOTIFICATION_TYPES}"}), 400
    if data.get("priority") and data["priority"] not in NOTIFICATION_PRIORITIES:
        return jsonify({"error": f"priority must be one of {NOTIFICATION_PRIORITIES}"}), 400
    if "persistent" in data and not isinstance(data["persistent"], bool):
        return jsonify({"error": "persistent must be a boolean"}), 400
    if data.get("actions") is not None and not isinstance(data["actions"], list):
        return jsonify({"error": "actions must be a list"}), 400

    actions = get_runtime().actions
    kind = data.pop("kind", "")
    if kind:
        if kind not in KINDS:
            return jsonify({"error": f"kind must be one of {tuple(KINDS)}"}), 400
        options = {k: v for k, v in data.items() if k not in ("title", "message")}
        record = actions.notify(kind, title, str(data.get("message") or ""), **options)
    else:
        record = actions.add_notification(data)
    return jsonify(record.to_dict()), 201


@bp.route("/notifications/<notif_id>/read", methods=["POST"])
def mark_read(notif_id):
    rt = get_runtime()
    if rt.store.state.get(notif_id) is None:
        return jsonify({"error": "not found"}), 404
    if not rt.service.mark_as_read_on_server(notif_id):
        return _server_error("mark as read")
    return jsonify({"ok": True, "unreadCount": rt.store.state.unread_count})


@bp.route("/notifications/read-all", methods=["POST"])
def mark_all_read():
    rt = get_runtime()
    if not rt.service.mark_all_as_read_on_server():
        return _server_error("mark all as read")
    return jsonify({"ok": True, "unreadCount": rt.store.state.unread_count})


@bp.route("/notifications/<notif_id>", methods=["DELETE"])
def delete_notification(notif_id):
    rt = get_runtime()
    if rt.store.state.get(notif_id) is None:
        return jsonify({"error": "not found"}), 404
    if not rt.service.delete_notification_on_server(notif_id):
        return _server_error("delete")
    return jsonify({"ok": True})


@bp.route("/notifications", methods=["DELETE"])
def clear_notifications():
    if not get_runtime().service.clear_all_on_server():
        return _server_error("clear")
    return jsonify({"ok": True})


@bp.route("/notifications/stats")
def notification_stats():
    return jsonify(get_runtime().service.get_notification_stats())


@bp.route("/notifications/sync", methods=["POST"])
def sync_notifications():
    """Backfill from the server. Body: optional page/limit/type/priority/status/search."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "body must be a JSON object"}), 400
    params = {}
    try:
        if "page" in data:
            params["page"] = max(1, int(data["page"]))
        if "limit" in data:
            params["limit"] = max(1, min(SYNC_LIMIT_MAX, int(data["limit"])))
    except (TypeError, ValueError):
        return jsonify({"error": "page and limit must be integers"}), 400
    for fld in ("type", "priority", "status", "search"):
        if fld in data:
            params[fld] = str(data[fld])
    loaded = get_runtime().service.load_notifications(**params)
    return jsonify({"loaded": loaded})
