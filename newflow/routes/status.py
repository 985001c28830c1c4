import logging

from flask import Blueprint, jsonify

from newflow.state import get_runtime

log = logging.getLogger("newflow.routes.status")

bp = Blueprint("status", __name__)


@bp.route("/status")
def status():
    rt = get_runtime()
    state = rt.store.state
    channel = rt.service.channel
    return jsonify({
        "api_url": rt.config.api_url,
        "role": rt.search.roles.role,
        "isConnected": state.is_connected,
        "channel": channel.state if channel else "disabled",
        "reconnectAttempts": channel.reconnect_attempts if channel else 0,
        "notifications": len(state.notifications),
        "unreadCount": state.unread_count,
        "pendingExpiry": len(rt.expiry.pending()),
    })
