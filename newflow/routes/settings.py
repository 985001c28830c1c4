import logging

from flask import Blueprint, jsonify, request

from newflow.models import settings_keys
from newflow.state import get_runtime

log = logging.getLogger("newflow.routes.settings")

bp = Blueprint("settings", __name__)


@bp.route("/settings")
def get_settings():
    return jsonify(get_runtime().store.state.settings.to_dict())


@bp.route("/settings", methods=["POST"])
def update_settings():
    data = request.json or {}
    if not isinstance(data, dict):
        return jsonify({"error": "body must be a JSON object"}), 400

    unknown = sorted(set(data) - set(settings_keys()))
    if unknown:
        return jsonify({"error": f"unknown setting(s): {', '.join(unknown)}"}), 400
    for key, value in data.items():
        if not isinstance(value, bool):
            return jsonify({"error": f"{key} must be a boolean"}), 400

    rt = get_runtime()
    if data and not rt.service.save_settings(data):
        return jsonify({"error": "saving settings failed on the server"}), 502
    log.info("Settings updated: %s", rt.store.state.settings.to_dict())
    return jsonify(rt.store.state.settings.to_dict())
