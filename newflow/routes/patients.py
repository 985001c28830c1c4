import logging

from flask import Blueprint, jsonify, request

from newflow.patient_search import SearchError, SearchPermissionError
from newflow.state import get_runtime

log = logging.getLogger("newflow.routes.patients")

bp = Blueprint("patients", __name__)


@bp.route("/patients/search", methods=["POST"])
def search_patients():
    """
    Body: {"mode": "uhid|mobile|name|name_dob", "query": str,
           "partialInfo": bool, "emergency": bool}
    Returns the classified outcome (case A-G).
    """
    data = request.json or {}
    if not isinstance(data, dict):
        return jsonify({"error": "body must be a JSON object"}), 400
    try:
        outcome = get_runtime().search.search(
            str(data.get("mode") or "uhid"),
            str(data.get("query") or ""),
            partial_info=bool(data.get("partialInfo", False)),
            emergency=bool(data.get("emergency", False)),
        )
    except SearchPermissionError as exc:
        return jsonify({"error": str(exc)}), 403
    except SearchError as exc:
        status = 502 if exc.__cause__ is not None else 400
        return jsonify({"error": str(exc)}), status
    return jsonify(outcome.to_dict())
