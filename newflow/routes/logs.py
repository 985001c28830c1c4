import logging

from flask import Blueprint, Response, jsonify, request

from newflow.log_buffer import get_recent_logs

log = logging.getLogger("newflow.routes.logs")

bp = Blueprint("logs", __name__)

TAIL_MAX = 500


@bp.route("/logs")
def get_logs():
    """
    Recent agent logs, oldest first.

    Query: tail (1-500, default 200), level (minimum level name),
    logger (name prefix, e.g. newflow.channel), format (json | text).
    """
    tail = max(1, min(TAIL_MAX, request.args.get("tail", default=200, type=int)))
    prefix = (request.args.get("logger") or "").strip()
    entries = get_recent_logs(
        limit=TAIL_MAX if prefix else tail,
        level=(request.args.get("level") or "").strip(),
    )
    if prefix:
        entries = [e for e in entries
                   if e["name"] == prefix or e["name"].startswith(prefix + ".")][-tail:]

    if (request.args.get("format") or "").strip().lower() == "text":
        return Response("\n".join(e["message"] for e in entries),
                        mimetype="text/plain; charset=utf-8")
    return jsonify({"lines": entries, "count": len(entries)})
