"""
Thin client for the NewFlow REST backend (routes under /api/newflow/*).

Every endpoint answers {"success": bool, "data": ..., "message": str}.
The helpers here return the unwrapped ``data`` and raise ApiError for a
transport failure, a non-2xx status, a non-JSON body or success=false.
"""
import logging
from typing import Any

import requests

from newflow.models import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES

log = logging.getLogger("newflow.api")

_DEFAULT_TIMEOUT = 10   # seconds

# Notification endpoints, relative to <base>/api
GET_NOTIFICATIONS   = "/newflow/notifications"
MARK_AS_READ        = "/newflow/notifications/{id}/read"
MARK_ALL_AS_READ    = "/newflow/notifications/read-all"
DELETE_NOTIFICATION = "/newflow/notifications/{id}"
CLEAR_ALL           = "/newflow/notifications/clear-all"
SETTINGS            = "/newflow/notifications/settings"
SEND_NOTIFICATION   = "/newflow/notifications/send"
SUBSCRIBE           = "/newflow/notifications/subscribe"
UNSUBSCRIBE         = "/newflow/notifications/unsubscribe/{id}"
SEARCH_PATIENTS     = "/newflow/patients/search"


class ApiError(RuntimeError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NewFlowClient:
    """
    Bearer-token session against one backend origin.

    token is the value the SPA keeps under ``newflow_token``; when empty no
    Authorization header is sent and the backend decides.
    """

    def __init__(self, base_url: str, token: str = "",
                 timeout: float = _DEFAULT_TIMEOUT,
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ── Transport ─────────────────────────────────────────────

    def request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/api{path}"
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            log.error("NewFlow API %s %s failed: %s", method, path, exc)
            raise ApiError(f"{method} {path}: {exc}") from exc
        log.debug("NewFlow API %s %s -> %s", method, path, resp.status_code)
        return unwrap(resp, f"{method} {path}")

    # ── Notifications ─────────────────────────────────────────

    def get_notifications(self, page: int = 1, limit: int = 20, type: str = "",
                          priority: str = "", status: str = "", search: str = "",
                          sort_by: str = "createdAt", sort_order: str = "desc") -> dict:
        params = {
            "page": page, "limit": limit, "type": type, "priority": priority,
            "status": status, "search": search,
            "sortBy": sort_by, "sortOrder": sort_order,
        }
        return self.request("GET", GET_NOTIFICATIONS, params=params) or {}

    def mark_notification_as_read(self, notif_id: str):
        return self.request("PATCH", MARK_AS_READ.format(id=notif_id))

    def mark_all_notifications_as_read(self):
        return self.request("PATCH", MARK_ALL_AS_READ)

    def delete_notification(self, notif_id: str):
        return self.request("DELETE", DELETE_NOTIFICATION.format(id=notif_id))

    def clear_all_notifications(self):
        return self.request("DELETE", CLEAR_ALL)

    def get_notification_settings(self) -> dict:
        return self.request("GET", SETTINGS) or {}

    def update_notification_settings(self, settings: dict):
        return self.request("PATCH", SETTINGS, json=settings)

    def send_notification(self, notification_data: dict):
        return self.request("POST", SEND_NOTIFICATION, json=notification_data)

    def subscribe_to_notifications(self, subscription: dict):
        return self.request("POST", SUBSCRIBE, json=subscription)

    def unsubscribe_from_notifications(self, subscription_id: str):
        return self.request("DELETE", UNSUBSCRIBE.format(id=subscription_id))

    # ── Patients ──────────────────────────────────────────────

    def search_patients(self, search_type: str, query: str) -> list[dict]:
        data = self.request("GET", SEARCH_PATIENTS,
                            params={"type": search_type, "query": query})
        if isinstance(data, dict):
            data = data.get("patients", [])
        return list(data or [])


def unwrap(resp: requests.Response, what: str = "request") -> Any:
    """Return the ``data`` member of a {success, data} body, or raise ApiError."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    message = body.get("message") if isinstance(body, dict) else None
    if not resp.ok:
        raise ApiError(f"{what}: HTTP {resp.status_code}"
                       + (f" ({message})" if message else ""), status=resp.status_code)
    if not isinstance(body, dict):
        raise ApiError(f"{what}: response is not a JSON object", status=resp.status_code)
    if not body.get("success", False):
        raise ApiError(f"{what}: {message or 'request failed'}", status=resp.status_code)
    return body.get("data")


# ── Send helpers ──────────────────────────────────────────────

def create_notification_data(ntype: str, title: str, message: str, **options) -> dict:
    """Build the body for POST /notifications/send."""
    if ntype not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type: {ntype!r}")
    priority = options.get("priority") or "normal"
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValueError(f"unknown notification priority: {priority!r}")
    actions = options.get("actions")
    data = options.get("data")
    return {
        "type": ntype,
        "title": title,
        "message": message,
        "priority": priority,
        "persistent": options.get("persistent") is True,
        "actions": list(actions) if isinstance(actions, (list, tuple)) else [],
        "data": dict(data) if isinstance(data, dict) else ({} if data is None else data),
        "recipientId": options.get("recipientId"),
        "recipientType": options.get("recipientType") or "user",   # user | role | all
        "scheduledAt": options.get("scheduledAt"),
        "expiresAt": options.get("expiresAt"),
    }


# type -> forced option overrides, applied after the caller's options
_SEND_OVERRIDES: dict[str, dict] = {
    "error":   {"priority": "high", "persistent": True},
    "medical": {"priority": "high", "persistent": True},
    "system":  {"priority": "low"},
}


def send_typed_notification(client: NewFlowClient, ntype: str, title: str,
                            message: str, **options):
    options.update(_SEND_OVERRIDES.get(ntype, {}))
    return client.send_notification(create_notification_data(ntype, title, message, **options))
