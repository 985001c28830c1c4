import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal, get_args

NotificationType = Literal[
    "success", "error", "warning", "info", "appointment", "medical", "system",
]
NotificationPriority = Literal["low", "normal", "high", "urgent"]

NOTIFICATION_TYPES: tuple[str, ...] = get_args(NotificationType)
NOTIFICATION_PRIORITIES: tuple[str, ...] = get_args(NotificationPriority)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_notification_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Notification:
    """
    A single notification record held by the store.

    Everything except ``read`` is fixed at insertion time; the store swaps in
    a copy (see mark_read) instead of mutating a record in place.

      type        one of NOTIFICATION_TYPES (unknown values fall back to "info")
      priority    one of NOTIFICATION_PRIORITIES (default "normal")
      persistent  exempt from auto-expiry
      actions     caller-supplied action descriptors, opaque to the store
      data        caller-supplied payload, passed through unchanged
    """
    id: str
    title: str = ""
    message: str = ""
    type: NotificationType = "info"
    priority: NotificationPriority = "normal"
    timestamp: str = field(default_factory=_now_iso)
    read: bool = False
    persistent: bool = False
    actions: tuple = ()
    data: Any = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict, timestamp: str | None = None) -> "Notification":
        """
        Synthesize a fresh, unread record from a caller payload.

        The id is taken from the payload when present, otherwise generated.
        The timestamp is always assigned here, never by the caller.
        """
        if not isinstance(payload, dict):
            payload = {}
        ntype = payload.get("type")
        priority = payload.get("priority")
        actions = payload.get("actions")
        data = payload.get("data")
        return cls(
            id=str(payload.get("id") or new_notification_id()),
            title=str(payload.get("title") or ""),
            message=str(payload.get("message") or ""),
            type=ntype if ntype in NOTIFICATION_TYPES else "info",
            priority=priority if priority in NOTIFICATION_PRIORITIES else "normal",
            timestamp=timestamp or _now_iso(),
            read=False,
            persistent=payload.get("persistent") is True,
            actions=tuple(actions) if isinstance(actions, (list, tuple)) else (),
            data=dict(data) if isinstance(data, dict) else ({} if data is None else data),
        )

    def mark_read(self) -> "Notification":
        return self if self.read else replace(self, read=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp,
            "read": self.read,
            "persistent": self.persistent,
            "actions": list(self.actions),
            "data": self.data,
        }


def server_payload(d: dict) -> dict:
    """
    Convert a backend record (``_id``, ``createdAt``) into the client payload
    shape (``id``, ``timestamp``). The store owns record synthesis.
    """
    return {
        "id": d.get("_id") or d.get("id"),
        "type": d.get("type"),
        "priority": d.get("priority"),
        "title": d.get("title", ""),
        "message": d.get("message", ""),
        "timestamp": d.get("createdAt") or d.get("timestamp"),
        "read": bool(d.get("read", False)),
        "persistent": d.get("persistent") is True,
        "actions": d.get("actions") or [],
        "data": d.get("data"),
    }


# JSON key <-> attribute name for the settings record. The backend and the
# local API both speak camelCase.
SETTINGS_JSON_KEYS: dict[str, str] = {
    "soundEnabled": "sound_enabled",
    "desktopNotifications": "desktop_notifications",
    "emailNotifications": "email_notifications",
    "pushNotifications": "push_notifications",
}


@dataclass(frozen=True)
class NotificationSettings:
    """Per-user delivery preferences. All flags default to on."""
    sound_enabled: bool = True
    desktop_notifications: bool = True
    email_notifications: bool = True
    push_notifications: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "NotificationSettings":
        return cls().merge(d)

    def merge(self, partial: dict) -> "NotificationSettings":
        """Shallow-merge a camelCase (or snake_case) partial. Unknown keys are ignored."""
        changes: dict[str, bool] = {}
        for key, value in (partial or {}).items():
            attr = SETTINGS_JSON_KEYS.get(key, key)
            if attr in SETTINGS_JSON_KEYS.values():
                changes[attr] = bool(value)
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for key, attr in SETTINGS_JSON_KEYS.items()}


def settings_keys() -> tuple[str, ...]:
    return tuple(SETTINGS_JSON_KEYS)


def normalise_options(options: dict[str, Any]) -> dict[str, Any]:
    """Drop the fields a caller may never set on a new record."""
    return {k: v for k, v in options.items() if k not in ("type", "timestamp", "id", "read")}
