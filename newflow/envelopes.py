"""
Push-channel wire format.

Every frame is a JSON text object tagged by ``type``:

  Server -> client
    notification           {"type": ..., "notification": {...}}
    bulk_notifications     {"type": ..., "notifications": [{...}, ...]}
    notification_read      {"type": ..., "notificationId": "<id>"}
    notification_deleted   {"type": ..., "notificationId": "<id>"}

  Client -> server
    send_notification      {"type": ..., "data": {...}}
    subscribe              {"type": ..., "data": {"notificationType": "<type>"}}
    unsubscribe            {"type": ..., "data": {"notificationType": "<type>"}}
"""
import json
from dataclasses import dataclass
from typing import Union


class EnvelopeError(ValueError):
    """A frame that is not valid JSON, has an unknown type, or lacks a field."""


# ── Inbound ───────────────────────────────────────────────────

@dataclass(frozen=True)
class NotificationPushed:
    notification: dict


@dataclass(frozen=True)
class BulkNotificationsPushed:
    notifications: tuple


@dataclass(frozen=True)
class NotificationReadPushed:
    notification_id: str


@dataclass(frozen=True)
class NotificationDeletedPushed:
    notification_id: str


Inbound = Union[
    NotificationPushed, BulkNotificationsPushed,
    NotificationReadPushed, NotificationDeletedPushed,
]


# ── Outbound ──────────────────────────────────────────────────

@dataclass(frozen=True)
class SendNotification:
    data: dict


@dataclass(frozen=True)
class Subscribe:
    notification_type: str


@dataclass(frozen=True)
class Unsubscribe:
    notification_type: str


Outbound = Union[SendNotification, Subscribe, Unsubscribe]


def _require(msg: dict, key: str, kind: type | tuple[type, ...]):
    value = msg.get(key)
    if isinstance(value, bool) or not isinstance(value, kind):
        kinds = kind if isinstance(kind, tuple) else (kind,)
        names = "/".join(k.__name__ for k in kinds)
        raise EnvelopeError(f"{msg.get('type')!r} frame needs {key!r} ({names})")
    return value


def decode(raw: str | bytes) -> Inbound:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EnvelopeError(f"bad JSON: {exc}") from exc
    if not isinstance(msg, dict):
        raise EnvelopeError("frame is not a JSON object")

    msg_type = msg.get("type")
    if msg_type == "notification":
        return NotificationPushed(_require(msg, "notification", dict))
    if msg_type == "bulk_notifications":
        items = _require(msg, "notifications", list)
        if not all(isinstance(i, dict) for i in items):
            raise EnvelopeError("'bulk_notifications' entries must be objects")
        return BulkNotificationsPushed(tuple(items))
    if msg_type == "notification_read":
        return NotificationReadPushed(str(_require(msg, "notificationId", (str, int))))
    if msg_type == "notification_deleted":
        return NotificationDeletedPushed(str(_require(msg, "notificationId", (str, int))))
    raise EnvelopeError(f"unknown frame type: {msg_type!r}")


def encode(envelope: Outbound) -> str:
    if isinstance(envelope, SendNotification):
        msg = {"type": "send_notification", "data": envelope.data}
    elif isinstance(envelope, Subscribe):
        msg = {"type": "subscribe", "data": {"notificationType": envelope.notification_type}}
    elif isinstance(envelope, Unsubscribe):
        msg = {"type": "unsubscribe", "data": {"notificationType": envelope.notification_type}}
    else:
        raise TypeError(f"not an outbound envelope: {envelope!r}")
    return json.dumps(msg, separators=(",", ":"))
