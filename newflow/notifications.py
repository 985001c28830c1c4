"""
Notification actions: named wrappers around store dispatch.

Any module holding a NotificationActions can surface a notification in the
bell/toast UI. The typed notify_* helpers pre-fill type and priority; error
and medical notifications are always persistent.
"""
import logging
from typing import Any

from newflow.delivery import Delivery
from newflow.models import Notification, new_notification_id, normalise_options
from newflow.store import (
    AddNotification, BulkAdd, ClearAll, MarkAllAsRead, MarkAsRead,
    RemoveNotification, SetConnectionStatus, Store, UpdateSettings,
)

log = logging.getLogger("newflow.notifications")

# kind -> (type, default priority, forced persistent)
KINDS: dict[str, tuple[str, str, bool]] = {
    "success":     ("success",     "normal", False),
    "error":       ("error",       "high",   True),
    "warning":     ("warning",     "normal", False),
    "info":        ("info",        "normal", False),
    "appointment": ("appointment", "normal", False),
    "medical":     ("medical",     "high",   True),
    "system":      ("system",      "low",    False),
}


class NotificationActions:
    def __init__(self, store: Store, delivery: Delivery | None = None):
        self.store = store
        self.delivery = delivery or Delivery()

    # ── Dispatch wrappers ─────────────────────────────────────

    def add_notification(self, payload: dict) -> Notification:
        """
        Insert one notification and fire the delivery side-channels once.

        An id is assigned here when the payload has none, so the caller gets
        back the exact record that landed in the store.
        """
        payload = dict(payload)
        if not payload.get("id"):
            payload["id"] = new_notification_id()
        state = self.store.dispatch(AddNotification(payload))
        record = state.get(str(payload["id"]))
        if record is None:
            # Removed by a listener before we could read it back.
            record = Notification.from_payload(payload)
        self.delivery.deliver(record, state.settings)
        return record

    def bulk_add_notifications(self, payloads: list[dict]) -> int:
        """Insert a batch (server backfill). No side-channels fire."""
        self.store.dispatch(BulkAdd(tuple(payloads)))
        return len(payloads)

    def remove_notification(self, notif_id: str):
        self.store.dispatch(RemoveNotification(notif_id))

    def mark_as_read(self, notif_id: str):
        self.store.dispatch(MarkAsRead(notif_id))

    def mark_all_as_read(self):
        self.store.dispatch(MarkAllAsRead())

    def clear_all(self):
        self.store.dispatch(ClearAll())

    def update_settings(self, partial: dict):
        self.store.dispatch(UpdateSettings(dict(partial)))

    def set_connection_status(self, connected: bool):
        self.store.dispatch(SetConnectionStatus(bool(connected)))

    # ── Typed constructors ────────────────────────────────────

    def notify(self, kind: str, title: str, message: str, **options: Any) -> Notification:
        try:
            ntype, priority, persistent = KINDS[kind]
        except KeyError:
            raise ValueError(f"unknown notification kind: {kind!r}") from None
        dropped = set(options) - set(normalise_options(options))
        if dropped:
            log.debug("notify_%s: ignoring reserved option(s) %s", kind, sorted(dropped))
        payload: dict[str, Any] = {"priority": priority, **normalise_options(options)}
        payload.update(type=ntype, title=title, message=message)
        if persistent:
            payload["persistent"] = True
        return self.add_notification(payload)

    def notify_success(self, title: str, message: str, **options) -> Notification:
        return self.notify("success", title, message, **options)

    def notify_error(self, title: str, message: str, **options) -> Notification:
        return self.notify("error", title, message, **options)

    def notify_warning(self, title: str, message: str, **options) -> Notification:
        return self.notify("warning", title, message, **options)

    def notify_info(self, title: str, message: str, **options) -> Notification:
        return self.notify("info", title, message, **options)

    def notify_appointment(self, title: str, message: str, **options) -> Notification:
        return self.notify("appointment", title, message, **options)

    def notify_medical(self, title: str, message: str, **options) -> Notification:
        return self.notify("medical", title, message, **options)

    def notify_system(self, title: str, message: str, **options) -> Notification:
        return self.notify("system", title, message, **options)
