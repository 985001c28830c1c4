"""
Server synchronisation for the notification store.

NotificationService ties three things together:

  - the REST backend (load, mark read, delete, clear, settings)
  - the push channel (server events in, send/subscribe out)
  - the local store, through NotificationActions

REST calls go to the server first and only touch the local store when the
server accepted them. Failures are logged and reported as a False/None
return; they never raise into the caller.
"""
import logging

from newflow.api import ApiError, NewFlowClient
from newflow.channel import NotificationWebSocket
from newflow.envelopes import (
    BulkNotificationsPushed, Inbound, NotificationDeletedPushed, NotificationPushed,
    NotificationReadPushed, SendNotification, Subscribe, Unsubscribe,
)
from newflow.models import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES, server_payload
from newflow.notifications import NotificationActions

log = logging.getLogger("newflow.sync")


class NotificationService:
    def __init__(self, actions: NotificationActions, client: NewFlowClient,
                 channel: NotificationWebSocket | None = None):
        self.actions = actions
        self.client = client
        self.channel = channel
        if channel is not None:
            self.attach_channel(channel)

    @property
    def store(self):
        return self.actions.store

    # ── Push channel ──────────────────────────────────────────

    def attach_channel(self, channel: NotificationWebSocket):
        """Route the channel's callbacks into the store."""
        self.channel = channel
        channel.on_message = self.handle_envelope
        channel.on_open = lambda: self.actions.set_connection_status(True)
        channel.on_error = self._on_channel_error
        channel.on_close = self._on_channel_close

    def _on_channel_error(self, exc: Exception):
        log.error("Notification WebSocket error: %s", exc)
        self.actions.set_connection_status(False)

    def _on_channel_close(self):
        self.actions.set_connection_status(False)

    def wants_push(self) -> bool:
        s = self.store.state.settings
        return s.desktop_notifications or s.push_notifications

    def apply_settings(self):
        """Connect or disconnect the push channel to match the current settings."""
        if self.channel is None:
            return
        if self.wants_push():
            if self.channel.state == "disconnected":
                self.channel.connect()
        else:
            self.channel.disconnect()

    def stop(self):
        if self.channel is not None:
            self.channel.disconnect()

    def handle_envelope(self, envelope: Inbound):
        if isinstance(envelope, NotificationPushed):
            self.actions.add_notification(envelope.notification)
        elif isinstance(envelope, BulkNotificationsPushed):
            self.actions.bulk_add_notifications(list(envelope.notifications))
        elif isinstance(envelope, NotificationReadPushed):
            self.actions.mark_as_read(envelope.notification_id)
        elif isinstance(envelope, NotificationDeletedPushed):
            self.actions.remove_notification(envelope.notification_id)
        else:
            log.warning("Unhandled push envelope %r", envelope)

    def send_notification(self, notification_data: dict) -> bool:
        return self._send(SendNotification(dict(notification_data)))

    def subscribe_to_type(self, notification_type: str) -> bool:
        return self._send(Subscribe(notification_type))

    def unsubscribe_from_type(self, notification_type: str) -> bool:
        return self._send(Unsubscribe(notification_type))

    def _send(self, envelope) -> bool:
        if self.channel is None:
            log.warning("No notification channel; dropping %s", type(envelope).__name__)
            return False
        return self.channel.send(envelope)

    # ── REST ──────────────────────────────────────────────────

    def load_notifications(self, **params) -> int:
        """Backfill the store from GET /notifications. Returns records added."""
        try:
            data = self.client.get_notifications(**params)
        except ApiError as exc:
            log.error("Error loading notifications: %s", exc)
            return 0
        records = [server_payload(d) for d in data.get("notifications", [])
                   if isinstance(d, dict)]
        if records:
            self.actions.bulk_add_notifications(records)
        log.info("Loaded %d notification(s) from server", len(records))
        return len(records)

    def mark_as_read_on_server(self, notif_id: str) -> bool:
        try:
            self.client.mark_notification_as_read(notif_id)
        except ApiError as exc:
            log.error("Error marking notification %s as read: %s", notif_id, exc)
            return False
        self.actions.mark_as_read(notif_id)
        return True

    def mark_all_as_read_on_server(self) -> bool:
        try:
            self.client.mark_all_notifications_as_read()
        except ApiError as exc:
            log.error("Error marking all notifications as read: %s", exc)
            return False
        self.actions.mark_all_as_read()
        return True

    def delete_notification_on_server(self, notif_id: str) -> bool:
        try:
            self.client.delete_notification(notif_id)
        except ApiError as exc:
            log.error("Error deleting notification %s: %s", notif_id, exc)
            return False
        self.actions.remove_notification(notif_id)
        return True

    def clear_all_on_server(self) -> bool:
        try:
            self.client.clear_all_notifications()
        except ApiError as exc:
            log.error("Error clearing all notifications: %s", exc)
            return False
        self.actions.clear_all()
        return True

    def load_settings(self) -> bool:
        try:
            data = self.client.get_notification_settings()
        except ApiError as exc:
            log.error("Error loading notification settings: %s", exc)
            return False
        self.actions.update_settings(data)
        self.apply_settings()
        return True

    def save_settings(self, partial: dict) -> bool:
        try:
            self.client.update_notification_settings(partial)
        except ApiError as exc:
            log.error("Error saving notification settings: %s", exc)
            return False
        self.actions.update_settings(partial)
        self.apply_settings()
        return True

    # ── Stats ─────────────────────────────────────────────────

    def get_notification_stats(self) -> dict:
        records = self.store.state.notifications
        total = len(records)
        unread = sum(1 for n in records if not n.read)
        return {
            "total": total,
            "unread": unread,
            "read": total - unread,
            "byType": {t: sum(1 for n in records if n.type == t) for t in NOTIFICATION_TYPES},
            "byPriority": {p: sum(1 for n in records if n.priority == p)
                           for p in NOTIFICATION_PRIORITIES},
        }
