import pytest
from conftest import FakeChannel, FakeClient

from newflow.envelopes import (
    BulkNotificationsPushed, NotificationDeletedPushed, NotificationPushed,
    NotificationReadPushed, Subscribe,
)
from newflow.models import server_payload
from newflow.notifications import NotificationActions
from newflow.sync import NotificationService


def _service(store, delivery, client=None, channel=None):
    actions = NotificationActions(store, delivery)
    return NotificationService(actions, client or FakeClient(), channel)


SERVER_RECORDS = [
    {"_id": "s1", "type": "medical", "priority": "high", "title": "Allergy",
     "message": "Penicillin", "createdAt": "2024-05-01T10:00:00Z", "read": True},
    {"_id": "s2", "type": "appointment", "title": "Dr. Rao", "message": "10:30"},
]


# ── REST ──────────────────────────────────────────────────────

def test_load_notifications_converts_server_records(store, delivery):
    svc = _service(store, delivery, FakeClient(notifications=SERVER_RECORDS))
    assert svc.load_notifications(limit=50) == 2
    assert [n.id for n in store.state.notifications] == ["s1", "s2"]
    s1 = store.state.get("s1")
    assert (s1.type, s1.priority, s1.title) == ("medical", "high", "Allergy")
    assert store.state.unread_count == 2
    assert delivery.delivered == []


def test_server_payload_maps_backend_field_names():
    payload = server_payload({"_id": "s9", "createdAt": "2024-05-01T10:00:00Z", "title": "Ward",
                              "persistent": "false", "data": "bed-12"})
    assert payload["id"] == "s9"
    assert payload["timestamp"] == "2024-05-01T10:00:00Z"
    assert payload["persistent"] is False
    assert payload["data"] == "bed-12"


def test_load_notifications_keeps_opaque_server_data(store, delivery):
    records = [{"_id": "s3", "title": "Scan", "data": ["ct", "mri"], "actions": "open"}]
    svc = _service(store, delivery, FakeClient(notifications=records))
    assert svc.load_notifications() == 1
    s3 = store.state.get("s3")
    assert s3.data == ["ct", "mri"]
    assert s3.actions == ()


def test_load_notifications_failure_leaves_store_untouched(store, delivery):
    svc = _service(store, delivery, FakeClient(fail=True))
    assert svc.load_notifications() == 0
    assert store.state.notifications == ()


def test_mark_as_read_on_server(store, delivery):
    client = FakeClient()
    svc = _service(store, delivery, client)
    n = svc.actions.add_notification({"title": "t"})
    assert svc.mark_as_read_on_server(n.id) is True
    assert client.calls[-1] == ("mark_notification_as_read", (n.id,))
    assert store.state.unread_count == 0


@pytest.mark.parametrize("method,args", [
    ("mark_as_read_on_server", ("ID",)),
    ("mark_all_as_read_on_server", ()),
    ("delete_notification_on_server", ("ID",)),
    ("clear_all_on_server", ()),
])
def test_server_failure_keeps_local_state(store, delivery, method, args):
    svc = _service(store, delivery, FakeClient(fail=True))
    n = svc.actions.add_notification({"title": "t"})
    args = tuple(n.id if a == "ID" else a for a in args)
    before = store.state
    assert getattr(svc, method)(*args) is False
    assert store.state is before


def test_delete_and_clear_on_server(store, delivery):
    svc = _service(store, delivery)
    a = svc.actions.add_notification({"title": "a"})
    svc.actions.add_notification({"title": "b"})
    assert svc.delete_notification_on_server(a.id)
    assert store.state.get(a.id) is None
    assert svc.mark_all_as_read_on_server()
    assert store.state.unread_count == 0
    assert svc.clear_all_on_server()
    assert store.state.notifications == ()


def test_settings_round_trip_drives_channel(store, delivery):
    channel = FakeChannel()
    client = FakeClient(settings={"desktopNotifications": False, "pushNotifications": False})
    svc = _service(store, delivery, client, channel)
    assert svc.load_settings() is True
    assert store.state.settings.desktop_notifications is False
    assert channel.disconnects == 1
    assert svc.save_settings({"pushNotifications": True}) is True
    assert channel.connects == 1
    assert client.calls[-1] == ("update_notification_settings", ({"pushNotifications": True},))


def test_save_settings_failure_is_not_applied(store, delivery):
    svc = _service(store, delivery, FakeClient(fail=True))
    assert svc.save_settings({"soundEnabled": False}) is False
    assert store.state.settings.sound_enabled is True


# ── Push channel ──────────────────────────────────────────────

def test_channel_callbacks_track_connection_status(store, delivery):
    channel = FakeChannel()
    _service(store, delivery, channel=channel)
    channel.on_close()
    assert store.state.is_connected is False
    channel.on_open()
    assert store.state.is_connected is True
    channel.on_error(OSError("reset"))
    assert store.state.is_connected is False


def test_handle_envelope_routes_to_store(store, delivery):
    channel = FakeChannel()
    _service(store, delivery, channel=channel)
    channel.on_message(NotificationPushed({"id": "p1", "title": "Lab ready"}))
    assert store.state.get("p1") is not None
    assert len(delivery.delivered) == 1
    channel.on_message(BulkNotificationsPushed(({"id": "p2"}, {"id": "p3"})))
    assert [n.id for n in store.state.notifications] == ["p2", "p3", "p1"]
    assert len(delivery.delivered) == 1
    channel.on_message(NotificationReadPushed("p2"))
    assert store.state.get("p2").read is True
    channel.on_message(NotificationDeletedPushed("p3"))
    assert store.state.get("p3") is None


def test_send_helpers(store, delivery):
    channel = FakeChannel()
    svc = _service(store, delivery, channel=channel)
    assert svc.subscribe_to_type("medical") is True
    assert channel.sent == [Subscribe("medical")]


def test_send_without_channel_is_dropped(store, delivery):
    svc = _service(store, delivery)
    assert svc.send_notification({"title": "t"}) is False


def test_stop_disconnects(store, delivery):
    channel = FakeChannel()
    svc = _service(store, delivery, channel=channel)
    svc.stop()
    assert channel.disconnects == 1


# ── Stats ─────────────────────────────────────────────────────

def test_notification_stats(store, delivery):
    svc = _service(store, delivery)
    svc.actions.notify_medical("a", "b")
    svc.actions.notify_system("c", "d")
    n = svc.actions.notify_info("e", "f")
    svc.actions.mark_as_read(n.id)
    stats = svc.get_notification_stats()
    assert (stats["total"], stats["unread"], stats["read"]) == (3, 2, 1)
    assert stats["byType"]["medical"] == 1
    assert stats["byType"]["success"] == 0
    assert stats["byPriority"] == {"low": 1, "normal": 1, "high": 1, "urgent": 0}
