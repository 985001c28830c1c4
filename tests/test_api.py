import pytest
import requests
from conftest import FakeResponse, FakeSession

from newflow.api import (
    ApiError, NewFlowClient, create_notification_data, send_typed_notification,
)


def _ok(data=None):
    return FakeResponse({"success": True, "data": data, "message": "ok"})


def _client(*responses, token="tok"):
    session = FakeSession(*responses)
    return NewFlowClient("http://backend:5000/", token=token, session=session), session


def test_bearer_token_and_url():
    client, session = _client(_ok({"notifications": []}))
    client.get_notifications(page=2, limit=50, type="medical")
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "http://backend:5000/api/newflow/notifications"
    assert kwargs["params"]["page"] == 2
    assert kwargs["params"]["type"] == "medical"
    assert kwargs["params"]["sortBy"] == "createdAt"
    assert kwargs["timeout"] == 10
    assert session.headers["Authorization"] == "Bearer tok"


def test_no_token_no_authorization_header():
    client, session = _client(_ok(), token="")
    assert "Authorization" not in session.headers


@pytest.mark.parametrize("call,method,path", [
    (lambda c: c.mark_notification_as_read("n1"), "PATCH", "/newflow/notifications/n1/read"),
    (lambda c: c.mark_all_notifications_as_read(), "PATCH", "/newflow/notifications/read-all"),
    (lambda c: c.delete_notification("n1"), "DELETE", "/newflow/notifications/n1"),
    (lambda c: c.clear_all_notifications(), "DELETE", "/newflow/notifications/clear-all"),
    (lambda c: c.get_notification_settings(), "GET", "/newflow/notifications/settings"),
    (lambda c: c.update_notification_settings({"soundEnabled": False}), "PATCH",
     "/newflow/notifications/settings"),
    (lambda c: c.send_notification({"title": "t"}), "POST", "/newflow/notifications/send"),
    (lambda c: c.subscribe_to_notifications({"types": ["medical"]}), "POST",
     "/newflow/notifications/subscribe"),
    (lambda c: c.unsubscribe_from_notifications("s1"), "DELETE",
     "/newflow/notifications/unsubscribe/s1"),
])
def test_endpoint_routing(call, method, path):
    client, session = _client(_ok({}))
    call(client)
    got_method, url, _ = session.calls[0]
    assert got_method == method
    assert url == "http://backend:5000/api" + path


def test_success_false_raises():
    client, _ = _client(FakeResponse({"success": False, "message": "Not allowed"}))
    with pytest.raises(ApiError, match="Not allowed"):
        client.clear_all_notifications()


def test_http_error_carries_status():
    client, _ = _client(FakeResponse({"success": False, "message": "gone"}, status=404))
    with pytest.raises(ApiError) as info:
        client.delete_notification("x")
    assert info.value.status == 404


def test_non_json_body_raises():
    client, _ = _client(FakeResponse(status=200, text_only=True))
    with pytest.raises(ApiError):
        client.get_notification_settings()


def test_transport_error_is_wrapped():
    client, _ = _client(requests.ConnectionError("refused"))
    with pytest.raises(ApiError) as info:
        client.get_notifications()
    assert isinstance(info.value.__cause__, requests.ConnectionError)


@pytest.mark.parametrize("data", [
    [{"uhid": "U1"}],
    {"patients": [{"uhid": "U1"}]},
])
def test_search_patients_accepts_list_or_wrapper(data):
    client, session = _client(_ok(data))
    assert client.search_patients("uhid", "U1") == [{"uhid": "U1"}]
    assert session.calls[0][2]["params"] == {"type": "uhid", "query": "U1"}


def test_create_notification_data_defaults():
    body = create_notification_data("info", "t", "m")
    assert body["priority"] == "normal"
    assert body["persistent"] is False
    assert body["recipientType"] == "user"
    assert body["actions"] == [] and body["data"] == {}


def test_create_notification_data_passes_opaque_data_through():
    body = create_notification_data("medical", "t", "m", data="lab-42", actions=5,
                                    persistent="false")
    assert body["data"] == "lab-42"
    assert body["actions"] == []
    assert body["persistent"] is False


@pytest.mark.parametrize("ntype,priority", [("bogus", "normal"), ("info", "huge")])
def test_create_notification_data_validates(ntype, priority):
    with pytest.raises(ValueError):
        create_notification_data(ntype, "t", "m", priority=priority)


def test_send_typed_notification_forces_error_defaults():
    client, session = _client(_ok({"id": "n1"}))
    send_typed_notification(client, "error", "t", "m", priority="low", persistent=False)
    body = session.calls[0][2]["json"]
    assert body["priority"] == "high"
    assert body["persistent"] is True


def test_send_typed_notification_system_is_low():
    client, session = _client(_ok())
    send_typed_notification(client, "system", "t", "m", recipientType="all")
    body = session.calls[0][2]["json"]
    assert body["priority"] == "low"
    assert body["recipientType"] == "all"
