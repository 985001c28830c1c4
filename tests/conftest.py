"""Shared fakes: timers, threads, websockets, REST session, delivery."""
import pytest

from newflow.api import ApiError
from newflow.store import Store


class FakeTimer:
    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = tuple(args or ())
        self.kwargs = dict(kwargs or {})
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class TimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function, args=None, kwargs=None):
        t = FakeTimer(interval, function, args, kwargs)
        self.timers.append(t)
        return t

    @property
    def live(self):
        return [t for t in self.timers if not t.cancelled]


class InlineThread:
    """Runs the target synchronously on start()."""

    def __init__(self, target=None, daemon=None, name=None, args=(), kwargs=None):
        self._target = target
        self._args = args
        self._kwargs = kwargs or {}

    def start(self):
        self._target(*self._args, **self._kwargs)


class FakeWS:
    """websocket.WebSocket stand-in. recv() yields frames, then "" (clean close)."""

    def __init__(self, frames=(), fail: Exception | None = None):
        self.frames = list(frames)
        self.fail = fail
        self.sent: list[str] = []
        self.closed = False
        self.url = None
        self.header = None
        self.timeout = "unset"

    def connect(self, url, timeout=None, header=None):
        self.url = url
        self.header = header
        if self.fail is not None:
            raise self.fail

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv(self):
        if self.frames:
            return self.frames.pop(0)
        return ""

    def send(self, data):
        self.sent.append(data)

    def close(self):
        self.closed = True


class WSFactory:
    """Hands out the given sockets in order, then fresh ones from ``default``."""

    def __init__(self, *sockets, default=FakeWS):
        self.queue = list(sockets)
        self.default = default
        self.created: list[FakeWS] = []

    def __call__(self):
        ws = self.queue.pop(0) if self.queue else self.default()
        self.created.append(ws)
        return ws


class FakeResponse:
    def __init__(self, body=None, status=200, text_only=False):
        self._body = body
        self.status_code = status
        self.ok = 200 <= status < 400
        self._text_only = text_only

    def json(self):
        if self._text_only:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []
        self.headers: dict[str, str] = {}

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        resp = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(resp, Exception):
            raise resp
        return resp


class RecordingDelivery:
    def __init__(self):
        self.delivered = []

    def deliver(self, notification, settings):
        self.delivered.append((notification, settings))


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def delivery():
    return RecordingDelivery()


class FakeClient:
    """NewFlowClient stand-in; ``fail`` makes every call raise ApiError."""

    def __init__(self, fail=False, notifications=(), settings=None, patients=()):
        self.fail = fail
        self.notifications = list(notifications)
        self.settings = settings or {}
        self.patients = list(patients)
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        if self.fail:
            raise ApiError(f"{name} refused", status=500)

    def get_notifications(self, **params):
        self._call("get_notifications", params)
        return {"notifications": self.notifications}

    def mark_notification_as_read(self, notif_id):
        self._call("mark_notification_as_read", notif_id)

    def mark_all_notifications_as_read(self):
        self._call("mark_all_notifications_as_read")

    def delete_notification(self, notif_id):
        self._call("delete_notification", notif_id)

    def clear_all_notifications(self):
        self._call("clear_all_notifications")

    def get_notification_settings(self):
        self._call("get_notification_settings")
        return self.settings

    def update_notification_settings(self, settings):
        self._call("update_notification_settings", settings)

    def search_patients(self, search_type, query):
        self._call("search_patients", search_type, query)
        return self.patients


class FakeChannel:
    def __init__(self):
        self.state = "disconnected"
        self.reconnect_attempts = 0
        self.connects = 0
        self.disconnects = 0
        self.sent = []
        self.on_message = self.on_open = self.on_error = self.on_close = None

    def connect(self):
        self.connects += 1
        self.state = "connecting"

    def disconnect(self):
        self.disconnects += 1
        self.state = "disconnected"

    def send(self, envelope):
        self.sent.append(envelope)
        return True
