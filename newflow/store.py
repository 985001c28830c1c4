"""
Notification store: a pure reducer plus the explicit store handle.

All mutation goes through Store.dispatch(). The reducer never fails: an
unknown id is a silent no-op, and callers get no error feedback from it.

State shape:

  notifications  tuple[Notification, ...]  newest first
  unread_count   int                       always == count(not n.read)
  is_connected   bool                      push transport status
  settings       NotificationSettings

Actions:

  AddNotification(payload)      synthesize one record and prepend it
  BulkAdd(payloads)             synthesize a batch, prepend in caller order
  RemoveNotification(id)        delete by id
  MarkAsRead(id)                flip read on one record
  MarkAllAsRead()               flip read on every record
  ClearAll()                    empty the list
  UpdateSettings(partial)       shallow-merge into settings
  SetConnectionStatus(bool)     set is_connected
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Union

from newflow.models import Notification, NotificationSettings

log = logging.getLogger("newflow.store")


# ── Actions ───────────────────────────────────────────────────

@dataclass(frozen=True)
class AddNotification:
    payload: dict


@dataclass(frozen=True)
class BulkAdd:
    payloads: tuple


@dataclass(frozen=True)
class RemoveNotification:
    id: str


@dataclass(frozen=True)
class MarkAsRead:
    id: str


@dataclass(frozen=True)
class MarkAllAsRead:
    pass


@dataclass(frozen=True)
class ClearAll:
    pass


@dataclass(frozen=True)
class UpdateSettings:
    partial: dict


@dataclass(frozen=True)
class SetConnectionStatus:
    connected: bool


Action = Union[
    AddNotification, BulkAdd, RemoveNotification, MarkAsRead,
    MarkAllAsRead, ClearAll, UpdateSettings, SetConnectionStatus,
]


# ── State ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class NotificationState:
    notifications: tuple = ()
    unread_count: int = 0
    is_connected: bool = True
    settings: NotificationSettings = field(default_factory=NotificationSettings)

    def get(self, notif_id: str) -> Notification | None:
        for n in self.notifications:
            if n.id == notif_id:
                return n
        return None

    def unread(self) -> list[Notification]:
        return [n for n in self.notifications if not n.read]

    def by_type(self, ntype: str) -> list[Notification]:
        return [n for n in self.notifications if n.type == ntype]

    def by_priority(self, priority: str) -> list[Notification]:
        return [n for n in self.notifications if n.priority == priority]

    def to_dict(self) -> dict:
        return {
            "notifications": [n.to_dict() for n in self.notifications],
            "unreadCount": self.unread_count,
            "isConnected": self.is_connected,
            "settings": self.settings.to_dict(),
        }


def _with_records(state: NotificationState, records) -> NotificationState:
    records = tuple(records)
    return replace(
        state,
        notifications=records,
        unread_count=sum(1 for n in records if not n.read),
    )


def _prepend(state: NotificationState, batch: list[Notification]) -> NotificationState:
    # A new record replaces any existing one with the same id, so ids stay unique.
    seen: set[str] = set()
    fresh: list[Notification] = []
    for n in batch:
        if n.id in seen:
            log.debug("Dropping duplicate notification id %s in batch", n.id)
            continue
        seen.add(n.id)
        fresh.append(n)
    kept = [n for n in state.notifications if n.id not in seen]
    return _with_records(state, fresh + kept)


def reduce(state: NotificationState, action: Action) -> NotificationState:
    """Pure transition function. Never raises for a well-typed action."""
    if isinstance(action, AddNotification):
        return _prepend(state, [Notification.from_payload(action.payload)])

    if isinstance(action, BulkAdd):
        ts = datetime.now(timezone.utc).isoformat()
        batch = [Notification.from_payload(p, timestamp=ts) for p in action.payloads]
        return _prepend(state, batch)

    if isinstance(action, RemoveNotification):
        if state.get(action.id) is None:
            return state
        return _with_records(state, (n for n in state.notifications if n.id != action.id))

    if isinstance(action, MarkAsRead):
        target = state.get(action.id)
        if target is None or target.read:
            return state
        return _with_records(
            state,
            (n.mark_read() if n.id == action.id else n for n in state.notifications),
        )

    if isinstance(action, MarkAllAsRead):
        return _with_records(state, (n.mark_read() for n in state.notifications))

    if isinstance(action, ClearAll):
        return _with_records(state, ())

    if isinstance(action, UpdateSettings):
        return replace(state, settings=state.settings.merge(action.partial))

    if isinstance(action, SetConnectionStatus):
        if state.is_connected == bool(action.connected):
            return state
        return replace(state, is_connected=bool(action.connected))

    log.warning("Ignoring unknown action %r", action)
    return state


# ── Store handle ──────────────────────────────────────────────

Listener = Callable[[NotificationState, NotificationState, Action], None]


class Store:
    """
    Holds the current NotificationState and serialises transitions.

    One instance is built at startup and handed to every collaborator.
    Listeners run on the dispatching thread, in subscription order, and see
    (old_state, new_state, action). A dispatch and its listener calls finish
    before the next dispatch starts, so listeners observe transitions in the
    order they were applied. A listener may dispatch re-entrantly.
    """

    def __init__(self, initial: NotificationState | None = None):
        self._state = initial or NotificationState()
        self._lock = threading.Lock()
        self._dispatch_lock = threading.RLock()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> NotificationState:
        return self._state

    def dispatch(self, action: Action) -> NotificationState:
        with self._dispatch_lock:
            with self._lock:
                old = self._state
                new = reduce(old, action)
                self._state = new
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(old, new, action)
                except Exception as exc:
                    log.warning("Store listener %r raised on %s: %s",
                                listener, type(action).__name__, exc)
        return new

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return _unsubscribe
