"""
Auto-expiry for transient notifications.

Each non-persistent, unread record gets its own timer, keyed by id, armed
when the record is inserted. When it fires the record is removed through
the store. Other list mutations leave running timers alone.

A timer is cancelled when its record is removed, cleared, or marked read:
a notification the user has seen stays in the center until dismissed.
"""
import logging
import threading
from typing import Callable

from newflow.store import (
    Action, AddNotification, BulkAdd, NotificationState, RemoveNotification, Store,
)

log = logging.getLogger("newflow.expiry")

DEFAULT_DELAY = 5.0   # seconds


class ExpiryScheduler:
    def __init__(self, store: Store, delay: float = DEFAULT_DELAY,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        self.store = store
        self.delay = delay
        self._timer_factory = timer_factory
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._unsubscribe: Callable[[], None] | None = None

    def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)
            # Records already present when we attach are armed too.
            self._arm_many(self.store.state.unread())

    def shutdown(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for t in timers:
            t.cancel()

    def pending(self) -> set[str]:
        with self._lock:
            return set(self._timers)

    # ── Internals ─────────────────────────────────────────────

    def _on_change(self, old: NotificationState, new: NotificationState, action: Action):
        if isinstance(action, (AddNotification, BulkAdd)):
            # Inserted (or replaced) records are the front of the new list that
            # is not the same object in the old one.
            old_ids = {id(n) for n in old.notifications}
            inserted = [n for n in new.notifications if id(n) not in old_ids]
            self._arm_many(inserted)
        live = {n.id for n in new.notifications if not n.read}
        with self._lock:
            stale = [nid for nid in self._timers if nid not in live]
            timers = [self._timers.pop(nid) for nid in stale]
        for t in timers:
            t.cancel()

    def _arm_many(self, records):
        for n in records:
            if n.persistent or n.read:
                continue
            self._arm(n.id)

    def _arm(self, notif_id: str):
        token = object()
        timer = self._timer_factory(self.delay, self._expire, args=(notif_id, token))
        timer.daemon = True
        timer.token = token
        with self._lock:
            old = self._timers.pop(notif_id, None)
            self._timers[notif_id] = timer
        if old is not None:
            old.cancel()
        timer.start()

    def _expire(self, notif_id: str, token: object):
        with self._lock:
            timer = self._timers.get(notif_id)
            # A replaced or cancelled timer may still fire once; ignore it.
            if timer is None or getattr(timer, "token", None) is not token:
                return
            del self._timers[notif_id]
        log.debug("Notification %s expired", notif_id)
        self.store.dispatch(RemoveNotification(notif_id))
