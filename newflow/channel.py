"""
Reconnecting WebSocket client for server-pushed notifications.

The channel connects to the backend's /ws/notifications endpoint, decodes
each text frame into a typed envelope (newflow.envelopes) and hands it to
on_message. Connection state changes are reported through on_open,
on_error and on_close; the caller maps those onto the store's
is_connected flag.

States:

  disconnected --connect()--> connecting --open--> connected
       ^                          |                    |
       |                        error                close
       +------ reconnect timer <--+--------------------+

Reconnect is driven only by close. The delay is linear
(interval x attempt) and gives up after max_reconnect_attempts, leaving the
channel disconnected until connect() is called again.

Outbound frames are sent only while connected; anything sent while the
channel is down is logged and dropped.

Thread-safety: _ws, _state, _generation and _reconnect_timer are guarded
by _lock.
"""
import logging
import threading
from typing import Callable, Literal
from urllib.parse import urlsplit, urlunsplit

import websocket  # websocket-client

from newflow.envelopes import EnvelopeError, Inbound, Outbound, decode, encode

log = logging.getLogger("newflow.channel")

_CONNECT_TIMEOUT = 5           # seconds for WS handshake
_RECONNECT_INTERVAL = 1.0      # base delay in seconds, multiplied by attempt number
_MAX_RECONNECT_ATTEMPTS = 5
_WS_PATH = "/ws/notifications"

ChannelState = Literal["disconnected", "connecting", "connected"]


def notification_ws_url(base_url: str) -> str:
    """
    Derive the push endpoint from the backend origin: http -> ws,
    https -> wss, path /ws/notifications.
    """
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    return urlunsplit((scheme, parts.netloc, _WS_PATH, "", ""))


class NotificationWebSocket:
    """
    Manages one persistent push connection.

    connect() returns immediately; the handshake and receive loop run on a
    daemon thread. Reconnect attempts are scheduled with timer_factory so
    disconnect() can cancel a pending attempt synchronously.
    """

    def __init__(self, url: str,
                 on_message: Callable[[Inbound], None] | None = None,
                 on_error: Callable[[Exception], None] | None = None,
                 on_open: Callable[[], None] | None = None,
                 on_close: Callable[[], None] | None = None,
                 *,
                 header: dict[str, str] | None = None,
                 reconnect_interval: float = _RECONNECT_INTERVAL,
                 max_reconnect_attempts: int = _MAX_RECONNECT_ATTEMPTS,
                 ws_factory: Callable[[], websocket.WebSocket] = websocket.WebSocket,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer,
                 thread_factory: Callable[..., threading.Thread] = threading.Thread):
        self.url = url
        self.on_message = on_message
        self.on_error = on_error
        self.on_open = on_open
        self.on_close = on_close
        self.header = dict(header or {})
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_attempts = 0
        self._ws_factory = ws_factory
        self._timer_factory = timer_factory
        self._thread_factory = thread_factory
        self._ws: websocket.WebSocket | None = None
        self._state: ChannelState = "disconnected"
        self._reconnect_timer: threading.Timer | None = None
        self._running = False
        # Bumped by connect() and disconnect(); a connect thread or receive loop from an
        # older generation is stale.
        self._generation = 0
        self._lock = threading.Lock()

    # ── Public API ────────────────────────────────────────────

    @property
    def state(self) -> ChannelState:
        return self._state

    def is_connected(self) -> bool:
        return self._state == "connected"

    def connect(self):
        """Open the connection in the background. Resets the stop flag and backoff."""
        with self._lock:
            if self._state != "disconnected" or self._reconnect_timer is not None:
                return
            self._running = True
            self._generation += 1
            self.reconnect_attempts = 0
        self._start()

    def send(self, envelope: Outbound) -> bool:
        """
        Send a client envelope if connected. Returns True when the frame was
        written; a disconnected channel drops the frame with a warning.
        """
        with self._lock:
            ws = self._ws if self._state == "connected" else None
        if ws is None:
            log.warning("Notification WebSocket is not connected; dropping %s",
                        type(envelope).__name__)
            return False
        try:
            ws.send(encode(envelope))
        except Exception as exc:
            log.warning("Notification WebSocket send failed: %s", exc)
            return False
        return True

    def disconnect(self):
        """Close the connection and cancel any pending reconnect. Idempotent."""
        with self._lock:
            self._running = False
            self._generation += 1
            timer, self._reconnect_timer = self._reconnect_timer, None
            ws, self._ws = self._ws, None
            self._state = "disconnected"
        if timer is not None:
            timer.cancel()
        if ws is not None:
            try:
                ws.close()
            except Exception as exc:
                log.debug("Error closing notification WebSocket: %s", exc)

    # ── Connection lifecycle ──────────────────────────────────

    def _start(self):
        with self._lock:
            if not self._running:
                return
            self._state = "connecting"
            generation = self._generation
        t = self._thread_factory(target=self._run, args=(generation,), daemon=True,
                                 name="ws-notifications")
        t.start()

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    def _run(self, generation: int):
        try:
            ws = self._ws_factory()
            ws.connect(self.url, timeout=_CONNECT_TIMEOUT, header=self.header)
            # The handshake timeout would otherwise stay on the socket and make
            # an idle recv() raise.
            ws.settimeout(None)
        except Exception as exc:
            with self._lock:
                current = self._is_current(generation)
            if not current:
                return
            log.warning("Notification WebSocket connect to %s failed: %s", self.url, exc)
            self._handle_error(exc)
            self._handle_close()
            return

        with self._lock:
            if not self._is_current(generation):
                stale = ws
            else:
                stale = None
                self._ws = ws
                self._state = "connected"
        if stale is not None:
            log.debug("Closing notification WebSocket opened after disconnect")
            try:
                stale.close()
            except Exception as exc:
                log.debug("Error closing stale notification WebSocket: %s", exc)
            return

        self._handle_open()
        self._recv_loop(ws, generation)

    def _owns(self, ws, generation: int) -> bool:
        with self._lock:
            return self._is_current(generation) and self._ws is ws

    def _recv_loop(self, ws, generation: int):
        # A loop outlived by disconnect() (and possibly a newer connection)
        # must not touch channel state or fire handlers on its way out.
        while self._owns(ws, generation):
            try:
                raw = ws.recv()
            except Exception as exc:
                if self._owns(ws, generation):
                    log.info("Notification WebSocket closed: %s", exc)
                    self._handle_error(exc)
                break

            if raw is None:
                continue
            if raw == "" or raw == b"":
                # websocket-client returns "" on a clean close
                log.info("Notification WebSocket: empty recv (clean close)")
                break
            if not self._owns(ws, generation):
                break
            self._handle_message(raw)

        with self._lock:
            owner = self._is_current(generation) and self._ws is ws
            if owner:
                self._ws = None
                self._state = "disconnected"
        if owner:
            self._handle_close()
        else:
            log.debug("Stale notification WebSocket receive loop exited")

    # ── Event handlers ────────────────────────────────────────

    def _handle_open(self):
        self.reconnect_attempts = 0
        log.info("Notification WebSocket connected to %s", self.url)
        if self.on_open:
            try:
                self.on_open()
            except Exception as exc:
                log.warning("on_open handler raised: %s", exc)

    def _handle_message(self, raw):
        try:
            envelope = decode(raw)
        except EnvelopeError as exc:
            log.warning("Dropping notification frame: %s", exc)
            return
        if self.on_message:
            try:
                self.on_message(envelope)
            except Exception as exc:
                log.warning("on_message handler raised for %s: %s",
                            type(envelope).__name__, exc)

    def _handle_error(self, exc: Exception):
        if self.on_error:
            try:
                self.on_error(exc)
            except Exception as handler_exc:
                log.warning("on_error handler raised: %s", handler_exc)

    def _handle_close(self):
        with self._lock:
            self._state = "disconnected"
        log.info("Notification WebSocket disconnected")
        if self.on_close:
            try:
                self.on_close()
            except Exception as exc:
                log.warning("on_close handler raised: %s", exc)
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        with self._lock:
            if not self._running:
                return
            if self.reconnect_attempts >= self.max_reconnect_attempts:
                log.error("Notification WebSocket: max reconnection attempts (%d) reached",
                          self.max_reconnect_attempts)
                self._running = False
                return
            self.reconnect_attempts += 1
            delay = self.reconnect_interval * self.reconnect_attempts
            timer = self._timer_factory(delay, self._reconnect)
            timer.daemon = True
            self._reconnect_timer = timer
        log.info("Reconnecting notification WebSocket in %.1fs (%d/%d)",
                 delay, self.reconnect_attempts, self.max_reconnect_attempts)
        timer.start()

    def _reconnect(self):
        with self._lock:
            self._reconnect_timer = None
            if not self._running:
                return
        self._start()
