"""
Local WebSocket feed for presentation clients (bell, toast, center).

On connect the client receives a full state frame; after that a new frame
is pushed whenever the store changes. Bursts of changes are coalesced into
one frame carrying the latest state.

  {"type": "state", "action": "<ActionName>|null", "state": {...}}

Frames sent by the client are ignored; the feed is read-only. Mutations go
through the HTTP routes.
"""
import json
import logging
import queue

from flask_sock import Sock
from simple_websocket import ConnectionClosed

from newflow.state import get_runtime
from newflow.store import Store

log = logging.getLogger("newflow.routes.ws")

sock = Sock()   # bound to the Flask app in agent.py

_POLL_INTERVAL = 0.5   # seconds between client-liveness checks when idle


def _frame(state, action=None) -> str:
    return json.dumps({
        "type": "state",
        "action": type(action).__name__ if action is not None else None,
        "state": state.to_dict(),
    })


def stream_state(ws, store: Store, poll_interval: float = _POLL_INTERVAL):
    """
    Push store snapshots to ``ws`` until the client goes away.

    Sends the current state first, then one frame per batch of changes.
    Returns when the socket raises ConnectionClosed; the store listener is
    removed on every exit path.
    """
    outbox: queue.Queue = queue.Queue()

    def _on_change(old, new, action):
        outbox.put((new, action))

    unsubscribe = store.subscribe(_on_change)
    log.info("Local notification feed opened")
    try:
        ws.send(_frame(store.state))
        while True:
            try:
                state, action = outbox.get(timeout=poll_interval)
            except queue.Empty:
                # receive() raises ConnectionClosed once the client is gone
                ws.receive(timeout=0)
                continue
            while True:
                try:
                    state, action = outbox.get_nowait()
                except queue.Empty:
                    break
            ws.send(_frame(state, action))
    except ConnectionClosed:
        pass
    finally:
        unsubscribe()
        log.info("Local notification feed closed")


@sock.route("/ws")
def notifications_ws(ws):
    stream_state(ws, get_runtime().store)
