"""
Recent-log ring buffer backing GET /logs.

A logging.Handler on the root logger copies each record into a bounded,
thread-safe deque as a plain dict.
"""
import logging
import threading
from collections import deque

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


class RingBufferHandler(logging.Handler):
    def __init__(self, capacity: int = 1000):
        super().__init__()
        self._entries: deque = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "ts": record.created,
                "name": record.name,
                "level": record.levelname,
                "levelno": record.levelno,
                "message": self.format(record),
            }
            with self._entries_lock:
                self._entries.append(entry)
        except Exception:
            self.handleError(record)

    def recent(self, limit: int = 200, min_level: int = logging.NOTSET) -> list[dict]:
        """Last ``limit`` entries at or above ``min_level``, oldest first."""
        with self._entries_lock:
            entries = [e for e in self._entries if e["levelno"] >= min_level]
        if limit <= 0:
            return []
        return [{k: v for k, v in e.items() if k != "levelno"} for e in entries[-limit:]]

    def clear(self):
        with self._entries_lock:
            self._entries.clear()


_handler: RingBufferHandler | None = None
_install_lock = threading.Lock()


def install_log_handler(capacity: int = 1000) -> RingBufferHandler:
    """Attach the ring buffer to the root logger once; later calls return it."""
    global _handler
    with _install_lock:
        if _handler is None:
            _handler = RingBufferHandler(capacity)
            logging.getLogger().addHandler(_handler)
        return _handler


def get_recent_logs(limit: int = 200, level: str = "") -> list[dict]:
    if _handler is None:
        return []
    min_level = logging.getLevelName(level.upper()) if level else logging.NOTSET
    if not isinstance(min_level, int):
        min_level = logging.NOTSET
    return _handler.recent(limit, min_level)
