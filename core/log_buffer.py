import os
import logging
from collections import deque
from datetime import datetime, timezone
from typing import List, Optional


class RingBufferHandler(logging.Handler):
    """
    Logging handler that keeps the most recent records in memory.

    The buffer is bounded (oldest entries are dropped first) and guarded by the
    handler lock, so it is safe to read from request threads while other
    threads log. It lives per process: entries do not survive a restart and are
    not shared between workers.
    """

    def __init__(self, capacity: int = 500, level: int = logging.NOTSET):
        super().__init__(level)
        self.capacity = max(1, int(capacity))
        self._entries = deque(maxlen=self.capacity)

    def emit(self, record: logging.LogRecord):
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return
        # handle() already holds self.lock around emit()
        self._entries.append(entry)

    def entries(self, limit: Optional[int] = None, level: Optional[str] = None) -> List[dict]:
        """Newest first, optionally filtered to a minimum level name."""
        self.acquire()
        try:
            items = list(self._entries)
        finally:
            self.release()
        if level:
            threshold = logging.getLevelName(level.upper())
            if isinstance(threshold, int):
                items = [e for e in items if logging.getLevelName(e["level"]) >= threshold]
        items.reverse()
        if limit is not None:
            items = items[:max(0, limit)]
        return items

    def clear(self):
        self.acquire()
        try:
            self._entries.clear()
        finally:
            self.release()


log_buffer = RingBufferHandler(capacity=int(os.getenv("LOG_BUFFER_SIZE", "500")))
