import os
import threading
import time
from collections import deque


class EventLogger:
    """Append-only, line numbered log file.

    Used for the per task logs of background jobs and for the cluster event
    log. Recent lines are kept in memory so the API can page through them
    without re-reading the file; :meth:`sync` picks up lines appended by
    other processes.
    """

    def __init__(self, log_path: str, *, max_events: int = 5000, timestamps: bool = True) -> None:
        self.log_path = log_path
        self.timestamps = timestamps
        self._lock = threading.Lock()
        self._events: deque[str] = deque(maxlen=max_events)
        self._dropped = 0
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        self._fp = open(log_path, "a+", encoding="utf-8")
        self._fp.seek(0)
        for line in self._fp:
            self._append(line.rstrip("\n"))
        self._read_pos = self._fp.tell()

    def _append(self, entry: str) -> None:
        if len(self._events) == self._events.maxlen:
            self._dropped += 1
        self._events.append(entry)

    def close(self) -> None:
        with self._lock:
            if not self._fp.closed:
                self._fp.close()

    def log(self, message: str) -> None:
        """Append ``message``; multi line messages become several entries."""
        prefix = ""
        if self.timestamps:
            prefix = time.strftime("[%Y-%m-%d %H:%M:%S] ", time.localtime())
        with self._lock:
            self._consume()
            for line in str(message).rstrip("\n").split("\n"):
                entry = prefix + line
                self._fp.write(entry + "\n")
                self._append(entry)
            self._fp.flush()
            self._read_pos = self._fp.tell()

    def _consume(self) -> None:
        self._fp.flush()
        self._fp.seek(self._read_pos)
        for line in self._fp:
            self._append(line.rstrip("\n"))
        self._read_pos = self._fp.tell()

    def sync(self) -> None:
        """Read any lines written by other processes."""
        with self._lock:
            self._consume()

    def get_events(self, offset: int = 0, limit: int | None = None) -> list[dict]:
        """Return ``{"n": line_number, "t": text}`` entries starting at ``offset``."""
        with self._lock:
            entries = list(self._events)
            first = self._dropped
        offset = max(offset, first)
        end = offset + limit if limit is not None else None
        start_idx = offset - first
        end_idx = end - first if end is not None else None
        return [
            {"n": first + i + 1, "t": text}
            for i, text in enumerate(entries[start_idx:end_idx], start=start_idx)
        ]
