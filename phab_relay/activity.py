"""Append-only daily activity log.

Lines look like ``<category> -> <message>`` and go to
``phab-relay.YYYY-MM-DD.log``; error entries go to the parallel
``error.phab-relay.YYYY-MM-DD.log`` series. The reporting script reads these
files, so the naming and line format are an external contract.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

LOG_NAME = "phab-relay"
ERROR_PREFIX = "error."
DEFAULT_QUEUE_SIZE = 1024

logger = logging.getLogger("phab-relay")


def log_filename(day: date, prefix: str = "") -> str:
    return f"{prefix}{LOG_NAME}.{day:%Y-%m-%d}.log"


class ActivityLog:
    def __init__(
        self,
        log_dir: str | Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.log_dir = Path(log_dir)
        self._clock = clock
        # one writer at a time, shared by every caller in the process
        self._write_lock = threading.Lock()
        self._queue: queue.Queue[tuple[str, str, str] | None] = queue.Queue(maxsize=queue_size)
        self._worker: threading.Thread | None = None
        self._worker_lock = threading.Lock()

    def path_for(self, day: datetime, prefix: str = "") -> Path:
        return self.log_dir / log_filename(day, prefix)

    def append(self, category: str, message: str, *, prefix: str = "") -> bool:
        path = self.path_for(self._clock(), prefix)
        with self._write_lock:
            try:
                with path.open("a", encoding="utf-8") as fh:
                    fh.write(f"{category} -> {message}\n")
            except OSError as exc:
                logger.warning("unable to access activity log path=%s err=%s", path, exc)
                return False
        return True

    def append_error(self, message: str) -> bool:
        category = self._clock().strftime("%Y-%m-%d %H:%M:%S") + " [ERROR] "
        return self.append(category, message, prefix=ERROR_PREFIX)

    def submit(self, category: str, message: str, *, prefix: str = "") -> bool:
        """Queue a write for the background worker; never blocks the caller."""
        self._ensure_worker()
        try:
            self._queue.put_nowait((category, message, prefix))
        except queue.Full:
            logger.warning("activity queue full; dropped line category=%s", category)
            return False
        return True

    def submit_error(self, message: str) -> bool:
        category = self._clock().strftime("%Y-%m-%d %H:%M:%S") + " [ERROR] "
        return self.submit(category, message, prefix=ERROR_PREFIX)

    def flush(self) -> None:
        """Block until every queued write has been attempted."""
        self._queue.join()

    def close(self, *, drain: bool = True, timeout: float | None = 5.0) -> None:
        with self._worker_lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        # the worker exits after writing everything queued ahead of the sentinel
        self._queue.put(None)
        if drain:
            worker.join(timeout)

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._drain, name="activity-log", daemon=True)
            self._worker.start()

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                category, message, prefix = item
                self.append(category, message, prefix=prefix)
            finally:
                self._queue.task_done()


class ActivityErrorHandler(logging.Handler):
    """Mirror ERROR records into the error-prefixed daily files."""

    def __init__(self, activity: ActivityLog, level: int = logging.ERROR) -> None:
        super().__init__(level)
        self.activity = activity
        # message only: the error category already carries the timestamp
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.activity.submit_error(self.format(record))
        except Exception:
            self.handleError(record)
