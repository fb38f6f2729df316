from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

log = logging.getLogger(__name__)

Task = Callable[[], None]


class SyncWorker:
    """
    Single-consumer FIFO task runner.

    enqueue() starts a worker thread when none is active; the thread drains the
    queue one task at a time and exits once it is empty. At most one task runs at
    any moment, so jobs never overlap and always start in submission order.
    """

    def __init__(self, *, name: str = "portfolio-sync-worker"):
        self.name = name
        self._tasks: deque[Task] = deque()
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._thread: threading.Thread | None = None
        self._closed = False

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._thread is not None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def _start_locked(self) -> None:
        thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        thread.start()
        self._thread = thread

    def enqueue(self, task: Task) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"{self.name} is shut down; not accepting new tasks")
            self._tasks.append(task)
            if self._thread is None:
                try:
                    self._start_locked()
                except RuntimeError:
                    self._tasks.pop()
                    raise

    def _run(self) -> None:
        current = threading.current_thread()
        try:
            while True:
                with self._lock:
                    if not self._tasks:
                        self._thread = None
                        self._changed.notify_all()
                        return
                    task = self._tasks.popleft()
                try:
                    task()
                except Exception:
                    log.exception("Sync task failed; continuing with next task")
        finally:
            with self._lock:
                # Still registered means a BaseException escaped a task.
                if self._thread is current:
                    self._thread = None
                    if self._tasks:
                        try:
                            self._start_locked()
                        except RuntimeError:
                            log.exception(
                                "Could not restart %s; %d tasks wait for the next enqueue", self.name, len(self._tasks)
                            )
                    self._changed.notify_all()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: self._thread is None and not self._tasks, timeout=timeout)

    def shutdown(self, *, wait: bool = True, timeout: float | None = None) -> bool:
        """Stop accepting tasks; queued tasks still run. Returns False if the wait timed out."""
        with self._lock:
            self._closed = True
        if not wait:
            return True
        return self.wait_until_idle(timeout)
