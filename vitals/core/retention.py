from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Iterable

from vitals.core.job_store import JobStore
from vitals.core.sync_jobs import SyncJob

log = logging.getLogger(__name__)

DEFAULT_KEEP_PER_USER = 10
DEFAULT_INTERVAL_S = 60 * 60


def select_expired_jobs(jobs: Iterable[SyncJob], *, keep_per_user: int = DEFAULT_KEEP_PER_USER) -> list[SyncJob]:
    """
    Jobs beyond the newest `keep_per_user` per user (by started_at).

    Non-terminal jobs are never selected: deleting a PENDING job would orphan its
    queued task and deleting a RUNNING one would lose live progress.
    """
    by_user: dict[int, list[SyncJob]] = defaultdict(list)
    for job in jobs:
        by_user[job.user_id].append(job)

    expired: list[SyncJob] = []
    for user_jobs in by_user.values():
        user_jobs.sort(key=lambda j: j.started_at, reverse=True)
        expired.extend(j for j in user_jobs[max(0, keep_per_user):] if j.is_terminal)
    return expired


class RetentionSweeper:
    """Periodically trims the job store to the most recent jobs per user."""

    def __init__(
        self,
        jobs: JobStore,
        *,
        keep_per_user: int = DEFAULT_KEEP_PER_USER,
        interval_s: float = DEFAULT_INTERVAL_S,
    ):
        self.jobs = jobs
        self.keep_per_user = keep_per_user
        self.interval_s = interval_s
        self._sweep_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        with self._sweep_lock:
            expired = select_expired_jobs(self.jobs.list_all(), keep_per_user=self.keep_per_user)
            removed = sum(1 for job in expired if self.jobs.delete(job.id))
        if removed:
            log.info("Removed %d old sync jobs (keeping %d per user)", removed, self.keep_per_user)
        return removed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.sweep_once()
            except Exception:
                log.exception("Sync job retention sweep failed")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="sync-job-retention", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
