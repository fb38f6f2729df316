from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from vitals.core.sync_jobs import SyncJob


class JobStore(ABC):
    @abstractmethod
    def put(self, job: SyncJob) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, job_id: str) -> SyncJob | None:
        raise NotImplementedError

    @abstractmethod
    def list_by_user(self, user_id: int) -> list[SyncJob]:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[SyncJob]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    """
    Process-local registry of sync jobs. Lost on restart.

    Stores and returns snapshots, so a poller never observes a record while the
    worker is halfway through updating it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, SyncJob] = {}

    def put(self, job: SyncJob) -> None:
        snap = job.snapshot()
        with self._lock:
            self._jobs[snap.id] = snap

    def get(self, job_id: str) -> SyncJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.snapshot() if job is not None else None

    def list_by_user(self, user_id: int) -> list[SyncJob]:
        with self._lock:
            return [j.snapshot() for j in self._jobs.values() if j.user_id == user_id]

    def list_all(self) -> list[SyncJob]:
        with self._lock:
            return [j.snapshot() for j in self._jobs.values()]

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
