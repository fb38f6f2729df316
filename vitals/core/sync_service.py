from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from vitals.adapters.orion.adapter import OrionPortfolioAdapter
from vitals.adapters.orion.client import OrionClient
from vitals.core import settings
from vitals.core.job_queue import SyncWorker
from vitals.core.job_store import InMemoryJobStore, JobStore
from vitals.core.record_store import RecordStore, SqlRecordStore
from vitals.core.retention import RetentionSweeper
from vitals.core.sync_jobs import SyncJob
from vitals.core.sync_orchestrator import SyncOrchestrator
from vitals.importers.adapters import PortfolioAdapter, PortfolioFixtureAdapter

log = logging.getLogger(__name__)


class SyncConfigError(Exception):
    pass


@dataclass(frozen=True)
class EnqueueResult:
    success: bool
    job_id: str = ""
    error: Optional[str] = None


class PortfolioSyncService:
    """
    Entry point used by request handlers: queue a sync, poll its job record.

    Jobs run one at a time on a background worker; the retention sweeper trims
    old job records once start() has been called.
    """

    def __init__(
        self,
        *,
        adapter: PortfolioAdapter,
        records: RecordStore,
        jobs: JobStore | None = None,
        worker: SyncWorker | None = None,
        sweeper: RetentionSweeper | None = None,
    ):
        self.jobs = jobs if jobs is not None else InMemoryJobStore()
        self.worker = worker if worker is not None else SyncWorker()
        self.sweeper = sweeper if sweeper is not None else RetentionSweeper(self.jobs)
        self.orchestrator = SyncOrchestrator(adapter=adapter, records=records, jobs=self.jobs)

    def enqueue_sync(self, user_id: int, organization_id: int, integration_config_id: int) -> EnqueueResult:
        try:
            job = SyncJob.create(
                user_id=user_id,
                organization_id=organization_id,
                integration_config_id=integration_config_id,
            )
            self.jobs.put(job)
            job_id = job.id
            try:
                self.worker.enqueue(lambda: self.orchestrator.run(job_id))
            except Exception:
                self.jobs.delete(job_id)
                raise
        except Exception as e:
            log.exception("Error queueing portfolio sync for user=%s org=%s", user_id, organization_id)
            return EnqueueResult(success=False, error=str(e) or type(e).__name__)
        log.info("Queued portfolio sync %s (config=%s)", job_id, integration_config_id)
        return EnqueueResult(success=True, job_id=job_id)

    def get_job_status(self, job_id: str) -> SyncJob | None:
        return self.jobs.get(job_id)

    def list_jobs_for_user(self, user_id: int) -> list[SyncJob]:
        jobs = self.jobs.list_by_user(user_id)
        jobs.sort(key=lambda j: j.started_at, reverse=True)
        return jobs

    def start(self) -> None:
        self.sweeper.start()

    def shutdown(self, *, wait: bool = True, timeout: float | None = None) -> bool:
        """Stop the sweeper, then drain the worker; `timeout` bounds both together."""
        deadline = None if timeout is None else time.monotonic() + timeout
        self.sweeper.stop(timeout)
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        return self.worker.shutdown(wait=wait, timeout=remaining)


def adapter_from_env(session_factory: Callable[[], Session]) -> PortfolioAdapter:
    fixture_dir = settings.portfolio_fixture_dir()
    if fixture_dir:
        if not Path(fixture_dir).is_dir():
            raise SyncConfigError(f"PORTFOLIO_FIXTURE_DIR does not exist: {fixture_dir}")
        return PortfolioFixtureAdapter(fixture_dir)
    return OrionPortfolioAdapter(client=OrionClient(), session_factory=session_factory)


def build_default_service(session_factory: Callable[[], Session] | None = None) -> PortfolioSyncService:
    if session_factory is None:
        from vitals.db.session import get_session_factory

        session_factory = get_session_factory()
    jobs = InMemoryJobStore()
    return PortfolioSyncService(
        adapter=adapter_from_env(session_factory),
        records=SqlRecordStore(session_factory),
        jobs=jobs,
        sweeper=RetentionSweeper(
            jobs,
            keep_per_user=settings.retention_keep_per_user(),
            interval_s=settings.retention_interval_s(),
        ),
    )
