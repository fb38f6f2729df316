"""Sync job payloads."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from vitals.core.sync_jobs import SyncJob


class EntityProgressOut(BaseModel):
    total: int = 0
    processed: int = 0
    failed: int = 0


class SyncJobOut(BaseModel):
    id: str
    user_id: int
    organization_id: int
    integration_config_id: int
    status: str = Field(..., description="PENDING|RUNNING|COMPLETED|FAILED")
    progress: dict[str, EntityProgressOut]
    started_at: dt.datetime
    completed_at: Optional[dt.datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: SyncJob) -> "SyncJobOut":
        return cls(
            id=job.id,
            user_id=job.user_id,
            organization_id=job.organization_id,
            integration_config_id=job.integration_config_id,
            status=job.status,
            progress={kind: EntityProgressOut(**p.to_dict()) for kind, p in job.progress.items()},
            started_at=job.started_at,
            completed_at=job.completed_at,
            error=job.error,
        )


class EnqueueSyncOut(BaseModel):
    success: bool
    job_id: str
