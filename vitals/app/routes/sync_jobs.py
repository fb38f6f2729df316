from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from vitals.app.auth import CurrentUser, require_user
from vitals.app.schemas import EnqueueSyncOut, SyncJobOut
from vitals.core.sync_service import PortfolioSyncService

router = APIRouter(prefix="/api", tags=["sync"])


def get_sync_service(request: Request) -> PortfolioSyncService:
    return request.app.state.sync_service


@router.post(
    "/integrations/{integration_config_id}/sync",
    response_model=EnqueueSyncOut,
    status_code=status.HTTP_202_ACCEPTED,
)
def enqueue_sync(
    integration_config_id: int,
    user: CurrentUser = Depends(require_user),
    service: PortfolioSyncService = Depends(get_sync_service),
) -> EnqueueSyncOut:
    result = service.enqueue_sync(user.user_id, user.organization_id, integration_config_id)
    if not result.success:
        raise HTTPException(status_code=500, detail=f"Failed to queue sync: {result.error}")
    return EnqueueSyncOut(success=True, job_id=result.job_id)


@router.get("/sync-jobs/{job_id}", response_model=SyncJobOut)
def get_sync_job(
    job_id: str,
    user: CurrentUser = Depends(require_user),
    service: PortfolioSyncService = Depends(get_sync_service),
) -> SyncJobOut:
    job = service.get_job_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Sync job not found")
    if job.user_id != user.user_id:
        raise HTTPException(status_code=403, detail="Not allowed to view this sync job")
    return SyncJobOut.from_job(job)


@router.get("/sync-jobs", response_model=list[SyncJobOut])
def list_sync_jobs(
    user: CurrentUser = Depends(require_user),
    service: PortfolioSyncService = Depends(get_sync_service),
) -> list[SyncJobOut]:
    return [SyncJobOut.from_job(j) for j in service.list_jobs_for_user(user.user_id)]
