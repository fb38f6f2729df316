from __future__ import annotations

import logging
from typing import Any

from vitals.core.job_store import JobStore
from vitals.core.record_mapping import external_client_id_of, external_id_of
from vitals.core.record_store import RecordStore
from vitals.core.sync_jobs import ACCOUNTS, AUM_HISTORY, CLIENTS, SyncJob
from vitals.importers.adapters import PortfolioAdapter, ProviderResult

log = logging.getLogger(__name__)


class SyncPhaseError(Exception):
    """A phase could not obtain its source list; the whole job fails."""


def _source_list(result: ProviderResult, what: str) -> list[Any]:
    if not result.success or result.data is None:
        raise SyncPhaseError(f"Failed to fetch {what}: {result.error or 'no data'}")
    return result.data if isinstance(result.data, list) else []


class SyncOrchestrator:
    """
    Runs one initial portfolio sync: clients, then accounts, then AUM history.

    Phases are strictly sequential because accounts link to clients stored in the
    first phase and AUM history is fetched per stored client. A failing record only
    bumps its phase's `failed` counter; a failing list fetch fails the job.
    """

    def __init__(self, *, adapter: PortfolioAdapter, records: RecordStore, jobs: JobStore):
        self.adapter = adapter
        self.records = records
        self.jobs = jobs

    def _save(self, job: SyncJob) -> None:
        self.jobs.put(job)

    def run(self, job_id: str) -> None:
        job = self.jobs.get(job_id)
        if job is None:
            log.error("Sync job %s not found", job_id)
            return

        log.info("[%s] Starting portfolio sync", job.id)
        job.mark_running()
        self._save(job)

        try:
            token = self.adapter.resolve_auth_token(job.user_id, job.organization_id, job.integration_config_id)
            if not token:
                raise SyncPhaseError("portfolio auth token not found")

            log.info("[%s] Syncing clients...", job.id)
            self._sync_clients(job, token)
            log.info("[%s] Syncing accounts...", job.id)
            self._sync_accounts(job, token)
            log.info("[%s] Syncing AUM history...", job.id)
            self._sync_aum_history(job, token)
        except Exception as e:
            log.exception("[%s] Portfolio sync failed", job.id)
            job.mark_failed(str(e) or type(e).__name__)
            self._save(job)
            return

        job.mark_completed()
        self._save(job)
        log.info("[%s] Portfolio sync completed: %s", job.id, job.summary())

    def _sync_clients(self, job: SyncJob, token: str) -> None:
        clients = _source_list(self.adapter.list_clients(token), "clients")
        job.begin_phase(CLIENTS, len(clients))
        self._save(job)
        log.info("[%s] Found %d clients to sync", job.id, len(clients))

        for record in clients:
            ext_id = external_id_of(record) if isinstance(record, dict) else ""
            try:
                result = self.records.upsert_client(
                    record, job.integration_config_id, job.organization_id, job.user_id
                )
                ok = result.success
                if not ok:
                    log.error("[%s] Failed to store client %s: %s", job.id, ext_id, result.error)
            except Exception:
                log.exception("[%s] Error processing client %s", job.id, ext_id)
                ok = False
            if ok:
                job.record_processed(CLIENTS)
            else:
                job.record_failed(CLIENTS)
            self._save(job)

    def _sync_accounts(self, job: SyncJob, token: str) -> None:
        accounts = _source_list(self.adapter.list_accounts(token), "accounts")
        job.begin_phase(ACCOUNTS, len(accounts))
        self._save(job)
        log.info("[%s] Found %d accounts to sync", job.id, len(accounts))

        for record in accounts:
            ext_id = external_id_of(record) if isinstance(record, dict) else ""
            try:
                ok = self._sync_account(job, record, ext_id)
            except Exception:
                log.exception("[%s] Error processing account %s", job.id, ext_id)
                ok = False
            if ok:
                job.record_processed(ACCOUNTS)
            else:
                job.record_failed(ACCOUNTS)
            self._save(job)

    def _sync_account(self, job: SyncJob, record: Any, ext_id: str) -> bool:
        client_ext_id = external_client_id_of(record) if isinstance(record, dict) else ""
        internal_client_id = (
            self.records.find_client_by_external_id(client_ext_id, organization_id=job.organization_id)
            if client_ext_id
            else None
        )
        if internal_client_id is None:
            log.warning(
                "[%s] No client found for account %s with client ID %s", job.id, ext_id, client_ext_id or "-"
            )
            return False
        result = self.records.upsert_account(record, internal_client_id, job.integration_config_id)
        if not result.success:
            log.error("[%s] Failed to store account %s: %s", job.id, ext_id, result.error)
        return result.success

    def _sync_aum_history(self, job: SyncJob, token: str) -> None:
        clients = self.records.list_synced_clients(job.organization_id)
        job.begin_phase(AUM_HISTORY, len(clients))
        self._save(job)
        log.info("[%s] Found %d clients for AUM history sync", job.id, len(clients))

        for client in clients:
            try:
                ok = self._sync_client_history(job, token, client.external_id)
            except Exception:
                log.exception("[%s] Error processing AUM history for client %s", job.id, client.external_id)
                ok = False
            if ok:
                job.record_processed(AUM_HISTORY)
            else:
                job.record_failed(AUM_HISTORY)
            self._save(job)

    def _sync_client_history(self, job: SyncJob, token: str, external_client_id: str) -> bool:
        fetched = self.adapter.fetch_valuation_history(token, external_client_id)
        if not fetched.success or fetched.data is None:
            log.warning("[%s] Failed to fetch AUM for client %s: %s", job.id, external_client_id, fetched.error)
            return False
        stored = self.records.bulk_store_valuation_history(
            fetched.data, job.integration_config_id, external_client_id=external_client_id
        )
        if not stored.success:
            log.error("[%s] Failed to store AUM history for client %s: %s", job.id, external_client_id, stored.error)
            return False
        log.info("[%s] Stored %d AUM records for client %s", job.id, stored.inserted_count, external_client_id)
        return True
