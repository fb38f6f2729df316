from __future__ import annotations

from vitals.core.job_store import InMemoryJobStore
from vitals.core.sync_jobs import CLIENTS, RUNNING, SyncJob


def _job(user_id: int = 1) -> SyncJob:
    return SyncJob.create(user_id=user_id, organization_id=1, integration_config_id=1)


def test_put_get_roundtrip_returns_copies():
    store = InMemoryJobStore()
    job = _job()
    store.put(job)

    job.mark_running()
    assert store.get(job.id).status == "PENDING"

    fetched = store.get(job.id)
    fetched.begin_phase(CLIENTS, 3)
    assert store.get(job.id).progress[CLIENTS].total == 0

    store.put(job)
    assert store.get(job.id).status == RUNNING


def test_get_unknown_returns_none():
    assert InMemoryJobStore().get("portfolio-sync-missing") is None


def test_list_by_user_and_delete():
    store = InMemoryJobStore()
    a1, a2, b1 = _job(1), _job(1), _job(2)
    for j in (a1, a2, b1):
        store.put(j)

    assert {j.id for j in store.list_by_user(1)} == {a1.id, a2.id}
    assert [j.id for j in store.list_by_user(2)] == [b1.id]
    assert store.list_by_user(99) == []
    assert len(store.list_all()) == 3

    assert store.delete(a1.id) is True
    assert store.delete(a1.id) is False
    assert len(store) == 2
