from __future__ import annotations

import threading
from typing import Any

from vitals.core.record_mapping import RecordError, map_client_record
from vitals.core.record_store import PersistedClient, RecordStore, StoreResult
from vitals.importers.adapters import PortfolioAdapter, ProviderResult


class FakeAdapter(PortfolioAdapter):
    def __init__(
        self,
        *,
        clients: list[dict] | None = None,
        accounts: list[dict] | None = None,
        history: dict[str, list[dict]] | None = None,
        token: str | None = "tok",
        clients_error: str | None = None,
        accounts_error: str | None = None,
        history_errors: set[str] | None = None,
    ):
        self.clients = clients or []
        self.accounts = accounts or []
        self.history = history or {}
        self.token = token
        self.clients_error = clients_error
        self.accounts_error = accounts_error
        self.history_errors = history_errors or set()
        self.calls: list[tuple] = []

    def resolve_auth_token(self, user_id, organization_id, integration_config_id):
        self.calls.append(("token", user_id, organization_id, integration_config_id))
        return self.token

    def list_clients(self, token):
        self.calls.append(("clients", token))
        if self.clients_error:
            return ProviderResult.fail(self.clients_error)
        return ProviderResult.ok(list(self.clients))

    def list_accounts(self, token):
        self.calls.append(("accounts", token))
        if self.accounts_error:
            return ProviderResult.fail(self.accounts_error)
        return ProviderResult.ok(list(self.accounts))

    def fetch_valuation_history(self, token, external_client_id):
        self.calls.append(("history", token, external_client_id))
        if external_client_id in self.history_errors:
            return ProviderResult.fail(f"history unavailable for {external_client_id}")
        return ProviderResult.ok(list(self.history.get(external_client_id, [])))


class GatedAdapter(FakeAdapter):
    """Blocks list_clients for the first job until `release` is set."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()
        self._gated_once = False

    def list_clients(self, token):
        if not self._gated_once:
            self._gated_once = True
            self.entered.set()
            self.release.wait(5)
        return super().list_clients(token)


class FakeRecordStore(RecordStore):
    """In-memory store that validates clients with the same mapper as SqlRecordStore."""

    def __init__(self, *, fail_client_ids: set[str] | None = None, fail_account_ids: set[str] | None = None):
        self.clients: dict[int, dict] = {}
        self.accounts: dict[str, dict] = {}
        self.history: dict[str, list] = {}
        self.fail_client_ids = fail_client_ids or set()
        self.fail_account_ids = fail_account_ids or set()
        self._next_id = 1

    def upsert_client(self, record, integration_config_id, organization_id, user_id):
        try:
            ext = map_client_record(record)["external_id"]
        except RecordError as e:
            return StoreResult.fail(str(e))
        if ext in self.fail_client_ids:
            return StoreResult.fail(f"cannot store client {ext}")
        for internal_id, row in self.clients.items():
            if row["external_id"] == ext and row["organization_id"] == organization_id:
                row["record"] = record
                return StoreResult(success=True, internal_id=internal_id)
        internal_id = self._next_id
        self._next_id += 1
        self.clients[internal_id] = {"external_id": ext, "organization_id": organization_id, "record": record}
        return StoreResult(success=True, internal_id=internal_id)

    def upsert_account(self, record, internal_client_id, integration_config_id):
        ext = str(record.get("id"))
        if ext in self.fail_account_ids:
            raise RuntimeError(f"account {ext} exploded")
        self.accounts[ext] = {"client_id": internal_client_id, "record": record}
        return StoreResult(success=True, internal_id=len(self.accounts))

    def bulk_store_valuation_history(self, points, integration_config_id, *, external_client_id):
        self.history.setdefault(external_client_id, []).extend(points)
        return StoreResult(success=True, inserted_count=len(points))

    def find_client_by_external_id(self, external_id, *, organization_id):
        for internal_id, row in self.clients.items():
            if row["external_id"] == str(external_id) and row["organization_id"] == organization_id:
                return internal_id
        return None

    def list_synced_clients(self, organization_id):
        return [
            PersistedClient(internal_id=internal_id, external_id=row["external_id"])
            for internal_id, row in self.clients.items()
            if row["organization_id"] == organization_id and row["external_id"]
        ]
