from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vitals.core.record_mapping import (
    RecordError,
    map_account_record,
    map_client_record,
    map_valuation_points,
)
from vitals.db.models import AumHistoryPoint, Client, PortfolioAccount
from vitals.utils.time import utcnow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResult:
    success: bool
    internal_id: int | None = None
    inserted_count: int = 0
    error: str | None = None

    @classmethod
    def fail(cls, error: str) -> "StoreResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class PersistedClient:
    internal_id: int
    external_id: str


class RecordStore(ABC):
    @abstractmethod
    def upsert_client(
        self, record: dict[str, Any], integration_config_id: int, organization_id: int, user_id: int
    ) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    def upsert_account(self, record: dict[str, Any], internal_client_id: int, integration_config_id: int) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    def bulk_store_valuation_history(
        self, points: Any, integration_config_id: int, *, external_client_id: str
    ) -> StoreResult:
        raise NotImplementedError

    @abstractmethod
    def find_client_by_external_id(self, external_id: str, *, organization_id: int) -> int | None:
        raise NotImplementedError

    @abstractmethod
    def list_synced_clients(self, organization_id: int) -> list[PersistedClient]:
        """Persisted clients of the organization that carry an external id."""
        raise NotImplementedError


class SqlRecordStore(RecordStore):
    """
    SQLAlchemy-backed store. Each call runs in its own short session so a failed
    record never leaves a poisoned transaction behind for the next one.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _write(self, what: str, fn: Callable[[Session], StoreResult]) -> StoreResult:
        with self._session_factory() as session:
            try:
                result = fn(session)
                session.commit()
                return result
            except RecordError as e:
                session.rollback()
                return StoreResult.fail(str(e))
            except SQLAlchemyError as e:
                session.rollback()
                log.warning("Failed to store %s: %s", what, type(e).__name__)
                return StoreResult.fail(f"{what}: {type(e).__name__}: {e}")

    def upsert_client(
        self, record: dict[str, Any], integration_config_id: int, organization_id: int, user_id: int
    ) -> StoreResult:
        def _do(session: Session) -> StoreResult:
            mapped = map_client_record(record)
            row = (
                session.query(Client)
                .filter(Client.organization_id == organization_id, Client.external_id == mapped["external_id"])
                .one_or_none()
            )
            now = utcnow()
            if row is None:
                row = Client(
                    organization_id=organization_id,
                    primary_advisor_id=user_id,
                    integration_config_id=integration_config_id,
                    source="orion",
                    created_at=now,
                    **mapped,
                )
                session.add(row)
            else:
                for k, v in mapped.items():
                    setattr(row, k, v)
                row.integration_config_id = integration_config_id
            row.raw_json = record
            row.updated_at = now
            session.flush()
            return StoreResult(success=True, internal_id=row.id)

        return self._write("client", _do)

    def upsert_account(self, record: dict[str, Any], internal_client_id: int, integration_config_id: int) -> StoreResult:
        def _do(session: Session) -> StoreResult:
            mapped = map_account_record(record)
            if session.get(Client, internal_client_id) is None:
                raise RecordError(f"client {internal_client_id} does not exist")
            row = (
                session.query(PortfolioAccount)
                .filter(
                    PortfolioAccount.integration_config_id == integration_config_id,
                    PortfolioAccount.external_id == mapped["external_id"],
                )
                .one_or_none()
            )
            if row is None:
                row = PortfolioAccount(
                    client_id=internal_client_id,
                    integration_config_id=integration_config_id,
                    **mapped,
                )
                session.add(row)
            else:
                for k, v in mapped.items():
                    setattr(row, k, v)
                row.client_id = internal_client_id
            row.raw_json = record
            row.last_synced_at = utcnow()
            session.flush()
            return StoreResult(success=True, internal_id=row.id)

        return self._write("account", _do)

    def bulk_store_valuation_history(
        self, points: Any, integration_config_id: int, *, external_client_id: str
    ) -> StoreResult:
        def _do(session: Session) -> StoreResult:
            rows = map_valuation_points(points, external_client_id=external_client_id)
            inserted = 0
            now = utcnow()
            for r in rows:
                existing = (
                    session.query(AumHistoryPoint)
                    .filter(
                        AumHistoryPoint.integration_config_id == integration_config_id,
                        AumHistoryPoint.external_entity_id == r["external_entity_id"],
                        AumHistoryPoint.as_of_date == r["as_of_date"],
                    )
                    .one_or_none()
                )
                if existing is None:
                    session.add(
                        AumHistoryPoint(integration_config_id=integration_config_id, created_at=now, updated_at=now, **r)
                    )
                    inserted += 1
                else:
                    existing.value = r["value"]
                    existing.currency = r["currency"]
                    existing.raw_json = r["raw_json"]
                    existing.updated_at = now
            return StoreResult(success=True, inserted_count=inserted)

        return self._write("AUM history", _do)

    def find_client_by_external_id(self, external_id: str, *, organization_id: int) -> int | None:
        if not external_id:
            return None
        with self._session_factory() as session:
            row = (
                session.query(Client.id)
                .filter(Client.organization_id == organization_id, Client.external_id == str(external_id))
                .first()
            )
            return int(row[0]) if row is not None else None

    def list_synced_clients(self, organization_id: int) -> list[PersistedClient]:
        with self._session_factory() as session:
            rows = (
                session.query(Client.id, Client.external_id)
                .filter(Client.organization_id == organization_id, Client.external_id.is_not(None))
                .order_by(Client.id)
                .all()
            )
            return [PersistedClient(internal_id=int(r[0]), external_id=str(r[1])) for r in rows if r[1]]
