from __future__ import annotations

import copy
import datetime as dt
import itertools
from dataclasses import dataclass, field
from typing import Any, Optional

from vitals.utils.time import isoformat_or_none, utcnow

PENDING = "PENDING"
RUNNING = "RUNNING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})

_ALLOWED_TRANSITIONS = {
    PENDING: frozenset({RUNNING}),
    RUNNING: frozenset({COMPLETED, FAILED}),
    COMPLETED: frozenset(),
    FAILED: frozenset(),
}

CLIENTS = "clients"
ACCOUNTS = "accounts"
AUM_HISTORY = "aum_history"
ENTITY_KINDS = (CLIENTS, ACCOUNTS, AUM_HISTORY)

_ID_SEQ = itertools.count(1)


class InvalidTransitionError(Exception):
    pass


@dataclass
class EntityProgress:
    total: int = 0
    processed: int = 0
    failed: int = 0

    @property
    def done(self) -> int:
        return self.processed + self.failed

    def _check_room(self) -> None:
        if self.done >= self.total:
            raise ValueError(f"progress already at total ({self.done}/{self.total})")

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "processed": self.processed, "failed": self.failed}


def _empty_progress() -> dict[str, EntityProgress]:
    return {kind: EntityProgress() for kind in ENTITY_KINDS}


def new_job_id(user_id: int, organization_id: int, created_at: dt.datetime) -> str:
    ms = int(created_at.timestamp() * 1000)
    return f"portfolio-sync-{user_id}-{organization_id}-{ms}-{next(_ID_SEQ)}"


@dataclass
class SyncJob:
    """
    Tracked state of one portfolio sync run.

    Status only moves forward: PENDING -> RUNNING -> COMPLETED | FAILED.
    completed_at is set exactly when the status becomes terminal; error only on FAILED.
    """

    id: str
    user_id: int
    organization_id: int
    integration_config_id: int
    status: str = PENDING
    progress: dict[str, EntityProgress] = field(default_factory=_empty_progress)
    started_at: dt.datetime = field(default_factory=utcnow)
    completed_at: Optional[dt.datetime] = None
    error: Optional[str] = None

    @classmethod
    def create(cls, *, user_id: int, organization_id: int, integration_config_id: int, now: dt.datetime | None = None) -> "SyncJob":
        started = now or utcnow()
        return cls(
            id=new_job_id(user_id, organization_id, started),
            user_id=user_id,
            organization_id=organization_id,
            integration_config_id=integration_config_id,
            started_at=started,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, target: str) -> None:
        if target not in _ALLOWED_TRANSITIONS.get(self.status, frozenset()):
            raise InvalidTransitionError(f"job {self.id}: {self.status} -> {target} is not allowed")
        self.status = target

    def mark_running(self) -> None:
        self._transition(RUNNING)

    def mark_completed(self, now: dt.datetime | None = None) -> None:
        self._transition(COMPLETED)
        self.completed_at = now or utcnow()

    def mark_failed(self, error: str, now: dt.datetime | None = None) -> None:
        self._transition(FAILED)
        self.error = error or "Unknown error"
        self.completed_at = now or utcnow()

    def begin_phase(self, kind: str, total: int) -> None:
        p = self.progress[kind]
        if p.total or p.done:
            raise ValueError(f"job {self.id}: phase {kind} already started")
        p.total = max(0, int(total))

    def record_processed(self, kind: str) -> None:
        p = self.progress[kind]
        p._check_room()
        p.processed += 1

    def record_failed(self, kind: str) -> None:
        p = self.progress[kind]
        p._check_room()
        p.failed += 1

    def snapshot(self) -> "SyncJob":
        return copy.deepcopy(self)

    def summary(self) -> dict[str, str]:
        return {
            kind: f"{p.processed}/{p.total} ({p.failed} failed)" for kind, p in self.progress.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "integration_config_id": self.integration_config_id,
            "status": self.status,
            "progress": {kind: p.to_dict() for kind, p in self.progress.items()},
            "started_at": isoformat_or_none(self.started_at),
            "completed_at": isoformat_or_none(self.completed_at),
            "error": self.error,
        }
