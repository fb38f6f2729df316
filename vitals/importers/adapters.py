from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any


class ProviderError(Exception):
    pass


@dataclass(frozen=True)
class ProviderResult:
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> "ProviderResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ProviderResult":
        return cls(success=False, error=error)


class PortfolioAdapter(ABC):
    """
    Read side of a portfolio-accounting platform (clients, accounts, AUM history).

    Fetch methods never raise for provider problems; they report them through
    ProviderResult so callers can decide what is fatal.
    """

    @abstractmethod
    def resolve_auth_token(self, user_id: int, organization_id: int, integration_config_id: int) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def list_clients(self, token: str) -> ProviderResult:
        raise NotImplementedError

    @abstractmethod
    def list_accounts(self, token: str) -> ProviderResult:
        raise NotImplementedError

    @abstractmethod
    def fetch_valuation_history(self, token: str, external_client_id: str) -> ProviderResult:
        raise NotImplementedError


class PortfolioFixtureAdapter(PortfolioAdapter):
    """
    Local-only adapter used for development/tests without network.

    Reads from a fixture directory:
      - token.txt: auth token returned for every user (optional, defaults to "fixture")
      - clients.json: list[dict]
      - accounts.json: list[dict]
      - aum/<external_client_id>.json: list[dict] of {asOfDate, value}
    A missing clients.json/accounts.json is reported as a provider failure.
    """

    def __init__(self, fixture_dir: str | Path):
        self.fixture_dir = Path(fixture_dir)

    def _read_json(self, rel: str) -> ProviderResult:
        p = self.fixture_dir / rel
        if not p.exists():
            return ProviderResult.fail(f"fixture not found: {rel}")
        try:
            return ProviderResult.ok(json.loads(p.read_text()))
        except (OSError, json.JSONDecodeError) as e:
            return ProviderResult.fail(f"fixture unreadable: {rel}: {type(e).__name__}")

    def resolve_auth_token(self, user_id: int, organization_id: int, integration_config_id: int) -> str | None:
        p = self.fixture_dir / "token.txt"
        if p.exists():
            return p.read_text().strip() or None
        return "fixture"

    def list_clients(self, token: str) -> ProviderResult:
        return self._read_json("clients.json")

    def list_accounts(self, token: str) -> ProviderResult:
        return self._read_json("accounts.json")

    def fetch_valuation_history(self, token: str, external_client_id: str) -> ProviderResult:
        return self._read_json(f"aum/{external_client_id}.json")
