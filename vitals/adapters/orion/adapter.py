from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from vitals.adapters.orion.client import OrionClient
from vitals.core.credential_store import ACCESS_TOKEN_KEY, CredentialError, get_credential
from vitals.importers.adapters import PortfolioAdapter, ProviderError, ProviderResult

log = logging.getLogger(__name__)


class OrionPortfolioAdapter(PortfolioAdapter):
    """
    Orion-backed adapter. Access tokens are the per-advisor tokens stored through
    the credential store, looked up by (user, organization, integration config).
    """

    def __init__(self, *, client: OrionClient, session_factory: Callable[[], Session]):
        self.client = client
        self._session_factory = session_factory

    def resolve_auth_token(self, user_id: int, organization_id: int, integration_config_id: int) -> str | None:
        with self._session_factory() as session:
            try:
                return get_credential(
                    session,
                    user_id=user_id,
                    organization_id=organization_id,
                    integration_config_id=integration_config_id,
                    key=ACCESS_TOKEN_KEY,
                )
            except CredentialError as e:
                log.warning("Orion token unavailable for user=%s config=%s: %s", user_id, integration_config_id, e)
                return None

    def list_clients(self, token: str) -> ProviderResult:
        try:
            return ProviderResult.ok(self.client.portfolio_clients(token=token))
        except ProviderError as e:
            return ProviderResult.fail(str(e))

    def list_accounts(self, token: str) -> ProviderResult:
        try:
            return ProviderResult.ok(self.client.portfolio_accounts(token=token))
        except ProviderError as e:
            return ProviderResult.fail(str(e))

    def fetch_valuation_history(self, token: str, external_client_id: str) -> ProviderResult:
        try:
            return ProviderResult.ok(self.client.aum_over_time(token=token, client_id=external_client_id))
        except ProviderError as e:
            return ProviderResult.fail(str(e))
