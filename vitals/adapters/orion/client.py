from __future__ import annotations

import json
import os
import urllib.parse
from typing import Any

from vitals.core.net import assert_url_allowed, http_request, network_enabled
from vitals.importers.adapters import ProviderError

DEFAULT_BASE_URL = "https://api.orionadvisor.com/api/v1"


class OrionClient:
    """
    Minimal Orion Portfolio API wrapper using the shared network allowlist + retry logic.

    Only read endpoints needed for the initial client/account/AUM sync are covered.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout_s: float = 45.0,
    ) -> None:
        self.base_url = (base_url or os.environ.get("ORION_BASE_URL") or DEFAULT_BASE_URL).strip().rstrip("/")
        self.client_id = (client_id or os.environ.get("ORION_CLIENT_ID") or "").strip()
        self.client_secret = (client_secret or os.environ.get("ORION_CLIENT_SECRET") or "").strip()
        self.timeout_s = timeout_s

    def _require_ready(self) -> None:
        if not network_enabled():
            raise ProviderError("Network disabled; set NETWORK_ENABLED=1 to enable live connectors.")
        if not self.client_id or not self.client_secret:
            raise ProviderError("ORION_CLIENT_ID and ORION_CLIENT_SECRET are required.")
        assert_url_allowed(self.base_url)

    def _get_json(self, path: str, *, token: str) -> Any:
        self._require_ready()
        url = f"{self.base_url}{path}"
        resp = http_request(
            url,
            method="GET",
            headers={
                "Authorization": f"Session {token}",
                "Client_id": self.client_id,
                "Client_secret": self.client_secret,
                "Content-Type": "application/json",
            },
            timeout_s=self.timeout_s,
        )
        try:
            return json.loads(resp.content.decode("utf-8", errors="replace") or "null")
        except json.JSONDecodeError as e:
            raise ProviderError(f"Orion response for {path} was not valid JSON.") from e

    def portfolio_clients(self, *, token: str) -> list[dict[str, Any]]:
        data = self._get_json("/Portfolio/Clients", token=token)
        if not isinstance(data, list):
            raise ProviderError("Orion clients response was not a list.")
        return [r for r in data if isinstance(r, dict)]

    def portfolio_accounts(self, *, token: str) -> list[dict[str, Any]]:
        data = self._get_json("/Portfolio/Accounts", token=token)
        if not isinstance(data, list):
            raise ProviderError("Orion accounts response was not a list.")
        return [r for r in data if isinstance(r, dict)]

    def aum_over_time(self, *, token: str, client_id: str) -> list[dict[str, Any]]:
        path_id = urllib.parse.quote(str(client_id), safe="")
        data = self._get_json(f"/Portfolio/Clients/{path_id}/AumOverTime", token=token)
        if not isinstance(data, list):
            raise ProviderError("Orion AUM response was not a list.")
        return [r for r in data if isinstance(r, dict)]
