from __future__ import annotations

import os
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Optional

from vitals.importers.adapters import ProviderError

DEFAULT_OUTBOUND_HOSTS = frozenset(
    {
        "api.orionadvisor.com",
        "stagingapi.orionadvisor.com",
    }
)


def network_enabled() -> bool:
    v = (os.environ.get("NETWORK_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _normalize_host(raw: str) -> str:
    s = raw.strip().lower()
    if "://" in s:
        s = urllib.parse.urlparse(s).hostname or ""
    s = s.split("/", 1)[0]
    s = s.split(":", 1)[0]
    return s


def allowed_outbound_hosts() -> set[str]:
    raw = (os.environ.get("ALLOWED_OUTBOUND_HOSTS") or "").strip()
    if raw:
        hosts = {_normalize_host(h) for h in raw.split(",") if h.strip()}
        return {h for h in hosts if h}
    return set(DEFAULT_OUTBOUND_HOSTS)


def assert_url_allowed(url: str) -> None:
    u = urllib.parse.urlparse(url)
    if (u.scheme or "").lower() != "https":
        raise ProviderError("Blocked network request: only https:// is allowed.")
    host = (u.hostname or "").lower()
    if not host:
        raise ProviderError("Blocked network request: missing hostname.")
    if host not in allowed_outbound_hosts():
        hint = " (ALLOWED_OUTBOUND_HOSTS overrides defaults)" if os.environ.get("ALLOWED_OUTBOUND_HOSTS") else ""
        raise ProviderError(f"Blocked network request: host not allowlisted ({host}){hint}.")


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    content: bytes
    content_type: Optional[str] = None


class _AllowlistRedirectHandler(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        # Enforce allowlist on redirects as well.
        assert_url_allowed(str(newurl))
        return super().redirect_request(req, fp, code, msg, headers, newurl)


def _backoff(attempt: int, backoff_s: float) -> None:
    time.sleep(min(8.0, backoff_s * (2**attempt)))


def http_request(
    url: str,
    *,
    method: str = "GET",
    headers: Optional[dict[str, str]] = None,
    body: Optional[bytes] = None,
    timeout_s: float = 30.0,
    max_retries: int = 2,
    backoff_s: float = 0.5,
) -> HttpResponse:
    """
    Minimal HTTP helper with:
      - NETWORK_ENABLED gate
      - outbound host allowlist (also on redirects)
      - timeouts + limited retries (429 and 5xx, connection errors)

    Never include secrets in raised errors; header values are never echoed.
    """
    if not network_enabled():
        raise ProviderError("Network disabled; set NETWORK_ENABLED=1 to enable live connectors.")
    assert_url_allowed(url)

    u = urllib.parse.urlparse(url)
    host = (u.hostname or "").lower()
    path = u.path or "/"

    attempt = 0
    last_err: Exception | None = None
    last_reason: str | None = None
    while attempt <= max_retries:
        try:
            opener = urllib.request.build_opener(_AllowlistRedirectHandler())
            req = urllib.request.Request(url, data=body, headers=dict(headers or {}), method=method)
            with opener.open(req, timeout=timeout_s) as resp:
                status = int(getattr(resp, "status", 200))
                return HttpResponse(
                    status_code=status,
                    content=resp.read(),
                    content_type=resp.headers.get("Content-Type"),
                )
        except urllib.error.HTTPError as e:
            last_err = e
            status = int(getattr(e, "code", 0) or 0)
            # 429 and 5xx are retryable; other 4xx fail fast.
            if status == 429 or status >= 500:
                _backoff(attempt, backoff_s)
                attempt += 1
                continue
            raise ProviderError(f"HTTP error status={status} host={host} path={path}") from None
        except urllib.error.URLError as e:
            last_err = e
            reason = getattr(e, "reason", None)
            last_reason = str(reason) if reason is not None else str(e)
            _backoff(attempt, backoff_s)
            attempt += 1
            continue
        except (TimeoutError, ConnectionError) as e:
            last_err = e
            last_reason = type(e).__name__
            _backoff(attempt, backoff_s)
            attempt += 1
            continue

    if isinstance(last_err, urllib.error.HTTPError):
        raise ProviderError(f"HTTP error status={last_err.code} host={host} path={path} after retries")
    name = type(last_err).__name__ if last_err else "unknown"
    if last_reason:
        raise ProviderError(f"Network request failed after retries: {name}: {last_reason}. host={host}")
    raise ProviderError(f"Network request failed after retries: {name}")
