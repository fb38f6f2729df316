from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

security = HTTPBasic(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    organization_id: int


def _expected_password() -> Optional[str]:
    pw = os.environ.get("APP_PASSWORD")
    if pw is not None and pw.strip() == "":
        return None
    return pw


def _int_header(request: Request, name: str) -> int:
    raw = (request.headers.get(name) or "").strip()
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid {name} header",
        ) from None


def require_user(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
) -> CurrentUser:
    """
    Resolve the calling advisor. The session layer in front of this service forwards
    X-User-Id / X-Organization-Id; APP_PASSWORD additionally gates the API with Basic auth.
    """
    expected = _expected_password()
    if expected is not None:
        if credentials is None or not secrets.compare_digest(credentials.password, expected):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Basic"},
            )
    return CurrentUser(
        user_id=_int_header(request, "X-User-Id"),
        organization_id=_int_header(request, "X-Organization-Id"),
    )
