from __future__ import annotations

import base64
import hashlib
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from vitals.db.models import IntegrationCredential
from vitals.utils.time import utcnow

ACCESS_TOKEN_KEY = "ACCESS_TOKEN"


class CredentialError(Exception):
    pass


def secret_key_available() -> bool:
    v = os.environ.get("APP_SECRET_KEY")
    return bool(v and v.strip())


def _fernet() -> Fernet:
    secret = os.environ.get("APP_SECRET_KEY")
    if not secret or not secret.strip():
        raise CredentialError("APP_SECRET_KEY is required to store credentials in DB.")
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_value(plaintext: str) -> str:
    return _fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_value(token: str) -> str:
    try:
        return _fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise CredentialError("Failed to decrypt credential (wrong APP_SECRET_KEY?).") from e


def mask_secret(value: Optional[str], *, keep_last: int = 4) -> str:
    if not value:
        return "-"
    v = str(value)
    k = max(0, int(keep_last))
    suffix = v[-k:] if k and len(v) >= k else v
    return ("*" * 10) + suffix


def _find(session: Session, *, user_id: int, integration_config_id: int, key: str) -> IntegrationCredential | None:
    return (
        session.query(IntegrationCredential)
        .filter(
            IntegrationCredential.user_id == user_id,
            IntegrationCredential.integration_config_id == integration_config_id,
            IntegrationCredential.key == key,
        )
        .one_or_none()
    )


def upsert_credential(
    session: Session,
    *,
    user_id: int,
    organization_id: int,
    integration_config_id: int,
    key: str,
    plaintext: str,
) -> None:
    if not secret_key_available():
        raise CredentialError("APP_SECRET_KEY is required to store credentials in DB.")
    row = _find(session, user_id=user_id, integration_config_id=integration_config_id, key=key)
    token = encrypt_value(plaintext)
    now = utcnow()
    if row is None:
        session.add(
            IntegrationCredential(
                user_id=user_id,
                organization_id=organization_id,
                integration_config_id=integration_config_id,
                key=key,
                value_encrypted=token,
                created_at=now,
                updated_at=now,
            )
        )
    else:
        row.organization_id = organization_id
        row.value_encrypted = token
        row.updated_at = now


def get_credential(
    session: Session,
    *,
    user_id: int,
    organization_id: int,
    integration_config_id: int,
    key: str,
) -> Optional[str]:
    row = _find(session, user_id=user_id, integration_config_id=integration_config_id, key=key)
    if row is None or row.organization_id != organization_id:
        return None
    if not secret_key_available():
        # Cannot decrypt without a key; treat as unavailable.
        return None
    return decrypt_value(row.value_encrypted)
