"""Password hashing and the two-tier token scheme.

Account tokens are long-lived and carry only identity; they are exchanged for
session tokens, which are shorter-lived and carry role, tenant, session and
device. Each class is signed with its own secret. Verification fails closed:
anything other than a well-formed, unexpired, correctly signed token of the
expected class yields None.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
from jose import JWTError, jwt
from pydantic import ValidationError

from app.auth.schemas import AccountClaims, SessionClaims
from app.core.config import settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

ACCOUNT_TOKEN_TYPE = "account"
SESSION_TOKEN_TYPE = "session"


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # In case the stored hash is invalid/corrupted
        return False


def new_session_id() -> str:
    return secrets.token_urlsafe(16)


def device_fingerprint(user_agent: Optional[str]) -> str:
    return hashlib.md5((user_agent or "unknown").encode("utf-8")).hexdigest()


def _encode(claims: Dict[str, Any], secret: str, expires_days: int) -> str:
    to_encode = claims.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(days=expires_days)
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def _decode(token: Optional[str], secret: str, token_type: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Rejected {token_type} token: {e}")
        return None
    if payload.get("typ") != token_type:
        logger.debug(f"Rejected token with type {payload.get('typ')!r}, expected {token_type!r}")
        return None
    return payload


def create_account_token(*, user_id: UUID, user_key: str) -> str:
    return _encode(
        {"typ": ACCOUNT_TOKEN_TYPE, "userId": str(user_id), "userKey": user_key},
        settings.long_token_secret,
        settings.account_token_expire_days,
    )


def create_session_token(
    *,
    user_id: UUID,
    user_key: str,
    role: str,
    school_id: Optional[UUID],
    session_id: str,
    device_id: str,
) -> str:
    return _encode(
        {
            "typ": SESSION_TOKEN_TYPE,
            "userId": str(user_id),
            "userKey": user_key,
            "role": role,
            "schoolId": str(school_id) if school_id else None,
            "sessionId": session_id,
            "deviceId": device_id,
        },
        settings.short_token_secret,
        settings.session_token_expire_days,
    )


def verify_account_token(token: Optional[str]) -> Optional[AccountClaims]:
    payload = _decode(token, settings.long_token_secret, ACCOUNT_TOKEN_TYPE)
    if payload is None:
        return None
    try:
        return AccountClaims.model_validate(payload)
    except ValidationError:
        return None


def verify_session_token(token: Optional[str]) -> Optional[SessionClaims]:
    payload = _decode(token, settings.short_token_secret, SESSION_TOKEN_TYPE)
    if payload is None:
        return None
    try:
        return SessionClaims.model_validate(payload)
    except ValidationError:
        return None
