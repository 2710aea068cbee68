# telecare/core/security.py
"""
Password hashing (passlib, bcrypt) and JWT bearer tokens (python-jose, HS256).
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from telecare.core.config import settings

ALGORITHM = "HS256"

_pwd_ctx = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    default="bcrypt_sha256",
    deprecated="auto",
)


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("Password must be a non-empty string")
    return _pwd_ctx.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not (plain_password and password_hash):
        return False
    try:
        return _pwd_ctx.verify(plain_password, password_hash)
    except ValueError:
        # unknown or malformed hash
        return False


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class InvalidTokenError(Exception):
    """Message is the code returned to the client, e.g. "invalid_token_type"."""


def issue_token(
    subject: uuid.UUID,
    token_type: TokenType,
    lifetime: timedelta,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        **(claims or {}),
        "sub": str(subject),
        "type": token_type.value,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def access_token_for(user_id: uuid.UUID, role: str) -> str:
    """Role claim is informational; get_current_user reloads the user row."""
    return issue_token(
        user_id,
        TokenType.ACCESS,
        timedelta(minutes=settings.ACCESS_EXPIRES_MIN),
        {"role": role},
    )


def refresh_token_for(user_id: uuid.UUID) -> str:
    return issue_token(user_id, TokenType.REFRESH, timedelta(days=settings.REFRESH_EXPIRES_DAYS))


def decode_token(token: str, expected_type: TokenType) -> uuid.UUID:
    """Verify signature, expiry and token type; return the subject user id."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("invalid_token") from exc

    if payload.get("type") != expected_type.value:
        raise InvalidTokenError("invalid_token_type")
    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError) as exc:
        raise InvalidTokenError("invalid_token") from exc
