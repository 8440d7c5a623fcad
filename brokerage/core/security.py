"""Password hashing and JWT access tokens.

Tokens identify a user by email (`sub`). Department and role travel as
informational claims; authorization always re-reads the user row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from brokerage.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    department: Optional[str] = None
    role: Optional[str] = None
    expires_at: Optional[datetime] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    subject: str,
    *,
    department: Optional[str] = None,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    minutes = expires_minutes or settings.access_token_expire_minutes
    claims: dict = {
        "sub": subject,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    if department:
        claims["department"] = department
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """Verified claims, or None for a bad signature, expiry or missing subject."""

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    exp = payload.get("exp")
    return TokenClaims(
        subject=str(subject),
        department=payload.get("department"),
        role=payload.get("role"),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )
