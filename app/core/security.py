from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.settings import settings

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    min_len = settings.default_password_min_length
    if len(password) < min_len:
        raise ValueError(f"Password too short; minimum {min_len} characters")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return pwd_context.hash("decoy-password-for-unknown-users")


def check_credentials(password: str, hashed_password: str | None) -> bool:
    """Verify ``password``; unknown accounts still pay for one bcrypt round."""
    if hashed_password is None:
        verify_password(password, _decoy_hash())
        return False
    return verify_password(password, hashed_password)


class JWTKeyError(RuntimeError):
    pass


def _key_material(inline: str | None, path: str | None, label: str) -> str:
    # HS* algorithms sign and verify with the shared secret.
    if settings.jwt_algorithm.startswith("HS"):
        return settings.secret_key
    if inline:
        return inline
    if path:
        return Path(path).read_text(encoding="utf-8")
    raise JWTKeyError(f"JWT {label} key not configured")


@lru_cache(maxsize=1)
def _load_private_key() -> str:
    return _key_material(settings.jwt_private_key, settings.jwt_private_key_path, "private")


@lru_cache(maxsize=1)
def _load_public_key() -> str:
    return _key_material(settings.jwt_public_key, settings.jwt_public_key_path, "public")


def create_access_token(
    subject: str,
    *,
    role: str,
    expires_delta: timedelta | None = None,
    token_version: int | None = None,
) -> str:
    """Issue a bearer token for ``subject`` (a user id).

    ``tv`` carries the user's token version; bumping the stored version on
    logout invalidates every token issued before it.
    """
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes)),
        "type": ACCESS_TOKEN_TYPE,
    }
    if token_version is not None:
        claims["tv"] = token_version
    return jwt.encode(claims, _load_private_key(), algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, _load_public_key(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and payload.get("type") != expected_type:
        raise ValueError(f"Unexpected token type: {payload.get('type')}")
    return payload
