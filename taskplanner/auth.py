"""Password-based sign-in tokens."""

from __future__ import annotations

import hashlib
import time
from typing import Any

import jwt

TOKEN_LIFETIME = 8 * 60 * 60

_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


class AuthError(Exception):
    """Raised when a token does not authorise the request."""


def password_hash(value: str) -> str:
    """Hex SHA-256 digest of a password."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_token(password: str, secret: str | bytes) -> str:
    """Issue an HS256 token bound to the password, valid for eight hours."""
    claims = {
        "hash": password_hash(password),
        "exp": int(time.time()) + TOKEN_LIFETIME,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def verify_token(token: str, password: str, secret: str | bytes) -> dict[str, Any]:
    """Check a token against the current password and return its claims."""
    try:
        claims = jwt.decode(token, secret, algorithms=_HMAC_ALGORITHMS)
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid token") from exc
    token_hash = claims.get("hash")
    if not isinstance(token_hash, str):
        raise AuthError("Invalid token data")
    if token_hash != password_hash(password):
        raise AuthError("Invalid token hash")
    return claims