"""
Token utilities for authenticating API callers.

Access tokens are HS256 JWTs whose ``sub`` claim holds the user ID and whose
``role`` claim mirrors the user's role at issue time. The role claim is only
informational; authorization always re-reads the user record.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypedDict

import jwt

from core.config import settings

logger = logging.getLogger(__name__)


class JWTPayload(TypedDict, total=False):
    sub: str
    role: str
    exp: int
    iat: int
    type: str


def create_access_token(
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    """
    Issue a signed access token for a user.

    Args:
        user_id: The user the token identifies
        role: The user's role, copied into the ``role`` claim
        expires_delta: Token lifetime (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)
        extra_claims: Additional claims merged into the payload

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> JWTPayload:
    """
    Verify a token signature and expiry and return its payload.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed, badly signed or not an access token
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type", "access") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    return payload


def get_token_user_id(payload: JWTPayload) -> int:
    """Extract the numeric user ID from a decoded payload."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject is not a user id") from exc
