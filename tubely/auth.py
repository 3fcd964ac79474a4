# tubely/auth.py
from __future__ import annotations

import logging
import time
from typing import Mapping

import jwt

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "tubely-access"
ALGORITHM = "HS256"


class AuthError(Exception):
    pass


def get_bearer_token(headers: Mapping[str, str]) -> str:
    auth = headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Malformed or missing authorization header")
    return token.strip()


def make_jwt(user_id: str, secret: str, expires_in_sec: int = 3600) -> str:
    now = int(time.time())
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": user_id,
        "iat": now,
        "exp": now + expires_in_sec,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def validate_jwt(token: str, secret: str) -> str:
    """Return the user id carried in ``sub`` or raise :class:`AuthError`."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token: missing user id")
    return user_id
