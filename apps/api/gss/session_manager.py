"""
GSS Session Tokens — the admin UI session carried in the ``auth_token`` cookie.

A session is a stateless HS256 JWT signed with GSS_SESSION_SECRET:
  iss=gss, aud=gss-admin, sub=admin, jti, iat, nbf, exp

Verification tries the current secret first, then the previous one from the
key ring, so a secret rotation does not log everybody out at once.

The session gate only requires the cookie to be present by default; full
verification here is used by /api/auth/check and, with GSS_SESSION_VERIFY=1,
by the gate itself.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional
from uuid import uuid4

import jwt

from .secret_loader import get_key_ring

logger = logging.getLogger("gss.session")

COOKIE_NAME = "auth_token"
ISS = "gss"
AUD = "gss-admin"
ALGORITHM = "HS256"


def session_ttl() -> int:
    return int(os.getenv("GSS_SESSION_TTL", "86400"))


def strict_verification() -> bool:
    return os.getenv("GSS_SESSION_VERIFY", "0").lower() in ("1", "true", "yes")


def get_cookie(cookie_header: Optional[str], name: str = COOKIE_NAME) -> Optional[str]:
    """Value of cookie ``name`` from a raw Cookie header.

    Pairs are ``;``-separated and whitespace-trimmed; the first pair whose
    key matches exactly (case-sensitive) wins. The value is the text between
    the first and second ``=``, returned without percent-decoding, so
    ``auth_token==x`` yields an empty value. Returns None when the cookie is
    absent.
    """
    if not cookie_header:
        return None
    for pair in cookie_header.split(";"):
        parts = pair.strip().split("=")
        if parts[0] == name:
            return parts[1] if len(parts) > 1 else ""
    return None


def mint_session_token(subject: str = "admin") -> str:
    """Sign a new session token. Raises RuntimeError if no secret is configured."""
    secret, _ = get_key_ring("GSS_SESSION_SECRET")
    if not secret:
        raise RuntimeError("GSS_SESSION_SECRET not configured — cannot mint sessions")
    now = int(time.time())
    payload = {
        "iss": ISS,
        "aud": AUD,
        "sub": subject,
        "jti": uuid4().hex,
        "iat": now,
        "nbf": now,
        "exp": now + session_ttl(),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_session_token(token: Optional[str]) -> Optional[dict]:
    """Decoded claims if ``token`` is a valid, unexpired session; else None."""
    if not token:
        return None
    current, previous = get_key_ring("GSS_SESSION_SECRET")
    for secret in (current, previous):
        if not secret:
            continue
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=AUD,
                issuer=ISS,
                options={"require": ["exp", "iat", "sub", "iss", "aud", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired session token")
            return None
        except jwt.InvalidTokenError:
            continue
    return None
