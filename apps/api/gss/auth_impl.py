"""
GSS Admin Auth — password login that hands out the session cookie.

There is one admin identity. Its password comes from the GSS_ADMIN_PASSWORD
secret file; a successful login mints a signed session token
(session_manager) and stores it in the ``auth_token`` cookie.

The login route lives under /api/auth/, which the session gate leaves open.
Brute-force throttling is done by the caller (main.py) per client IP.
"""

import hmac
import logging
import os

from starlette.responses import Response

from .errors import AuthError, GssError
from .secret_loader import get_secret
from .session_manager import COOKIE_NAME, mint_session_token, session_ttl, verify_session_token

logger = logging.getLogger("gss.auth")

FORCE_HTTPS = os.getenv("FORCE_HTTPS", "false").lower() in ("true", "1", "yes")


def _secure_equals(a: str, b: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest((a or "").encode("utf-8"), (b or "").encode("utf-8"))


def login(password: str) -> str:
    """Check the admin password and return a fresh session token.

    Raises GssError(503) when login is not configured and AuthError(401)
    on a wrong password.
    """
    expected = get_secret("GSS_ADMIN_PASSWORD", required=False)
    if not expected:
        logger.error("Login attempted but GSS_ADMIN_PASSWORD is not configured")
        raise GssError("Admin login is not configured", 503)
    if not _secure_equals(password, expected):
        raise AuthError.missing("Invalid password")
    try:
        return mint_session_token("admin")
    except RuntimeError as e:
        logger.error("Cannot mint session: %s", e)
        raise GssError("Admin login is not configured", 503) from e


def check(token: str | None) -> dict:
    """Claims of a valid session token; AuthError(401) otherwise."""
    claims = verify_session_token(token)
    if claims is None:
        raise AuthError.missing()
    return claims


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=session_ttl(),
        path="/",
        httponly=True,
        secure=FORCE_HTTPS,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/", httponly=True, secure=FORCE_HTTPS, samesite="strict")
