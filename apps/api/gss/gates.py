"""
GSS Gates — the boundary checks that run before any handler.

  admin_shell_gate   which human-facing paths exist at all (404 otherwise)
  session_gate       /api/* except /api/auth/* needs a session cookie
  api_key_gate       /public-api/sites needs the current X-API-Key

Each gate returns None to forward the request, or the Response that ends it.
main.py wires them as HTTP middlewares.
"""

from __future__ import annotations

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from .api_key_manager import ApiKeyManager, fingerprint
from .errors import StoreError
from .session_manager import COOKIE_NAME, get_cookie, strict_verification, verify_session_token

logger = logging.getLogger("gss.gates")

API_PREFIXES = ("/api/", "/public-api/")
ASSETS_PREFIX = "/assets/"
AUTH_PREFIX = "/api/auth/"
PUBLIC_SITES_PATH = "/public-api/sites"

PUBLIC_CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PUBLIC_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key",
    "Access-Control-Max-Age": "86400",
}


def _public_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=PUBLIC_CORS_HEADERS)


# ── Admin shell ──────────────────────────────────────────────────────────────

def admin_mount(admin_path: str) -> str:
    return "/" + admin_path.strip("/")


def admin_shell_gate(path: str, admin_path: str) -> Optional[Response]:
    """Assets, dotted paths and API paths pass; the admin mount (with or
    without trailing slash) passes; everything else is a plain-text 404."""
    if path.startswith(ASSETS_PREFIX) or path.startswith(API_PREFIXES) or "." in path:
        return None
    mount = admin_mount(admin_path)
    if path in (mount, mount + "/"):
        return None
    return PlainTextResponse("Not Found", status_code=404)


# ── Session cookie ───────────────────────────────────────────────────────────

def session_gate(request: Request) -> Optional[Response]:
    """Presence check on the ``auth_token`` cookie for the admin API."""
    path = request.url.path
    if not path.startswith("/api/") or path.startswith(AUTH_PREFIX):
        return None
    token = get_cookie(request.headers.get("cookie"), COOKIE_NAME)
    if not token:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    if strict_verification() and verify_session_token(token) is None:
        logger.info("Session gate rejected unverifiable token on %s", path)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    return None


# ── Public API key ───────────────────────────────────────────────────────────

async def api_key_gate(request: Request, keys: ApiKeyManager) -> Optional[Response]:
    """Method and X-API-Key checks for the public listing route.

    Order matters: OPTIONS never touches the store, a wrong method is
    rejected before credentials are looked at, and a missing header (401)
    is distinguished from a wrong one (403).
    """
    if request.url.path.rstrip("/") != PUBLIC_SITES_PATH:
        return None
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=PUBLIC_PREFLIGHT_HEADERS)
    if request.method != "GET":
        return _public_error("Method not allowed", 405)

    presented = request.headers.get("X-API-Key")
    if not presented:
        return _public_error("API Key is required. Please provide X-API-Key header.", 401)
    try:
        valid = await keys.validate(presented)
    except StoreError as e:
        return _public_error(e.message, e.status_code)
    if not valid:
        logger.warning("Rejected public API call with invalid key (fingerprint %s)", fingerprint(presented))
        return _public_error("Invalid API Key", 403)
    return None
