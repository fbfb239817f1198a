import importlib
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, constr
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from . import auth_impl
from .api_key_manager import ApiKeyManager
from .audit import AuditLog
from .config_store import ConfigStore
from .errors import AuthError, GssError
from .gates import PUBLIC_CORS_HEADERS, admin_shell_gate, api_key_gate, session_gate
from .kv_backend import backend_from_env
from .secret_loader import get_secret_metadata, load_all_secrets
from .session_manager import COOKIE_NAME, get_cookie
from .utils import RateLimiter, client_ip

logger = logging.getLogger("gss.api")

VERSION = "1.0.0"
ENGINES_DIR = Path(__file__).resolve().parent / "engines"

LOGIN_WINDOW_SECONDS = int(os.getenv("LOGIN_WINDOW_SECONDS", "120"))
LOGIN_MAX_ATTEMPTS = int(os.getenv("LOGIN_MAX_ATTEMPTS", "8"))
FORCE_HTTPS = auth_impl.FORCE_HTTPS


class LoginRequest(BaseModel):
  password: constr(min_length=1, max_length=256)


def _error_body(request: Request, message: str, status_code: int, headers: dict | None = None) -> JSONResponse:
  headers = dict(headers or {})
  if request.url.path.startswith("/public-api/"):
    headers.update(PUBLIC_CORS_HEADERS)
  return JSONResponse({"error": message}, status_code=status_code, headers=headers or None)


def _load_engines(app: FastAPI):
  """Import every engines/*_engine.py and let it register its routes."""
  for file in sorted(ENGINES_DIR.glob("*_engine.py")):
    module = importlib.import_module(f"{__package__}.engines.{file.stem}")
    register = getattr(module, "register", None)
    if callable(register):
      register(app)
      logger.debug("Engine loaded: %s", file.stem)


def create_app(store: ConfigStore | None = None, admin_path: str | None = None,
               data_dir: str | None = None) -> FastAPI:
  """Assemble the service. Arguments override the environment (tests)."""
  store = store or ConfigStore(backend_from_env())
  admin_path = (admin_path or os.getenv("ADMIN_PATH") or "").strip().strip("/") or "admin"
  data_dir = data_dir or os.getenv("GSS_DATA_DIR", "/data")
  api_keys = ApiKeyManager(store)
  audit = AuditLog(os.path.join(data_dir, ".gss_audit.jsonl"))
  login_limiter = RateLimiter(max_attempts=LOGIN_MAX_ATTEMPTS, window_seconds=LOGIN_WINDOW_SECONDS)

  @asynccontextmanager
  async def _lifespan(app: FastAPI):
    # Fail fast on weak secrets; missing ones only disable login.
    load_all_secrets()
    configured = [n for n, m in get_secret_metadata().items() if m["source"] != "missing"]
    logger.info("GSS admin ready: backend=%s admin_path=/%s secrets=%s",
                store.backend.name, admin_path.strip("/"), ",".join(configured) or "none")
    yield

  app = FastAPI(title="GSS Admin API", version=VERSION, docs_url=None, redoc_url=None, lifespan=_lifespan)
  app.state.gss_context = {
    "store": store,
    "api_keys": api_keys,
    "audit": audit,
    "admin_path": admin_path,
    "client_ip": client_ip,
  }

  # ── Error mapping: every JSON error is {"error": "..."} ────────────────
  @app.exception_handler(GssError)
  async def gss_error_handler(request: Request, exc: GssError):
    if exc.status_code >= 500:
      logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_body(request, exc.message, exc.status_code)

  @app.exception_handler(StarletteHTTPException)
  async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_body(request, str(exc.detail), exc.status_code, getattr(exc, "headers", None))

  @app.exception_handler(RequestValidationError)
  async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
      first = errors[0]
      loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
      message = f"{loc}: {first.get('msg', 'invalid')}" if loc else first.get("msg", "invalid")
    else:
      message = "Invalid request"
    return _error_body(request, message, 400)

  # ── Middlewares (last added runs first) ────────────────────────────────
  @app.middleware("http")
  async def access_gates(request: Request, call_next):
    rejection = await api_key_gate(request, api_keys)
    if rejection is None:
      rejection = session_gate(request)
    if rejection is not None:
      return rejection
    return await call_next(request)

  @app.middleware("http")
  async def admin_shell(request: Request, call_next):
    rejection = admin_shell_gate(request.url.path, admin_path)
    if rejection is not None:
      return rejection
    return await call_next(request)

  @app.middleware("http")
  async def hardening_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cache-Control", "no-store")
    response.headers["X-Request-ID"] = request.headers.get("X-Request-ID", uuid4().hex)
    if FORCE_HTTPS or request.headers.get("X-Forwarded-Proto") == "https":
      response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
    return response

  # ── Auth sub-routes (left open by the session gate) ───────────────────
  @app.get("/api/auth/health")
  def health():
    return {"ok": True}

  @app.post("/api/auth/login")
  async def auth_login(x: LoginRequest, request: Request):
    ip = client_ip(request)
    if login_limiter.is_limited(ip):
      audit.record(request, "auth.login", "rate_limited", "anonymous")
      raise GssError("Too many login attempts, try again later", 429)
    try:
      token = auth_impl.login(x.password)
    except AuthError:
      login_limiter.cleanup()
      login_limiter.register_attempt(ip)
      audit.record(request, "auth.login", "failed", "anonymous")
      raise
    login_limiter.clear(ip)
    audit.record(request, "auth.login", "success")
    response = JSONResponse({"success": True})
    auth_impl.set_session_cookie(response, token)
    return response

  @app.post("/api/auth/logout")
  async def auth_logout(request: Request):
    audit.record(request, "auth.logout", "success")
    response = JSONResponse({"success": True})
    auth_impl.clear_session_cookie(response)
    return response

  @app.get("/api/auth/check")
  async def auth_check(request: Request):
    claims = auth_impl.check(get_cookie(request.headers.get("cookie"), COOKIE_NAME))
    return {"authenticated": True, "expires_at": claims["exp"]}

  _load_engines(app)
  return app


app = create_app()


def run():
  """Development runner: ``gss-admin`` console script."""
  import uvicorn

  logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
  )
  port = int(os.getenv("GSS_PORT", "8788"))
  uvicorn.run("gss.main:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
  run()
