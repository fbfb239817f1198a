"""
Public API Engine — read-only site listing for external consumers.

  GET /public-api/sites   {success, count, sites}

Method and X-API-Key checks happen in the API-key gate (gates.py) before
this handler runs. Every response from this surface carries a permissive
CORS origin, errors included.
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from ..config_store import is_reserved
from ..gates import PUBLIC_CORS_HEADERS, PUBLIC_SITES_PATH

def register(app: FastAPI):
  ctx = app.state.gss_context
  store = ctx["store"]

  @app.get(PUBLIC_SITES_PATH)
  async def public_sites():
    configs = [c for c in await store.list() if not is_reserved(c.site)]
    return JSONResponse({
      "success": True,
      "count": len(configs),
      "sites": [c.model_dump() for c in configs],
    }, headers=PUBLIC_CORS_HEADERS)
