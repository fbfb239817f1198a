"""
Sites Engine — admin CRUD for per-site selector configs.

  GET     /api/sites             all visible configs (JSON array)
  POST    /api/sites             create / overwrite one config
  DELETE  /api/sites?site=<id>   remove one config (idempotent)
  OPTIONS /api/sites             CORS preflight

Cookie-gated by the session gate in main.py.
"""

from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

CORS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT = {
  "Access-Control-Allow-Origin": "*",
  "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
  "Access-Control-Allow-Headers": "Content-Type",
}

class SiteConfigIn(BaseModel):
  site: Optional[str] = None
  cardSelector: Optional[str] = None
  linkSelector: Optional[str] = None
  containerSelector: Optional[str] = None

def register(app: FastAPI):
  ctx = app.state.gss_context
  store = ctx["store"]
  audit = ctx["audit"]

  @app.get("/api/sites")
  async def list_sites():
    configs = await store.list()
    return JSONResponse([c.model_dump() for c in configs], headers=CORS)

  @app.post("/api/sites")
  async def put_site(x: SiteConfigIn, request: Request):
    config = await store.put(x.site, x.model_dump(exclude={"site"}))
    audit.record(request, "site.put", "success", details={"site": config.site})
    return JSONResponse({"success": True}, headers=CORS)

  @app.delete("/api/sites")
  async def delete_site(request: Request, site: Optional[str] = None):
    await store.delete(site)
    audit.record(request, "site.delete", "success", details={"site": site.strip()})
    return JSONResponse({"success": True}, headers=CORS)

  @app.options("/api/sites")
  async def sites_preflight():
    return Response(status_code=200, headers=PREFLIGHT)
