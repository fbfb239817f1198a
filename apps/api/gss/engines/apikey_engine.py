"""
API Key Engine — admin management of the public API key.

  GET     /api/apikey   {exists, apiKey}
  POST    /api/apikey   issue a new key (replaces the current one)
  OPTIONS /api/apikey   CORS preflight

Cookie-gated by the session gate in main.py.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ..api_key_manager import fingerprint

CORS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT = {
  "Access-Control-Allow-Origin": "*",
  "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
  "Access-Control-Allow-Headers": "Content-Type",
}

def register(app: FastAPI):
  ctx = app.state.gss_context
  keys = ctx["api_keys"]
  audit = ctx["audit"]

  @app.get("/api/apikey")
  async def get_api_key():
    current = await keys.current()
    return JSONResponse({"exists": current is not None, "apiKey": current}, headers=CORS)

  @app.post("/api/apikey")
  async def issue_api_key(request: Request):
    """Regenerate. The previous key stops working immediately."""
    raw_key = await keys.issue()
    audit.record(request, "api_key.issue", "success", details={"fingerprint": fingerprint(raw_key)})
    return JSONResponse({
      "success": True,
      "apiKey": raw_key,
      "message": "API Key generated successfully",
    }, headers=CORS)

  @app.options("/api/apikey")
  async def apikey_preflight():
    return Response(status_code=200, headers=PREFLIGHT)
