from fastapi import FastAPI, Query

def register(app: FastAPI):
  audit = app.state.gss_context["audit"]

  @app.get("/api/audit/logs")
  async def audit_logs(limit: int = Query(100, ge=1, le=500)):
    items = audit.tail(limit)
    return {"items": items, "count": len(items)}
